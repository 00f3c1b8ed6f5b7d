"""Poll loop bounds and cancellation."""

from __future__ import annotations

import pytest

from GetMe.ArtifactFetch.cancellation import CancellationToken
from GetMe.ArtifactFetch.errors import OperationCancelledError, PollTimeoutError
from GetMe.ArtifactFetch.polling import PollPolicy, poll_until
from GetMe.ArtifactFetch.settings import PollingConfiguration


class _Recorder:
    def __init__(self) -> None:
        self.sleeps = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)


def test_returns_number_of_checks_and_sleeps_between_them():
    outcomes = iter([False, False, True])
    sleep = _Recorder()

    checks = poll_until(
        lambda: next(outcomes),
        policy=PollPolicy(interval_sec=5.0),
        description="build",
        sleep=sleep,
    )

    assert checks == 3
    assert sleep.sleeps == [5.0, 5.0]


def test_immediate_success_does_not_sleep():
    sleep = _Recorder()
    assert poll_until(lambda: True, policy=PollPolicy(1.0), description="queue", sleep=sleep) == 1
    assert sleep.sleeps == []


def test_attempt_budget_raises_timeout():
    calls = []

    def check():
        calls.append(1)
        return False

    with pytest.raises(PollTimeoutError):
        poll_until(
            check,
            policy=PollPolicy(interval_sec=0.0, max_attempts=4),
            description="queue",
            sleep=_Recorder(),
        )
    assert len(calls) == 4


def test_check_errors_propagate_without_retry():
    calls = []

    def check():
        calls.append(1)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        poll_until(check, policy=PollPolicy(0.0), description="queue", sleep=_Recorder())
    assert len(calls) == 1


def test_already_cancelled_token_raises_before_checking():
    token = CancellationToken()
    token.cancel()
    calls = []

    with pytest.raises(OperationCancelledError):
        poll_until(
            lambda: calls.append(1) or True,
            policy=PollPolicy(0.0),
            description="queue",
            cancellation_token=token,
        )
    assert calls == []


def test_cancellation_during_wait_stops_unbounded_loop():
    token = CancellationToken()
    checks = []

    def check():
        checks.append(1)
        if len(checks) == 2:
            token.cancel()
        return False

    with pytest.raises(OperationCancelledError):
        poll_until(
            check,
            policy=PollPolicy(interval_sec=0.0),
            description="build",
            cancellation_token=token,
            sleep=_Recorder(),
        )
    assert len(checks) == 2


def test_policy_from_configuration():
    config = PollingConfiguration(timeout_sec=30.0, max_attempts=None)

    policy = PollPolicy.from_config(config, interval_sec=config.queue_interval_sec)

    assert policy == PollPolicy(interval_sec=1.0, timeout_sec=30.0, max_attempts=None)
    assert policy.is_bounded
    assert not PollPolicy(interval_sec=5.0).is_bounded
