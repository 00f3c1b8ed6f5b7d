# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.polling",
#   "purpose": "Time-boxed, cancellable poll loops on Tenacity",
#   "sections": [
#     {"id": "pollpolicy", "name": "PollPolicy", "anchor": "class-pollpolicy", "kind": "class"},
#     {"id": "poll-until", "name": "poll_until", "anchor": "function-poll-until", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Time-boxed, cancellable poll loops built on Tenacity.

The build fallback waits on two remote state transitions: a queued task
leaving the CI queue, and a running build finishing.  Each wait is one
:func:`poll_until` call: the loop body issues a single status check and the
caller supplies the policy (interval, optional deadline, optional attempt
budget) plus an optional :class:`~GetMe.ArtifactFetch.cancellation.CancellationToken`.

Errors raised by the status check are not retried; they propagate to the
caller on the first occurrence.

Example:
    >>> policy = PollPolicy(interval_sec=0.0, max_attempts=3)
    >>> outcomes = iter([False, False, True])
    >>> poll_until(lambda: next(outcomes), policy=policy, description="demo")
    3
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    stop_any,
    stop_never,
    wait_fixed,
)

from .cancellation import CancellationToken
from .errors import OperationCancelledError, PollTimeoutError
from .settings import PollingConfiguration

__all__ = ["PollPolicy", "poll_until"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PollPolicy:
    """Cadence and bounds of one poll loop; no bound means wait indefinitely."""

    interval_sec: float
    timeout_sec: Optional[float] = None
    max_attempts: Optional[int] = None

    @classmethod
    def from_config(cls, config: PollingConfiguration, *, interval_sec: float) -> "PollPolicy":
        return cls(
            interval_sec=interval_sec,
            timeout_sec=config.timeout_sec,
            max_attempts=config.max_attempts,
        )

    @property
    def is_bounded(self) -> bool:
        return self.timeout_sec is not None or self.max_attempts is not None


def _stop_when_cancelled(token: CancellationToken) -> Callable[[RetryCallState], bool]:
    def _stop(retry_state: RetryCallState) -> bool:
        return token.is_cancelled()

    return _stop


def poll_until(
    check: Callable[[], bool],
    *,
    policy: PollPolicy,
    description: str,
    cancellation_token: Optional[CancellationToken] = None,
    sleep: Optional[Callable[[float], None]] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Call ``check`` every ``policy.interval_sec`` seconds until it returns ``True``.

    Args:
        check: Zero-argument status check; ``True`` ends the wait.
        policy: Interval and optional bounds of the loop.
        description: Human readable name of the awaited condition, used in
            logs and error messages.
        cancellation_token: Optional token observed between checks.
        sleep: Sleep function, overridable for deterministic tests.  Defaults
            to the token's interruptible sleep, or :func:`time.sleep`.
        logger: Logger for progress messages.

    Returns:
        Number of status checks performed.

    Raises:
        OperationCancelledError: If the token is cancelled before the
            condition holds.
        PollTimeoutError: If the deadline or attempt budget is exhausted.
    """

    log = logger or LOGGER
    token = cancellation_token
    if token is not None and token.is_cancelled():
        raise OperationCancelledError(f"Cancelled before waiting for {description}")

    stops = []
    if policy.timeout_sec is not None:
        stops.append(stop_after_delay(policy.timeout_sec))
    if policy.max_attempts is not None:
        stops.append(stop_after_attempt(policy.max_attempts))
    if token is not None:
        stops.append(_stop_when_cancelled(token))
    stop = stop_any(*stops) if stops else stop_never

    if sleep is None:
        sleep = token.sleep if token is not None else time.sleep

    def _attempt() -> bool:
        if token is not None and token.is_cancelled():
            return False
        return bool(check())

    def _before_sleep(retry_state: RetryCallState) -> None:
        log.info(
            "waiting for %s",
            description,
            extra={
                "stage": "poll",
                "attempt": retry_state.attempt_number,
                "sleep_sec": policy.interval_sec,
            },
        )

    retrying = Retrying(
        stop=stop,
        wait=wait_fixed(policy.interval_sec),
        retry=retry_if_result(lambda done: not done),
        sleep=sleep,
        before_sleep=_before_sleep,
    )

    attempts = 0

    def _counted() -> bool:
        nonlocal attempts
        attempts += 1
        return _attempt()

    try:
        retrying(_counted)
    except RetryError:
        if token is not None and token.is_cancelled():
            raise OperationCancelledError(
                f"Cancelled while waiting for {description}"
            ) from None
        raise PollTimeoutError(
            f"Gave up waiting for {description} after {attempts} checks"
        ) from None
    return attempts
