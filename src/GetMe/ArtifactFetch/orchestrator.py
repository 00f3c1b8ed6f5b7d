# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.orchestrator",
#   "purpose": "Build fallback: fetch from cache, otherwise trigger and await a CI build, then fetch again",
#   "sections": [
#     {"id": "stage", "name": "Stage", "anchor": "class-stage", "kind": "class"},
#     {"id": "buildrequest", "name": "BuildRequest", "anchor": "class-buildrequest", "kind": "class"},
#     {"id": "orchestrator", "name": "BuildFallbackOrchestrator", "anchor": "class-buildfallbackorchestrator", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Build fallback orchestrator.

One run walks a fixed sequence of stages:

========================  ==========================================  ==========================
Stage                     Action                                      On failure
========================  ==========================================  ==========================
``attempt_cache``         fetch the artifact through the cache store  fall back to a build
``trigger_build``         connect, look up the job, invoke it         fatal
``await_queue``           poll the queue until the task has left it   fatal (only when bounded)
``locate_build``          first listed build whose first parameter    ``BuildNotFoundError``
                          equals the commit
``await_completion``      poll the build until it stops running       fatal (only when bounded)
``evaluate``              successful build → ``retry_cache``          ``BuildFailedError``
``retry_cache``           fetch through the cache store once more     fatal
========================  ==========================================  ==========================

The cache fetch is the only recoverable step and is retried exactly once,
after a successful build.  Any :class:`ArtifactFetchError` leaving a stage
keeps its type and message and gains a ``stage`` attribute naming the stage.
Poll loops are unbounded by default; callers bound them with
:class:`~GetMe.ArtifactFetch.polling.PollPolicy` and a cancellation token.
"""

from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol

import httpx

from .cancellation import CancellationToken
from .ci import BuildRecord, CIConnector, CIJob, CISystem, connect_jenkins
from .errors import ArtifactFetchError, BuildFailedError, BuildNotFoundError
from .polling import PollPolicy, poll_until
from .settings import FetchOptions, PinataConfiguration, get_settings

__all__ = [
    "Stage",
    "BuildRequest",
    "CacheFetcher",
    "BuildFallbackOrchestrator",
]

LOGGER = logging.getLogger(__name__)


class Stage(str, enum.Enum):
    ATTEMPT_CACHE = "attempt_cache"
    TRIGGER_BUILD = "trigger_build"
    AWAIT_QUEUE = "await_queue"
    LOCATE_BUILD = "locate_build"
    AWAIT_COMPLETION = "await_completion"
    EVALUATE = "evaluate"
    RETRY_CACHE = "retry_cache"


@dataclass(slots=True, frozen=True)
class BuildRequest:
    """Which remote build to trigger and which artifact it publishes."""

    ci_base_url: str
    user: str
    token: str
    bucket: str
    commit: str
    platform: str

    def job_name(self, config: Optional[PinataConfiguration] = None) -> str:
        cfg = config or get_settings().pinata
        return cfg.job_name_template.format(platform=self.platform)

    def artifact_reference(self, config: Optional[PinataConfiguration] = None) -> str:
        cfg = config or get_settings().pinata
        return cfg.artifact_url_template.format(
            bucket=self.bucket, commit=self.commit, platform=self.platform
        )


class CacheFetcher(Protocol):
    def fetch(self, reference: str, options: FetchOptions) -> Path:
        ...


_CACHE_FAILURES = (ArtifactFetchError, httpx.HTTPError, OSError)


class BuildFallbackOrchestrator:
    """Fetch an artifact, building it on the CI server when the cache cannot provide it."""

    def __init__(
        self,
        cache: CacheFetcher,
        *,
        connector: CIConnector = connect_jenkins,
        queue_policy: Optional[PollPolicy] = None,
        build_policy: Optional[PollPolicy] = None,
        pinata: Optional[PinataConfiguration] = None,
        cancellation_token: Optional[CancellationToken] = None,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        settings = get_settings()
        polling = settings.polling
        self.cache = cache
        self.connector = connector
        self.queue_policy = queue_policy or PollPolicy.from_config(
            polling, interval_sec=polling.queue_interval_sec
        )
        self.build_policy = build_policy or PollPolicy.from_config(
            polling, interval_sec=polling.build_interval_sec
        )
        self.pinata = pinata or settings.pinata
        self.cancellation_token = cancellation_token
        self.sleep = sleep
        self.logger = logger or LOGGER

    @contextmanager
    def _stage(self, stage: Stage) -> Iterator[None]:
        self.logger.debug("entering stage", extra={"stage": stage.value})
        try:
            yield
        except ArtifactFetchError as exc:
            if exc.stage is None:
                exc.stage = stage.value
            raise

    def run(self, request: BuildRequest, options: FetchOptions) -> Path:
        """Return a local path for the artifact of ``request``.

        Raises:
            ArtifactFetchError: The first fatal failure, with ``stage`` set.
        """

        reference = request.artifact_reference(self.pinata)
        try:
            return self.cache.fetch(reference, options)
        except _CACHE_FAILURES as exc:
            self.logger.warning(
                "artifact not available, triggering CI build",
                extra={
                    "stage": Stage.ATTEMPT_CACHE.value,
                    "reference": reference,
                    "error": str(exc),
                },
            )

        with self._stage(Stage.TRIGGER_BUILD):
            ci = self.connector(request.ci_base_url, request.user, request.token)
        try:
            build = self._build(ci, request)
        finally:
            ci.close()

        with self._stage(Stage.EVALUATE):
            if not build.is_successful:
                raise BuildFailedError(build.id, request.commit)
        self.logger.info(
            "build succeeded, fetching artifact again",
            extra={"stage": Stage.RETRY_CACHE.value, "build_id": build.id},
        )
        with self._stage(Stage.RETRY_CACHE):
            return self.cache.fetch(reference, options)

    def _build(self, ci: CISystem, request: BuildRequest) -> BuildRecord:
        commit = request.commit
        with self._stage(Stage.TRIGGER_BUILD):
            job = ci.get_job(request.job_name(self.pinata))
            task_id = job.invoke({self.pinata.commit_parameter: commit})

        with self._stage(Stage.AWAIT_QUEUE):
            self.logger.info(
                "waiting for queue", extra={"stage": Stage.AWAIT_QUEUE.value, "task_id": task_id}
            )
            self._poll(
                lambda: task_id not in ci.get_queue(),
                policy=self.queue_policy,
                description=f"queued task {task_id} of {job.name}",
            )

        with self._stage(Stage.LOCATE_BUILD):
            build = self._locate_build(job, commit)

        with self._stage(Stage.AWAIT_COMPLETION):
            return self._await_completion(job, build)

    def _locate_build(self, job: CIJob, commit: str) -> BuildRecord:
        # First match in listing order; Jenkins does not guarantee chronology.
        for build_id in job.list_build_ids():
            build = job.get_build(build_id)
            if build.first_parameter_value == commit:
                self.logger.info(
                    "located build",
                    extra={"stage": Stage.LOCATE_BUILD.value, "build_id": build.id},
                )
                return build
        raise BuildNotFoundError(commit)

    def _await_completion(self, job: CIJob, build: BuildRecord) -> BuildRecord:
        current = build
        refresh = False

        def _finished() -> bool:
            nonlocal current, refresh
            if refresh:
                current = job.get_build(current.id)
            refresh = True
            if current.is_running:
                self.logger.info(
                    "job is running, waiting",
                    extra={"stage": Stage.AWAIT_COMPLETION.value, "build_id": current.id},
                )
                return False
            return True

        self._poll(
            _finished,
            policy=self.build_policy,
            description=f"build #{build.id} of {job.name}",
        )
        return current

    def _poll(self, check: Callable[[], bool], *, policy: PollPolicy, description: str) -> None:
        poll_until(
            check,
            policy=policy,
            description=description,
            cancellation_token=self.cancellation_token,
            sleep=self.sleep,
            logger=self.logger,
        )

