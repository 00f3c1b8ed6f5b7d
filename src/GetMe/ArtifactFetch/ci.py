# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.ci",
#   "purpose": "CI capability protocols and the Jenkins JSON API client used by the build fallback",
#   "sections": [
#     {"id": "records", "name": "BuildParameter / BuildRecord", "anchor": "class-buildrecord", "kind": "class"},
#     {"id": "protocols", "name": "CISystem / CIJob", "anchor": "PRT", "kind": "api"},
#     {"id": "jenkins", "name": "JenkinsClient / JenkinsJob", "anchor": "class-jenkinsclient", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""CI system access for the build fallback.

The orchestrator only depends on the small capability set captured by
:class:`CISystem` and :class:`CIJob`: look up a job, invoke it with string
parameters, inspect the pending queue, list build ids and read one build.
:class:`JenkinsClient` implements it on top of the Jenkins JSON API with an
HTTPX client and basic authentication (user + API token):

- ``GET /api/json`` to check connectivity and credentials;
- ``GET /job/{name}/api/json`` to look up a job;
- ``POST /job/{name}/buildWithParameters`` to trigger a build, whose
  ``Location`` header points at ``/queue/item/{id}/``;
- ``GET /queue/api/json`` for the pending queue;
- ``GET /job/{name}/api/json?tree=allBuilds[number]`` for build ids, in the
  order Jenkins returns them;
- ``GET /job/{name}/{id}/api/json`` for one build.

Folder jobs are addressed with ``/`` separated names (``team/pinata-mac-iso``).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Set, Tuple
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import (
    BuildConnectError,
    BuildTriggerError,
    JobNotFoundError,
    MalformedResponseError,
    RemoteAPIError,
)
from .net import build_http_client

__all__ = [
    "BuildParameter",
    "BuildRecord",
    "CIJob",
    "CISystem",
    "CIConnector",
    "JenkinsClient",
    "JenkinsJob",
    "connect_jenkins",
]

LOGGER = logging.getLogger(__name__)

_QUEUE_ITEM_PATTERN = re.compile(r"/queue/item/(\d+)/?$")


@dataclass(slots=True, frozen=True)
class BuildParameter:
    name: str
    value: Any


@dataclass(slots=True, frozen=True)
class BuildRecord:
    """Snapshot of one CI build.

    By convention the first parameter is the commit the build was triggered for.
    """

    id: int
    parameters: Tuple[BuildParameter, ...] = field(default_factory=tuple)
    is_running: bool = False
    is_successful: bool = False

    @property
    def first_parameter_value(self) -> Optional[Any]:
        if not self.parameters:
            return None
        return self.parameters[0].value


class CIJob(Protocol):
    """A named build definition."""

    name: str

    def invoke(self, parameters: Mapping[str, str]) -> int:
        """Trigger a build and return the id of the queued task."""
        ...

    def list_build_ids(self) -> List[int]:
        """Return build ids in the order the CI system lists them."""
        ...

    def get_build(self, build_id: int) -> BuildRecord:
        ...


class CISystem(Protocol):
    """Connected CI server."""

    def get_job(self, name: str) -> CIJob:
        ...

    def get_queue(self) -> Set[int]:
        """Return the ids of the tasks still waiting in the queue."""
        ...

    def close(self) -> None:
        ...


CIConnector = Callable[[str, str, str], CISystem]


class _QueueItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class _Queue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: List[_QueueItem] = Field(default_factory=list)


class _BuildRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int


class _BuildList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    allBuilds: List[_BuildRef] = Field(default_factory=list)


class _Build(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    building: bool = False
    result: Optional[str] = None
    actions: List[Optional[Dict[str, Any]]] = Field(default_factory=list)

    def parameters(self) -> Tuple[BuildParameter, ...]:
        for action in self.actions:
            if action and isinstance(action.get("parameters"), list):
                return tuple(
                    BuildParameter(name=str(item.get("name")), value=item.get("value"))
                    for item in action["parameters"]
                    if isinstance(item, dict)
                )
        return ()


def _job_path(name: str) -> str:
    return "/".join(f"job/{quote(part, safe='')}" for part in name.strip("/").split("/"))


class JenkinsClient:
    """Minimal Jenkins JSON API client implementing :class:`CISystem`."""

    def __init__(
        self,
        base_url: str,
        user: str,
        token: str,
        *,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth = httpx.BasicAuth(user, token)
        self._owns_client = client is None
        self.client = client or build_http_client()
        self.logger = logger or LOGGER

    @classmethod
    def connect(
        cls,
        base_url: str,
        user: str,
        token: str,
        *,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "JenkinsClient":
        """Create a client and verify the server accepts the credentials.

        Raises:
            BuildConnectError: If the server is unreachable or rejects the request.
        """

        instance = cls(base_url, user, token, client=client, logger=logger)
        try:
            response = instance._request("GET", "api/json")
        except httpx.HTTPError as exc:
            instance.close()
            raise BuildConnectError(f"Unable to reach Jenkins at {base_url}: {exc}") from exc
        if response.status_code >= 400:
            instance.close()
            raise BuildConnectError(
                f"Jenkins at {base_url} answered {response.status_code} {response.reason_phrase}"
            )
        instance.logger.info("connected to Jenkins", extra={"stage": "trigger_build", "url": base_url})
        return instance

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "JenkinsClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return self.client.request(method, f"{self.base_url}/{path}", auth=self.auth, **kwargs)

    def _get_json(self, path: str, **kwargs: Any) -> Any:
        try:
            response = self._request("GET", path, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteAPIError(f"Jenkins request {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise RemoteAPIError(
                f"Jenkins request {path} answered {response.status_code} {response.reason_phrase}",
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Jenkins request {path} returned invalid JSON") from exc

    def get_job(self, name: str) -> "JenkinsJob":
        """Return the job called ``name``.

        Raises:
            JobNotFoundError: If Jenkins has no such job.
            BuildConnectError: If the lookup fails for another reason.
        """

        path = f"{_job_path(name)}/api/json"
        try:
            self._get_json(path)
        except RemoteAPIError as exc:
            if exc.status == 404:
                raise JobNotFoundError(name) from exc
            raise BuildConnectError(f"Unable to look up job {name}: {exc}") from exc
        return JenkinsJob(self, name)

    def get_queue(self) -> Set[int]:
        payload = self._get_json("queue/api/json", params={"tree": "items[id]"})
        try:
            queue = _Queue.model_validate(payload)
        except PydanticValidationError as exc:
            raise MalformedResponseError(f"Unexpected Jenkins queue payload: {exc}") from exc
        return {item.id for item in queue.items}


class JenkinsJob:
    """One Jenkins job implementing :class:`CIJob`."""

    def __init__(self, server: JenkinsClient, name: str) -> None:
        self.server = server
        self.name = name
        self._path = _job_path(name)

    def invoke(self, parameters: Mapping[str, str]) -> int:
        """Queue a parameterised build and return the queue item id.

        Raises:
            BuildTriggerError: If Jenkins refuses the build or omits the queue location.
        """

        try:
            response = self.server._request(
                "POST", f"{self._path}/buildWithParameters", data=dict(parameters)
            )
        except httpx.HTTPError as exc:
            raise BuildTriggerError(f"Unable to trigger {self.name}: {exc}") from exc
        if response.status_code >= 400:
            raise BuildTriggerError(
                f"Jenkins refused to trigger {self.name}: "
                f"{response.status_code} {response.reason_phrase}"
            )
        location = response.headers.get("Location", "")
        match = _QUEUE_ITEM_PATTERN.search(location)
        if match is None:
            raise BuildTriggerError(
                f"Jenkins did not return a queue location for {self.name} (got {location!r})"
            )
        task_id = int(match.group(1))
        self.server.logger.info(
            "triggered build",
            extra={"stage": "trigger_build", "job": self.name, "task_id": task_id},
        )
        return task_id

    def list_build_ids(self) -> List[int]:
        payload = self.server._get_json(
            f"{self._path}/api/json", params={"tree": "allBuilds[number]"}
        )
        try:
            builds = _BuildList.model_validate(payload)
        except PydanticValidationError as exc:
            raise MalformedResponseError(f"Unexpected Jenkins build list: {exc}") from exc
        return [build.number for build in builds.allBuilds]

    def get_build(self, build_id: int) -> BuildRecord:
        payload = self.server._get_json(f"{self._path}/{build_id}/api/json")
        try:
            build = _Build.model_validate(payload)
        except PydanticValidationError as exc:
            raise MalformedResponseError(f"Unexpected Jenkins build payload: {exc}") from exc
        return BuildRecord(
            id=build.number,
            parameters=build.parameters(),
            is_running=build.building,
            is_successful=not build.building and build.result == "SUCCESS",
        )


def connect_jenkins(base_url: str, user: str, token: str) -> JenkinsClient:
    """Default :data:`CIConnector` used by the orchestrator."""

    return JenkinsClient.connect(base_url, user, token)
