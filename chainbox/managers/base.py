"""
RuntimeGateway - thin async boundary over the Docker engine.

Every call is a single engine operation: no retries happen here, callers
impose their own backoff. Blocking docker SDK calls run on the default
thread pool so they never stall the event loop.
"""

import asyncio
import enum
import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import docker
import requests
import urllib3
from docker.constants import STREAM_HEADER_SIZE_BYTES

from chainbox.config import docker_endpoint
from chainbox.constants import (
    CONTAINER_REMOVE_TIMEOUT,
    CONTAINER_STOP_TIMEOUT,
    DOCKER_API_VERSION,
)
from chainbox.errors import EngineCallError, InvariantViolationError

logger = logging.getLogger(__name__)

ENGINE_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException)
LOG_STREAM_ERRORS = ENGINE_ERRORS + (urllib3.exceptions.HTTPError,)


class StreamKind(str, enum.Enum):
    STDIN = "stdin"
    STDOUT = "stdout"
    STDERR = "stderr"


# Stream ids in the engine's multiplexed log protocol
_STREAM_KINDS = {
    0: StreamKind.STDIN,
    1: StreamKind.STDOUT,
    2: StreamKind.STDERR,
}


@dataclass(frozen=True)
class ContainerHandle:
    """A container created by chainbox: engine id plus derived name."""

    id: str
    name: str

    @property
    def short_id(self) -> str:
        return self.id[:12]


@dataclass(frozen=True)
class ContainerSummary:
    id: str
    names: tuple[str, ...]
    state: Optional[str] = None
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, entry: dict[str, Any]) -> "ContainerSummary":
        return cls(
            id=entry["Id"],
            names=tuple(entry.get("Names") or ()),
            state=entry.get("State"),
            labels=dict(entry.get("Labels") or {}),
        )


@dataclass(frozen=True)
class ContainerState:
    """The parts of ``docker inspect`` chainbox cares about."""

    status: Optional[str] = None
    health: Optional[str] = None
    exit_code: Optional[int] = None

    @classmethod
    def from_api(cls, attrs: dict[str, Any]) -> "ContainerState":
        state = attrs.get("State") or {}
        health = state.get("Health") or {}
        return cls(
            status=state.get("Status"),
            health=health.get("Status"),
            exit_code=state.get("ExitCode"),
        )


@dataclass(frozen=True)
class ContainerSpec:
    """Everything needed to create a node container.

    Each port in ``ports`` is exposed and published to the same host port.
    """

    name: str
    image: str
    command: list[str]
    ports: tuple[int, ...] = ()
    auto_remove: bool = True
    labels: dict[str, str] = field(default_factory=dict)

    def to_create_kwargs(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "command": list(self.command),
            "auto_remove": self.auto_remove,
            "ports": {f"{port}/tcp": port for port in self.ports},
            "labels": dict(self.labels),
            "stdin_open": False,
            "tty": False,
        }


def _describe(error: BaseException) -> str:
    explanation = getattr(error, "explanation", None)
    return str(explanation or error)


class RuntimeGateway:
    """Async facade over a docker client."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """Initialize with an optional Docker client.

        Args:
            client: Optional Docker client. If not provided, one is built from
                the resolved engine endpoint.

        Raises:
            EngineCallError: If the client cannot be constructed.
        """
        if client is not None:
            self.client = client
        else:
            endpoint = docker_endpoint()
            try:
                self.client = docker.DockerClient(
                    base_url=endpoint, version=DOCKER_API_VERSION
                )
            except ENGINE_ERRORS as e:
                raise EngineCallError(
                    f"Failed to connect to Docker at {endpoint}: {_describe(e)}",
                    operation="connect",
                    cause=e,
                ) from e

    def _call(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except docker.errors.NotFound as e:
            raise EngineCallError(
                f"{operation} failed: {_describe(e)}",
                operation=operation,
                cause=e,
                not_found=True,
            ) from e
        except ENGINE_ERRORS as e:
            raise EngineCallError(
                f"{operation} failed: {_describe(e)}", operation=operation, cause=e
            ) from e

    async def _run(self, operation: str, func: Callable[..., Any], *args, **kwargs):
        return await asyncio.to_thread(self._call, operation, func, *args, **kwargs)

    async def list_containers(
        self,
        name_filter: Optional[str] = None,
        labels: Optional[dict[str, str]] = None,
    ) -> list[ContainerSummary]:
        """List containers in any state.

        Args:
            name_filter: Only containers whose name contains this string
            labels: Only containers carrying all of these labels
        """
        filters: dict[str, Any] = {}
        if name_filter:
            filters["name"] = name_filter
        if labels:
            filters["label"] = [f"{key}={value}" for key, value in labels.items()]
        entries = await self._run(
            "list", self.client.api.containers, all=True, filters=filters
        )
        return [ContainerSummary.from_api(entry) for entry in entries]

    async def ensure_image(self, image: str) -> None:
        """Pull ``image`` unless it is already available locally."""

        def ensure():
            try:
                self.client.images.get(image)
                return
            except docker.errors.ImageNotFound:
                pass
            logger.info("pulling image %s", image)
            self.client.images.pull(image)
            logger.info("pulled image %s", image)

        await self._run("pull", ensure)

    async def create(self, spec: ContainerSpec) -> ContainerHandle:
        container = await self._run(
            "create", self.client.containers.create, **spec.to_create_kwargs()
        )
        return ContainerHandle(id=container.id, name=spec.name)

    async def start(self, container_id: str) -> None:
        await self._run("start", self.client.api.start, container_id)

    async def stop(self, container_id: str) -> None:
        await self._run(
            "stop", self.client.api.stop, container_id, timeout=CONTAINER_STOP_TIMEOUT
        )

    async def delete(self, container_id: str) -> None:
        await self._run("delete", self.client.api.remove_container, container_id)

    async def inspect(self, container_id: str) -> ContainerState:
        attrs = await self._run(
            "inspect", self.client.api.inspect_container, container_id
        )
        return ContainerState.from_api(attrs)

    async def wait_removed(self, container_id: str) -> None:
        """Block until the engine has removed the container.

        A container that is already gone counts as removed.
        """
        try:
            await self._run(
                "wait",
                self.client.api.wait,
                container_id,
                timeout=CONTAINER_REMOVE_TIMEOUT,
                condition="removed",
            )
        except EngineCallError as e:
            if not e.not_found:
                raise

    def _open_log_stream(self, container_id: str):
        api = self.client.api
        response = api._get(
            api._url("/containers/{0}/logs", container_id),
            params={"stdout": 1, "stderr": 1, "follow": 1, "timestamps": 0, "tail": "all"},
            stream=True,
        )
        api._raise_for_status(response)
        # a followed stream may stay idle for longer than the client timeout
        api._disable_socket_timeout(api._get_raw_response_socket(response))
        return response

    def stream_logs(self, container_id: str) -> Iterator[tuple[StreamKind, bytes]]:
        """Yield ``(kind, chunk)`` frames from the container's output.

        Replays everything logged so far and follows the container until it
        exits or is removed. This generator blocks; run it off the event loop.
        """
        response = self._call("logs", self._open_log_stream, container_id)
        try:
            for stream_id, chunk in read_frames(response.raw):
                kind = _STREAM_KINDS.get(stream_id)
                if kind is None:
                    raise InvariantViolationError(
                        f"unexpected stream id {stream_id} in log stream",
                        details={"container": container_id},
                    )
                yield kind, chunk
        except LOG_STREAM_ERRORS as e:
            raise EngineCallError(
                f"logs failed: {_describe(e)}", operation="logs", cause=e
            ) from e
        finally:
            response.close()


def read_frames(raw) -> Iterator[tuple[int, bytes]]:
    """Split a multiplexed log stream into ``(stream_id, payload)`` frames.

    ``raw`` must be the buffered response body: output the engine sent along
    with the response headers is already sitting in its buffer.
    """
    while True:
        header = raw.read(STREAM_HEADER_SIZE_BYTES)
        if len(header) < STREAM_HEADER_SIZE_BYTES:
            return
        stream_id, length = struct.unpack(">BxxxL", header)
        if not length:
            continue
        payload = raw.read(length)
        if not payload:
            return
        yield stream_id, payload
