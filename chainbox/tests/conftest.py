"""Pytest configuration for chainbox tests.

Provides an in-memory stand-in for the Docker engine so the launcher,
readiness probe and environment can be exercised without a daemon.
"""

import itertools
from unittest.mock import AsyncMock

import pytest

from chainbox.config import ChainConfig, NodeUri
from chainbox.errors import EngineCallError
from chainbox.managers.base import ContainerHandle, ContainerState, ContainerSummary


class FakeGateway:
    """Mimics RuntimeGateway on top of a dict of containers.

    ``health`` is the sequence of health strings returned by successive
    inspect calls; the last value repeats. Stopping an auto-remove container
    deletes it. With ``deferred_removal`` the deletion only completes on
    ``wait_removed``, as on a real engine where removal finishes after stop
    returns.
    """

    def __init__(self, health=("healthy",), log_frames=(), deferred_removal=False):
        self.deferred_removal = deferred_removal
        self.containers = {}
        self.health = list(health)
        self.log_frames = list(log_frames)
        self.calls = []
        self.inspect_count = 0
        self._ids = itertools.count(1)

    def add_container(self, name, running=True, auto_remove=False, labels=None):
        container_id = f"{next(self._ids):064x}"
        self.containers[container_id] = {
            "name": name,
            "running": running,
            "auto_remove": auto_remove,
            "labels": labels or {},
            "removing": False,
        }
        return container_id

    def names(self):
        return sorted(c["name"] for c in self.containers.values())

    def _get(self, operation, container_id):
        if container_id not in self.containers:
            raise EngineCallError(
                f"{operation} failed: no such container",
                operation=operation,
                not_found=True,
            )
        return self.containers[container_id]

    async def list_containers(self, name_filter=None, labels=None):
        self.calls.append(("list", name_filter))
        result = []
        for container_id, c in self.containers.items():
            if name_filter and name_filter not in c["name"]:
                continue
            if labels and any(c["labels"].get(k) != v for k, v in labels.items()):
                continue
            result.append(
                ContainerSummary(
                    id=container_id,
                    names=(f"/{c['name']}",),
                    state="running" if c["running"] else "exited",
                    labels=dict(c["labels"]),
                )
            )
        return result

    async def ensure_image(self, image):
        self.calls.append(("pull", image))

    async def create(self, spec):
        self.calls.append(("create", spec.name))
        if any(c["name"] == spec.name for c in self.containers.values()):
            raise EngineCallError(
                f"create failed: name {spec.name} is already in use",
                operation="create",
            )
        self.last_spec = spec
        container_id = self.add_container(
            spec.name, running=False, auto_remove=spec.auto_remove, labels=spec.labels
        )
        return ContainerHandle(id=container_id, name=spec.name)

    async def start(self, container_id):
        self.calls.append(("start", container_id))
        self._get("start", container_id)["running"] = True

    async def stop(self, container_id):
        self.calls.append(("stop", container_id))
        container = self._get("stop", container_id)
        container["running"] = False
        if container["auto_remove"]:
            if self.deferred_removal:
                container["removing"] = True
            else:
                del self.containers[container_id]

    async def delete(self, container_id):
        self.calls.append(("delete", container_id))
        if self._get("delete", container_id)["removing"]:
            raise EngineCallError(
                "delete failed: removal of container is already in progress",
                operation="delete",
            )
        del self.containers[container_id]

    async def wait_removed(self, container_id):
        self.calls.append(("wait", container_id))
        container = self.containers.get(container_id)
        if container is not None and container["removing"]:
            del self.containers[container_id]

    async def inspect(self, container_id):
        self._get("inspect", container_id)
        index = min(self.inspect_count, len(self.health) - 1)
        self.inspect_count += 1
        return ContainerState(status="running", health=self.health[index])

    def stream_logs(self, container_id):
        return iter(self.log_frames)


def node_command(network, port):
    return ["node", f"--chain={network}", f"--rpc-port={port}"]


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def http_config():
    return ChainConfig(
        blockchain="bitcoin",
        network="regtest",
        node_image="ruimarinho/bitcoin-core:23",
        node_command=node_command,
        node_uri=NodeUri("http", "localhost", 18443),
        node_additional_ports=(18444,),
    )


@pytest.fixture
def tcp_config():
    return ChainConfig(
        blockchain="polkadot",
        network="dev",
        node_image="parity/polkadot:v1.0.0",
        node_command=node_command,
        node_uri=NodeUri("tcp", "localhost", 9944),
    )


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def make_gateway():
    """Build a FakeGateway with custom health sequence or log frames."""
    return FakeGateway
