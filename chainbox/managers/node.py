"""
NodeLauncher - runs a blockchain node container for one ChainConfig.
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Optional

from chainbox.config import ChainConfig
from chainbox.constants import (
    HEALTH_POLL_INTERVAL,
    LABEL_BLOCKCHAIN,
    LABEL_NETWORK,
    LABEL_NODE,
    LABEL_PREFIX,
    LOG_FORWARDER_LOGGER,
    NODE_NAME_FORMAT,
)
from chainbox.errors import EngineCallError, InvariantViolationError, UnhealthyContainerError
from chainbox.health import HealthStatus, check_health
from chainbox.managers.base import ContainerHandle, ContainerSpec, RuntimeGateway, StreamKind
from chainbox.retry import Sleep

logger = logging.getLogger(__name__)
node_logger = logging.getLogger(LOG_FORWARDER_LOGGER)


@dataclass(frozen=True)
class LaunchedNode:
    """A started, health-checked node container and the config it runs with."""

    container: ContainerHandle
    config: ChainConfig


def random_port() -> int:
    """Pick a host port from two random bytes.

    Nothing checks that the port is free; parallel runs may collide.
    """
    return int.from_bytes(os.urandom(2), "little")


def forward_logs(gateway: RuntimeGateway, container: ContainerHandle) -> None:
    """Forward a container's output to the node logger until the stream ends."""
    for kind, chunk in gateway.stream_logs(container.id):
        if kind is StreamKind.STDIN:
            raise InvariantViolationError(
                f"{container.name}: received a stdin frame from an output-only log stream",
                details={"container": container.name},
            )
        text = chunk.decode("utf-8", errors="replace").rstrip("\n")
        node_logger.info("%s: %s: %s", container.name, kind.value, text)
    node_logger.info("%s: exited", container.name)


def _log_forwarder_main(gateway: RuntimeGateway, container: ContainerHandle) -> None:
    try:
        forward_logs(gateway, container)
    except InvariantViolationError as e:
        node_logger.critical("%s: log forwarding aborted: %s", container.name, e)
        raise
    except Exception as e:
        # output after this point is not forwarded
        node_logger.error(
            "%s (%s): log stream failed: %s", container.name, container.short_id, e
        )


class NodeLauncher:
    """Creates node containers and removes the ones left by previous runs."""

    def __init__(
        self,
        prefix: str,
        gateway: Optional[RuntimeGateway] = None,
        sleep: Optional[Sleep] = None,
    ):
        """Initialize the NodeLauncher.

        Args:
            prefix: Namespace for container names, usually the test suite name.
            gateway: Optional engine gateway. If not provided, one is created.
            sleep: Awaitable sleep used between health polls.
        """
        self.prefix = prefix
        self.gateway = gateway or RuntimeGateway()
        self._sleep = sleep or asyncio.sleep

    def node_name(self, config: ChainConfig) -> str:
        return NODE_NAME_FORMAT.format(
            prefix=self.prefix, blockchain=config.blockchain, network=config.network
        )

    async def remove_stale(self, name: str) -> bool:
        """Stop and delete a container left over from an earlier run.

        The engine prefixes recorded names (``/name``), so any name ending with
        ``name`` matches.

        Returns:
            True if a stale container was found.
        """
        for summary in await self.gateway.list_containers(name):
            if not any(recorded.endswith(name) for recorded in summary.names):
                continue
            logger.info("stopping %s", name)
            try:
                await self.gateway.stop(summary.id)
            except EngineCallError as e:
                if not e.not_found:
                    raise
            try:
                await self.gateway.delete(summary.id)
            except EngineCallError as e:
                logger.debug("could not delete stale %s: %s", name, e)
            await self.gateway.wait_removed(summary.id)
            return True
        return False

    def build_spec(self, config: ChainConfig, name: str) -> ContainerSpec:
        port = config.node_uri.port
        ports = [port]
        for extra in config.node_additional_ports:
            if extra not in ports:
                ports.append(extra)
        return ContainerSpec(
            name=name,
            image=config.node_image,
            command=list(config.node_command(config.network, port)),
            ports=tuple(ports),
            auto_remove=True,
            labels={
                LABEL_NODE: "true",
                LABEL_PREFIX: self.prefix,
                LABEL_BLOCKCHAIN: config.blockchain,
                LABEL_NETWORK: config.network,
            },
        )

    def spawn_log_forwarder(self, container: ContainerHandle) -> threading.Thread:
        """Start forwarding the container's output in the background.

        The forwarder ends by itself once the container is gone; it is never
        joined.
        """
        thread = threading.Thread(
            target=_log_forwarder_main,
            args=(self.gateway, container),
            name=f"logs-{container.name}",
            daemon=True,
        )
        thread.start()
        return thread

    async def wait_until_started(self, container: ContainerHandle) -> None:
        """Poll health while the engine reports ``starting``.

        Raises:
            UnhealthyContainerError: If the health check reports ``unhealthy``
        """
        while True:
            status = await check_health(self.gateway, container.id)
            if status is HealthStatus.UNHEALTHY:
                raise UnhealthyContainerError(
                    "healthcheck reports unhealthy", container=container.name
                )
            if status is not HealthStatus.STARTING:
                return
            await self._sleep(HEALTH_POLL_INTERVAL)

    async def launch(self, config: ChainConfig) -> LaunchedNode:
        """Run a node for ``config`` on a random port.

        Any failure after the container is created, cancellation included,
        removes it again before the error propagates.
        """
        port = random_port()
        config = config.with_port(port)
        logger.info("node: %s", port)

        name = self.node_name(config)
        await self.remove_stale(name)

        spec = self.build_spec(config, name)
        await self.gateway.ensure_image(spec.image)

        logger.info("creating %s", name)
        container = await self.gateway.create(spec)
        try:
            await self.gateway.start(container.id)
            logger.info("starting %s", name)
            self.spawn_log_forwarder(container)
            await self.wait_until_started(container)
        except BaseException:
            logger.error("node %s failed to start", name)
            await self.discard(container)
            raise

        return LaunchedNode(container=container, config=config)

    async def discard(self, container: ContainerHandle) -> None:
        """Best-effort stop, delete and wait for removal; failures are logged, never raised."""
        try:
            await self.gateway.stop(container.id)
        except EngineCallError as e:
            if not e.not_found:
                logger.warning("could not stop %s: %s", container.name, e)
        try:
            await self.gateway.delete(container.id)
        except EngineCallError as e:
            # auto-remove usually gets there first
            logger.debug("could not delete %s: %s", container.name, e)
        try:
            await self.gateway.wait_removed(container.id)
        except EngineCallError as e:
            logger.warning("%s may still be present: %s", container.name, e)

    async def purge(self, prefix: Optional[str] = None) -> list[str]:
        """Stop and delete every chainbox node, optionally only one prefix's.

        Returns:
            Names of the containers that were removed.
        """
        labels = {LABEL_NODE: "true"}
        if prefix:
            labels[LABEL_PREFIX] = prefix

        removed = []
        for summary in await self.gateway.list_containers(labels=labels):
            name = summary.names[0].lstrip("/") if summary.names else summary.id
            await self.discard(ContainerHandle(id=summary.id, name=name))
            removed.append(name)

        logger.info("purged %d node(s)", len(removed))
        return removed
