"""
Environment - a running blockchain node plus a connector attached to it.

Typical use in a test::

    env = await Environment.new("my-tests", config, MyClient.connect)
    try:
        wallet = env.ephemeral_wallet()
        ...
    finally:
        await env.shutdown()
"""

import asyncio
import logging
from typing import Generic, Optional, TypeVar

from chainbox.config import ChainConfig
from chainbox.connector import ConnectorFactory, ConnectorStarter
from chainbox.errors import EnvironmentClosedError
from chainbox.log import init_logging
from chainbox.managers.base import ContainerHandle, RuntimeGateway
from chainbox.managers.node import NodeLauncher
from chainbox.readiness import ReadinessProbe
from chainbox.retry import Sleep
from chainbox.wallet import Signer, Wallet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Environment(Generic[T]):
    """Owns a node container and the connector talking to it."""

    def __init__(
        self,
        client: T,
        container: ContainerHandle,
        config: ChainConfig,
        gateway: RuntimeGateway,
    ):
        self._client = client
        self._container = container
        self._config = config
        self._gateway = gateway
        self._closed = False

    @classmethod
    async def new(
        cls,
        prefix: str,
        config: ChainConfig,
        start_connector: ConnectorFactory,
        *,
        gateway: Optional[RuntimeGateway] = None,
        sleep: Optional[Sleep] = None,
    ) -> "Environment[T]":
        """Start a node for ``config`` and connect to it.

        Args:
            prefix: Namespace for the container name
            config: How to run the node; its port is replaced by a random one
            start_connector: Async factory building a connector from the config
            gateway: Optional engine gateway, created from the environment if omitted
            sleep: Awaitable sleep used by every wait and backoff

        Returns:
            A ready Environment. If anything fails, the node container is gone
            by the time the error reaches the caller.
        """
        init_logging()
        gateway = gateway or RuntimeGateway()
        sleep = sleep or asyncio.sleep

        launcher = NodeLauncher(prefix, gateway, sleep=sleep)
        node = await launcher.launch(config)

        try:
            await ReadinessProbe(gateway, sleep=sleep).wait(node.config, node.container)
            client = await ConnectorStarter(start_connector, sleep=sleep).start(
                node.config
            )
        except BaseException as e:
            logger.error("node failed to start: %r", e)
            await launcher.discard(node.container)
            raise

        return cls(client, node.container, node.config, gateway)

    @property
    def config(self) -> ChainConfig:
        """The config the node runs with, including its allocated port."""
        return self._config

    @property
    def container(self) -> ContainerHandle:
        return self._container

    @property
    def closed(self) -> bool:
        return self._closed

    def node(self) -> T:
        """The shared connector; every caller gets the same instance."""
        return self._client

    def ephemeral_wallet(self) -> Wallet[T]:
        """A wallet with a fresh key, bound to the shared connector."""
        if self._closed:
            raise EnvironmentClosedError(
                "environment has been shut down", container=self._container.name
            )
        return Wallet(self._client, Signer.generate())

    async def shutdown(self) -> None:
        """Stop the node container and wait until the engine has removed it.

        A failed stop leaves the environment open so shutdown can be retried.

        Raises:
            EnvironmentClosedError: If the environment was already shut down
            EngineCallError: If the engine refuses to stop the container
        """
        if self._closed:
            raise EnvironmentClosedError(
                "environment has already been shut down",
                container=self._container.name,
            )
        logger.info("stopping %s", self._container.name)
        await self._gateway.stop(self._container.id)
        self._closed = True
        await self._gateway.wait_removed(self._container.id)

    async def __aenter__(self) -> "Environment[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._closed:
            await self.shutdown()
