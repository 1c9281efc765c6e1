"""
ConnectorStarter - brings up the caller's connector against a ready node.

A node can pass its health and HTTP checks yet still refuse RPC connections
while its internals warm up, so the connector has its own retry budget.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Callable, Generic, Optional, TypeVar

from chainbox.config import ChainConfig
from chainbox.errors import ConnectorStartError
from chainbox.retry import CONNECTOR_POLICY, BackoffPolicy, RetriesExhausted, Sleep, retry_async_call

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConnectorFactory = Callable[[ChainConfig], Awaitable[T]]


class ConnectorStarter(Generic[T]):
    """Calls a connector factory until it succeeds or the budget runs out."""

    def __init__(
        self,
        start_connector: ConnectorFactory,
        policy: BackoffPolicy = CONNECTOR_POLICY,
        sleep: Optional[Sleep] = None,
    ):
        self.start_connector = start_connector
        self.policy = policy
        self._sleep = sleep or asyncio.sleep

    async def _attempt(self, config: ChainConfig) -> T:
        try:
            return await self.start_connector(config)
        except Exception as e:
            logger.debug("connector for %s not up yet: %s", config.blockchain, e)
            raise

    async def start(self, config: ChainConfig) -> T:
        """Return a started connector.

        Raises:
            ConnectorStartError: Every attempt failed; ``last_error`` holds the
                final failure unchanged
        """
        try:
            return await retry_async_call(
                self._attempt, config, policy=self.policy, sleep=self._sleep
            )
        except RetriesExhausted as e:
            raise ConnectorStartError(
                f"failed to start connector for {config.blockchain}-{config.network} "
                f"after {e.attempts} attempts: {e.last_error}",
                last_error=e.last_error,
                attempts=e.attempts,
            ) from e.last_error
