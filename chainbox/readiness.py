"""
ReadinessProbe - decides when a freshly started node accepts traffic.

HTTP-family nodes are probed with GET requests on a backoff schedule; a failed
request triggers an immediate health check so a dead container aborts the
probe instead of burning the remaining attempts. Other nodes get a fixed grace
period followed by a single health check.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from chainbox.config import ChainConfig
from chainbox.constants import (
    HTTP_PROBE_REQUEST_TIMEOUT,
    HTTP_SCHEMES,
    NON_HTTP_SETTLE_TIME,
    PROBE_HOST,
    PROBE_SCHEME,
)
from chainbox.errors import (
    ContainerExitedError,
    ReadinessTimeoutError,
    UnhealthyContainerError,
)
from chainbox.health import HealthStatus, check_health
from chainbox.managers.base import ContainerHandle, RuntimeGateway
from chainbox.retry import (
    HTTP_PROBE_POLICY,
    BackoffPolicy,
    RetriesExhausted,
    Sleep,
    TransientProbeError,
    retry_async_call,
)

logger = logging.getLogger(__name__)


def probe_url(config: ChainConfig) -> str:
    """The plain-HTTP loopback URL used to probe a node.

    Any ws/wss endpoint also answers plain HTTP, which is all liveness needs.
    """
    return str(config.node_uri.with_scheme(PROBE_SCHEME).with_host(PROBE_HOST))


def uses_http(config: ChainConfig) -> bool:
    return config.node_uri.scheme.lower() in HTTP_SCHEMES


class ReadinessProbe:
    """Waits for a launched node to become ready."""

    def __init__(
        self,
        gateway: RuntimeGateway,
        policy: BackoffPolicy = HTTP_PROBE_POLICY,
        sleep: Optional[Sleep] = None,
        settle_time: float = NON_HTTP_SETTLE_TIME,
    ):
        self.gateway = gateway
        self.policy = policy
        self.settle_time = settle_time
        self._sleep = sleep or asyncio.sleep

    async def wait(self, config: ChainConfig, container: ContainerHandle) -> None:
        """Block until the node is ready.

        Raises:
            ContainerExitedError: The container died while being probed
            ReadinessTimeoutError: The probe ran out of attempts
            UnhealthyContainerError: A non-HTTP node reported unhealthy
            EngineCallError / UnknownHealthStatusError: The health check failed
        """
        if uses_http(config):
            await self.wait_for_http(probe_url(config), container)
        else:
            await self.wait_for_settle(container)

    async def wait_for_http(self, url: str, container: ContainerHandle) -> None:
        logger.info("waiting for %s at %s", container.name, url)
        try:
            await retry_async_call(
                self._probe_once,
                url,
                container,
                policy=self.policy,
                sleep=self._sleep,
            )
        except RetriesExhausted as e:
            raise ReadinessTimeoutError(
                f"{container.name} did not answer {url} after {e.attempts} attempts: "
                f"{e.last_error}",
                url=url,
                attempts=e.attempts,
            ) from e.last_error
        logger.info("%s is ready", container.name)

    async def _probe_once(self, url: str, container: ContainerHandle) -> None:
        try:
            await self._get(url)
            return
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as request_error:
            error = request_error

        try:
            status = await check_health(self.gateway, container.id)
        except Exception as health_error:
            raise ContainerExitedError(
                f"{container.name} exited: health check failed ({health_error}) "
                f"after request error: {error}",
                container=container.name,
            ) from error
        if status is HealthStatus.UNHEALTHY:
            raise ContainerExitedError(
                f"{container.name} exited: healthcheck reports unhealthy "
                f"after request error: {error}",
                container=container.name,
            ) from error

        logger.debug("%s not ready yet: %s", container.name, error)
        raise TransientProbeError(str(error)) from error

    async def _get(self, url: str) -> int:
        """Issue one GET; any HTTP response counts as the node being up."""
        timeout = aiohttp.ClientTimeout(total=HTTP_PROBE_REQUEST_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                return response.status

    async def wait_for_settle(self, container: ContainerHandle) -> None:
        """Give a non-HTTP node time to crash on bad arguments, then check it."""
        logger.info(
            "waiting %ss for %s to settle", self.settle_time, container.name
        )
        await self._sleep(self.settle_time)
        status = await check_health(self.gateway, container.id)
        if status is HealthStatus.UNHEALTHY:
            raise UnhealthyContainerError(
                "healthcheck reports unhealthy", container=container.name
            )
