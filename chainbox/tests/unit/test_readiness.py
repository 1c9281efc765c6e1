import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, call, patch

import aiohttp
import pytest

from chainbox.config import NodeUri
from chainbox.errors import (
    ContainerExitedError,
    ReadinessTimeoutError,
    UnhealthyContainerError,
    UnknownHealthStatusError,
)
from chainbox.managers.base import ContainerHandle
from chainbox.readiness import ReadinessProbe, probe_url, uses_http


def _container(gateway):
    container_id = gateway.add_container("suite-node-bitcoin-regtest")
    return ContainerHandle(id=container_id, name="suite-node-bitcoin-regtest")


def refused():
    return aiohttp.ClientConnectionError("connection refused")


def test_probe_url_uses_loopback_http(http_config):
    config = replace(http_config, node_uri=NodeUri("wss", "node.internal", 9944))
    assert probe_url(config) == "http://127.0.0.1:9944"
    assert uses_http(config)


def test_tcp_is_not_http(tcp_config):
    assert not uses_http(tcp_config)


def test_ready_on_third_attempt(fake_gateway, http_config, sleep):
    container = _container(fake_gateway)
    probe = ReadinessProbe(fake_gateway, sleep=sleep)

    with patch.object(
        ReadinessProbe, "_get", new=AsyncMock(side_effect=[refused(), refused(), 200])
    ) as get:
        asyncio.run(probe.wait(http_config, container))

    assert get.await_count == 3
    get.assert_awaited_with("http://127.0.0.1:18443")
    assert sleep.await_args_list == [call(0.2), call(0.4)]


def test_any_status_counts_as_ready(fake_gateway, http_config, sleep):
    container = _container(fake_gateway)
    probe = ReadinessProbe(fake_gateway, sleep=sleep)

    with patch.object(ReadinessProbe, "_get", new=AsyncMock(return_value=503)):
        asyncio.run(probe.wait(http_config, container))

    sleep.assert_not_awaited()


def test_unhealthy_container_aborts_before_ceiling(make_gateway, http_config, sleep):
    gateway = make_gateway(health=["healthy", "healthy", "unhealthy"])
    container = _container(gateway)
    probe = ReadinessProbe(gateway, sleep=sleep)

    with patch.object(ReadinessProbe, "_get", new=AsyncMock(side_effect=refused())) as get:
        with pytest.raises(ContainerExitedError) as excinfo:
            asyncio.run(probe.wait(http_config, container))

    assert get.await_count == 3
    assert sleep.await_count == 2
    assert excinfo.value.code == "CONTAINER_EXITED"


def test_health_check_failure_is_fatal(fake_gateway, http_config, sleep):
    # container already gone from the engine
    container = ContainerHandle(id="gone", name="suite-node-bitcoin-regtest")
    probe = ReadinessProbe(fake_gateway, sleep=sleep)

    with patch.object(ReadinessProbe, "_get", new=AsyncMock(side_effect=refused())) as get:
        with pytest.raises(ContainerExitedError):
            asyncio.run(probe.wait(http_config, container))

    assert get.await_count == 1
    sleep.assert_not_awaited()


def test_timeout_after_all_attempts(fake_gateway, http_config, sleep):
    container = _container(fake_gateway)
    probe = ReadinessProbe(fake_gateway, sleep=sleep)

    with patch.object(ReadinessProbe, "_get", new=AsyncMock(side_effect=refused())) as get:
        with pytest.raises(ReadinessTimeoutError) as excinfo:
            asyncio.run(probe.wait(http_config, container))

    assert get.await_count == 20
    assert sleep.await_count == 19
    assert max(c.args[0] for c in sleep.await_args_list) == 2.0
    assert excinfo.value.attempts == 20
    assert excinfo.value.url == "http://127.0.0.1:18443"


def test_request_timeout_is_transient(fake_gateway, http_config, sleep):
    container = _container(fake_gateway)
    probe = ReadinessProbe(fake_gateway, sleep=sleep)

    with patch.object(
        ReadinessProbe, "_get", new=AsyncMock(side_effect=[asyncio.TimeoutError(), 200])
    ):
        asyncio.run(probe.wait(http_config, container))

    assert sleep.await_args_list == [call(0.2)]


def test_non_http_waits_then_checks_once(fake_gateway, tcp_config, sleep):
    container = _container(fake_gateway)
    probe = ReadinessProbe(fake_gateway, sleep=sleep)

    asyncio.run(probe.wait(tcp_config, container))

    assert sleep.await_args_list == [call(15.0)]
    assert fake_gateway.inspect_count == 1


def test_non_http_unhealthy(make_gateway, tcp_config, sleep):
    gateway = make_gateway(health=["unhealthy"])
    container = _container(gateway)
    probe = ReadinessProbe(gateway, sleep=sleep)

    with pytest.raises(UnhealthyContainerError):
        asyncio.run(probe.wait(tcp_config, container))


def test_non_http_unknown_status(make_gateway, tcp_config, sleep):
    gateway = make_gateway(health=["degraded"])
    container = _container(gateway)
    probe = ReadinessProbe(gateway, sleep=sleep)

    with pytest.raises(UnknownHealthStatusError):
        asyncio.run(probe.wait(tcp_config, container))
