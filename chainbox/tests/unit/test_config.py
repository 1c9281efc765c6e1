import pytest

from chainbox.config import ChainConfig, NodeUri, docker_endpoint, log_level
from chainbox.constants import DEFAULT_DOCKER_SOCKET
from chainbox.errors import ConfigurationError


def test_node_uri_renders_and_rewrites():
    uri = NodeUri("wss", "node.example", 9944)
    assert str(uri) == "wss://node.example:9944"
    probe = uri.with_scheme("http").with_host("127.0.0.1")
    assert str(probe) == "http://127.0.0.1:9944"
    # the receiver is left unchanged
    assert uri.scheme == "wss"


def test_node_uri_parse():
    uri = NodeUri.parse("ws://localhost:8546/rpc")
    assert uri == NodeUri("ws", "localhost", 8546, "/rpc")


@pytest.mark.parametrize("text", ["localhost:80", "http://localhost", "http://:80"])
def test_node_uri_parse_rejects_incomplete(text):
    with pytest.raises(ConfigurationError):
        NodeUri.parse(text)


def test_node_uri_rejects_out_of_range_port():
    with pytest.raises(ConfigurationError):
        NodeUri("http", "localhost", 70000)


def test_chain_config_with_port_returns_copy(http_config):
    moved = http_config.with_port(12345)
    assert moved.node_uri.port == 12345
    assert http_config.node_uri.port == 18443
    assert moved.node_image == http_config.node_image


def test_chain_config_normalizes_additional_ports():
    config = ChainConfig(
        blockchain="ethereum",
        network="dev",
        node_image="ethereum/client-go:v1.12.2",
        node_command=lambda network, port: ["geth", f"--http.port={port}"],
        node_uri=NodeUri("http", "localhost", 8545),
        node_additional_ports=[30303],
    )
    assert config.node_additional_ports == (30303,)


def test_docker_endpoint_priority(monkeypatch):
    monkeypatch.delenv("CHAINBOX_DOCKER_HOST", raising=False)
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    monkeypatch.setattr("chainbox.config.sys.platform", "linux")
    assert docker_endpoint() == DEFAULT_DOCKER_SOCKET

    monkeypatch.setenv("DOCKER_HOST", "tcp://docker:2375")
    assert docker_endpoint() == "tcp://docker:2375"

    monkeypatch.setenv("CHAINBOX_DOCKER_HOST", "unix:///tmp/docker.sock")
    assert docker_endpoint() == "unix:///tmp/docker.sock"


def test_log_level(monkeypatch):
    monkeypatch.delenv("CHAINBOX_LOG_LEVEL", raising=False)
    assert log_level() == "INFO"
    monkeypatch.setenv("CHAINBOX_LOG_LEVEL", "debug")
    assert log_level() == "DEBUG"
    assert log_level("warning") == "WARNING"
