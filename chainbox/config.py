"""
Chain configuration types and environment-driven settings.
"""

import os
import sys
from dataclasses import dataclass, field, replace
from typing import Callable, Optional
from urllib.parse import urlsplit

from chainbox.constants import (
    DEFAULT_DOCKER_SOCKET,
    DEFAULT_LOG_LEVEL,
    DEFAULT_WINDOWS_DOCKER_PIPE,
    ENV_DOCKER_HOST,
    ENV_DOCKER_HOST_FALLBACK,
    ENV_LOG_LEVEL,
)
from chainbox.errors import ConfigurationError

NodeCommand = Callable[[str, int], list[str]]


def _check_port(port: int) -> int:
    if not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise ConfigurationError(
            "Port must be between 0 and 65535", field="port", value=port
        )
    return port


@dataclass(frozen=True)
class NodeUri:
    """Where a node listens: scheme, host, port and an optional path."""

    scheme: str
    host: str
    port: int
    path: str = ""

    def __post_init__(self):
        _check_port(self.port)

    @classmethod
    def parse(cls, uri: str) -> "NodeUri":
        """Parse ``scheme://host:port/path``.

        Raises:
            ConfigurationError: If the scheme, host or port is missing or invalid.
        """
        try:
            parts = urlsplit(uri)
            port = parts.port
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid URL: {uri}", field="node_uri", value=uri
            ) from e
        if not parts.scheme or not parts.hostname or port is None:
            raise ConfigurationError(
                f"Invalid URL: {uri}", field="node_uri", value=uri
            )
        return cls(parts.scheme, parts.hostname, port, parts.path)

    def with_scheme(self, scheme: str) -> "NodeUri":
        return replace(self, scheme=scheme)

    def with_host(self, host: str) -> "NodeUri":
        return replace(self, host=host)

    def with_port(self, port: int) -> "NodeUri":
        return replace(self, port=port)

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.path}"


@dataclass(frozen=True)
class ChainConfig:
    """Describes how to run one blockchain node in a container.

    Attributes:
        blockchain: Chain identifier, e.g. ``bitcoin``
        network: Network identifier, e.g. ``regtest``
        node_image: Docker image reference for the node
        node_command: Builds the node's arguments from (network, port)
        node_uri: Endpoint the connector talks to; the port is injected at launch
        node_additional_ports: Extra ports published host-to-container 1:1
    """

    blockchain: str
    network: str
    node_image: str
    node_command: NodeCommand
    node_uri: NodeUri
    node_additional_ports: tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        ports = tuple(self.node_additional_ports)
        for port in ports:
            _check_port(port)
        object.__setattr__(self, "node_additional_ports", ports)

    def with_port(self, port: int) -> "ChainConfig":
        """Return a copy whose node URI listens on ``port``."""
        return replace(self, node_uri=self.node_uri.with_port(port))


def docker_endpoint() -> str:
    """Resolve the docker engine endpoint.

    Priority:
    1. CHAINBOX_DOCKER_HOST
    2. DOCKER_HOST
    3. The platform's default socket
    """
    endpoint = os.getenv(ENV_DOCKER_HOST) or os.getenv(ENV_DOCKER_HOST_FALLBACK)
    if endpoint:
        return endpoint
    if sys.platform == "win32":
        return DEFAULT_WINDOWS_DOCKER_PIPE
    return DEFAULT_DOCKER_SOCKET


def log_level(level: Optional[str] = None) -> str:
    """Resolve the log level name from the argument or CHAINBOX_LOG_LEVEL."""
    return (level or os.getenv(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()
