"""
Managers module - container engine access and node container lifecycle.

- RuntimeGateway: async facade over the Docker engine
- NodeLauncher: node container creation, stale cleanup and log forwarding
"""

from chainbox.managers.base import (
    ContainerHandle,
    ContainerSpec,
    ContainerState,
    ContainerSummary,
    RuntimeGateway,
    StreamKind,
)
from chainbox.managers.node import LaunchedNode, NodeLauncher, forward_logs, random_port

__all__ = [
    "RuntimeGateway",
    "NodeLauncher",
    "LaunchedNode",
    "ContainerHandle",
    "ContainerSpec",
    "ContainerState",
    "ContainerSummary",
    "StreamKind",
    "forward_logs",
    "random_port",
]
