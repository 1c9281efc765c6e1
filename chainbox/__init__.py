"""
chainbox - disposable blockchain nodes in Docker containers for integration tests.
"""

__version__ = "0.1.0"

from chainbox.config import ChainConfig, NodeUri
from chainbox.environment import Environment
from chainbox.errors import (
    ChainboxError,
    ConfigurationError,
    ConnectorStartError,
    ContainerExitedError,
    EngineCallError,
    EnvironmentClosedError,
    InvariantViolationError,
    ReadinessTimeoutError,
    UnhealthyContainerError,
    UnknownHealthStatusError,
)
from chainbox.health import HealthStatus
from chainbox.log import init_logging
from chainbox.retry import BackoffPolicy, BackoffStrategy
from chainbox.wallet import Signer, Wallet

__all__ = [
    "__version__",
    "Environment",
    "ChainConfig",
    "NodeUri",
    "HealthStatus",
    "BackoffPolicy",
    "BackoffStrategy",
    "Signer",
    "Wallet",
    "init_logging",
    # Error classes
    "ChainboxError",
    "ConfigurationError",
    "ConnectorStartError",
    "ContainerExitedError",
    "EngineCallError",
    "EnvironmentClosedError",
    "InvariantViolationError",
    "ReadinessTimeoutError",
    "UnhealthyContainerError",
    "UnknownHealthStatusError",
]
