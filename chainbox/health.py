"""
Container health status as reported by the engine's own health check.
"""

import enum
from typing import Optional

from chainbox.errors import UnknownHealthStatusError


class HealthStatus(str, enum.Enum):
    """Docker's ``State.Health.Status`` values.

    NONE means the image defines no health check.
    """

    NONE = "none"
    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def parse(cls, status: str) -> "HealthStatus":
        """Map an engine status string, refusing anything unrecognized."""
        try:
            return cls(status)
        except ValueError:
            raise UnknownHealthStatusError(status) from None


async def check_health(gateway, container_id: str) -> Optional[HealthStatus]:
    """Inspect a container and return its health status.

    Returns:
        The parsed status, or None when the engine reports no health field.

    Raises:
        EngineCallError: If the inspect call fails (e.g. container removed)
        UnknownHealthStatusError: If the status string is not recognized
    """
    state = await gateway.inspect(container_id)
    if state.health is None:
        return None
    return HealthStatus.parse(state.health)
