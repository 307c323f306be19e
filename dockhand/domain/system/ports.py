"""
Port interfaces (ABCs) for the system bounded context.

Ports define the contracts the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
"""

from abc import ABC, abstractmethod
from typing import Any

from dockhand.shared.errors.taxonomy import NotFoundError

METRIC_KINDS = ("cpu", "memory", "swap", "disk", "network", "load")


class SystemMetricsPort(ABC):
    """Port for reading host information and resource metrics."""

    @abstractmethod
    def get_system_info(self) -> dict[str, Any]:
        """Return static host facts: hostname, platform, uptime, sizes."""
        raise NotImplementedError

    @abstractmethod
    def get_metric(self, kind: str) -> dict[str, Any]:
        """Return one sample of the metric ``kind``.

        Raises:
            NotFoundError: If ``kind`` is not one of ``METRIC_KINDS``.
        """
        raise NotImplementedError

    def ensure_supported(self, kind: str) -> None:
        """Raise NotFoundError unless ``kind`` can be sampled."""
        if kind not in METRIC_KINDS:
            raise NotFoundError(f"Unknown metric kind: {kind}")
