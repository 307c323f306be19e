"""
Infrastructure adapter: host metrics via psutil.

Implements SystemMetricsPort. Sampling never sleeps: CPU percentages
are measured against the previous call, so the adapter is safe to call
from the event loop on every stream tick.
"""

import os
import platform
import socket
import time
from typing import Any, Callable

import psutil

from dockhand.domain.system.ports import SystemMetricsPort


class PsutilMetricsAdapter(SystemMetricsPort):
    """Reads host metrics from psutil."""

    def __init__(self) -> None:
        self._readers: dict[str, Callable[[], dict[str, Any]]] = {
            "cpu": self._cpu,
            "memory": self._memory,
            "swap": self._swap,
            "disk": self._disk,
            "network": self._network,
            "load": self._load,
        }
        # Prime the counter so the first real sample is meaningful.
        psutil.cpu_percent(interval=None)

    def get_system_info(self) -> dict[str, Any]:
        mem = psutil.virtual_memory()
        logical = psutil.cpu_count(logical=True) or 0
        physical = psutil.cpu_count(logical=False) or logical
        return {
            "hostname": socket.gethostname(),
            "platform": platform.platform(),
            "python": platform.python_version(),
            "uptime_seconds": int(time.time() - psutil.boot_time()),
            "cpu": {"logical": logical, "physical": physical},
            "memory": {"total": mem.total, "available": mem.available},
        }

    def get_metric(self, kind: str) -> dict[str, Any]:
        self.ensure_supported(kind)
        return self._readers[kind]()

    @staticmethod
    def _cpu() -> dict[str, Any]:
        return {
            "cpu_percent": psutil.cpu_percent(interval=None),
            "per_cpu": psutil.cpu_percent(interval=None, percpu=True),
        }

    @staticmethod
    def _memory() -> dict[str, Any]:
        vm = psutil.virtual_memory()
        return {
            "total": vm.total,
            "used": vm.used,
            "available": vm.available,
            "percent": vm.percent,
        }

    @staticmethod
    def _swap() -> dict[str, Any]:
        swap = psutil.swap_memory()
        return {
            "total": swap.total,
            "used": swap.used,
            "free": swap.free,
            "percent": swap.percent,
        }

    @staticmethod
    def _disk() -> dict[str, Any]:
        root = psutil.disk_usage("/")
        return {
            "total": root.total,
            "used": root.used,
            "free": root.free,
            "percent": root.percent,
        }

    @staticmethod
    def _network() -> dict[str, Any]:
        net = psutil.net_io_counters()
        if net is None:
            # No network interfaces
            return dict.fromkeys(
                ("bytes_sent", "bytes_recv", "packets_sent", "packets_recv")
            )
        return {
            "bytes_sent": net.bytes_sent,
            "bytes_recv": net.bytes_recv,
            "packets_sent": net.packets_sent,
            "packets_recv": net.packets_recv,
        }

    @staticmethod
    def _load() -> dict[str, Any]:
        if not hasattr(os, "getloadavg"):
            return {"loadavg": None}
        la1, la5, la15 = os.getloadavg()
        return {"loadavg": {"1m": la1, "5m": la5, "15m": la15}}
