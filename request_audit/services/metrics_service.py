"""
Host and process metrics embedded in every request log document.
Collection failures degrade to an {"error": ...} entry and never propagate,
so a broken metrics source cannot abort document construction.
"""

from typing import Any, Dict, Optional

import psutil

from request_audit.core.safety import recover


def _error_entry(exc: Exception) -> Dict[str, Any]:
    return {"error": str(exc) or type(exc).__name__}


class HostMetrics:
    """
    Point-in-time snapshot of host memory, load average and process memory.
    Stateless apart from the cached psutil.Process handle.
    """

    def __init__(self) -> None:
        self._process: Optional[psutil.Process] = None

    def capture(self) -> Dict[str, Any]:
        """
        Read total memory, available memory (bytes) and the 5-minute load average.

        Returns:
            {"totalmem", "freemem", "loadavg5min"} or {"error": message}.
        """
        return recover(
            self._read_os_metrics,
            _error_entry,
            event="Host metrics unavailable",
        )

    def process_memory(self) -> Dict[str, Any]:
        """Memory counters of the current process, or {"error": message}."""
        return recover(
            self._read_process_memory,
            _error_entry,
            event="Process memory unavailable",
        )

    @staticmethod
    def _read_os_metrics() -> Dict[str, Any]:
        mem = psutil.virtual_memory()
        # getloadavg() -> (1 min, 5 min, 15 min)
        load_avg = psutil.getloadavg()
        return {
            "totalmem": int(mem.total),
            "freemem": int(mem.available),
            "loadavg5min": float(load_avg[1]),
        }

    def _read_process_memory(self) -> Dict[str, Any]:
        if self._process is None:
            self._process = psutil.Process()
        return {key: int(value) for key, value in self._process.memory_info()._asdict().items()}
