"""Default scan settings.

Every default can be tuned through an environment variable so large sweeps
can be adjusted without code changes. Command line flags take precedence.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TIMEOUT = float(os.environ.get("NETSWEEP_TIMEOUT", 0.5))
# ``0`` disables the worker pool and gives every port probe its own thread.
DEFAULT_WORKERS = int(os.environ.get("NETSWEEP_WORKERS", 256))
DEFAULT_PORTS = os.environ.get("NETSWEEP_PORTS", "1-1024")
DEFAULT_START = os.environ.get("NETSWEEP_START", "192.168.1.1")
DEFAULT_END = os.environ.get("NETSWEEP_END", "192.168.1.255")

INTERNET_PROBE_HOST = os.environ.get("NETSWEEP_INTERNET_HOST", "8.8.8.8")
INTERNET_PROBE_TIMEOUT = float(os.environ.get("NETSWEEP_INTERNET_TIMEOUT", 2.0))

LOG_FILE_ENV = "NETSWEEP_LOG_FILE"


@dataclass(frozen=True)
class ScanSettings:
    """Inputs for a single range scan."""

    start: str = DEFAULT_START
    end: str = DEFAULT_END
    ports: str = DEFAULT_PORTS
    timeout: float = DEFAULT_TIMEOUT
    workers: int = DEFAULT_WORKERS

    @property
    def concurrency(self) -> int | None:
        """Worker pool size, or ``None`` for one thread per probe."""
        return self.workers if self.workers > 0 else None


__all__ = [
    "DEFAULT_END",
    "DEFAULT_PORTS",
    "DEFAULT_START",
    "DEFAULT_TIMEOUT",
    "DEFAULT_WORKERS",
    "INTERNET_PROBE_HOST",
    "INTERNET_PROBE_TIMEOUT",
    "LOG_FILE_ENV",
    "ScanSettings",
]
