"""Records passed between probes, the coordinator and the aggregator."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one TCP probe against ``host:port``."""

    host: str
    port: int
    open: bool


@dataclass(frozen=True)
class ProbeFailure:
    """Why a probe answered negative.

    ``port`` is ``None`` for liveness probes.
    """

    host: str
    port: int | None
    reason: str


DiagnosticsCallback = Callable[[ProbeFailure], None]


def report_failure(
    diagnostics: DiagnosticsCallback | None,
    host: str,
    port: int | None,
    reason: str,
) -> None:
    """Log a probe failure and forward it to *diagnostics* when given."""

    target = host if port is None else f"{host}:{port}"
    logger.debug("probe of %s failed: %s", target, reason)
    if diagnostics is None:
        return
    try:
        diagnostics(ProbeFailure(host, port, reason))
    except Exception:
        logger.debug("diagnostics callback raised", exc_info=True)


@dataclass
class ScanOutcome:
    """Aggregated result of a scan run.

    ``alive_hosts`` keeps the order in which hosts were found alive, which is
    ascending address order. ``open_ports`` maps every alive host to its open
    ports in arrival order. ``probed`` counts the results consumed per host.
    """

    alive_hosts: List[str] = field(default_factory=list)
    open_ports: Dict[str, List[int]] = field(default_factory=dict)
    probed: Dict[str, int] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def alive_count(self) -> int:
        return len(self.alive_hosts)

    def ports_for(self, host: str) -> List[int]:
        """Return the open ports recorded for *host* (empty if none)."""
        return list(self.open_ports.get(host, ()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alive_count": self.alive_count,
            "cancelled": self.cancelled,
            "hosts": {
                host: {
                    "open_ports": self.ports_for(host),
                    "probed": self.probed.get(host, 0),
                }
                for host in self.alive_hosts
            },
        }


__all__ = [
    "DiagnosticsCallback",
    "ProbeFailure",
    "ScanOutcome",
    "ScanResult",
    "report_failure",
]
