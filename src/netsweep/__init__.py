"""Public package interface for netsweep."""
from __future__ import annotations

__version__ = "0.3.0"

import sys
from importlib import import_module
from typing import Any

from .errors import EmptyRange, InvalidAddress, InvalidPortSpec, NetsweepError

# The scanning engine pulls in scapy, which is slow to import, so it is only
# loaded on first attribute access.
_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    name: ("netsweep.network", name)
    for name in (
        "AddressRange",
        "PortSet",
        "ScanCoordinator",
        "ScanOutcome",
        "ScanResult",
        "async_scan",
        "ping_host",
        "probe_port",
        "scan_range",
    )
}


def __getattr__(name: str) -> Any:
    try:
        module_name, attr = _LAZY_ATTRS[name]
    except KeyError as exc:
        raise AttributeError(name) from exc
    value = getattr(import_module(module_name), attr)
    setattr(sys.modules[__name__], name, value)
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(_LAZY_ATTRS))


__all__ = [
    "EmptyRange",
    "InvalidAddress",
    "InvalidPortSpec",
    "NetsweepError",
    "__version__",
    *sorted(_LAZY_ATTRS),
]
