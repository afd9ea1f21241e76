"""Exceptions raised while preparing a scan.

Probe failures never surface here; they are folded into negative results.
"""
from __future__ import annotations


class NetsweepError(Exception):
    """Base class for scan input errors."""


class InvalidAddress(NetsweepError, ValueError):
    """An address does not parse as IPv4."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid IPv4 address: {value!r}")
        self.value = value


class EmptyRange(NetsweepError, ValueError):
    """The start address is numerically greater than the end address."""

    def __init__(self, start: str, end: str) -> None:
        super().__init__(f"Empty address range: {start} is after {end}")
        self.start = start
        self.end = end


class InvalidPortSpec(NetsweepError, ValueError):
    """A port specification is not ``N`` or ``N-M``."""

    def __init__(self, spec: str, reason: str) -> None:
        super().__init__(f"Invalid port specification {spec!r}: {reason}")
        self.spec = spec
        self.reason = reason


__all__ = ["EmptyRange", "InvalidAddress", "InvalidPortSpec", "NetsweepError"]
