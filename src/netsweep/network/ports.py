"""Port specifications of the form ``N`` or ``N-M``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ..errors import InvalidPortSpec

MIN_PORT = 1
MAX_PORT = 65535


def _port_number(spec: str, token: str) -> int:
    token = token.strip()
    if not (token.isascii() and token.isdigit()):
        raise InvalidPortSpec(spec, f"{token!r} is not a number")
    port = int(token)
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPortSpec(spec, f"{port} is outside {MIN_PORT}-{MAX_PORT}")
    return port


@dataclass(frozen=True)
class PortSet:
    """Inclusive, ascending run of ports from ``low`` to ``high``."""

    low: int
    high: int

    @classmethod
    def parse(cls, spec: str) -> "PortSet":
        """Parse ``"N"`` or ``"N-M"``; a single port is ``N-N``."""

        tokens = spec.strip().split("-")
        if len(tokens) > 2:
            raise InvalidPortSpec(spec, "expected N or N-M")
        low = _port_number(spec, tokens[0])
        high = _port_number(spec, tokens[1]) if len(tokens) == 2 else low
        if low > high:
            raise InvalidPortSpec(spec, f"{low} is greater than {high}")
        return cls(low, high)

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.low, self.high + 1))

    def __len__(self) -> int:
        return self.high - self.low + 1

    def __contains__(self, port: object) -> bool:
        return isinstance(port, int) and self.low <= port <= self.high

    def __str__(self) -> str:
        return str(self.low) if self.low == self.high else f"{self.low}-{self.high}"


def parse_ports(spec: str) -> list[int]:
    """Return the ports described by *spec* as a list."""
    return list(PortSet.parse(spec))


__all__ = ["MAX_PORT", "MIN_PORT", "PortSet", "parse_ports"]
