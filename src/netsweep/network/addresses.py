"""IPv4 address ranges.

Addresses are handled as 32-bit integers so stepping past ``x.y.z.255``
carries into the next octet and ordering is plain numeric comparison.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Iterator

from ..errors import EmptyRange, InvalidAddress


def parse_ipv4(value: str) -> int:
    """Return the integer form of dotted-quad *value*."""

    try:
        return int(ipaddress.IPv4Address(value.strip()))
    except (ipaddress.AddressValueError, AttributeError) as exc:
        raise InvalidAddress(str(value)) from exc


def format_ipv4(value: int) -> str:
    """Return the dotted-quad form of integer *value*."""
    return str(ipaddress.IPv4Address(value))


@dataclass(frozen=True)
class AddressRange:
    """Inclusive range of IPv4 addresses from ``start`` to ``end``.

    Iteration is lazy and can be repeated; each pass yields every address
    once in ascending order.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise EmptyRange(format_ipv4(self.start), format_ipv4(self.end))

    @classmethod
    def from_strings(cls, start: str, end: str) -> "AddressRange":
        return cls(parse_ipv4(start), parse_ipv4(end))

    @classmethod
    def single(cls, address: str) -> "AddressRange":
        value = parse_ipv4(address)
        return cls(value, value)

    def __iter__(self) -> Iterator[str]:
        for value in range(self.start, self.end + 1):
            yield format_ipv4(value)

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        try:
            value = parse_ipv4(address)
        except InvalidAddress:
            return False
        return self.start <= value <= self.end

    def __str__(self) -> str:
        return f"{format_ipv4(self.start)}-{format_ipv4(self.end)}"


def generate_ips(start: str, end: str) -> list[str]:
    """Return every address from *start* to *end* inclusive."""
    return list(AddressRange.from_strings(start, end))


__all__ = ["AddressRange", "format_ipv4", "generate_ips", "parse_ipv4"]
