"""Local network guesses used by the ``gateway`` and ``internet`` modes."""
from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Callable

import psutil

from ..config import INTERNET_PROBE_HOST, INTERNET_PROBE_TIMEOUT
from .icmp import ping_host

logger = logging.getLogger(__name__)


def guess_gateway_ip() -> str | None:
    """Return a likely default gateway address, or ``None``.

    This is a heuristic, not a routing table lookup: it takes the first
    non-loopback IPv4 interface address and assumes the gateway sits at
    ``.1`` of that address.
    """

    try:
        interfaces = psutil.net_if_addrs()
    except Exception:
        logger.debug("unable to list network interfaces", exc_info=True)
        return None

    for name, addrs in interfaces.items():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            try:
                ip = ipaddress.IPv4Address(addr.address)
            except ipaddress.AddressValueError:
                continue
            if ip.is_loopback:
                continue
            guess = str(ipaddress.IPv4Address((int(ip) & 0xFFFFFF00) | 1))
            logger.debug("guessing gateway %s from interface %s (%s)", guess, name, ip)
            return guess
    return None


def check_internet_connectivity(
    host: str = INTERNET_PROBE_HOST,
    timeout: float = INTERNET_PROBE_TIMEOUT,
    *,
    liveness: Callable[..., bool] = ping_host,
) -> bool:
    """Return ``True`` if the public *host* answers an ICMP echo."""
    return bool(liveness(host, timeout))


__all__ = ["check_internet_connectivity", "guess_gateway_ip"]
