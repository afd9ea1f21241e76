"""ICMP echo liveness probe.

Each call opens its own raw socket, which needs elevated privileges on most
platforms. Without them every probe answers ``False``, so callers must read
``False`` as "down or unknown" rather than proof of unreachability.
"""
from __future__ import annotations

import itertools
import logging
import os
import socket
import time

from scapy.layers.inet import ICMP, IP
from scapy.packet import Raw

from ..config import DEFAULT_TIMEOUT
from .models import DiagnosticsCallback, report_failure

logger = logging.getLogger(__name__)

ECHO_REQUEST = 8
ECHO_REPLY = 0
_REPLY_BUFFER = 1500
_PAYLOAD = b"netsweep"

_sequence = itertools.count(1)


def _echo_identifier() -> int:
    return os.getpid() & 0xFFFF


def build_echo_request(ident: int, seq: int, payload: bytes = _PAYLOAD) -> bytes:
    """Return the wire bytes of an echo request, checksum included."""
    packet = ICMP(type=ECHO_REQUEST, code=0, id=ident, seq=seq & 0xFFFF) / Raw(load=payload)
    return bytes(packet)


def is_echo_reply(data: bytes, host: str, ident: int) -> bool:
    """Return ``True`` if raw IP datagram *data* answers our echo to *host*."""

    try:
        packet = IP(data)
        if packet.src != host or not packet.haslayer(ICMP):
            return False
        icmp = packet[ICMP]
        return icmp.type == ECHO_REPLY and icmp.id == ident
    except Exception:
        logger.debug("undecodable ICMP datagram from raw socket", exc_info=True)
        return False


def _resolve_ipv4(host: str) -> str:
    """Return the IPv4 address replies from *host* will carry as source."""
    infos = socket.getaddrinfo(host, None, socket.AF_INET)
    return infos[0][4][0]


def _open_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)


def ping_host(
    host: str,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    diagnostics: DiagnosticsCallback | None = None,
) -> bool:
    """Return ``True`` if *host* answers an ICMP echo within *timeout* seconds.

    The deadline starts once the request has been sent. Datagrams that are
    not our echo reply are skipped until it expires. Every failure, including
    a missing raw socket privilege, is reported to *diagnostics* and yields
    ``False``. Hostnames are resolved to IPv4 first.
    """

    try:
        address = _resolve_ipv4(host)
    except (socket.gaierror, IndexError) as exc:
        report_failure(diagnostics, host, None, f"cannot resolve host: {exc}")
        return False

    try:
        sock = _open_socket()
    except OSError as exc:
        report_failure(diagnostics, host, None, f"cannot open raw ICMP socket: {exc}")
        return False

    ident = _echo_identifier()
    with sock:
        try:
            sock.sendto(build_echo_request(ident, next(_sequence)), (address, 0))
            deadline = time.monotonic() + timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise socket.timeout("no echo reply")
                sock.settimeout(remaining)
                data, _addr = sock.recvfrom(_REPLY_BUFFER)
                if is_echo_reply(data, address, ident):
                    return True
        except OSError as exc:
            report_failure(diagnostics, host, None, str(exc) or type(exc).__name__)
            return False


__all__ = ["build_echo_request", "is_echo_reply", "ping_host"]
