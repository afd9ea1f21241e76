"""TCP connect probes."""
from __future__ import annotations

import asyncio
import errno
import os
import socket

from ..config import DEFAULT_TIMEOUT
from .models import DiagnosticsCallback, ScanResult, report_failure

_TIMEOUT_ERRNOS = frozenset({errno.EAGAIN, errno.EWOULDBLOCK, errno.ETIMEDOUT})


def probe_port(
    host: str,
    port: int,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    diagnostics: DiagnosticsCallback | None = None,
) -> ScanResult:
    """Try a TCP connection to ``host:port`` and report whether it opened.

    The socket is closed right after the handshake; nothing is sent. Errors
    never propagate, they produce ``open=False``.
    """

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            code = sock.connect_ex((host, port))
    except OSError as exc:
        report_failure(diagnostics, host, port, str(exc) or type(exc).__name__)
        return ScanResult(host, port, False)

    if code != 0:
        # connect_ex reports a socket timeout as EAGAIN/EWOULDBLOCK
        reason = "timed out" if code in _TIMEOUT_ERRNOS else os.strerror(code)
        report_failure(diagnostics, host, port, reason)
        return ScanResult(host, port, False)
    return ScanResult(host, port, True)


async def async_probe_port(
    host: str,
    port: int,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    diagnostics: DiagnosticsCallback | None = None,
) -> ScanResult:
    """Asynchronous variant of :func:`probe_port`."""

    try:
        conn = asyncio.open_connection(host, port, family=socket.AF_INET)
        _reader, writer = await asyncio.wait_for(conn, timeout=timeout)
    except asyncio.TimeoutError:
        report_failure(diagnostics, host, port, "timed out")
        return ScanResult(host, port, False)
    except OSError as exc:
        report_failure(diagnostics, host, port, str(exc) or type(exc).__name__)
        return ScanResult(host, port, False)

    writer.close()
    try:
        await writer.wait_closed()
    except OSError as exc:
        report_failure(diagnostics, host, port, f"close failed after connect: {exc}")
    return ScanResult(host, port, True)


__all__ = ["async_probe_port", "probe_port"]
