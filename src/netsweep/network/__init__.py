"""Scanning engine: address ranges, port sets, probes and coordination."""
from __future__ import annotations

from .addresses import AddressRange, format_ipv4, generate_ips, parse_ipv4
from .aggregate import ResultAggregator
from .coordinator import (
    CompletionTracker,
    ResultChannel,
    ScanCoordinator,
    async_scan,
    scan_range,
)
from .gateway import check_internet_connectivity, guess_gateway_ip
from .icmp import ping_host
from .models import ProbeFailure, ScanOutcome, ScanResult
from .ports import PortSet, parse_ports
from .tcp import async_probe_port, probe_port

__all__ = [
    "AddressRange",
    "CompletionTracker",
    "PortSet",
    "ProbeFailure",
    "ResultAggregator",
    "ResultChannel",
    "ScanCoordinator",
    "ScanOutcome",
    "ScanResult",
    "async_probe_port",
    "async_scan",
    "check_internet_connectivity",
    "format_ipv4",
    "generate_ips",
    "guess_gateway_ip",
    "parse_ipv4",
    "parse_ports",
    "ping_host",
    "probe_port",
    "scan_range",
]
