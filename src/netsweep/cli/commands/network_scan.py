"""Command line interface for sweeping an address range."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor

from rich.console import Console
from rich.progress import Progress

from netsweep.config import (
    DEFAULT_END,
    DEFAULT_PORTS,
    DEFAULT_START,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
    INTERNET_PROBE_HOST,
    ScanSettings,
)
from netsweep.errors import NetsweepError
from netsweep.logging_config import setup_logging
from netsweep.network import (
    AddressRange,
    PortSet,
    ScanCoordinator,
    ScanOutcome,
    check_internet_connectivity,
    guess_gateway_ip,
)

logger = logging.getLogger(__name__)

MODES = ("range", "specific", "gateway", "internet")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netsweep",
        description="Find live hosts in an IPv4 range and list their open TCP ports",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="range",
        help="Scan mode: range, specific, gateway or internet",
    )
    parser.add_argument("--start", default=DEFAULT_START, help="Start IP address for range scan")
    parser.add_argument("--end", default=DEFAULT_END, help="End IP address for range scan")
    parser.add_argument("--ip", default="", help="Address to scan in specific mode")
    parser.add_argument(
        "--ports",
        default=DEFAULT_PORTS,
        help="Port range to scan (e.g. 80 or 1-1024)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Timeout for each probe in seconds",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help="Maximum port probes in flight; 0 starts one thread per probe",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the scan outcome as JSON instead of a summary",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log host status (-v) and probe failure causes (-vv)",
    )
    parser.add_argument(
        "--log-file", help="Also write logs, including probe failure causes, to this file"
    )
    return parser


def _log_level(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def resolve_settings(args: argparse.Namespace, console: Console) -> ScanSettings | None:
    """Map the selected mode onto a start/end pair, or ``None`` on failure."""

    start, end = args.start, args.end
    if args.mode == "gateway":
        gateway = guess_gateway_ip()
        if gateway is None:
            console.print("Could not determine gateway IP")
            return None
        start = end = gateway
    elif args.mode == "specific":
        if not args.ip:
            console.print("Please provide a specific IP address using --ip")
            return None
        start = end = args.ip
    return ScanSettings(
        start=start,
        end=end,
        ports=args.ports,
        timeout=args.timeout,
        workers=args.workers,
    )


def run_scan(
    addresses: AddressRange,
    ports: PortSet,
    settings: ScanSettings,
    *,
    show_progress: bool = True,
) -> ScanOutcome:
    """Run the sweep on a worker thread so Ctrl+C can cancel it cleanly."""

    cancel = threading.Event()
    with Progress(disable=not show_progress, transient=True) as progress:
        task = progress.add_task(f"sweep {addresses}", total=1.0)

        def update(value: float | None) -> None:
            progress.update(task, completed=1.0 if value is None else value)

        coordinator = ScanCoordinator(
            addresses,
            ports,
            timeout=settings.timeout,
            concurrency=settings.concurrency,
            progress=update,
            cancel_event=cancel,
        )
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="netsweep-scan") as pool:
            future = pool.submit(coordinator.run)
            try:
                return future.result()
            except KeyboardInterrupt:
                logger.warning("Interrupted, waiting for probes in flight to finish")
                cancel.set()
                return future.result()


def print_summary(console: Console, outcome: ScanOutcome) -> None:
    console.print("\nScan Summary:")
    if outcome.cancelled:
        console.print("Scan was cancelled; results are partial")
    console.print(f"Total active hosts found: {outcome.alive_count}")
    for host in outcome.alive_hosts:
        ports = outcome.ports_for(host)
        if ports:
            console.print(
                f"Host {host} has {len(ports)} open ports: {sorted(ports)}",
                markup=False,
                soft_wrap=True,
            )
        else:
            console.print(f"Host {host} is up but has no open ports in the specified range")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(_log_level(args.verbose), args.log_file)
    console = Console(highlight=False)

    if args.mode == "internet":
        if check_internet_connectivity():
            console.print(
                f"Internet is accessible ({INTERNET_PROBE_HOST} responds to ping)"
            )
        else:
            console.print("No internet connectivity detected")
        return 0

    settings = resolve_settings(args, console)
    if settings is None:
        return 1

    try:
        addresses = AddressRange.from_strings(settings.start, settings.end)
        ports = PortSet.parse(settings.ports)
    except NetsweepError as exc:
        console.print(f"Error preparing scan: {exc}", markup=False)
        return 1

    outcome = run_scan(addresses, ports, settings, show_progress=not args.json)

    if args.json:
        json.dump(outcome.to_dict(), sys.stdout, indent=2)
        print()
        return 0

    print_summary(console, outcome)
    if outcome.alive_count == 0:
        logger.warning(
            "No host answered ICMP echo; raw sockets usually need root or "
            "administrator privileges"
        )
    return 0


__all__ = ["build_parser", "main", "print_summary", "resolve_settings", "run_scan"]
