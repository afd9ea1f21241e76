"""Fan-in of port probe results into a :class:`ScanOutcome`."""
from __future__ import annotations

from typing import Iterable

from .models import ScanOutcome, ScanResult


class ResultAggregator:
    """Build a :class:`ScanOutcome` from a stream of :class:`ScanResult`.

    Every alive host gets an entry, so a live host without listeners shows
    up with an empty port list. Ports are kept in arrival order, which for
    concurrent probes is not the order they were dispatched in.
    """

    def __init__(self, alive_hosts: Iterable[str] = ()) -> None:
        self._outcome = ScanOutcome()
        for host in alive_hosts:
            self.mark_alive(host)

    def mark_alive(self, host: str) -> None:
        if host in self._outcome.open_ports:
            return
        self._outcome.alive_hosts.append(host)
        self._outcome.open_ports[host] = []
        self._outcome.probed[host] = 0

    def add(self, result: ScanResult) -> None:
        # Results for a host nobody marked alive still count, so a producer
        # bug shows up in the outcome instead of vanishing.
        self.mark_alive(result.host)
        self._outcome.probed[result.host] += 1
        if result.open:
            self._outcome.open_ports[result.host].append(result.port)

    def consume(self, results: Iterable[ScanResult]) -> ScanOutcome:
        """Drain *results* until exhausted and return the finished outcome."""

        for result in results:
            self.add(result)
        return self._outcome


__all__ = ["ResultAggregator"]
