"""Sweep coordination: sequential liveness checks, concurrent port probes.

Hosts are pinged one at a time because a raw ICMP listener cannot reliably
tell apart replies for several outstanding echoes. Port probes for live
hosts are dispatched as soon as the host answers and run concurrently while
the sweep moves on. All probe results flow through one
:class:`ResultChannel` that is closed once a :class:`CompletionTracker`
sees every dispatched probe finish.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Iterator

from ..config import DEFAULT_TIMEOUT, DEFAULT_WORKERS
from .addresses import AddressRange
from .aggregate import ResultAggregator
from .icmp import ping_host
from .models import DiagnosticsCallback, ScanOutcome, ScanResult, report_failure
from .ports import PortSet
from .tcp import async_probe_port, probe_port

logger = logging.getLogger(__name__)

LivenessProbe = Callable[..., bool]
PortProbe = Callable[..., ScanResult]
AsyncPortProbe = Callable[..., Awaitable[ScanResult]]
ProgressCallback = Callable[[float | None], None]

_CLOSED = object()


def _cancelled(event: Any) -> bool:
    """Return ``True`` if the optional *event* is set."""

    try:
        return bool(event and event.is_set())
    except Exception:
        return False


def _pool_size(concurrency: int | None) -> int | None:
    if concurrency is None or concurrency <= 0:
        return None
    return concurrency


class CompletionTracker:
    """Count outstanding probe tasks and wake waiters when none remain."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = 0

    @property
    def pending(self) -> int:
        with self._cond:
            return self._pending

    def add(self, count: int = 1) -> None:
        with self._cond:
            self._pending += count

    def done(self) -> None:
        with self._cond:
            if self._pending <= 0:
                raise RuntimeError("done() called more often than add()")
            self._pending -= 1
            if self._pending == 0:
                self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until no task is outstanding; ``False`` if *timeout* expired."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout)


class ResultChannel:
    """Buffered multi-producer, single-consumer stream of scan results.

    The buffer holds ``capacity`` results so producers never block. Iterating
    yields results until :meth:`close` has been called and the buffer is
    drained.
    """

    def __init__(self, capacity: int) -> None:
        self.capacity = max(0, capacity)
        # One extra slot for the close marker.
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=self.capacity + 1)
        self._lock = threading.Lock()
        self._count = 0
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, result: ScanResult) -> None:
        """Buffer *result*; raises :class:`queue.Full` past ``capacity``."""
        with self._lock:
            if self._closed.is_set():
                raise RuntimeError("result channel is closed")
            if self._count >= self.capacity:
                raise queue.Full(f"result channel holds {self.capacity} results")
            self._count += 1
            self._queue.put_nowait(result)

    def close(self) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            # put() never takes the marker slot, so this cannot block or fail.
            self._queue.put_nowait(_CLOSED)
            self._closed.set()

    def __iter__(self) -> Iterator[ScanResult]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item


class ScanCoordinator:
    """Run a sweep over ``addresses`` × ``ports`` and aggregate the results.

    ``concurrency`` caps the number of port probes in flight by running them
    on a thread pool of that size. ``None`` or ``0`` starts one thread per
    probe with no admission limit. Either way each port of each live host is
    probed exactly once.

    ``liveness`` and ``probe`` default to :func:`ping_host` and
    :func:`probe_port` and are called with ``diagnostics=`` as a keyword.
    ``cancel_event`` is any object with ``is_set()``; once set no new probe
    starts and the returned outcome is flagged as cancelled.
    """

    def __init__(
        self,
        addresses: AddressRange,
        ports: PortSet,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        concurrency: int | None = DEFAULT_WORKERS,
        liveness: LivenessProbe = ping_host,
        probe: PortProbe = probe_port,
        progress: ProgressCallback | None = None,
        diagnostics: DiagnosticsCallback | None = None,
        cancel_event: Any | None = None,
    ) -> None:
        self.addresses = addresses
        self.ports = ports
        self.timeout = timeout
        self.concurrency = _pool_size(concurrency)
        self.liveness = liveness
        self.probe = probe
        self.progress = progress
        self.diagnostics = diagnostics
        self.cancel_event = cancel_event
        self.alive_hosts: list[str] = []

    def run(self) -> ScanOutcome:
        """Sweep the range and return the outcome once every probe finished."""

        self.alive_hosts = []
        channel = ResultChannel(len(self.addresses) * len(self.ports))
        tracker = CompletionTracker()
        executor = (
            ThreadPoolExecutor(
                max_workers=self.concurrency, thread_name_prefix="netsweep-probe"
            )
            if self.concurrency
            else None
        )

        try:
            self._dispatch(channel, tracker, executor)

            closer = threading.Thread(
                target=self._close_when_done,
                args=(channel, tracker),
                name="netsweep-closer",
                daemon=True,
            )
            closer.start()
            outcome = ResultAggregator(self.alive_hosts).consume(channel)
            closer.join()
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        outcome.cancelled = _cancelled(self.cancel_event)
        if self.progress is not None:
            self.progress(None)
        return outcome

    # -- dispatch -------------------------------------------------------
    def _dispatch(
        self,
        channel: ResultChannel,
        tracker: CompletionTracker,
        executor: ThreadPoolExecutor | None,
    ) -> None:
        total = len(self.addresses)
        for index, host in enumerate(self.addresses, 1):
            if _cancelled(self.cancel_event):
                logger.info("Scan cancelled before %s", host)
                break
            if self._is_alive(host):
                logger.info("Host %s is up, scanning ports...", host)
                self.alive_hosts.append(host)
                for port in self.ports:
                    tracker.add()
                    self._launch(
                        functools.partial(self._probe_task, host, port, channel, tracker),
                        executor,
                        name=f"netsweep-probe-{host}:{port}",
                    )
            else:
                logger.info("Host %s is down, skipping...", host)
            if self.progress is not None:
                self.progress(index / total)

    def _launch(
        self,
        task: Callable[[], None],
        executor: ThreadPoolExecutor | None,
        *,
        name: str | None = None,
    ) -> None:
        if executor is not None:
            executor.submit(task)
            return
        try:
            threading.Thread(target=task, name=name, daemon=True).start()
        except RuntimeError:
            # Out of threads: probe inline so the task still reports exactly once.
            logger.warning("Cannot start probe thread, probing inline", exc_info=True)
            task()

    @staticmethod
    def _close_when_done(channel: ResultChannel, tracker: CompletionTracker) -> None:
        tracker.wait()
        channel.close()

    # -- probes ---------------------------------------------------------
    def _is_alive(self, host: str) -> bool:
        try:
            return bool(self.liveness(host, self.timeout, diagnostics=self.diagnostics))
        except Exception as exc:
            logger.debug("liveness probe for %s raised", host, exc_info=True)
            report_failure(self.diagnostics, host, None, f"liveness probe raised {exc!r}")
            return False

    def _probe_task(
        self, host: str, port: int, channel: ResultChannel, tracker: CompletionTracker
    ) -> None:
        try:
            if _cancelled(self.cancel_event):
                return
            channel.put(self._probe(host, port))
        finally:
            tracker.done()

    def _probe(self, host: str, port: int) -> ScanResult:
        try:
            return self.probe(host, port, self.timeout, diagnostics=self.diagnostics)
        except Exception as exc:
            logger.debug("port probe for %s:%s raised", host, port, exc_info=True)
            report_failure(self.diagnostics, host, port, f"port probe raised {exc!r}")
            return ScanResult(host, port, False)


def scan_range(
    start: str,
    end: str,
    port_spec: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    concurrency: int | None = DEFAULT_WORKERS,
    **kwargs: Any,
) -> ScanOutcome:
    """Parse the inputs and sweep ``start`` to ``end`` for ``port_spec``.

    Input errors (:class:`~netsweep.errors.InvalidAddress`,
    :class:`~netsweep.errors.EmptyRange`,
    :class:`~netsweep.errors.InvalidPortSpec`) are raised before any probe
    is sent.
    """

    addresses = AddressRange.from_strings(start, end)
    ports = PortSet.parse(port_spec)
    coordinator = ScanCoordinator(
        addresses, ports, timeout=timeout, concurrency=concurrency, **kwargs
    )
    return coordinator.run()


async def async_scan(
    addresses: AddressRange,
    ports: PortSet,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    concurrency: int | None = DEFAULT_WORKERS,
    liveness: LivenessProbe = ping_host,
    probe: AsyncPortProbe = async_probe_port,
    progress: ProgressCallback | None = None,
    diagnostics: DiagnosticsCallback | None = None,
    cancel_event: Any | None = None,
) -> ScanOutcome:
    """Asyncio variant of :meth:`ScanCoordinator.run`.

    Liveness probes block on a raw socket, so each one runs in a worker
    thread, still one host at a time. Port probes are tasks on the running
    loop, gated by a semaphore when ``concurrency`` is positive.
    """

    limit = _pool_size(concurrency)
    sem = asyncio.Semaphore(limit) if limit else None
    results: asyncio.Queue[Any] = asyncio.Queue(maxsize=len(addresses) * len(ports) + 1)
    alive: list[str] = []
    tasks: list[asyncio.Task[None]] = []

    async def call_probe(host: str, port: int) -> ScanResult:
        try:
            return await probe(host, port, timeout, diagnostics=diagnostics)
        except Exception as exc:
            logger.debug("port probe for %s:%s raised", host, port, exc_info=True)
            report_failure(diagnostics, host, port, f"port probe raised {exc!r}")
            return ScanResult(host, port, False)

    async def run(host: str, port: int) -> None:
        if _cancelled(cancel_event):
            return
        if sem is None:
            result = await call_probe(host, port)
        else:
            async with sem:
                if _cancelled(cancel_event):
                    return
                result = await call_probe(host, port)
        results.put_nowait(result)

    total = len(addresses)
    for index, host in enumerate(addresses, 1):
        if _cancelled(cancel_event):
            logger.info("Scan cancelled before %s", host)
            break
        try:
            up = await asyncio.to_thread(liveness, host, timeout, diagnostics=diagnostics)
        except Exception as exc:
            logger.debug("liveness probe for %s raised", host, exc_info=True)
            report_failure(diagnostics, host, None, f"liveness probe raised {exc!r}")
            up = False
        if up:
            logger.info("Host %s is up, scanning ports...", host)
            alive.append(host)
            tasks.extend(asyncio.create_task(run(host, port)) for port in ports)
        else:
            logger.info("Host %s is down, skipping...", host)
        if progress is not None:
            progress(index / total)

    await asyncio.gather(*tasks)
    results.put_nowait(_CLOSED)

    def drain() -> Iterator[ScanResult]:
        while True:
            item = results.get_nowait()
            if item is _CLOSED:
                return
            yield item

    outcome = ResultAggregator(alive).consume(drain())
    outcome.cancelled = _cancelled(cancel_event)
    if progress is not None:
        progress(None)
    return outcome


__all__ = [
    "CompletionTracker",
    "ResultChannel",
    "ScanCoordinator",
    "async_scan",
    "scan_range",
]
