import asyncio
import queue
import random
import threading
import time
from collections import Counter

import pytest

from netsweep.errors import EmptyRange, InvalidAddress, InvalidPortSpec
from netsweep.network.addresses import AddressRange
from netsweep.network.coordinator import (
    CompletionTracker,
    ResultChannel,
    ScanCoordinator,
    async_scan,
    scan_range,
)
from netsweep.network.models import ScanResult
from netsweep.network.ports import PortSet


class FakeNetwork:
    """Hosts and listeners answering the injected probes."""

    def __init__(self, listeners, *, delays=None):
        self.listeners = {host: set(ports) for host, ports in listeners.items()}
        self.delays = delays or {}
        self.lock = threading.Lock()
        self.pinged = []
        self.probed = []

    def liveness(self, host, timeout, *, diagnostics=None):
        self.pinged.append(host)
        return host in self.listeners

    def probe(self, host, port, timeout, *, diagnostics=None):
        delay = self.delays.get((host, port))
        if delay:
            time.sleep(delay)
        with self.lock:
            self.probed.append((host, port))
        return ScanResult(host, port, port in self.listeners.get(host, ()))

    async def async_probe(self, host, port, timeout, *, diagnostics=None):
        delay = self.delays.get((host, port))
        if delay:
            await asyncio.sleep(delay)
        self.probed.append((host, port))
        return ScanResult(host, port, port in self.listeners.get(host, ()))


def _coordinator(net, start, end, ports, **kwargs):
    return ScanCoordinator(
        AddressRange.from_strings(start, end),
        PortSet.parse(ports),
        liveness=net.liveness,
        probe=net.probe,
        **kwargs,
    )


def test_liveness_checked_in_ascending_order():
    net = FakeNetwork({})
    _coordinator(net, "10.0.0.254", "10.0.1.2", "80").run()
    assert net.pinged == ["10.0.0.254", "10.0.0.255", "10.0.1.0", "10.0.1.1", "10.0.1.2"]


def test_dead_hosts_get_no_results():
    net = FakeNetwork({"10.0.0.2": {22}})
    outcome = _coordinator(net, "10.0.0.1", "10.0.0.3", "20-25").run()

    assert outcome.alive_hosts == ["10.0.0.2"]
    assert {host for host, _ in net.probed} == {"10.0.0.2"}
    assert set(outcome.open_ports) == {"10.0.0.2"}
    assert outcome.ports_for("10.0.0.2") == [22]


def test_alive_host_without_listeners():
    net = FakeNetwork({"10.0.0.1": set()})
    outcome = _coordinator(net, "10.0.0.1", "10.0.0.1", "1-10").run()

    assert outcome.alive_count == 1
    assert outcome.ports_for("10.0.0.1") == []
    assert outcome.probed["10.0.0.1"] == 10


def test_every_port_probed_exactly_once():
    net = FakeNetwork({"10.0.0.1": {80, 443}, "10.0.0.3": {8080}})
    outcome = _coordinator(net, "10.0.0.1", "10.0.0.4", "1-100").run()

    counts = Counter(net.probed)
    assert set(counts.values()) == {1}
    assert len(counts) == 100 * 2
    assert outcome.probed == {"10.0.0.1": 100, "10.0.0.3": 100}


def test_repeated_scans_are_idempotent_up_to_order():
    listeners = {"10.0.0.1": {22, 80}, "10.0.0.5": {443}, "10.0.0.7": set()}
    rnd = random.Random(7)
    delays = {
        (host, port): rnd.uniform(0, 0.003)
        for host in listeners
        for port in range(20, 30)
    }

    first = _coordinator(FakeNetwork(listeners, delays=delays), "10.0.0.0", "10.0.0.9", "20-30").run()
    second = _coordinator(FakeNetwork(listeners, delays=delays), "10.0.0.0", "10.0.0.9", "20-30").run()

    assert first.alive_hosts == second.alive_hosts
    assert {h: set(p) for h, p in first.open_ports.items()} == {
        h: set(p) for h, p in second.open_ports.items()
    }


@pytest.mark.parametrize("concurrency", [None, 0, 1, 4, 64])
def test_randomized_delays_aggregate_all_results(concurrency):
    n = 60
    rnd = random.Random(concurrency or 99)
    open_ports = set(rnd.sample(range(1000, 1000 + n), 12))
    delays = {("10.1.1.1", port): rnd.uniform(0, 0.01) for port in range(1000, 1000 + n)}
    net = FakeNetwork({"10.1.1.1": open_ports}, delays=delays)

    outcome = _coordinator(
        net, "10.1.1.1", "10.1.1.1", f"1000-{1000 + n - 1}", concurrency=concurrency
    ).run()

    assert Counter(net.probed) == Counter(("10.1.1.1", p) for p in range(1000, 1000 + n))
    assert outcome.probed["10.1.1.1"] == n
    assert sorted(outcome.ports_for("10.1.1.1")) == sorted(open_ports)
    assert len(outcome.ports_for("10.1.1.1")) == len(open_ports)


def test_unbounded_mode_runs_probes_concurrently():
    barrier = threading.Barrier(8, timeout=5)

    def probe(host, port, timeout, *, diagnostics=None):
        barrier.wait()
        return ScanResult(host, port, True)

    coordinator = ScanCoordinator(
        AddressRange.single("10.0.0.1"),
        PortSet.parse("1-8"),
        concurrency=None,
        liveness=lambda host, timeout, **kw: True,
        probe=probe,
    )
    assert coordinator.concurrency is None
    outcome = coordinator.run()
    assert sorted(outcome.ports_for("10.0.0.1")) == list(range(1, 9))


def test_bounded_pool_caps_probes_in_flight():
    lock = threading.Lock()
    in_flight = 0
    peak = 0

    def probe(host, port, timeout, *, diagnostics=None):
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.005)
        with lock:
            in_flight -= 1
        return ScanResult(host, port, False)

    outcome = ScanCoordinator(
        AddressRange.from_strings("10.0.0.1", "10.0.0.2"),
        PortSet.parse("1-40"),
        concurrency=3,
        liveness=lambda host, timeout, **kw: True,
        probe=probe,
    ).run()

    assert peak <= 3
    assert sum(outcome.probed.values()) == 80


def test_raising_probe_counts_as_closed():
    failures = []

    def probe(host, port, timeout, *, diagnostics=None):
        if port == 2:
            raise RuntimeError("kaput")
        return ScanResult(host, port, True)

    outcome = ScanCoordinator(
        AddressRange.single("10.0.0.1"),
        PortSet.parse("1-3"),
        liveness=lambda host, timeout, **kw: True,
        probe=probe,
        diagnostics=failures.append,
    ).run()

    assert sorted(outcome.ports_for("10.0.0.1")) == [1, 3]
    assert outcome.probed["10.0.0.1"] == 3
    assert [(f.host, f.port) for f in failures] == [("10.0.0.1", 2)]


def test_raising_liveness_counts_as_down():
    def liveness(host, timeout, *, diagnostics=None):
        raise OSError("no route")

    net = FakeNetwork({})
    outcome = ScanCoordinator(
        AddressRange.single("10.0.0.1"),
        PortSet.parse("80"),
        liveness=liveness,
        probe=net.probe,
    ).run()
    assert outcome.alive_hosts == []
    assert net.probed == []


def test_cancel_stops_new_probes():
    cancel = threading.Event()
    pinged = []

    def liveness(host, timeout, *, diagnostics=None):
        pinged.append(host)
        cancel.set()
        return True

    net = FakeNetwork({})
    outcome = ScanCoordinator(
        AddressRange.from_strings("10.0.0.1", "10.0.0.5"),
        PortSet.parse("1-10"),
        liveness=liveness,
        probe=net.probe,
        cancel_event=cancel,
    ).run()

    assert pinged == ["10.0.0.1"]
    assert net.probed == []
    assert outcome.cancelled
    assert outcome.alive_hosts == ["10.0.0.1"]


def test_progress_reports_hosts_then_none():
    seen = []
    net = FakeNetwork({"10.0.0.2": {1}})
    _coordinator(net, "10.0.0.1", "10.0.0.4", "1", progress=seen.append).run()
    assert seen == [0.25, 0.5, 0.75, 1.0, None]


def test_scan_range_rejects_bad_input_before_probing():
    net = FakeNetwork({"10.0.0.1": {80}})
    with pytest.raises(InvalidPortSpec):
        scan_range("10.0.0.1", "10.0.0.2", "22-20", liveness=net.liveness, probe=net.probe)
    with pytest.raises(InvalidAddress):
        scan_range("10.0.0.1", "10.0.0.300", "80", liveness=net.liveness, probe=net.probe)
    with pytest.raises(EmptyRange):
        scan_range("10.0.0.2", "10.0.0.1", "80", liveness=net.liveness, probe=net.probe)
    assert net.pinged == []


def test_scan_range_runs_sweep():
    net = FakeNetwork({"10.0.0.1": {80}})
    outcome = scan_range(
        "10.0.0.1", "10.0.0.2", "79-81", liveness=net.liveness, probe=net.probe
    )
    assert outcome.alive_hosts == ["10.0.0.1"]
    assert outcome.ports_for("10.0.0.1") == [80]


def test_completion_tracker():
    tracker = CompletionTracker()
    assert tracker.wait(timeout=0)

    tracker.add(3)
    assert not tracker.wait(timeout=0.01)
    workers = [threading.Thread(target=tracker.done) for _ in range(3)]
    for worker in workers:
        worker.start()
    assert tracker.wait(timeout=5)
    for worker in workers:
        worker.join()
    assert tracker.pending == 0

    with pytest.raises(RuntimeError):
        tracker.done()


def test_result_channel_drains_after_close():
    channel = ResultChannel(2)
    channel.put(ScanResult("10.0.0.1", 1, True))
    channel.put(ScanResult("10.0.0.1", 2, False))
    channel.close()
    channel.close()

    assert channel.closed
    assert [r.port for r in channel] == [1, 2]
    with pytest.raises(RuntimeError):
        channel.put(ScanResult("10.0.0.1", 3, False))


def test_result_channel_capacity_is_upper_bound():
    channel = ResultChannel(1)
    channel.put(ScanResult("10.0.0.1", 1, True))
    with pytest.raises(queue.Full):
        channel.put(ScanResult("10.0.0.1", 2, True))

    channel.close()
    assert channel.closed
    assert [r.port for r in channel] == [1]


def test_result_channel_overflow_leaves_room_to_close():
    channel = ResultChannel(0)
    with pytest.raises(queue.Full):
        channel.put(ScanResult("10.0.0.1", 1, True))
    channel.close()
    assert list(channel) == []


def test_failing_progress_callback_shuts_down_pool():
    net = FakeNetwork({"10.0.0.1": set(range(1, 21))})

    def progress(value):
        if value is not None:
            raise ValueError("progress bar gone")

    coordinator = _coordinator(
        net, "10.0.0.1", "10.0.0.2", "1-20", concurrency=4, progress=progress
    )
    with pytest.raises(ValueError):
        coordinator.run()

    assert not [t for t in threading.enumerate() if t.name.startswith("netsweep-probe")]
    assert len(net.probed) == 20


def test_unbounded_mode_probes_inline_when_threads_run_out(monkeypatch):
    original_start = threading.Thread.start
    refused = []

    def start(self):
        if self.name.startswith("netsweep-probe"):
            refused.append(self.name)
            raise RuntimeError("can't start new thread")
        original_start(self)

    monkeypatch.setattr(threading.Thread, "start", start)
    net = FakeNetwork({"10.0.0.1": {2, 4}})
    outcome = _coordinator(net, "10.0.0.1", "10.0.0.1", "1-5", concurrency=0).run()

    assert len(refused) == 5
    assert sorted(net.probed) == [("10.0.0.1", port) for port in range(1, 6)]
    assert sorted(outcome.ports_for("10.0.0.1")) == [2, 4]
    assert outcome.probed == {"10.0.0.1": 5}


async def test_async_scan_aggregates_all_results():
    rnd = random.Random(3)
    listeners = {"10.0.0.2": {21, 23}, "10.0.0.4": set()}
    delays = {(h, p): rnd.uniform(0, 0.01) for h in listeners for p in range(20, 30)}
    net = FakeNetwork(listeners, delays=delays)
    seen = []

    outcome = await async_scan(
        AddressRange.from_strings("10.0.0.1", "10.0.0.4"),
        PortSet.parse("20-29"),
        concurrency=4,
        liveness=net.liveness,
        probe=net.async_probe,
        progress=seen.append,
    )

    assert net.pinged == ["10.0.0.1", "10.0.0.2", "10.0.0.3", "10.0.0.4"]
    assert outcome.alive_hosts == ["10.0.0.2", "10.0.0.4"]
    assert sorted(outcome.ports_for("10.0.0.2")) == [21, 23]
    assert outcome.ports_for("10.0.0.4") == []
    assert outcome.probed == {"10.0.0.2": 10, "10.0.0.4": 10}
    assert Counter(net.probed).most_common(1)[0][1] == 1
    assert seen[-1] is None


async def test_async_scan_unbounded_and_raising_probe():
    async def probe(host, port, timeout, *, diagnostics=None):
        if port % 2:
            raise ConnectionResetError("reset")
        return ScanResult(host, port, True)

    outcome = await async_scan(
        AddressRange.single("10.0.0.1"),
        PortSet.parse("1-6"),
        concurrency=None,
        liveness=lambda host, timeout, **kw: True,
        probe=probe,
    )
    assert sorted(outcome.ports_for("10.0.0.1")) == [2, 4, 6]
    assert outcome.probed["10.0.0.1"] == 6
