"""Tests for the SystemMonitor class and its procfs parsers."""

import time
from queue import Empty, Queue

import pytest

from pydump.models import Domain, Sample
from pydump.monitor import (
    RateTracker,
    SystemMonitor,
    parse_flat,
    parse_io_stat,
    parse_meminfo,
    parse_pressure,
    parse_snmp,
    record_samples,
)
from pydump.store import StoreSource, StoreWriter

MEMINFO = """\
MemTotal:       16318412 kB
MemFree:         1234567 kB
HugePages_Total:       4
Hugepagesize:       2048 kB
"""

SNMP = """\
Ip: Forwarding DefaultTTL InReceives
Ip: 1 64 12345
Tcp: RtoAlgorithm CurrEstab RetransSegs
Tcp: 1 7 99
"""

PRESSURE = """\
some avg10=1.50 avg60=0.80 avg300=0.20 total=123456
full avg10=0.25 avg60=0.10 avg300=0.00 total=2345
"""


class TestParsers:
    """Tests for the procfs and cgroupfs text parsers."""

    def test_parse_meminfo_converts_kb(self):
        """Test parse meminfo converts kb."""
        values = parse_meminfo(MEMINFO)

        assert values["MemTotal"] == 16318412 * 1024
        assert values["HugePages_Total"] == 4
        assert values["Hugepagesize"] == 2048 * 1024

    def test_parse_flat(self):
        """Test parse_flat reads key value lines."""
        values = parse_flat("pgpgin 10\npgpgout 20\nbogus line here\nratio 0.5\n")

        assert values == {"pgpgin": 10, "pgpgout": 20, "ratio": 0.5}

    def test_parse_snmp_pairs_headers_and_values(self):
        """Test parse snmp pairs headers and values."""
        values = parse_snmp(SNMP)

        assert values["Ip.Forwarding"] == 1
        assert values["Ip.InReceives"] == 12345
        assert values["Tcp.CurrEstab"] == 7
        assert values["Tcp.RetransSegs"] == 99

    def test_parse_snmp_ignores_mismatched_sections(self):
        """Test parse snmp ignores mismatched sections."""
        assert parse_snmp("Ip: A B\nTcp: 1 2\n") == {}
        assert parse_snmp("Ip: A B\n") == {}

    def test_parse_io_stat_sums_devices(self):
        """Test parse io stat sums devices."""
        text = "8:0 rbytes=100 wbytes=10 rios=1\n8:16 rbytes=50 wbytes=5 rios=2\n"

        assert parse_io_stat(text) == {"rbytes": 150, "wbytes": 15, "rios": 3}

    def test_parse_pressure(self):
        """Test parse_pressure keeps avg10 per line."""
        assert parse_pressure(PRESSURE) == {"some": 1.5, "full": 0.25}


class TestRateTracker:
    """Tests for RateTracker."""

    def test_first_poll_has_no_rates(self):
        """Test first poll has no rates."""
        tracker = RateTracker()

        assert tracker.rates("disk", 10.0, {"read": 100}) == {"read": None}

    def test_rates_against_previous_poll(self):
        """Test rates against previous poll."""
        tracker = RateTracker()
        tracker.rates("disk", 10.0, {"read": 100, "write": None})
        tracker.commit()

        rates = tracker.rates("disk", 15.0, {"read": 600, "write": 50})

        assert rates == {"read": 100.0, "write": None}

    def test_counter_reset_is_zero(self):
        """Test counter reset is zero."""
        tracker = RateTracker()
        tracker.rates("disk", 10.0, {"read": 500})
        tracker.commit()

        assert tracker.rates("disk", 11.0, {"read": 100}) == {"read": 0.0}

    def test_keys_not_seen_are_forgotten(self):
        """Test keys not seen are forgotten."""
        tracker = RateTracker()
        tracker.rates("old", 10.0, {"read": 1})
        tracker.commit()
        tracker.commit()

        assert tracker.rates("old", 20.0, {"read": 11}) == {"read": None}


@pytest.fixture
def fake_roots(tmp_path):
    """Minimal procfs and sysfs trees."""
    proc = tmp_path / "proc"
    sys_root = tmp_path / "sys"
    (proc / "42").mkdir(parents=True)
    (proc / "42" / "stat").write_text(
        "42 (my proc) S 1 42 42 0 -1 4194560 1500 0 7 0 10 5 0 0 20 0 1 0 100 0\n"
    )
    (proc / "42" / "cgroup").write_text("0::/system.slice/app.service\n")
    (proc / "diskstats").write_text(
        "   8       0 sda 100 2 800 50 200 3 1600 70 0 90 120 4 1 32 6 0 0\n"
        "   8       1 sda1 10 0 80 5 20 0 160 7 0 9 12\n"
    )

    cgroup = sys_root / "fs" / "cgroup"
    service = cgroup / "system.slice" / "app.service"
    service.mkdir(parents=True)
    (cgroup / "cgroup.controllers").write_text("cpu io memory\n")
    (service / "cpu.stat").write_text("usage_usec 1000000\nuser_usec 600000\nsystem_usec 400000\n")
    (service / "memory.stat").write_text("anon 4096\nfile 8192\npgfault 10\n")
    (service / "memory.current").write_text("12288\n")
    (service / "memory.high").write_text("max\n")
    (service / "io.stat").write_text("8:0 rbytes=2048 wbytes=1024\n")
    (service / "memory.pressure").write_text(PRESSURE)
    return proc, sys_root


class TestCollectors:
    """Collectors reading from fake procfs and sysfs roots."""

    def _monitor(self, fake_roots) -> SystemMonitor:
        proc, sys_root = fake_roots
        return SystemMonitor(Queue(), proc_root=proc, sys_root=sys_root)

    def test_page_faults_handle_spaces_in_comm(self, fake_roots):
        """Test page faults handle spaces in comm."""
        assert self._monitor(fake_roots)._page_faults(42) == (1500, 7)

    def test_page_faults_of_missing_process(self, fake_roots):
        """Test page faults of missing process."""
        assert self._monitor(fake_roots)._page_faults(99999) == (None, None)

    def test_process_cgroup(self, fake_roots):
        """Test the cgroup v2 path of a process."""
        assert self._monitor(fake_roots)._process_cgroup(42) == "/system.slice/app.service"

    def test_diskstats(self, fake_roots):
        """Test device numbers and discard counters from diskstats."""
        stats = self._monitor(fake_roots)._diskstats()

        assert stats["sda"] == {
            "major": 8,
            "minor": 0,
            "discard_completed": 4,
            "discard_merged": 1,
            "discard_sectors": 32,
            "time_spend_discard": 6,
        }
        assert stats["sda1"] == {"major": 8, "minor": 1}

    def test_cgroup_tree(self, fake_roots):
        """Test every cgroup directory becomes one row."""
        cgroups = self._monitor(fake_roots)._collect_cgroups(time.time())

        by_path = {row["full_path"]: row for row in cgroups}
        assert set(by_path) == {"/", "/system.slice", "/system.slice/app.service"}
        assert by_path["/"]["name"] == "<root>"

        service = by_path["/system.slice/app.service"]
        assert service["name"] == "app.service"
        assert service["mem_total"] == 12288
        assert service["mem_high"] is None
        assert service["mem_anon"] == 4096
        assert service["pressure_mem_some"] == 1.5
        assert service["pressure_mem_full"] == 0.25
        assert service["cpu_usage"] is None

    def test_cgroup_rates_on_second_poll(self, fake_roots):
        """Test cgroup rates on second poll."""
        monitor = self._monitor(fake_roots)
        _proc, sys_root = fake_roots
        service = sys_root / "fs" / "cgroup" / "system.slice" / "app.service"

        monitor._collect_cgroups(100.0)
        monitor._rates.commit()
        (service / "cpu.stat").write_text("usage_usec 1500000\nuser_usec 800000\nsystem_usec 700000\n")
        rows = monitor._collect_cgroups(101.0)

        row = next(r for r in rows if r["name"] == "app.service")
        assert row["cpu_usage"] == pytest.approx(50.0)
        assert row["cpu_user"] == pytest.approx(20.0)

    def test_cgroup_v1_host_has_no_cgroups(self, tmp_path):
        """Test cgroup v1 host has no cgroups."""
        monitor = SystemMonitor(Queue(), proc_root=tmp_path, sys_root=tmp_path)

        assert monitor._collect_cgroups(time.time()) == []


class TestSystemMonitor:
    """Tests for SystemMonitor class."""

    def test_monitor_creation(self):
        """Test SystemMonitor can be instantiated."""
        queue: Queue[Sample] = Queue()
        monitor = SystemMonitor(queue)

        assert monitor.poll_rate == 5.0
        assert not monitor.is_running

    def test_monitor_custom_poll_rate(self):
        """Test SystemMonitor with custom poll rate."""
        monitor = SystemMonitor(Queue(), poll_rate=1.0)

        assert monitor.poll_rate == 1.0

    def test_poll_rate_minimum(self):
        """Test poll rate has a minimum value."""
        monitor = SystemMonitor(Queue())

        monitor.poll_rate = 0.01  # Very small value
        assert monitor.poll_rate >= 0.1  # Should be clamped to minimum

    def test_monitor_start_stop(self):
        """Test SystemMonitor can be started and stopped."""
        monitor = SystemMonitor(Queue(), poll_rate=0.1)

        assert not monitor.is_running

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_start_twice_keeps_one_thread(self):
        """Test calling start on a running monitor is a no-op."""
        monitor = SystemMonitor(Queue(), poll_rate=0.1)

        monitor.start()
        thread = monitor._thread
        monitor.start()
        try:
            assert monitor._thread is thread
        finally:
            monitor.stop()

    def test_thread_is_daemon(self):
        """Test the monitor thread does not block interpreter exit."""
        monitor = SystemMonitor(Queue(), poll_rate=0.1)

        monitor.start()
        try:
            assert monitor._thread.daemon
            assert monitor._thread.name == "SystemMonitor"
        finally:
            monitor.stop()

    def test_monitor_collects_samples(self):
        """Test SystemMonitor pushes samples to the queue."""
        queue: Queue[Sample] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.1)

        monitor.start()
        try:
            sample = queue.get(timeout=10.0)
        except Empty:
            pytest.fail("No sample received within timeout")
        finally:
            monitor.stop()

        assert isinstance(sample, Sample)
        assert sample.hostname
        assert sample.system["mem_total"] > 0
        assert 0.0 <= sample.system["cpu_usage"] <= 100.0
        assert any(p["pid"] > 0 for p in sample.processes)

    def test_second_sample_has_rates(self):
        """Test rate fields appear once a previous poll exists."""
        monitor = SystemMonitor(Queue())

        first = monitor.collect_sample()
        time.sleep(0.05)
        second = monitor.collect_sample()

        assert first.network["ip_in_receives"] is None
        assert len(second.batch(Domain.SYSTEM).records) == 1
        if second.disks:
            assert second.disks[0]["read_bytes"] is not None


def test_record_samples_appends_to_store(tmp_path):
    """Test record samples appends to store."""
    path = tmp_path / "store.jsonl"

    with StoreWriter(path) as writer:
        written = record_samples(writer, poll_rate=0.1, count=2)

    samples = list(StoreSource(path).samples(0, time.time() + 60))
    assert written == 2
    assert len(samples) == 2
    assert samples[0].timestamp <= samples[1].timestamp
