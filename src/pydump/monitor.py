"""Sample collection engine for pydump.

``SystemMonitor`` polls the host on a daemon thread and pushes one
:class:`~pydump.models.Sample` per poll into a queue. Values come from
psutil where it has them and from ``/proc`` and ``/sys`` otherwise.
Cumulative kernel counters are turned into per-second rates against the
previous poll, so rate fields are None in the first sample.
"""

import logging
import os
import socket
import threading
import time
from collections.abc import Hashable, Mapping
from pathlib import Path
from queue import Queue
from typing import Any

import psutil

from pydump.models import Sample
from pydump.store import StoreWriter

logger = logging.getLogger(__name__)

SECTOR_SIZE = 512


def read_text(path: Path) -> str | None:
    """Return the content of ``path``, or None if it cannot be read."""
    try:
        return path.read_text()
    except OSError:
        return None


def _number(text: str) -> int | float | None:
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            return None


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse ``/proc/meminfo``; ``kB`` values are converted to bytes."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, _, rest = line.partition(":")
        parts = rest.split()
        if not parts or not parts[0].isdigit():
            continue
        value = int(parts[0])
        if len(parts) > 1 and parts[1] == "kB":
            value *= 1024
        values[key.strip()] = value
    return values


def parse_flat(text: str) -> dict[str, int | float]:
    """Parse ``key value`` lines such as ``/proc/vmstat`` or ``cpu.stat``."""
    values: dict[str, int | float] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2:
            value = _number(parts[1])
            if value is not None:
                values[parts[0]] = value
    return values


def parse_snmp(text: str) -> dict[str, int]:
    """
    Parse ``/proc/net/snmp`` or ``/proc/net/netstat``.

    Both files hold pairs of lines, a header line of names and a line of
    values, each prefixed with the section name. Keys are returned as
    ``Section.Name``.
    """
    values: dict[str, int] = {}
    lines = text.splitlines()
    for header, data in zip(lines[::2], lines[1::2]):
        names = header.split()
        numbers = data.split()
        if not names or not numbers or names[0] != numbers[0]:
            continue
        section = names[0].rstrip(":")
        for name, number in zip(names[1:], numbers[1:]):
            value = _number(number)
            if value is not None:
                values[f"{section}.{name}"] = value
    return values


def parse_io_stat(text: str) -> dict[str, int]:
    """Sum the per-device counters of a cgroup ``io.stat`` file."""
    totals: dict[str, int] = {}
    for line in text.splitlines():
        for item in line.split()[1:]:
            key, _, value = item.partition("=")
            if value.isdigit():
                totals[key] = totals.get(key, 0) + int(value)
    return totals


def parse_pressure(text: str) -> dict[str, float]:
    """Return the ``avg10`` value of each line of a PSI file, keyed by kind."""
    pressure: dict[str, float] = {}
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        for item in parts[1:]:
            key, _, value = item.partition("=")
            if key == "avg10":
                pressure[parts[0]] = float(value)
    return pressure


class RateTracker:
    """Turns cumulative counters into per-second rates between polls."""

    def __init__(self) -> None:
        self._previous: dict[Hashable, tuple[float, Mapping[str, float]]] = {}
        self._current: dict[Hashable, tuple[float, Mapping[str, float]]] = {}

    def rates(
        self, key: Hashable, now: float, counters: Mapping[str, float | None]
    ) -> dict[str, float | None]:
        """Rates of ``counters`` since the previous poll of ``key``."""
        present = {name: value for name, value in counters.items() if value is not None}
        self._current[key] = (now, present)
        previous = self._previous.get(key)
        result: dict[str, float | None] = {name: None for name in counters}
        if previous is None or now <= previous[0]:
            return result
        elapsed = now - previous[0]
        for name, value in present.items():
            if name in previous[1]:
                # Counter resets (e.g. after a wrap) yield 0, not a negative rate.
                result[name] = max(value - previous[1][name], 0) / elapsed
        return result

    def commit(self) -> None:
        """Finish a poll; keys not seen in it are forgotten."""
        self._previous = self._current
        self._current = {}


# Field name -> /proc/meminfo key.
MEMINFO_FIELDS = {
    "mem_total": "MemTotal",
    "mem_free": "MemFree",
    "mem_available": "MemAvailable",
    "mem_buffers": "Buffers",
    "mem_cached": "Cached",
    "mem_swap_cached": "SwapCached",
    "mem_active": "Active",
    "mem_inactive": "Inactive",
    "mem_unevictable": "Unevictable",
    "mem_mlocked": "Mlocked",
    "mem_swap_total": "SwapTotal",
    "mem_swap_free": "SwapFree",
    "mem_dirty": "Dirty",
    "mem_writeback": "Writeback",
    "mem_anon_pages": "AnonPages",
    "mem_mapped": "Mapped",
    "mem_shmem": "Shmem",
    "mem_kreclaimable": "KReclaimable",
    "mem_slab": "Slab",
    "mem_slab_reclaimable": "SReclaimable",
    "mem_slab_unreclaimable": "SUnreclaim",
    "mem_kernel_stack": "KernelStack",
    "mem_page_tables": "PageTables",
    "mem_anon_huge_pages": "AnonHugePages",
    "mem_shmem_huge_pages": "ShmemHugePages",
    "mem_file_huge_pages": "FileHugePages",
    "mem_total_huge_pages": "HugePages_Total",
    "mem_free_huge_pages": "HugePages_Free",
    "mem_huge_page_size": "Hugepagesize",
    "mem_cma_total": "CmaTotal",
    "mem_cma_free": "CmaFree",
    "mem_vmalloc_total": "VmallocTotal",
    "mem_vmalloc_used": "VmallocUsed",
    "mem_vmalloc_chunk": "VmallocChunk",
    "mem_direct_map_4k": "DirectMap4k",
    "mem_direct_map_2m": "DirectMap2M",
    "mem_direct_map_1g": "DirectMap1G",
}

# Field name -> /proc/vmstat key, reported as per-second rates.
VMSTAT_RATES = {
    "vm_pgpgin": "pgpgin",
    "vm_pgpgout": "pgpgout",
    "vm_pswpin": "pswpin",
    "vm_pswpout": "pswpout",
    "vm_psteal_kswapd": "pgsteal_kswapd",
    "vm_psteal_direct": "pgsteal_direct",
    "vm_pscan_kswapd": "pgscan_kswapd",
    "vm_pscan_direct": "pgscan_direct",
}

# Field name -> psutil.cpu_times_percent() attribute.
CPU_TIMES = {
    "cpu_user": "user",
    "cpu_idle": "idle",
    "cpu_system": "system",
    "cpu_nice": "nice",
    "cpu_iowait": "iowait",
    "cpu_irq": "irq",
    "cpu_softirq": "softirq",
    "cpu_stolen": "steal",
    "cpu_guest": "guest",
    "cpu_guest_nice": "guest_nice",
}

# Field name -> key in /proc/net/snmp, /proc/net/netstat or /proc/net/snmp6.
NETWORK_COUNTERS = {
    "ip_in_receives": "Ip.InReceives",
    "ip_forw_datagrams": "Ip.ForwDatagrams",
    "ip_in_discards": "Ip.InDiscards",
    "ip_in_delivers": "Ip.InDelivers",
    "ip_out_requests": "Ip.OutRequests",
    "ip_out_discards": "Ip.OutDiscards",
    "ip_out_no_routes": "Ip.OutNoRoutes",
    "ip_in_mcast": "IpExt.InMcastPkts",
    "ip_out_mcast": "IpExt.OutMcastPkts",
    "ip_in_bcast": "IpExt.InBcastPkts",
    "ip_out_bcast": "IpExt.OutBcastPkts",
    "ip6_in_receives": "Ip6InReceives",
    "ip6_forw_datagrams": "Ip6OutForwDatagrams",
    "ip6_in_discards": "Ip6InDiscards",
    "ip6_in_delivers": "Ip6InDelivers",
    "ip6_out_requests": "Ip6OutRequests",
    "ip6_in_no_routes": "Ip6InNoRoutes",
    "ip6_out_no_routes": "Ip6OutNoRoutes",
    "ip6_in_hdr_err": "Ip6InHdrErrors",
    "ip6_in_addr_err": "Ip6InAddrErrors",
    "ip6_in_mcast": "Ip6InMcastPkts",
    "ip6_out_mcast": "Ip6OutMcastPkts",
    "ip6_in_bcast": "Ip6InBcastOctets",
    "ip6_out_bcast": "Ip6OutBcastOctets",
    "icmp_in_msgs": "Icmp.InMsgs",
    "icmp_in_errs": "Icmp.InErrors",
    "icmp_in_dest_unreachs": "Icmp.InDestUnreachs",
    "icmp_out_msg": "Icmp.OutMsgs",
    "icmp_out_errs": "Icmp.OutErrors",
    "icmp_out_dest_unreachs": "Icmp.OutDestUnreachs",
    "icmp6_in_msgs": "Icmp6InMsgs",
    "icmp6_in_errs": "Icmp6InErrors",
    "icmp6_in_dest_unreachs": "Icmp6InDestUnreachs",
    "icmp6_out_msg": "Icmp6OutMsgs",
    "icmp6_out_errs": "Icmp6OutErrors",
    "icmp6_out_dest_unreachs": "Icmp6OutDestUnreachs",
}

TRANSPORT_COUNTERS = {
    "tcp_active_opens": "Tcp.ActiveOpens",
    "tcp_passive_opens": "Tcp.PassiveOpens",
    "tcp_attempt_fails": "Tcp.AttemptFails",
    "tcp_estab_reset": "Tcp.EstabResets",
    "tcp_in_segs": "Tcp.InSegs",
    "tcp_out_segs": "Tcp.OutSegs",
    "tcp_retrans_segs_per_sec": "Tcp.RetransSegs",
    "tcp_in_errs": "Tcp.InErrs",
    "tcp_out_rsts": "Tcp.OutRsts",
    "tcp_in_csum_errs": "Tcp.InCsumErrors",
    "udp_in_datagrams": "Udp.InDatagrams",
    "udp_no_ports": "Udp.NoPorts",
    "udp_in_errs": "Udp.InErrors",
    "udp_out_datagrams": "Udp.OutDatagrams",
    "udp_recv_buf_errs": "Udp.RcvbufErrors",
    "udp_snd_buf_errs": "Udp.SndbufErrors",
    "udp_ignored_multi": "Udp.IgnoredMulti",
    "udp6_in_datagrams": "Udp6InDatagrams",
    "udp6_no_ports": "Udp6NoPorts",
    "udp6_in_errs": "Udp6InErrors",
    "udp6_out_datagrams": "Udp6OutDatagrams",
    "udp6_recv_buf_errs": "Udp6RcvbufErrors",
    "udp6_snd_buf_errs": "Udp6SndbufErrors",
    "udp6_in_csum_errs": "Udp6InCsumErrors",
    "udp6_ignored_multi": "Udp6IgnoredMulti",
}

# Counters read from /sys/class/net/<iface>/statistics, named like the fields.
IFACE_STATISTICS = [
    "collisions", "multicast", "rx_compressed", "rx_crc_errors", "rx_fifo_errors",
    "rx_frame_errors", "rx_length_errors", "rx_missed_errors", "rx_nohandler",
    "rx_over_errors", "tx_aborted_errors", "tx_carrier_errors", "tx_compressed",
    "tx_fifo_errors", "tx_heartbeat_errors", "tx_window_errors",
]

CGROUP_MEM_STAT = [
    "anon", "file", "kernel", "slab", "sock", "shmem", "file_mapped", "file_dirty",
    "file_writeback", "anon_thp", "inactive_anon", "active_anon", "inactive_file",
    "active_file", "unevictable", "slab_reclaimable", "slab_unreclaimable",
]
CGROUP_MEM_EVENTS = [
    "pgfault", "pgmajfault", "workingset_refault", "workingset_activate",
    "workingset_nodereclaim", "pgrefill", "pgscan", "pgsteal", "pgactivate",
    "pgdeactivate", "pglazyfree", "pglazyfreed", "thp_fault_alloc", "thp_collapse_alloc",
]
CGROUP_IO = {
    "io_read": "rbytes",
    "io_write": "wbytes",
    "io_rios": "rios",
    "io_wios": "wios",
    "io_dbps": "dbytes",
    "io_diops": "dios",
}


class SystemMonitor:
    """
    System monitor that collects whole-host samples using psutil and procfs.

    Runs in a separate daemon thread and pushes samples to a thread-safe Queue.
    Handles AccessDenied and ZombieProcess errors per process.
    """

    def __init__(
        self,
        update_queue: Queue[Sample],
        poll_rate: float = 5.0,
        proc_root: Path = Path("/proc"),
        sys_root: Path = Path("/sys"),
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            update_queue: Thread-safe queue to push samples to.
            poll_rate: How often to poll the system (in seconds). Default 5.0s.
            proc_root: Mount point of procfs.
            sys_root: Mount point of sysfs.
        """
        self._queue = update_queue
        self._poll_rate = poll_rate
        self._proc = proc_root
        self._sys = sys_root
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._rates = RateTracker()
        # Initialize CPU percent (first call returns 0.0)
        psutil.cpu_times_percent(interval=None)

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.collect_sample())
            except Exception:
                logger.exception("Failed to collect sample")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)

    def collect_sample(self) -> Sample:
        """Collect a sample of the current system state."""
        now = time.time()
        snmp = self._network_counters()
        sample = Sample(
            timestamp=now,
            hostname=socket.gethostname(),
            system=self._collect_system(now),
            network=self._collect_network(now, snmp),
            transport=self._collect_transport(now, snmp),
            disks=self._collect_disks(now),
            processes=self._collect_processes(now),
            cgroups=self._collect_cgroups(now),
            ifaces=self._collect_ifaces(now),
        )
        self._rates.commit()
        return sample

    def _collect_system(self, now: float) -> dict[str, Any]:
        """CPU, memory, vm and scheduler statistics of the whole host."""
        cpu = psutil.cpu_times_percent(interval=None)
        system: dict[str, Any] = {
            name: getattr(cpu, attr, None) for name, attr in CPU_TIMES.items()
        }
        if system["cpu_idle"] is not None:
            system["cpu_usage"] = 100.0 - system["cpu_idle"]

        stats = psutil.cpu_stats()
        system["total_interrupt_ct"] = stats.interrupts
        system["context_switches"] = stats.ctx_switches
        system["boot_time_epoch_secs"] = int(psutil.boot_time())
        system["total_procs"] = len(psutil.pids())
        proc_stat = parse_flat(read_text(self._proc / "stat") or "")
        system["running_procs"] = proc_stat.get("procs_running")
        system["blocked_procs"] = proc_stat.get("procs_blocked")

        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        system["mem_total"] = mem.total
        system["mem_free"] = getattr(mem, "free", None)
        system["mem_available"] = mem.available
        system["mem_swap_total"] = swap.total
        system["mem_swap_free"] = swap.free
        meminfo = parse_meminfo(read_text(self._proc / "meminfo") or "")
        for name, key in MEMINFO_FIELDS.items():
            if key in meminfo:
                system[name] = meminfo[key]
            else:
                system.setdefault(name, None)
        anon = [meminfo.get(k) for k in ("Active(anon)", "Inactive(anon)")]
        files = [meminfo.get(k) for k in ("Active(file)", "Inactive(file)")]
        system["mem_anon"] = sum(anon) if None not in anon else None
        system["mem_file"] = sum(files) if None not in files else None

        vmstat = parse_flat(read_text(self._proc / "vmstat") or "")
        system.update(
            self._rates.rates(
                "vm", now, {name: vmstat.get(key) for name, key in VMSTAT_RATES.items()}
            )
        )
        system["vm_oom_kill"] = vmstat.get("oom_kill")
        return system

    def _collect_disks(self, now: float) -> list[dict[str, Any]]:
        """Per-disk IO rates from psutil, with device numbers and discards from diskstats."""
        counters = psutil.disk_io_counters(perdisk=True) or {}
        diskstats = self._diskstats()
        disks = []
        for name, io in counters.items():
            extra = diskstats.get(name, {})
            cumulative = {
                "read_bytes": io.read_bytes,
                "read_completed": io.read_count,
                "read_merged": getattr(io, "read_merged_count", None),
                "read_sectors": io.read_bytes / SECTOR_SIZE,
                "time_spend_read": io.read_time,
                "write_bytes": io.write_bytes,
                "write_completed": io.write_count,
                "write_merged": getattr(io, "write_merged_count", None),
                "write_sectors": io.write_bytes / SECTOR_SIZE,
                "time_spend_write": io.write_time,
                "discard_completed": extra.get("discard_completed"),
                "discard_merged": extra.get("discard_merged"),
                "discard_sectors": extra.get("discard_sectors"),
                "time_spend_discard": extra.get("time_spend_discard"),
            }
            sectors = extra.get("discard_sectors")
            cumulative["discard_bytes"] = sectors * SECTOR_SIZE if sectors is not None else None
            disk = {
                "name": name,
                "major": extra.get("major"),
                "minor": extra.get("minor"),
            }
            disk.update(self._rates.rates(("disk", name), now, cumulative))
            disks.append(disk)
        return disks

    def _diskstats(self) -> dict[str, dict[str, int]]:
        """Device numbers and discard counters from ``/proc/diskstats``."""
        stats: dict[str, dict[str, int]] = {}
        for line in (read_text(self._proc / "diskstats") or "").splitlines():
            parts = line.split()
            if len(parts) < 3 or not parts[0].isdigit():
                continue
            entry = {"major": int(parts[0]), "minor": int(parts[1])}
            # Discard columns exist since Linux 4.18.
            if len(parts) >= 18:
                entry.update(
                    discard_completed=int(parts[14]),
                    discard_merged=int(parts[15]),
                    discard_sectors=int(parts[16]),
                    time_spend_discard=int(parts[17]),
                )
            stats[parts[2]] = entry
        return stats

    def _collect_processes(self, now: float) -> list[dict[str, Any]]:
        """
        Collect rows for all running processes.

        Uses psutil.process_iter() with oneshot() context manager for efficiency.
        Processes that vanish or deny access mid-poll are skipped.
        """
        processes: list[dict[str, Any]] = []

        # Attributes to fetch in oneshot
        attrs = [
            "pid",
            "ppid",
            "name",
            "status",
            "create_time",
            "cpu_times",
            "num_threads",
            "memory_info",
            "io_counters",
            "cmdline",
        ]

        for proc in psutil.process_iter(attrs=attrs):
            try:
                with proc.oneshot():
                    info = proc.info
                    pid = info.get("pid", 0)
                    create_time = info.get("create_time") or now
                    cpu_times = info.get("cpu_times")
                    mem_info = info.get("memory_info")
                    io = info.get("io_counters")
                    minflt, majflt = self._page_faults(pid)

                    cumulative = {
                        "cpu_user": cpu_times.user * 100 if cpu_times else None,
                        "cpu_sys": cpu_times.system * 100 if cpu_times else None,
                        "mem_minorfaults": minflt,
                        "mem_majorfaults": majflt,
                        "io_read": io.read_bytes if io else None,
                        "io_write": io.write_bytes if io else None,
                    }
                    row = self._rates.rates(("process", pid, create_time), now, cumulative)
                    if row["cpu_user"] is not None and row["cpu_sys"] is not None:
                        row["cpu_total"] = row["cpu_user"] + row["cpu_sys"]
                    else:
                        row["cpu_total"] = None

                    cmdline = info.get("cmdline") or []
                    row.update(
                        pid=pid,
                        ppid=info.get("ppid"),
                        comm=info.get("name") or "",
                        state=info.get("status") or "?",
                        uptime=max(now - create_time, 0.0),
                        cgroup=self._process_cgroup(pid),
                        cmdline=" ".join(cmdline) if cmdline else info.get("name") or "",
                        cpu_threads=info.get("num_threads"),
                        mem_rss=mem_info.rss if mem_info else None,
                    )
                    processes.append(row)

            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Processes that died mid-poll, access denied, or zombies
                continue

        return processes

    def _page_faults(self, pid: int) -> tuple[int | None, int | None]:
        """Minor and major fault counts from ``/proc/<pid>/stat``."""
        text = read_text(self._proc / str(pid) / "stat")
        if not text:
            return None, None
        # comm may contain spaces, fields restart after its closing paren.
        fields = text.rpartition(")")[2].split()
        if len(fields) < 10:
            return None, None
        return int(fields[7]), int(fields[9])

    def _process_cgroup(self, pid: int) -> str:
        text = read_text(self._proc / str(pid) / "cgroup") or ""
        for line in text.splitlines():
            if line.startswith("0::"):
                return line[3:]
        return ""

    def _cgroup_root(self) -> Path:
        return self._sys / "fs" / "cgroup"

    def _collect_cgroups(self, now: float) -> list[dict[str, Any]]:
        """Walk the cgroup v2 hierarchy. Hosts on cgroup v1 report no cgroups."""
        root = self._cgroup_root()
        if not (root / "cgroup.controllers").exists():
            return []
        cgroups = []
        for dirpath, _dirnames, _filenames in os.walk(root):
            path = Path(dirpath)
            relative = path.relative_to(root).as_posix()
            full_path = "/" if relative == "." else f"/{relative}"
            cgroups.append(self._collect_cgroup(now, path, full_path))
        return cgroups

    def _collect_cgroup(self, now: float, path: Path, full_path: str) -> dict[str, Any]:
        cpu = parse_flat(read_text(path / "cpu.stat") or "")
        mem = parse_flat(read_text(path / "memory.stat") or "")
        io = parse_io_stat(read_text(path / "io.stat") or "")

        cumulative: dict[str, float | None] = {
            # usec per second / 10_000 = percent of one CPU
            "cpu_usage": _scaled(cpu.get("usage_usec"), 1e-4),
            "cpu_user": _scaled(cpu.get("user_usec"), 1e-4),
            "cpu_system": _scaled(cpu.get("system_usec"), 1e-4),
            "cpu_nr_periods": cpu.get("nr_periods"),
            "cpu_nr_throttled": cpu.get("nr_throttled"),
            "cpu_throttled": _scaled(cpu.get("throttled_usec"), 1e-4),
        }
        for event in CGROUP_MEM_EVENTS:
            cumulative[f"mem_{event}"] = mem.get(event)
        for name, key in CGROUP_IO.items():
            cumulative[name] = io.get(key)

        row: dict[str, Any] = {
            "name": path.name if full_path != "/" else "<root>",
            "full_path": full_path,
            "mem_total": _int_file(path / "memory.current"),
            "mem_swap": _int_file(path / "memory.swap.current"),
            "mem_high": _int_file(path / "memory.high"),
        }
        for key in CGROUP_MEM_STAT:
            row[f"mem_{key}"] = mem.get(key)
        row.update(self._rates.rates(("cgroup", full_path), now, cumulative))

        for resource, label in (("cpu", "cpu"), ("memory", "mem"), ("io", "io")):
            pressure = parse_pressure(read_text(path / f"{resource}.pressure") or "")
            row[f"pressure_{label}_some"] = pressure.get("some")
            if resource != "cpu":
                row[f"pressure_{label}_full"] = pressure.get("full")
        return row

    def _collect_ifaces(self, now: float) -> list[dict[str, Any]]:
        """Per-interface counters from psutil plus the extra sysfs statistics."""
        ifaces = []
        for name, io in (psutil.net_io_counters(pernic=True) or {}).items():
            row: dict[str, Any] = {
                "interface": name,
                "rx_bytes": io.bytes_recv,
                "rx_packets": io.packets_recv,
                "rx_errors": io.errin,
                "rx_dropped": io.dropin,
                "tx_bytes": io.bytes_sent,
                "tx_packets": io.packets_sent,
                "tx_errors": io.errout,
                "tx_dropped": io.dropout,
            }
            statistics = self._sys / "class" / "net" / name / "statistics"
            for stat in IFACE_STATISTICS:
                row[stat] = _int_file(statistics / stat)
            rates = self._rates.rates(
                ("iface", name),
                now,
                {
                    "rx_bytes_per_sec": io.bytes_recv,
                    "tx_bytes_per_sec": io.bytes_sent,
                    "rx_packets_per_sec": io.packets_recv,
                    "tx_packets_per_sec": io.packets_sent,
                },
            )
            row.update(rates)
            ifaces.append(row)
        return ifaces

    def _network_counters(self) -> dict[str, int | float]:
        """Merged counters of snmp, netstat and snmp6."""
        counters: dict[str, int | float] = {}
        counters.update(parse_snmp(read_text(self._proc / "net" / "snmp") or ""))
        counters.update(parse_snmp(read_text(self._proc / "net" / "netstat") or ""))
        counters.update(parse_flat(read_text(self._proc / "net" / "snmp6") or ""))
        return counters

    def _collect_network(self, now: float, counters: Mapping[str, float]) -> dict[str, Any]:
        network: dict[str, Any] = self._rates.rates(
            "network", now, {name: counters.get(key) for name, key in NETWORK_COUNTERS.items()}
        )
        network["ip_forwarding"] = counters.get("Ip.Forwarding")
        return network

    def _collect_transport(self, now: float, counters: Mapping[str, float]) -> dict[str, Any]:
        transport: dict[str, Any] = self._rates.rates(
            "transport",
            now,
            {name: counters.get(key) for name, key in TRANSPORT_COUNTERS.items()},
        )
        transport["tcp_curr_estab"] = counters.get("Tcp.CurrEstab")
        transport["tcp_retrans_segs"] = counters.get("Tcp.RetransSegs")
        return transport


def _scaled(value: float | None, factor: float) -> float | None:
    return value * factor if value is not None else None


def _int_file(path: Path) -> int | None:
    """Integer content of a single-value sysfs or cgroupfs file; ``max`` is None."""
    text = read_text(path)
    if text is None:
        return None
    value = text.strip()
    return int(value) if value.isdigit() else None


def record_samples(writer: StoreWriter, poll_rate: float, count: int | None = None) -> int:
    """
    Run a monitor and hand every sample to ``writer`` until ``count`` samples.

    Without ``count`` this runs until interrupted. Returns the number of
    samples written.
    """
    queue: Queue[Sample] = Queue()
    monitor = SystemMonitor(queue, poll_rate=poll_rate)
    written = 0
    monitor.start()
    try:
        while count is None or written < count:
            sample = queue.get()
            writer.append(sample)
            written += 1
            logger.debug("Recorded sample %d at %.0f", written, sample.timestamp)
    finally:
        monitor.stop()
    logger.info("Recorded %d samples", written)
    return written
