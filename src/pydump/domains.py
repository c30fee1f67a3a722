"""Field tables for the seven metric domains.

Each domain registry is built and frozen when this module is imported.
Fields are declared in the order ``--everything`` shows them.
"""

from datetime import datetime
from typing import Any

from pydump.models import Domain, Kind, Record, Unit
from pydump.registry import Accessor, DomainRegistry, FieldSpec, GroupSpec, install


def _value(name: str) -> Accessor:
    """Accessor returning the stored value called ``name``."""

    def accessor(record: Record) -> Any:
        return record.get(name)

    return accessor


def _sum_of(*names: str) -> Accessor:
    """Accessor summing the present values of ``names``, None if all are missing."""

    def accessor(record: Record) -> Any:
        present = [v for v in (record.get(n) for n in names) if v is not None]
        return sum(present) if present else None

    return accessor


def _timestamp(record: Record) -> float:
    return record.timestamp


def _datetime(record: Record) -> str:
    return datetime.fromtimestamp(record.timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _cpu_usage(record: Record) -> Any:
    usage = record.get("cpu_usage")
    if usage is None and record.get("cpu_idle") is not None:
        return 100.0 - record.get("cpu_idle")
    return usage


def _common(registry: DomainRegistry) -> None:
    registry.register(FieldSpec("timestamp", Kind.TIMESTAMP, _timestamp, width=12))
    registry.register(FieldSpec("datetime", Kind.TEXT, _datetime, width=19))


def _text(registry: DomainRegistry, name: str, width: int = 10) -> None:
    registry.register(FieldSpec(name, Kind.TEXT, _value(name), width=width))


def _numeric(
    registry: DomainRegistry,
    names: list[str],
    unit: Unit = Unit.NONE,
    group: str | None = None,
    kind: Kind = Kind.NUMERIC,
) -> None:
    for name in names:
        registry.register(FieldSpec(name, kind, _value(name), unit=unit, group=group))


def _group(
    registry: DomainRegistry,
    name: str,
    members: list[str],
    detail: list[str] | None = None,
) -> None:
    registry.register_group(GroupSpec(name, tuple(members), tuple(detail or ())))


def _prefixed(prefix: str, names: list[str]) -> list[str]:
    return [f"{prefix}_{name}" for name in names]


# System

SYSTEM_CPU = [
    "cpu_usage", "cpu_user", "cpu_idle", "cpu_system", "cpu_nice", "cpu_iowait",
    "cpu_irq", "cpu_softirq", "cpu_stolen", "cpu_guest", "cpu_guest_nice",
]
SYSTEM_MEM = [
    "mem_total", "mem_free", "mem_available", "mem_buffers", "mem_cached",
    "mem_swap_cached", "mem_active", "mem_inactive", "mem_anon", "mem_file",
    "mem_unevictable", "mem_mlocked", "mem_swap_total", "mem_swap_free", "mem_dirty",
    "mem_writeback", "mem_anon_pages", "mem_mapped", "mem_shmem", "mem_kreclaimable",
    "mem_slab", "mem_slab_reclaimable", "mem_slab_unreclaimable", "mem_kernel_stack",
    "mem_page_tables", "mem_anon_huge_pages", "mem_shmem_huge_pages",
    "mem_file_huge_pages", "mem_total_huge_pages", "mem_free_huge_pages",
    "mem_huge_page_size", "mem_cma_total", "mem_cma_free", "mem_vmalloc_total",
    "mem_vmalloc_used", "mem_vmalloc_chunk", "mem_direct_map_4k", "mem_direct_map_2m",
    "mem_direct_map_1g",
]
# Huge page totals are page counts, not bytes.
SYSTEM_MEM_COUNTS = {"mem_total_huge_pages", "mem_free_huge_pages"}
SYSTEM_VM = [
    "vm_pgpgin", "vm_pgpgout", "vm_pswpin", "vm_pswpout", "vm_psteal_kswapd",
    "vm_psteal_direct", "vm_pscan_kswapd", "vm_pscan_direct", "vm_oom_kill",
]
SYSTEM_STAT = [
    "total_interrupt_ct", "context_switches", "boot_time_epoch_secs",
    "total_procs", "running_procs", "blocked_procs",
]


def build_system() -> DomainRegistry:
    registry = DomainRegistry(
        Domain.SYSTEM, defaults=["hostname", "cpu", "mem", "vm"], supports_select=False
    )
    _common(registry)
    _text(registry, "hostname", width=20)
    _numeric(registry, SYSTEM_STAT, group="stat")
    registry.register(
        FieldSpec("cpu_usage", Kind.NUMERIC, _cpu_usage, unit=Unit.PERCENT, group="cpu")
    )
    _numeric(registry, SYSTEM_CPU[1:], Unit.PERCENT, group="cpu")
    for name in SYSTEM_MEM:
        unit = Unit.NONE if name in SYSTEM_MEM_COUNTS else Unit.BYTES
        _numeric(registry, [name], unit, group="mem")
    _numeric(registry, SYSTEM_VM[:-1], Unit.PER_SEC, group="vm")
    _numeric(registry, SYSTEM_VM[-1:], group="vm")

    _group(registry, "stat", SYSTEM_STAT)
    _group(registry, "cpu", ["cpu_usage", "cpu_user", "cpu_system"],
           [n for n in SYSTEM_CPU if n not in ("cpu_usage", "cpu_user", "cpu_system")])
    _group(registry, "mem", SYSTEM_MEM[:2], SYSTEM_MEM[2:])
    _group(registry, "vm", SYSTEM_VM)
    return registry


# Disk

DISK_OPS = ["bytes", "completed", "merged", "sectors"]


def _disk_fields(op: str) -> list[str]:
    return _prefixed(op, DISK_OPS) + [f"time_spend_{op}"]


def build_disk() -> DomainRegistry:
    registry = DomainRegistry(
        Domain.DISK, defaults=["name", "total", "major", "minor", "read", "write", "discard"]
    )
    _common(registry)
    _text(registry, "name", width=12)
    registry.register(
        FieldSpec(
            "total",
            Kind.NUMERIC,
            _sum_of("read_bytes", "write_bytes", "discard_bytes"),
            unit=Unit.BYTES_PER_SEC,
        )
    )
    _numeric(registry, ["major", "minor"])
    for op in ("read", "write", "discard"):
        _numeric(registry, [f"{op}_bytes"], Unit.BYTES_PER_SEC, group=op)
        _numeric(registry, _prefixed(op, DISK_OPS[1:]), Unit.PER_SEC, group=op)
        # Milliseconds spent per second of wall time.
        _numeric(registry, [f"time_spend_{op}"], group=op)
        _group(registry, op, _disk_fields(op))
    return registry


# Process


def build_process() -> DomainRegistry:
    registry = DomainRegistry(Domain.PROCESS, defaults=["pid", "comm", "cpu", "mem", "io"])
    _common(registry)
    _numeric(registry, ["pid", "ppid"])
    _text(registry, "comm", width=16)
    _text(registry, "state", width=10)
    _numeric(registry, ["uptime"], kind=Kind.DURATION)
    _text(registry, "cgroup", width=30)
    _text(registry, "cmdline", width=50)
    _numeric(registry, ["cpu_user", "cpu_sys"], Unit.PERCENT, group="cpu")
    _numeric(registry, ["cpu_threads"], group="cpu")
    _numeric(registry, ["cpu_total"], Unit.PERCENT, group="cpu")
    _numeric(registry, ["mem_rss"], Unit.BYTES, group="mem")
    _numeric(registry, ["mem_minorfaults", "mem_majorfaults"], Unit.PER_SEC, group="mem")
    _numeric(registry, ["io_read", "io_write"], Unit.BYTES_PER_SEC, group="io")
    registry.register(
        FieldSpec(
            "io_total",
            Kind.NUMERIC,
            _sum_of("io_read", "io_write"),
            unit=Unit.BYTES_PER_SEC,
            group="io",
        )
    )

    _group(registry, "cpu", ["cpu_total"], ["cpu_user", "cpu_sys", "cpu_threads"])
    _group(registry, "mem", ["mem_rss"], ["mem_minorfaults", "mem_majorfaults"])
    _group(registry, "io", ["io_read", "io_write"], ["io_total"])
    return registry


# Cgroup

CGROUP_MEM_BYTES = [
    "mem_total", "mem_swap", "mem_anon", "mem_file", "mem_kernel", "mem_slab",
    "mem_sock", "mem_shmem", "mem_file_mapped", "mem_file_dirty", "mem_file_writeback",
    "mem_anon_thp", "mem_inactive_anon", "mem_active_anon", "mem_inactive_file",
    "mem_active_file", "mem_unevictable", "mem_slab_reclaimable", "mem_slab_unreclaimable",
]
CGROUP_MEM_EVENTS = [
    "mem_pgfault", "mem_pgmajfault", "mem_workingset_refault", "mem_workingset_activate",
    "mem_workingset_nodereclaim", "mem_pgrefill", "mem_pgscan", "mem_pgsteal",
    "mem_pgactivate", "mem_pgdeactivate", "mem_pglazyfree", "mem_pglazyfreed",
    "mem_thp_fault_alloc", "mem_thp_collapse_alloc",
]
CGROUP_PRESSURE = [
    "pressure_cpu_some", "pressure_io_some", "pressure_io_full",
    "pressure_mem_full", "pressure_mem_some",
]


def build_cgroup() -> DomainRegistry:
    registry = DomainRegistry(
        Domain.CGROUP, defaults=["name", "cpu", "mem", "io", "pressure"]
    )
    _common(registry)
    _text(registry, "name", width=16)
    _text(registry, "full_path", width=40)
    _numeric(registry, ["cpu_usage", "cpu_user", "cpu_system"], Unit.PERCENT, group="cpu")
    _numeric(registry, ["cpu_nr_periods", "cpu_nr_throttled"], Unit.PER_SEC, group="cpu")
    _numeric(registry, ["cpu_throttled"], Unit.PERCENT, group="cpu")
    _numeric(registry, CGROUP_MEM_BYTES, Unit.BYTES, group="mem")
    _numeric(registry, CGROUP_MEM_EVENTS, Unit.PER_SEC, group="mem")
    _numeric(registry, ["mem_high"], Unit.BYTES, group="mem")
    _numeric(registry, ["io_read", "io_write"], Unit.BYTES_PER_SEC, group="io")
    _numeric(registry, ["io_rios", "io_wios"], Unit.PER_SEC, group="io")
    _numeric(registry, ["io_dbps"], Unit.BYTES_PER_SEC, group="io")
    _numeric(registry, ["io_diops"], Unit.PER_SEC, group="io")
    registry.register(
        FieldSpec(
            "io_total",
            Kind.NUMERIC,
            _sum_of("io_read", "io_write", "io_dbps"),
            unit=Unit.BYTES_PER_SEC,
            group="io",
        )
    )
    _numeric(registry, CGROUP_PRESSURE, Unit.PERCENT, group="pressure")

    _group(registry, "cpu", ["cpu_usage"],
           ["cpu_user", "cpu_system", "cpu_nr_periods", "cpu_nr_throttled", "cpu_throttled"])
    mem = CGROUP_MEM_BYTES + CGROUP_MEM_EVENTS + ["mem_high"]
    _group(registry, "mem", mem[:1], mem[1:])
    _group(registry, "io", ["io_read", "io_write"],
           ["io_rios", "io_wios", "io_dbps", "io_diops", "io_total"])
    _group(registry, "pressure", ["pressure_cpu_some", "pressure_mem_full", "pressure_io_full"],
           ["pressure_io_some", "pressure_mem_some"])
    return registry


# Iface

IFACE_RX = [
    "rx_bytes", "rx_compressed", "rx_crc_errors", "rx_dropped", "rx_errors",
    "rx_fifo_errors", "rx_frame_errors", "rx_length_errors", "rx_missed_errors",
    "rx_nohandler", "rx_over_errors", "rx_packets",
]
IFACE_TX = [
    "tx_bytes", "tx_aborted_errors", "tx_carrier_errors", "tx_compressed", "tx_dropped",
    "tx_errors", "tx_fifo_errors", "tx_heartbeat_errors", "tx_packets", "tx_window_errors",
]


def _split(names: list[str], leading: list[str]) -> tuple[list[str], list[str]]:
    return leading, [n for n in names if n not in leading]


def build_iface() -> DomainRegistry:
    registry = DomainRegistry(Domain.IFACE, defaults=["interface", "rate", "rx", "tx"])
    _common(registry)
    _text(registry, "interface", width=12)
    _numeric(registry, ["rx_bytes_per_sec", "tx_bytes_per_sec"], Unit.BYTES_PER_SEC, group="rate")
    registry.register(
        FieldSpec(
            "throughput_per_sec",
            Kind.NUMERIC,
            _sum_of("rx_bytes_per_sec", "tx_bytes_per_sec"),
            unit=Unit.BYTES_PER_SEC,
            group="rate",
        )
    )
    _numeric(registry, ["rx_packets_per_sec", "tx_packets_per_sec"], Unit.PER_SEC, group="rate")
    _numeric(registry, ["collisions", "multicast"])
    _numeric(registry, ["rx_bytes"], Unit.BYTES, group="rx")
    _numeric(registry, IFACE_RX[1:], group="rx")
    _numeric(registry, ["tx_bytes"], Unit.BYTES, group="tx")
    _numeric(registry, IFACE_TX[1:], group="tx")

    _group(registry, "rate", ["rx_bytes_per_sec", "tx_bytes_per_sec", "throughput_per_sec"],
           ["rx_packets_per_sec", "tx_packets_per_sec"])
    _group(registry, "rx", *_split(IFACE_RX, ["rx_bytes", "rx_dropped", "rx_errors"]))
    _group(registry, "tx", *_split(IFACE_TX, ["tx_bytes", "tx_dropped", "tx_errors"]))
    return registry


# Network

NETWORK_IP = _prefixed("ip", [
    "forwarding", "in_receives", "forw_datagrams", "in_discards", "in_delivers",
    "out_requests", "out_discards", "out_no_routes", "in_mcast", "out_mcast",
    "in_bcast", "out_bcast",
])
NETWORK_IP6 = _prefixed("ip6", [
    "in_receives", "forw_datagrams", "in_discards", "in_delivers", "out_requests",
    "in_no_routes", "out_no_routes", "in_hdr_err", "in_addr_err", "in_mcast",
    "out_mcast", "in_bcast", "out_bcast",
])
ICMP_NAMES = [
    "in_msgs", "in_errs", "in_dest_unreachs", "out_msg", "out_errs", "out_dest_unreachs",
]
NETWORK_ICMP = _prefixed("icmp", ICMP_NAMES)
NETWORK_ICMP6 = _prefixed("icmp6", ICMP_NAMES)


def build_network() -> DomainRegistry:
    registry = DomainRegistry(Domain.NETWORK, defaults=["ip", "ip6", "icmp", "icmp6"])
    _common(registry)
    for group, names in (
        ("ip", NETWORK_IP),
        ("ip6", NETWORK_IP6),
        ("icmp", NETWORK_ICMP),
        ("icmp6", NETWORK_ICMP6),
    ):
        for name in names:
            # ip_forwarding is the kernel's forwarding setting, not a counter.
            unit = Unit.NONE if name == "ip_forwarding" else Unit.PER_SEC
            _numeric(registry, [name], unit, group=group)
        _group(registry, group, names)
    return registry


# Transport

TRANSPORT_TCP = _prefixed("tcp", [
    "active_opens", "passive_opens", "attempt_fails", "estab_reset", "curr_estab",
    "in_segs", "out_segs", "retrans_segs_per_sec", "retrans_segs", "in_errs",
    "out_rsts", "in_csum_errs",
])
# Gauges and running totals, everything else in tcp is a per-second rate.
TRANSPORT_TCP_PLAIN = {"tcp_curr_estab", "tcp_retrans_segs"}
UDP_NAMES = [
    "in_datagrams", "no_ports", "in_errs", "out_datagrams", "recv_buf_errs",
    "snd_buf_errs", "ignored_multi",
]
TRANSPORT_UDP = _prefixed("udp", UDP_NAMES)
TRANSPORT_UDP6 = _prefixed("udp6", UDP_NAMES[:-1] + ["in_csum_errs", "ignored_multi"])


def build_transport() -> DomainRegistry:
    registry = DomainRegistry(Domain.TRANSPORT, defaults=["tcp", "udp", "udp6"])
    _common(registry)
    for name in TRANSPORT_TCP:
        unit = Unit.NONE if name in TRANSPORT_TCP_PLAIN else Unit.PER_SEC
        _numeric(registry, [name], unit, group="tcp")
    _numeric(registry, TRANSPORT_UDP, Unit.PER_SEC, group="udp")
    _numeric(registry, TRANSPORT_UDP6, Unit.PER_SEC, group="udp6")
    _group(registry, "tcp", TRANSPORT_TCP)
    _group(registry, "udp", TRANSPORT_UDP)
    _group(registry, "udp6", TRANSPORT_UDP6)
    return registry


SYSTEM = install(build_system())
DISK = install(build_disk())
PROCESS = install(build_process())
CGROUP = install(build_cgroup())
IFACE = install(build_iface())
NETWORK = install(build_network())
TRANSPORT = install(build_transport())
