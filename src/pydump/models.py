"""Data models for pydump."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Domain(Enum):
    """Metric domains that can be dumped."""

    SYSTEM = "system"
    DISK = "disk"
    PROCESS = "process"
    CGROUP = "cgroup"
    IFACE = "iface"
    NETWORK = "network"
    TRANSPORT = "transport"


class Kind(Enum):
    """Value kind of a field, drives ordering and rendering."""

    NUMERIC = "numeric"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    DURATION = "duration"


class Unit(Enum):
    """Display unit of a numeric field in human-oriented formats."""

    NONE = "none"
    BYTES = "bytes"
    BYTES_PER_SEC = "bytes_per_sec"
    PERCENT = "percent"
    PER_SEC = "per_sec"


class SortOrder(Enum):
    """Row ordering requested for the select field."""

    NONE = "none"
    ASCENDING = "ascending"
    DESCENDING = "descending"


class OutputFormat(Enum):
    """Output formats supported by the renderer."""

    RAW = "raw"
    CSV = "csv"
    JSON = "json"
    KV = "kv"


@dataclass(slots=True, frozen=True)
class Record:
    """One row of one domain at one point in time."""

    timestamp: float
    values: Mapping[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        """Return the raw value stored under ``name`` or None."""
        return self.values.get(name)


@dataclass(slots=True, frozen=True)
class RecordBatch:
    """All records of a domain for a single time slice."""

    domain: Domain
    timestamp: float
    records: list[Record]


@dataclass(slots=True, frozen=True)
class SelectionRequest:
    """Which fields the operator asked to see."""

    fields: tuple[str, ...] | None = None
    default: bool = False
    everything: bool = False
    detail: bool = False


@dataclass(slots=True, frozen=True)
class DumpRequest:
    """A validated description of one dump invocation."""

    domain: Domain
    selection: SelectionRequest
    begin: float
    end: float
    select: str | None = None
    filter_pattern: str | None = None
    sort: bool = False
    rsort: bool = False
    top: int = 0
    output_format: OutputFormat = OutputFormat.RAW
    repeat_title: int | None = None
    disable_title: bool = False
    output: str | None = None

    @property
    def order(self) -> SortOrder:
        """Ordering derived from the sort flags."""
        if self.rsort:
            return SortOrder.DESCENDING
        if self.sort:
            return SortOrder.ASCENDING
        return SortOrder.NONE


@dataclass(slots=True)
class Sample:
    """Whole-host snapshot taken at one point in time."""

    timestamp: float
    hostname: str = ""
    system: dict[str, Any] = field(default_factory=dict)
    network: dict[str, Any] = field(default_factory=dict)
    transport: dict[str, Any] = field(default_factory=dict)
    disks: list[dict[str, Any]] = field(default_factory=list)
    processes: list[dict[str, Any]] = field(default_factory=list)
    cgroups: list[dict[str, Any]] = field(default_factory=list)
    ifaces: list[dict[str, Any]] = field(default_factory=list)

    def rows(self, domain: Domain) -> list[dict[str, Any]]:
        """Raw values of every row ``domain`` has in this sample."""
        if domain is Domain.SYSTEM:
            return [{**self.system, "hostname": self.hostname}]
        if domain is Domain.NETWORK:
            return [self.network]
        if domain is Domain.TRANSPORT:
            return [self.transport]
        return {
            Domain.DISK: self.disks,
            Domain.PROCESS: self.processes,
            Domain.CGROUP: self.cgroups,
            Domain.IFACE: self.ifaces,
        }[domain]

    def batch(self, domain: Domain) -> RecordBatch:
        """The time slice of ``domain`` contained in this sample."""
        records = [Record(self.timestamp, values) for values in self.rows(domain)]
        return RecordBatch(domain, self.timestamp, records)
