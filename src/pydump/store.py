"""JSON-lines sample store and time range parsing.

The store is an append-only file holding one whole-host sample per line, in
the order samples were taken. ``StoreSource`` replays it one time slice at a
time; ``StoreWriter`` appends to it.
"""

import json
import logging
import re
from collections.abc import Iterator
from dataclasses import asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

from pydump.errors import RequestValidationError, SourceError
from pydump.models import Domain, RecordBatch, Sample

logger = logging.getLogger(__name__)

_RELATIVE = re.compile(
    r"^(\d+)\s*(s|sec|secs|m|min|mins|h|hr|hrs|d|day|days)\s+ago$", re.IGNORECASE
)
_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_EPOCH = re.compile(r"^\d+(\.\d+)?$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_time(text: str, now: datetime | None = None) -> float:
    """
    Parse a human-entered point in time into epoch seconds.

    Accepts ``now``, epoch seconds, ``HH:MM[:SS]`` (today, local time),
    ``YYYY-MM-DD[ HH:MM[:SS]]`` and other ISO-8601 forms, and relative times
    such as ``10m ago`` or ``2 days ago``.

    Raises:
        RequestValidationError: The text matches none of these forms.
    """
    now = now or datetime.now()
    value = text.strip()

    if value.lower() == "now":
        return now.timestamp()
    if _EPOCH.match(value):
        return float(value)

    relative = _RELATIVE.match(value)
    if relative:
        amount = int(relative.group(1))
        unit = relative.group(2)[0].lower()
        return (now - timedelta(seconds=amount * _UNIT_SECONDS[unit])).timestamp()

    clock = _CLOCK.match(value)
    if clock:
        hour, minute, second = (int(part or 0) for part in clock.groups())
        try:
            return now.replace(
                hour=hour, minute=minute, second=second, microsecond=0
            ).timestamp()
        except ValueError as e:
            raise RequestValidationError(f"invalid time '{text}': {e}") from e

    try:
        return datetime.fromisoformat(value).timestamp()
    except ValueError:
        raise RequestValidationError(f"unrecognized time '{text}'") from None


class SampleSource(Protocol):
    """Anything that can produce time slices of one domain."""

    def batches(self, domain: Domain, begin: float, end: float) -> Iterator[RecordBatch]:
        """Yield batches in chronological order; raise SourceError on failure."""
        ...


def sample_to_dict(sample: Sample) -> dict[str, Any]:
    return asdict(sample)


def sample_from_dict(data: dict[str, Any]) -> Sample:
    """Build a Sample from one decoded store line."""
    if "timestamp" not in data:
        raise ValueError("missing 'timestamp'")
    return Sample(
        timestamp=float(data["timestamp"]),
        hostname=data.get("hostname") or "",
        system=data.get("system") or {},
        network=data.get("network") or {},
        transport=data.get("transport") or {},
        disks=data.get("disks") or [],
        processes=data.get("processes") or [],
        cgroups=data.get("cgroups") or [],
        ifaces=data.get("ifaces") or [],
    )


class StoreSource:
    """Replays samples from a JSON-lines store file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def samples(self, begin: float, end: float) -> Iterator[Sample]:
        """Yield stored samples whose timestamp lies in ``[begin, end]``."""
        try:
            handle = self.path.open("r", encoding="utf-8")
        except OSError as e:
            raise SourceError(f"cannot open store '{self.path}': {e}") from e

        with handle:
            line_number = 0
            try:
                for line_number, line in enumerate(handle, start=1):
                    if not line.strip():
                        continue
                    try:
                        sample = sample_from_dict(json.loads(line))
                    except (ValueError, TypeError, AttributeError) as e:
                        raise SourceError(
                            f"corrupt sample at {self.path}:{line_number}: {e}"
                        ) from e
                    if sample.timestamp < begin:
                        continue
                    if sample.timestamp > end:
                        break
                    yield sample
            except OSError as e:
                raise SourceError(
                    f"failed reading store '{self.path}' after line {line_number}: {e}"
                ) from e

    def batches(self, domain: Domain, begin: float, end: float) -> Iterator[RecordBatch]:
        for sample in self.samples(begin, end):
            yield sample.batch(domain)


class StoreWriter:
    """Appends samples to a JSON-lines store file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._handle = None

    def __enter__(self) -> "StoreWriter":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("a", encoding="utf-8")
        except OSError as e:
            raise SourceError(f"cannot open store '{self.path}' for writing: {e}") from e

    def append(self, sample: Sample) -> None:
        """Write one sample and flush it."""
        if self._handle is None:
            raise RuntimeError("StoreWriter is not open")
        try:
            self._handle.write(json.dumps(sample_to_dict(sample)) + "\n")
            self._handle.flush()
        except OSError as e:
            raise SourceError(f"failed writing store '{self.path}': {e}") from e

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
