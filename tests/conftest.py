"""Shared fixtures for pydump tests."""

from collections.abc import Iterator
from typing import Any

import pytest

from pydump.errors import SourceError
from pydump.models import Domain, Record, RecordBatch


def make_batch(domain: Domain, timestamp: float, rows: list[dict[str, Any]]) -> RecordBatch:
    """Build a batch whose records all share ``timestamp``."""
    return RecordBatch(domain, timestamp, [Record(timestamp, row) for row in rows])


class ListSource:
    """In-memory sample source yielding prepared batches."""

    def __init__(self, batches: list[RecordBatch], fail_after: int | None = None) -> None:
        self._batches = batches
        self._fail_after = fail_after
        self.pulled = 0

    def batches(self, domain: Domain, begin: float, end: float) -> Iterator[RecordBatch]:
        for batch in self._batches:
            if self._fail_after is not None and self.pulled >= self._fail_after:
                raise SourceError("store went away")
            if batch.domain is domain and begin <= batch.timestamp <= end:
                self.pulled += 1
                yield batch


@pytest.fixture
def disk_source() -> ListSource:
    """Two slices of two disks each."""
    return ListSource(
        [
            make_batch(
                Domain.DISK,
                1000.0,
                [
                    {"name": "sda", "read_bytes": 100, "write_bytes": 10},
                    {"name": "sdb", "read_bytes": 500, "write_bytes": 20},
                ],
            ),
            make_batch(
                Domain.DISK,
                1005.0,
                [
                    {"name": "sda", "read_bytes": 900, "write_bytes": 30},
                    {"name": "sdb", "read_bytes": 50, "write_bytes": 40},
                ],
            ),
        ]
    )
