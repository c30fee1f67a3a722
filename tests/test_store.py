"""Tests for the JSON-lines sample store and time parsing."""

from datetime import datetime

import pytest

from pydump.errors import RequestValidationError, SourceError
from pydump.models import Domain, Sample
from pydump.store import StoreSource, StoreWriter, parse_time, sample_from_dict, sample_to_dict

NOW = datetime(2024, 5, 1, 12, 0, 0)


class TestParseTime:
    """Tests for parse_time."""

    def test_now(self):
        """Test 'now' is the current time."""
        assert parse_time("now", now=NOW) == NOW.timestamp()

    def test_epoch_seconds(self):
        """Test plain numbers are epoch seconds."""
        assert parse_time("1700000000", now=NOW) == 1700000000.0
        assert parse_time("1700000000.5", now=NOW) == 1700000000.5

    @pytest.mark.parametrize(
        "text,seconds",
        [("30s ago", 30), ("10m ago", 600), ("2h ago", 7200), ("1 day ago", 86400), ("3 days ago", 259200)],
    )
    def test_relative(self, text, seconds):
        """Test relative times count back from now."""
        assert parse_time(text, now=NOW) == NOW.timestamp() - seconds

    def test_clock_time_is_today(self):
        """Test clock time is today."""
        assert parse_time("08:30", now=NOW) == datetime(2024, 5, 1, 8, 30).timestamp()
        assert parse_time("08:30:15", now=NOW) == datetime(2024, 5, 1, 8, 30, 15).timestamp()

    def test_iso_date(self):
        """Test ISO dates with and without a time."""
        assert parse_time("2024-04-30", now=NOW) == datetime(2024, 4, 30).timestamp()
        assert parse_time("2024-04-30 23:15:00", now=NOW) == datetime(2024, 4, 30, 23, 15).timestamp()

    def test_invalid_clock_time(self):
        """Test an out of range clock time is rejected."""
        with pytest.raises(RequestValidationError):
            parse_time("25:00", now=NOW)

    def test_garbage(self):
        """Test unrecognized text is rejected."""
        with pytest.raises(RequestValidationError, match="unrecognized"):
            parse_time("yesterday-ish", now=NOW)


def test_sample_dict_round_trip():
    """Test sample dict round trip."""
    sample = Sample(
        timestamp=5.0,
        hostname="web1",
        system={"cpu_idle": 90.0},
        disks=[{"name": "sda", "read_bytes": 1.5}],
    )

    assert sample_from_dict(sample_to_dict(sample)) == sample


def test_sample_without_timestamp_is_rejected():
    """Test sample without timestamp is rejected."""
    with pytest.raises(ValueError, match="timestamp"):
        sample_from_dict({"hostname": "web1"})


@pytest.fixture
def store_path(tmp_path):
    path = tmp_path / "data" / "store.jsonl"
    with StoreWriter(path) as writer:
        for ts in (100.0, 105.0, 110.0, 115.0):
            writer.append(Sample(timestamp=ts, hostname="web1", disks=[{"name": "sda", "read_bytes": ts}]))
    return path


class TestStoreWriter:
    """Tests for StoreWriter."""

    def test_creates_parent_directories(self, store_path):
        """Test the writer creates missing directories."""
        assert store_path.exists()
        assert len(store_path.read_text().splitlines()) == 4

    def test_appends_to_existing_store(self, store_path):
        """Test appends to existing store."""
        with StoreWriter(store_path) as writer:
            writer.append(Sample(timestamp=120.0))

        timestamps = [s.timestamp for s in StoreSource(store_path).samples(0, 1000)]
        assert timestamps == [100.0, 105.0, 110.0, 115.0, 120.0]

    def test_append_requires_open(self, tmp_path):
        """Test append on a closed writer fails."""
        writer = StoreWriter(tmp_path / "store.jsonl")

        with pytest.raises(RuntimeError):
            writer.append(Sample(timestamp=1.0))


class TestStoreSource:
    """Tests for StoreSource."""

    def test_range_is_inclusive(self, store_path):
        """Test both ends of the range are included."""
        timestamps = [s.timestamp for s in StoreSource(store_path).samples(105.0, 110.0)]

        assert timestamps == [105.0, 110.0]

    def test_batches_for_domain(self, store_path):
        """Test batches carry one domain's rows per sample."""
        batches = list(StoreSource(store_path).batches(Domain.DISK, 0, 107))

        assert [b.timestamp for b in batches] == [100.0, 105.0]
        assert all(b.domain is Domain.DISK for b in batches)
        assert batches[1].records[0].get("read_bytes") == 105.0

    def test_system_batches_carry_hostname(self, store_path):
        """Test system batches carry hostname."""
        batch = next(StoreSource(store_path).batches(Domain.SYSTEM, 0, 1000))

        assert batch.records[0].get("hostname") == "web1"

    def test_empty_range(self, store_path):
        """Test a range without samples yields nothing."""
        assert list(StoreSource(store_path).batches(Domain.DISK, 200, 300)) == []

    def test_batches_are_lazy(self, store_path):
        """Test lines past the first batch are read on demand."""
        with store_path.open("a") as handle:
            handle.write("not json\n")

        batches = StoreSource(store_path).batches(Domain.DISK, 0, 1000)
        first = next(batches)

        assert first.timestamp == 100.0

    def test_corrupt_line(self, store_path):
        """Test a corrupt line fails with its line number."""
        lines = store_path.read_text().splitlines()
        lines.insert(2, "{broken")
        store_path.write_text("\n".join(lines) + "\n")

        with pytest.raises(SourceError, match=":3"):
            list(StoreSource(store_path).batches(Domain.DISK, 0, 1000))

    def test_blank_lines_are_skipped(self, store_path):
        """Test blank lines are skipped."""
        store_path.write_text(store_path.read_text() + "\n\n")

        assert len(list(StoreSource(store_path).samples(0, 1000))) == 4

    def test_missing_store(self, tmp_path):
        """Test a missing store raises SourceError."""
        with pytest.raises(SourceError, match="cannot open store"):
            list(StoreSource(tmp_path / "missing.jsonl").batches(Domain.DISK, 0, 1))
