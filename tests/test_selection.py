"""Tests for the selection resolver."""

import pytest

from pydump.errors import UnknownFieldError
from pydump.models import Domain, SelectionRequest
from pydump.registry import get_registry
from pydump.selection import resolve


def names(fields) -> list[str]:
    return [f.name for f in fields]


def _dedupe(items) -> list[str]:
    return list(dict.fromkeys(items))


@pytest.mark.parametrize("domain", list(Domain))
class TestGroupSelection:
    """Group expansion holds for every group of every domain."""

    def test_group_without_detail_yields_members(self, domain):
        """Test group without detail yields members."""
        registry = get_registry(domain)
        for group in registry.groups:
            resolved = resolve(registry, SelectionRequest(fields=(group.name,)))
            assert names(resolved) == _dedupe(group.members)

    def test_group_with_detail_adds_detail_members(self, domain):
        """Test group with detail adds detail members."""
        registry = get_registry(domain)
        for group in registry.groups:
            resolved = resolve(registry, SelectionRequest(fields=(group.name,), detail=True))
            assert names(resolved) == _dedupe(group.members + group.detail_members)

    def test_everything_yields_every_field_once(self, domain):
        """Test everything yields every field once."""
        registry = get_registry(domain)
        expected = [f.name for f in registry.fields]

        for detail in (False, True):
            resolved = resolve(registry, SelectionRequest(everything=True, detail=detail))
            assert names(resolved) == expected

    def test_unknown_field_is_rejected(self, domain):
        """Test unknown field is rejected."""
        registry = get_registry(domain)

        with pytest.raises(UnknownFieldError) as excinfo:
            resolve(registry, SelectionRequest(fields=("timestamp", "bogus")))

        assert excinfo.value.name == "bogus"
        assert excinfo.value.domain == domain.value


class TestResolve:
    """Precedence, ordering and deduplication."""

    def test_explicit_fields_keep_order(self):
        """Test explicit fields keep order."""
        registry = get_registry(Domain.PROCESS)

        resolved = resolve(registry, SelectionRequest(fields=("comm", "pid", "cpu")))

        assert names(resolved) == ["comm", "pid", "cpu_total"]

    def test_group_expands_in_place(self):
        """Test group expands in place."""
        registry = get_registry(Domain.PROCESS)

        resolved = resolve(registry, SelectionRequest(fields=("pid", "io", "comm")))

        assert names(resolved) == ["pid", "io_read", "io_write", "comm"]

    def test_duplicates_keep_first_mention(self):
        """Test duplicates keep first mention."""
        registry = get_registry(Domain.PROCESS)

        resolved = resolve(
            registry, SelectionRequest(fields=("io_write", "io", "pid", "IO_READ"))
        )

        assert names(resolved) == ["io_write", "io_read", "pid"]

    def test_names_are_case_insensitive(self):
        """Test names are case insensitive."""
        registry = get_registry(Domain.DISK)

        resolved = resolve(registry, SelectionRequest(fields=("Name", "READ_BYTES")))

        assert names(resolved) == ["name", "read_bytes"]

    def test_default_overrides_explicit_fields(self):
        """Test default overrides explicit fields."""
        registry = get_registry(Domain.PROCESS)

        resolved = resolve(registry, SelectionRequest(fields=("cmdline",), default=True))

        assert names(resolved) == ["pid", "comm", "cpu_total", "mem_rss", "io_read", "io_write"]

    def test_default_with_detail(self):
        """Test --default with --detail adds detail members."""
        registry = get_registry(Domain.PROCESS)

        resolved = resolve(registry, SelectionRequest(default=True, detail=True))

        assert names(resolved) == [
            "pid", "comm",
            "cpu_total", "cpu_user", "cpu_sys", "cpu_threads",
            "mem_rss", "mem_minorfaults", "mem_majorfaults",
            "io_read", "io_write", "io_total",
        ]

    def test_everything_overrides_default_and_fields(self):
        """Test everything overrides default and fields."""
        registry = get_registry(Domain.DISK)

        resolved = resolve(
            registry, SelectionRequest(fields=("name",), default=True, everything=True)
        )

        assert len(resolved) == len(registry.fields)

    def test_unknown_field_in_default_mode_is_ignored(self):
        """Explicit fields are not looked at when --default wins."""
        registry = get_registry(Domain.DISK)

        resolved = resolve(registry, SelectionRequest(fields=("bogus",), default=True))

        assert names(resolved)[0] == "name"

    def test_empty_selection_is_valid(self):
        """Test empty selection is valid."""
        registry = get_registry(Domain.DISK)

        assert resolve(registry, SelectionRequest(fields=())) == []
        assert resolve(registry, SelectionRequest()) == []


class TestSystemDefault:
    def test_system_default_without_detail(self):
        """--default on system shows hostname, then cpu, mem and vm members."""
        registry = get_registry(Domain.SYSTEM)

        resolved = resolve(registry, SelectionRequest(default=True))

        expected = ["hostname"]
        for group in ("cpu", "mem", "vm"):
            expected.extend(registry.group(group).members)
        assert names(resolved) == expected
        assert names(resolved)[:6] == [
            "hostname", "cpu_usage", "cpu_user", "cpu_system", "mem_total", "mem_free",
        ]
        assert "cpu_idle" not in names(resolved)
