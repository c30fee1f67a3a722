"""Turns a selection request into an ordered list of fields."""

import logging
from collections.abc import Iterable

from pydump.errors import UnknownFieldError
from pydump.models import SelectionRequest
from pydump.registry import DomainRegistry, FieldSpec, GroupSpec

logger = logging.getLogger(__name__)


def _expand(
    registry: DomainRegistry, names: Iterable[str], detail: bool
) -> list[FieldSpec]:
    expanded: list[FieldSpec] = []
    for name in names:
        entry = registry.lookup(name)
        if entry is None:
            raise UnknownFieldError(name, registry.domain.value)
        if isinstance(entry, GroupSpec):
            expanded.extend(registry.field(member) for member in entry.expand(detail))
        else:
            expanded.append(entry)
    return expanded


def _dedupe(fields: Iterable[FieldSpec]) -> list[FieldSpec]:
    seen: set[str] = set()
    unique: list[FieldSpec] = []
    for spec in fields:
        if spec.name not in seen:
            seen.add(spec.name)
            unique.append(spec)
    return unique


def resolve(registry: DomainRegistry, request: SelectionRequest) -> list[FieldSpec]:
    """
    Resolve ``request`` against ``registry``.

    ``everything`` wins over ``default``, which wins over an explicit field
    list. Group names expand in place to their members, plus their detail
    members when ``detail`` is set. Duplicates are dropped keeping the first
    mention.

    Raises:
        UnknownFieldError: An explicit name is neither a field nor a group.
    """
    if request.everything:
        fields = list(registry.fields)
    elif request.default:
        fields = _expand(registry, registry.defaults, request.detail)
    else:
        fields = _expand(registry, request.fields or (), request.detail)

    resolved = _dedupe(fields)
    logger.debug(
        "Resolved %d fields for %s: %s",
        len(resolved),
        registry.domain.value,
        ", ".join(spec.name for spec in resolved),
    )
    return resolved
