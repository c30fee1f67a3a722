"""Per-domain field registries.

A registry maps stable, lower-case field names to typed accessors and
groups them into named bundles. Registries are filled once at import time
by :mod:`pydump.domains` and frozen; after that they are only read.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydump.models import Domain, Kind, Record, Unit

Accessor = Callable[[Record], Any]


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """A single named, typed value derivable from a record."""

    name: str
    kind: Kind
    accessor: Accessor
    unit: Unit = Unit.NONE
    group: str | None = None
    width: int = 10

    def value(self, record: Record) -> Any:
        """Return the typed value of this field for ``record``."""
        return self.accessor(record)


@dataclass(slots=True, frozen=True)
class GroupSpec:
    """A named bundle of fields shown together."""

    name: str
    members: tuple[str, ...]
    detail_members: tuple[str, ...] = ()

    def expand(self, detail: bool) -> tuple[str, ...]:
        """Member names, plus detail members when ``detail`` is set."""
        if detail:
            return self.members + self.detail_members
        return self.members


class DomainRegistry:
    """Ordered fields and groups of one metric domain."""

    def __init__(
        self,
        domain: Domain,
        defaults: Iterable[str] = (),
        supports_select: bool = True,
    ) -> None:
        """
        Initialize an empty registry.

        Args:
            domain: The domain this registry describes.
            defaults: Field and group names shown by ``--default``.
            supports_select: Whether ``--select`` (and so filter, sort and
                top) is meaningful for this domain.
        """
        self.domain = domain
        self.supports_select = supports_select
        self._defaults = tuple(name.lower() for name in defaults)
        self._fields: dict[str, FieldSpec] = {}
        self._groups: dict[str, GroupSpec] = {}
        self._frozen = False

    @property
    def fields(self) -> tuple[FieldSpec, ...]:
        """All fields in declaration order."""
        return tuple(self._fields.values())

    @property
    def groups(self) -> tuple[GroupSpec, ...]:
        """All groups in declaration order."""
        return tuple(self._groups.values())

    @property
    def defaults(self) -> tuple[str, ...]:
        """Names expanded by ``--default``."""
        return self._defaults

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_writable(self) -> None:
        if self._frozen:
            raise RuntimeError(f"{self.domain.value} registry is frozen")

    def register(self, spec: FieldSpec) -> FieldSpec:
        """Add a field. Names must be unique across fields and groups."""
        self._check_writable()
        name = spec.name.lower()
        if name in self._fields or name in self._groups:
            raise ValueError(f"duplicate name '{name}' in {self.domain.value}")
        self._fields[name] = spec
        return spec

    def register_group(self, spec: GroupSpec) -> GroupSpec:
        """Add a group whose members are already registered fields."""
        self._check_writable()
        name = spec.name.lower()
        if name in self._fields or name in self._groups:
            raise ValueError(f"duplicate name '{name}' in {self.domain.value}")
        for member in spec.members + spec.detail_members:
            if member not in self._fields:
                raise ValueError(
                    f"group '{name}' references unknown field '{member}' in {self.domain.value}"
                )
        self._groups[name] = spec
        return spec

    def freeze(self) -> None:
        """Reject further registration and check the default set."""
        for name in self._defaults:
            if self.lookup(name) is None:
                raise ValueError(f"default '{name}' is not registered in {self.domain.value}")
        self._frozen = True

    def lookup(self, name: str) -> FieldSpec | GroupSpec | None:
        """Case-insensitive lookup, fields first then groups."""
        key = name.lower()
        return self._fields.get(key) or self._groups.get(key)

    def field(self, name: str) -> FieldSpec | None:
        """Return the field called ``name``, ignoring groups."""
        return self._fields.get(name.lower())

    def group(self, name: str) -> GroupSpec | None:
        """Return the group called ``name``, ignoring fields."""
        return self._groups.get(name.lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __repr__(self) -> str:
        return (
            f"DomainRegistry({self.domain.value}, fields={len(self._fields)}, "
            f"groups={len(self._groups)})"
        )


_REGISTRIES: dict[Domain, DomainRegistry] = {}


def install(registry: DomainRegistry) -> DomainRegistry:
    """Freeze ``registry`` and make it the process-wide one for its domain."""
    registry.freeze()
    _REGISTRIES[registry.domain] = registry
    return registry


def get_registry(domain: Domain) -> DomainRegistry:
    """Return the registry of ``domain``."""
    # Importing the tables installs every registry.
    import pydump.domains  # noqa: F401

    return _REGISTRIES[domain]
