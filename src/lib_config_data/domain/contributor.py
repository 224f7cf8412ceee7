"""Contributor tree nodes.

Purpose
-------
A contributor is one node of the resolution tree: a wrapped existing property
source, a pending initial import, or something produced by an import. The
``kind`` tag says which; fields that do not apply to a kind stay ``None``.

Nodes are immutable. Every transformation returns a new node and leaves
untouched subtrees shared, so one tree can be re-processed under different
activation contexts without corrupting earlier snapshots.

Contents
--------
* :class:`Kind` – variant tag.
* :class:`ConfigDataProperties` – imports and activation predicate bound from
  a contributor's own source.
* :class:`Contributor` – the node, its factories and pure transformations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from .config_data import ConfigData, ConfigDataOption, ConfigDataResource, PropertySource
from .location import ConfigDataLocation
from .profiles import ActivationContext, ImportPhase, matches_profiles


class Kind(Enum):
    ROOT = "root"
    INITIAL_IMPORT = "initial-import"
    EXISTING = "existing"
    UNBOUND_IMPORT = "unbound-import"
    UNBOUND_PROFILE_SPECIFIC_IMPORT = "unbound-profile-specific-import"
    BOUND_IMPORT = "bound-import"
    EMPTY_LOCATION = "empty-location"


_UNBOUND = frozenset({Kind.UNBOUND_IMPORT, Kind.UNBOUND_PROFILE_SPECIFIC_IMPORT})


@dataclass(frozen=True, slots=True)
class ConfigDataProperties:
    """Engine-relevant properties bound from a single source.

    Examples
    --------
    >>> from lib_config_data.domain.profiles import Profiles
    >>> properties = ConfigDataProperties(on_profile=("prod",))
    >>> properties.is_active(None)
    False
    >>> properties.is_active(ActivationContext(Profiles.create(active=["dev"], default=None)))
    False
    >>> properties.is_active(ActivationContext(Profiles.create(active=["prod"], default=None)))
    True
    """

    imports: tuple[ConfigDataLocation, ...] = ()
    on_profile: tuple[str, ...] | None = None

    def without_imports(self) -> "ConfigDataProperties":
        return replace(self, imports=())

    def is_active(self, context: ActivationContext | None) -> bool:
        if self.on_profile is None:
            return True
        if context is None or context.profiles is None:
            return False
        return matches_profiles(self.on_profile, context.profiles.is_accepted)


@dataclass(frozen=True, eq=False)
class Contributor:
    """One node of the contributor tree (identity semantics)."""

    kind: Kind
    location: ConfigDataLocation | None = None
    resource: ConfigDataResource | None = None
    property_source: PropertySource | None = None
    properties: ConfigDataProperties | None = None
    options: frozenset[ConfigDataOption] = frozenset()
    from_profile_specific: bool = False
    children: Mapping[ImportPhase, tuple["Contributor", ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", MappingProxyType(dict(self.children)))

    # factories ---------------------------------------------------------

    @classmethod
    def of_root(cls, contributors: Iterable["Contributor"]) -> "Contributor":
        return cls(Kind.ROOT, children={ImportPhase.BEFORE_PROFILE_ACTIVATION: tuple(contributors)})

    @classmethod
    def of_initial_import(cls, location: ConfigDataLocation) -> "Contributor":
        return cls(Kind.INITIAL_IMPORT, properties=ConfigDataProperties(imports=(location,)))

    @classmethod
    def of_existing(cls, source: PropertySource) -> "Contributor":
        return cls(Kind.EXISTING, property_source=source)

    @classmethod
    def of_unbound_import(
        cls,
        location: ConfigDataLocation,
        resource: ConfigDataResource,
        profile_specific: bool,
        config_data: ConfigData,
        index: int,
    ) -> "Contributor":
        kind = Kind.UNBOUND_PROFILE_SPECIFIC_IMPORT if profile_specific else Kind.UNBOUND_IMPORT
        return cls(
            kind,
            location=location,
            resource=resource,
            property_source=config_data.property_sources[index],
            options=config_data.options,
            from_profile_specific=profile_specific,
        )

    @classmethod
    def of_empty_location(cls, location: ConfigDataLocation, profile_specific: bool) -> "Contributor":
        return cls(Kind.EMPTY_LOCATION, location=location, from_profile_specific=profile_specific)

    # queries -------------------------------------------------------------

    @property
    def imports(self) -> tuple[ConfigDataLocation, ...]:
        return self.properties.imports if self.properties is not None else ()

    @property
    def is_unbound(self) -> bool:
        return self.kind in _UNBOUND

    def has_option(self, option: ConfigDataOption) -> bool:
        return option in self.options

    @property
    def is_profile_specific(self) -> bool:
        return self.from_profile_specific or ConfigDataOption.PROFILE_SPECIFIC in self.options

    def is_active(self, context: ActivationContext | None) -> bool:
        """Return ``True`` when this node contributes under *context*."""

        if self.is_unbound:
            return False
        if self.is_profile_specific and (context is None or context.profiles is None):
            return False
        return self.properties is None or self.properties.is_active(context)

    def get_children(self, phase: ImportPhase) -> tuple["Contributor", ...]:
        return self.children.get(phase, ())

    def has_unprocessed_imports(self, phase: ImportPhase) -> bool:
        return bool(self.imports) and phase not in self.children

    # transformations -----------------------------------------------------

    def with_bound_properties(self, properties: ConfigDataProperties) -> "Contributor":
        """Return the bound counterpart of an unbound import."""

        if self.has_option(ConfigDataOption.IGNORE_IMPORTS):
            properties = properties.without_imports()
        return replace(self, kind=Kind.BOUND_IMPORT, properties=properties)

    def with_children(self, phase: ImportPhase, children: Iterable["Contributor"]) -> "Contributor":
        updated = dict(self.children)
        updated[phase] = tuple(children)
        return replace(self, children=updated)

    def with_replacement(self, existing: "Contributor", replacement: "Contributor") -> "Contributor":
        """Return a tree where *existing* (matched by identity) is swapped out."""

        if self is existing:
            return replacement
        changed = False
        updated: dict[ImportPhase, tuple[Contributor, ...]] = {}
        for phase, children in self.children.items():
            rebuilt = tuple(child.with_replacement(existing, replacement) for child in children)
            changed = changed or any(new is not old for new, old in zip(rebuilt, children))
            updated[phase] = rebuilt
        return replace(self, children=updated) if changed else self

    # iteration -----------------------------------------------------------

    def __iter__(self) -> Iterator["Contributor"]:
        """Yield the subtree in tree order.

        Children imported after profile activation come first, then children
        imported before it, then this node. Earlier nodes win on key conflicts.
        """

        for phase in (ImportPhase.AFTER_PROFILE_ACTIVATION, ImportPhase.BEFORE_PROFILE_ACTIVATION):
            for child in self.get_children(phase):
                yield from child
        yield self

    def iter_effective(self, context: ActivationContext | None) -> Iterator["Contributor"]:
        """Like iteration, but skip subtrees whose root is inactive."""

        if not self.is_active(context):
            return
        for phase in (ImportPhase.AFTER_PROFILE_ACTIVATION, ImportPhase.BEFORE_PROFILE_ACTIVATION):
            for child in self.get_children(phase):
                yield from child.iter_effective(context)
        yield self

    def __str__(self) -> str:
        detail = self.location if self.location is not None else (
            self.property_source.name if self.property_source is not None else None
        )
        return f"{self.kind.value} {detail}" if detail is not None else self.kind.value
