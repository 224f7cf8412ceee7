"""Read-only binder over property sources.

Purpose
-------
Look up dotted keys across an ordered set of property sources (first match
wins), substitute ``${key:default}`` placeholders, and convert the result into
the shapes the engine needs: strings, string lists, locations, profile groups.

Contents
--------
* :class:`PlaceholdersResolver` – protocol for placeholder substitution.
* :class:`PropertySourcesPlaceholdersResolver` – resolves against sources.
* :class:`Binder` – lookups, conversions, and the bound-key hook.
* :func:`to_string_list` – list conversion used by several bindings.

System Role
-----------
The pipeline builds binders over contributor subsets; resolvers read
``config.name`` through the binder they are handed. Any failure while binding
is wrapped in :class:`~lib_config_data.domain.errors.BindError` with the
original exception chained.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Protocol, Sequence, TypeVar

from ..domain.config_data import NotFoundAction, PropertySource, canonical_name
from ..domain.errors import BindError, ConfigError
from ..domain.location import ConfigDataLocation, parse_locations
from ..domain.placeholders import resolve_nested

T = TypeVar("T")

_INDEXED = re.compile(r"^(?P<name>.+)\[(?P<index>\d+)\]$")


class PlaceholdersResolver(Protocol):
    """Substitute placeholders inside a bound value."""

    def resolve_placeholders(self, value: object) -> object:
        """Return *value* with placeholders replaced."""


class PropertySourcesPlaceholdersResolver:
    """Resolve placeholders against an ordered list of property sources."""

    def __init__(self, sources: Iterable[PropertySource]) -> None:
        self._sources = tuple(sources)

    def resolve_placeholders(self, value: object) -> object:
        return resolve_nested(value, self._lookup)

    def _lookup(self, key: str) -> object | None:
        for source in self._sources:
            value = source.get(key)
            if value is not None:
                return value
        return None


def to_string_list(value: object) -> tuple[str, ...]:
    """Convert a bound value into a tuple of non-blank strings.

    >>> to_string_list("dev, , prod")
    ('dev', 'prod')
    >>> to_string_list(["a", 1])
    ('a', '1')
    """

    if isinstance(value, str):
        items: Sequence[object] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    elif isinstance(value, (int, float, bool)):
        items = [value]
    else:
        raise TypeError(f"cannot convert {type(value).__name__} to a list of strings")
    result: list[str] = []
    for item in items:
        if isinstance(item, (dict, list, tuple)):
            raise TypeError(f"cannot convert nested {type(item).__name__} to a string")
        text = str(item).strip()
        if text:
            result.append(text)
    return tuple(result)


class Binder:
    """First-match-wins lookups over property sources.

    Parameters
    ----------
    sources:
        Property sources ordered from highest to lowest precedence.
    placeholders:
        Resolver applied to every bound value; defaults to resolving against
        *sources* themselves.
    on_bound:
        Hook called with the property name and the source that supplied it
        after every successful bind; it may raise to veto the result.

    Examples
    --------
    >>> binder = Binder([
    ...     PropertySource("high", {"profiles.active": "dev,${extra}"}),
    ...     PropertySource("low", {"profiles.active": "prod", "extra": "eu"}),
    ... ])
    >>> binder.bind_string_list("profiles.active")
    ('dev', 'eu')
    >>> binder.bind("missing") is None
    True
    """

    def __init__(
        self,
        sources: Iterable[PropertySource],
        placeholders: PlaceholdersResolver | None = None,
        on_bound: Callable[[str, PropertySource], None] | None = None,
    ) -> None:
        self._sources = tuple(sources)
        self._placeholders = placeholders or PropertySourcesPlaceholdersResolver(self._sources)
        self._on_bound = on_bound

    @property
    def sources(self) -> tuple[PropertySource, ...]:
        return self._sources

    def bind(self, name: str, default: Any = None) -> Any:
        """Return the placeholder-resolved value of *name* or *default*."""

        result = self.bind_as(name, lambda value: value)
        return default if result is None else result

    def bind_as(self, name: str, converter: Callable[[Any], T]) -> T | None:
        """Bind *name* and convert it, ``None`` when unbound."""

        try:
            source, raw = self._find(name)
            if source is None:
                return None
            converted = converter(self._placeholders.resolve_placeholders(raw))
            if self._on_bound is not None:
                self._on_bound(name, source)
            return converted
        except BindError:
            raise
        except (ConfigError, TypeError, ValueError) as exc:
            raise BindError(name, str(exc)) from exc

    def bind_string_list(self, name: str) -> tuple[str, ...] | None:
        return self.bind_as(name, to_string_list)

    def bind_locations(self, name: str) -> tuple[ConfigDataLocation, ...] | None:
        """Bind *name* as locations, splitting ``;`` groups into members."""

        def convert(value: object) -> tuple[ConfigDataLocation, ...]:
            return tuple(member for location in parse_locations(value) for member in location.split())

        return self.bind_as(name, convert)

    def bind_not_found_action(self, name: str) -> NotFoundAction | None:
        return self.bind_as(name, NotFoundAction.parse)

    def bind_groups(self, prefix: str) -> dict[str, tuple[str, ...]]:
        """Bind every ``<prefix>.<group>`` entry as a string list.

        The first source that defines a group wins for that group.
        """

        wanted = canonical_name(prefix) + "."
        groups: dict[str, tuple[str, ...]] = {}
        for source in self._sources:
            for key in source.keys():
                canonical = canonical_name(key)
                if not canonical.startswith(wanted):
                    continue
                group = canonical[len(wanted) :]
                match = _INDEXED.match(group)
                if match is not None:
                    group = match.group("name")
                if group and group not in groups:
                    members = self.bind_string_list(f"{prefix}.{group}")
                    groups[group] = members or ()
        return groups

    def _find(self, name: str) -> tuple[PropertySource | None, object]:
        """Locate *name*; indexed keys (``name[0]``) bind as a list."""

        for source in self._sources:
            value = source.get(name)
            if value is not None:
                return source, value
            indexed = _indexed_values(source, name)
            if indexed:
                return source, indexed
        return None, None


def _indexed_values(source: PropertySource, name: str) -> list[object]:
    wanted = canonical_name(name)
    found: dict[int, object] = {}
    for key in source.keys():
        match = _INDEXED.match(canonical_name(key))
        if match is not None and match.group("name") == wanted:
            found[int(match.group("index"))] = source.properties[key]
    return [found[index] for index in sorted(found)]
