"""Loader output value objects.

Purpose
-------
Describe what a loader hands back to the pipeline: named property sources,
processing options, and the concrete resource they came from. Everything here
is immutable once created.

Contents
--------
* :func:`canonical_name` – relaxed key form used for every lookup.
* :class:`PropertySource` – named, flat key/value mapping.
* :class:`ConfigDataOption` – processing flags attached by loaders.
* :class:`ConfigData` / :data:`EMPTY_CONFIG_DATA` – loader output.
* :class:`ConfigDataResource` – base type for resolved resources.
* :class:`ResolutionResult` – location/resource pair produced by resolvers.
* :class:`NotFoundAction` – ``config.on-not-found`` policy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from .errors import ConfigDataNotFoundError
from .location import ConfigDataLocation

if TYPE_CHECKING:  # pragma: no cover
    from ..observability import LogSink


def canonical_name(name: str) -> str:
    """Return the relaxed form of *name* used for comparisons.

    >>> canonical_name("Config.On_Not_Found")
    'config.on-not-found'
    """

    return name.strip().lower().replace("_", "-")


@dataclass(frozen=True, slots=True)
class PropertySource:
    """Named flat mapping from dotted keys to values.

    Keys keep their original spelling for display; lookups go through
    :func:`canonical_name`. The name identifies the source in logs and
    provenance only, it plays no part in merge semantics.

    Examples
    --------
    >>> source = PropertySource("demo", {"config.IMPORT": "file:x.yml", "db.host": "h"})
    >>> source.get("config.import")
    'file:x.yml'
    >>> source.contains_descendant("db"), source.contains_descendant("d")
    (True, False)
    """

    name: str
    properties: Mapping[str, Any]
    _index: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(dict(self.properties))
        object.__setattr__(self, "properties", frozen)
        object.__setattr__(self, "_index", {canonical_name(key): key for key in frozen})

    def get(self, key: str) -> Any:
        """Return the value stored under *key* or ``None``."""

        original = self._index.get(canonical_name(key))
        return None if original is None else self.properties[original]

    def contains(self, key: str) -> bool:
        return canonical_name(key) in self._index

    def original_key(self, key: str) -> str | None:
        return self._index.get(canonical_name(key))

    def contains_descendant(self, prefix: str) -> bool:
        """Return ``True`` when *prefix* or any key nested below it is present."""

        wanted = canonical_name(prefix)
        for candidate in self._index:
            if candidate == wanted or candidate.startswith(wanted + ".") or candidate.startswith(wanted + "["):
                return True
        return False

    def keys(self) -> Iterator[str]:
        return iter(self.properties)

    def __len__(self) -> int:
        return len(self.properties)


class ConfigDataOption(Enum):
    """Processing flags a loader may attach to its :class:`ConfigData`."""

    IGNORE_IMPORTS = "ignore-imports"
    """``config.import`` declarations inside the data are not followed."""

    IGNORE_PROFILES = "ignore-profiles"
    """The data never contributes to profile activation."""

    PROFILE_SPECIFIC = "profile-specific"
    """The data was loaded for a specific profile."""


@dataclass(frozen=True, slots=True)
class ConfigData:
    """Property sources and options produced by one successful load."""

    property_sources: tuple[PropertySource, ...] = ()
    options: frozenset[ConfigDataOption] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "property_sources", tuple(self.property_sources))
        object.__setattr__(self, "options", frozenset(self.options))

    def has_option(self, option: ConfigDataOption) -> bool:
        return option in self.options


#: Data for a resource that exists but holds nothing.
EMPTY_CONFIG_DATA = ConfigData()


@dataclass(frozen=True)
class ConfigDataResource:
    """Base class for a concrete, loadable resource.

    Subclasses add the fields that identify the resource; equality over those
    fields is the importer's "already loaded" key.
    """

    optional: bool = field(default=False, compare=False, kw_only=True)


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """A location together with one resource it resolved to."""

    location: ConfigDataLocation
    resource: ConfigDataResource
    profile_specific: bool = False


class NotFoundAction(Enum):
    """What to do when configuration data cannot be found.

    Examples
    --------
    >>> NotFoundAction.parse("IGNORE")
    <NotFoundAction.IGNORE: 'ignore'>
    """

    FAIL = "fail"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: object) -> "NotFoundAction":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"expected one of fail, ignore but got {value!r}")
        try:
            return cls(canonical_name(value))
        except ValueError as exc:
            raise ValueError(f"expected one of fail, ignore but got {value!r}") from exc

    def handle(self, sink: "LogSink", error: ConfigDataNotFoundError) -> None:
        """Raise *error* under ``FAIL``; log it under ``IGNORE``."""

        if self is NotFoundAction.FAIL:
            raise error
        sink.debug("config_data_not_found_ignored", referenced=error.referenced, error=str(error))
