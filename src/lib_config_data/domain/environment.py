"""Consumer-facing result of a configuration-data run.

Purpose
-------
Anchor the immutable :class:`Environment` value object that carries the final,
ordered property sources, the merged view, provenance and the applied profiles.
This module belongs to the domain layer and contains no I/O.

Contents
--------
* :class:`SourceInfo` – where a merged key came from.
* :class:`Environment` – ``Mapping`` over the merged top-level keys with
  dotted lookups, placeholder resolution and provenance.
* :func:`_deepcopy_mapping` / :func:`_deepcopy_value` – clone helpers that cope
  with ``mappingproxy`` values.
* :data:`EMPTY_ENVIRONMENT` – canonical empty instance.

System Role
-----------
Every call to :func:`lib_config_data.core.read_environment` ends with an
instance of :class:`Environment`. Lookups follow the same first-match-wins rule
as the pipeline's binder, so what a consumer reads is what the pipeline saw.
"""

from __future__ import annotations

import json
from collections.abc import Mapping as MappingABC
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping as MappingType, TypedDict, TypeVar, overload

from .config_data import PropertySource, canonical_name
from .keys import DEFAULT_PROFILE
from .placeholders import resolve_nested
from .profiles import matches_profiles


class SourceInfo(TypedDict):
    """Describe the origin of a resolved configuration key.

    Why
    ----
    Tooling (CLI, logging) needs to explain which property source supplied a
    value to justify precedence outcomes.

    Attributes
    ----------
    source:
        Name of the winning property source.
    location:
        Location the source was imported from; ``None`` for existing sources
        such as overrides or environment variables.
    key:
        Canonical dotted key (for example ``"service.timeout"``).
    """

    source: str
    location: str | None
    key: str


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Environment(MappingABC[str, Any]):
    """Immutable mapping returned to library consumers.

    Why
    ----
    Callers want a read-only, dictionary-like view that still remembers which
    source won, which profiles were applied, and the raw ordered sources.

    Parameters
    ----------
    _data:
        Nested mapping produced by the merge. Wrapped in a ``mappingproxy``.
    _meta:
        Mapping from canonical dotted keys to :class:`SourceInfo`.
    property_sources:
        Final property sources, highest precedence first.
    active_profiles / default_profiles:
        Profiles published by the pipeline.

    Examples
    --------
    >>> env = Environment(
    ...     {"greeting": "hello", "app": {"banner": "${greeting} world"}},
    ...     {"greeting": {"source": "extra", "location": "classpath:extra.properties", "key": "greeting"}},
    ...     (
    ...         PropertySource("extra", {"greeting": "hello"}),
    ...         PropertySource("base", {"greeting": "hi", "app.banner": "${greeting} world"}),
    ...     ),
    ...     active_profiles=("dev",),
    ... )
    >>> env.get("greeting"), env.get("app.banner")
    ('hello', 'hello world')
    >>> env.origin("greeting")["location"]
    'classpath:extra.properties'
    >>> env.accepts_profiles("dev & !prod")
    True
    """

    _data: Mapping[str, Any]
    _meta: Mapping[str, SourceInfo]
    property_sources: tuple[PropertySource, ...] = ()
    active_profiles: tuple[str, ...] = ()
    default_profiles: tuple[str, ...] = (DEFAULT_PROFILE,)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_data", _freeze_mapping(self._data))
        object.__setattr__(self, "_meta", _freeze_mapping(self._meta))
        object.__setattr__(self, "property_sources", tuple(self.property_sources))
        object.__setattr__(self, "active_profiles", tuple(self.active_profiles))
        object.__setattr__(self, "default_profiles", tuple(self.default_profiles))

    def __getitem__(self, key: str) -> Any:
        """Return the top-level value stored under *key*.

        >>> Environment({"feature": True}, {})["feature"]
        True
        """

        return self._data[key]

    def __iter__(self) -> Iterable[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def as_dict(self) -> dict[str, Any]:
        """Return a deep, mutable copy of the merged tree.

        Examples
        --------
        >>> env = Environment({"service": {"timeout": 5}}, {})
        >>> clone = env.as_dict()
        >>> clone["service"]["timeout"] = 10
        >>> env.get("service.timeout")
        5
        """

        return _deepcopy_mapping(self._data)

    def to_json(self, *, indent: int | None = None) -> str:
        """Serialise the merged tree to JSON.

        >>> Environment({"service": {"timeout": 5}}, {}).to_json()
        '{"service":{"timeout":5}}'
        """

        return json.dumps(self.as_dict(), indent=indent, separators=(",", ":"), ensure_ascii=False)

    @overload
    def get(self, key: str, *, default: T) -> T:  # type: ignore[override]
        ...

    @overload
    def get(self, key: str, *, default: None = ...) -> Any | None:  # type: ignore[override]
        ...

    def get(self, key: str, *, default: Any = None) -> Any:
        """Return the value for *key* with placeholders resolved.

        Flat keys are looked up in the property sources (first match wins);
        anything else falls back to a dotted walk of the merged tree, which
        also returns whole sub-trees.

        Examples
        --------
        >>> env = Environment({"service": {"timeout": 5}}, {})
        >>> env.get("service")
        {'timeout': 5}
        >>> env.get("missing.path", default="fallback")
        'fallback'
        """

        value = self._lookup(key)
        if value is None:
            value = _resolve_dotted_path(self._data, canonical_name(key), None)
        if value is None:
            return default
        if isinstance(value, MappingABC):
            return _deepcopy_mapping(value)
        return resolve_nested(value, self._lookup)

    def origin(self, key: str) -> SourceInfo | None:
        """Return provenance for *key* or ``None`` when no source produced it.

        >>> env = Environment({"feature": True}, {"feature": {"source": "env", "location": None, "key": "feature"}})
        >>> env.origin("FEATURE")
        {'source': 'env', 'location': None, 'key': 'feature'}
        """

        return self._meta.get(canonical_name(key))

    def origins(self) -> dict[str, SourceInfo]:
        """Return a copy of the provenance for every merged key."""

        return {key: SourceInfo(**info) for key, info in self._meta.items()}

    def accepts_profiles(self, *expressions: str) -> bool:
        """Return ``True`` when any profile expression matches the applied profiles."""

        accepted = self.active_profiles or self.default_profiles
        return matches_profiles(expressions, accepted.__contains__)

    def _lookup(self, key: str) -> Any:
        for source in self.property_sources:
            value = source.get(key)
            if value is not None:
                return value
        return None


def _freeze_mapping(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return an immutable proxy around *mapping*."""

    return MappingProxyType(dict(mapping))


def _resolve_dotted_path(source: Mapping[str, Any], dotted: str, default: Any) -> Any:
    """Resolve *dotted* within *source*, returning *default* when missing."""

    current: Any = source
    for part in dotted.split("."):
        if not isinstance(current, MappingABC) or part not in current:
            return default
        current = current[part]
    return current


def _deepcopy_mapping(mapping: MappingType[str, Any]) -> dict[str, Any]:
    """Recursively clone a mapping so callers receive a mutable copy.

    ``copy.deepcopy`` does not handle the ``mappingproxy`` objects used here.

    >>> _deepcopy_mapping({"a": {"b": 1}})["a"]["b"]
    1
    """

    result: dict[str, Any] = {}
    for key, value in mapping.items():
        result[key] = _deepcopy_value(value)
    return result


def _deepcopy_value(value: Any) -> Any:
    """Clone nested values while preserving container types where practical.

    >>> _deepcopy_value(("a", "b"))
    ('a', 'b')
    """

    if isinstance(value, MappingABC):
        return _deepcopy_mapping(value)
    if isinstance(value, list):
        return [_deepcopy_value(item) for item in value]
    if isinstance(value, (set, tuple)):
        iterable = [_deepcopy_value(item) for item in value]
        return type(value)(iterable)
    return value


#: Shared empty environment; safe to re-use because :class:`Environment` is immutable.
EMPTY_ENVIRONMENT = Environment(MappingProxyType({}), MappingProxyType({}))
