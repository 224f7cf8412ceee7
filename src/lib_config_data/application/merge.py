"""Application-layer flattening and merge policy.

Purpose
-------
Translate between the two shapes configuration takes in this library: nested
documents as parsers produce them, and flat dotted-key property sources as the
engine consumes them. Remains free of I/O so loaders, the CLI and the
consumer-facing :class:`~lib_config_data.application.view.Environment` share it.

Contents
    - ``flatten_mapping``: nested document → dotted keys.
    - ``merge_sources``: ordered property sources → nested view + provenance.
    - ``_set_path`` / ``_clear_branch``: helpers that narrate how provenance
      is updated when values change.

System Role
-----------
Property sources are ordered highest precedence first. ``merge_sources`` walks
them from the lowest upwards so the first source in the list has the final
say, matching the first-match-wins lookup of the binder.
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Sequence

from ..domain.config_data import PropertySource, canonical_name


def flatten_mapping(document: Mapping[str, object], prefix: str = "") -> dict[str, object]:
    """Flatten *document* into dotted keys.

    Nested mappings join their keys with ``.``; lists that contain mappings
    are indexed as ``key[0]``; lists of scalars stay lists. Empty mappings and
    ``None`` become empty strings.

    Examples
    --------
    >>> flatten_mapping({"db": {"host": "h", "ports": [1, 2]}, "servers": [{"name": "a"}]})
    {'db.host': 'h', 'db.ports': [1, 2], 'servers[0].name': 'a'}
    >>> flatten_mapping({"empty": {}, "blank": None})
    {'empty': '', 'blank': ''}
    """

    flat: dict[str, object] = {}
    for key, value in document.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        _flatten_value(flat, dotted, value)
    return flat


def _flatten_value(flat: dict[str, object], dotted: str, value: object) -> None:
    if isinstance(value, Mapping):
        if not value:
            flat[dotted] = ""
            return
        flat.update(flatten_mapping(value, dotted))
    elif isinstance(value, list) and any(isinstance(item, Mapping) for item in value):
        for index, item in enumerate(value):
            _flatten_value(flat, f"{dotted}[{index}]", item)
    elif value is None:
        flat[dotted] = ""
    else:
        flat[dotted] = value


def merge_sources(
    sources: Sequence[PropertySource],
    locations: Mapping[str, str | None] | None = None,
) -> tuple[dict[str, object], dict[str, dict[str, object]]]:
    """Merge *sources* into a nested mapping with provenance.

    Parameters
    ----------
    sources:
        Property sources ordered from highest to lowest precedence.
    locations:
        Optional mapping from source name to the location it was imported
        from, recorded in the provenance entries.

    Returns
    -------
    tuple[dict[str, object], dict[str, dict[str, object]]]
        ``(merged_data, provenance)`` where provenance maps canonical dotted
        keys to ``{"source", "location", "key"}``.

    Examples
    --------
    >>> high = PropertySource("high", {"db.host": "remote"})
    >>> low = PropertySource("low", {"db.host": "localhost", "db.port": 5432})
    >>> merged, meta = merge_sources([high, low])
    >>> merged
    {'db': {'host': 'remote', 'port': 5432}}
    >>> meta["db.host"]["source"], meta["db.port"]["source"]
    ('high', 'low')
    """

    merged: dict[str, object] = {}
    meta: dict[str, dict[str, object]] = {}
    lookup = locations or {}
    for source in reversed(list(sources)):
        for key, value in source.properties.items():
            dotted = canonical_name(key)
            _set_path(merged, meta, dotted, value, source.name, lookup.get(source.name))
    return merged, meta


def _set_path(
    target: dict[str, object],
    meta: dict[str, dict[str, object]],
    dotted: str,
    value: object,
    source: str,
    location: str | None,
) -> None:
    """Assign *value* at *dotted*, replacing scalars that block the path."""

    segments = dotted.split(".")
    cursor = target
    walked: list[str] = []
    for segment in segments[:-1]:
        walked.append(segment)
        existing = cursor.get(segment)
        if not isinstance(existing, dict):
            _clear_branch(meta, ".".join(walked))
            existing = {}
            cursor[segment] = existing
        cursor = existing
    _clear_branch(meta, dotted)
    cursor[segments[-1]] = deepcopy(value)
    meta[dotted] = {"source": source, "location": location, "key": dotted}


def _clear_branch(meta: dict[str, dict[str, object]], prefix: str) -> None:
    """Remove provenance entries that belong to *prefix* or its descendants."""

    for meta_key in list(meta.keys()):
        if meta_key == prefix or meta_key.startswith(prefix + "."):
            meta.pop(meta_key, None)
