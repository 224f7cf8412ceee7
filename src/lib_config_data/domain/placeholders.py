"""``${key:default}`` placeholder substitution.

Pure string processing shared by the binder and the consumer-facing
:class:`~lib_config_data.domain.environment.Environment`. Lookups are supplied
as callables so the module stays free of any source model.
"""

from __future__ import annotations

from typing import Callable

from .errors import PlaceholderResolutionError

_PREFIX = "${"
_SUFFIX = "}"
_SEPARATOR = ":"

Lookup = Callable[[str], object | None]


def replace_placeholders(value: str, lookup: Lookup, _visiting: set[str] | None = None) -> str:
    """Replace ``${key}`` and ``${key:default}`` references in *value*.

    Unresolvable placeholders without a default are left untouched. Nested
    placeholders are supported in keys, defaults and resolved values.

    Examples
    --------
    >>> values = {"host": "db", "url": "jdbc://${host}:${port:5432}"}
    >>> replace_placeholders("${url}/app", values.get)
    'jdbc://db:5432/app'
    >>> replace_placeholders("${missing}", values.get)
    '${missing}'
    >>> replace_placeholders("${a}", {"a": "${b}", "b": "${a}"}.get)
    Traceback (most recent call last):
    ...
    PlaceholderResolutionError: Circular placeholder reference 'a' in property definitions
    """

    visiting = _visiting if _visiting is not None else set()
    parts: list[str] = []
    index = 0
    while True:
        start = value.find(_PREFIX, index)
        if start < 0:
            parts.append(value[index:])
            break
        end = _placeholder_end(value, start + len(_PREFIX))
        if end < 0:
            parts.append(value[index:])
            break
        parts.append(value[index:start])
        placeholder = replace_placeholders(value[start + len(_PREFIX) : end], lookup, visiting)
        if placeholder in visiting:
            raise PlaceholderResolutionError(f"Circular placeholder reference '{placeholder}' in property definitions")
        visiting.add(placeholder)
        resolved = lookup(placeholder)
        if resolved is None and _SEPARATOR in placeholder:
            key, _, default = placeholder.partition(_SEPARATOR)
            resolved = lookup(key)
            if resolved is None:
                resolved = default
        if resolved is None:
            parts.append(value[start : end + len(_SUFFIX)])
        else:
            parts.append(replace_placeholders(str(resolved), lookup, visiting))
        visiting.discard(placeholder)
        index = end + len(_SUFFIX)
    return "".join(parts)


def resolve_nested(value: object, lookup: Lookup) -> object:
    """Apply :func:`replace_placeholders` to strings and to list members.

    >>> resolve_nested(["${a}", 1], {"a": "x"}.get)
    ['x', 1]
    """

    if isinstance(value, str):
        return replace_placeholders(value, lookup)
    if isinstance(value, (list, tuple)):
        return [resolve_nested(item, lookup) for item in value]
    return value


def _placeholder_end(value: str, position: int) -> int:
    """Return the index of the ``}`` closing a placeholder, ``-1`` when unbalanced."""

    depth = 0
    while position < len(value):
        if value.startswith(_SUFFIX, position):
            if depth == 0:
                return position
            depth -= 1
            position += len(_SUFFIX)
        elif value.startswith(_PREFIX, position):
            depth += 1
            position += len(_PREFIX)
        elif value.startswith("{", position):
            depth += 1
            position += 1
        else:
            position += 1
    return -1
