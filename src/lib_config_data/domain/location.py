"""Configuration-data locations.

Purpose
-------
Model the user-facing reference to configuration data (``optional:file:./``,
``classpath:extra.properties``, ``configtree:/run/secrets/``). Locations are
parsed and normalised here; turning them into concrete resources is the job of
the resolvers.

Contents
--------
* :data:`OPTIONAL_PREFIX` – marker making a location non-fatal when missing.
* :class:`ConfigDataLocation` – immutable value, equal by its value only.
* :func:`parse_locations` – converts bound values into location tuples.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

OPTIONAL_PREFIX = "optional:"


@dataclass(frozen=True, slots=True)
class ConfigDataLocation:
    """Reference to configuration data with an optional marker.

    Equality and hashing use :attr:`value` only, so ``optional:file:./`` and
    ``file:./`` share one de-duplication key.

    Examples
    --------
    >>> location = ConfigDataLocation.of("optional:classpath:/config/")
    >>> location.value, location.optional, str(location)
    ('classpath:/config/', True, 'optional:classpath:/config/')
    >>> location == ConfigDataLocation.of("classpath:/config/")
    True
    >>> location.has_prefix("classpath:"), location.without_prefix("classpath:")
    (True, '/config/')
    """

    value: str
    optional: bool = field(default=False, compare=False)

    @classmethod
    def of(cls, text: str | None) -> "ConfigDataLocation | None":
        """Parse *text*; blank input returns ``None``."""

        if text is None:
            return None
        stripped = text.strip()
        if not stripped:
            return None
        optional = stripped.startswith(OPTIONAL_PREFIX)
        value = stripped[len(OPTIONAL_PREFIX) :] if optional else stripped
        if not value:
            return None
        return cls(value, optional)

    @property
    def prefix(self) -> str | None:
        """Return the scheme prefix including the colon, or ``None``.

        Single letters followed by ``:`` are treated as Windows drives.

        >>> ConfigDataLocation.of("file:./").prefix
        'file:'
        >>> ConfigDataLocation.of("C:/config/").prefix is None
        True
        """

        head, separator, _ = self.value.partition(":")
        if not separator or len(head) < 2 or "/" in head or "\\" in head:
            return None
        return head + ":"

    def has_prefix(self, prefix: str) -> bool:
        return self.value.startswith(prefix)

    def without_prefix(self, prefix: str) -> str:
        return self.value[len(prefix) :] if self.has_prefix(prefix) else self.value

    def split(self, delimiter: str = ";") -> tuple["ConfigDataLocation", ...]:
        """Split a grouped location into its members, keeping the optional flag.

        >>> [str(item) for item in ConfigDataLocation.of("optional:a/;b/").split()]
        ['optional:a/', 'optional:b/']
        """

        members = [part.strip() for part in self.value.split(delimiter)]
        return tuple(ConfigDataLocation(member, self.optional) for member in members if member)

    def __str__(self) -> str:
        return f"{OPTIONAL_PREFIX}{self.value}" if self.optional else self.value


def parse_locations(value: object) -> tuple[ConfigDataLocation, ...]:
    """Convert a bound value into locations.

    Accepts a comma-separated string or a sequence of strings. Blank entries are
    ignored. Anything else raises :class:`TypeError`, which the binder turns
    into a :class:`~lib_config_data.domain.errors.BindError`.

    Examples
    --------
    >>> [str(item) for item in parse_locations("file:a.yml, optional:file:b.yml,")]
    ['file:a.yml', 'optional:file:b.yml']
    >>> [str(item) for item in parse_locations(["classpath:x.properties"])]
    ['classpath:x.properties']
    """

    items: Iterable[object]
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise TypeError(f"cannot convert {type(value).__name__} to a list of locations")
    locations: list[ConfigDataLocation] = []
    for item in items:
        if not isinstance(item, str):
            raise TypeError(f"location entries must be strings, got {type(item).__name__}")
        location = ConfigDataLocation.of(item)
        if location is not None:
            locations.append(location)
    return tuple(locations)
