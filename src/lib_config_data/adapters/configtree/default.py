"""Config-tree adapter (``configtree:`` locations).

Purpose
-------
Expose a directory of files as properties: every regular file is one key (its
path relative to the tree with separators turned into dots) and its trimmed
contents are the value. This is the layout container orchestrators use for
mounted secrets.

Contents
--------
* :class:`ConfigTreeResource` – a tree directory.
* :class:`ConfigTreeLocationResolver` – resolves ``configtree:<dir>/`` and
  ``configtree:<dir>/*/`` locations.
* :class:`ConfigTreeConfigDataLoader` – reads a tree into one property source.
* :func:`read_config_tree` – the directory walk itself.

System Role
-----------
Trees never declare imports and never take part in profile activation, so the
loaded data carries ``IGNORE_IMPORTS`` and ``IGNORE_PROFILES``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import cast

from ...application.ports import ResolverContext
from ...domain.config_data import ConfigData, ConfigDataOption, ConfigDataResource, PropertySource
from ...domain.errors import InvalidFormat, ResourceNotFoundError, UnsupportedLocationError
from ...domain.location import ConfigDataLocation
from ...domain.profiles import Profiles
from ...observability import LogSink, default_sink

PREFIX = "configtree:"
_MAX_DEPTH = 100


@dataclass(frozen=True)
class ConfigTreeResource(ConfigDataResource):
    """A directory read as a config tree, equal by its resolved path."""

    path: Path

    def __str__(self) -> str:
        return f"config tree [{self.path}]"


class ConfigTreeLocationResolver:
    """Resolve ``configtree:`` locations.

    Locations must end with ``/``; a single trailing ``*/`` expands to every
    visible sub-directory, sorted by path.

    Examples
    --------
    >>> resolver = ConfigTreeLocationResolver()
    >>> resolver.is_resolvable(None, ConfigDataLocation.of("configtree:/run/secrets/"))
    True
    >>> resolver.is_resolvable(None, ConfigDataLocation.of("file:./"))
    False
    """

    def __init__(self, *, base_dir: str | Path | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def is_resolvable(self, context: ResolverContext | None, location: ConfigDataLocation) -> bool:
        return location.has_prefix(PREFIX)

    def resolve(self, context: ResolverContext, location: ConfigDataLocation) -> list[ConfigDataResource]:
        value = location.without_prefix(PREFIX)
        if not value.endswith("/"):
            raise UnsupportedLocationError(f"Config tree location '{location}' must end with '/'", location=location)
        optional = location.optional
        if "*" not in value:
            return [ConfigTreeResource(self._path(value), optional=optional)]
        if value.count("*") != 1 or not value.endswith("*/"):
            raise UnsupportedLocationError(f"Config tree location '{location}' must end with '*/'", location=location)
        parent = self._path(value[: -len("*/")])
        if not parent.is_dir():
            return []
        children = sorted(
            (child for child in parent.iterdir() if child.is_dir() and not child.name.startswith("..")),
            key=lambda child: str(child),
        )
        return [ConfigTreeResource(child, optional=optional) for child in children]

    def resolve_profile_specific(
        self,
        context: ResolverContext,
        location: ConfigDataLocation,
        profiles: Profiles,
    ) -> list[ConfigDataResource]:
        return []

    def _path(self, value: str) -> Path:
        path = Path(value)
        if not path.is_absolute():
            path = (self._base_dir if self._base_dir is not None else Path.cwd()) / path
        return path.resolve()


class ConfigTreeConfigDataLoader:
    """Load a :class:`ConfigTreeResource` into a single property source."""

    def __init__(self, sink: LogSink | None = None) -> None:
        self._sink = sink if sink is not None else default_sink()

    def is_loadable(self, resource: ConfigDataResource) -> bool:
        return isinstance(resource, ConfigTreeResource)

    def load(self, resource: ConfigDataResource) -> ConfigData:
        tree = cast(ConfigTreeResource, resource)
        if not tree.path.is_dir():
            raise ResourceNotFoundError.of(tree)
        properties = read_config_tree(tree.path)
        self._sink.debug("config_tree_loaded", path=str(tree.path), keys=sorted(properties))
        source = PropertySource(f"Config tree '{tree.path}'", properties)
        return ConfigData((source,), frozenset({ConfigDataOption.IGNORE_IMPORTS, ConfigDataOption.IGNORE_PROFILES}))


def read_config_tree(root: Path) -> dict[str, str]:
    """Return ``{dotted.relative.path: trimmed contents}`` for every file below *root*.

    Path elements starting with ``..`` are skipped.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> base = Path(tmp.name)
    >>> (base / "db").mkdir()
    >>> _ = (base / "db" / "password").write_text("s3cret\\n", encoding="utf-8")
    >>> read_config_tree(base)
    {'db.password': 's3cret'}
    >>> tmp.cleanup()
    """

    properties: dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if len(relative.parts) > _MAX_DEPTH or any(part.startswith("..") for part in relative.parts):
            continue
        if not path.is_file():
            continue
        try:
            value = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidFormat(f"Config tree file {path} is not valid UTF-8") from exc
        properties[".".join(relative.parts)] = value.strip()
    return properties
