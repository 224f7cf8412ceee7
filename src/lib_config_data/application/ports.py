"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts that adapters must satisfy so the pipeline can
resolve, load and report configuration data without depending on concrete
implementations.

Contents
--------
* :class:`ResolverContext` – what a resolver may consult while resolving.
* :class:`LocationResolver` – turns a location into concrete resources.
* :class:`ConfigDataLoader` – turns a resource into :class:`ConfigData`.
* :class:`PropertySourceLoader` – parses one file format into property sources.
* :class:`EnvLoader` / :class:`DotEnvLoader` – existing-source providers.
* :class:`EnvironmentUpdateListener` – observer for the applied result.
* :class:`LogSink` – re-exported from :mod:`lib_config_data.observability`.

System Role
-----------
These protocols enforce Dependency Inversion. Registries in
:mod:`lib_config_data.application.importer` hold explicit, ordered lists of
implementations supplied by the composition root.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

from ..domain.config_data import ConfigData, ConfigDataResource, PropertySource
from ..domain.location import ConfigDataLocation
from ..domain.profiles import Profiles
from ..observability import LogSink

if TYPE_CHECKING:  # pragma: no cover
    from .binder import Binder
    from .bootstrap import BootstrapRegistry

__all__ = [
    "ConfigDataLoader",
    "DotEnvLoader",
    "EnvLoader",
    "EnvironmentUpdateListener",
    "LocationResolver",
    "LogSink",
    "NoOpListener",
    "PropertySourceLoader",
    "ResolverContext",
]


@dataclass(frozen=True, slots=True)
class ResolverContext:
    """Context handed to resolvers for one location.

    Attributes
    ----------
    binder:
        Binder over the contributors processed so far; resolvers read keys such
        as ``config.name`` through it.
    parent:
        Resource of the contributor declaring the import, or ``None`` for
        initial imports. Relative locations resolve against it.
    bootstrap:
        Registry shared with the host for the duration of the run.
    """

    binder: "Binder"
    parent: ConfigDataResource | None = None
    bootstrap: "BootstrapRegistry | None" = None


@runtime_checkable
class LocationResolver(Protocol):
    """Resolve a location into zero or more resources.

    Why
    ----
    Each scheme (``file:``/``classpath:``, ``configtree:``) has its own lookup
    rules; the importer only needs the resulting resources.
    """

    def is_resolvable(self, context: ResolverContext, location: ConfigDataLocation) -> bool:
        """Return ``True`` when this resolver claims *location*."""

    def resolve(self, context: ResolverContext, location: ConfigDataLocation) -> list[ConfigDataResource]:
        """Return the resources *location* refers to, ignoring profiles."""

    def resolve_profile_specific(
        self,
        context: ResolverContext,
        location: ConfigDataLocation,
        profiles: Profiles,
    ) -> list[ConfigDataResource]:
        """Return the profile-specific resources for *location*."""


@runtime_checkable
class ConfigDataLoader(Protocol):
    """Materialise a resource into property sources."""

    def is_loadable(self, resource: ConfigDataResource) -> bool:
        """Return ``True`` when this loader understands *resource*."""

    def load(self, resource: ConfigDataResource) -> ConfigData:
        """Load *resource* or raise ``ResourceNotFoundError`` when it is gone."""


@runtime_checkable
class PropertySourceLoader(Protocol):
    """Parse one file format into flat property sources (one per document)."""

    extensions: Sequence[str]

    def load(self, name: str, path: Path) -> list[PropertySource]:
        """Read *path*; raise ``InvalidFormat`` when it cannot be parsed."""


@runtime_checkable
class EnvLoader(Protocol):
    """Translate process environment variables into a property source."""

    def load(self, prefix: str) -> PropertySource:
        """Return variables that match *prefix* (case-insensitive, ``__`` for dots)."""


@runtime_checkable
class DotEnvLoader(Protocol):
    """Materialise the nearest ``.env`` file into a property source."""

    def load(self, start_dir: str | None = None) -> PropertySource:
        """Search from *start_dir* upwards and return the first parsed file."""


@runtime_checkable
class EnvironmentUpdateListener(Protocol):
    """Observer notified while the result is applied."""

    def on_property_source_added(
        self,
        source: PropertySource,
        location: ConfigDataLocation | None,
        resource: ConfigDataResource | None,
    ) -> None:
        """Called once per imported property source added to the result."""

    def on_set_profiles(self, profiles: Profiles) -> None:
        """Called once with the final profiles."""


class NoOpListener:
    """Listener that ignores every notification."""

    def on_property_source_added(self, source: PropertySource, location: Any, resource: Any) -> None:
        return None

    def on_set_profiles(self, profiles: Profiles) -> None:
        return None
