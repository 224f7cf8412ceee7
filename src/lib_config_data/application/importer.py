"""Resolver/loader registries and the importer.

Purpose
-------
Turn the locations declared by a contributor into loaded configuration data,
loading every resource at most once per run.

Contents
--------
* :class:`LocationResolvers` – ordered resolver registry.
* :class:`ConfigDataLoaders` – ordered loader registry.
* :class:`Importer` – resolve, de-duplicate, load, and remember what was seen.

System Role
-----------
One importer lives for one pipeline run; its de-dup set and the loaded and
optional location sets feed the mandatory-location check at the end.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..domain.config_data import ConfigData, ConfigDataResource, NotFoundAction, ResolutionResult
from ..domain.errors import (
    ConfigDataLoadError,
    ConfigDataNotFoundError,
    InvalidFormat,
    ResourceNotFoundError,
    UnsupportedLocationError,
)
from ..domain.location import ConfigDataLocation
from ..domain.profiles import ActivationContext, ImportPhase, Profiles
from ..observability import LogSink, make_event
from .ports import ConfigDataLoader, LocationResolver, ResolverContext


class LocationResolvers:
    """Explicit, ordered list of location resolvers.

    Resolvers claiming a location are tried in registration order and the first
    non-empty result wins. Profile-specific results follow the plain ones.
    """

    def __init__(self, resolvers: Sequence[LocationResolver], sink: LogSink) -> None:
        self._resolvers = tuple(resolvers)
        self._sink = sink

    @property
    def resolvers(self) -> tuple[LocationResolver, ...]:
        return self._resolvers

    def resolve(
        self,
        context: ResolverContext,
        location: ConfigDataLocation | None,
        profiles: Profiles | None,
    ) -> list[ResolutionResult]:
        if location is None:
            return []
        claimed = False
        for resolver in self._resolvers:
            if not resolver.is_resolvable(context, location):
                continue
            claimed = True
            results = self._resolve(resolver, context, location, profiles)
            if results:
                return results
        if not claimed:
            raise UnsupportedLocationError.of(location)
        self._sink.debug("location_resolved_empty", **make_event(str(location), None))
        return []

    @staticmethod
    def _resolve(
        resolver: LocationResolver,
        context: ResolverContext,
        location: ConfigDataLocation,
        profiles: Profiles | None,
    ) -> list[ResolutionResult]:
        results = [ResolutionResult(location, resource) for resource in resolver.resolve(context, location)]
        if profiles is not None:
            results.extend(
                ResolutionResult(location, resource, profile_specific=True)
                for resource in resolver.resolve_profile_specific(context, location, profiles)
            )
        return results


class ConfigDataLoaders:
    """Explicit, ordered list of resource loaders; the first that accepts wins."""

    def __init__(self, loaders: Sequence[ConfigDataLoader]) -> None:
        self._loaders = tuple(loaders)

    @property
    def loaders(self) -> tuple[ConfigDataLoader, ...]:
        return self._loaders

    def load(self, resource: ConfigDataResource) -> ConfigData:
        for loader in self._loaders:
            if loader.is_loadable(resource):
                return loader.load(resource)
        raise UnsupportedLocationError(f"No loader found for config data resource '{resource}'")


class Importer:
    """Resolve and load imports, skipping resources already loaded this run.

    Why
    ----
    Two documents may import each other, and the same file may be named by
    several locations. The set of loaded resources ends such cycles and keeps
    one resource from contributing twice.

    Parameters
    ----------
    resolvers / loaders:
        Registries consulted for every location.
    not_found_action:
        Policy for mandatory locations; optional ones always use ``IGNORE``.
    sink:
        Destination for load and skip events.
    """

    def __init__(
        self,
        resolvers: LocationResolvers,
        loaders: ConfigDataLoaders,
        *,
        not_found_action: NotFoundAction = NotFoundAction.FAIL,
        sink: LogSink,
    ) -> None:
        self._resolvers = resolvers
        self._loaders = loaders
        self._not_found_action = not_found_action
        self._sink = sink
        self._loaded: set[ConfigDataResource] = set()
        self._loaded_locations: set[ConfigDataLocation] = set()
        self._optional_locations: set[ConfigDataLocation] = set()

    @property
    def not_found_action(self) -> NotFoundAction:
        return self._not_found_action

    @property
    def loaded_locations(self) -> frozenset[ConfigDataLocation]:
        return frozenset(self._loaded_locations)

    @property
    def optional_locations(self) -> frozenset[ConfigDataLocation]:
        return frozenset(self._optional_locations)

    def resolve_and_load(
        self,
        context: ActivationContext | None,
        resolver_context: ResolverContext,
        locations: Iterable[ConfigDataLocation],
    ) -> list[tuple[ResolutionResult, ConfigData]]:
        """Resolve *locations* and load every resource not seen before.

        Profile-specific resources are only resolved once profiles are final.
        The result is ordered by precedence: later imports first.
        """

        profiles = None
        if context is not None and context.import_phase is ImportPhase.AFTER_PROFILE_ACTIVATION:
            profiles = context.profiles
        candidates: list[ResolutionResult] = []
        for location in locations:
            candidates.extend(self._resolve(resolver_context, location, profiles))
        return self._load(candidates)

    def _resolve(
        self,
        resolver_context: ResolverContext,
        location: ConfigDataLocation,
        profiles: Profiles | None,
    ) -> list[ResolutionResult]:
        try:
            return self._resolvers.resolve(resolver_context, location, profiles)
        except ConfigDataNotFoundError as exc:
            self._action_for(location, None).handle(self._sink, exc)
            return []

    def _load(self, candidates: Sequence[ResolutionResult]) -> list[tuple[ResolutionResult, ConfigData]]:
        loaded: list[tuple[ResolutionResult, ConfigData]] = []
        for candidate in reversed(candidates):
            location, resource = candidate.location, candidate.resource
            if resource.optional or location.optional:
                self._optional_locations.add(location)
            if resource in self._loaded:
                self._loaded_locations.add(location)
                self._sink.debug("config_data_already_loaded", **make_event(str(location), str(resource)))
                continue
            data = self._load_resource(candidate)
            if data is None:
                continue
            self._loaded.add(resource)
            self._loaded_locations.add(location)
            self._sink.debug(
                "config_data_loaded",
                **make_event(str(location), str(resource), {"documents": len(data.property_sources)}),
            )
            loaded.append((candidate, data))
        return loaded

    def _load_resource(self, candidate: ResolutionResult) -> ConfigData | None:
        location, resource = candidate.location, candidate.resource
        try:
            return self._loaders.load(resource)
        except ResourceNotFoundError as exc:
            self._action_for(location, resource).handle(self._sink, exc.with_location(location))
        except ConfigDataNotFoundError as exc:
            self._action_for(location, resource).handle(self._sink, exc)
        except (InvalidFormat, OSError) as exc:
            raise ConfigDataLoadError(
                f"Unable to load config data from '{location}': {exc}",
                location=location,
                resource=resource,
            ) from exc
        return None

    def _action_for(
        self,
        location: ConfigDataLocation,
        resource: ConfigDataResource | None,
    ) -> NotFoundAction:
        if location.optional or (resource is not None and resource.optional):
            return NotFoundAction.IGNORE
        return self._not_found_action
