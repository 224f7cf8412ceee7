"""Three-phase configuration-data pipeline and its applier.

Purpose
-------
Drive a contributor tree from the host's existing sources to the final,
ordered list of property sources and profiles.

Contents
--------
* :class:`ConfigDataEnvironment` – builds the initial tree, runs the three
  passes, checks the result and applies it.
* :func:`included_profiles` – collects ``profiles.include`` across the tree.

System Role
-----------
Phase one processes imports without any profile knowledge. Phase two binds the
active, default and group profiles into a provisional context and processes
imports again so documents gated on those profiles join the tree. Phase three
adds included profiles, rebuilds the profiles from non-``IGNORE_PROFILES``
sources and processes imports after profile activation, which is when
profile-specific files are discovered. The applier then validates keys and
mandatory locations and publishes the result.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..domain.config_data import ConfigDataOption, NotFoundAction, PropertySource
from ..domain.contributor import Contributor, Kind
from ..domain.environment import Environment
from ..domain.errors import BindError, InactiveConfigDataAccessError, InvalidConfigDataPropertyError, LocationNotFoundError
from ..domain.keys import (
    ACTIVE_PROFILES_PROPERTY,
    ADDITIONAL_LOCATION_PROPERTY,
    DEFAULT_PROFILES_PROPERTY,
    DEFAULT_SEARCH_LOCATIONS,
    IMPORT_PROPERTY,
    INCLUDE_PROFILES_PROPERTY,
    INVALID_PROPERTY_RULES,
    LOCATION_PROPERTY,
    ON_NOT_FOUND_PROPERTY,
    PROFILE_GROUPS_PROPERTY,
    PROFILE_SPECIFIC_INVALID_PROPERTIES,
    InvalidPropertyAction,
)
from ..domain.location import ConfigDataLocation
from ..domain.profiles import ActivationContext, Profiles
from ..observability import LogSink, default_sink, make_event
from .binder import Binder
from .bootstrap import BINDER_KEY, BootstrapRegistry
from .contributors import ContributorPlaceholdersResolver, ContributorsCollection
from .importer import ConfigDataLoaders, Importer, LocationResolvers
from .merge import merge_sources
from .ports import ConfigDataLoader, EnvironmentUpdateListener, LocationResolver, NoOpListener


class ConfigDataEnvironment:
    """Run the configuration-data pipeline over a host's existing sources.

    Parameters
    ----------
    existing_sources:
        Host property sources, highest precedence first (command-line style
        overrides, environment variables, dotenv, ...).
    resolvers / loaders:
        Ordered registries; the first claimant wins.
    default_properties:
        Lowest-precedence source; kept last in the output.
    additional_profiles:
        Profiles activated by the caller, ahead of any bound ones.
    bootstrap:
        Registry receiving the pipeline's binder.
    listener:
        Observer notified per imported source and for the final profiles.
    sink:
        Destination for pipeline events.

    Examples
    --------
    >>> env = ConfigDataEnvironment(
    ...     [PropertySource("overrides", {"greeting": "hi", "config.location": ""})],
    ...     resolvers=[],
    ...     loaders=[],
    ... )
    >>> env.process_and_apply().get("greeting")
    'hi'
    """

    def __init__(
        self,
        existing_sources: Sequence[PropertySource],
        *,
        resolvers: Sequence[LocationResolver],
        loaders: Sequence[ConfigDataLoader],
        default_properties: PropertySource | None = None,
        additional_profiles: Iterable[str] = (),
        bootstrap: BootstrapRegistry | None = None,
        listener: EnvironmentUpdateListener | None = None,
        sink: LogSink | None = None,
    ) -> None:
        self._existing = tuple(existing_sources)
        self._default_properties = default_properties
        self._additional_profiles = tuple(additional_profiles)
        self._bootstrap = bootstrap if bootstrap is not None else BootstrapRegistry()
        self._listener = listener if listener is not None else NoOpListener()
        self._sink = sink if sink is not None else default_sink()
        self._resolvers = LocationResolvers(resolvers, self._sink)
        self._loaders = ConfigDataLoaders(loaders)
        initial_binder = Binder(self._host_sources())
        self._not_found_action = initial_binder.bind_not_found_action(ON_NOT_FOUND_PROPERTY) or NotFoundAction.FAIL
        self._contributors = self._create_contributors(initial_binder)

    @property
    def bootstrap(self) -> BootstrapRegistry:
        return self._bootstrap

    @property
    def contributors(self) -> ContributorsCollection:
        """Initial tree, before any pass has run."""

        return self._contributors

    def process_and_apply(self) -> Environment:
        """Run all three passes and return the applied :class:`Environment`."""

        importer = Importer(
            self._resolvers,
            self._loaders,
            not_found_action=self._not_found_action,
            sink=self._sink,
        )
        contributors = self._process_initial(importer)
        initial = self._create_initial_context(contributors)
        contributors = self._process_with_context(contributors, importer, initial)
        final = self._create_final_context(contributors, initial)
        contributors = self._process_with_profiles(contributors, importer, final)
        return self._apply(contributors, final, importer)

    # passes --------------------------------------------------------------

    def _process_initial(self, importer: Importer) -> ContributorsCollection:
        self._sink.debug("processing_initial_imports")
        contributors = self._contributors.with_processed_imports(importer, None)
        self._register_binder(contributors, None, fail_on_inactive=True)
        return contributors

    def _create_initial_context(self, contributors: ContributorsCollection) -> ActivationContext:
        profiles = self._bind_profiles(contributors, None, self._additional_profiles)
        self._sink.debug("initial_profiles", active=list(profiles.active), default=list(profiles.default))
        return ActivationContext.initial(profiles)

    def _process_with_context(
        self,
        contributors: ContributorsCollection,
        importer: Importer,
        context: ActivationContext,
    ) -> ContributorsCollection:
        self._sink.debug("processing_imports_with_initial_profiles")
        contributors = contributors.with_processed_imports(importer, context)
        self._register_binder(contributors, context, fail_on_inactive=True)
        return contributors

    def _create_final_context(
        self,
        contributors: ContributorsCollection,
        initial: ActivationContext,
    ) -> ActivationContext:
        """Combine additional, included and bound profiles under *initial*.

        Why
        ----
        The second pass may have pulled in documents that only the initial
        profiles activate. Binding under *initial* lets them name groups and
        includes, while documents gated on anything else still fail.
        """

        included = included_profiles(contributors, initial)
        profiles = self._bind_profiles(contributors, initial, (*self._additional_profiles, *included))
        self._sink.debug(
            "final_profiles",
            active=list(profiles.active),
            default=list(profiles.default),
            included=list(included),
        )
        return initial.with_profiles(profiles)

    def _process_with_profiles(
        self,
        contributors: ContributorsCollection,
        importer: Importer,
        context: ActivationContext,
    ) -> ContributorsCollection:
        self._sink.debug("processing_imports_with_profiles")
        contributors = contributors.with_processed_imports(importer, context)
        self._register_binder(contributors, context, fail_on_inactive=False)
        return contributors

    # apply ---------------------------------------------------------------

    def _apply(
        self,
        contributors: ContributorsCollection,
        context: ActivationContext,
        importer: Importer,
    ) -> Environment:
        self._check_invalid_properties(contributors, context)
        self._check_mandatory_locations(contributors, context, importer)
        effective = {id(node) for node in contributors.effective(context)}
        sources: list[PropertySource] = list(self._existing)
        locations: dict[str, str | None] = {}
        for contributor in contributors:
            source = contributor.property_source
            if contributor.kind is not Kind.BOUND_IMPORT or source is None:
                continue
            if id(contributor) not in effective:
                self._sink.debug("skipping_inactive_source", **_event(contributor))
                continue
            self._sink.debug("adding_imported_source", **_event(contributor))
            sources.append(source)
            locations[source.name] = str(contributor.location) if contributor.location is not None else None
            self._listener.on_property_source_added(source, contributor.location, contributor.resource)
        if self._default_properties is not None:
            sources.append(self._default_properties)
        profiles = context.profiles or Profiles.create(active=(), default=None)
        self._listener.on_set_profiles(profiles)
        self._sink.info(
            "configuration_applied",
            sources=len(sources),
            active_profiles=list(profiles.active),
            default_profiles=list(profiles.default),
        )
        data, meta = merge_sources(sources, locations)
        return Environment(
            data,
            meta,  # type: ignore[arg-type]
            tuple(sources),
            active_profiles=profiles.active,
            default_profiles=profiles.default,
        )

    def _check_invalid_properties(self, contributors: ContributorsCollection, context: ActivationContext) -> None:
        for contributor in contributors.effective(context):
            source = contributor.property_source
            if source is None:
                continue
            for rule in INVALID_PROPERTY_RULES:
                if not source.contains(rule.key):
                    continue
                error = InvalidConfigDataPropertyError(
                    rule.key,
                    replacement=rule.replacement,
                    resource=contributor.resource,
                )
                if rule.action is InvalidPropertyAction.FAIL:
                    raise error
                self._sink.warning("invalid_property", key=rule.key, source=source.name, error=str(error))
            if not contributor.from_profile_specific:
                continue
            for key in PROFILE_SPECIFIC_INVALID_PROPERTIES:
                if source.contains(key) or source.contains_descendant(key):
                    raise InvalidConfigDataPropertyError(
                        key,
                        resource=contributor.resource,
                        profile_specific=True,
                    )

    def _check_mandatory_locations(
        self,
        contributors: ContributorsCollection,
        context: ActivationContext,
        importer: Importer,
    ) -> None:
        mandatory: dict[ConfigDataLocation, None] = {}
        for contributor in contributors.effective(context):
            for location in contributor.imports:
                if not location.optional:
                    mandatory.setdefault(location, None)
        for contributor in contributors:
            if contributor.location is not None:
                mandatory.pop(contributor.location, None)
        for location in (*importer.loaded_locations, *importer.optional_locations):
            mandatory.pop(location, None)
        for location in mandatory:
            self._not_found_action.handle(self._sink, LocationNotFoundError.of(location))

    # helpers -------------------------------------------------------------

    def _host_sources(self) -> list[PropertySource]:
        sources = list(self._existing)
        if self._default_properties is not None:
            sources.append(self._default_properties)
        return sources

    def _create_contributors(self, binder: Binder) -> ContributorsCollection:
        contributors = [Contributor.of_existing(source) for source in self._existing]
        contributors.extend(self._initial_import_contributors(binder))
        if self._default_properties is not None:
            contributors.append(Contributor.of_existing(self._default_properties))
        return ContributorsCollection.of(contributors, sink=self._sink, bootstrap=self._bootstrap)

    def _initial_import_contributors(self, binder: Binder) -> list[Contributor]:
        """Seed one initial import per location, later locations first."""

        initial: list[Contributor] = []
        for name, fallback in (
            (IMPORT_PROPERTY, ()),
            (ADDITIONAL_LOCATION_PROPERTY, ()),
            (LOCATION_PROPERTY, DEFAULT_SEARCH_LOCATIONS),
        ):
            locations = binder.bind_locations(name)
            for location in reversed(locations if locations is not None else fallback):
                self._sink.debug("adding_initial_import", **make_event(str(location), None, {"property": name}))
                initial.append(Contributor.of_initial_import(location))
        return initial

    def _bind_profiles(
        self,
        contributors: ContributorsCollection,
        context: ActivationContext | None,
        additional: Sequence[str],
    ) -> Profiles:
        """Bind active, default and group profiles.

        Documents that are not effective under *context* stay visible and fail
        when they supply a value. With no context every profile-gated document
        counts as inactive, so one of them cannot activate itself.
        """

        binder = contributors.get_binder(context, _uses_profiles, fail_on_inactive=True)
        try:
            return Profiles.create(
                active=binder.bind_string_list(ACTIVE_PROFILES_PROPERTY),
                default=binder.bind_string_list(DEFAULT_PROFILES_PROPERTY),
                groups=binder.bind_groups(PROFILE_GROUPS_PROPERTY),
                additional=additional,
            )
        except BindError as exc:
            _raise_inactive_cause(exc)
            raise

    def _register_binder(
        self,
        contributors: ContributorsCollection,
        context: ActivationContext | None,
        *,
        fail_on_inactive: bool,
    ) -> None:
        binder = contributors.get_binder(context, fail_on_inactive=fail_on_inactive)
        self._bootstrap.register(BINDER_KEY, lambda: binder)


def included_profiles(contributors: ContributorsCollection, context: ActivationContext) -> tuple[str, ...]:
    """Collect ``profiles.include`` from every document that may set profiles.

    Reading the key from a document that is not effective under *context*
    raises :class:`InactiveConfigDataAccessError`. Placeholders resolve against
    every effective document, so an include may name a profile held elsewhere.
    """

    placeholders = ContributorPlaceholdersResolver(contributors.root, context)
    effective = {id(node) for node in contributors.effective(context)}
    included: list[str] = []
    for contributor in contributors:
        source = contributor.property_source
        if source is None or contributor.is_unbound or not _uses_profiles(contributor):
            continue
        try:
            values = Binder([source], placeholders).bind_string_list(INCLUDE_PROFILES_PROPERTY)
        except BindError as exc:
            _raise_inactive_cause(exc)
            raise
        if values is None:
            continue
        if id(contributor) not in effective:
            raise InactiveConfigDataAccessError(source.name, contributor.resource, INCLUDE_PROFILES_PROPERTY)
        included.extend(values)
    return tuple(included)


def _uses_profiles(contributor: Contributor) -> bool:
    return not contributor.has_option(ConfigDataOption.IGNORE_PROFILES)


def _raise_inactive_cause(error: BindError) -> None:
    """Re-raise the inactive-access failure wrapped by *error*, if that is the cause."""

    cause = error.__cause__
    if isinstance(cause, InactiveConfigDataAccessError):
        raise cause from None


def _event(contributor: Contributor) -> dict[str, object]:
    return make_event(
        str(contributor.location) if contributor.location is not None else None,
        str(contributor.resource) if contributor.resource is not None else None,
        {"source": contributor.property_source.name if contributor.property_source is not None else None},
    )
