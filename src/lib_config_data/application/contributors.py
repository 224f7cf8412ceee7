"""Immutable collection of contributors and the import-processing loop.

Purpose
-------
Own the contributor tree between passes. Each pass walks the tree in tree
order, binds freshly imported documents, asks the importer for the children of
every active contributor with pending imports, and returns a new collection.

Contents
--------
* :class:`ContributorsCollection` – tree holder, processing loop, binders.
* :class:`ContributorPlaceholdersResolver` – ``${...}`` lookups over the tree.
* :class:`InactiveSourceChecker` – bound-value hook rejecting inactive sources.
* :func:`bind_properties` – reads ``config.import`` and
  ``config.activate.on-profile`` from a single document.

System Role
-----------
Called three times by :class:`~lib_config_data.application.environment.ConfigDataEnvironment`
with progressively more activation information. Nothing is mutated in place:
contributors are swapped by identity and untouched subtrees are shared.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Sequence

from ..domain.config_data import ConfigData, PropertySource
from ..domain.contributor import ConfigDataProperties, Contributor, Kind
from ..domain.errors import InactiveConfigDataAccessError
from ..domain.keys import ACTIVATE_ON_PROFILE_PROPERTY, IMPORT_PROPERTY
from ..domain.placeholders import resolve_nested
from ..domain.profiles import ActivationContext, ImportPhase, import_phase_of, parse_profile_expression
from ..observability import LogSink, make_event
from .binder import Binder, to_string_list
from .ports import ResolverContext

if TYPE_CHECKING:  # pragma: no cover
    from ..domain.config_data import ResolutionResult
    from .bootstrap import BootstrapRegistry
    from .importer import Importer

ContributorFilter = Callable[[Contributor], bool]


class ContributorPlaceholdersResolver:
    """Resolve placeholders from effective contributors in tree order.

    *also_active* names one contributor treated as active regardless of the
    context; it is the unbound document whose own properties are being read.

    Why
        A document being bound is not yet part of the effective tree, but its
        own keys may reference each other, as in
        ``config.import=${dir}/extra.yml`` next to ``dir=conf``.
    """

    def __init__(
        self,
        root: Contributor,
        context: ActivationContext | None,
        also_active: Contributor | None = None,
    ) -> None:
        self._sources = _effective_sources(root, context, also_active)

    def resolve_placeholders(self, value: object) -> object:
        return resolve_nested(value, self._lookup)

    def _lookup(self, key: str) -> object | None:
        for source in self._sources:
            value = source.get(key)
            if value is not None:
                return value
        return None


class InactiveSourceChecker:
    """Reject values bound from a contributor that is not effective.

    Examples
    --------
    >>> gated = Contributor(
    ...     Kind.BOUND_IMPORT,
    ...     property_source=PropertySource("prod doc", {"profiles.active": "x"}),
    ...     properties=ConfigDataProperties(on_profile=("prod",)),
    ... )
    >>> root = Contributor.of_root([gated])
    >>> checker = InactiveSourceChecker(root, None)
    >>> checker("profiles.active", gated.property_source)
    Traceback (most recent call last):
    ...
    InactiveConfigDataAccessError: Inactive property source 'prod doc' included invalid property 'profiles.active'
    """

    def __init__(self, root: Contributor, context: ActivationContext | None) -> None:
        self._owners = {id(node.property_source): node for node in root if node.property_source is not None}
        self._effective = {id(node) for node in root.iter_effective(context)}

    def __call__(self, name: str, source: PropertySource) -> None:
        owner = self._owners.get(id(source))
        if owner is not None and id(owner) not in self._effective:
            raise InactiveConfigDataAccessError(source.name, owner.resource, name)


class ContributorsCollection:
    """Immutable holder of the contributor tree.

    Parameters
    ----------
    root:
        ``ROOT`` contributor whose before-activation children are the existing
        sources, the initial imports and the default properties.
    sink:
        Destination for processing events.
    bootstrap:
        Registry passed through to resolvers.
    """

    def __init__(
        self,
        root: Contributor,
        *,
        sink: LogSink,
        bootstrap: "BootstrapRegistry | None" = None,
    ) -> None:
        self._root = root
        self._sink = sink
        self._bootstrap = bootstrap

    @classmethod
    def of(
        cls,
        contributors: Iterable[Contributor],
        *,
        sink: LogSink,
        bootstrap: "BootstrapRegistry | None" = None,
    ) -> "ContributorsCollection":
        return cls(Contributor.of_root(contributors), sink=sink, bootstrap=bootstrap)

    @property
    def root(self) -> Contributor:
        return self._root

    def __iter__(self) -> Iterator[Contributor]:
        """Iterate every contributor in tree order."""

        return iter(self._root)

    def with_processed_imports(
        self,
        importer: "Importer",
        context: ActivationContext | None,
    ) -> "ContributorsCollection":
        """Process pending imports until none remain for the context's phase.

        Unbound documents get their properties bound first; active contributors
        with imports not yet processed in this phase get their children. Each
        contributor is processed at most once per phase, so the loop ends.
        """

        phase = import_phase_of(context)
        self._sink.debug("processing_imports", phase=phase.value, profiles=_profiles_of(context))
        result = self
        processed = 0
        while True:
            contributor = result._next_to_process(context, phase)
            if contributor is None:
                self._sink.debug("imports_processed", phase=phase.value, count=processed)
                return result
            if contributor.is_unbound:
                bound = contributor.with_bound_properties(bind_properties(result._root, contributor, context))
                result = result._with_root(result._root.with_replacement(contributor, bound))
                continue
            resolver_context = ResolverContext(
                binder=result.get_binder(context),
                parent=contributor.resource,
                bootstrap=self._bootstrap,
            )
            imported = importer.resolve_and_load(context, resolver_context, contributor.imports)
            self._sink.debug(
                "imports_resolved",
                **make_event(
                    str(contributor.location) if contributor.location is not None else None,
                    str(contributor.resource) if contributor.resource is not None else None,
                    {"imports": [str(item) for item in contributor.imports], "loaded": len(imported)},
                ),
            )
            children = as_contributors(imported)
            updated = contributor.with_children(phase, children)
            result = result._with_root(result._root.with_replacement(contributor, updated))
            processed += 1

    def get_binder(
        self,
        context: ActivationContext | None,
        filter: ContributorFilter | None = None,
        *,
        fail_on_inactive: bool = False,
    ) -> Binder:
        """Return a binder over the tree.

        Without *fail_on_inactive* only effective contributors are visible. With
        it, inactive contributors stay visible and binding a value from one of
        them raises (wrapped in ``BindError``).
        """

        accept = filter or _accept_all
        if fail_on_inactive:
            nodes: Iterable[Contributor] = iter(self._root)
        else:
            nodes = self._root.iter_effective(context)
        sources = [
            node.property_source
            for node in nodes
            if node.property_source is not None and not node.is_unbound and accept(node)
        ]
        placeholders = ContributorPlaceholdersResolver(self._root, context)
        checker = InactiveSourceChecker(self._root, context) if fail_on_inactive else None
        return Binder(sources, placeholders, checker)

    def effective(self, context: ActivationContext | None) -> list[Contributor]:
        """Return the contributors that take part under *context*, in tree order."""

        return list(self._root.iter_effective(context))

    def _next_to_process(self, context: ActivationContext | None, phase: ImportPhase) -> Contributor | None:
        effective = {id(node) for node in self._root.iter_effective(context)}
        for contributor in self._root:
            if contributor.is_unbound:
                return contributor
            if id(contributor) in effective and contributor.has_unprocessed_imports(phase):
                return contributor
        return None

    def _with_root(self, root: Contributor) -> "ContributorsCollection":
        return ContributorsCollection(root, sink=self._sink, bootstrap=self._bootstrap)


def bind_properties(
    root: Contributor,
    contributor: Contributor,
    context: ActivationContext | None,
) -> ConfigDataProperties:
    """Bind the engine-relevant properties of *contributor*'s own document.

    Placeholders resolve against the effective tree plus the document itself.
    Profile expressions are validated here so malformed ones fail at bind time.
    """

    source = contributor.property_source
    if source is None:
        return ConfigDataProperties()
    placeholders = ContributorPlaceholdersResolver(root, context, also_active=contributor)
    binder = Binder([source], placeholders)
    imports = binder.bind_locations(IMPORT_PROPERTY) or ()
    on_profile = binder.bind_as(ACTIVATE_ON_PROFILE_PROPERTY, _profile_expressions)
    return ConfigDataProperties(imports=imports, on_profile=on_profile)


def as_contributors(imported: Sequence[tuple["ResolutionResult", ConfigData]]) -> list[Contributor]:
    """Turn importer output into unbound children.

    Documents of one resource are attached in reverse order so later documents
    come first in tree order. Empty data yields an ``EMPTY_LOCATION`` child.
    """

    children: list[Contributor] = []
    for resolution, data in imported:
        if not data.property_sources:
            children.append(Contributor.of_empty_location(resolution.location, resolution.profile_specific))
            continue
        for index in reversed(range(len(data.property_sources))):
            children.append(
                Contributor.of_unbound_import(
                    resolution.location,
                    resolution.resource,
                    resolution.profile_specific,
                    data,
                    index,
                )
            )
    return children


def _profile_expressions(value: object) -> tuple[str, ...]:
    expressions = to_string_list(value)
    for expression in expressions:
        parse_profile_expression(expression)
    return expressions


def _effective_sources(
    root: Contributor,
    context: ActivationContext | None,
    also_active: Contributor | None,
) -> list[PropertySource]:
    effective = {id(node) for node in root.iter_effective(context)}
    sources: list[PropertySource] = []
    for node in root:
        if node.property_source is None:
            continue
        if node is also_active or (id(node) in effective and node.kind is not Kind.ROOT):
            sources.append(node.property_source)
    return sources


def _profiles_of(context: ActivationContext | None) -> list[str] | None:
    if context is None or context.profiles is None:
        return None
    return list(context.profiles.accepted)


def _accept_all(_: Contributor) -> bool:
    return True
