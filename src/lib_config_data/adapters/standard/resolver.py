"""Resolver for ``file:``, ``classpath:`` and unprefixed locations.

Purpose
-------
Expand a location into candidate files: directories (trailing ``/``) become
``<dir><config.name>.<ext>`` for every extension the property-source loaders
know, files keep their name, and profile-specific variants add ``-<profile>``
before the extension. ``classpath:`` locations are looked up in the host's
ordered resource roots; ``file:`` and unprefixed ones against the base
directory, or relative to the importing resource.

Contents
--------
* :class:`StandardLocationResolver` – the resolver.
* :func:`split_extension_hint` – ``name.conf[.yml]`` handling.

System Role
-----------
Registered last in the default resolver list so more specific schemes (such
as ``configtree:``) claim their locations first.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Sequence

from ...application.ports import PropertySourceLoader, ResolverContext
from ...domain.config_data import ConfigDataResource
from ...domain.errors import BindError, LocationNotFoundError, UnsupportedLocationError
from ...domain.keys import DEFAULT_CONFIG_NAME, NAME_PROPERTY
from ...domain.location import ConfigDataLocation
from ...domain.profiles import Profiles
from ...observability import LogSink, default_sink, make_event
from ..file_loaders.structured import default_file_loaders
from .resource import StandardReference, StandardResource

CLASSPATH_PREFIX = "classpath:"
FILE_PREFIX = "file:"

_EXTENSION_HINT = re.compile(r"^(.*)\[\.(\w+)\](?!\[)$")
_WILDCARD = "*/"


def split_extension_hint(file: str) -> tuple[str, str | None]:
    """Split ``name[.ext]`` into the file name and the hinted extension.

    >>> split_extension_hint("file:./local.conf[.yml]")
    ('file:./local.conf', 'yml')
    >>> split_extension_hint("file:./app.yml")
    ('file:./app.yml', None)
    """

    match = _EXTENSION_HINT.match(file)
    if match is None:
        return file, None
    return match.group(1), match.group(2)


class StandardLocationResolver:
    """Resolve standard locations into :class:`StandardResource` objects.

    Why
    ----
    ``file:``, ``classpath:`` and bare locations share one candidate scheme:
    directories expand to ``<name>.<ext>`` files, and profile variants add a
    ``-<profile>`` suffix. Keeping them in one resolver keeps that scheme in
    one place.

    Parameters
    ----------
    property_loaders:
        Property-source loaders; their extensions decide the candidate names
        and their order decides which extension wins (earlier wins).
    resource_roots:
        Ordered directories backing ``classpath:``; the first containing a
        path wins.
    base_dir:
        Directory ``file:`` and unprefixed locations are relative to; the
        working directory at resolve time when omitted.
    sink:
        Destination for skip events.
    """

    def __init__(
        self,
        property_loaders: Sequence[PropertySourceLoader] | None = None,
        *,
        resource_roots: Iterable[str | Path] = (),
        base_dir: str | Path | None = None,
        sink: LogSink | None = None,
    ) -> None:
        self._sink = sink if sink is not None else default_sink()
        self._loaders = tuple(property_loaders) if property_loaders is not None else default_file_loaders(self._sink)
        self._roots = tuple(Path(root) for root in resource_roots)
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def is_resolvable(self, context: ResolverContext, location: ConfigDataLocation) -> bool:
        return location.prefix in (None, FILE_PREFIX, CLASSPATH_PREFIX)

    def resolve(self, context: ResolverContext, location: ConfigDataLocation) -> list[ConfigDataResource]:
        return self._resolve_references(self._references(context, location, None))

    def resolve_profile_specific(
        self,
        context: ResolverContext,
        location: ConfigDataLocation,
        profiles: Profiles,
    ) -> list[ConfigDataResource]:
        references: list[StandardReference] = []
        for profile in profiles.accepted:
            references.extend(self._references(context, location, profile))
        return self._resolve_references(references)

    # references ------------------------------------------------------------

    def _references(
        self,
        context: ResolverContext,
        location: ConfigDataLocation,
        profile: str | None,
    ) -> list[StandardReference]:
        names = self._config_names(context)
        references: list[StandardReference] = []
        for member in location.split():
            resource_location = self._resource_location(context, member)
            if "*" in resource_location:
                _validate_pattern(resource_location)
            if _is_directory(resource_location):
                references.extend(self._directory_references(member, resource_location, names, profile))
            else:
                references.append(self._file_reference(member, resource_location, profile))
        return references

    def _directory_references(
        self,
        location: ConfigDataLocation,
        directory: str,
        names: Sequence[str],
        profile: str | None,
    ) -> list[StandardReference]:
        """Candidates for every config name; within a name, earlier extensions last."""

        references: list[StandardReference] = []
        for name in names:
            group: list[StandardReference] = []
            for loader in self._loaders:
                for extension in loader.extensions:
                    candidate = f"{directory}{name}{_profile_suffix(profile)}.{extension}"
                    reference = StandardReference(location, directory, candidate, profile, loader)
                    if reference not in group:
                        group.insert(0, reference)
            references.extend(group)
        return references

    def _file_reference(
        self,
        location: ConfigDataLocation,
        file: str,
        profile: str | None,
    ) -> StandardReference:
        file, hint = split_extension_hint(file)
        candidate_name = f"{file}.{hint}" if hint is not None else file
        for loader in self._loaders:
            extension = _loadable_extension(loader, candidate_name)
            if extension is None:
                continue
            if hint is not None:
                candidate = f"{file}{_profile_suffix(profile)}"
            else:
                root = file[: -(len(extension) + 1)]
                candidate = f"{root}{_profile_suffix(profile)}.{extension}"
            return StandardReference(location, None, candidate, profile, loader)
        raise UnsupportedLocationError(
            f"File extension of config data location '{location}' is not known to any property source loader. "
            "If the location is meant to reference a directory, it must end in '/'",
            location=location,
        )

    def _config_names(self, context: ResolverContext) -> tuple[str, ...]:
        names = context.binder.bind_string_list(NAME_PROPERTY) or (DEFAULT_CONFIG_NAME,)
        for name in names:
            if "*" in name or name.endswith(("/", os.sep)):
                raise BindError(NAME_PROPERTY, f"config name '{name}' must not contain '*' or end with '/'")
        return names

    def _resource_location(self, context: ResolverContext, location: ConfigDataLocation) -> str:
        """Make unprefixed relative locations relative to the importing resource."""

        value = location.value
        if location.prefix is not None or value.startswith("/") or Path(value).is_absolute():
            return value
        parent = context.parent
        if isinstance(parent, StandardResource) and parent.reference is not None:
            parent_location = parent.reference.resource_location
            head = parent_location[: parent_location.rfind("/") + 1]
            if not head and CLASSPATH_PREFIX in parent_location:
                head = CLASSPATH_PREFIX
            return head + value
        return value

    # resolution ------------------------------------------------------------

    def _resolve_references(self, references: Sequence[StandardReference]) -> list[ConfigDataResource]:
        resolved: list[ConfigDataResource] = []
        for reference in references:
            resolved.extend(self._resolve_reference(reference))
        if not resolved:
            resolved.extend(self._resolve_empty_directories(references))
        return resolved

    def _resolve_reference(self, reference: StandardReference) -> list[StandardResource]:
        if reference.is_pattern:
            return self._resolve_pattern(reference)
        resource = self._resource(reference, reference.resource_location)
        if not resource.exists and reference.skippable:
            self._sink.debug("skipping_missing_resource", **make_event(str(reference.location), str(resource)))
            return []
        return [resource]

    def _resolve_pattern(self, reference: StandardReference) -> list[StandardResource]:
        head, _, tail = reference.resource_location.partition(_WILDCARD)
        resources: list[StandardResource] = []
        for directory in self._subdirectories(head):
            resource = self._resource(reference, _join(head, directory.name) + "/" + tail)
            if resource.exists:
                resources.append(resource)
        return resources

    def _resolve_empty_directories(self, references: Sequence[StandardReference]) -> list[StandardResource]:
        empty: dict[StandardResource, None] = {}
        for reference in references:
            if reference.directory is None:
                continue
            for resource in self._empty_directories(reference):
                empty.setdefault(resource, None)
        return list(empty)

    def _empty_directories(self, reference: StandardReference) -> list[StandardResource]:
        directory = reference.directory or ""
        if "*" not in directory:
            resource = self._resource(reference, directory, empty_directory=True)
            return [resource] if resource.exists else []
        head, _, _ = directory.partition(_WILDCARD)
        subdirectories = self._subdirectories(head)
        if not subdirectories and not reference.location.optional:
            raise LocationNotFoundError(
                f"Config data location '{reference.location}' contains no subdirectories",
                location=reference.location,
            )
        return [
            self._resource(reference, _join(head, subdirectory.name) + "/", empty_directory=True)
            for subdirectory in subdirectories
        ]

    def _subdirectories(self, head: str) -> list[Path]:
        """Visible sub-directories of the directory *head* names, sorted by path."""

        path, _ = self._path_for(head)
        if path is None or not path.is_dir():
            return []
        return sorted(
            (child for child in path.iterdir() if child.is_dir() and not child.name.startswith("..")),
            key=lambda child: str(child),
        )

    def _resource(
        self,
        reference: StandardReference,
        resource_location: str,
        *,
        empty_directory: bool = False,
    ) -> StandardResource:
        path, description = self._path_for(resource_location)
        return StandardResource(
            description,
            path,
            reference,
            empty_directory,
            optional=reference.location.optional,
        )

    def _path_for(self, resource_location: str) -> tuple[Path | None, str]:
        """Map a resource location onto the filesystem and describe it."""

        if resource_location.startswith(CLASSPATH_PREFIX):
            relative = resource_location[len(CLASSPATH_PREFIX) :].lstrip("/")
            description = f"class path resource [{relative}]"
            for root in self._roots:
                candidate = root / relative
                if candidate.exists():
                    return candidate, description
            return (self._roots[0] / relative if self._roots else None), description
        raw = resource_location[len(FILE_PREFIX) :] if resource_location.startswith(FILE_PREFIX) else resource_location
        path = Path(raw)
        if not path.is_absolute():
            path = (self._base_dir if self._base_dir is not None else Path.cwd()) / path
        path = Path(os.path.normpath(path))
        return path, f"file [{path}]"


def _validate_pattern(resource_location: str) -> None:
    if resource_location.startswith(CLASSPATH_PREFIX):
        raise UnsupportedLocationError(f"Location '{resource_location}' cannot use classpath wildcards")
    if resource_location.count("*") != 1:
        raise UnsupportedLocationError(f"Location '{resource_location}' cannot contain multiple wildcards")
    directory = resource_location[: resource_location.rfind("/") + 1]
    if not directory.endswith(_WILDCARD):
        raise UnsupportedLocationError(f"Location '{resource_location}' must end with '*/'")


def _loadable_extension(loader: PropertySourceLoader, file: str) -> str | None:
    lowered = file.lower()
    for extension in loader.extensions:
        if lowered.endswith(f".{extension}"):
            return extension
    return None


def _is_directory(resource_location: str) -> bool:
    return resource_location.endswith(("/", os.sep))


def _profile_suffix(profile: str | None) -> str:
    return f"-{profile}" if profile else ""


def _join(head: str, name: str) -> str:
    return f"{head}{name}" if head.endswith("/") or not head else f"{head}/{name}"
