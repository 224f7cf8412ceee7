"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by resolvers, loaders, the binder, the
pipeline and consuming applications. The hierarchy lives in the domain layer so
outer layers may depend on it without creating import cycles.

Contents
--------
* :class:`ConfigError` – umbrella base class for all configuration-data issues.
* :class:`InvalidFormat` – parsing problems while reading files or dotenv sources.
* :class:`ConfigDataLoadError` – a resource exists but could not be turned into
  property sources.
* :class:`ConfigDataNotFoundError` – base for missing locations and resources.
* :class:`LocationNotFoundError` / :class:`ResourceNotFoundError` – concrete
  not-found conditions handled by the not-found policy.
* :class:`UnsupportedLocationError` – no resolver or loader claims a location.
* :class:`InactiveConfigDataAccessError` – an activation-relevant key was read
  from a source that is not active.
* :class:`InvalidConfigDataPropertyError` – a renamed or unsupported key was
  found in an active source.
* :class:`BindError` – a bound value could not be converted.
* :class:`PlaceholderResolutionError` – circular ``${...}`` references.

System Role
-----------
Only optional locations and the ``ignore`` not-found policy recover locally.
Everything else surfaces to the caller carrying the offending location or key.
"""

from __future__ import annotations

from typing import Any


class ConfigError(Exception):
    """Base type for all exceptions emitted by ``lib_config_data``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class InvalidFormat(ConfigError):
    """Raised when an input artifact cannot be parsed into structured data.

    Typical Sources
    ---------------
    Property-source loaders (:mod:`tomllib`, :mod:`json`, :mod:`yaml`, the
    properties parser) and the dotenv parser.
    """


class ConfigDataLoadError(ConfigError):
    """Raised when a resource cannot be materialised into property sources.

    Wraps :class:`InvalidFormat` with the location and resource that were being
    loaded, so the error message points at the import that caused it.
    """

    def __init__(self, message: str, *, location: Any = None, resource: Any = None) -> None:
        super().__init__(message)
        self.location = location
        self.resource = resource


class ConfigDataNotFoundError(ConfigError):
    """Base class for missing configuration data.

    The not-found policy (``config.on-not-found``) decides whether instances are
    raised or logged.
    """

    def __init__(self, message: str, *, location: Any = None) -> None:
        super().__init__(message)
        self.location = location

    @property
    def referenced(self) -> str:
        """Description of what was not found, used in log events."""

        return str(self.location)


class LocationNotFoundError(ConfigDataNotFoundError):
    """A mandatory location could not be resolved to any resource.

    Examples
    --------
    >>> str(LocationNotFoundError.of("file:./missing/"))
    "Config data location 'file:./missing/' cannot be found"
    """

    @classmethod
    def of(cls, location: Any) -> "LocationNotFoundError":
        return cls(f"Config data location '{location}' cannot be found", location=location)


class ResourceNotFoundError(ConfigDataNotFoundError):
    """A resolved resource does not exist when it is loaded."""

    def __init__(self, message: str, *, resource: Any, location: Any = None) -> None:
        super().__init__(message, location=location)
        self.resource = resource

    @classmethod
    def of(cls, resource: Any) -> "ResourceNotFoundError":
        return cls(f"Config data resource '{resource}' cannot be found", resource=resource)

    def with_location(self, location: Any) -> "ResourceNotFoundError":
        """Return a copy that also names the location the resource came from."""

        message = f"Config data resource '{self.resource}' via location '{location}' cannot be found"
        return ResourceNotFoundError(message, resource=self.resource, location=location)

    @property
    def referenced(self) -> str:
        return str(self.resource)


class UnsupportedLocationError(ConfigError):
    """Raised when no registered resolver or loader can handle a location."""

    def __init__(self, message: str, *, location: Any = None) -> None:
        super().__init__(message)
        self.location = location

    @classmethod
    def of(cls, location: Any) -> "UnsupportedLocationError":
        return cls(f"Unsupported config data location '{location}'", location=location)


class InactiveConfigDataAccessError(ConfigError):
    """An activation-relevant key was read from a source that is not active.

    Why
    ----
    A profile-specific document must not decide which profiles are active,
    otherwise it could activate itself.

    Examples
    --------
    >>> error = InactiveConfigDataAccessError("doc #1", None, "profiles.active")
    >>> str(error)
    "Inactive property source 'doc #1' included invalid property 'profiles.active'"
    """

    def __init__(self, source_name: str, resource: Any, key: str) -> None:
        message = f"Inactive property source '{source_name}'"
        if resource is not None:
            message += f" imported from '{resource}'"
        message += f" included invalid property '{key}'"
        super().__init__(message)
        self.source_name = source_name
        self.resource = resource
        self.key = key


class InvalidConfigDataPropertyError(ConfigError):
    """A renamed or unsupported key was bound from an active source."""

    def __init__(
        self,
        key: str,
        *,
        replacement: str | None = None,
        resource: Any = None,
        profile_specific: bool = False,
    ) -> None:
        message = f"Property '{key}'"
        if resource is not None:
            message += f" imported from location '{resource}'"
        if profile_specific:
            message += " is invalid in a profile specific resource"
        else:
            message += " is invalid"
        if replacement:
            message += f" and should be replaced with '{replacement}'"
        super().__init__(message)
        self.key = key
        self.replacement = replacement
        self.resource = resource
        self.profile_specific = profile_specific


class BindError(ConfigError):
    """A located value cannot be converted to the requested shape.

    The original failure is chained as ``__cause__``.
    """

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Failed to bind property '{name}': {reason}")
        self.name = name


class PlaceholderResolutionError(ConfigError):
    """Raised for circular ``${...}`` placeholder references."""
