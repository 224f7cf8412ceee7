"""Public package surface for ``lib_config_data``.

Re-exports the composition root (:func:`read_environment`), the result type,
the pipeline building blocks hosts wire themselves, and the error hierarchy so
``import lib_config_data`` is all most callers need.
"""

from __future__ import annotations

from .application.bootstrap import BootstrapRegistry
from .application.environment import ConfigDataEnvironment
from .application.ports import EnvironmentUpdateListener, NoOpListener, ResolverContext
from .core import (
    default_env_prefix,
    default_loaders,
    default_resolvers,
    existing_sources,
    read_environment,
    read_environment_raw,
)
from .domain.config_data import ConfigData, ConfigDataOption, ConfigDataResource, NotFoundAction, PropertySource
from .domain.environment import EMPTY_ENVIRONMENT, Environment, SourceInfo
from .domain.errors import (
    BindError,
    ConfigDataLoadError,
    ConfigDataNotFoundError,
    ConfigError,
    InactiveConfigDataAccessError,
    InvalidConfigDataPropertyError,
    InvalidFormat,
    LocationNotFoundError,
    PlaceholderResolutionError,
    ResourceNotFoundError,
    UnsupportedLocationError,
)
from .domain.location import ConfigDataLocation
from .domain.profiles import Profiles
from .observability import DeferredLogSink, LogSink, StructuredLogSink, bind_trace_id, get_logger

__all__ = [
    "BindError",
    "BootstrapRegistry",
    "ConfigData",
    "ConfigDataEnvironment",
    "ConfigDataLoadError",
    "ConfigDataLocation",
    "ConfigDataNotFoundError",
    "ConfigDataOption",
    "ConfigDataResource",
    "ConfigError",
    "DeferredLogSink",
    "EMPTY_ENVIRONMENT",
    "Environment",
    "EnvironmentUpdateListener",
    "InactiveConfigDataAccessError",
    "InvalidConfigDataPropertyError",
    "InvalidFormat",
    "LocationNotFoundError",
    "LogSink",
    "NoOpListener",
    "NotFoundAction",
    "PlaceholderResolutionError",
    "Profiles",
    "PropertySource",
    "ResolverContext",
    "ResourceNotFoundError",
    "SourceInfo",
    "StructuredLogSink",
    "UnsupportedLocationError",
    "bind_trace_id",
    "default_env_prefix",
    "default_loaders",
    "default_resolvers",
    "existing_sources",
    "get_logger",
    "read_environment",
    "read_environment_raw",
]
