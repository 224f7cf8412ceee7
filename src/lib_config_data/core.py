"""Composition root for ``lib_config_data``.

Purpose
-------
Provide the single entry point that gathers the host's existing sources
(overrides, environment variables, ``.env``), wires the default resolvers and
loaders, and runs the configuration-data pipeline.

Contents
--------
* :func:`default_resolvers` / :func:`default_loaders` – the built-in registries.
* :func:`existing_sources` – overrides, environment and dotenv sources in
  precedence order.
* :func:`read_environment` – high-level API returning an :class:`Environment`.
* :func:`read_environment_raw` – lower-level API returning raw data +
  provenance.

System Role
-----------
This module connects adapters (filesystem, config trees, dotenv, environment)
with the application pipeline while emitting structured observability signals.
It is the canonical location for adjusting source precedence or wiring new
adapters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, Sequence

from .adapters.configtree.default import ConfigTreeConfigDataLoader, ConfigTreeLocationResolver
from .adapters.dotenv.default import DefaultDotEnvLoader
from .adapters.env.default import DefaultEnvLoader, default_env_prefix
from .adapters.file_loaders.structured import default_file_loaders
from .adapters.standard.loader import StandardConfigDataLoader
from .adapters.standard.resolver import StandardLocationResolver
from .application.bootstrap import BootstrapRegistry
from .application.environment import ConfigDataEnvironment
from .application.merge import flatten_mapping
from .application.ports import ConfigDataLoader, EnvironmentUpdateListener, LocationResolver, LogSink
from .domain.config_data import PropertySource
from .domain.environment import Environment
from .domain.errors import (
    BindError,
    ConfigDataLoadError,
    ConfigDataNotFoundError,
    ConfigError,
    InactiveConfigDataAccessError,
    InvalidConfigDataPropertyError,
    InvalidFormat,
    LocationNotFoundError,
    ResourceNotFoundError,
    UnsupportedLocationError,
)
from .observability import bind_trace_id, default_sink, make_event

OVERRIDES_SOURCE_NAME = "overrides"
DEFAULT_PROPERTIES_SOURCE_NAME = "defaultProperties"


def default_resolvers(
    *,
    resource_roots: Iterable[str | Path] = (),
    base_dir: str | Path | None = None,
    sink: LogSink | None = None,
) -> list[LocationResolver]:
    """Return the built-in resolvers: config trees first, then standard locations."""

    return [
        ConfigTreeLocationResolver(base_dir=base_dir),
        StandardLocationResolver(default_file_loaders(sink), resource_roots=resource_roots, base_dir=base_dir, sink=sink),
    ]


def default_loaders(*, sink: LogSink | None = None) -> list[ConfigDataLoader]:
    """Return the built-in loaders: standard resources first, then config trees."""

    return [StandardConfigDataLoader(sink), ConfigTreeConfigDataLoader(sink)]


def existing_sources(
    *,
    overrides: Mapping[str, object] | None = None,
    env_prefix: str | None = None,
    environ: Mapping[str, str] | None = None,
    load_dotenv: bool = True,
    start_dir: str | None = None,
    sink: LogSink | None = None,
) -> list[PropertySource]:
    """Collect the host's existing sources, highest precedence first.

    Overrides behave like command-line arguments, then come environment
    variables carrying *env_prefix* (skipped when it is ``None``), then the
    first ``.env`` found walking up from *start_dir*. Empty sources are dropped.

    Examples
    --------
    >>> sources = existing_sources(
    ...     overrides={"config": {"import": "classpath:extra.properties"}},
    ...     env_prefix="DEMO",
    ...     environ={"DEMO_GREETING": "hi"},
    ...     load_dotenv=False,
    ... )
    >>> [(source.name, dict(source.properties)) for source in sources]
    [('overrides', {'config.import': 'classpath:extra.properties'}), ('systemEnvironment', {'greeting': 'hi'})]
    """

    target = sink if sink is not None else default_sink()
    sources: list[PropertySource] = []
    if overrides:
        sources.append(PropertySource(OVERRIDES_SOURCE_NAME, flatten_mapping(overrides)))
    if env_prefix is not None:
        env_source = DefaultEnvLoader(environ=environ, sink=target).load(env_prefix)
        if len(env_source):
            target.debug("existing_source_loaded", **make_event(None, None, {"source": env_source.name, "keys": len(env_source)}))
            sources.append(env_source)
    if load_dotenv:
        dotenv_loader = DefaultDotEnvLoader(sink=target)
        dotenv_source = dotenv_loader.load(start_dir)
        if len(dotenv_source):
            target.debug(
                "existing_source_loaded",
                **make_event(None, dotenv_loader.last_loaded_path, {"source": dotenv_source.name, "keys": len(dotenv_source)}),
            )
            sources.append(dotenv_source)
    return sources


def read_environment(
    *,
    overrides: Mapping[str, object] | None = None,
    default_properties: Mapping[str, object] | None = None,
    additional_profiles: Sequence[str] = (),
    resource_roots: Iterable[str | Path] = (),
    start_dir: str | None = None,
    env_prefix: str | None = None,
    environ: Mapping[str, str] | None = None,
    load_dotenv: bool = True,
    resolvers: Sequence[LocationResolver] | None = None,
    loaders: Sequence[ConfigDataLoader] | None = None,
    bootstrap: BootstrapRegistry | None = None,
    listener: EnvironmentUpdateListener | None = None,
    sink: LogSink | None = None,
) -> Environment:
    """Run the configuration-data pipeline and return an :class:`Environment`.

    Parameters
    ----------
    overrides:
        Highest-precedence properties (nested mappings are flattened); this is
        where ``config.location``, ``config.import`` or ``profiles.active``
        usually come from.
    default_properties:
        Lowest-precedence properties, kept last in the result.
    additional_profiles:
        Profiles activated ahead of any bound ones.
    resource_roots:
        Ordered directories backing ``classpath:`` locations.
    start_dir:
        Base directory for ``file:`` locations and the dotenv search; the
        working directory when omitted.
    env_prefix / environ:
        Read environment variables starting with ``<env_prefix>_`` from
        *environ* (default :data:`os.environ`); ``None`` skips them.
    load_dotenv:
        Whether to search for a ``.env`` file.
    resolvers / loaders:
        Replace the default registries.
    bootstrap / listener / sink:
        Collaborators handed to the pipeline.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> root = Path(tmp.name)
    >>> _ = (root / "application.properties").write_text(
    ...     "greeting=hi\\nconfig.import=classpath:extra.properties", encoding="utf-8"
    ... )
    >>> _ = (root / "extra.properties").write_text("greeting=hello", encoding="utf-8")
    >>> env = read_environment(resource_roots=[root], start_dir=tmp.name, load_dotenv=False)
    >>> env.get("greeting")
    'hello'
    >>> tmp.cleanup()
    """

    target = sink if sink is not None else default_sink()
    bind_trace_id(None)
    sources = existing_sources(
        overrides=overrides,
        env_prefix=env_prefix,
        environ=environ,
        load_dotenv=load_dotenv,
        start_dir=start_dir,
        sink=target,
    )
    defaults = PropertySource(DEFAULT_PROPERTIES_SOURCE_NAME, flatten_mapping(default_properties)) if default_properties else None
    pipeline = ConfigDataEnvironment(
        sources,
        resolvers=resolvers if resolvers is not None else default_resolvers(resource_roots=resource_roots, base_dir=start_dir, sink=target),
        loaders=loaders if loaders is not None else default_loaders(sink=target),
        default_properties=defaults,
        additional_profiles=additional_profiles,
        bootstrap=bootstrap,
        listener=listener,
        sink=target,
    )
    environment = pipeline.process_and_apply()
    if not environment.property_sources:
        target.info("configuration_empty", **make_event(None, None, {"profiles": list(environment.active_profiles)}))
    return environment


def read_environment_raw(**kwargs: object) -> tuple[dict[str, object], dict[str, dict[str, object]]]:
    """Return the merged data and provenance metadata as plain dictionaries.

    Accepts the same keyword arguments as :func:`read_environment`.

    >>> data, meta = read_environment_raw(overrides={"flag": True}, load_dotenv=False, resource_roots=[], start_dir="/nonexistent")
    >>> data, meta["flag"]["source"]
    ({'flag': True}, 'overrides')
    """

    environment = read_environment(**kwargs)  # type: ignore[arg-type]
    meta = {key: dict(info) for key, info in environment.origins().items()}
    return environment.as_dict(), meta


__all__ = [
    "BindError",
    "ConfigDataLoadError",
    "ConfigDataNotFoundError",
    "ConfigError",
    "Environment",
    "InactiveConfigDataAccessError",
    "InvalidConfigDataPropertyError",
    "InvalidFormat",
    "LocationNotFoundError",
    "ResourceNotFoundError",
    "UnsupportedLocationError",
    "default_env_prefix",
    "default_loaders",
    "default_resolvers",
    "existing_sources",
    "read_environment",
    "read_environment_raw",
]
