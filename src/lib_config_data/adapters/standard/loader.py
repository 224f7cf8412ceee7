"""Loader for resources produced by the standard resolver."""

from __future__ import annotations

from typing import cast

from ...domain.config_data import EMPTY_CONFIG_DATA, ConfigData, ConfigDataOption, ConfigDataResource
from ...domain.errors import ResourceNotFoundError
from ...observability import LogSink, default_sink, make_event
from .resource import StandardResource


class StandardConfigDataLoader:
    """Parse a :class:`StandardResource` with the property-source loader chosen for it.

    Property sources are named ``Config resource '<resource>' via location
    '<location>'``; profile-specific resources are marked ``PROFILE_SPECIFIC``.
    Empty directories load as empty data.
    """

    def __init__(self, sink: LogSink | None = None) -> None:
        self._sink = sink if sink is not None else default_sink()

    def is_loadable(self, resource: ConfigDataResource) -> bool:
        return isinstance(resource, StandardResource)

    def load(self, resource: ConfigDataResource) -> ConfigData:
        resource = cast(StandardResource, resource)
        if resource.empty_directory:
            return EMPTY_CONFIG_DATA
        reference = resource.reference
        if reference is None or reference.loader is None or not resource.exists:
            raise ResourceNotFoundError.of(resource)
        name = f"Config resource '{resource}' via location '{reference.location}'"
        sources = reference.loader.load(name, resource.path)  # type: ignore[arg-type]
        options = frozenset({ConfigDataOption.PROFILE_SPECIFIC}) if reference.profile is not None else frozenset()
        self._sink.debug(
            "standard_resource_loaded",
            **make_event(str(reference.location), str(resource), {"documents": len(sources)}),
        )
        return ConfigData(tuple(sources), options)
