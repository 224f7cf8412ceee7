"""Property names understood by the configuration-data engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from .location import ConfigDataLocation

LOCATION_PROPERTY: Final[str] = "config.location"
ADDITIONAL_LOCATION_PROPERTY: Final[str] = "config.additional-location"
IMPORT_PROPERTY: Final[str] = "config.import"
ON_NOT_FOUND_PROPERTY: Final[str] = "config.on-not-found"
NAME_PROPERTY: Final[str] = "config.name"
ACTIVATE_ON_PROFILE_PROPERTY: Final[str] = "config.activate.on-profile"
LEGACY_PROCESSING_PROPERTY: Final[str] = "config.use-legacy-processing"

ACTIVE_PROFILES_PROPERTY: Final[str] = "profiles.active"
DEFAULT_PROFILES_PROPERTY: Final[str] = "profiles.default"
INCLUDE_PROFILES_PROPERTY: Final[str] = "profiles.include"
PROFILE_GROUPS_PROPERTY: Final[str] = "profiles.group"
LEGACY_PROFILES_PROPERTY: Final[str] = "profiles"

DEFAULT_CONFIG_NAME: Final[str] = "application"
DEFAULT_PROFILE: Final[str] = "default"

#: Searched, in order, when ``config.location`` is not set.
DEFAULT_SEARCH_LOCATIONS: Final[tuple[ConfigDataLocation, ...]] = tuple(
    ConfigDataLocation.of(text)  # type: ignore[misc]
    for text in (
        "optional:classpath:/",
        "optional:classpath:/config/",
        "optional:file:./",
        "optional:file:./config/",
        "optional:file:./config/*/",
    )
)


class InvalidPropertyAction(Enum):
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True, slots=True)
class InvalidPropertyRule:
    """A key that must not appear in an active source."""

    key: str
    action: InvalidPropertyAction
    replacement: str | None = None


INVALID_PROPERTY_RULES: Final[tuple[InvalidPropertyRule, ...]] = (
    InvalidPropertyRule(LEGACY_PROFILES_PROPERTY, InvalidPropertyAction.FAIL, ACTIVATE_ON_PROFILE_PROPERTY),
    InvalidPropertyRule(LEGACY_PROCESSING_PROPERTY, InvalidPropertyAction.WARN),
)

#: Keys that are invalid inside a profile-specific import.
PROFILE_SPECIFIC_INVALID_PROPERTIES: Final[tuple[str, ...]] = (
    INCLUDE_PROFILES_PROPERTY,
    ACTIVE_PROFILES_PROPERTY,
    DEFAULT_PROFILES_PROPERTY,
    PROFILE_GROUPS_PROPERTY,
)
