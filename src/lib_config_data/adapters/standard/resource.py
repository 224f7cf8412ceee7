"""Resource and reference types produced by the standard resolver.

A :class:`StandardReference` is one candidate name derived from a location
(``classpath:/config/`` + ``application`` + ``.yml``). A
:class:`StandardResource` is that candidate mapped onto the filesystem; its
equality is the importer's "already loaded" key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ...application.ports import PropertySourceLoader
from ...domain.config_data import ConfigDataResource
from ...domain.location import ConfigDataLocation


@dataclass(frozen=True)
class StandardReference:
    """Candidate resource location derived from a config-data location.

    Equality uses :attr:`resource_location` only.

    Examples
    --------
    >>> location = ConfigDataLocation.of("optional:classpath:/")
    >>> reference = StandardReference(location, "classpath:/", "classpath:/application-dev.yml", "dev", None)
    >>> reference.skippable, reference.is_pattern
    (True, False)
    """

    location: ConfigDataLocation = field(compare=False)
    directory: str | None = field(compare=False)
    resource_location: str
    profile: str | None = field(compare=False)
    loader: PropertySourceLoader | None = field(compare=False, repr=False)

    @property
    def skippable(self) -> bool:
        """Missing candidates are skipped for optional, directory or profile references."""

        return self.location.optional or self.directory is not None or self.profile is not None

    @property
    def is_pattern(self) -> bool:
        return "*" in self.resource_location


@dataclass(frozen=True)
class StandardResource(ConfigDataResource):
    """A file (or empty directory) found for a :class:`StandardReference`.

    Equality uses the description (scheme and normalised path) and the
    empty-directory flag, so the same file reached through two locations is
    loaded once.
    """

    description: str
    path: Path | None = field(default=None, compare=False)
    reference: StandardReference | None = field(default=None, compare=False, repr=False)
    empty_directory: bool = False

    @property
    def profile(self) -> str | None:
        return self.reference.profile if self.reference is not None else None

    @property
    def exists(self) -> bool:
        if self.path is None:
            return False
        return self.path.is_dir() if self.empty_directory else self.path.is_file()

    def __str__(self) -> str:
        return self.description
