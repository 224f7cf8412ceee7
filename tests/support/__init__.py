"""Shared fixtures for building configuration-data sandboxes on disk.

A sandbox has two roots: ``classpath`` (passed as the resource root) and
``work`` (the start directory ``file:`` locations resolve against). Tests
write files into either and then run the pipeline against the sandbox.

:class:`MemoryConfigStore` is the in-memory counterpart used by the
application tests: it resolves and loads ``mem:<name>`` locations and counts
every load.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

from lib_config_data import (
    ConfigData,
    ConfigDataEnvironment,
    ConfigDataLocation,
    ConfigDataOption,
    ConfigDataResource,
    DeferredLogSink,
    Environment,
    Profiles,
    PropertySource,
    ResolverContext,
    read_environment,
)


@dataclass
class ConfigSandbox:
    """Temporary classpath and working directory pair."""

    classpath: Path
    work: Path
    sink: DeferredLogSink = field(default_factory=DeferredLogSink)

    def write(self, root: str, relative: str, content: str) -> Path:
        """Write *content* under ``classpath`` or ``work`` and return the path."""

        base = self.classpath if root == "classpath" else self.work
        target = base / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    def read(self, overrides: Mapping[str, object] | None = None, **kwargs: Any) -> Environment:
        """Run :func:`read_environment` against the sandbox without dotenv or env vars."""

        kwargs.setdefault("load_dotenv", False)
        kwargs.setdefault("sink", self.sink)
        return read_environment(
            overrides=overrides,
            resource_roots=[self.classpath],
            start_dir=str(self.work),
            **kwargs,
        )

    def events(self) -> list[str]:
        """Return the names of the events recorded so far."""

        return [message for _, message, _ in self.sink.pending]


def create_config_sandbox(tmp_path: Path) -> ConfigSandbox:
    """Create an empty sandbox below *tmp_path*."""

    classpath = tmp_path / "classpath"
    work = tmp_path / "work"
    classpath.mkdir()
    work.mkdir()
    return ConfigSandbox(classpath=classpath, work=work)


@dataclass(frozen=True)
class MemoryResource(ConfigDataResource):
    """In-memory resource named after its document key."""

    name: str

    def __str__(self) -> str:
        return f"memory [{self.name}]"


class MemoryConfigStore:
    """Resolver and loader for ``mem:<name>`` locations backed by a dict.

    Profile-specific variants are looked up as ``<name>-<profile>``. Every load
    is counted in :attr:`loads`.
    """

    prefix = "mem:"

    def __init__(self, documents: Mapping[str, Sequence[Mapping[str, object]]]) -> None:
        self.documents = {name: [dict(doc) for doc in docs] for name, docs in documents.items()}
        self.loads: Counter[str] = Counter()
        self.options: dict[str, frozenset[ConfigDataOption]] = {}

    def is_resolvable(self, context: ResolverContext, location: ConfigDataLocation) -> bool:
        return location.has_prefix(self.prefix)

    def resolve(self, context: ResolverContext, location: ConfigDataLocation) -> list[ConfigDataResource]:
        name = location.without_prefix(self.prefix)
        if name not in self.documents:
            return []
        return [MemoryResource(name, optional=location.optional)]

    def resolve_profile_specific(
        self,
        context: ResolverContext,
        location: ConfigDataLocation,
        profiles: Profiles,
    ) -> list[ConfigDataResource]:
        name = location.without_prefix(self.prefix)
        return [
            MemoryResource(f"{name}-{profile}", optional=location.optional)
            for profile in profiles.accepted
            if f"{name}-{profile}" in self.documents
        ]

    def is_loadable(self, resource: ConfigDataResource) -> bool:
        return isinstance(resource, MemoryResource)

    def load(self, resource: ConfigDataResource) -> ConfigData:
        assert isinstance(resource, MemoryResource)
        self.loads[resource.name] += 1
        docs = self.documents[resource.name]
        sources = [
            PropertySource(f"memory '{resource.name}'" + (f" (document #{index})" if len(docs) > 1 else ""), doc)
            for index, doc in enumerate(docs)
        ]
        return ConfigData(sources, self.options.get(resource.name, frozenset()))

    def environment(
        self,
        overrides: Mapping[str, object],
        **kwargs: Any,
    ) -> ConfigDataEnvironment:
        """Build a pipeline whose only resolver and loader is this store."""

        kwargs.setdefault("sink", DeferredLogSink())
        return ConfigDataEnvironment(
            [PropertySource("overrides", overrides)],
            resolvers=[self],
            loaders=[self],
            **kwargs,
        )


__all__ = ["ConfigSandbox", "MemoryConfigStore", "MemoryResource", "create_config_sandbox"]
