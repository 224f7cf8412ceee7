"""Property-source loaders for the supported file formats.

Purpose
-------
Convert on-disk artifacts into flat property sources that the pipeline
understands. Adapters are small wrappers around ``tomllib``/``json``/
``yaml.safe_load_all`` and a ``.properties`` parser, so error handling,
observability and naming policies live in one place.

Contents
--------
* :class:`BaseFileLoader` – shared helpers for reading files, validating
  mapping outputs and naming documents.
* :class:`PropertiesFileLoader` – ``key=value`` files, ``#---`` separated
  documents.
* :class:`YAMLFileLoader` – ``---`` separated YAML documents.
* :class:`TOMLFileLoader` – loader for TOML.
* :class:`JSONFileLoader` – minimal JSON loader.
* :func:`default_file_loaders` – the loaders in the order extensions are tried.

System Role
-----------
Invoked by :class:`~lib_config_data.adapters.standard.loader.StandardConfigDataLoader`
for every resolved file; the extensions they declare drive the standard
resolver's candidate names.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Mapping, Sequence

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[assignment]

import yaml

from ...application.merge import flatten_mapping
from ...domain.config_data import PropertySource
from ...domain.errors import InvalidFormat, ResourceNotFoundError
from ...observability import LogSink, default_sink

_DOCUMENT_SEPARATOR = re.compile(r"^[#!]---\s*$")
_UNICODE_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


class BaseFileLoader:
    """Common utilities shared by the property-source loaders."""

    extensions: Sequence[str] = ()
    format: str = ""

    def __init__(self, sink: LogSink | None = None) -> None:
        self._sink = sink if sink is not None else default_sink()

    def _read(self, path: Path) -> bytes:
        """Read *path* as bytes, raising :class:`ResourceNotFoundError` when missing.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile(delete=False)
        >>> _ = tmp.write(b"key = 'value'")
        >>> tmp.close()
        >>> BaseFileLoader()._read(Path(tmp.name))[:3]
        b'key'
        >>> Path(tmp.name).unlink()
        """

        if not path.is_file():
            raise ResourceNotFoundError.of(path)
        payload = path.read_bytes()
        self._sink.debug("config_file_read", path=str(path), size=len(payload))
        return payload

    def _decode(self, path: Path) -> str:
        try:
            return self._read(path).decode("utf-8")
        except UnicodeDecodeError as exc:
            self._invalid(path, exc)
            raise InvalidFormat(f"Invalid {self.format} in {path}: {exc}") from exc

    @staticmethod
    def _ensure_mapping(data: object, *, path: Path) -> Mapping[str, object]:
        """Ensure *data* behaves like a mapping, otherwise raise ``InvalidFormat``.

        Examples
        --------
        >>> BaseFileLoader._ensure_mapping({"key": 1}, path=Path("demo"))
        {'key': 1}
        >>> BaseFileLoader._ensure_mapping(42, path=Path("demo"))
        Traceback (most recent call last):
        ...
        InvalidFormat: File demo did not produce a mapping
        """

        if not isinstance(data, Mapping):
            raise InvalidFormat(f"File {path} did not produce a mapping")
        return data  # type: ignore[return-value]

    def _sources(self, name: str, documents: Sequence[Mapping[str, object]], path: Path) -> list[PropertySource]:
        """Name one property source per document.

        A single document keeps *name*; several get a ``(document #n)`` suffix.
        """

        sources = [
            PropertySource(name if len(documents) == 1 else f"{name} (document #{index})", document)
            for index, document in enumerate(documents)
        ]
        self._sink.debug("config_file_loaded", path=str(path), format=self.format, documents=len(sources))
        return sources

    def _invalid(self, path: Path, exc: Exception) -> None:
        self._sink.error("config_file_invalid", path=str(path), format=self.format, error=str(exc))


class PropertiesFileLoader(BaseFileLoader):
    """Load ``.properties`` files.

    Supports ``=``, ``:`` and whitespace separators, ``#``/``!`` comments,
    backslash line continuations, common escapes, and ``#---`` document
    separators. Empty documents are dropped.

    Examples
    --------
    >>> PropertiesFileLoader.parse("a=1\\nb : two\\n#---\\nc three")
    [{'a': '1', 'b': 'two'}, {'c': 'three'}]
    """

    extensions = ("properties",)
    format = "properties"

    def load(self, name: str, path: Path) -> list[PropertySource]:
        """Return one property source per non-empty document in *path*.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile('w', suffix='.properties', delete=False, encoding='utf-8')
        >>> _ = tmp.write('greeting=hi')
        >>> tmp.close()
        >>> PropertiesFileLoader().load("demo", Path(tmp.name))[0].get("greeting")
        'hi'
        >>> Path(tmp.name).unlink()
        """

        documents = self.parse(self._decode(path))
        return self._sources(name, documents, path)

    @staticmethod
    def parse(text: str) -> list[dict[str, object]]:
        documents: list[dict[str, object]] = []
        current: dict[str, object] = {}
        for line in _logical_lines(text):
            if _DOCUMENT_SEPARATOR.match(line):
                if current:
                    documents.append(current)
                current = {}
                continue
            stripped = line.lstrip()
            if not stripped or stripped[0] in "#!":
                continue
            key, value = _split_property(stripped)
            current[key] = value
        if current:
            documents.append(current)
        return documents


class YAMLFileLoader(BaseFileLoader):
    """Load YAML files, one property source per ``---`` document."""

    extensions = ("yml", "yaml")
    format = "yaml"

    def load(self, name: str, path: Path) -> list[PropertySource]:
        """Return one flattened property source per document in *path*.

        Empty documents become empty sources so document numbers stay stable.
        """

        try:
            loaded = list(yaml.safe_load_all(self._read(path)))
        except yaml.YAMLError as exc:
            self._invalid(path, exc)
            raise InvalidFormat(f"Invalid YAML in {path}: {exc}") from exc
        documents = [flatten_mapping(self._ensure_mapping({} if item is None else item, path=path)) for item in loaded]
        return self._sources(name, documents, path)


class TOMLFileLoader(BaseFileLoader):
    """Load TOML documents using the standard library parser."""

    extensions = ("toml",)
    format = "toml"

    def load(self, name: str, path: Path) -> list[PropertySource]:
        """Return the flattened TOML document at *path*.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile('w', suffix='.toml', delete=False, encoding='utf-8')
        >>> _ = tmp.write('[db]\\nhost = "h"')
        >>> tmp.close()
        >>> TOMLFileLoader().load("demo", Path(tmp.name))[0].get("db.host")
        'h'
        >>> Path(tmp.name).unlink()
        """

        text = self._decode(path)
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:  # type: ignore[attr-defined]
            self._invalid(path, exc)
            raise InvalidFormat(f"Invalid TOML in {path}: {exc}") from exc
        return self._sources(name, [flatten_mapping(self._ensure_mapping(data, path=path))], path)


class JSONFileLoader(BaseFileLoader):
    """Load JSON documents."""

    extensions = ("json",)
    format = "json"

    def load(self, name: str, path: Path) -> list[PropertySource]:
        try:
            data = json.loads(self._read(path))
        except json.JSONDecodeError as exc:
            self._invalid(path, exc)
            raise InvalidFormat(f"Invalid JSON in {path}: {exc}") from exc
        return self._sources(name, [flatten_mapping(self._ensure_mapping(data, path=path))], path)


def default_file_loaders(sink: LogSink | None = None) -> tuple[BaseFileLoader, ...]:
    """Return the built-in loaders; their order is the extension search order."""

    return (
        PropertiesFileLoader(sink),
        YAMLFileLoader(sink),
        TOMLFileLoader(sink),
        JSONFileLoader(sink),
    )


def _logical_lines(text: str) -> list[str]:
    """Join backslash-continued lines; continuation lines lose leading blanks."""

    lines: list[str] = []
    pending = ""
    for raw in text.splitlines():
        line = raw.lstrip() if pending else raw
        if _ends_with_continuation(line) and not _is_comment(pending + line):
            pending += line[:-1]
            continue
        lines.append(pending + line)
        pending = ""
    if pending:
        lines.append(pending)
    return lines


def _is_comment(line: str) -> bool:
    stripped = line.lstrip()
    return bool(stripped) and stripped[0] in "#!"


def _ends_with_continuation(line: str) -> bool:
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1


def _split_property(line: str) -> tuple[str, str]:
    """Split a logical line at the first unescaped ``=``, ``:`` or blank.

    >>> _split_property("a\\\\=b = c")
    ('a=b', 'c')
    """

    index = 0
    while index < len(line):
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if char in "=:" or char.isspace():
            break
        index += 1
    key = line[:index]
    rest = line[index:].lstrip()
    if rest[:1] in ("=", ":") and (index >= len(line) or line[index].isspace()):
        rest = rest[1:].lstrip()
    elif index < len(line) and line[index] in "=:":
        rest = line[index + 1 :].lstrip()
    return _unescape(key), _unescape(rest)


def _unescape(text: str) -> str:
    text = _UNICODE_ESCAPE.sub(lambda match: chr(int(match.group(1), 16)), text)
    result: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\" and index + 1 < len(text):
            following = text[index + 1]
            result.append(_ESCAPES.get(following, following))
            index += 2
            continue
        result.append(char)
        index += 1
    return "".join(result)
