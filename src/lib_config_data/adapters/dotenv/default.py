"""`.env` adapter.

Purpose
-------
Implement the :class:`lib_config_data.application.ports.DotEnvLoader` protocol
by walking upwards from a start directory and parsing the first ``.env`` file
found into a flat property source.

Contents
--------
* :class:`DefaultDotEnvLoader` – entry point with optional extra search paths.
* Helper functions (`_iter_candidates`, `_parse_dotenv`, `_strip_quotes`) that
  perform discovery and parsing.

System Role
-----------
Supplies the lowest-precedence existing source assembled by
:func:`lib_config_data.core.read_environment`, using the same key translation
as the environment adapter (``SERVICE__TOKEN`` → ``service.token``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ...domain.config_data import PropertySource
from ...domain.errors import InvalidFormat
from ...observability import LogSink, default_sink
from ..env.default import env_key_to_property

DOTENV_SOURCE_NAME = "dotenv"


class DefaultDotEnvLoader:
    """Load a dotenv file into a flat property source.

    Why
    ----
    `.env` files supply secrets and developer overrides. They need deterministic
    discovery and the same key translation as environment variables.
    """

    def __init__(self, *, extras: Iterable[str] | None = None, sink: LogSink | None = None) -> None:
        """Initialise the loader with optional *extras* searched after the upward walk."""

        self._extras = [Path(p) for p in extras or []]
        self._sink = sink if sink is not None else default_sink()
        self.last_loaded_path: str | None = None

    def load(self, start_dir: str | None = None) -> PropertySource:
        """Return the first parsed dotenv file discovered in the search order.

        Side Effects
        ------------
        Sets :attr:`last_loaded_path` and emits structured events.

        Examples
        --------
        >>> from tempfile import TemporaryDirectory
        >>> tmp = TemporaryDirectory()
        >>> path = Path(tmp.name) / '.env'
        >>> _ = path.write_text('SERVICE__TOKEN=secret', encoding='utf-8')
        >>> loader = DefaultDotEnvLoader()
        >>> loader.load(tmp.name).get("service.token")
        'secret'
        >>> loader.last_loaded_path == str(path)
        True
        >>> tmp.cleanup()
        """

        candidates = list(_iter_candidates(start_dir)) + self._extras
        self.last_loaded_path = None
        for candidate in candidates:
            if candidate.is_file():
                self.last_loaded_path = str(candidate)
                data = self._parse(candidate)
                self._sink.debug("dotenv_loaded", path=self.last_loaded_path, keys=sorted(data))
                return PropertySource(f"{DOTENV_SOURCE_NAME} [{candidate}]", data)
        self._sink.debug("dotenv_not_found", path=None)
        return PropertySource(DOTENV_SOURCE_NAME, {})

    def _parse(self, path: Path) -> dict[str, object]:
        try:
            return _parse_dotenv(path)
        except InvalidFormat as exc:
            self._sink.error("dotenv_invalid_line", path=str(path), error=str(exc))
            raise


def _iter_candidates(start_dir: str | None) -> Iterable[Path]:
    """Yield candidate dotenv paths walking from ``start_dir`` to filesystem root.

    Examples
    --------
    >>> next(_iter_candidates('.')).name
    '.env'
    """

    base = Path(start_dir) if start_dir else Path.cwd()
    for directory in [base, *base.parents]:
        yield directory / ".env"


def _parse_dotenv(path: Path) -> dict[str, object]:
    """Parse ``path`` into dotted keys, raising ``InvalidFormat`` on malformed lines.

    Examples
    --------
    >>> import os
    >>> tmp = Path('example.env')
    >>> body = os.linesep.join(['FEATURE=true', 'CONFIG__IMPORT=classpath:extra.properties']) + os.linesep
    >>> _ = tmp.write_text(body, encoding='utf-8')
    >>> _parse_dotenv(tmp)
    {'feature': 'true', 'config.import': 'classpath:extra.properties'}
    >>> tmp.unlink()
    """

    result: dict[str, object] = {}
    with path.open("r", encoding="utf-8") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                raise InvalidFormat(f"Malformed line {line_number} in {path}")
            key, value = line.split("=", 1)
            name = env_key_to_property(key.strip())
            if not name:
                raise InvalidFormat(f"Malformed line {line_number} in {path}")
            result[name] = _strip_quotes(value.strip())
    return result


def _strip_quotes(value: str) -> str:
    """Trim surrounding quotes and inline comments from ``value``.

    Examples
    --------
    >>> _strip_quotes('"token"')
    'token'
    >>> _strip_quotes("value # comment")
    'value'
    """

    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    if value.startswith("#"):
        return ""
    if " #" in value:
        return value.split(" #", 1)[0].strip()
    return value
