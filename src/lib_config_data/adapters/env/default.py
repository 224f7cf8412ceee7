"""Environment variable adapter.

Purpose
-------
Translate process environment variables into a flat property source so they
take part in the pipeline as an existing source.

Key behaviours
--------------
* Enforces a configurable prefix (``default_env_prefix``) so only relevant keys
  are captured.
* Supports ``__`` as a dot delimiter (``APP_CONFIG__IMPORT`` → ``config.import``).
* Performs light type coercion for common scalar types (bools, ints, floats,
  ``null``/``none``).
* Emits structured events through the :class:`~lib_config_data.observability.LogSink`
  it is constructed with.
"""

from __future__ import annotations

import os
from typing import Mapping

from ...domain.config_data import PropertySource
from ...observability import LogSink, default_sink

ENVIRONMENT_SOURCE_NAME = "systemEnvironment"


def default_env_prefix(slug: str) -> str:
    """Return the canonical environment prefix for *slug*.

    Why
    ----
    Namespacing prevents unrelated environment variables from leaking into the
    configuration payload.

    Examples
    --------
    >>> default_env_prefix('lib-config-data')
    'LIB_CONFIG_DATA'
    """

    return slug.replace("-", "_").upper()


def env_key_to_property(key: str) -> str:
    """Translate a prefix-stripped variable name into a dotted property name.

    >>> env_key_to_property('CONFIG__ON_NOT_FOUND')
    'config.on_not_found'
    """

    return ".".join(part.lower() for part in key.split("__") if part)


class DefaultEnvLoader:
    """Load environment variables that belong to the configuration namespace."""

    def __init__(self, *, environ: Mapping[str, str] | None = None, sink: LogSink | None = None) -> None:
        """Initialise the loader with a specific ``environ`` mapping for testability.

        Parameters
        ----------
        environ:
            Mapping to read from. Defaults to :data:`os.environ`.
        sink:
            Destination for ``env_variables_loaded`` events.
        """

        self._environ = environ if environ is not None else os.environ
        self._sink = sink if sink is not None else default_sink()

    def load(self, prefix: str) -> PropertySource:
        """Return a property source with the variables carrying *prefix*.

        Parameters
        ----------
        prefix:
            Prefix filter (upper-case). The loader appends ``_`` if missing.

        Examples
        --------
        >>> env = {
        ...     'DEMO_CONFIG__IMPORT': 'optional:file:./extra.yml',
        ...     'DEMO_SERVICE__RETRIES': '3',
        ...     'OTHER': 'ignored',
        ... }
        >>> source = DefaultEnvLoader(environ=env).load('DEMO')
        >>> source.get('config.import'), source.get('service.retries')
        ('optional:file:./extra.yml', 3)
        >>> source.contains('other')
        False
        """

        prefix = f"{prefix}_" if prefix and not prefix.endswith("_") else prefix
        collected: dict[str, object] = {}
        for key, value in self._environ.items():
            if prefix and not key.startswith(prefix):
                continue
            stripped = key[len(prefix) :] if prefix else key
            name = env_key_to_property(stripped)
            if not name:
                continue
            collected[name] = _coerce(value)
        self._sink.debug("env_variables_loaded", prefix=prefix, keys=sorted(collected))
        return PropertySource(ENVIRONMENT_SOURCE_NAME, collected)


def _coerce(value: str) -> object:
    """Coerce textual environment values to Python primitives where possible.

    Examples
    --------
    >>> _coerce('true'), _coerce('10'), _coerce('3.5'), _coerce('hello')
    (True, 10, 3.5, 'hello')
    """

    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    try:
        if value.isdigit() or (value.startswith("-") and value[1:].isdigit()):
            return int(value)
        return float(value)
    except ValueError:
        return value
