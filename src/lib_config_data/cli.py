"""CLI adapter for ``lib_config_data`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose the configuration-data pipeline via a command line interface so
operators can inspect which files were imported, which profiles became active
and which source won for each key, without writing Python code.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command that wires global traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata for quick diagnostics.
* :func:`cli_env_prefix` – helper exposing :func:`lib_config_data.core.default_env_prefix`.
* :func:`cli_read` – runs :func:`lib_config_data.core.read_environment` and
  prints the merged result as JSON (optionally with provenance).
* :func:`cli_profiles` – prints the active and default profiles as JSON.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer. It turns options into overrides for the
composition root and never reaches into adapter implementation details
directly. ``lib_cli_exit_tools`` centralises the exit code strategy so all
commands behave consistently across shells and CI.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .core import default_env_prefix as _default_env_prefix
from .core import read_environment, read_environment_raw
from .domain.keys import (
    ACTIVE_PROFILES_PROPERTY,
    ADDITIONAL_LOCATION_PROPERTY,
    IMPORT_PROPERTY,
    LOCATION_PROPERTY,
    ON_NOT_FOUND_PROPERTY,
)

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

NOT_FOUND_CHOICES: Final[tuple[str, ...]] = ("fail", "ignore")


def _resolve_version() -> str:
    """Return the installed package version, or ``"0.0.0"`` when not installed."""

    try:
        return metadata.version("lib_config_data")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Spring-style configuration data importer",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_config_data",
    message="lib_config_data version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_config_data")
    except metadata.PackageNotFoundError:
        click.echo("lib_config_data (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_config_data')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")
    for entry in meta.get_all("Project-URL") or []:
        click.echo(f"  {entry}")


@cli.command("env-prefix", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("slug")
def cli_env_prefix(slug: str) -> None:
    """Compute the canonical environment prefix for *slug*.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> runner = CliRunner()
    >>> result = runner.invoke(cli, ["env-prefix", "config-kit"])
    >>> result.output.strip()
    'CONFIG_KIT'
    """

    click.echo(_default_env_prefix(slug))


def _source_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the options shared by ``read`` and ``profiles``."""

    options = [
        click.option(
            "--location",
            "locations",
            multiple=True,
            help="Replace the default search locations (repeatable, sets config.location)",
        ),
        click.option(
            "--additional-location",
            "additional_locations",
            multiple=True,
            help="Search these locations in addition to the defaults (repeatable)",
        ),
        click.option(
            "--import",
            "imports",
            multiple=True,
            help="Import these locations before anything else (repeatable, sets config.import)",
        ),
        click.option(
            "--profile",
            "profiles",
            multiple=True,
            help="Activate a profile (repeatable, sets profiles.active)",
        ),
        click.option(
            "--resource-root",
            "resource_roots",
            multiple=True,
            type=click.Path(path_type=Path, exists=True, file_okay=False, dir_okay=True, readable=True),
            help="Directory backing classpath: locations (repeatable, first match wins)",
        ),
        click.option(
            "--on-not-found",
            type=click.Choice(NOT_FOUND_CHOICES, case_sensitive=False),
            default=None,
            help="What to do when a mandatory location is missing",
        ),
        click.option(
            "--start-dir",
            type=click.Path(path_type=Path, exists=True, file_okay=False, dir_okay=True, readable=True),
            default=None,
            help="Base directory for file: locations and the .env search (defaults to CWD)",
        ),
        click.option(
            "--env-prefix",
            default=None,
            help="Read environment variables starting with <PREFIX>_",
        ),
        click.option(
            "--dotenv/--no-dotenv",
            default=True,
            show_default=True,
            help="Search for a .env file upwards from the start directory",
        ),
        click.option(
            "--set",
            "assignments",
            multiple=True,
            metavar="KEY=VALUE",
            help="Override a property (repeatable)",
        ),
    ]
    for option in reversed(options):
        command = option(command)
    return command


@cli.command("read", context_settings=CLICK_CONTEXT_SETTINGS)
@_source_options
@click.option(
    "--indent",
    type=int,
    default=None,
    help="Pretty-print JSON output with the provided indent size",
)
@click.option(
    "--provenance/--no-provenance",
    default=False,
    help="Include provenance metadata for each key in the output",
)
def cli_read(indent: Optional[int], provenance: bool, **options: Any) -> None:
    """Run the configuration-data pipeline and print the result as JSON.

    Options become overrides, the highest-precedence source, so
    ``--location`` behaves like setting ``config.location`` on the command
    line. With ``--provenance`` the output also names the source and location
    behind every key.
    """

    kwargs = _read_kwargs(**options)
    if provenance:
        data, meta = read_environment_raw(**kwargs)
        payload = {"config": data, "provenance": meta}
        click.echo(json.dumps(payload, indent=indent, separators=(",", ":")))
        return
    click.echo(read_environment(**kwargs).to_json(indent=indent))


@cli.command("profiles", context_settings=CLICK_CONTEXT_SETTINGS)
@_source_options
def cli_profiles(**options: Any) -> None:
    """Print the active and default profiles the pipeline settled on."""

    environment = read_environment(**_read_kwargs(**options))
    payload = {"active": list(environment.active_profiles), "default": list(environment.default_profiles)}
    click.echo(json.dumps(payload, separators=(",", ":")))


def _read_kwargs(
    *,
    locations: Sequence[str],
    additional_locations: Sequence[str],
    imports: Sequence[str],
    profiles: Sequence[str],
    resource_roots: Sequence[Path],
    on_not_found: Optional[str],
    start_dir: Optional[Path],
    env_prefix: Optional[str],
    dotenv: bool,
    assignments: Sequence[str],
) -> dict[str, Any]:
    """Translate CLI options into keyword arguments for :func:`read_environment`."""

    overrides: dict[str, object] = _parse_assignments(assignments)
    for key, values in (
        (LOCATION_PROPERTY, locations),
        (ADDITIONAL_LOCATION_PROPERTY, additional_locations),
        (IMPORT_PROPERTY, imports),
        (ACTIVE_PROFILES_PROPERTY, profiles),
    ):
        if values:
            overrides[key] = list(values)
    if on_not_found is not None:
        overrides[ON_NOT_FOUND_PROPERTY] = on_not_found.lower()
    return {
        "overrides": overrides,
        "resource_roots": tuple(resource_roots),
        "start_dir": str(start_dir) if start_dir is not None else None,
        "env_prefix": env_prefix,
        "load_dotenv": dotenv,
    }


def _parse_assignments(values: Sequence[str]) -> dict[str, object]:
    """Turn ``KEY=VALUE`` strings into a flat override mapping.

    >>> _parse_assignments(["greeting=hi", "empty="])
    {'greeting': 'hi', 'empty': ''}
    """

    parsed: dict[str, object] = {}
    for entry in values:
        key, separator, value = entry.partition("=")
        if not separator or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE but got {entry!r}", param_hint="--set")
        parsed[key.strip()] = value
    return parsed


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_config_data",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
