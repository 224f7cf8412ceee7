"""End-to-end CLI coverage for the public commands exposed by lib-config-data.

These tests exercise the documented CLI workflows (read, profiles, metadata
lookups) against an on-disk sandbox so precedence and profile activation are
checked through the same path operators use.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

import lib_cli_exit_tools

from lib_config_data import cli
from tests.support import ConfigSandbox, create_config_sandbox


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def _sandbox_args(sandbox: ConfigSandbox) -> list[str]:
    return ["--resource-root", str(sandbox.classpath), "--start-dir", str(sandbox.work), "--no-dotenv"]


def test_cli_read_outputs_json(tmp_path: Path) -> None:
    """`cli read` should emit merged JSON with imported values winning."""

    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("classpath", "application.properties", "service.timeout=15\nconfig.import=classpath:extra.yml\n")
    sandbox.write("classpath", "extra.yml", "service:\n  retries: 3\n")
    result = _runner().invoke(cli.cli, ["read", *_sandbox_args(sandbox), "--indent", "0"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["service"] == {"timeout": "15", "retries": 3}


def test_cli_read_with_provenance(tmp_path: Path) -> None:
    """`cli read --provenance` should emit both config and provenance payloads."""

    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("work", "application.toml", "[feature]\nenabled = true\n")
    result = _runner().invoke(cli.cli, ["read", *_sandbox_args(sandbox), "--provenance"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["config"]["feature"]["enabled"] is True
    meta = payload["provenance"]["feature.enabled"]
    assert meta["location"] == "optional:file:./"
    assert "application.toml" in meta["source"]


def test_cli_profile_option_activates_documents(tmp_path: Path) -> None:
    sandbox = create_config_sandbox(tmp_path)
    sandbox.write(
        "classpath",
        "application.yml",
        "mode: base\n---\nconfig:\n  activate:\n    on-profile: prod\nmode: prod\n",
    )
    runner = _runner()
    plain = runner.invoke(cli.cli, ["read", *_sandbox_args(sandbox)])
    assert json.loads(plain.output)["mode"] == "base"
    active = runner.invoke(cli.cli, ["read", *_sandbox_args(sandbox), "--profile", "prod"])
    assert json.loads(active.output)["mode"] == "prod"


def test_cli_profiles_command(tmp_path: Path) -> None:
    """`cli profiles` should print the final active and default profiles."""

    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("classpath", "application.properties", "profiles.active=dev\nprofiles.group.dev=db,cache\n")
    result = _runner().invoke(cli.cli, ["profiles", *_sandbox_args(sandbox)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"active": ["dev", "db", "cache"], "default": ["default"]}


def test_cli_location_and_set_options(tmp_path: Path) -> None:
    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("work", "custom/service.properties", "greeting=custom\nname=${who}\n")
    result = _runner().invoke(
        cli.cli,
        [
            "read",
            *_sandbox_args(sandbox),
            "--location",
            "file:./custom/",
            "--set",
            "config.name=service",
            "--set",
            "who=operator",
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["greeting"] == "custom"
    assert payload["who"] == "operator"


def test_cli_rejects_malformed_assignments(tmp_path: Path) -> None:
    sandbox = create_config_sandbox(tmp_path)
    result = _runner().invoke(cli.cli, ["read", *_sandbox_args(sandbox), "--set", "novalue"])
    assert result.exit_code != 0
    assert "KEY=VALUE" in result.output


def test_cli_reads_prefixed_environment(tmp_path: Path) -> None:
    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("classpath", "application.properties", "greeting=file\n")
    result = _runner().invoke(
        cli.cli,
        ["read", *_sandbox_args(sandbox), "--env-prefix", "DEMO"],
        env={"DEMO_GREETING": "env"},
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["greeting"] == "env"


def test_cli_env_prefix_command() -> None:
    """`cli env-prefix` should echo the canonical uppercase prefix for a slug."""

    result = _runner().invoke(cli.cli, ["env-prefix", "config-kit"])
    assert result.exit_code == 0
    assert result.output.strip() == "CONFIG_KIT"


def test_cli_info_handles_missing_metadata(monkeypatch) -> None:
    """`cli info` must degrade gracefully when package metadata is unavailable."""

    def _raise_pkg_not_found(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError()

    monkeypatch.setattr(cli.metadata, "metadata", _raise_pkg_not_found)
    result = _runner().invoke(cli.cli, ["info"])
    assert result.exit_code == 0
    assert "metadata unavailable" in result.output


def test_cli_main_restores_traceback_flag(tmp_path: Path) -> None:
    """`cli main` should restore lib_cli_exit_tools tracebacks after execution."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("classpath", "application.properties", "value=1\n")
    exit_code = cli.main(["--traceback", "read", *_sandbox_args(sandbox)], restore_traceback=True)
    assert exit_code == 0
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback


def test_cli_main_reports_missing_mandatory_location(tmp_path: Path) -> None:
    sandbox = create_config_sandbox(tmp_path)
    exit_code = cli.main(["read", *_sandbox_args(sandbox), "--location", "file:./missing.yml"])
    assert exit_code != 0
    ignored = cli.main(
        ["read", *_sandbox_args(sandbox), "--location", "file:./missing.yml", "--on-not-found", "ignore"]
    )
    assert ignored == 0


def test_module_entry_point_uses_process_arguments(monkeypatch, capsys) -> None:
    from lib_config_data import __main__ as entry

    monkeypatch.setattr(entry.sys, "argv", ["lib_config_data", "env-prefix", "demo-app"])
    assert entry.run() == 0
    assert capsys.readouterr().out.strip() == "DEMO_APP"
