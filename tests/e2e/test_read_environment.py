"""``read_environment`` against real files, environment variables and dotenv."""

from __future__ import annotations

from pathlib import Path

import pytest

from lib_config_data import (
    ConfigDataNotFoundError,
    ConfigDataLoadError,
    read_environment,
    read_environment_raw,
)
from tests.support import ConfigSandbox, create_config_sandbox


@pytest.fixture()
def sandbox(tmp_path: Path) -> ConfigSandbox:
    return create_config_sandbox(tmp_path)


def test_later_search_locations_win(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.properties", "greeting=classpath\nonly.classpath=1\n")
    sandbox.write("classpath", "config/application.properties", "greeting=classpath-config\n")
    sandbox.write("work", "application.yml", "greeting: file\nonly:\n  file: 2\n")
    environment = sandbox.read()
    assert environment.get("greeting") == "file"
    assert environment.get("only.classpath") == "1"
    assert environment.get("only.file") == 2


def test_properties_beat_yaml_in_the_same_directory(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.properties", "greeting=properties\n")
    sandbox.write("classpath", "application.yml", "greeting: yaml\nextra: from-yaml\n")
    environment = sandbox.read()
    assert environment.get("greeting") == "properties"
    assert environment.get("extra") == "from-yaml"


def test_wildcard_directories_load_in_name_order(sandbox: ConfigSandbox) -> None:
    sandbox.write("work", "config/a/application.properties", "k=a\nonly.a=1\n")
    sandbox.write("work", "config/b/application.properties", "k=b\n")
    environment = sandbox.read()
    assert environment.get("k") == "b"
    assert environment.get("only.a") == "1"


def test_profile_specific_files(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.yml", "profiles:\n  active: dev\ndb: h2\n")
    sandbox.write("classpath", "application-dev.yml", "db: postgres\n")
    sandbox.write("classpath", "application-prod.yml", "db: oracle\n")
    environment = sandbox.read()
    assert environment.active_profiles == ("dev",)
    assert environment.get("db") == "postgres"


def test_multi_document_activation(sandbox: ConfigSandbox) -> None:
    sandbox.write(
        "classpath",
        "application.properties",
        "mode=base\n#---\nconfig.activate.on-profile=prod | staging\nmode=live\n",
    )
    assert sandbox.read().get("mode") == "base"
    assert sandbox.read({"profiles.active": "staging"}).get("mode") == "live"


def test_config_tree_import(sandbox: ConfigSandbox) -> None:
    sandbox.write("work", "application.properties", "config.import=configtree:secrets/\n")
    sandbox.write("work", "secrets/db/password", "s3cret\n")
    environment = sandbox.read()
    assert environment.get("db.password") == "s3cret"
    assert environment.origin("db.password")["location"] == "configtree:secrets/"


def test_optional_and_mandatory_imports(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.properties", "config.import=optional:file:./absent.yml\na=1\n")
    assert sandbox.read().get("a") == "1"
    sandbox.write("classpath", "application.properties", "config.import=file:./absent.yml\n")
    with pytest.raises(ConfigDataNotFoundError, match="absent.yml"):
        sandbox.read()


def test_broken_files_raise_load_errors(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.json", "{broken")
    with pytest.raises(ConfigDataLoadError, match="optional:classpath:/"):
        sandbox.read()


def test_additional_locations_win_over_defaults(sandbox: ConfigSandbox) -> None:
    sandbox.write("work", "application.properties", "greeting=default\n")
    sandbox.write("work", "extra/application.properties", "greeting=extra\n")
    environment = sandbox.read({"config.additional-location": "optional:file:./extra/"})
    assert environment.get("greeting") == "extra"


def test_environment_and_dotenv_sources(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.properties", "greeting=file\nfarewell=file\nlevel=file\n")
    sandbox.write("work", ".env", "FAREWELL=dotenv\nLEVEL=dotenv\n")
    environment = sandbox.read(
        {"level": "override"},
        load_dotenv=True,
        env_prefix="DEMO",
        environ={"DEMO_GREETING": "env", "DEMO_LEVEL": "env"},
    )
    assert environment.get("greeting") == "env"
    assert environment.get("farewell") == "dotenv"
    assert environment.get("level") == "override"
    assert [source.name for source in environment.property_sources][:2] == ["overrides", "systemEnvironment"]


def test_environment_variables_can_select_locations(sandbox: ConfigSandbox) -> None:
    sandbox.write("work", "conf/application.properties", "greeting=from-env-location\n")
    environment = sandbox.read(env_prefix="DEMO", environ={"DEMO_CONFIG__LOCATION": "file:./conf/"})
    assert environment.get("greeting") == "from-env-location"


def test_default_properties_and_additional_profiles(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application-cli.properties", "mode=cli\n")
    environment = sandbox.read(
        default_properties={"mode": "default", "timeout": 5},
        additional_profiles=["cli"],
    )
    assert environment.get("mode") == "cli"
    assert environment.get("timeout") == 5
    assert environment.property_sources[-1].name == "defaultProperties"


def test_empty_result_is_logged(sandbox: ConfigSandbox) -> None:
    environment = sandbox.read()
    assert environment.as_dict() == {}
    assert environment.default_profiles == ("default",)
    assert "configuration_empty" in sandbox.events()


def test_read_environment_raw_reports_provenance(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.yml", "service:\n  timeout: 10\n")
    data, meta = read_environment_raw(
        overrides={"service": {"retries": 2}},
        resource_roots=[sandbox.classpath],
        start_dir=str(sandbox.work),
        load_dotenv=False,
    )
    assert data == {"service": {"timeout": 10, "retries": 2}}
    assert meta["service.retries"] == {"source": "overrides", "location": None, "key": "service.retries"}
    assert meta["service.timeout"]["location"] == "optional:classpath:/"


def test_placeholders_resolve_across_sources(sandbox: ConfigSandbox) -> None:
    sandbox.write("classpath", "application.properties", "app.banner=${greeting} ${name:world}\ngreeting=hi\n")
    environment = read_environment(
        overrides={"greeting": "hello"},
        resource_roots=[sandbox.classpath],
        start_dir=str(sandbox.work),
        load_dotenv=False,
    )
    assert environment.get("app.banner") == "hello world"
