"""End-to-end behaviour of :class:`ConfigDataEnvironment` over in-memory data."""

from __future__ import annotations

import pytest

from lib_config_data.application.binder import Binder
from lib_config_data.application.bootstrap import BINDER_KEY, BootstrapRegistry
from lib_config_data.domain.config_data import ConfigDataOption, PropertySource
from lib_config_data.domain.errors import (
    InactiveConfigDataAccessError,
    InvalidConfigDataPropertyError,
    LocationNotFoundError,
    UnsupportedLocationError,
)
from lib_config_data.domain.profiles import Profiles
from lib_config_data.observability import DeferredLogSink
from tests.support import MemoryConfigStore


class RecordingListener:
    def __init__(self) -> None:
        self.sources: list[str] = []
        self.profiles: Profiles | None = None

    def on_property_source_added(self, source, location, resource) -> None:
        self.sources.append(source.name)

    def on_set_profiles(self, profiles: Profiles) -> None:
        self.profiles = profiles


def test_imported_value_overrides_the_importing_document() -> None:
    store = MemoryConfigStore(
        {
            "app": [{"greeting": "hi", "config.import": "mem:extra"}],
            "extra": [{"greeting": "hello"}],
        }
    )
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("greeting") == "hello"
    assert environment.origin("greeting")["location"] == "mem:extra"


def test_existing_sources_beat_imports_and_defaults_come_last() -> None:
    store = MemoryConfigStore({"app": [{"a": "file", "b": "file"}]})
    environment = store.environment(
        {"config.location": "mem:app", "a": "override"},
        default_properties=PropertySource("defaults", {"a": "d", "b": "d", "c": "d"}),
    ).process_and_apply()
    assert (environment.get("a"), environment.get("b"), environment.get("c")) == ("override", "file", "d")
    assert [source.name for source in environment.property_sources] == ["overrides", "memory 'app'", "defaults"]


def test_optional_missing_location_is_skipped() -> None:
    store = MemoryConfigStore({})
    environment = store.environment({"config.location": "optional:mem:missing", "a": 1}).process_and_apply()
    assert environment.get("a") == 1
    assert len(environment.property_sources) == 1


def test_mandatory_missing_location_fails_unless_ignored() -> None:
    store = MemoryConfigStore({})
    with pytest.raises(LocationNotFoundError, match="mem:missing"):
        store.environment({"config.location": "mem:missing"}).process_and_apply()
    environment = store.environment(
        {"config.location": "mem:missing", "config.on-not-found": "ignore"}
    ).process_and_apply()
    assert environment.get("config.on-not-found") == "ignore"


def test_missing_import_in_inactive_document_is_not_reported() -> None:
    store = MemoryConfigStore({"app": [{"a": 1}, {"config.activate.on-profile": "prod", "config.import": "mem:nope"}]})
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("a") == 1


def test_unsupported_location_fails() -> None:
    with pytest.raises(UnsupportedLocationError):
        MemoryConfigStore({}).environment({"config.location": "vault:secret/"}).process_and_apply()


def test_each_resource_loads_once_per_run() -> None:
    store = MemoryConfigStore(
        {
            "app": [{"config.import": "mem:shared,mem:other"}],
            "other": [{"config.import": "mem:shared"}],
            "shared": [{"k": "v"}],
        }
    )
    store.environment({"config.location": "mem:app;mem:shared"}).process_and_apply()
    assert store.loads == {"app": 1, "other": 1, "shared": 1}


def test_import_cycle_loads_each_resource_once() -> None:
    store = MemoryConfigStore(
        {
            "a": [{"config.import": "mem:b", "k": "a"}],
            "b": [{"config.import": "mem:a", "k": "b"}],
        }
    )
    environment = store.environment({"config.location": "mem:a"}).process_and_apply()
    assert environment.get("k") == "b"
    assert store.loads == {"a": 1, "b": 1}


def test_profile_gated_document_wins_when_profile_is_active() -> None:
    store = MemoryConfigStore(
        {"app": [{"profiles.active": "prod", "mode": "base"}, {"config.activate.on-profile": "prod", "mode": "prod"}]}
    )
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("mode") == "prod"
    assert environment.active_profiles == ("prod",)


def test_gated_document_stays_out_when_profile_is_inactive() -> None:
    store = MemoryConfigStore({"app": [{"mode": "base"}, {"config.activate.on-profile": "prod", "mode": "prod"}]})
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("mode") == "base"
    assert environment.active_profiles == ()
    assert environment.default_profiles == ("default",)


def test_document_cannot_activate_its_own_profile() -> None:
    store = MemoryConfigStore(
        {"app": [{"a": 1}, {"config.activate.on-profile": "prod", "profiles.active": "prod"}]}
    )
    with pytest.raises(InactiveConfigDataAccessError, match="profiles.active"):
        store.environment({"config.location": "mem:app"}).process_and_apply()


def test_profile_specific_resources_load_after_activation() -> None:
    store = MemoryConfigStore({"app": [{"db": "h2", "profiles.active": "dev"}], "app-dev": [{"db": "postgres"}]})
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("db") == "postgres"
    assert [source.name for source in environment.property_sources] == [
        "overrides",
        "memory 'app-dev'",
        "memory 'app'",
    ]


def test_profile_specific_resources_use_default_profile() -> None:
    store = MemoryConfigStore({"app": [{"db": "h2"}], "app-default": [{"db": "default-db"}]})
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("db") == "default-db"


def test_profile_specific_resource_cannot_set_profiles() -> None:
    store = MemoryConfigStore({"app": [{"profiles.active": "dev"}], "app-dev": [{"profiles.include": "more"}]})
    with pytest.raises(InvalidConfigDataPropertyError, match="profile specific"):
        store.environment({"config.location": "mem:app"}).process_and_apply()


def test_included_profiles_come_before_bound_active_ones() -> None:
    store = MemoryConfigStore({"app": [{"profiles.active": "dev", "profiles.include": "metrics"}]})
    environment = store.environment({"config.location": "mem:app"}, additional_profiles=["cli"]).process_and_apply()
    assert environment.active_profiles == ("cli", "metrics", "dev")


def test_include_in_inactive_document_fails() -> None:
    store = MemoryConfigStore({"app": [{"a": 1}, {"config.activate.on-profile": "prod", "profiles.include": "x"}]})
    with pytest.raises(InactiveConfigDataAccessError, match="profiles.include"):
        store.environment({"config.location": "mem:app"}).process_and_apply()


def test_documents_activated_by_initial_profiles_may_define_groups() -> None:
    store = MemoryConfigStore(
        {
            "app": [
                {"profiles.active": "prod"},
                {"config.activate.on-profile": "prod", "config.import": "mem:prod-extra"},
            ],
            "prod-extra": [{"profiles.group.prod": "db"}],
        }
    )
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.active_profiles == ("prod", "db")


def test_include_placeholders_resolve_against_other_sources() -> None:
    store = MemoryConfigStore({"app": [{"profiles.include": "${region}"}]})
    environment = store.environment({"config.location": "mem:app", "region": "eu"}).process_and_apply()
    assert environment.active_profiles == ("eu",)


def test_profile_groups_expand() -> None:
    store = MemoryConfigStore({"app": [{"profiles.active": "prod", "profiles.group.prod": "db,mq"}]})
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.active_profiles == ("prod", "db", "mq")
    assert environment.accepts_profiles("mq")


def test_ignore_profiles_sources_cannot_activate_profiles() -> None:
    store = MemoryConfigStore({"tree": [{"profiles.active": "secret"}]})
    store.options["tree"] = frozenset({ConfigDataOption.IGNORE_PROFILES})
    environment = store.environment({"config.location": "mem:tree"}).process_and_apply()
    assert environment.active_profiles == ()
    assert environment.get("profiles.active") == "secret"


def test_legacy_profiles_key_fails() -> None:
    store = MemoryConfigStore({"app": [{"profiles": "dev"}]})
    with pytest.raises(InvalidConfigDataPropertyError) as info:
        store.environment({"config.location": "mem:app"}).process_and_apply()
    assert info.value.replacement == "config.activate.on-profile"


def test_legacy_processing_key_only_warns() -> None:
    sink = DeferredLogSink()
    store = MemoryConfigStore({"app": [{"config.use-legacy-processing": "true"}]})
    store.environment({"config.location": "mem:app"}, sink=sink).process_and_apply()
    assert "invalid_property" in [message for _, message, _ in sink.pending]


def test_invalid_keys_in_inactive_documents_are_ignored() -> None:
    store = MemoryConfigStore({"app": [{"a": 1}, {"config.activate.on-profile": "prod", "profiles": "x"}]})
    environment = store.environment({"config.location": "mem:app"}).process_and_apply()
    assert environment.get("a") == 1


def test_listener_and_bootstrap_receive_the_result() -> None:
    store = MemoryConfigStore({"app": [{"greeting": "hi", "profiles.active": "dev"}]})
    listener = RecordingListener()
    bootstrap = BootstrapRegistry()
    store.environment({"config.location": "mem:app"}, listener=listener, bootstrap=bootstrap).process_and_apply()
    assert listener.sources == ["memory 'app'"]
    assert listener.profiles is not None and listener.profiles.active == ("dev",)
    binder = bootstrap.get(BINDER_KEY)
    assert isinstance(binder, Binder)
    assert binder.bind("greeting") == "hi"


def test_runs_are_deterministic() -> None:
    documents = {
        "app": [{"config.import": "mem:a,mem:b", "k": "app"}, {"config.activate.on-profile": "x", "k": "x"}],
        "a": [{"k": "a", "only.a": 1}],
        "b": [{"k": "b", "only.b": 2}],
    }
    first = MemoryConfigStore(documents).environment({"config.location": "mem:app"}).process_and_apply()
    second = MemoryConfigStore(documents).environment({"config.location": "mem:app"}).process_and_apply()
    assert first.as_dict() == second.as_dict()
    assert [s.name for s in first.property_sources] == [s.name for s in second.property_sources]
    assert first.get("k") == "b"


def test_placeholders_in_imports_resolve_against_higher_sources() -> None:
    store = MemoryConfigStore({"app": [{"config.import": "mem:${region}"}], "eu": [{"zone": "eu-1"}]})
    environment = store.environment({"config.location": "mem:app", "region": "eu"}).process_and_apply()
    assert environment.get("zone") == "eu-1"


class CountingRegistry(BootstrapRegistry):
    def __init__(self) -> None:
        super().__init__()
        self.binders: list[Binder] = []

    def register(self, key, supplier) -> None:
        super().register(key, supplier)
        if key == BINDER_KEY:
            self.binders.append(supplier())


def test_binder_snapshot_is_replaced_after_every_pass() -> None:
    store = MemoryConfigStore({"app": [{"greeting": "hi"}]})
    registry = CountingRegistry()
    store.environment({"config.location": "mem:app"}, bootstrap=registry).process_and_apply()
    assert len(registry.binders) >= 3
    assert registry.binders[-1].bind("greeting") == "hi"
    assert registry.get(BINDER_KEY) is registry.binders[-1]
