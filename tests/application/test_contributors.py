"""ContributorsCollection: the import loop, binders and effective views."""

from __future__ import annotations

import pytest

from lib_config_data.application.contributors import ContributorsCollection, as_contributors, bind_properties
from lib_config_data.application.importer import ConfigDataLoaders, Importer, LocationResolvers
from lib_config_data.domain.config_data import EMPTY_CONFIG_DATA, ConfigData, PropertySource, ResolutionResult
from lib_config_data.domain.contributor import Contributor, Kind
from lib_config_data.domain.errors import BindError, InactiveConfigDataAccessError
from lib_config_data.domain.location import ConfigDataLocation
from lib_config_data.domain.profiles import ActivationContext, Profiles
from lib_config_data.observability import DeferredLogSink
from tests.support import MemoryConfigStore, MemoryResource


def _location(text: str) -> ConfigDataLocation:
    location = ConfigDataLocation.of(text)
    assert location is not None
    return location


def _collection(*locations: str, overrides: dict[str, object] | None = None) -> ContributorsCollection:
    contributors = [Contributor.of_existing(PropertySource("overrides", overrides or {}))]
    contributors.extend(Contributor.of_initial_import(_location(text)) for text in locations)
    return ContributorsCollection.of(contributors, sink=DeferredLogSink())


def _importer(store: MemoryConfigStore) -> Importer:
    sink = DeferredLogSink()
    return Importer(LocationResolvers([store], sink), ConfigDataLoaders([store]), sink=sink)


def _names(contributors) -> list[str]:
    return [node.property_source.name for node in contributors if node.kind is Kind.BOUND_IMPORT]


def test_processing_binds_and_follows_nested_imports() -> None:
    store = MemoryConfigStore(
        {
            "app": [{"config.import": "mem:extra", "greeting": "hi"}],
            "extra": [{"greeting": "hello"}],
        }
    )
    processed = _collection("mem:app").with_processed_imports(_importer(store), None)
    assert _names(processed) == ["memory 'extra'", "memory 'app'"]
    assert not any(node.is_unbound for node in processed)
    assert processed.get_binder(None).bind("greeting") == "hello"


def test_processing_returns_a_new_collection() -> None:
    store = MemoryConfigStore({"app": [{"a": 1}]})
    original = _collection("mem:app")
    processed = original.with_processed_imports(_importer(store), None)
    assert processed is not original
    assert _names(original) == []


def test_later_documents_come_first() -> None:
    store = MemoryConfigStore({"app": [{"k": "first"}, {"k": "second"}]})
    processed = _collection("mem:app").with_processed_imports(_importer(store), None)
    assert _names(processed) == ["memory 'app' (document #1)", "memory 'app' (document #0)"]
    assert processed.get_binder(None).bind("k") == "second"


def test_gated_documents_are_not_followed_until_active() -> None:
    store = MemoryConfigStore(
        {
            "app": [{"a": "base"}, {"config.activate.on-profile": "prod", "config.import": "mem:prod-extra"}],
            "prod-extra": [{"a": "prod"}],
        }
    )
    importer = _importer(store)
    first = _collection("mem:app").with_processed_imports(importer, None)
    assert store.loads["prod-extra"] == 0
    context = ActivationContext.initial(Profiles.create(active=["prod"], default=None))
    second = first.with_processed_imports(importer, context)
    assert store.loads["prod-extra"] == 1
    assert second.get_binder(context).bind("a") == "prod"
    assert second.get_binder(None).bind("a") == "base"


def test_effective_view_respects_context() -> None:
    store = MemoryConfigStore({"app": [{"a": 1}, {"config.activate.on-profile": "dev", "b": 2}]})
    processed = _collection("mem:app").with_processed_imports(_importer(store), None)
    dev = ActivationContext.initial(Profiles.create(active=["dev"], default=None))
    assert len(processed.effective(dev)) == len(processed.effective(None)) + 1


def test_fail_on_inactive_binder_rejects_gated_values() -> None:
    store = MemoryConfigStore({"app": [{"x": 1}, {"config.activate.on-profile": "dev", "profiles.active": "dev"}]})
    processed = _collection("mem:app").with_processed_imports(_importer(store), None)
    assert processed.get_binder(None).bind("profiles.active") is None
    with pytest.raises(BindError) as info:
        processed.get_binder(None, fail_on_inactive=True).bind("profiles.active")
    assert isinstance(info.value.__cause__, InactiveConfigDataAccessError)


def test_bind_properties_resolves_placeholders_from_the_tree() -> None:
    root = Contributor.of_root([Contributor.of_existing(PropertySource("overrides", {"env": "prod"}))])
    resource = MemoryResource("app")
    data = ConfigData([PropertySource("doc", {"config.import": "mem:${env}", "config.activate.on-profile": "a | b"})])
    unbound = Contributor.of_unbound_import(_location("mem:app"), resource, False, data, 0)
    properties = bind_properties(root, unbound, None)
    assert properties.imports == (_location("mem:prod"),)
    assert properties.on_profile == ("a | b",)


def test_bind_properties_rejects_malformed_profile_expressions() -> None:
    data = ConfigData([PropertySource("doc", {"config.activate.on-profile": "a & b | c"})])
    unbound = Contributor.of_unbound_import(_location("mem:app"), MemoryResource("app"), False, data, 0)
    with pytest.raises(BindError):
        bind_properties(Contributor.of_root([]), unbound, None)


def test_empty_data_becomes_an_empty_location() -> None:
    result = ResolutionResult(_location("mem:dir/"), MemoryResource("dir/"))
    children = as_contributors([(result, EMPTY_CONFIG_DATA)])
    assert [child.kind for child in children] == [Kind.EMPTY_LOCATION]
    assert children[0].location == _location("mem:dir/")
