from __future__ import annotations

import pytest

from lib_config_data.domain.errors import PlaceholderResolutionError
from lib_config_data.domain.placeholders import replace_placeholders, resolve_nested


def test_plain_text_is_returned_unchanged() -> None:
    assert replace_placeholders("no placeholders", {}.get) == "no placeholders"


def test_defaults_apply_only_when_key_is_missing() -> None:
    values = {"port": 8080}
    assert replace_placeholders("${port:80}", values.get) == "8080"
    assert replace_placeholders("${host:localhost}", values.get) == "localhost"
    assert replace_placeholders("${host:}", values.get) == ""


def test_nested_placeholders_in_keys_and_defaults() -> None:
    values = {"env": "prod", "db.prod": "pg-prod", "fallback": "pg-local"}
    assert replace_placeholders("${db.${env}}", values.get) == "pg-prod"
    assert replace_placeholders("${db.test:${fallback}}", values.get) == "pg-local"


def test_unresolvable_placeholders_stay_in_place() -> None:
    assert replace_placeholders("a ${missing} b", {}.get) == "a ${missing} b"
    assert replace_placeholders("${unclosed", {}.get) == "${unclosed"


def test_repeated_non_circular_references_are_fine() -> None:
    values = {"a": "x"}
    assert replace_placeholders("${a}-${a}", values.get) == "x-x"


def test_circular_references_raise() -> None:
    with pytest.raises(PlaceholderResolutionError, match="Circular placeholder reference 'a'"):
        replace_placeholders("${a}", {"a": "${b}", "b": "${a}"}.get)


def test_resolve_nested_leaves_non_strings_alone() -> None:
    assert resolve_nested(5, {}.get) == 5
    assert resolve_nested(("${a}",), {"a": 1}.get) == ["1"]
