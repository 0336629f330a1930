"""Unit tests for shape fingerprinting."""

import pytest

from schemaless.shape import (
    canonical_json,
    is_dynamic_key,
    shape_fingerprint,
    shape_skeleton,
    shape_token,
    template_key,
)


@pytest.mark.unit
def test_skeleton_zeroes_scalars_and_drops_dynamic_keys():
    source = {
        "name": "ada",
        "age": 36,
        "ratio": 0.5,
        "active": True,
        "note": None,
        "customfield_10012": "x",
        "nested": {"id": "7", "field2": 3},
    }
    assert shape_skeleton(source) == {
        "active": False,
        "age": 0,
        "name": "",
        "nested": {"id": ""},
        "note": None,
        "ratio": 0,
    }


@pytest.mark.unit
def test_list_length_does_not_change_shape():
    short = {"items": [{"id": 1}]}
    long = {"items": [{"id": 1}, {"id": 2}, {"id": 3}]}
    assert shape_skeleton(long) == {"items": [{"id": 0}]}
    assert shape_token(short) == shape_token(long)


@pytest.mark.unit
def test_distinct_item_shapes_are_kept_in_first_seen_order():
    source = {"items": [{"a": 1}, {"b": "x"}, {"a": 2}]}
    assert shape_skeleton(source) == {"items": [{"a": 0}, {"b": ""}]}


@pytest.mark.unit
def test_token_ignores_values_and_digit_suffixed_keys():
    first = {"id": "1", "title": "one", "custom1": "a", "meta": {"x": 1}}
    second = {"meta": {"x": 99}, "title": "two", "id": "2", "custom7": {"deep": True}}
    assert shape_token(first) == shape_token(second)


@pytest.mark.unit
def test_token_changes_with_structure():
    assert shape_token({"id": "1"}) != shape_token({"id": 1})
    assert shape_token({"id": "1"}) != shape_token({"ident": "1"})


@pytest.mark.unit
def test_canonical_json_is_stable():
    assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


@pytest.mark.unit
def test_dynamic_key_heuristic():
    assert is_dynamic_key("field2")
    assert not is_dynamic_key("field")
    assert not is_dynamic_key("")


@pytest.mark.unit
def test_template_key_includes_standard_and_prefix():
    assert template_key("ticket", "abc") == "ticket-abc"
    assert template_key("ticket", "abc", prefix="jira_") == "jira_ticket-abc"


@pytest.mark.unit
def test_fingerprint_bytes_and_token_agree():
    source = {"key": "OPS-1", "fields": {"summary": "Disk", "votes": 2}}
    shape, token = shape_fingerprint(source)
    assert shape == canonical_json(shape_skeleton(source)).encode("utf-8")
    assert token == shape_token(source)
