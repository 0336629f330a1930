"""Unit tests for the path language."""

import pytest

from schemaless.exceptions import PathNotFoundError, TypeMismatchError
from schemaless.paths import (
    KeySegment,
    ListSelector,
    decode_embedded,
    find_references,
    is_selector,
    normalize_path,
    parse_path,
    resolve_path,
    stringify,
    try_resolve,
)
from schemaless.types import Failure, Multi, Single, Success

TREE = {
    "data": {
        "id": 42,
        "users": [
            {"name": "ada", "email": "ada@example.com"},
            {"name": "bob"},
            {"name": "cy", "email": "cy@example.com"},
        ],
        "tags": ["a", "b", "c", "d"],
    },
    "embedded": '{"inner": {"value": "x"}}',
}


class TestParsing:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "segment",
        ["#", "#0", "#12", "#1-3", "#-3", "#2-", "#min", "#max", "#min-2", "#1-max", "#min-max"],
    )
    def test_selectors_recognized(self, segment):
        assert is_selector(segment)

    @pytest.mark.unit
    @pytest.mark.parametrize("segment", ["name", "#a", "#1-2-3", "##", "1", "#max-1"])
    def test_non_selectors_are_keys(self, segment):
        assert not is_selector(segment)

    @pytest.mark.unit
    def test_parse_mixed_segments(self):
        segments = parse_path("data.users.#.name")
        assert segments[0] == KeySegment("data")
        assert isinstance(segments[2], ListSelector)
        assert segments[3] == KeySegment("name")

    @pytest.mark.unit
    def test_normalization_of_generated_spellings(self):
        assert normalize_path(' $data.users[].name. ') == "data.users.#.name"
        assert normalize_path('"data"."id"') == "data.id"

    @pytest.mark.unit
    def test_empty_path_has_no_segments(self):
        assert parse_path("") == ()


class TestResolution:
    @pytest.mark.unit
    def test_key_path_resolves_single_value(self):
        assert resolve_path(TREE, "data.id") == Single(42)

    @pytest.mark.unit
    def test_resolution_is_deterministic(self):
        first = resolve_path(TREE, "data.users.#.name")
        assert all(resolve_path(TREE, "data.users.#.name") == first for _ in range(5))

    @pytest.mark.unit
    def test_all_selector_yields_one_slot_per_item(self):
        result = resolve_path(TREE, "data.users.#.email")
        assert isinstance(result, Multi)
        assert result.items == ("ada@example.com", None, "cy@example.com")
        assert result.anchor == "data.users.#"

    @pytest.mark.unit
    def test_index_selector_pins_one_item(self):
        assert resolve_path(TREE, "data.users.#1.name") == Single("bob")
        assert resolve_path(TREE, "data.tags.#max") == Single("d")
        assert resolve_path(TREE, "data.tags.#min") == Single("a")

    @pytest.mark.unit
    def test_range_selector_is_inclusive(self):
        result = resolve_path(TREE, "data.tags.#1-2")
        assert isinstance(result, Multi)
        assert result.items == ("b", "c")

    @pytest.mark.unit
    def test_open_range_bounds(self):
        assert resolve_path(TREE, "data.tags.#2-").items == ("c", "d")
        assert resolve_path(TREE, "data.tags.#-1").items == ("a", "b")
        assert resolve_path(TREE, "data.tags.#min-max").items == ("a", "b", "c", "d")

    @pytest.mark.unit
    @pytest.mark.parametrize("path", ["data.tags.#3-1", "data.tags.#2-9", "data.tags.#4"])
    def test_out_of_range_selectors_fail(self, path):
        with pytest.raises(PathNotFoundError):
            resolve_path(TREE, path)

    @pytest.mark.unit
    def test_missing_key_fails(self):
        with pytest.raises(PathNotFoundError) as exc:
            resolve_path(TREE, "data.missing")
        assert exc.value.path == "missing"

    @pytest.mark.unit
    def test_type_mismatch(self):
        with pytest.raises(TypeMismatchError):
            resolve_path(TREE, "data.users.name")
        with pytest.raises(TypeMismatchError):
            resolve_path(TREE, "data.id.#")

    @pytest.mark.unit
    def test_embedded_json_object_is_decoded(self):
        assert resolve_path(TREE, "embedded.inner.value") == Single("x")

    @pytest.mark.unit
    def test_nested_selectors_produce_nested_multi(self):
        tree = {"groups": [{"ids": [1, 2]}, {"ids": [3]}]}
        result = resolve_path(tree, "groups.#.ids.#")
        assert isinstance(result, Multi)
        assert result.to_list() == [[1, 2], [3]]

    @pytest.mark.unit
    def test_try_resolve_wraps_errors(self):
        assert isinstance(try_resolve(TREE, "data.id"), Success)
        failure = try_resolve(TREE, "nope")
        assert isinstance(failure, Failure)
        assert isinstance(failure.error, PathNotFoundError)


class TestHelpers:
    @pytest.mark.unit
    def test_find_references_in_text(self):
        text = "Ticket $data.id by $data.users.#0.name."
        refs = find_references(text)
        assert [r.path for r in refs] == ["data.id", "data.users.#0.name"]
        assert text[refs[1].start : refs[1].end] == "$data.users.#0.name"

    @pytest.mark.unit
    def test_stringify(self):
        assert stringify(None) == ""
        assert stringify(True) == "true"
        assert stringify(3.0) == "3"
        assert stringify(2.5) == "2.5"
        assert stringify({"a": 1}) == '{"a": 1}'
        assert stringify(Multi(items=(1, 2), anchor="x.#")) == "[1, 2]"

    @pytest.mark.unit
    def test_decode_embedded_leaves_non_objects(self):
        assert decode_embedded("plain") == "plain"
        assert decode_embedded("{not json}") == "{not json}"
        assert decode_embedded('{"a": 1}') == {"a": 1}
