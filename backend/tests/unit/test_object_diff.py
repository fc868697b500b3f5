"""Unit tests for jsonmaster.services.compare.engine."""
import copy
import json
import sys

import pytest

from jsonmaster.services.compare.engine import ObjectDiffEngine
from jsonmaster.services.compare.models import ChangeType


@pytest.fixture()
def engine() -> ObjectDiffEngine:
    return ObjectDiffEngine()


def _ids(items):
    return sorted(item["id"] for item in items)


# ─── Worked examples ──────────────────────────────────────────────────────────

def test_single_modified_record(engine):
    result = engine.compare([{"id": 1, "name": "A"}], [{"id": 1, "name": "B"}], "id")

    assert result.validation_error is None
    assert result.added == [] and result.removed == [] and result.unchanged == []
    assert len(result.modified) == 1
    diff = result.modified[0]
    assert diff.key_value == "1"
    assert len(diff.differences) == 1
    field = diff.differences[0]
    assert field.path == "name"
    assert field.source_value == "A"
    assert field.target_value == "B"
    assert field.change_type == ChangeType.MODIFIED


def test_direct_object_comparison_reports_added_field(engine):
    result = engine.compare({"id": 1}, {"id": 1, "extra": 2}, "")

    assert len(result.modified) == 1
    diff = result.modified[0]
    assert diff.key_value == ""
    assert [(d.path, d.change_type) for d in diff.differences] == [("extra", ChangeType.ADDED)]
    assert diff.differences[0].source_value is None
    assert diff.differences[0].target_value == 2


def test_identical_objects_without_key_produce_nothing(engine):
    result = engine.compare({"a": {"b": [1, 2]}}, {"a": {"b": [1, 2]}})
    assert result.validation_error is None
    assert result.summary().total == 0


# ─── Array alignment ──────────────────────────────────────────────────────────

def test_every_element_lands_in_exactly_one_bucket(engine, orders_source, orders_target):
    result = engine.compare(orders_source, orders_target, "id")

    assert _ids(result.unchanged) == [1]
    assert [d.key_value for d in result.modified] == ["2"]
    assert _ids(result.removed) == [3]
    assert _ids(result.added) == [4]

    source_seen = (
        _ids(result.unchanged)
        + [d.source["id"] for d in result.modified]
        + _ids(result.removed)
    )
    target_seen = (
        _ids(result.unchanged)
        + [d.target["id"] for d in result.modified]
        + _ids(result.added)
    )
    assert sorted(source_seen) == _ids(orders_source)
    assert sorted(target_seen) == _ids(orders_target)


def test_nested_paths_are_dotted(engine, orders_source, orders_target):
    result = engine.compare(orders_source, orders_target, "id")
    paths = {d.path: d for d in result.modified[0].differences}

    assert set(paths) == {"status", "customer.tier"}
    assert paths["customer.tier"].source_value == "silver"
    assert paths["customer.tier"].target_value == "gold"


def test_compare_against_copy_is_all_unchanged(engine, orders_source):
    result = engine.compare(orders_source, copy.deepcopy(orders_source), "id")

    assert result.modified == []
    assert result.added == []
    assert result.removed == []
    assert _ids(result.unchanged) == _ids(orders_source)


def test_duplicate_keys_pair_by_occurrence(engine):
    source = [{"id": "x", "v": 1}, {"id": "x", "v": 2}, {"id": "x", "v": 3}]
    target = [{"id": "x", "v": 2}, {"id": "x", "v": 1}]

    result = engine.compare(source, target, "id")

    # Positional pairing: (1,2) and (2,1) differ, the third source is removed.
    assert len(result.modified) == 2
    assert all(d.key_value == "x" for d in result.modified)
    assert result.removed == [{"id": "x", "v": 3}]
    assert result.unchanged == []


def test_elements_without_key_or_not_objects_are_skipped(engine):
    source = [{"id": 1, "v": 1}, {"other": True}, "stray", 7]
    target = [{"id": 1, "v": 1}, {"other": False}]

    result = engine.compare(source, target, "id")

    assert result.unchanged == [{"id": 1, "v": 1}]
    assert result.summary().total == 1


def test_numeric_and_string_keys_group_by_text(engine):
    result = engine.compare([{"id": 1, "v": "a"}], [{"id": "1", "v": "a"}], "id")

    assert result.added == [] and result.removed == []
    [diff] = result.modified
    assert diff.key_value == "1"
    assert [d.path for d in diff.differences] == ["id"]


def test_array_fields_compare_as_whole_values(engine):
    source = [{"id": 1, "tags": ["a", "b", "c"]}]
    target = [{"id": 1, "tags": ["a", "B", "c"]}]

    result = engine.compare(source, target, "id")
    [field] = result.modified[0].differences

    assert field.path == "tags"
    assert field.change_type == ChangeType.MODIFIED
    assert field.source_value == ["a", "b", "c"]
    assert field.target_value == ["a", "B", "c"]


def test_object_key_order_does_not_matter(engine):
    source = [{"id": 1, "items": [{"a": 1, "b": 2}]}]
    target = [{"id": 1, "items": [{"b": 2, "a": 1}]}]
    assert engine.compare(source, target, "id").modified == []


def test_bool_is_not_equal_to_number(engine):
    result = engine.compare({"flag": True}, {"flag": 1})
    [field] = result.modified[0].differences
    assert field.change_type == ChangeType.MODIFIED


def test_kind_change_from_object_to_scalar_is_modified(engine):
    result = engine.compare({"a": {"b": 1}}, {"a": "flat"})
    [field] = result.modified[0].differences
    assert field.path == "a"
    assert field.source_value == {"b": 1}
    assert field.target_value == "flat"


def test_object_with_key_compares_first_array_property(engine):
    source = {"meta": {"v": 1}, "users": [{"uid": "u1", "age": 30}]}
    target = {"meta": {"v": 2}, "users": [{"uid": "u1", "age": 31}, {"uid": "u2", "age": 5}]}

    result = engine.compare(source, target, "uid")

    assert [d.key_value for d in result.modified] == ["u1"]
    assert result.added == [{"uid": "u2", "age": 5}]
    # Only the array is compared; "meta" does not surface.
    assert all(not d.path.startswith("meta") for d in result.modified[0].differences)


# ─── Direction symmetry ───────────────────────────────────────────────────────

def test_swapping_inputs_swaps_added_and_removed(engine):
    a = {"keep": 1, "gone": True, "nested": {"x": 1, "only_a": 0}}
    b = {"keep": 2, "new": "n", "nested": {"x": 1, "only_b": 0}}

    forward = {d.path: d.change_type for d in engine.compare_objects(a, b)}
    backward = {d.path: d.change_type for d in engine.compare_objects(b, a)}

    assert forward.keys() == backward.keys()
    flip = {ChangeType.ADDED: ChangeType.REMOVED, ChangeType.REMOVED: ChangeType.ADDED}
    for path, change in forward.items():
        assert backward[path] == flip.get(change, change)
    assert forward["keep"] == ChangeType.MODIFIED


# ─── Ignored fields ───────────────────────────────────────────────────────────

def test_ignored_field_is_only_difference(engine):
    source = [{"id": 1, "updatedAt": "2024-01-01", "name": "A"}]
    target = [{"id": 1, "updatedAt": "2025-06-30", "name": "A"}]

    result = engine.compare(source, target, "id", "updatedAt")

    assert result.modified == []
    assert len(result.unchanged) == 1


def test_ignored_fields_are_case_insensitive_trimmed_and_deep(engine):
    source = {"a": {"b": {"c": {"Timestamp": 1, "value": 1}}}, "ETag": "x"}
    target = {"a": {"b": {"c": {"timestamp": 2, "value": 1}}}, "etag": "y"}

    result = engine.compare(source, target, "", " timestamp , ETAG ,, ")

    assert result.modified == []


def test_ignored_fields_never_appear_in_paths(engine):
    source = [{"id": 1, "audit": {"by": "a"}, "x": {"audit": 1, "y": 1}}]
    target = [{"id": 1, "x": {"audit": 2, "y": 2}}]

    result = engine.compare(source, target, "id", ["AUDIT"])
    paths = [d.path for diff in result.modified for d in diff.differences]

    assert paths == ["x.y"]
    assert "audit" not in json.dumps(result.to_dict()).lower()


def test_pruning_leaves_caller_documents_untouched(engine):
    source = [{"id": 1, "secret": "s"}]
    target = [{"id": 1, "secret": "t"}]
    engine.compare(source, target, "id", "secret")
    assert source == [{"id": 1, "secret": "s"}]


# ─── Validation ───────────────────────────────────────────────────────────────

def test_arrays_require_key_field(engine):
    result = engine.compare([{"id": 1}], [{"id": 1}], "  ")
    assert result.validation_error.startswith("Key field is required")
    assert result.summary().total == 0


def test_missing_key_in_first_source_element(engine):
    result = engine.compare([{"name": "x"}], [{"id": 1}], "id")
    assert result.validation_error == "Key field 'id' not found in source array."


def test_empty_source_array_passes_validation(engine):
    result = engine.compare([], [{"id": 1}], "id")
    assert result.validation_error is None
    assert result.added == [{"id": 1}]


def test_objects_with_key_but_no_arrays(engine):
    result = engine.compare({"a": 1}, {"a": 2}, "id")
    assert "no arrays found" in result.validation_error


def test_objects_with_differently_named_arrays(engine):
    result = engine.compare({"users": []}, {"people": []}, "id")
    assert result.validation_error == "Array property names don't match: 'users' vs 'people'."


def test_objects_missing_key_in_named_array(engine):
    result = engine.compare({"users": [{"name": "a"}]}, {"users": []}, "id")
    assert result.validation_error == "Key field 'id' not found in source array 'users'."


@pytest.mark.parametrize(
    ("source", "target"),
    [([], {}), ({}, []), ("a", "a"), (1, 1), (None, None)],
)
def test_mismatched_or_scalar_kinds_fail(engine, source, target):
    result = engine.compare(source, target, "id")
    assert result.validation_error == "Both JSONs must be either arrays or objects of the same kind."
    assert result.modified == [] and result.unchanged == []


def test_ignored_key_field_fails_validation(engine):
    result = engine.compare([{"id": 1}], [{"id": 1}], "id", "ID")
    assert result.validation_error is not None


# ─── Raw input ────────────────────────────────────────────────────────────────

def test_compare_json_accepts_text_and_bytes(engine):
    result = engine.compare_json('[{"id":1,"v":1}]', b'[{"id":1,"v":2}]', "id", "")
    assert [d.key_value for d in result.modified] == ["1"]


def test_malformed_json_becomes_validation_error(engine):
    result = engine.compare_json('{"id": 1', "{}", "")
    assert result.validation_error.startswith("Error parsing JSON:")
    assert result.summary().total == 0


def test_summary_and_dict_shape(engine, orders_source, orders_target):
    data = engine.compare(orders_source, orders_target, "id").to_dict()

    assert data["summary"] == {"total": 4, "modified": 1, "added": 1, "removed": 1, "unchanged": 1}
    assert data["modified"][0]["differences"][0]["change_type"] in {"added", "removed", "modified"}
    json.dumps(data)


# ─── Input limits ─────────────────────────────────────────────────────────────

def _nested(depth: int) -> dict:
    doc: dict = {"leaf": 1}
    for _ in range(depth):
        doc = {"n": doc}
    return doc


class _FailingReader:
    def read(self, *args):
        raise OSError("disk went away")


def test_nesting_too_deep_to_parse_is_parse_error(engine):
    raw = "[" * 100_000 + "]" * 100_000

    result = engine.compare_json(raw, raw, "id")

    assert result.validation_error.startswith("Error parsing JSON:")
    assert result.summary().total == 0


@pytest.mark.parametrize("ignored", ["", "zz"])
def test_nesting_too_deep_to_compare_is_reported(engine, ignored):
    depth = sys.getrecursionlimit() + 100

    result = engine.compare(_nested(depth), _nested(depth), "", ignored)

    assert result.validation_error == "Error comparing JSON: documents are nested too deeply."
    assert result.summary().total == 0


def test_read_failure_is_parse_error(engine):
    result = engine.compare_json(_FailingReader(), "{}")
    assert result.validation_error == "Error parsing JSON: disk went away"


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_numbers_are_rejected(engine, constant):
    raw = f'[{{"id": 1, "v": {constant}}}]'
    result = engine.compare_json(raw, raw, "id")
    assert result.validation_error.startswith("Error parsing JSON:")


def test_parsed_nan_equals_itself(engine):
    doc = [{"id": 1, "v": float("nan")}]
    result = engine.compare(doc, [{"id": 1, "v": float("nan")}], "id")

    assert result.modified == []
    assert len(result.unchanged) == 1
