"""
ObjectDiffEngine: key-aligned diff of two parsed JSON documents.

Two arrays are aligned record-by-record on a caller-chosen key field and
each matched pair is diffed field-by-field. Two objects are either diffed
directly (no key field) or, when a key field is given, reduced to their
first array-valued property and aligned like arrays.

Validation and parse problems are returned on the result, never raised.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import IO, Any

import structlog

from jsonmaster.services.compare.json_value import (
    JsonKind,
    deep_equal,
    is_ignored,
    key_string,
    kind_of,
    load_document,
    parse_ignored_fields,
    prune_ignored,
)
from jsonmaster.services.compare.models import ComparisonResult, FieldDiff, ObjectDiff

_log = structlog.get_logger(__name__)

RawJson = str | bytes | bytearray | IO[Any]


@dataclass(frozen=True)
class _ArrayPair:
    """The two arrays selected for key-aligned comparison."""

    name: str
    source: list[Any]
    target: list[Any]


def _first_array_property(obj: dict[str, Any]) -> tuple[str, list[Any]] | None:
    for name, value in obj.items():
        if kind_of(value) is JsonKind.ARRAY:
            return name, value
    return None


def _lacks_key(items: list[Any], key_field: str) -> bool:
    """True when the first element is an object without ``key_field``."""
    if not items:
        return False
    first = items[0]
    return kind_of(first) is JsonKind.OBJECT and key_field not in first


def _group_by_key(items: list[Any], key_field: str) -> dict[str, list[dict[str, Any]]]:
    # Non-objects and objects without the key field are not aligned at all.
    groups: dict[str, list[dict[str, Any]]] = {}
    for item in items:
        if kind_of(item) is not JsonKind.OBJECT or key_field not in item:
            continue
        groups.setdefault(key_string(item[key_field]), []).append(item)
    return groups


class ObjectDiffEngine:
    """
    Stateless comparison service. A single instance may be shared across
    concurrent requests.
    """

    def compare_json(
        self,
        source_json: RawJson,
        target_json: RawJson,
        key_field: str = "",
        ignored_fields: str | Iterable[str] | None = "",
    ) -> ComparisonResult:
        """Parse two raw JSON inputs and compare them."""
        try:
            source = load_document(source_json)
            target = load_document(target_json)
        except (ValueError, OSError, RecursionError) as exc:
            _log.debug("compare_parse_failed", error=str(exc))
            return ComparisonResult.invalid(f"Error parsing JSON: {exc}")
        return self.compare(source, target, key_field, ignored_fields)

    def compare(
        self,
        source: Any,
        target: Any,
        key_field: str = "",
        ignored_fields: str | Iterable[str] | None = (),
    ) -> ComparisonResult:
        """
        Compare two parsed documents.

        Args:
            source: Parsed source document.
            target: Parsed target document.
            key_field: Property used to align array elements. May be blank
                when comparing two objects directly.
            ignored_fields: Property names to drop before comparing, either
                comma-separated or as an iterable. Case-insensitive.

        Returns:
            A ComparisonResult, carrying ``validation_error`` instead of
            partial output when the inputs cannot be compared.
        """
        key_field = (key_field or "").strip()
        ignored = parse_ignored_fields(ignored_fields)

        try:
            return self._compare(source, target, key_field, ignored)
        except RecursionError:
            _log.debug("compare_nesting_too_deep", key_field=key_field)
            return ComparisonResult.invalid(
                "Error comparing JSON: documents are nested too deeply."
            )

    def _compare(
        self, source: Any, target: Any, key_field: str, ignored: frozenset[str]
    ) -> ComparisonResult:
        if ignored:
            source = prune_ignored(source, ignored)
            target = prune_ignored(target, ignored)

        error, pair = self._validate(source, target, key_field)
        if error is not None:
            _log.debug("compare_validation_failed", error=error)
            return ComparisonResult.invalid(error)

        result = ComparisonResult()
        if pair is not None:
            self._collect_arrays(pair.source, pair.target, key_field, ignored, result)
        else:
            diff = ObjectDiff(
                source=source,
                target=target,
                differences=self._diff_objects(source, target, "", ignored),
            )
            if diff.has_differences:
                result.modified.append(diff)
        return result

    def compare_arrays(
        self,
        source: list[Any],
        target: list[Any],
        key_field: str,
        ignored_fields: str | Iterable[str] | None = (),
    ) -> ComparisonResult:
        """
        Align two arrays of objects on ``key_field`` and diff matched pairs.

        Elements sharing a key are paired by their position within the key's
        group: the i-th source element with the i-th target element.
        """
        result = ComparisonResult()
        self._collect_arrays(
            source, target, key_field, parse_ignored_fields(ignored_fields), result
        )
        return result

    def compare_objects(
        self,
        source: dict[str, Any],
        target: dict[str, Any],
        base_path: str = "",
        ignored_fields: str | Iterable[str] | None = (),
    ) -> list[FieldDiff]:
        """
        Field-level differences between two objects.

        Nested objects are walked and reported under dotted paths; arrays
        and scalars are compared as whole values.
        """
        return self._diff_objects(
            source, target, base_path, parse_ignored_fields(ignored_fields)
        )

    # ── Internals ────────────────────────────────────────────────────── #

    def _diff_objects(
        self,
        source: dict[str, Any],
        target: dict[str, Any],
        base_path: str,
        ignored: frozenset[str],
    ) -> list[FieldDiff]:
        differences: list[FieldDiff] = []

        names = list(source)
        names.extend(name for name in target if name not in source)

        for name in names:
            if is_ignored(name, ignored):
                continue
            path = f"{base_path}.{name}" if base_path else name

            if name not in target:
                differences.append(FieldDiff.removed(path, source[name]))
                continue
            if name not in source:
                differences.append(FieldDiff.added(path, target[name]))
                continue

            source_value = source[name]
            target_value = target[name]
            if kind_of(source_value) is JsonKind.OBJECT and kind_of(target_value) is JsonKind.OBJECT:
                differences.extend(
                    self._diff_objects(source_value, target_value, path, ignored)
                )
            elif not deep_equal(source_value, target_value):
                differences.append(FieldDiff.modified(path, source_value, target_value))

        return differences

    def _validate(
        self, source: Any, target: Any, key_field: str
    ) -> tuple[str | None, _ArrayPair | None]:
        """Return (error, arrays-to-align). Both None means direct object diff."""
        source_kind = kind_of(source)
        target_kind = kind_of(target)

        if source_kind is JsonKind.ARRAY and target_kind is JsonKind.ARRAY:
            if not key_field:
                return (
                    "Key field is required for comparing arrays. Please specify a "
                    "field to match records (e.g., 'id', 'workOrderID').",
                    None,
                )
            if _lacks_key(source, key_field):
                return f"Key field '{key_field}' not found in source array.", None
            return None, _ArrayPair(name="", source=source, target=target)

        if source_kind is JsonKind.OBJECT and target_kind is JsonKind.OBJECT:
            if not key_field:
                return None, None

            source_prop = _first_array_property(source)
            target_prop = _first_array_property(target)
            if source_prop is None or target_prop is None:
                return (
                    "Key field provided but no arrays found in the root objects to compare.",
                    None,
                )
            source_name, source_items = source_prop
            target_name, target_items = target_prop
            if source_name != target_name:
                return (
                    f"Array property names don't match: '{source_name}' vs '{target_name}'.",
                    None,
                )
            if _lacks_key(source_items, key_field):
                return (
                    f"Key field '{key_field}' not found in source array '{source_name}'.",
                    None,
                )
            return None, _ArrayPair(name=source_name, source=source_items, target=target_items)

        return "Both JSONs must be either arrays or objects of the same kind.", None

    def _collect_arrays(
        self,
        source: list[Any],
        target: list[Any],
        key_field: str,
        ignored: frozenset[str],
        result: ComparisonResult,
    ) -> None:
        source_groups = _group_by_key(source, key_field)
        target_groups = _group_by_key(target, key_field)

        keys = list(source_groups)
        keys.extend(key for key in target_groups if key not in source_groups)

        for key in keys:
            source_items = source_groups.get(key, [])
            target_items = target_groups.get(key, [])

            for index in range(max(len(source_items), len(target_items))):
                if index >= len(target_items):
                    result.removed.append(source_items[index])
                    continue
                if index >= len(source_items):
                    result.added.append(target_items[index])
                    continue

                src = source_items[index]
                tgt = target_items[index]
                differences = self._diff_objects(src, tgt, "", ignored)
                if differences:
                    result.modified.append(
                        ObjectDiff(key_value=key, source=src, target=tgt, differences=differences)
                    )
                else:
                    result.unchanged.append(src)
