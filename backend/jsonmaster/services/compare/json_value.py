"""
JSON value helpers shared by the object differ.

Parsed documents are plain Python JSON values. Every comparison site tags
them with a ``JsonKind`` first and branches on the tag, so a pairing of
different kinds is decided once instead of by scattered isinstance checks.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from enum import StrEnum
from typing import IO, Any

JsonValue = dict[str, Any] | list[Any] | str | int | float | bool | None


class JsonKind(StrEnum):
    """Closed set of JSON value kinds."""

    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    NULL = "null"


def kind_of(value: Any) -> JsonKind:
    """
    Return the JSON kind of a parsed value.

    ``bool`` is checked before numbers since it subclasses ``int``.
    """
    if value is None:
        return JsonKind.NULL
    if isinstance(value, bool):
        return JsonKind.BOOL
    if isinstance(value, dict):
        return JsonKind.OBJECT
    if isinstance(value, list):
        return JsonKind.ARRAY
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, (int, float)):
        return JsonKind.NUMBER
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


def deep_equal(left: Any, right: Any) -> bool:
    """
    Structural equality of two JSON values.

    Kinds must match. Arrays compare element-wise in order, objects compare
    key sets and values regardless of key order, numbers compare numerically.
    """
    kind = kind_of(left)
    if kind is not kind_of(right):
        return False

    if kind is JsonKind.OBJECT:
        if left.keys() != right.keys():
            return False
        return all(deep_equal(left[k], right[k]) for k in left)
    if kind is JsonKind.ARRAY:
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))
    if kind is JsonKind.NUMBER and left != left:
        return right != right
    return left == right


def key_string(value: Any) -> str:
    """String form of a key field value used to group array elements."""
    kind = kind_of(value)
    if kind is JsonKind.STRING:
        return value
    if kind is JsonKind.NULL:
        return ""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_ignored_fields(ignored: str | Iterable[str] | None) -> frozenset[str]:
    """
    Normalise ignored field names into a case-folded set.

    Accepts a comma-separated string or an iterable of names. Entries are
    trimmed and blanks dropped.
    """
    if not ignored:
        return frozenset()
    names = ignored.split(",") if isinstance(ignored, str) else ignored
    return frozenset(name.strip().casefold() for name in names if name and name.strip())


def is_ignored(name: str, ignored: frozenset[str]) -> bool:
    return bool(ignored) and name.casefold() in ignored


def prune_ignored(value: Any, ignored: frozenset[str]) -> Any:
    """
    Return a copy of ``value`` with ignored properties removed at every depth.

    The input tree is left untouched.
    """
    kind = kind_of(value)
    if kind is JsonKind.OBJECT:
        return {
            name: prune_ignored(child, ignored)
            for name, child in value.items()
            if not is_ignored(name, ignored)
        }
    if kind is JsonKind.ARRAY:
        return [prune_ignored(item, ignored) for item in value]
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def load_document(raw: str | bytes | bytearray | IO[Any]) -> Any:
    """
    Parse raw JSON from text, bytes, or a readable stream.

    Raises ``ValueError`` on malformed input, including the non-standard
    ``NaN`` and ``Infinity`` constants, and ``RecursionError`` when nesting
    exceeds the interpreter limit.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        return json.loads(raw, parse_constant=_reject_constant)
    return json.load(raw, parse_constant=_reject_constant)
