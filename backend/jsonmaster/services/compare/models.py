"""Result types produced by the object differ."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class ChangeType(StrEnum):
    """Kind of change recorded for a single field."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class FieldDiff:
    """
    One differing field.

    ``source_value`` is None for added fields and ``target_value`` is None
    for removed fields; modified fields carry both.
    """

    path: str
    change_type: ChangeType
    source_value: Any = None
    target_value: Any = None

    @classmethod
    def added(cls, path: str, value: Any) -> FieldDiff:
        return cls(path=path, change_type=ChangeType.ADDED, target_value=value)

    @classmethod
    def removed(cls, path: str, value: Any) -> FieldDiff:
        return cls(path=path, change_type=ChangeType.REMOVED, source_value=value)

    @classmethod
    def modified(cls, path: str, source: Any, target: Any) -> FieldDiff:
        return cls(
            path=path,
            change_type=ChangeType.MODIFIED,
            source_value=source,
            target_value=target,
        )


@dataclass
class ObjectDiff:
    """Differences between one aligned pair of objects."""

    key_value: str = ""
    source: Any = None
    target: Any = None
    differences: list[FieldDiff] = field(default_factory=list)

    @property
    def has_differences(self) -> bool:
        return bool(self.differences)


@dataclass(frozen=True)
class ComparisonSummary:
    total: int
    modified: int
    added: int
    removed: int
    unchanged: int


@dataclass
class ComparisonResult:
    """
    Outcome of a single object/array comparison.

    When ``validation_error`` is set the comparison never ran and every
    list is empty.
    """

    modified: list[ObjectDiff] = field(default_factory=list)
    added: list[Any] = field(default_factory=list)
    removed: list[Any] = field(default_factory=list)
    unchanged: list[Any] = field(default_factory=list)
    validation_error: str | None = None

    @classmethod
    def invalid(cls, message: str) -> ComparisonResult:
        return cls(validation_error=message)

    @property
    def is_valid(self) -> bool:
        return self.validation_error is None

    def summary(self) -> ComparisonSummary:
        return ComparisonSummary(
            total=len(self.modified) + len(self.added) + len(self.removed) + len(self.unchanged),
            modified=len(self.modified),
            added=len(self.added),
            removed=len(self.removed),
            unchanged=len(self.unchanged),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation, including the derived summary."""
        return {
            "summary": asdict(self.summary()),
            "modified": [asdict(diff) for diff in self.modified],
            "added": list(self.added),
            "removed": list(self.removed),
            "unchanged": list(self.unchanged),
            "validation_error": self.validation_error,
        }
