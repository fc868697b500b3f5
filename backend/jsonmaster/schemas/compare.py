"""Response schemas for the comparison endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from jsonmaster.services.compare.models import ChangeType, ComparisonResult
from jsonmaster.services.text.session import DiffPage, LineChange


class FieldDiffOut(BaseModel):
    path: str
    change_type: ChangeType
    source_value: Any = None
    target_value: Any = None

    model_config = {"from_attributes": True}


class ObjectDiffOut(BaseModel):
    key_value: str
    source: Any = None
    target: Any = None
    differences: list[FieldDiffOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ComparisonSummaryOut(BaseModel):
    total: int
    modified: int
    added: int
    removed: int
    unchanged: int

    model_config = {"from_attributes": True}


class SmartCompareResponse(BaseModel):
    summary: ComparisonSummaryOut
    modified: list[ObjectDiffOut] = Field(default_factory=list)
    added: list[Any] = Field(default_factory=list)
    removed: list[Any] = Field(default_factory=list)
    unchanged: list[Any] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ComparisonResult) -> SmartCompareResponse:
        return cls(
            summary=ComparisonSummaryOut.model_validate(result.summary()),
            modified=[ObjectDiffOut.model_validate(diff) for diff in result.modified],
            added=result.added,
            removed=result.removed,
            unchanged=result.unchanged,
        )


class FileLineOut(BaseModel):
    line_number: int
    content: str
    is_different: bool
    change_type: LineChange

    model_config = {"from_attributes": True}


class TextDiffResponse(BaseModel):
    session_id: str
    total_differences: int
    total_lines: int
    source_size: int
    target_size: int
    page: int
    page_size: int
    total_pages: int
    source_lines: list[FileLineOut] = Field(default_factory=list)
    target_lines: list[FileLineOut] = Field(default_factory=list)

    @classmethod
    def from_page(
        cls, session_id: str, page: int, page_size: int, result: DiffPage
    ) -> TextDiffResponse:
        return cls(
            session_id=session_id,
            total_differences=result.total_differences,
            total_lines=result.total_lines,
            source_size=result.source_size,
            target_size=result.target_size,
            page=page,
            page_size=page_size,
            total_pages=-(-result.total_lines // page_size),
            source_lines=[FileLineOut.model_validate(line) for line in result.source_lines],
            target_lines=[FileLineOut.model_validate(line) for line in result.target_lines],
        )
