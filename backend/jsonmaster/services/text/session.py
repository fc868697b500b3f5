"""
Line diff of two texts, split into an expensive setup and cheap paging.

``initialize_session`` splits both inputs and counts differing lines once.
``get_page`` then classifies only the requested window, so paging through a
large pair costs O(page size) per request. Lines are aligned purely by
position; there is no edit-script alignment.
"""

from __future__ import annotations

import codecs
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import IO, Any

DEFAULT_PAGE_SIZE = 100
MAX_DISPLAY_LENGTH = 1000
TRUNCATION_MARKER = "... (truncated)"

_READ_CHUNK_BYTES = 64 * 1024


class LineChange(StrEnum):
    SAME = "same"
    MODIFIED = "modified"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class DiffSession:
    """Precomputed, immutable state of one text comparison."""

    source_lines: tuple[str, ...]
    target_lines: tuple[str, ...]
    total_lines: int
    total_differences: int
    source_size: int
    target_size: int


@dataclass(frozen=True)
class FileLine:
    line_number: int
    content: str
    is_different: bool
    change_type: LineChange


@dataclass(frozen=True)
class DiffPage:
    source_lines: list[FileLine] = field(default_factory=list)
    target_lines: list[FileLine] = field(default_factory=list)
    start_line: int = 1
    line_count: int = DEFAULT_PAGE_SIZE
    total_lines: int = 0
    total_differences: int = 0
    source_size: int = 0
    target_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        def _line(line: FileLine) -> dict[str, Any]:
            return {
                "line_number": line.line_number,
                "content": line.content,
                "is_different": line.is_different,
                "change_type": line.change_type.value,
            }

        return {
            "start_line": self.start_line,
            "line_count": self.line_count,
            "total_lines": self.total_lines,
            "total_differences": self.total_differences,
            "source_size": self.source_size,
            "target_size": self.target_size,
            "source_lines": [_line(line) for line in self.source_lines],
            "target_lines": [_line(line) for line in self.target_lines],
        }


def split_lines(text: str) -> list[str]:
    """
    Split on LF, dropping one trailing CR per line.

    A final newline does not start an extra empty line; empty text has no
    lines.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _iter_stream_lines(stream: IO[bytes], encoding: str) -> Iterator[str]:
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    remainder = ""
    while True:
        chunk = stream.read(_READ_CHUNK_BYTES)
        final = not chunk
        remainder += decoder.decode(chunk or b"", final=final)
        *complete, remainder = remainder.split("\n")
        for line in complete:
            yield line[:-1] if line.endswith("\r") else line
        if final:
            break
    if remainder:
        yield remainder[:-1] if remainder.endswith("\r") else remainder


def truncate_line(line: str, max_length: int = MAX_DISPLAY_LENGTH) -> str:
    if len(line) <= max_length:
        return line
    return line[:max_length] + TRUNCATION_MARKER


def classify(source: str | None, target: str | None) -> LineChange:
    if source is None:
        return LineChange.ADDED
    if target is None:
        return LineChange.REMOVED
    return LineChange.SAME if source == target else LineChange.MODIFIED


class LineDiffSession:
    """Builds DiffSession values and serves pages from them. Stateless."""

    def __init__(self, max_display_length: int = MAX_DISPLAY_LENGTH) -> None:
        self.max_display_length = max_display_length

    def initialize_session(self, source_text: str, target_text: str) -> DiffSession:
        return self._build(split_lines(source_text), split_lines(target_text))

    def initialize_session_from_streams(
        self,
        source_stream: IO[bytes],
        target_stream: IO[bytes],
        encoding: str = "utf-8-sig",
    ) -> DiffSession:
        """
        Build a session by reading two binary streams incrementally.

        The default encoding drops a leading UTF-8 byte order mark.
        """
        return self._build(
            _iter_stream_lines(source_stream, encoding),
            _iter_stream_lines(target_stream, encoding),
        )

    def get_page(
        self,
        session: DiffSession,
        start_line: int = 1,
        line_count: int = DEFAULT_PAGE_SIZE,
    ) -> DiffPage:
        """
        Return lines ``start_line`` .. ``start_line + line_count - 1`` (1-based).

        Windows past the end of the session come back empty.
        """
        if start_line < 1:
            raise ValueError("start_line must be >= 1")
        if line_count < 1:
            raise ValueError("line_count must be >= 1")

        source_page: list[FileLine] = []
        target_page: list[FileLine] = []
        end_line = min(start_line + line_count - 1, session.total_lines)

        for index in range(start_line - 1, end_line):
            source = session.source_lines[index] if index < len(session.source_lines) else None
            target = session.target_lines[index] if index < len(session.target_lines) else None
            change = classify(source, target)
            is_different = change is not LineChange.SAME

            source_page.append(
                FileLine(
                    line_number=index + 1,
                    content=truncate_line(source or "", self.max_display_length),
                    is_different=is_different,
                    change_type=change,
                )
            )
            target_page.append(
                FileLine(
                    line_number=index + 1,
                    content=truncate_line(target or "", self.max_display_length),
                    is_different=is_different,
                    change_type=change,
                )
            )

        return DiffPage(
            source_lines=source_page,
            target_lines=target_page,
            start_line=start_line,
            line_count=line_count,
            total_lines=session.total_lines,
            total_differences=session.total_differences,
            source_size=session.source_size,
            target_size=session.target_size,
        )

    def _build(self, source: Iterable[str], target: Iterable[str]) -> DiffSession:
        source_lines = tuple(source)
        target_lines = tuple(target)
        total_lines = max(len(source_lines), len(target_lines))

        differences = sum(1 for a, b in zip(source_lines, target_lines) if a != b)
        differences += abs(len(source_lines) - len(target_lines))

        return DiffSession(
            source_lines=source_lines,
            target_lines=target_lines,
            total_lines=total_lines,
            total_differences=differences,
            source_size=sum(len(line) for line in source_lines),
            target_size=sum(len(line) for line in target_lines),
        )
