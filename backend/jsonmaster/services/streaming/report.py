"""
Diff report writer.

Drains a StreamComparison into a JSON array file on disk and yields a
progress event per delivered batch, so a client can follow a long
comparison while the report is written.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from jsonmaster.services.streaming.differ import MessageKind, StreamComparison

_log = structlog.get_logger(__name__)

REPORT_PREFIX = "diff_report_"


@dataclass(frozen=True)
class ReportEvent:
    type: str  # "progress" | "complete" | "error"
    message: str
    batches: int = 0
    items: int = 0
    total_differences: int | None = None
    file_name: str | None = None
    download_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


def new_report_name(now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{REPORT_PREFIX}{stamp}_{uuid.uuid4().hex[:8]}.json"


def is_report_name(name: str) -> bool:
    """True for names produced by ``new_report_name`` (no path components)."""
    return (
        name.startswith(REPORT_PREFIX)
        and name.endswith(".json")
        and Path(name).name == name
    )


class DiffReportWriter:
    """
    Writes every message of a comparison into ``report_dir``.

    Usage:
        writer = DiffReportWriter(settings.report_dir, "/api/v1/reports")
        async for event in writer.write(comparison):
            ...
    """

    def __init__(self, report_dir: Path, download_prefix: str = "/reports") -> None:
        self._report_dir = Path(report_dir)
        self._download_prefix = download_prefix.rstrip("/")

    async def write(self, comparison: StreamComparison) -> AsyncIterator[ReportEvent]:
        file_name = new_report_name()
        path = self._report_dir / file_name
        log = _log.bind(report=file_name)

        batches = 0
        items = 0
        differences = 0

        try:
            self._report_dir.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                handle.write("[\n")
                async for batch in comparison:
                    for message in batch:
                        if items:
                            handle.write(",\n")
                        handle.write("  " + message.to_json())
                        items += 1
                        if message.kind is MessageKind.DIFF:
                            differences += 1
                    batches += 1
                    yield ReportEvent(
                        type="progress",
                        message=f"Processed {differences:,} differences...",
                        batches=batches,
                        items=items,
                    )
                handle.write("\n]\n")
        except OSError as exc:
            comparison.cancel()
            log.error("report_write_failed", error=str(exc))
            yield ReportEvent(type="error", message=f"Could not write report: {exc}")
            return

        log.info("report_written", batches=batches, items=items, differences=differences)
        yield ReportEvent(
            type="complete",
            message="Done!",
            batches=batches,
            items=items,
            total_differences=differences,
            file_name=file_name,
            download_url=f"{self._download_prefix}/{file_name}",
        )
