"""Unit tests for jsonmaster.services.streaming.report."""
import json
from datetime import datetime

import pytest

from jsonmaster.services.streaming.differ import StreamingTokenDiffer
from jsonmaster.services.streaming.report import (
    DiffReportWriter,
    is_report_name,
    new_report_name,
)

pytestmark = pytest.mark.asyncio


async def _run(writer: DiffReportWriter, source: bytes, target: bytes, batch_size: int = 2):
    differ = StreamingTokenDiffer(batch_size=batch_size)
    async with differ.compare_streams(source, target) as comparison:
        return [event async for event in writer.write(comparison)]


async def test_report_contains_every_message(tmp_path):
    writer = DiffReportWriter(tmp_path, download_prefix="/api/v1/reports/")
    events = await _run(writer, b"[1, 2, 3, 4, 5]", b"[1, 0, 3, 0, 0]")

    complete = events[-1]
    assert complete.type == "complete"
    assert complete.message == "Done!"
    assert complete.total_differences == 3
    assert complete.download_url == f"/api/v1/reports/{complete.file_name}"

    report = json.loads((tmp_path / complete.file_name).read_text(encoding="utf-8"))
    assert [entry["kind"] for entry in report] == ["diff", "diff", "diff", "status"]
    assert report[0]["path"] == "$[1]"


async def test_progress_event_per_batch(tmp_path):
    events = await _run(DiffReportWriter(tmp_path), b"[1, 2, 3, 4, 5]", b"[0, 0, 0, 0, 0]")

    progress = [e for e in events if e.type == "progress"]
    assert [e.batches for e in progress] == [1, 2, 3]
    assert progress[-1].message == "Processed 5 differences..."
    assert events[-1].batches == 3
    assert events[-1].items == 6


async def test_identical_inputs_write_status_only(tmp_path):
    events = await _run(DiffReportWriter(tmp_path), b'{"a": 1}', b'{"a": 1}')

    complete = events[-1]
    assert complete.total_differences == 0
    report = json.loads((tmp_path / complete.file_name).read_text(encoding="utf-8"))
    assert report == [{"kind": "status", "message": "Comparison complete."}]


async def test_unwritable_directory_yields_error_event(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    events = await _run(DiffReportWriter(blocker / "reports"), b"[1]", b"[2]")

    assert [e.type for e in events] == ["error"]
    assert events[0].message.startswith("Could not write report:")


async def test_event_dict_drops_unset_fields(tmp_path):
    events = await _run(DiffReportWriter(tmp_path), b"[1]", b"[1]")
    assert "file_name" not in events[0].to_dict()
    assert set(events[-1].to_dict()) >= {"type", "message", "file_name", "download_url"}


async def test_report_names():
    name = new_report_name(datetime(2024, 5, 6, 7, 8, 9))

    assert name.startswith("diff_report_20240506_070809_")
    assert is_report_name(name)
    assert not is_report_name("../diff_report_x.json")
    assert not is_report_name("notes.json")
