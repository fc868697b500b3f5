"""
Comparison endpoints.

Inputs arrive as multipart forms: either two uploaded files under ``files``
or two inline documents (``json1``/``json2``). Uploads are spooled to
temporary files first so the streaming endpoints never hold a whole
document in memory and keep a readable stream after the request body has
been consumed.
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import AsyncIterator
from typing import IO, Annotated, Any

import structlog
from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from jsonmaster.api.deps import (
    AppSettings,
    LineDiffer,
    ObjectDiffer,
    ReportWriter,
    SessionStore,
    StreamDiffer,
)
from jsonmaster.config.settings import Settings
from jsonmaster.core.errors import (
    AppError,
    ComparisonValidationError,
    ErrorCode,
    MissingInputError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from jsonmaster.core.metrics import COMPARISON_FAILURES_TOTAL, COMPARISONS_TOTAL
from jsonmaster.schemas.compare import SmartCompareResponse, TextDiffResponse
from jsonmaster.services.streaming.differ import DiffMessage, StreamingTokenDiffer
from jsonmaster.services.streaming.report import DiffReportWriter, is_report_name

_log = structlog.get_logger(__name__)
router = APIRouter(tags=["compare"])

_SPOOL_MEMORY_BYTES = 8 * 1024 * 1024
_UPLOAD_CHUNK_BYTES = 1024 * 1024

Uploads = Annotated[list[UploadFile] | None, File(description="Exactly two files")]
InlineDoc = Annotated[str | None, Form()]


def _sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _spool(upload: UploadFile, limit: int) -> IO[bytes]:
    """Copy an upload into a temporary file, enforcing the size limit."""
    spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MEMORY_BYTES)
    size = 0
    while True:
        chunk = await upload.read(_UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            spool.close()
            raise ValidationError(
                f"File exceeds maximum allowed size of {limit // (1024 * 1024)}MB",
                detail={"file_name": upload.filename, "limit_bytes": limit},
            )
        spool.write(chunk)
    spool.seek(0)
    return spool


def _inline(text: str) -> IO[bytes]:
    spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MEMORY_BYTES)
    spool.write(text.encode("utf-8"))
    spool.seek(0)
    return spool


async def _open_inputs(
    files: list[UploadFile] | None,
    first: str | None,
    second: str | None,
    settings: Settings,
    missing_message: str = "Please provide exactly 2 files or 2 JSON strings.",
) -> tuple[IO[bytes], IO[bytes]]:
    """Resolve the request into a (source, target) pair of binary streams."""
    if files and len(files) == 2:
        source = await _spool(files[0], settings.max_upload_size_bytes)
        try:
            target = await _spool(files[1], settings.max_upload_size_bytes)
        except AppError:
            source.close()
            raise
        return source, target
    if first and second:
        return _inline(first), _inline(second)
    raise MissingInputError(missing_message)


def _close_all(*streams: IO[bytes]) -> None:
    for stream in streams:
        stream.close()


async def _single_event(payload: dict[str, Any]) -> AsyncIterator[str]:
    yield _sse(payload)


def _event_stream(body: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _diff_events(
    differ: StreamingTokenDiffer, source: IO[bytes], target: IO[bytes]
) -> AsyncIterator[str]:
    try:
        async with differ.compare_streams(source, target) as comparison:
            async for batch in comparison:
                for message in batch:
                    yield _sse(message.to_dict())
    finally:
        _close_all(source, target)


async def _report_events(
    writer: DiffReportWriter,
    differ: StreamingTokenDiffer,
    source: IO[bytes],
    target: IO[bytes],
) -> AsyncIterator[str]:
    try:
        async with differ.compare_streams(source, target) as comparison:
            async for event in writer.write(comparison):
                yield _sse(event.to_dict())
    finally:
        _close_all(source, target)


@router.post(
    "/compare",
    summary="Stream token-level differences between two JSON documents",
    response_class=StreamingResponse,
)
async def compare_streaming(
    settings: AppSettings,
    differ: StreamDiffer,
    files: Uploads = None,
    json1: InlineDoc = None,
    json2: InlineDoc = None,
) -> StreamingResponse:
    """
    Server-sent events, one ``data:`` frame per DiffMessage.

    Problems with the request itself are reported as a single error frame,
    matching how failures during the comparison are delivered.
    """
    COMPARISONS_TOTAL.labels(mode="stream").inc()
    try:
        source, target = await _open_inputs(files, json1, json2, settings)
    except AppError as exc:
        COMPARISON_FAILURES_TOTAL.labels(mode="stream").inc()
        return _event_stream(_single_event(DiffMessage.error(exc.message).to_dict()))

    _log.info("stream_comparison_requested", uploads=bool(files))
    return _event_stream(_diff_events(differ, source, target))


@router.post(
    "/compare/file",
    summary="Write token-level differences to a downloadable report",
    response_class=StreamingResponse,
)
async def compare_to_file(
    settings: AppSettings,
    differ: StreamDiffer,
    writer: ReportWriter,
    files: Uploads = None,
    json1: InlineDoc = None,
    json2: InlineDoc = None,
) -> StreamingResponse:
    """Server-sent progress events, ending with a ``complete`` or ``error`` event."""
    COMPARISONS_TOTAL.labels(mode="report").inc()
    try:
        source, target = await _open_inputs(
            files, json1, json2, settings, missing_message="Invalid input"
        )
    except AppError as exc:
        COMPARISON_FAILURES_TOTAL.labels(mode="report").inc()
        return _event_stream(_single_event({"type": "error", "message": exc.message}))

    return _event_stream(_report_events(writer, differ, source, target))


@router.get(
    "/reports/{file_name}",
    summary="Download a generated diff report",
    response_class=FileResponse,
)
async def download_report(file_name: str, settings: AppSettings) -> FileResponse:
    path = settings.report_dir / file_name
    if not is_report_name(file_name) or not path.is_file():
        raise NotFoundError("Report", file_name, code=ErrorCode.REPORT_NOT_FOUND)
    return FileResponse(path, media_type="application/json", filename=file_name)


@router.post(
    "/compare/smart",
    response_model=SmartCompareResponse,
    summary="Key-aligned field-level comparison of two JSON documents",
)
async def compare_smart(
    settings: AppSettings,
    engine: ObjectDiffer,
    files: Uploads = None,
    json1: InlineDoc = None,
    json2: InlineDoc = None,
    key_field: Annotated[str, Form(alias="keyField")] = "",
    ignored_fields: Annotated[str, Form(alias="ignoredFields")] = "",
) -> SmartCompareResponse:
    """
    Align array records on ``keyField`` and report modified, added, removed
    and unchanged records. ``ignoredFields`` is a comma-separated list of
    property names excluded at every depth.
    """
    COMPARISONS_TOTAL.labels(mode="smart").inc()
    source, target = await _open_inputs(
        files, json1, json2, settings, missing_message="Missing JSON content"
    )
    try:
        result = await run_in_threadpool(
            engine.compare_json, source, target, key_field, ignored_fields
        )
    finally:
        _close_all(source, target)

    if not result.is_valid:
        COMPARISON_FAILURES_TOTAL.labels(mode="smart").inc()
        raise ComparisonValidationError(result.validation_error or "Invalid input")

    summary = result.summary()
    _log.info(
        "smart_comparison_completed",
        key_field=key_field,
        modified=summary.modified,
        added=summary.added,
        removed=summary.removed,
        unchanged=summary.unchanged,
    )
    return SmartCompareResponse.from_result(result)


@router.post(
    "/compare/text",
    response_model=TextDiffResponse,
    summary="Page through a line-by-line comparison of two text files",
)
async def compare_text(
    settings: AppSettings,
    differ: LineDiffer,
    store: SessionStore,
    files: Uploads = None,
    session_id: Annotated[str | None, Form(alias="sessionId")] = None,
    page: Annotated[int, Form(ge=1)] = 1,
    page_size: Annotated[int | None, Form(alias="pageSize", ge=1, le=10_000)] = None,
) -> TextDiffResponse:
    """
    Uploading two files starts a new session; passing ``sessionId`` pages
    through an existing one.
    """
    size = page_size or settings.text_page_size_default

    if files and len(files) == 2:
        COMPARISONS_TOTAL.labels(mode="text").inc()
        source, target = await _open_inputs(files, None, None, settings)
        try:
            session = await run_in_threadpool(
                differ.initialize_session_from_streams, source, target
            )
        finally:
            _close_all(source, target)
        session_id = store.save(session)
    elif session_id:
        session = store.get(session_id)
        if session is None:
            raise SessionExpiredError(session_id)
    else:
        raise MissingInputError("Invalid input")

    result = differ.get_page(session, (page - 1) * size + 1, size)
    return TextDiffResponse.from_page(session_id, page, size, result)
