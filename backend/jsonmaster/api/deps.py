"""
FastAPI dependency providers.

Comparison services are built from the application's Settings; routes never
construct them directly.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from jsonmaster.config.settings import Settings
from jsonmaster.services.compare.engine import ObjectDiffEngine
from jsonmaster.services.streaming.differ import StreamingTokenDiffer
from jsonmaster.services.streaming.report import DiffReportWriter
from jsonmaster.services.text.session import LineDiffSession
from jsonmaster.services.text.session_store import TextSessionStore

_ENGINE = ObjectDiffEngine()


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


AppSettings = Annotated[Settings, Depends(get_app_settings)]


def get_object_diff_engine() -> ObjectDiffEngine:
    return _ENGINE


def get_streaming_differ(settings: AppSettings) -> StreamingTokenDiffer:
    return StreamingTokenDiffer(
        batch_size=settings.stream_batch_size,
        queue_capacity=settings.stream_queue_capacity,
        read_chunk_bytes=settings.stream_read_chunk_bytes,
    )


def get_report_writer(settings: AppSettings) -> DiffReportWriter:
    return DiffReportWriter(settings.report_dir, download_prefix="/api/v1/reports")


def get_line_differ(settings: AppSettings) -> LineDiffSession:
    return LineDiffSession(max_display_length=settings.text_line_display_max)


def get_session_store(request: Request) -> TextSessionStore:
    return request.app.state.text_sessions


ObjectDiffer = Annotated[ObjectDiffEngine, Depends(get_object_diff_engine)]
StreamDiffer = Annotated[StreamingTokenDiffer, Depends(get_streaming_differ)]
ReportWriter = Annotated[DiffReportWriter, Depends(get_report_writer)]
LineDiffer = Annotated[LineDiffSession, Depends(get_line_differ)]
SessionStore = Annotated[TextSessionStore, Depends(get_session_store)]
