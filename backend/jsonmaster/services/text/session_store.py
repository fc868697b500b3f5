"""
In-process store for text diff sessions.

Sessions are addressed by an opaque UUID and expire after a fixed TTL.
Expired entries are evicted lazily on access and whenever a new session is
saved; the oldest entry is dropped once ``max_entries`` is reached.
"""

from __future__ import annotations

import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from jsonmaster.services.text.session import DiffSession

_log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Entry:
    session: DiffSession
    expires_at: float


class TextSessionStore:
    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def save(self, session: DiffSession) -> str:
        """Store ``session`` and return its new identifier."""
        self._evict_expired()
        while len(self._entries) >= self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            _log.info("text_session_evicted", session_id=evicted)

        session_id = str(uuid.uuid4())
        self._entries[session_id] = _Entry(session, self._clock() + self._ttl)
        _log.info(
            "text_session_created",
            session_id=session_id,
            total_lines=session.total_lines,
            total_differences=session.total_differences,
        )
        return session_id

    def get(self, session_id: str) -> DiffSession | None:
        """Return the session, or None when unknown or expired."""
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[session_id]
            _log.info("text_session_expired", session_id=session_id)
            return None
        return entry.session

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
