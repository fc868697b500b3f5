"""
StreamingTokenDiffer: token-by-token comparison of two JSON streams.

Neither document is materialised. A producer task tokenises both inputs
with ijson, walks the two token sequences in lockstep and pushes batches of
DiffMessage into a bounded BatchChannel. The caller drains the channel
through a StreamComparison; when it falls behind, the producer waits on the
full channel instead of buffering.

Usage:
    differ = StreamingTokenDiffer()
    async with differ.compare_streams(source, target) as comparison:
        async for batch in comparison:
            for message in batch:
                ...
"""

from __future__ import annotations

import asyncio
import inspect
import io
import json
from collections.abc import AsyncIterator, Callable, Coroutine
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import ijson
import structlog

from jsonmaster.services.streaming.channel import BatchChannel

_log = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_QUEUE_CAPACITY = 50
DEFAULT_READ_CHUNK_BYTES = 64 * 1024

# Synchronous readers never suspend on their own; give the loop a turn
# every this many tokens.
_YIELD_EVERY = 4096

_VALUE_EVENTS = frozenset({"map_key", "string", "number", "boolean", "null"})
_START_EVENTS = frozenset({"start_map", "start_array"})
_END_EVENTS = frozenset({"end_map", "end_array"})


class MessageKind(StrEnum):
    DIFF = "diff"
    STATUS = "status"
    ERROR = "error"


@dataclass(frozen=True)
class DiffMessage:
    """A single diff, status, or error record emitted by the differ."""

    kind: MessageKind
    message: str
    path: str | None = None
    index: int | None = None
    source: str | None = None
    target: str | None = None

    @classmethod
    def structure_mismatch(cls, index: int) -> DiffMessage:
        return cls(
            kind=MessageKind.DIFF,
            message=f"Structure mismatch at index {index}: one stream ended early.",
            index=index,
        )

    @classmethod
    def token_mismatch(cls, index: int, path: str, source: str, target: str) -> DiffMessage:
        return cls(
            kind=MessageKind.DIFF,
            message=f"Token mismatch at path '{path}': {source} vs {target}",
            path=path,
            index=index,
            source=source,
            target=target,
        )

    @classmethod
    def value_mismatch(cls, index: int, path: str, source: Any, target: Any) -> DiffMessage:
        source_text = _render(source)
        target_text = _render(target)
        return cls(
            kind=MessageKind.DIFF,
            message=f"Value mismatch at path '{path}': {source_text} vs {target_text}",
            path=path,
            index=index,
            source=source_text,
            target=target_text,
        )

    @classmethod
    def status(cls, message: str) -> DiffMessage:
        return cls(kind=MessageKind.STATUS, message=message)

    @classmethod
    def error(cls, message: str) -> DiffMessage:
        return cls(kind=MessageKind.ERROR, message=message)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        for name in ("path", "index", "source", "target"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def _same_value(source: Any, target: Any) -> bool:
    """Integers and decimals never match, so ``1`` differs from ``1.0``."""
    return type(source) is type(target) and source == target


def _render(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class _PathTracker:
    """Follows the position of one token reader, e.g. ``$.users[3].name``."""

    def __init__(self) -> None:
        # Each frame is [is_array, key_or_index].
        self._frames: list[list[Any]] = []

    def advance(self, event: str, value: Any) -> None:
        if event in _END_EVENTS:
            if self._frames:
                self._frames.pop()
            return

        if self._frames:
            frame = self._frames[-1]
            if frame[0]:
                frame[1] += 1
            elif event == "map_key":
                frame[1] = value

        if event in _START_EVENTS:
            self._frames.append([event == "start_array", -1 if event == "start_array" else None])

    @property
    def path(self) -> str:
        parts = ["$"]
        for is_array, position in self._frames:
            if is_array:
                # -1 until the first element arrives
                if position >= 0:
                    parts.append(f"[{position}]")
            elif position is not None:
                parts.append(f".{position}")
        return "".join(parts)


def _is_async_stream(stream: Any) -> bool:
    return inspect.iscoroutinefunction(getattr(stream, "read", None))


async def _tokens(stream: Any, buf_size: int) -> AsyncIterator[tuple[str, Any]]:
    if _is_async_stream(stream):
        async for _prefix, event, value in ijson.parse_async(stream, buf_size=buf_size):
            yield event, value
    else:
        for _prefix, event, value in ijson.parse(stream, buf_size=buf_size):
            yield event, value


class StreamComparison:
    """
    Lazy, single-use sequence of DiffMessage batches.

    The producer task starts on first iteration (or on entering the
    ``async with`` block) and is cancelled by ``cancel()``, by leaving the
    block, or by closing the iterator early.
    """

    def __init__(
        self,
        producer: Callable[[BatchChannel[list[DiffMessage]]], Coroutine[Any, Any, None]],
        capacity: int,
    ) -> None:
        self._producer = producer
        self._channel: BatchChannel[list[DiffMessage]] = BatchChannel(capacity)
        self._task: asyncio.Task[None] | None = None
        self._iterated = False

    @property
    def pending(self) -> int:
        """Batches produced but not yet delivered to the consumer."""
        return self._channel.pending()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> None:
        if self._task is None and not self._channel.closed:
            self._task = asyncio.create_task(self._producer(self._channel))

    def cancel(self) -> None:
        """Stop the producer, even if it is blocked on a full channel."""
        if self._task is None:
            self._channel.close()
        elif not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the producer to finish without raising its cancellation."""
        if self._task is not None:
            await asyncio.wait([self._task])

    def __aiter__(self) -> AsyncIterator[list[DiffMessage]]:
        if self._iterated:
            raise RuntimeError("StreamComparison can only be iterated once")
        self._iterated = True
        self.start()
        return self._drain()

    async def _drain(self) -> AsyncIterator[list[DiffMessage]]:
        try:
            async for batch in self._channel:
                yield batch
        finally:
            self.cancel()

    async def __aenter__(self) -> StreamComparison:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.cancel()
        await self.wait()


class StreamingTokenDiffer:
    """Compares two JSON byte streams without loading either into memory."""

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        read_chunk_bytes: int = DEFAULT_READ_CHUNK_BYTES,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.queue_capacity = queue_capacity
        self.read_chunk_bytes = read_chunk_bytes

    def compare_streams(self, source: Any, target: Any) -> StreamComparison:
        """
        Start a comparison of two JSON inputs.

        Args:
            source: Binary stream with a sync or async ``read(n)``, or bytes.
            target: Same as ``source``.

        Returns:
            A StreamComparison yielding batches of DiffMessage. The streams
            are read once and left open for the caller to close.
        """
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        if isinstance(target, (bytes, bytearray)):
            target = io.BytesIO(target)

        async def producer(channel: BatchChannel[list[DiffMessage]]) -> None:
            await self._produce(source, target, channel)

        return StreamComparison(producer, self.queue_capacity)

    async def _produce(
        self, source: Any, target: Any, channel: BatchChannel[list[DiffMessage]]
    ) -> None:
        source_tokens = _tokens(source, self.read_chunk_bytes)
        target_tokens = _tokens(target, self.read_chunk_bytes)
        cooperative = not (_is_async_stream(source) or _is_async_stream(target))
        batch: list[DiffMessage] = []
        index = 0

        _log.debug("stream_comparison_started", batch_size=self.batch_size)
        try:
            source_path = _PathTracker()
            target_path = _PathTracker()

            while True:
                source_token = await anext(source_tokens, None)
                target_token = await anext(target_tokens, None)

                if source_token is None and target_token is None:
                    break

                if source_token is None or target_token is None:
                    batch.append(DiffMessage.structure_mismatch(index))
                    await channel.send(batch)
                    batch = []
                    _log.debug("stream_comparison_length_mismatch", index=index)
                    return

                source_event, source_value = source_token
                target_event, target_value = target_token
                source_path.advance(source_event, source_value)
                target_path.advance(target_event, target_value)

                if source_event != target_event:
                    batch.append(
                        DiffMessage.token_mismatch(
                            index, source_path.path, source_event, target_event
                        )
                    )
                elif source_event in _VALUE_EVENTS and not _same_value(
                    source_value, target_value
                ):
                    batch.append(
                        DiffMessage.value_mismatch(
                            index, source_path.path, source_value, target_value
                        )
                    )

                if len(batch) >= self.batch_size:
                    await channel.send(batch)
                    batch = []

                index += 1
                if cooperative and index % _YIELD_EVERY == 0:
                    await asyncio.sleep(0)

            batch.append(DiffMessage.status("Comparison complete."))
            await channel.send(batch)
            batch = []
            _log.debug("stream_comparison_completed", tokens=index)

        except asyncio.CancelledError:
            _log.debug("stream_comparison_cancelled", tokens=index)
            raise
        except Exception as exc:
            _log.warning("stream_comparison_failed", tokens=index, error=str(exc))
            if batch:
                await channel.send(batch)
            await channel.send([DiffMessage.error(f"Error reading streams: {exc}")])
        finally:
            try:
                await source_tokens.aclose()
                await target_tokens.aclose()
            finally:
                channel.close()
