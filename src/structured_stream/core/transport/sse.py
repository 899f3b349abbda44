"""
Server-Sent-Events delivery of an extraction session.

:class:`SseQueueConsumer` turns consumer callbacks into SSE frames on a
bounded queue; :func:`stream_sse_frames` runs the session in a background
task and yields those frames. A full queue blocks ``on_item``, which stops
the orchestrator from pulling further upstream fragments until the client
catches up.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from structured_stream.core.common.exceptions import StructuredStreamError
from structured_stream.core.config.app_config import ExtractionConfig, StreamingSettings
from structured_stream.core.domain.extraction import EmittedItem, SessionResult
from structured_stream.core.domain.fragment_event import FragmentEvent
from structured_stream.core.domain.sse_events import (
    complete_event,
    error_event,
    format_sse,
    item_event,
)
from structured_stream.core.interfaces.item_consumer_interface import IItemConsumer
from structured_stream.core.services.stream_orchestrator import StreamOrchestrator

logger = logging.getLogger(__name__)


class SseQueueConsumer(IItemConsumer):
    """Consumer that renders each callback as an SSE frame on a queue.

    ``None`` on the queue marks the end of the session. Cancellation produces
    no frame: the reader that caused it is already gone.
    """

    def __init__(self, maxsize: int = 16) -> None:
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=maxsize)

    async def on_item(self, item: EmittedItem) -> None:
        await self.queue.put(format_sse(item_event(item)))

    async def on_complete(self, result: SessionResult) -> None:
        await self.queue.put(format_sse(complete_event(result)))
        await self.queue.put(None)

    async def on_error(self, error: StructuredStreamError) -> None:
        await self.queue.put(format_sse(error_event(error)))
        await self.queue.put(None)

    async def on_cancelled(self, reason: str) -> None:
        logger.debug("SSE session cancelled: %s", reason)
        with contextlib.suppress(asyncio.QueueFull):
            self.queue.put_nowait(None)


async def stream_sse_frames(
    config: ExtractionConfig,
    source: AsyncIterator[FragmentEvent],
    settings: StreamingSettings | None = None,
) -> AsyncIterator[bytes]:
    """
    Run one extraction session over ``source`` and yield its SSE frames.

    If the caller stops iterating (for example because the HTTP client
    disconnected), the session is cancelled and the upstream closed.

    Args:
        config: What to extract
        source: Upstream fragment events
        settings: Streaming settings; defaults apply when omitted

    Yields:
        ``data: ...`` frames, ending with one ``complete`` or ``error`` frame
    """
    settings = settings or StreamingSettings()
    consumer = SseQueueConsumer(maxsize=settings.sse_queue_size)
    orchestrator = StreamOrchestrator(config, consumer, settings=settings)
    task = asyncio.create_task(orchestrator.run(source))
    getter: asyncio.Future[bytes | None] | None = None
    finished = False

    try:
        while not finished:
            getter = asyncio.ensure_future(consumer.queue.get())
            done, _ = await asyncio.wait(
                {getter, task}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                getter.cancel()
                # The session ended on its own; drain what it left behind.
                finished = True
                while not consumer.queue.empty():
                    frame = consumer.queue.get_nowait()
                    if frame is None:
                        break
                    yield frame
                break

            frame = getter.result()
            if frame is None:
                finished = True
            else:
                yield frame
    finally:
        if getter is not None and not getter.done():
            getter.cancel()
        if not finished and not task.done():
            orchestrator.cancel("client disconnected")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # Surfaces a consumer or pipeline bug instead of ending silently.
    await task
