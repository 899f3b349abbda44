"""
FastAPI response adapters.

Converts the SSE frame stream of an extraction session into a Starlette
streaming response.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from starlette.responses import StreamingResponse

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def to_sse_streaming_response(
    frames: AsyncIterator[bytes],
    headers: dict[str, str] | None = None,
) -> StreamingResponse:
    """Wrap SSE frames in a ``text/event-stream`` response.

    Args:
        frames: Frames such as those produced by ``stream_sse_frames``
        headers: Extra response headers

    Returns:
        A streaming response; Starlette stops iterating ``frames`` when the
        client disconnects, which cancels the session.
    """
    merged = dict(SSE_HEADERS)
    if headers:
        merged.update(headers)
    return StreamingResponse(
        frames,
        media_type="text/event-stream",
        headers=merged,
    )
