from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable

from structured_stream.core.domain.fragment_event import FragmentEvent

logger = logging.getLogger(__name__)


async def _iterate(
    chunks: Iterable[str | bytes] | AsyncIterable[str | bytes],
) -> AsyncIterator[str | bytes]:
    if isinstance(chunks, AsyncIterable):
        async for chunk in chunks:
            yield chunk
    else:
        for chunk in chunks:
            yield chunk


async def fragment_events(
    chunks: Iterable[str | bytes] | AsyncIterable[str | bytes],
) -> AsyncIterator[FragmentEvent]:
    """
    Turn raw text chunks into a fragment event stream.

    Bytes are decoded as UTF-8 incrementally, so a multibyte character split
    across chunks arrives intact. Empty chunks are skipped. The stream ends
    with ``STREAM_END``, or ``STREAM_ERROR`` if iterating ``chunks`` raises.

    Args:
        chunks: Any sync or async iterable of ``str`` or ``bytes``

    Yields:
        Text deltas followed by exactly one terminal event
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    sequence = 0
    source = _iterate(chunks)
    try:
        try:
            async for chunk in source:
                text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
                if not text:
                    continue
                yield FragmentEvent.text_delta(sequence, text)
                sequence += 1
            tail = decoder.decode(b"", final=True)
            if tail:
                yield FragmentEvent.text_delta(sequence, tail)
                sequence += 1
        except Exception as e:
            logger.warning("Fragment source failed: %s", e)
            yield FragmentEvent.stream_error(sequence, f"{type(e).__name__}: {e}")
            return
        yield FragmentEvent.stream_end(sequence)
    finally:
        await source.aclose()
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        elif callable(getattr(chunks, "close", None)):
            chunks.close()  # type: ignore[union-attr]
