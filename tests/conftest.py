from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

import pytest
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.domain.fragment_event import FragmentEvent


@pytest.fixture
def items_config() -> ExtractionConfig:
    """Ad-hoc config for ``{"data": {"items": [{"id": ..., "name": ...}]}}``."""
    return ExtractionConfig(
        name="items",
        target_path="data.items",
        required_fields=["id", "name"],
        id_field="id",
    )


@pytest.fixture
def two_item_fragments() -> list[str]:
    return [
        '{"data":{"items":[',
        '{"id":"1","name":"Str',
        'ess"},',
        '{"id":"2","name":"Fatigue"}',
        "]}}",
    ]


@pytest.fixture
def make_events() -> Callable[..., AsyncIterator[FragmentEvent]]:
    """Build an async fragment source from text chunks.

    ``terminal`` is ``"end"``, ``"error"`` or ``None`` (source just stops).
    """

    def _make(
        chunks: Sequence[str],
        terminal: str | None = "end",
        error_message: str = "upstream reset",
    ) -> AsyncIterator[FragmentEvent]:
        async def _gen() -> AsyncIterator[FragmentEvent]:
            seq = 0
            for chunk in chunks:
                yield FragmentEvent.text_delta(seq, chunk)
                seq += 1
            if terminal == "end":
                yield FragmentEvent.stream_end(seq)
            elif terminal == "error":
                yield FragmentEvent.stream_error(seq, error_message)

        return _gen()

    return _make


@pytest.fixture
def parse_sse() -> Callable[[str | bytes], list[dict[str, Any]]]:
    """Decode concatenated ``data: ...`` frames into payload dicts."""

    def _parse(raw: str | bytes) -> list[dict[str, Any]]:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        frames = []
        for block in text.split("\n\n"):
            block = block.strip()
            if block.startswith("data: "):
                frames.append(json.loads(block[len("data: ") :]))
        return frames

    return _parse
