from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.transport.fastapi.response_adapters import (
    to_sse_streaming_response,
)
from structured_stream.core.transport.sse import stream_sse_frames


def test_streaming_endpoint_serves_sse(
    items_config: ExtractionConfig, two_item_fragments: list[str], make_events, parse_sse
) -> None:
    app = FastAPI()

    @app.get("/causes/stream")
    async def stream_causes():
        frames = stream_sse_frames(items_config, make_events(two_item_fragments))
        return to_sse_streaming_response(frames, headers={"X-Session-Kind": "causes"})

    with TestClient(app) as client:
        response = client.get("/causes/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-session-kind"] == "causes"
    frames = parse_sse(response.content)
    assert [frame["type"] for frame in frames] == ["item", "item", "complete"]
