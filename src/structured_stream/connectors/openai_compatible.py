from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from structured_stream.core.domain.fragment_event import FragmentEvent

logger = logging.getLogger(__name__)


class OpenAICompatibleFragmentSource:
    """
    Streams a chat completion from an OpenAI-compatible endpoint as
    fragment events.

    Only ``choices[0].delta.content`` is forwarded; role-only and empty
    deltas are skipped. HTTP errors, transport failures and in-stream
    ``error`` objects end the stream with ``STREAM_ERROR`` instead of
    raising, so the session reports them through the consumer.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base_url: str = "https://api.openai.com/v1",
        api_key: str | None = None,
        *,
        model: str,
        messages: list[dict[str, Any]],
        extra_payload: dict[str, Any] | None = None,
    ) -> None:
        self.client = client
        self.api_base_url = api_base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.messages = messages
        self.extra_payload = dict(extra_payload or {})

    def get_headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            **self.extra_payload,
        }
        payload["stream"] = True
        return payload

    def __aiter__(self) -> AsyncIterator[FragmentEvent]:
        return self.stream()

    async def stream(self) -> AsyncIterator[FragmentEvent]:
        url = f"{self.api_base_url}/chat/completions"
        request = self.client.build_request(
            "POST", url, json=self.build_payload(), headers=self.get_headers()
        )
        sequence = 0
        try:
            response = await self.client.send(request, stream=True)
        except httpx.RequestError as exc:
            logger.warning("Could not connect to %s: %s", url, exc)
            yield FragmentEvent.stream_error(sequence, f"Could not connect to backend ({exc})")
            return

        try:
            if response.status_code >= 400:
                body = (await response.aread()).decode("utf-8", errors="replace")
                logger.warning(
                    "Upstream returned HTTP %s: %s", response.status_code, body[:200]
                )
                yield FragmentEvent.stream_error(
                    sequence, f"Upstream returned HTTP {response.status_code}: {body}"
                )
                return

            try:
                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if data == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        logger.debug("Skipping non-JSON SSE line: %s", data[:200])
                        continue
                    if isinstance(chunk, dict) and chunk.get("error"):
                        error = chunk["error"]
                        message = error.get("message") if isinstance(error, dict) else error
                        yield FragmentEvent.stream_error(sequence, str(message))
                        return
                    text = _delta_content(chunk)
                    if text:
                        yield FragmentEvent.text_delta(sequence, text)
                        sequence += 1
            except httpx.HTTPError as exc:
                logger.warning("Upstream stream interrupted: %s", exc)
                yield FragmentEvent.stream_error(sequence, f"Upstream stream interrupted ({exc})")
                return

            yield FragmentEvent.stream_end(sequence)
        finally:
            with contextlib.suppress(Exception):
                await response.aclose()


def _delta_content(chunk: Any) -> str | None:
    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None
