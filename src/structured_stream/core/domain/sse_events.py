"""
Server-Sent-Events representation of extraction sessions.

Each emitted item becomes ``data: {"type": "item", ...}``; the session ends
with exactly one ``complete`` or ``error`` frame. Clients of the streaming
endpoint depend on this shape.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any

from pydantic import BaseModel

from structured_stream.core.common.exceptions import StructuredStreamError
from structured_stream.core.domain.extraction import EmittedItem, SessionResult


def to_jsonable(value: Any) -> Any:
    """Convert a transformed item into something ``json.dumps`` accepts."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


def format_sse(payload: dict[str, Any]) -> bytes:
    """Format a payload as one SSE ``data:`` frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n".encode()


def item_event(item: EmittedItem) -> dict[str, Any]:
    return {
        "type": "item",
        "index": item.index,
        "id": item.assigned_id,
        "data": to_jsonable(item.data),
    }


def complete_event(result: SessionResult) -> dict[str, Any]:
    return {"type": "complete", "data": result.model_dump(mode="json")}


def error_event(error: StructuredStreamError) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": "error", "message": error.message}
    if error.kind is not None:
        payload["kind"] = error.kind.value
    return payload
