from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from structured_stream.core.common.exceptions import StructuredStreamError
from structured_stream.core.domain.extraction import EmittedItem, SessionResult
from structured_stream.core.interfaces.item_consumer_interface import IItemConsumer


async def _call(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class CallbackConsumer(IItemConsumer):
    """Adapts plain callables (sync or async) to the consumer interface."""

    def __init__(
        self,
        on_item: Callable[[EmittedItem], Any] | None = None,
        on_complete: Callable[[SessionResult], Any] | None = None,
        on_error: Callable[[StructuredStreamError], Any] | None = None,
        on_cancelled: Callable[[str], Any] | None = None,
    ) -> None:
        self._on_item = on_item
        self._on_complete = on_complete
        self._on_error = on_error
        self._on_cancelled = on_cancelled

    async def on_item(self, item: EmittedItem) -> None:
        await _call(self._on_item, item)

    async def on_complete(self, result: SessionResult) -> None:
        await _call(self._on_complete, result)

    async def on_error(self, error: StructuredStreamError) -> None:
        await _call(self._on_error, error)

    async def on_cancelled(self, reason: str) -> None:
        await _call(self._on_cancelled, reason)


class CollectingConsumer(IItemConsumer):
    """Keeps everything a session delivers; handy for scripts and tests."""

    def __init__(self) -> None:
        self.items: list[EmittedItem] = []
        self.result: SessionResult | None = None
        self.error: StructuredStreamError | None = None
        self.cancel_reason: str | None = None

    async def on_item(self, item: EmittedItem) -> None:
        self.items.append(item)

    async def on_complete(self, result: SessionResult) -> None:
        self.result = result

    async def on_error(self, error: StructuredStreamError) -> None:
        self.error = error

    async def on_cancelled(self, reason: str) -> None:
        self.cancel_reason = reason
