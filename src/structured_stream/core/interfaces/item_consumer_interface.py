from __future__ import annotations

from abc import ABC, abstractmethod

from structured_stream.core.common.exceptions import StructuredStreamError
from structured_stream.core.domain.extraction import EmittedItem, SessionResult


class IItemConsumer(ABC):
    """Receiver of one extraction session's output.

    ``on_item`` is awaited zero or more times in ascending index order;
    exactly one of ``on_complete``, ``on_error`` or ``on_cancelled`` follows.
    A slow ``on_item`` applies backpressure: no further upstream fragment is
    pulled until it returns.
    """

    @abstractmethod
    async def on_item(self, item: EmittedItem) -> None:
        """Handle a newly completed item."""

    @abstractmethod
    async def on_complete(self, result: SessionResult) -> None:
        """Handle successful completion of the session."""

    @abstractmethod
    async def on_error(self, error: StructuredStreamError) -> None:
        """Handle a fatal session failure.

        Items delivered before the failure stay delivered.
        """

    @abstractmethod
    async def on_cancelled(self, reason: str) -> None:
        """Handle caller-initiated cancellation."""
