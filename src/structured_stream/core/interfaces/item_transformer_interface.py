from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from structured_stream.core.common.exceptions import ItemTransformError


class IItemTransformer(ABC):
    """Interface for mapping a completed raw item to the consumer's shape."""

    @abstractmethod
    def transform(self, raw_value: Any, index: int | None = None) -> Any:
        """Transform a completed item. Must not raise.

        Args:
            raw_value: The parsed array element
            index: Position of the element, for diagnostics

        Returns:
            The domain item, with placeholders substituted on failure
        """

    @property
    @abstractmethod
    def failures(self) -> list[ItemTransformError]:
        """Failures recovered from so far."""
