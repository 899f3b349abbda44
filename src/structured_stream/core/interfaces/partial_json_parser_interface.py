from __future__ import annotations

from abc import ABC, abstractmethod

from structured_stream.core.domain.partial_json import ParseResult


class IPartialJsonParser(ABC):
    """Interface for parsers that recover a value from incomplete JSON text."""

    @abstractmethod
    def try_parse(self, text: str) -> ParseResult:
        """Parse possibly-truncated JSON text.

        Implementations must never raise: text that cannot be recovered
        yields ``ParseResult(succeeded=False)``.

        Args:
            text: The accumulated response text so far

        Returns:
            The best reconstruction of the document
        """
