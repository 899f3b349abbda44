"""
Value types produced by best-effort parsing of an incomplete JSON buffer.

A best-effort value is an ordinary JSON value (``None``, ``bool``, ``int``,
``float``, ``str``, ``list``, ``dict``) with one extra variant:
:class:`PartialString`, a string whose closing quote has not streamed in
yet. Consumers distinguish it with ``isinstance``; everywhere else it
behaves (and serializes) like the ``str`` it subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from structured_stream.core.interfaces.model_bases import InternalDTO


class PartialString(str):
    """A string value cut off by the end of the buffer."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"PartialString({str.__repr__(self)})"


@dataclass(frozen=True)
class ParseResult(InternalDTO):
    """Outcome of one best-effort parse.

    ``repaired`` is set when the tolerant fallback had to rewrite malformed
    text rather than just close an unfinished document; ``truncated`` when
    the document was still open at the end of the buffer.
    """

    value: Any = None
    succeeded: bool = False
    repaired: bool = False
    truncated: bool = False

    @classmethod
    def failed(cls) -> ParseResult:
        return cls()


@dataclass(frozen=True)
class LocateResult(InternalDTO):
    array: list[Any] | None = None

    @property
    def found(self) -> bool:
        return self.array is not None

    @property
    def not_found(self) -> bool:
        return self.array is None


def to_plain(value: Any) -> Any:
    """Return a copy of a best-effort value with every PartialString as str."""
    if isinstance(value, PartialString):
        return str(value)
    if isinstance(value, dict):
        return {key: to_plain(child) for key, child in value.items()}
    if isinstance(value, list):
        return [to_plain(child) for child in value]
    return value
