from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from structured_stream.core.interfaces.model_bases import InternalDTO


class PayloadKind(str, Enum):
    TEXT_DELTA = "text_delta"
    STREAM_END = "stream_end"
    STREAM_ERROR = "stream_error"


@dataclass(frozen=True)
class FragmentEvent(InternalDTO):
    """One unit of upstream data.

    Producers deliver text deltas in generation order followed by exactly
    one terminal ``STREAM_END`` or ``STREAM_ERROR``. The sequence number is
    for diagnostics only.
    """

    sequence_number: int
    payload_kind: PayloadKind
    text: str = ""
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.payload_kind is not PayloadKind.TEXT_DELTA

    @classmethod
    def text_delta(cls, sequence_number: int, text: str) -> FragmentEvent:
        return cls(sequence_number, PayloadKind.TEXT_DELTA, text=text)

    @classmethod
    def stream_end(cls, sequence_number: int) -> FragmentEvent:
        return cls(sequence_number, PayloadKind.STREAM_END)

    @classmethod
    def stream_error(cls, sequence_number: int, message: str) -> FragmentEvent:
        return cls(sequence_number, PayloadKind.STREAM_ERROR, error_message=message)
