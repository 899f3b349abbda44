from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from structured_stream.core.common.utils import get_nested_value
from structured_stream.core.domain.extraction import (
    EmissionPhase,
    EmittedItem,
    EmittedItemRecord,
)

logger = logging.getLogger(__name__)

_RAW = object()


class EmissionSequencer:
    """
    Hands out each array index at most once, strictly in ascending order.

    Only ``next_index`` may be emitted; once it is, the gate moves on. IDs
    come from the item's own ``id_field`` when the model supplied a usable
    value, otherwise a synthetic ID unique to this session is assigned.
    """

    def __init__(
        self,
        id_field: str | None = None,
        id_prefix: str = "item",
        started_at: datetime | None = None,
    ) -> None:
        self._id_field = id_field
        self._id_prefix = id_prefix
        started = started_at or datetime.now(timezone.utc)
        self._session_start_ms = int(started.timestamp() * 1000)
        self._salt = uuid.uuid4().hex[:8]
        self._emitted: set[int] = set()
        self._records: list[EmittedItemRecord] = []
        self._next_index = 0

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def records(self) -> list[EmittedItemRecord]:
        return list(self._records)

    @property
    def emitted_count(self) -> int:
        return len(self._records)

    def has_emitted(self, index: int) -> bool:
        return index in self._emitted

    def try_emit(
        self,
        index: int,
        raw_value: Any,
        data: Any = _RAW,
        phase: EmissionPhase = EmissionPhase.INCREMENTAL,
    ) -> EmittedItem | None:
        """
        Record an emission for ``index`` if it is the next one due.

        Args:
            index: Position of the element in the target array
            raw_value: The element as parsed
            data: The transformed item; defaults to ``raw_value``
            phase: Whether the item was found mid-stream or at finalize

        Returns:
            The emitted item, or None if ``index`` was already emitted or is
            not the next index due.
        """
        if index in self._emitted:
            return None
        if index != self._next_index:
            logger.warning(
                "Refusing out-of-order emission of index %d (next is %d)",
                index,
                self._next_index,
            )
            return None

        assigned_id, synthetic = self._assign_id(index, raw_value)
        self._emitted.add(index)
        self._next_index += 1
        self._records.append(
            EmittedItemRecord(
                index=index,
                assigned_id=assigned_id,
                synthetic_id=synthetic,
                emitted_at=datetime.now(timezone.utc),
                phase=phase,
            )
        )
        return EmittedItem(
            index=index,
            assigned_id=assigned_id,
            data=raw_value if data is _RAW else data,
            raw_value=raw_value,
        )

    def _assign_id(self, index: int, raw_value: Any) -> tuple[str, bool]:
        if self._id_field:
            value = get_nested_value(raw_value, self._id_field)
            if isinstance(value, str) and value.strip():
                return str(value).strip(), False
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return str(value), False
        return (
            f"{self._id_prefix}-{self._session_start_ms}-{self._salt}-{index}",
            True,
        )
