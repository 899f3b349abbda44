"""
Domain objects of one extraction session: candidates, emissions and the
terminal session result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from structured_stream.core.interfaces.model_bases import DomainModel, InternalDTO


class Classification(str, Enum):
    COMPLETE = "complete"
    GROWING = "growing"


class SessionState(str, Enum):
    """Lifecycle of a stream orchestrator.

    ``IDLE -> STREAMING -> FINALIZING -> DONE``; ``FAILED`` is reachable from
    ``STREAMING`` and ``FINALIZING``; ``CANCELLED`` from any non-terminal
    state.
    """

    IDLE = "idle"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.FAILED, SessionState.CANCELLED)


class EmissionPhase(str, Enum):
    INCREMENTAL = "incremental"
    FINALIZE = "finalize"


@dataclass(frozen=True)
class CandidateItem(InternalDTO):
    """The value found at one index of the located array in the latest parse."""

    index: int
    raw_value: Any


@dataclass(frozen=True)
class EmittedItem(InternalDTO):
    """A completed, transformed item forwarded to the consumer exactly once."""

    index: int
    assigned_id: str
    data: Any
    raw_value: Any = None


class EmittedItemRecord(DomainModel):
    index: int
    assigned_id: str
    synthetic_id: bool = False
    emitted_at: datetime
    phase: EmissionPhase = EmissionPhase.INCREMENTAL


class SessionResult(DomainModel):
    """Terminal summary of one extraction session."""

    session_id: str
    status: SessionState
    total_fragments_received: int = 0
    total_items_emitted_incrementally: int = 0
    total_items_emitted_on_finalize: int = 0
    final_document: Any = None
    final_validation_error: str | None = None
    item_transform_failures: int = 0
    diagnostics: list[dict[str, Any]] = Field(default_factory=list)
    emitted: list[EmittedItemRecord] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def total_items_emitted(self) -> int:
        return self.total_items_emitted_incrementally + self.total_items_emitted_on_finalize
