"""Incremental extraction of array items from streamed structured model output."""

from structured_stream.core.config.app_config import (
    AppConfig,
    ExtractionConfig,
    StreamingSettings,
    load_config,
)
from structured_stream.core.domain.extraction import (
    EmittedItem,
    SessionResult,
    SessionState,
)
from structured_stream.core.domain.fragment_event import FragmentEvent, PayloadKind
from structured_stream.core.services.consumers import CallbackConsumer
from structured_stream.core.services.stream_orchestrator import StreamOrchestrator

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "CallbackConsumer",
    "EmittedItem",
    "ExtractionConfig",
    "FragmentEvent",
    "PayloadKind",
    "SessionResult",
    "SessionState",
    "StreamOrchestrator",
    "StreamingSettings",
    "load_config",
]
