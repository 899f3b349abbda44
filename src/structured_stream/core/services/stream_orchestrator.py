"""
Per-session driver of incremental item extraction.

The orchestrator pulls fragments from an upstream producer, re-parses the
accumulated buffer after each fragment (or every N fragments), and forwards
every array element that has stopped growing to the consumer, exactly once
and in index order. When the stream ends the complete text is parsed
strictly and anything still pending is flushed.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

from structured_stream.core.common.exceptions import (
    ErrorKind,
    FinalValidationError,
    ItemTransformError,
    StreamTimeoutError,
    StructuredStreamError,
    UpstreamTransportError,
)
from structured_stream.core.common.logging_utils import get_logger
from structured_stream.core.config.app_config import ExtractionConfig, StreamingSettings
from structured_stream.core.domain.extraction import (
    CandidateItem,
    Classification,
    EmissionPhase,
    SessionResult,
    SessionState,
)
from structured_stream.core.domain.fragment_event import FragmentEvent, PayloadKind
from structured_stream.core.domain.partial_json import to_plain
from structured_stream.core.interfaces.completeness_classifier_interface import (
    ICompletenessClassifier,
)
from structured_stream.core.interfaces.item_consumer_interface import IItemConsumer
from structured_stream.core.interfaces.item_transformer_interface import (
    IItemTransformer,
)
from structured_stream.core.interfaces.partial_json_parser_interface import (
    IPartialJsonParser,
)
from structured_stream.core.services.array_path_locator import ArrayPathLocator
from structured_stream.core.services.completeness_classifier import (
    CompletenessClassifier,
)
from structured_stream.core.services.emission_sequencer import EmissionSequencer
from structured_stream.core.services.final_document_validator import (
    FinalDocumentValidator,
)
from structured_stream.core.services.fragment_buffer import FragmentBuffer
from structured_stream.core.services.item_transformer import ItemTransformer
from structured_stream.core.services.partial_json_parser import PartialJsonParser

_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.STREAMING, SessionState.CANCELLED}),
    SessionState.STREAMING: frozenset(
        {SessionState.FINALIZING, SessionState.FAILED, SessionState.CANCELLED}
    ),
    SessionState.FINALIZING: frozenset(
        {SessionState.DONE, SessionState.FAILED, SessionState.CANCELLED}
    ),
}


async def _anext(iterator: AsyncIterator[FragmentEvent]) -> FragmentEvent:
    return await iterator.__anext__()


class StreamOrchestrator:
    """Runs one extraction session from first fragment to terminal callback."""

    def __init__(
        self,
        config: ExtractionConfig,
        consumer: IItemConsumer,
        *,
        settings: StreamingSettings | None = None,
        parser: IPartialJsonParser | None = None,
        locator: ArrayPathLocator | None = None,
        classifier: ICompletenessClassifier | None = None,
        transformer: IItemTransformer | None = None,
        validator: FinalDocumentValidator | None = None,
        session_id: str | None = None,
    ) -> None:
        self._config = config
        self._consumer = consumer
        self._settings = settings or StreamingSettings()
        self._parser = parser or PartialJsonParser()
        self._locator = locator or ArrayPathLocator()
        self._classifier = classifier or CompletenessClassifier(config)
        self._transformer = transformer or ItemTransformer(config)
        self._validator = validator or FinalDocumentValidator(config, self._locator)
        self.session_id = session_id or uuid.uuid4().hex

        self._log = get_logger(__name__).bind(
            session_id=self.session_id, target_path=config.target_path
        )
        self._state = SessionState.IDLE
        self._buffer = FragmentBuffer()
        self._sequencer: EmissionSequencer | None = None
        self._started_at: datetime | None = None
        self._started_monotonic = 0.0
        self._finished_at: datetime | None = None

        self._cancel_event = asyncio.Event()
        self._cancel_reason: str | None = None

        self.last_parsed_value: Any = None
        self.last_parse_succeeded = False
        self._last_array_length = 0
        self._signatures: dict[int, tuple[str, bool]] = {}
        self._pass_failures: list[ItemTransformError] = []
        self._emitted_incrementally = 0
        self._emitted_on_finalize = 0
        self._final_document: Any = None
        self._final_validation_error: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def raw_text(self) -> str:
        return self._buffer.snapshot()

    def start(self) -> None:
        """Move the session from IDLE to STREAMING."""
        if self._state is not SessionState.IDLE:
            raise RuntimeError(f"Session {self.session_id} already started")
        self._started_at = datetime.now(timezone.utc)
        self._started_monotonic = time.monotonic()
        self._sequencer = EmissionSequencer(
            id_field=self._config.id_field,
            id_prefix=self._config.id_prefix,
            started_at=self._started_at,
        )
        self._transition(SessionState.STREAMING)
        self._log.debug("session_started")

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Request cancellation; the running session stops at its next step."""
        if self._state.is_terminal:
            return
        if self._cancel_reason is None:
            self._cancel_reason = reason
        self._cancel_event.set()

    async def run(self, source: AsyncIterator[FragmentEvent]) -> SessionResult:
        """
        Drive the session over ``source`` until a terminal state.

        Exactly one of the consumer's ``on_complete``, ``on_error`` or
        ``on_cancelled`` is awaited. Cancelling the task running this
        coroutine cancels the session and re-raises after cleanup.

        Returns:
            The terminal session result
        """
        if self._state is SessionState.IDLE:
            self.start()
        elif self._state is not SessionState.STREAMING:
            raise RuntimeError(f"Session {self.session_id} cannot run from {self._state.value}")

        iterator = source.__aiter__()
        try:
            error = await self._consume(iterator)
            if self._cancel_event.is_set():
                await self._finish_cancelled()
            elif error is not None:
                await self._fail(error)
            else:
                await self._finalize()
        except asyncio.CancelledError:
            if self._cancel_reason is None:
                self._cancel_reason = "task cancelled"
            await self._finish_cancelled()
            raise
        except Exception:
            if not self._state.is_terminal:
                self._state = SessionState.FAILED
                self._finished_at = datetime.now(timezone.utc)
            raise
        finally:
            await self._close_source(iterator)
            if iterator is not source:
                await self._close_source(source)
        return self.result()

    def result(self) -> SessionResult:
        """Snapshot of the session counters and outcome."""
        diagnostics = [
            failure.to_dict()["error"]
            for failure in [*self._transformer.failures, *self._pass_failures]
        ]
        return SessionResult(
            session_id=self.session_id,
            status=self._state,
            total_fragments_received=self._buffer.fragment_count,
            total_items_emitted_incrementally=self._emitted_incrementally,
            total_items_emitted_on_finalize=self._emitted_on_finalize,
            final_document=self._final_document,
            final_validation_error=self._final_validation_error,
            item_transform_failures=len(diagnostics),
            diagnostics=diagnostics,
            emitted=self._sequencer.records if self._sequencer else [],
            started_at=self._started_at or datetime.now(timezone.utc),
            finished_at=self._finished_at,
        )

    async def _consume(
        self, iterator: AsyncIterator[FragmentEvent]
    ) -> StructuredStreamError | None:
        """Receive fragments until the stream ends; return the failure, if any."""
        every_n = self._settings.parse_every_n_fragments
        max_chars = self._settings.max_buffer_chars

        while not self._cancel_event.is_set():
            try:
                event = await self._next_event(iterator)
            except StopAsyncIteration:
                self._log.debug("source_exhausted_without_terminal_event")
                return None
            except StreamTimeoutError as e:
                return e
            except Exception as e:
                return UpstreamTransportError(
                    message=f"Upstream source raised {type(e).__name__}: {e}",
                    details={"error_type": type(e).__name__},
                )

            if event is None:
                return None
            if event.payload_kind is PayloadKind.STREAM_ERROR:
                return UpstreamTransportError(
                    message=event.error_message or "Upstream stream failed",
                    details={"sequence_number": event.sequence_number},
                )
            if event.payload_kind is PayloadKind.STREAM_END:
                return None

            self._buffer.append(event.text)
            if max_chars is not None and len(self._buffer) > max_chars:
                return UpstreamTransportError(
                    message=f"Response exceeded {max_chars} characters",
                    details={"max_buffer_chars": max_chars, "received": len(self._buffer)},
                )
            if self._buffer.fragment_count % every_n == 0:
                await self._incremental_pass()
        return None

    async def _next_event(
        self, iterator: AsyncIterator[FragmentEvent]
    ) -> FragmentEvent | None:
        """Wait for the next fragment, cancellation, or a timeout."""
        timeout, timeout_kind = self._receive_timeout()
        next_task = asyncio.ensure_future(_anext(iterator))
        cancel_task = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {next_task, cancel_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            pending = [task for task in (next_task, cancel_task) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)

        if cancel_task in done:
            return None
        if next_task in done:
            return next_task.result()

        assert timeout is not None
        if timeout_kind == "session":
            message = (
                f"Session exceeded {self._settings.session_timeout_seconds}s"
            )
            limit = self._settings.session_timeout_seconds
        else:
            message = f"No fragment received within {timeout}s"
            limit = timeout
        self._log.warning("stream_timeout", timeout_kind=timeout_kind, timeout=limit)
        raise StreamTimeoutError(message=message, timeout_seconds=limit)

    def _receive_timeout(self) -> tuple[float | None, str | None]:
        candidates: list[tuple[float, str]] = []
        inter = self._settings.inter_fragment_timeout_seconds
        if inter is not None:
            candidates.append((inter, "inter_fragment"))
        session = self._settings.session_timeout_seconds
        if session is not None:
            elapsed = time.monotonic() - self._started_monotonic
            candidates.append((max(0.0, session - elapsed), "session"))
        if not candidates:
            return None, None
        return min(candidates)

    async def _incremental_pass(self) -> None:
        try:
            ready = self._collect_ready()
        except Exception as e:
            self._record_pass_failure("pass", e)
            return
        for candidate in ready:
            if not await self._emit(candidate, EmissionPhase.INCREMENTAL):
                return

    def _collect_ready(self) -> list[CandidateItem]:
        """Parse the buffer and return the head-of-line items that are complete."""
        text = self._buffer.snapshot()
        parsed = self._parser.try_parse(text)
        self.last_parse_succeeded = parsed.succeeded
        if not parsed.succeeded:
            self._log.debug(
                "transient_parse_gap",
                kind=ErrorKind.TRANSIENT_PARSE_GAP.value,
                buffer_chars=len(text),
            )
            return []
        self.last_parsed_value = parsed.value

        located = self._locator.locate(parsed.value, self._config.target_path)
        if located.not_found:
            return []
        array = located.array or []
        if len(array) < self._last_array_length:
            self._log.debug(
                "array_shrank", previous=self._last_array_length, current=len(array)
            )
            return []
        self._last_array_length = len(array)

        assert self._sequencer is not None
        ready: list[CandidateItem] = []
        last_index = len(array) - 1
        for index in range(self._sequencer.next_index, len(array)):
            raw_value = array[index]
            is_last = index == last_index
            signature = (json.dumps(raw_value, sort_keys=True, default=str), is_last)
            if self._signatures.get(index) == signature:
                # Unchanged since it was last seen growing.
                break
            self._signatures[index] = signature
            candidate = CandidateItem(index=index, raw_value=raw_value)
            if (
                self._classifier.classify(candidate, False, is_last)
                is Classification.GROWING
            ):
                break
            ready.append(candidate)
        return ready

    async def _emit(self, candidate: CandidateItem, phase: EmissionPhase) -> bool:
        """Transform and deliver one item. Returns False once cancelled."""
        if self._cancel_event.is_set():
            return False
        assert self._sequencer is not None

        try:
            data = self._transformer.transform(candidate.raw_value, candidate.index)
        except Exception as e:
            self._record_pass_failure("transform", e, candidate.index)
            data = to_plain(candidate.raw_value)

        item = self._sequencer.try_emit(candidate.index, candidate.raw_value, data, phase)
        if item is None:
            return True
        if phase is EmissionPhase.FINALIZE:
            self._emitted_on_finalize += 1
        else:
            self._emitted_incrementally += 1
        self._log.debug(
            "item_emitted",
            index=item.index,
            assigned_id=item.assigned_id,
            phase=phase.value,
        )
        await self._consumer.on_item(item)
        return True

    async def _finalize(self) -> None:
        self._transition(SessionState.FINALIZING)
        try:
            document = self._validator.validate(self._buffer.snapshot())
        except FinalValidationError as e:
            self._final_validation_error = e.message
            await self._fail(e)
            return
        self._final_document = document

        assert self._sequencer is not None
        array = self._locator.locate(document, self._config.target_path).array or []
        last_index = len(array) - 1
        for index in range(self._sequencer.next_index, len(array)):
            candidate = CandidateItem(index=index, raw_value=array[index])
            if (
                self._classifier.classify(candidate, True, index == last_index)
                is Classification.GROWING
            ):
                break
            if not await self._emit(candidate, EmissionPhase.FINALIZE):
                await self._finish_cancelled()
                return

        self._transition(SessionState.DONE)
        self._log.info(
            "session_completed",
            fragments=self._buffer.fragment_count,
            incremental=self._emitted_incrementally,
            on_finalize=self._emitted_on_finalize,
        )
        await self._consumer.on_complete(self.result())

    async def _fail(self, error: StructuredStreamError) -> None:
        self._transition(SessionState.FAILED)
        self._log.warning(
            "session_failed",
            kind=error.kind.value if error.kind else None,
            error=error.message,
        )
        await self._consumer.on_error(error)

    async def _finish_cancelled(self) -> None:
        if self._state.is_terminal:
            return
        reason = self._cancel_reason or "cancelled by caller"
        self._transition(SessionState.CANCELLED)
        self._log.info(
            "session_cancelled",
            kind=ErrorKind.CANCELLATION_REQUESTED.value,
            reason=reason,
        )
        await self._consumer.on_cancelled(reason)

    async def _close_source(self, source: AsyncIterator[FragmentEvent]) -> None:
        aclose = getattr(source, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:  # closing must not mask the session outcome
            self._log.debug("source_close_failed", error=str(e))

    def _record_pass_failure(
        self, stage: str, error: Exception, index: int | None = None
    ) -> None:
        failure = ItemTransformError(
            message=f"{stage} failed: {type(error).__name__}: {error}",
            index=index,
            details={"stage": stage, "error_type": type(error).__name__},
        )
        self._pass_failures.append(failure)
        self._log.warning("pass_failed", stage=stage, index=index, error=str(error))

    def _transition(self, target: SessionState) -> None:
        allowed = _TRANSITIONS.get(self._state, frozenset())
        if target not in allowed:
            raise RuntimeError(
                f"Invalid session transition {self._state.value} -> {target.value}"
            )
        self._state = target
        if target.is_terminal:
            self._finished_at = datetime.now(timezone.utc)
