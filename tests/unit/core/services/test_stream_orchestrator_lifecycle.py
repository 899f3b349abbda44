"""Timeouts, cancellation paths and upstream failures of a session."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
from structlog.testing import capture_logs
from structured_stream.core.common.exceptions import (
    ErrorKind,
    StreamTimeoutError,
    UpstreamTransportError,
)
from structured_stream.core.config.app_config import ExtractionConfig, StreamingSettings
from structured_stream.core.domain.extraction import EmittedItem, SessionState
from structured_stream.core.domain.fragment_event import FragmentEvent
from structured_stream.core.services.consumers import CallbackConsumer, CollectingConsumer
from structured_stream.core.services.stream_orchestrator import StreamOrchestrator


async def _stall_after(first: str) -> AsyncIterator[FragmentEvent]:
    yield FragmentEvent.text_delta(0, first)
    await asyncio.sleep(30)
    yield FragmentEvent.stream_end(1)


@pytest.mark.asyncio
async def test_inter_fragment_timeout_fails_session(items_config: ExtractionConfig) -> None:
    consumer = CollectingConsumer()
    settings = StreamingSettings(inter_fragment_timeout_seconds=0.05)

    result = await asyncio.wait_for(
        StreamOrchestrator(items_config, consumer, settings=settings).run(
            _stall_after('{"data":{"items":[')
        ),
        timeout=5,
    )

    assert result.status is SessionState.FAILED
    assert isinstance(consumer.error, StreamTimeoutError)
    assert consumer.error.kind is ErrorKind.UPSTREAM_TRANSPORT_FAILURE
    assert consumer.error.timeout_seconds == 0.05


@pytest.mark.asyncio
async def test_session_timeout_fails_session(items_config: ExtractionConfig) -> None:
    async def trickle() -> AsyncIterator[FragmentEvent]:
        seq = 0
        yield FragmentEvent.text_delta(seq, '{"data":{"items":[')
        while True:
            seq += 1
            await asyncio.sleep(0.02)
            yield FragmentEvent.text_delta(seq, " ")

    consumer = CollectingConsumer()
    settings = StreamingSettings(
        session_timeout_seconds=0.15, inter_fragment_timeout_seconds=1
    )

    result = await asyncio.wait_for(
        StreamOrchestrator(items_config, consumer, settings=settings).run(trickle()),
        timeout=5,
    )

    assert result.status is SessionState.FAILED
    assert isinstance(consumer.error, StreamTimeoutError)
    assert consumer.error.timeout_seconds == 0.15


@pytest.mark.asyncio
async def test_task_cancellation_is_reraised_after_cleanup(
    items_config: ExtractionConfig,
) -> None:
    consumer = CollectingConsumer()
    orchestrator = StreamOrchestrator(items_config, consumer)
    task = asyncio.create_task(orchestrator.run(_stall_after('{"data":{"items":[')))
    await asyncio.sleep(0.05)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert orchestrator.state is SessionState.CANCELLED
    assert consumer.cancel_reason == "task cancelled"
    assert consumer.error is None


@pytest.mark.asyncio
async def test_cancel_from_on_item_stops_further_emission(
    items_config: ExtractionConfig, make_events
) -> None:
    received: list[EmittedItem] = []
    reasons: list[str] = []
    orchestrator: StreamOrchestrator

    def on_item(item: EmittedItem) -> None:
        received.append(item)
        orchestrator.cancel("enough")

    consumer = CallbackConsumer(on_item=on_item, on_cancelled=reasons.append)
    orchestrator = StreamOrchestrator(items_config, consumer)

    result = await orchestrator.run(
        make_events(
            [
                '{"data":{"items":[{"id":"1","name":"A"},{"id":"2","name":"B"},'
                '{"id":"3","name":"C"}]}}'
            ]
        )
    )

    assert [item.index for item in received] == [0]
    assert reasons == ["enough"]
    assert result.status is SessionState.CANCELLED


@pytest.mark.asyncio
async def test_cancel_before_run(items_config: ExtractionConfig, make_events) -> None:
    consumer = CollectingConsumer()
    orchestrator = StreamOrchestrator(items_config, consumer)
    orchestrator.cancel("not needed")

    result = await orchestrator.run(make_events(['{"data":{"items":[]}}']))

    assert result.status is SessionState.CANCELLED
    assert consumer.cancel_reason == "not needed"


@pytest.mark.asyncio
async def test_cancel_after_done_is_ignored(
    items_config: ExtractionConfig, two_item_fragments: list[str], make_events
) -> None:
    consumer = CollectingConsumer()
    orchestrator = StreamOrchestrator(items_config, consumer)
    await orchestrator.run(make_events(two_item_fragments))

    orchestrator.cancel()

    assert orchestrator.state is SessionState.DONE
    assert consumer.cancel_reason is None


@pytest.mark.asyncio
async def test_source_exception_becomes_upstream_error(
    items_config: ExtractionConfig,
) -> None:
    async def failing() -> AsyncIterator[FragmentEvent]:
        yield FragmentEvent.text_delta(0, '{"data":{"items":[')
        raise ConnectionError("socket closed")

    consumer = CollectingConsumer()

    result = await StreamOrchestrator(items_config, consumer).run(failing())

    assert result.status is SessionState.FAILED
    assert isinstance(consumer.error, UpstreamTransportError)
    assert "socket closed" in consumer.error.message


@pytest.mark.asyncio
async def test_max_buffer_chars_fails_session(
    items_config: ExtractionConfig, make_events
) -> None:
    consumer = CollectingConsumer()
    settings = StreamingSettings(max_buffer_chars=10)

    result = await StreamOrchestrator(items_config, consumer, settings=settings).run(
        make_events(['{"data":{"items":[', "]}}"])
    )

    assert result.status is SessionState.FAILED
    assert isinstance(consumer.error, UpstreamTransportError)
    assert consumer.error.details["max_buffer_chars"] == 10


@pytest.mark.asyncio
async def test_source_is_closed_on_failure(items_config: ExtractionConfig, make_events) -> None:
    closed = False

    async def source() -> AsyncIterator[FragmentEvent]:
        nonlocal closed
        try:
            yield FragmentEvent.stream_error(0, "boom")
            yield FragmentEvent.stream_end(1)
        finally:
            closed = True

    result = await StreamOrchestrator(items_config, CollectingConsumer()).run(source())

    assert result.status is SessionState.FAILED
    assert closed


@pytest.mark.asyncio
async def test_shrinking_array_does_not_reemit_or_fail(
    items_config: ExtractionConfig, make_events
) -> None:
    # A repeated "items" key replaces the parsed array with a shorter one.
    fragments = [
        '{"data":{"items":[{"id":"1","name":"A"},{"id":"2","name":"B"}],',
        '"items":[{"id":"1","name":"A"}',
        "]}}",
    ]
    consumer = CollectingConsumer()

    with capture_logs() as logs:
        orchestrator = StreamOrchestrator(items_config, consumer)
        result = await orchestrator.run(make_events(fragments))

    assert result.status is SessionState.DONE
    assert consumer.error is None
    assert consumer.result is not None
    assert [item.index for item in consumer.items] == [0]
    shrank = [entry for entry in logs if entry["event"] == "array_shrank"]
    assert shrank
    assert shrank[0]["previous"] == 2
    assert shrank[0]["current"] == 1
