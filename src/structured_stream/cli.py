"""
Developer CLI for replaying recorded model responses through an extraction
session.

``structured-stream replay response.json --data-type potential_causes``
splits the file into fixed-size chunks, feeds them to one session, and
prints the resulting SSE frames to stdout.
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from structured_stream.connectors.fragment_sources import fragment_events
from structured_stream.core.common.exceptions import (
    ConfigurationError,
    StructuredStreamError,
)
from structured_stream.core.config.app_config import (
    AppConfig,
    ExtractionConfig,
    LogLevel,
    load_config,
)
from structured_stream.core.domain.extraction import (
    EmittedItem,
    SessionResult,
    SessionState,
)
from structured_stream.core.domain.sse_events import (
    complete_event,
    error_event,
    format_sse,
    item_event,
)
from structured_stream.core.interfaces.item_consumer_interface import IItemConsumer
from structured_stream.core.services.stream_orchestrator import StreamOrchestrator

logger = logging.getLogger(__name__)


def _parse_min_length(value: str) -> tuple[str, int]:
    """Validate FIELD=N format."""
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Expected FIELD=N"
        )
    field_name, _, raw_length = value.partition("=")
    field_name = field_name.strip()
    if not field_name:
        raise argparse.ArgumentTypeError(f"Missing field name in '{value}'")
    try:
        length = int(raw_length)
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            f"Minimum length must be an integer in '{value}'"
        ) from e
    return field_name, length


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="structured-stream",
        description="Incrementally extract array items from streamed structured model output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser(
        "replay", help="Replay a recorded response file as a stream"
    )
    replay.add_argument("file", type=Path, help="Recorded model response (JSON text)")

    selection = replay.add_mutually_exclusive_group(required=True)
    selection.add_argument(
        "--data-type",
        dest="data_type",
        help="Name of a configured data type preset",
    )
    selection.add_argument(
        "--target-path",
        dest="target_path",
        help="Dot-separated path to the target array, e.g. data.items",
    )
    replay.add_argument(
        "--required-field",
        dest="required_fields",
        action="append",
        default=[],
        metavar="FIELD",
        help="Field an item must have to be complete (repeatable; ad-hoc config only)",
    )
    replay.add_argument(
        "--min-length",
        dest="min_lengths",
        action="append",
        default=[],
        type=_parse_min_length,
        metavar="FIELD=N",
        help="Minimum length of a required field (repeatable; ad-hoc config only)",
    )
    replay.add_argument(
        "--id-field",
        dest="id_field",
        help="Field holding the item ID (ad-hoc config only)",
    )
    replay.add_argument(
        "--chunk-size",
        dest="chunk_size",
        type=int,
        default=20,
        help="Characters per simulated fragment (default: 20)",
    )
    replay.add_argument(
        "--config",
        dest="config_file",
        metavar="FILE",
        help="YAML configuration file",
    )
    replay.add_argument(
        "--log-level",
        dest="log_level",
        choices=[level.value for level in LogLevel],
        help="Override the configured log level",
    )
    return parser


def build_extraction_config(
    args: argparse.Namespace, app_config: AppConfig
) -> ExtractionConfig:
    """Resolve the preset or ad-hoc extraction config named on the command line.

    Raises:
        ConfigurationError: If the preset is unknown, ad-hoc options are
            combined with a preset, or the ad-hoc config is invalid
    """
    if args.data_type:
        ad_hoc = _ad_hoc_options(args)
        if ad_hoc:
            raise ConfigurationError(
                message=(
                    f"{', '.join(ad_hoc)} only apply with --target-path, "
                    "not --data-type"
                ),
                details={"options": ad_hoc},
            )
        config = app_config.get_data_type(args.data_type)
        if config is None:
            supported = ", ".join(sorted(app_config.data_types))
            raise ConfigurationError(
                message=f"Unknown data type '{args.data_type}'. Supported: {supported}",
                details={"data_type": args.data_type},
            )
        return config

    try:
        return ExtractionConfig(
            name="replay",
            target_path=args.target_path,
            required_fields=args.required_fields,
            min_field_lengths=dict(args.min_lengths),
            id_field=args.id_field,
        )
    except ValueError as e:
        raise ConfigurationError(
            message=str(e), details={"target_path": args.target_path}
        ) from e


def _ad_hoc_options(args: argparse.Namespace) -> list[str]:
    used = []
    if args.required_fields:
        used.append("--required-field")
    if args.min_lengths:
        used.append("--min-length")
    if args.id_field:
        used.append("--id-field")
    return used


def split_into_chunks(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class _SseWriter(IItemConsumer):
    """Writes each session callback as an SSE frame."""

    def __init__(self, out: TextIO) -> None:
        self._out = out

    def _write(self, frame: bytes) -> None:
        self._out.write(frame.decode("utf-8"))
        self._out.flush()

    async def on_item(self, item: EmittedItem) -> None:
        self._write(format_sse(item_event(item)))

    async def on_complete(self, result: SessionResult) -> None:
        self._write(format_sse(complete_event(result)))

    async def on_error(self, error: StructuredStreamError) -> None:
        self._write(format_sse(error_event(error)))

    async def on_cancelled(self, reason: str) -> None:
        logger.info("Replay cancelled: %s", reason)


async def replay(
    text: str,
    config: ExtractionConfig,
    app_config: AppConfig,
    chunk_size: int,
    out: TextIO,
) -> SessionResult:
    orchestrator = StreamOrchestrator(
        config, _SseWriter(out), settings=app_config.streaming
    )
    return await orchestrator.run(fragment_events(split_into_chunks(text, chunk_size)))


def _configure_logging(cfg: AppConfig) -> None:
    """Configure logging based on configuration."""
    from structured_stream.core.common.logging_utils import (
        configure_logging_with_environment_tagging,
    )

    configure_logging_with_environment_tagging(
        level=getattr(logging, cfg.logging.level.value),
        log_file=cfg.logging.log_file,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Console entry point. Returns 0 when the session finished DONE."""
    parser = build_cli_parser()
    args = parser.parse_args(argv)

    if args.chunk_size < 1:
        parser.error("--chunk-size must be at least 1")

    try:
        app_config = load_config(args.config_file)
    except ConfigurationError as e:
        parser.error(e.message)
    if args.log_level:
        app_config.logging.level = LogLevel(args.log_level)
    _configure_logging(app_config)

    try:
        config = build_extraction_config(args, app_config)
    except ConfigurationError as e:
        parser.error(e.message)

    try:
        text = args.file.read_text(encoding="utf-8")
    except OSError as e:
        parser.error(f"Cannot read {args.file}: {e}")

    result = asyncio.run(
        replay(text, config, app_config, args.chunk_size, sys.stdout)
    )
    return 0 if result.status is SessionState.DONE else 1


if __name__ == "__main__":
    sys.exit(main())
