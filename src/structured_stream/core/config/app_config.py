from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import ConfigDict, Field, ValidationError, field_validator, model_validator

from structured_stream.core.common.exceptions import ConfigurationError
from structured_stream.core.interfaces.model_bases import DomainModel

logger = logging.getLogger(__name__)


def _env_to_int(name: str, env: Mapping[str, str]) -> int | None:
    """Return an environment variable parsed as an integer, or None if unset/invalid."""
    value = env.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer value for %s: %r", name, value)
        return None


def _env_to_float(name: str, env: Mapping[str, str]) -> float | None:
    """Return an environment variable parsed as a float, or None if unset/invalid."""
    value = env.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric value for %s: %r", name, value)
        return None


def _default_data_types() -> dict[str, ExtractionConfig]:
    # Presets import this module; resolve lazily to avoid a cycle.
    from structured_stream.core.config.data_types import STREAMING_DATA_TYPES

    return dict(STREAMING_DATA_TYPES)


class LogLevel(str, Enum):
    """Log levels for configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ExtractionConfig(DomainModel):
    """What to extract from one structured model response.

    The target array lives at ``target_path`` (dot-separated object keys).
    ``required_fields`` and ``min_field_lengths`` drive the completeness
    heuristic; ``optional_fields``, ``field_renames`` and ``transform`` shape
    each completed item before it reaches the consumer.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = "items"
    display_name: str | None = None
    target_path: str
    required_fields: list[str] = Field(default_factory=list)
    min_field_lengths: dict[str, int] = Field(default_factory=dict)
    id_field: str | None = None
    # None keeps every field of the item; a list restricts output to
    # id_field + required_fields + these.
    optional_fields: list[str] | None = None
    field_renames: dict[str, str] = Field(default_factory=dict)
    trim_strings: bool = True
    reject_trailing_ellipsis: bool = False
    json_schema: dict[str, Any] | None = None
    id_prefix: str = "item"
    transform: Callable[[Any], Any] | None = Field(default=None, exclude=True)

    @field_validator("target_path")
    @classmethod
    def validate_target_path(cls, v: str) -> str:
        """Only plain dot-separated object keys are supported."""
        path = v.strip()
        if not path:
            raise ValueError("target_path must not be empty")
        for segment in path.split("."):
            if not segment:
                raise ValueError(f"target_path has an empty segment: {v!r}")
            if "[" in segment or "]" in segment:
                raise ValueError(
                    f"target_path must not contain array indices: {v!r}"
                )
        return path

    @field_validator("id_field")
    @classmethod
    def validate_id_field(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_field_policy(self) -> ExtractionConfig:
        unknown = sorted(set(self.min_field_lengths) - set(self.required_fields))
        if unknown:
            raise ValueError(
                f"min_field_lengths names fields that are not required: {unknown}"
            )
        negative = sorted(k for k, v in self.min_field_lengths.items() if v < 0)
        if negative:
            raise ValueError(f"min_field_lengths must be >= 0: {negative}")
        if self.json_schema is not None:
            try:
                validator_for(self.json_schema).check_schema(self.json_schema)
            except SchemaError as e:
                raise ValueError(f"json_schema is not a valid JSON schema: {e.message}") from e
        return self


class StreamingSettings(DomainModel):
    """Per-session streaming behaviour shared read-only across sessions."""

    parse_every_n_fragments: int = Field(default=1, ge=1)
    session_timeout_seconds: float | None = Field(default=None, gt=0)
    inter_fragment_timeout_seconds: float | None = Field(default=None, gt=0)
    # Caller-imposed cap on the accumulated response; None means unbounded.
    max_buffer_chars: int | None = Field(default=None, ge=1)
    sse_queue_size: int = Field(default=16, ge=1)


class LoggingConfig(DomainModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    log_file: str | None = None


class AppConfig(DomainModel):
    """Complete application configuration."""

    streaming: StreamingSettings = Field(default_factory=StreamingSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    data_types: dict[str, ExtractionConfig] = Field(default_factory=_default_data_types)

    @classmethod
    def from_env(cls, *, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Create AppConfig from defaults overridden by environment variables.

        Raises:
            ConfigurationError: If an override is out of range
        """
        env: Mapping[str, str] = environ if environ is not None else os.environ
        return _build_app_config({}, env)

    def get_data_type(self, name: str) -> ExtractionConfig | None:
        return self.data_types.get(name)


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    streaming: dict[str, Any] = {}
    for key, name, parse in (
        ("parse_every_n_fragments", "STREAM_PARSE_EVERY_N_FRAGMENTS", _env_to_int),
        ("session_timeout_seconds", "STREAM_SESSION_TIMEOUT_SECONDS", _env_to_float),
        (
            "inter_fragment_timeout_seconds",
            "STREAM_INTER_FRAGMENT_TIMEOUT_SECONDS",
            _env_to_float,
        ),
        ("max_buffer_chars", "STREAM_MAX_BUFFER_CHARS", _env_to_int),
        ("sse_queue_size", "STREAM_SSE_QUEUE_SIZE", _env_to_int),
    ):
        value = parse(name, env)
        if value is not None:
            streaming[key] = value

    logging_section: dict[str, Any] = {}
    if env.get("LOG_LEVEL"):
        logging_section["level"] = env["LOG_LEVEL"].strip().upper()
    if env.get("LOG_FILE"):
        logging_section["log_file"] = env["LOG_FILE"]

    overrides: dict[str, Any] = {}
    if streaming:
        overrides["streaming"] = streaming
    if logging_section:
        overrides["logging"] = logging_section
    return overrides


def _merge_dicts(d1: dict[str, Any], d2: dict[str, Any]) -> dict[str, Any]:
    for k, v in d2.items():
        if k in d1 and isinstance(d1[k], dict) and isinstance(v, dict):
            _merge_dicts(d1[k], v)
        else:
            d1[k] = v
    return d1


def load_config(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """
    Load configuration from file and environment.

    The YAML file is merged over the built-in defaults (data type entries
    with a preset's name are merged into that preset), then environment
    variables are applied on top.

    Args:
        config_path: Optional path to a YAML configuration file
        environ: Optional environment mapping (defaults to os.environ)

    Returns:
        AppConfig instance

    Raises:
        ConfigurationError: If the file is not a YAML mapping or any setting
            fails validation
    """
    env: Mapping[str, str] = environ if environ is not None else os.environ
    file_config: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Configuration file not found: {config_path}")
        else:
            if path.suffix.lower() not in (".yaml", ".yml"):
                raise ConfigurationError(
                    message=f"Unsupported configuration file format: {path.suffix}. Use YAML (.yaml/.yml).",
                    details={"config_path": str(config_path)},
                )
            import yaml

            with open(path, encoding="utf-8") as f:
                try:
                    loaded = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(
                        message=f"Configuration file {config_path} is not valid YAML: {e}",
                        details={"config_path": str(config_path)},
                    ) from e
            if not isinstance(loaded, dict):
                raise ConfigurationError(
                    message=f"Configuration file {config_path} must contain a mapping",
                    details={"config_path": str(config_path)},
                )
            file_config = loaded

    return _build_app_config(file_config, env)


def _build_app_config(file_config: dict[str, Any], env: Mapping[str, str]) -> AppConfig:
    """Merge file and environment overrides over the defaults.

    Data types are rebuilt from the preset instances rather than from a dump,
    so a preset's ``transform`` callable survives loading.
    """
    file_data = dict(file_config)
    data_type_overrides = file_data.pop("data_types", None) or {}
    if not isinstance(data_type_overrides, dict):
        raise ConfigurationError(
            message="'data_types' must be a mapping of name to extraction config",
            details={"data_types": data_type_overrides},
        )

    config_data: dict[str, Any] = AppConfig().model_dump(
        exclude={"data_types"}
    )
    _merge_dicts(config_data, file_data)
    _merge_dicts(config_data, _env_overrides(env))

    try:
        config_data["data_types"] = _resolve_data_types(data_type_overrides)
        return AppConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Invalid configuration: {e.error_count()} error(s)",
            details={
                "errors": [
                    {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                    for err in e.errors()
                ]
            },
        ) from e


def _resolve_data_types(overrides: dict[str, Any]) -> dict[str, ExtractionConfig]:
    data_types = _default_data_types()
    for name, override in overrides.items():
        if not isinstance(override, dict):
            raise ConfigurationError(
                message=f"Data type '{name}' must be a mapping",
                details={"data_type": name},
            )
        preset = data_types.get(name)
        if preset is None:
            data_types[name] = ExtractionConfig.model_validate({"name": name, **override})
            continue
        merged = _merge_dicts(preset.model_dump(), override)
        merged["transform"] = preset.transform
        data_types[name] = ExtractionConfig.model_validate(merged)
    return data_types
