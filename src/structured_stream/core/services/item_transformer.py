from __future__ import annotations

import logging
from typing import Any

from structured_stream.core.common.exceptions import ItemTransformError
from structured_stream.core.common.utils import get_nested_value, set_nested_value
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.domain.partial_json import to_plain
from structured_stream.core.interfaces.item_transformer_interface import (
    IItemTransformer,
)

logger = logging.getLogger(__name__)


class ItemTransformer(IItemTransformer):
    """
    Clean, rename and convert a completed array element.

    Stages run in order: clean (field selection, plain strings, trimming),
    rename (``field_renames``), then the caller's ``transform``. A failing
    stage never drops the item: missing required fields become empty
    strings and a raising ``transform`` falls back to the renamed dict.
    Every such recovery is kept in :attr:`failures`.
    """

    def __init__(self, config: ExtractionConfig) -> None:
        self._config = config
        self._failures: list[ItemTransformError] = []

    @property
    def failures(self) -> list[ItemTransformError]:
        return list(self._failures)

    def transform(self, raw_value: Any, index: int | None = None) -> Any:
        cleaned = self.clean(raw_value, index)
        renamed = self.rename(cleaned)
        if self._config.transform is None:
            return renamed
        try:
            return self._config.transform(renamed)
        except Exception as e:
            self._record(
                f"Item transform raised {type(e).__name__}: {e}",
                index,
                {"stage": "transform", "error_type": type(e).__name__},
            )
            return renamed

    def clean(self, raw_value: Any, index: int | None = None) -> Any:
        """Select the configured fields and normalize string values."""
        value = to_plain(raw_value)
        if not isinstance(value, dict):
            return value.strip() if self._config.trim_strings and isinstance(value, str) else value

        config = self._config
        if config.optional_fields is None:
            cleaned = dict(value)
        else:
            cleaned = {}
            if config.id_field:
                id_value = get_nested_value(value, config.id_field)
                if id_value is not None:
                    set_nested_value(cleaned, config.id_field, id_value)
            for field_name in config.optional_fields:
                field_value = get_nested_value(value, field_name)
                if field_value is not None:
                    set_nested_value(cleaned, field_name, field_value)

        missing = []
        for field_name in config.required_fields:
            field_value = get_nested_value(value, field_name)
            if field_value is None:
                missing.append(field_name)
                field_value = ""
            set_nested_value(cleaned, field_name, field_value)
        if missing:
            self._record(
                f"Required fields missing from item: {', '.join(missing)}",
                index,
                {"stage": "clean", "missing_fields": missing},
            )

        if config.trim_strings:
            for key, field_value in cleaned.items():
                if isinstance(field_value, str):
                    cleaned[key] = field_value.strip()
        return cleaned

    def rename(self, item: Any) -> Any:
        renames = self._config.field_renames
        if not renames or not isinstance(item, dict):
            return item
        return {renames.get(key, key): value for key, value in item.items()}

    def _record(self, message: str, index: int | None, details: dict[str, Any]) -> None:
        error = ItemTransformError(message, index=index, details=details)
        self._failures.append(error)
        logger.warning("Item %s: %s", index, message)
