from __future__ import annotations

import json
import logging
from typing import Any

from jsonschema.exceptions import best_match
from jsonschema.validators import validator_for

from structured_stream.core.common.exceptions import FinalValidationError
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.services.array_path_locator import ArrayPathLocator

logger = logging.getLogger(__name__)


def _preview(content: str) -> str:
    return content[:200] if len(content) > 200 else content


class FinalDocumentValidator:
    """Strict end-of-stream check of the complete response text."""

    def __init__(
        self, config: ExtractionConfig, locator: ArrayPathLocator | None = None
    ) -> None:
        self._config = config
        self._locator = locator or ArrayPathLocator()
        schema = config.json_schema
        self._schema_validator = (
            validator_for(schema)(schema) if schema is not None else None
        )

    def validate(self, text: str) -> Any:
        """
        Parse the whole response strictly and check it.

        Args:
            text: The full accumulated response

        Returns:
            The parsed document

        Raises:
            FinalValidationError: If the text is not valid JSON, fails the
                configured JSON schema, or has no array at the target path.
        """
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise FinalValidationError(
                message=f"Response is not valid JSON: {e.msg}",
                details={
                    "position": e.pos,
                    "line": e.lineno,
                    "column": e.colno,
                    "content_preview": _preview(text),
                },
            ) from e

        if self._schema_validator is not None:
            errors = list(self._schema_validator.iter_errors(document))
            if errors:
                error = best_match(errors)
                raise FinalValidationError(
                    message=f"Response does not match required schema: {error.message}",
                    details={
                        "schema_path": list(error.absolute_path),
                        "failed_value": error.instance,
                        "error_count": len(errors),
                    },
                )

        if self._locator.locate(document, self._config.target_path).not_found:
            raise FinalValidationError(
                message=f"Response has no array at '{self._config.target_path}'",
                details={
                    "target_path": self._config.target_path,
                    "content_preview": _preview(text),
                },
            )

        logger.debug("Final document validated for %s", self._config.name)
        return document
