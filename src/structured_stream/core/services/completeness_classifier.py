from __future__ import annotations

import logging
from typing import Any

from structured_stream.core.common.utils import get_nested_value
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.domain.extraction import CandidateItem, Classification
from structured_stream.core.domain.partial_json import PartialString
from structured_stream.core.interfaces.completeness_classifier_interface import (
    ICompletenessClassifier,
)

logger = logging.getLogger(__name__)


class CompletenessClassifier(ICompletenessClassifier):
    """
    Decide whether an array element has stopped growing.

    A later sibling existing in the parse means the model has moved past an
    element, so it is complete once it is structurally well-formed. The last
    visible element may still be extended by the next fragment and is held
    back until the stream ends.
    """

    def __init__(self, config: ExtractionConfig) -> None:
        self._required_fields = list(config.required_fields)
        self._min_lengths = dict(config.min_field_lengths)
        self._reject_ellipsis = config.reject_trailing_ellipsis

    def classify(
        self,
        candidate: CandidateItem,
        is_last_fragment_of_stream: bool,
        is_last_index_in_array: bool,
    ) -> Classification:
        if is_last_fragment_of_stream:
            return Classification.COMPLETE
        if is_last_index_in_array:
            return Classification.GROWING
        if self.is_well_formed(candidate.raw_value):
            return Classification.COMPLETE
        return Classification.GROWING

    def is_well_formed(self, raw_value: Any) -> bool:
        """Check the required-field policy for one element."""
        if not self._required_fields:
            return raw_value is not None and not isinstance(raw_value, PartialString)
        if not isinstance(raw_value, dict):
            return False

        for field_name in self._required_fields:
            if not self._field_is_valid(field_name, get_nested_value(raw_value, field_name)):
                logger.debug("Field %s not yet valid", field_name)
                return False
        return True

    def _field_is_valid(self, field_name: str, value: Any) -> bool:
        if value is None:
            return False
        min_length = max(1, self._min_lengths.get(field_name, 0))
        if isinstance(value, str):
            if isinstance(value, PartialString):
                return False
            text = value.strip()
            if len(text) < min_length:
                return False
            return not (self._reject_ellipsis and text.endswith("..."))
        if isinstance(value, (list, dict)):
            return len(value) >= min_length
        # Numbers and booleans count as soon as they are present.
        return True
