from __future__ import annotations

from abc import ABC, abstractmethod

from structured_stream.core.domain.extraction import CandidateItem, Classification


class ICompletenessClassifier(ABC):
    """Interface for deciding whether an array element has stopped growing."""

    @abstractmethod
    def classify(
        self,
        candidate: CandidateItem,
        is_last_fragment_of_stream: bool,
        is_last_index_in_array: bool,
    ) -> Classification:
        """Classify a candidate as complete or still growing.

        Args:
            candidate: The array element seen in the latest parse
            is_last_fragment_of_stream: True on the final flush
            is_last_index_in_array: True if no later sibling is visible yet

        Returns:
            The classification
        """
