from __future__ import annotations

import pytest
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.domain.extraction import CandidateItem, Classification
from structured_stream.core.domain.partial_json import PartialString
from structured_stream.core.services.completeness_classifier import (
    CompletenessClassifier,
)


@pytest.fixture
def classifier() -> CompletenessClassifier:
    config = ExtractionConfig(
        target_path="data.causes",
        required_fields=["name", "explanation"],
        min_field_lengths={"name": 3, "explanation": 10},
        reject_trailing_ellipsis=True,
    )
    return CompletenessClassifier(config)


VALID = {"name": "Stress", "explanation": "Long-term pressure at work"}


def classify(
    classifier: CompletenessClassifier,
    raw: object,
    *,
    final: bool = False,
    last: bool = False,
) -> Classification:
    return classifier.classify(CandidateItem(index=0, raw_value=raw), final, last)


def test_final_flush_is_always_complete(classifier: CompletenessClassifier) -> None:
    assert classify(classifier, {}, final=True, last=True) is Classification.COMPLETE
    assert classify(classifier, None, final=True) is Classification.COMPLETE


def test_last_index_is_growing_even_when_valid(classifier: CompletenessClassifier) -> None:
    assert classify(classifier, VALID, last=True) is Classification.GROWING


def test_valid_item_with_later_sibling_is_complete(
    classifier: CompletenessClassifier,
) -> None:
    assert classify(classifier, VALID) is Classification.COMPLETE


@pytest.mark.parametrize(
    "raw",
    [
        {"name": "Stress"},
        {"name": "Stress", "explanation": None},
        {"name": "St", "explanation": "Long-term pressure at work"},
        {"name": "   Str   ", "explanation": "too short"},
        {"name": "Stress", "explanation": PartialString("Long-term pressure")},
        {"name": "Stress", "explanation": "Long-term pressure at..."},
        ["Stress"],
        "Stress",
        None,
    ],
)
def test_non_last_item_failing_policy_is_growing(
    classifier: CompletenessClassifier, raw: object
) -> None:
    assert classify(classifier, raw) is Classification.GROWING


def test_ellipsis_allowed_when_rejection_disabled() -> None:
    classifier = CompletenessClassifier(
        ExtractionConfig(target_path="items", required_fields=["name"])
    )
    assert classifier.is_well_formed({"name": "To be continued..."})


def test_numbers_and_booleans_count_when_present() -> None:
    classifier = CompletenessClassifier(
        ExtractionConfig(target_path="items", required_fields=["score", "active"])
    )
    assert classifier.is_well_formed({"score": 0, "active": False})
    assert not classifier.is_well_formed({"score": 0})


def test_collection_fields_use_length() -> None:
    classifier = CompletenessClassifier(
        ExtractionConfig(
            target_path="items",
            required_fields=["tags"],
            min_field_lengths={"tags": 2},
        )
    )
    assert not classifier.is_well_formed({"tags": []})
    assert not classifier.is_well_formed({"tags": ["a"]})
    assert classifier.is_well_formed({"tags": ["a", "b"]})


def test_dotted_required_field() -> None:
    classifier = CompletenessClassifier(
        ExtractionConfig(
            target_path="data.therapeutic_properties",
            required_fields=["context.property_id"],
        )
    )
    assert classifier.is_well_formed({"context": {"property_id": "p1"}})
    assert not classifier.is_well_formed({"context": {}})
    assert not classifier.is_well_formed({"context": "p1"})


def test_without_required_fields_any_closed_value_is_well_formed() -> None:
    classifier = CompletenessClassifier(ExtractionConfig(target_path="items"))

    assert classifier.is_well_formed("done")
    assert classifier.is_well_formed({})
    assert classifier.is_well_formed(0)
    assert not classifier.is_well_formed(None)
    assert not classifier.is_well_formed(PartialString("do"))
