"""
Built-in extraction presets for the structured responses the application
requests from the model, plus helpers to inspect a parsed response.

Each preset names where its array lives in the response, which fields make
an item complete, the minimum content for free-text fields, and which
optional fields survive cleaning. Add a preset here (or under
``data_types:`` in a YAML config) to support a new response shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.interfaces.model_bases import InternalDTO
from structured_stream.core.services.array_path_locator import ArrayPathLocator


STREAMING_DATA_TYPES: dict[str, ExtractionConfig] = {
    "potential_causes": ExtractionConfig(
        name="potential_causes",
        display_name="Potential Cause",
        target_path="data.potential_causes",
        id_field="cause_id",
        required_fields=[
            "name_localized",
            "suggestion_localized",
            "explanation_localized",
        ],
        min_field_lengths={
            "name_localized": 10,
            "suggestion_localized": 20,
            "explanation_localized": 30,
        },
        optional_fields=["confidence", "tags"],
        reject_trailing_ellipsis=True,
        id_prefix="cause",
    ),
    "potential_symptoms": ExtractionConfig(
        name="potential_symptoms",
        display_name="Potential Symptom",
        target_path="data.potential_symptoms",
        id_field="symptom_id",
        required_fields=[
            "name_localized",
            "suggestion_localized",
            "explanation_localized",
        ],
        min_field_lengths={
            "name_localized": 5,
            "suggestion_localized": 10,
            "explanation_localized": 15,
        },
        optional_fields=[],
        reject_trailing_ellipsis=True,
        id_prefix="symptom",
    ),
    "therapeutic_properties": ExtractionConfig(
        name="therapeutic_properties",
        display_name="Therapeutic Property",
        target_path="data.therapeutic_properties",
        id_field="property_id",
        required_fields=["property_name_localized", "description_contextual_localized"],
        min_field_lengths={
            "property_name_localized": 5,
            "description_contextual_localized": 15,
        },
        optional_fields=[
            "property_name_english",
            "relevancy_score",
            "addresses_cause_ids",
            "addresses_symptom_ids",
        ],
        reject_trailing_ellipsis=True,
        id_prefix="property",
    ),
    "essential_oils": ExtractionConfig(
        name="essential_oils",
        display_name="Essential Oil",
        target_path="data.essential_oils",
        id_field="oil_id",
        required_fields=["name_localized", "description_localized"],
        min_field_lengths={"name_localized": 3, "description_localized": 10},
        optional_fields=["relevancy", "properties"],
        reject_trailing_ellipsis=True,
        id_prefix="oil",
    ),
    "suggested_oils": ExtractionConfig(
        name="suggested_oils",
        display_name="Essential Oil",
        target_path="data.property_oil_suggestion.suggested_oils",
        id_field="oil_id",
        required_fields=[
            "name_english",
            "name_botanical",
            "name_localized",
            "match_rationale_localized",
        ],
        min_field_lengths={
            "name_english": 3,
            "name_botanical": 5,
            "name_localized": 3,
            "match_rationale_localized": 10,
        },
        optional_fields=["relevancy_to_property_score"],
        reject_trailing_ellipsis=True,
        id_prefix="oil",
    ),
    "medical_properties": ExtractionConfig(
        name="medical_properties",
        display_name="Medical Property",
        target_path="data.medical_properties",
        id_field="property_id",
        required_fields=["property_name", "description"],
        min_field_lengths={"property_name": 5, "description": 15},
        optional_fields=["causes_addressed", "symptoms_addressed", "relevancy"],
        reject_trailing_ellipsis=True,
        id_prefix="property",
    ),
}


@dataclass
class StreamingResponseCheck(InternalDTO):
    """Outcome of :func:`validate_streaming_response`."""

    is_valid: bool
    detected_types: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def get_data_type_config(data_type: str) -> ExtractionConfig | None:
    """Get the preset for a data type, or None if it is unknown."""
    return STREAMING_DATA_TYPES.get(data_type)


def get_supported_data_types() -> list[str]:
    return list(STREAMING_DATA_TYPES)


def is_data_type_supported(data_type: str) -> bool:
    return data_type in STREAMING_DATA_TYPES


def detect_data_types(response: Any) -> list[str]:
    """List the presets whose target array is present in a parsed response."""
    locator = ArrayPathLocator()
    return [
        name
        for name, config in STREAMING_DATA_TYPES.items()
        if locator.locate(response, config.target_path).found
    ]


def get_primary_display_field(data_type: str) -> str:
    """Field used to label an item of this type in logs and UI.

    Prefers ``name_localized``, then the first required field, then the ID
    field. Unknown types give ``"unknown"``.
    """
    config = get_data_type_config(data_type)
    if config is None:
        return "unknown"
    if "name_localized" in config.required_fields:
        return "name_localized"
    if config.required_fields:
        return config.required_fields[0]
    return config.id_field or "unknown"


def validate_streaming_response(response: Any) -> StreamingResponseCheck:
    """Check that a parsed response carries at least one supported data type."""
    if response is None:
        return StreamingResponseCheck(
            is_valid=False, errors=["Response is null or undefined"]
        )
    if not isinstance(response, dict) or not response.get("data"):
        return StreamingResponseCheck(
            is_valid=False, errors=["Response missing data field"]
        )

    detected = detect_data_types(response)
    if not detected:
        return StreamingResponseCheck(
            is_valid=False, errors=["No supported data types found in response"]
        )
    return StreamingResponseCheck(is_valid=True, detected_types=detected)
