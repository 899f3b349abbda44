from __future__ import annotations

import pytest
from structured_stream.core.config.data_types import (
    STREAMING_DATA_TYPES,
    detect_data_types,
    get_data_type_config,
    get_primary_display_field,
    get_supported_data_types,
    is_data_type_supported,
    validate_streaming_response,
)


def test_supported_data_types() -> None:
    assert get_supported_data_types() == [
        "potential_causes",
        "potential_symptoms",
        "therapeutic_properties",
        "essential_oils",
        "suggested_oils",
        "medical_properties",
    ]
    assert is_data_type_supported("essential_oils")
    assert not is_data_type_supported("recipes")
    assert get_data_type_config("recipes") is None


@pytest.mark.parametrize("name", list(STREAMING_DATA_TYPES))
def test_presets_are_self_consistent(name: str) -> None:
    config = STREAMING_DATA_TYPES[name]

    assert config.name == name
    assert config.id_field
    assert set(config.min_field_lengths) <= set(config.required_fields)
    assert config.reject_trailing_ellipsis


def test_potential_causes_preset() -> None:
    config = get_data_type_config("potential_causes")

    assert config is not None
    assert config.target_path == "data.potential_causes"
    assert config.id_field == "cause_id"
    assert config.min_field_lengths == {
        "name_localized": 10,
        "suggestion_localized": 20,
        "explanation_localized": 30,
    }


def test_suggested_oils_uses_nested_path() -> None:
    config = get_data_type_config("suggested_oils")

    assert config is not None
    assert config.target_path == "data.property_oil_suggestion.suggested_oils"


@pytest.mark.parametrize(
    "data_type, expected",
    [
        ("potential_causes", "name_localized"),
        ("therapeutic_properties", "property_name_localized"),
        ("medical_properties", "property_name"),
        ("recipes", "unknown"),
    ],
)
def test_primary_display_field(data_type: str, expected: str) -> None:
    assert get_primary_display_field(data_type) == expected


def test_detect_data_types() -> None:
    response = {
        "data": {
            "potential_causes": [],
            "property_oil_suggestion": {"suggested_oils": [{"oil_id": "o1"}]},
        }
    }

    assert detect_data_types(response) == ["potential_causes", "suggested_oils"]


class TestValidateStreamingResponse:
    def test_null_response(self) -> None:
        check = validate_streaming_response(None)

        assert not check.is_valid
        assert check.errors == ["Response is null or undefined"]

    @pytest.mark.parametrize("response", [{}, {"data": {}}, ["data"]])
    def test_missing_data(self, response: object) -> None:
        check = validate_streaming_response(response)

        assert not check.is_valid
        assert check.errors == ["Response missing data field"]

    def test_no_supported_type(self) -> None:
        check = validate_streaming_response({"data": {"recipes": []}})

        assert not check.is_valid
        assert check.errors == ["No supported data types found in response"]

    def test_valid_response(self) -> None:
        check = validate_streaming_response({"data": {"essential_oils": [{}]}})

        assert check.is_valid
        assert check.detected_types == ["essential_oils"]
        assert check.errors == []
