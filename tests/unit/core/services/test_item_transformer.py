from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from structured_stream.core.config.app_config import ExtractionConfig
from structured_stream.core.domain.partial_json import PartialString
from structured_stream.core.services.item_transformer import ItemTransformer


def make_config(**overrides: Any) -> ExtractionConfig:
    values: dict[str, Any] = {
        "target_path": "data.potential_causes",
        "id_field": "cause_id",
        "required_fields": ["name_localized", "explanation_localized"],
    }
    values.update(overrides)
    return ExtractionConfig(**values)


def test_all_fields_kept_when_optional_fields_unset() -> None:
    transformer = ItemTransformer(make_config())

    result = transformer.transform(
        {
            "cause_id": "c1",
            "name_localized": "  Stress  ",
            "explanation_localized": "Work pressure",
            "confidence": 0.8,
        }
    )

    assert result == {
        "cause_id": "c1",
        "name_localized": "Stress",
        "explanation_localized": "Work pressure",
        "confidence": 0.8,
    }
    assert transformer.failures == []


def test_optional_fields_restrict_output() -> None:
    transformer = ItemTransformer(make_config(optional_fields=["confidence", "tags"]))

    result = transformer.transform(
        {
            "cause_id": "c1",
            "name_localized": "Stress",
            "explanation_localized": "Work pressure",
            "confidence": 0.8,
            "tags": None,
            "debug": "drop me",
        }
    )

    assert result == {
        "cause_id": "c1",
        "name_localized": "Stress",
        "explanation_localized": "Work pressure",
        "confidence": 0.8,
    }


def test_trimming_can_be_disabled() -> None:
    transformer = ItemTransformer(make_config(trim_strings=False))

    result = transformer.transform(
        {"name_localized": " Stress ", "explanation_localized": "Work pressure"}
    )

    assert result["name_localized"] == " Stress "


def test_dotted_fields_are_rebuilt_as_nested_objects() -> None:
    config = ExtractionConfig(
        target_path="data.therapeutic_properties",
        id_field="context.property_id",
        required_fields=["property_name_localized"],
        optional_fields=[],
    )
    transformer = ItemTransformer(config)

    result = transformer.transform(
        {
            "context": {"property_id": "p1", "noise": True},
            "property_name_localized": "Calming",
        }
    )

    assert result == {"context": {"property_id": "p1"}, "property_name_localized": "Calming"}


def test_partial_strings_become_plain_strings() -> None:
    transformer = ItemTransformer(make_config())

    result = transformer.transform(
        {
            "name_localized": PartialString("Stre"),
            "explanation_localized": "x",
            "tags": [PartialString("t")],
        }
    )

    assert type(result["name_localized"]) is str
    assert type(result["tags"][0]) is str


def test_missing_required_field_gets_placeholder_and_is_recorded() -> None:
    transformer = ItemTransformer(make_config())

    result = transformer.transform({"cause_id": "c1", "name_localized": "Stress"}, index=4)

    assert result["explanation_localized"] == ""
    [failure] = transformer.failures
    assert failure.index == 4
    assert failure.details["missing_fields"] == ["explanation_localized"]


def test_renames_apply_after_cleaning() -> None:
    transformer = ItemTransformer(
        make_config(
            optional_fields=[],
            field_renames={"name_localized": "causeName", "cause_id": "id"},
        )
    )

    result = transformer.transform(
        {"cause_id": "c1", "name_localized": "Stress", "explanation_localized": "Why"}
    )

    assert result == {"id": "c1", "causeName": "Stress", "explanation_localized": "Why"}


class Cause(BaseModel):
    id: str
    causeName: str


def test_user_transform_receives_renamed_item() -> None:
    transformer = ItemTransformer(
        make_config(
            field_renames={"name_localized": "causeName", "cause_id": "id"},
            transform=lambda item: Cause(id=item["id"], causeName=item["causeName"]),
        )
    )

    result = transformer.transform(
        {"cause_id": "c1", "name_localized": "Stress", "explanation_localized": "Why"}
    )

    assert result == Cause(id="c1", causeName="Stress")


def test_raising_transform_falls_back_to_renamed_item() -> None:
    def explode(item: dict[str, Any]) -> dict[str, Any]:
        raise KeyError("missing")

    transformer = ItemTransformer(
        make_config(field_renames={"name_localized": "causeName"}, transform=explode)
    )

    result = transformer.transform(
        {"cause_id": "c1", "name_localized": "Stress", "explanation_localized": "Why"},
        index=0,
    )

    assert result["causeName"] == "Stress"
    [failure] = transformer.failures
    assert failure.details["stage"] == "transform"
    assert failure.details["error_type"] == "KeyError"


def test_non_object_items_pass_through() -> None:
    transformer = ItemTransformer(ExtractionConfig(target_path="tags"))

    assert transformer.transform("  lavender ") == "lavender"
    assert transformer.transform(3) == 3
