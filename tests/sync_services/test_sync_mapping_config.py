"""
Tests for per-connector mapping configuration.
"""

import json

import pytest

from canonical_mapping.transformations import TransformContext
from sync_services.mapping_config import (
    FINANCE_TRANSFORMS,
    HR_TRANSFORMS,
    NO_MAPPING_MESSAGE,
    apply_connector_mapping,
    parse_mapping_configuration,
)


def config(*rules) -> str:
    return json.dumps({"mappings": list(rules)})


class TestParseMappingConfiguration:

    def test_empty_inputs(self):
        assert parse_mapping_configuration(None).mappings == []
        assert parse_mapping_configuration("  ").mappings == []
        assert parse_mapping_configuration("{}").mappings == []

    def test_aliases_and_snake_case(self):
        parsed = parse_mapping_configuration({
            "mappings": [
                {"externalField": "a", "internalField": "b"},
                {"external_field": "c", "internal_field": "d", "transform": "sum", "required": True},
            ]
        })
        first, second = parsed.mappings
        assert (first.external_field, first.internal_field, first.transform) == ("a", "b", "direct")
        assert second.required is True


class TestApplyConnectorMapping:

    def test_no_configuration_rejects(self):
        result = apply_connector_mapping({"a": 1}, "{}", HR_TRANSFORMS)
        assert not result.success
        assert result.error_message == NO_MAPPING_MESSAGE

    def test_malformed_configuration_rejects(self):
        result = apply_connector_mapping({"a": 1}, '{"mappings": [{"externalField": 3}]}', HR_TRANSFORMS)
        assert not result.success
        assert result.error_message.startswith("Mapping error:")

    def test_required_field_missing(self):
        raw = config({"externalField": "salary", "internalField": "pay", "required": True})
        result = apply_connector_mapping({"name": "Ada"}, raw, HR_TRANSFORMS)
        assert result.error_message == "Required field 'salary' is missing"

    def test_optional_field_missing_is_skipped(self):
        raw = config(
            {"externalField": "name", "internalField": "fullName"},
            {"externalField": "nickname", "internalField": "alias"},
        )
        result = apply_connector_mapping({"name": "Ada"}, raw, HR_TRANSFORMS)
        assert result.success
        assert result.mapped_data == {"fullName": "Ada"}

    def test_case_insensitive_field_match(self):
        raw = config({"externalField": "EmployeeName", "internalField": "fullName"})
        result = apply_connector_mapping({"employeename": "Ada"}, raw, HR_TRANSFORMS)
        assert result.mapped_data == {"fullName": "Ada"}

    def test_transformations(self):
        raw = config(
            {"externalField": "hours", "internalField": "fte", "transform": "fte",
             "transformParams": {"standardHours": "37.5"}},
            {"externalField": "bonuses", "internalField": "bonusTotal", "transform": "sum"},
            {"externalField": "grade", "internalField": "band", "transform": "lookup",
             "transformParams": {"table": {"G1": "Junior"}}},
        )
        record = {"hours": 30, "bonuses": [100, 250.5], "grade": "G1"}

        result = apply_connector_mapping(record, raw, HR_TRANSFORMS, TransformContext())

        assert result.success
        assert result.mapped_data == {"fte": 0.8, "bonusTotal": 350.5, "band": "Junior"}

    def test_fte_not_allowed_for_finance(self):
        raw = config({"externalField": "hours", "internalField": "fte", "transform": "fte"})
        result = apply_connector_mapping({"hours": 40}, raw, FINANCE_TRANSFORMS)
        assert result.error_message == "Unknown transform 'fte'"

    def test_unknown_transform(self):
        raw = config({"externalField": "name", "internalField": "n", "transform": "shout"})
        result = apply_connector_mapping({"name": "Ada"}, raw, HR_TRANSFORMS)
        assert not result.success
        assert result.error_message == "Unknown transform 'shout'"
