"""
Tests for tagged JSON values and the transformation table.
"""

from decimal import Decimal

import pytest

from core.exceptions import UnknownTransformationError
from canonical_mapping.json_value import (
    JSON_NULL,
    JsonArray,
    JsonBool,
    JsonNumber,
    JsonObject,
    JsonString,
    from_python,
    string_form,
    to_python,
)
from canonical_mapping.transformations import (
    TransformContext,
    TransformationKind,
    apply_transformation,
    parse_params,
)


def run(kind, value, params=None, ctx=None):
    return to_python(apply_transformation(kind, from_python(value), params, ctx))


class TestJsonValue:

    def test_bool_is_not_a_number(self):
        assert from_python(True) == JsonBool(True)
        assert from_python(1) == JsonNumber(1)

    def test_nested_conversion(self):
        value = from_python({"a": [1, "x", None]})
        assert isinstance(value, JsonObject)
        assert value.get("a") == JsonArray((JsonNumber(1), JsonString("x"), JSON_NULL))
        assert to_python(value) == {"a": [1, "x", None]}

    def test_string_form(self):
        assert string_form(JsonString("FT")) == "FT"
        assert string_form(JsonBool(False)) == "false"
        assert string_form(JsonNumber(3)) == "3"


class TestTransformationKind:

    def test_parse_is_case_insensitive(self):
        assert TransformationKind.parse("FTE") == TransformationKind.FTE
        assert TransformationKind.parse(" Lookup ") == TransformationKind.LOOKUP

    def test_unknown_rejected(self):
        with pytest.raises(UnknownTransformationError):
            TransformationKind.parse("uppercase")


class TestTransformations:

    def test_direct(self):
        assert run(TransformationKind.DIRECT, {"k": 1}) == {"k": 1}

    def test_sum_ignores_non_numbers(self):
        assert run(TransformationKind.SUM, [100, "n/a", 250.5, None, True]) == 350.5

    def test_sum_integral_stays_int(self):
        assert run(TransformationKind.SUM, [1, 2, 3]) == 6

    def test_sum_passes_scalars_through(self):
        assert run(TransformationKind.SUM, 42) == 42

    def test_average(self):
        assert run(TransformationKind.AVERAGE, [10, 20, "x"]) == 15

    def test_average_of_no_numbers_is_zero(self):
        assert run(TransformationKind.AVERAGE, ["a", "b"]) == 0
        assert run(TransformationKind.AVERAGE, []) == 0

    def test_lookup(self):
        table = '{"FT": "Full-Time", "PT": "Part-Time", "1": true}'
        assert run(TransformationKind.LOOKUP, "FT", table) == "Full-Time"
        assert run(TransformationKind.LOOKUP, 1, table) is True

    def test_lookup_falls_back_to_original(self):
        assert run(TransformationKind.LOOKUP, "CT", '{"FT": "Full-Time"}') == "CT"
        assert run(TransformationKind.LOOKUP, "FT", "{not json") == "FT"
        assert run(TransformationKind.LOOKUP, "FT", None) == "FT"

    def test_fte_default_hours(self):
        assert run(TransformationKind.FTE, 20) == 0.5
        assert run(TransformationKind.FTE, 40) == 1

    def test_fte_params_override(self):
        assert run(TransformationKind.FTE, 30, '{"standardHours": "37.5"}') == 0.8
        assert run(TransformationKind.FTE, 30, {"standardHours": 30}) == 1

    def test_fte_malformed_params_use_default(self):
        assert run(TransformationKind.FTE, 20, '{"standardHours": "abc"}') == 0.5
        assert run(TransformationKind.FTE, 20, '{"standardHours": 0}') == 0.5
        assert run(TransformationKind.FTE, 20, "garbage") == 0.5

    def test_fte_context_default(self):
        ctx = TransformContext(fte_standard_hours=Decimal("35"))
        assert run(TransformationKind.FTE, 35, None, ctx) == 1

    def test_fte_non_numeric_passes_through(self):
        assert run(TransformationKind.FTE, "forty") == "forty"

    def test_custom_passes_through(self):
        assert run(TransformationKind.CUSTOM, [1, 2]) == [1, 2]

    def test_parse_params(self):
        assert parse_params('{"a": 1}') == {"a": 1}
        assert parse_params("  ") is None
        assert parse_params("{bad") is None
