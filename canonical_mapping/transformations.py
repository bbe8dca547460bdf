"""
Canonical Mapping - Transformations.

============================================================
PURPOSE
============================================================
Closed set of transformation kinds and one function per kind,
selected through a dispatch table. Unknown kinds are rejected
when a mapping is created, never silently passed through.

============================================================
SEMANTICS
============================================================
direct   value unchanged
sum      sum of numeric array elements (others ignored)
average  mean of numeric array elements, 0 when there are none
lookup   JSON table keyed by the value's text form; original on
         absent key or malformed table
fte      number / standardHours (default from config)
custom   unchanged; extension point

sum and average pass non-array inputs through; fte passes
non-numeric inputs through.

============================================================
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.exceptions import UnknownTransformationError
from canonical_mapping.json_value import (
    JsonArray,
    JsonNumber,
    JsonValue,
    as_number,
    decimal_to_python,
    from_python,
    string_form,
)


logger = logging.getLogger(__name__)


class TransformationKind(str, Enum):
    """Closed set of transformation kinds."""

    DIRECT = "direct"
    SUM = "sum"
    AVERAGE = "average"
    LOOKUP = "lookup"
    FTE = "fte"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, name: Optional[str]) -> "TransformationKind":
        """
        Case-insensitive lookup.

        Raises:
            UnknownTransformationError: For names outside the set
        """
        normalized = (name or "").strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise UnknownTransformationError(name or "", [k.value for k in cls])


@dataclass(frozen=True)
class TransformContext:
    """Engine-wide values transformations may need."""

    fte_standard_hours: Decimal = Decimal("40")


TransformFunc = Callable[[JsonValue, Optional[Any], TransformContext], JsonValue]


# ============================================================
# PARAMETER PARSING
# ============================================================

def parse_params(raw: Optional[Any]) -> Optional[Any]:
    """
    Decode transformation params.

    Accepts JSON text or an already-decoded object. Malformed text
    yields None; callers fall back to their defaults.
    """
    if raw is None:
        return None
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug(f"Malformed transformation params ignored: {raw[:100]!r}")
        return None


# ============================================================
# TRANSFORMATIONS
# ============================================================

def _direct(value: JsonValue, params: Optional[Any], ctx: TransformContext) -> JsonValue:
    return value


def _numbers(value: JsonArray):
    return [n for n in (as_number(item) for item in value.items) if n is not None]


def _sum(value: JsonValue, params: Optional[Any], ctx: TransformContext) -> JsonValue:
    if not isinstance(value, JsonArray):
        return value
    return JsonNumber(decimal_to_python(sum(_numbers(value), Decimal("0"))))


def _average(value: JsonValue, params: Optional[Any], ctx: TransformContext) -> JsonValue:
    if not isinstance(value, JsonArray):
        return value
    numbers = _numbers(value)
    if not numbers:
        return JsonNumber(0)
    return JsonNumber(decimal_to_python(sum(numbers, Decimal("0")) / len(numbers)))


def _lookup(value: JsonValue, params: Optional[Any], ctx: TransformContext) -> JsonValue:
    table = parse_params(params)
    if not isinstance(table, dict):
        return value
    key = string_form(value)
    if key not in table:
        return value
    return from_python(table[key])


def _fte(value: JsonValue, params: Optional[Any], ctx: TransformContext) -> JsonValue:
    hours = as_number(value)
    if hours is None:
        return value
    standard = _standard_hours(parse_params(params), ctx.fte_standard_hours)
    return JsonNumber(decimal_to_python(hours / standard))


def _standard_hours(params: Optional[Any], default: Decimal) -> Decimal:
    if not isinstance(params, dict) or "standardHours" not in params:
        return default
    try:
        standard = Decimal(str(params["standardHours"]))
    except (InvalidOperation, ValueError):
        return default
    if not standard.is_finite() or standard <= 0:
        return default
    return standard


def _custom(value: JsonValue, params: Optional[Any], ctx: TransformContext) -> JsonValue:
    return value


TRANSFORMATIONS: Dict[TransformationKind, TransformFunc] = {
    TransformationKind.DIRECT: _direct,
    TransformationKind.SUM: _sum,
    TransformationKind.AVERAGE: _average,
    TransformationKind.LOOKUP: _lookup,
    TransformationKind.FTE: _fte,
    TransformationKind.CUSTOM: _custom,
}


def apply_transformation(
    kind: TransformationKind,
    value: JsonValue,
    params: Optional[Any] = None,
    ctx: Optional[TransformContext] = None,
) -> JsonValue:
    """Apply one transformation through the dispatch table."""
    return TRANSFORMATIONS[kind](value, params, ctx or TransformContext())
