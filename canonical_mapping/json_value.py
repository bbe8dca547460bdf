"""
Canonical Mapping - Tagged JSON Values.

============================================================
PURPOSE
============================================================
External payloads are untyped JSON. Every value flowing through
the transformation pipeline is converted into one of six tagged
variants so transformations branch on an explicit kind instead
of inspecting arbitrary Python objects.

    JsonNull | JsonBool | JsonNumber | JsonString | JsonArray | JsonObject

============================================================
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple, Union


# ============================================================
# VARIANTS
# ============================================================

@dataclass(frozen=True)
class JsonNull:
    pass


@dataclass(frozen=True)
class JsonBool:
    value: bool


@dataclass(frozen=True)
class JsonNumber:
    value: Union[int, float, Decimal]

    def as_decimal(self) -> Decimal:
        return Decimal(str(self.value))


@dataclass(frozen=True)
class JsonString:
    value: str


@dataclass(frozen=True)
class JsonArray:
    items: Tuple["JsonValue", ...]


@dataclass(frozen=True)
class JsonObject:
    fields: Tuple[Tuple[str, "JsonValue"], ...]

    def get(self, key: str) -> Optional["JsonValue"]:
        for name, value in self.fields:
            if name == key:
                return value
        return None


JsonValue = Union[JsonNull, JsonBool, JsonNumber, JsonString, JsonArray, JsonObject]

JSON_NULL = JsonNull()


# ============================================================
# CONVERSION
# ============================================================

def from_python(obj: Any) -> JsonValue:
    """Tag a decoded-JSON Python object."""
    if obj is None:
        return JSON_NULL
    # bool before int: bool is an int subclass
    if isinstance(obj, bool):
        return JsonBool(obj)
    if isinstance(obj, (int, float, Decimal)):
        return JsonNumber(obj)
    if isinstance(obj, str):
        return JsonString(obj)
    if isinstance(obj, (list, tuple)):
        return JsonArray(tuple(from_python(item) for item in obj))
    if isinstance(obj, dict):
        return JsonObject(tuple((str(k), from_python(v)) for k, v in obj.items()))
    return JsonString(str(obj))


def to_python(value: JsonValue) -> Any:
    """Untag back into JSON-serializable Python objects."""
    if isinstance(value, JsonNull):
        return None
    if isinstance(value, JsonBool):
        return value.value
    if isinstance(value, JsonNumber):
        if isinstance(value.value, Decimal):
            return decimal_to_python(value.value)
        return value.value
    if isinstance(value, JsonString):
        return value.value
    if isinstance(value, JsonArray):
        return [to_python(item) for item in value.items]
    if isinstance(value, JsonObject):
        return {name: to_python(item) for name, item in value.fields}
    raise TypeError(f"Not a JsonValue: {value!r}")


def decimal_to_python(number: Decimal) -> Union[int, float]:
    """Integral decimals become int, everything else float."""
    if number.is_finite() and number == number.to_integral_value():
        return int(number)
    return float(number)


def string_form(value: JsonValue) -> str:
    """
    Text form used as a lookup key.

    Strings are used raw; numbers and booleans use their JSON text.
    """
    if isinstance(value, JsonString):
        return value.value
    if isinstance(value, JsonBool):
        return "true" if value.value else "false"
    if isinstance(value, JsonNumber):
        return str(value.value)
    if isinstance(value, JsonNull):
        return ""
    return str(to_python(value))


def as_number(value: JsonValue) -> Optional[Decimal]:
    """Decimal for JsonNumber, None for every other variant."""
    if isinstance(value, JsonNumber):
        try:
            return value.as_decimal()
        except InvalidOperation:
            return None
    return None
