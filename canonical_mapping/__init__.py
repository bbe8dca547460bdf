"""
Canonical Mapping Package.

============================================================
PURPOSE
============================================================
Versioned canonical data model: schema versions, attributes,
field mappings with transformations, and mapped entities.

============================================================
MODULES
============================================================
- json_value: tagged JSON values
- transformations: closed transformation set and dispatch
- service: CanonicalMappingService

============================================================
"""

from canonical_mapping.json_value import (
    JSON_NULL,
    JsonArray,
    JsonBool,
    JsonNull,
    JsonNumber,
    JsonObject,
    JsonString,
    JsonValue,
    from_python,
    to_python,
)
from canonical_mapping.transformations import (
    TransformContext,
    TransformationKind,
    apply_transformation,
    parse_params,
)
from canonical_mapping.service import (
    CanonicalMappingService,
    resolve_entity_type,
    resolve_external_id,
)


__all__ = [
    # Values
    "JSON_NULL",
    "JsonArray",
    "JsonBool",
    "JsonNull",
    "JsonNumber",
    "JsonObject",
    "JsonString",
    "JsonValue",
    "from_python",
    "to_python",
    # Transformations
    "TransformContext",
    "TransformationKind",
    "apply_transformation",
    "parse_params",
    # Service
    "CanonicalMappingService",
    "resolve_entity_type",
    "resolve_external_id",
]
