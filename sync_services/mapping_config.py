"""
Sync Services - Connector Mapping Configuration.

============================================================
PURPOSE
============================================================
Lightweight per-connector field mapping stored as JSON on the
connector row. Distinct from the versioned canonical mappings.

    {"mappings": [
        {"externalField": "hours", "internalField": "fte",
         "transform": "fte", "required": true,
         "transformParams": {"standardHours": "37.5"}}
    ]}

============================================================
RULES
============================================================
- No configuration (or an empty list) rejects the record
- A missing required field rejects the record
- lookup reads its table from transformParams.table
- Transforms outside the service's allowed set reject the record

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.exceptions import UnknownTransformationError
from canonical_mapping.json_value import from_python, to_python
from canonical_mapping.transformations import (
    TransformContext,
    TransformationKind,
    apply_transformation,
)
from sync_services.records import get_field, has_field


logger = logging.getLogger(__name__)


NO_MAPPING_MESSAGE = "No mapping configuration defined"

HR_TRANSFORMS: FrozenSet[TransformationKind] = frozenset({
    TransformationKind.DIRECT,
    TransformationKind.SUM,
    TransformationKind.AVERAGE,
    TransformationKind.LOOKUP,
    TransformationKind.FTE,
})

FINANCE_TRANSFORMS: FrozenSet[TransformationKind] = frozenset({
    TransformationKind.DIRECT,
    TransformationKind.SUM,
    TransformationKind.AVERAGE,
    TransformationKind.LOOKUP,
})


# =============================================================
# SCHEMAS
# =============================================================

class FieldMapping(BaseModel):
    """One external -> internal field rule."""
    model_config = ConfigDict(populate_by_name=True)

    external_field: str = Field(alias="externalField")
    internal_field: str = Field(alias="internalField")
    transform: str = "direct"
    required: bool = False
    transform_params: Optional[Dict[str, Any]] = Field(default=None, alias="transformParams")

    def params_for(self, kind: TransformationKind) -> Optional[Any]:
        """Parameters in the shape the transformation expects."""
        if not self.transform_params:
            return None
        if kind == TransformationKind.LOOKUP:
            return self.transform_params.get("table")
        return self.transform_params


class MappingConfiguration(BaseModel):
    mappings: List[FieldMapping] = Field(default_factory=list)


# =============================================================
# APPLICATION
# =============================================================

@dataclass
class MappingResult:
    success: bool
    mapped_data: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


def parse_mapping_configuration(raw: Union[str, Mapping[str, Any], None]) -> MappingConfiguration:
    """
    Parse stored mapping JSON.

    Raises:
        pydantic.ValidationError: Malformed configuration
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return MappingConfiguration()
    if isinstance(raw, str):
        return MappingConfiguration.model_validate_json(raw)
    return MappingConfiguration.model_validate(raw)


def apply_connector_mapping(
    record: Mapping[str, Any],
    raw_config: Union[str, Mapping[str, Any], None],
    allowed: FrozenSet[TransformationKind],
    ctx: Optional[TransformContext] = None,
) -> MappingResult:
    """Map one record. Never raises; failures come back as a rejected result."""
    try:
        config = parse_mapping_configuration(raw_config)
    except ValidationError as e:
        return MappingResult(success=False, error_message=f"Mapping error: {e.error_count()} invalid entries")

    if not config.mappings:
        return MappingResult(success=False, error_message=NO_MAPPING_MESSAGE)

    mapped: Dict[str, Any] = {}
    for rule in config.mappings:
        if not has_field(record, rule.external_field):
            if rule.required:
                return MappingResult(
                    success=False,
                    error_message=f"Required field '{rule.external_field}' is missing",
                )
            continue

        try:
            kind = TransformationKind.parse(rule.transform)
        except UnknownTransformationError:
            kind = None
        if kind is None or kind not in allowed:
            return MappingResult(success=False, error_message=f"Unknown transform '{rule.transform}'")

        value = apply_transformation(
            kind,
            from_python(get_field(record, rule.external_field)),
            rule.params_for(kind),
            ctx,
        )
        mapped[rule.internal_field] = to_python(value)

    return MappingResult(success=True, mapped_data=mapped)
