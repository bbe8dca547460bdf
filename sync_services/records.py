"""
Sync Services - Response Parsing.

Domain responses are a JSON array of record objects. Well-known
properties (externalId, entityType, extractTimestamp) match
case-insensitively; the full record dict is kept as raw data.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from core.exceptions import ResponseParseError


logger = logging.getLogger(__name__)


@dataclass
class ExternalRecord:
    """One record pulled from an external HR/Finance system."""

    external_id: str
    entity_type: Optional[str]
    extract_timestamp: Optional[str]
    data: Dict[str, Any]


def get_field(record: Mapping[str, Any], name: str) -> Any:
    """Exact key first, then case-insensitive match. None if absent."""
    if name in record:
        return record[name]
    lowered = name.lower()
    for key, value in record.items():
        if key.lower() == lowered:
            return value
    return None


def has_field(record: Mapping[str, Any], name: str) -> bool:
    if name in record:
        return True
    lowered = name.lower()
    return any(key.lower() == lowered for key in record)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def decode_records(body: Optional[str]) -> List[ExternalRecord]:
    """
    Decode a response body into records.

    Non-object array items are skipped.

    Raises:
        ResponseParseError: Body is not JSON or not an array
    """
    if not body or not body.strip():
        return []

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ResponseParseError(f"Response is not valid JSON: {e}", body_preview=body[:200]) from e

    if not isinstance(payload, list):
        raise ResponseParseError(
            f"Expected a JSON array of records, got {type(payload).__name__}",
            body_preview=body[:200],
        )

    records = []
    for item in payload:
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object record: {item!r}")
            continue
        records.append(
            ExternalRecord(
                external_id=_optional_text(get_field(item, "externalId")) or "",
                entity_type=_optional_text(get_field(item, "entityType")),
                extract_timestamp=_optional_text(get_field(item, "extractTimestamp")),
                data=item,
            )
        )
    return records


def parse_records(body: Optional[str]) -> List[ExternalRecord]:
    """Lenient decode: an unparseable body is an empty batch."""
    try:
        return decode_records(body)
    except ResponseParseError as e:
        logger.warning(f"Treating unparseable response as empty batch: {e.message}")
        return []
