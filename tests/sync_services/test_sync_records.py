"""
Tests for response parsing and keyed locks.
"""

import asyncio

import pytest

from core.exceptions import ResponseParseError
from sync_services.locks import KeyedLock
from sync_services.records import decode_records, get_field, parse_records


class TestDecodeRecords:

    def test_well_known_fields_case_insensitive(self):
        body = '[{"ExternalID": "E1", "entitytype": "Employee", "extractTimestamp": "2026-03-01T00:00:00Z", "x": 1}]'

        (record,) = decode_records(body)

        assert record.external_id == "E1"
        assert record.entity_type == "Employee"
        assert record.extract_timestamp == "2026-03-01T00:00:00Z"
        assert record.data["x"] == 1

    def test_missing_external_id_is_empty(self):
        (record,) = decode_records('[{"name": "Ada"}]')
        assert record.external_id == ""
        assert record.entity_type is None

    def test_numeric_external_id_is_text(self):
        (record,) = decode_records('[{"externalId": 42}]')
        assert record.external_id == "42"

    def test_skips_non_objects(self):
        records = decode_records('[{"externalId": "A"}, 3, "text", null]')
        assert [r.external_id for r in records] == ["A"]

    def test_empty_body(self):
        assert decode_records(None) == []
        assert decode_records("") == []

    @pytest.mark.parametrize("body", ["not json", '{"externalId": "A"}'])
    def test_invalid_body_raises(self, body):
        with pytest.raises(ResponseParseError):
            decode_records(body)

    def test_lenient_parse(self):
        assert parse_records("<html>oops</html>") == []

    def test_get_field_prefers_exact(self):
        assert get_field({"id": 1, "ID": 2}, "ID") == 2
        assert get_field({"Id": 3}, "id") == 3
        assert get_field({}, "id") is None


@pytest.mark.asyncio
class TestKeyedLock:

    async def test_same_key_serializes(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold((1, "E1")):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_different_keys_interleave(self):
        locks = KeyedLock()
        order = []

        async def worker(key):
            async with locks.hold(key):
                order.append(f"{key}-in")
                await asyncio.sleep(0)
                order.append(f"{key}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order[:2] == ["a-in", "b-in"]

    async def test_locks_are_released(self):
        locks = KeyedLock()
        async with locks.hold("k"):
            assert len(locks) == 1
        assert len(locks) == 0
