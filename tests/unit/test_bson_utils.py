"""Unit tests for Extended JSON and result document conversion."""

from datetime import date, datetime, timezone

from bson import Decimal128, ObjectId

from askdb.utils.bson_utils import from_extended_json, looks_like_object_id, to_json_safe

OID = "64b7f0c2a1b2c3d4e5f60718"


class TestFromExtendedJson:

    def test_object_id(self):
        assert from_extended_json({"$oid": OID}) == ObjectId(OID)

    def test_invalid_object_id_left_alone(self):
        assert from_extended_json({"$oid": "nope"}) == {"$oid": "nope"}

    def test_date_iso_with_z(self):
        value = from_extended_json({"$date": "2024-03-01T12:30:00Z"})
        assert value == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_naive_date_becomes_utc(self):
        value = from_extended_json({"$date": "2024-03-01T00:00:00"})
        assert value.tzinfo is not None

    def test_date_millis(self):
        assert from_extended_json({"$date": 0}) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert from_extended_json({"$date": {"$numberLong": "1000"}}) == datetime(
            1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc
        )

    def test_malformed_date_left_as_string(self):
        assert from_extended_json({"$date": "last tuesday"}) == "last tuesday"

    def test_nested_pipeline(self):
        pipeline = [{"$match": {"$or": [{"driver_id": {"$oid": OID}}, {"city": "Pune"}]}}]

        converted = from_extended_json(pipeline)

        assert converted[0]["$match"]["$or"][0]["driver_id"] == ObjectId(OID)
        assert converted[0]["$match"]["$or"][1] == {"city": "Pune"}

    def test_operator_objects_untouched(self):
        stage = {"$group": {"_id": "$city", "n": {"$sum": 1}}}
        assert from_extended_json(stage) == stage


class TestToJsonSafe:

    def test_bson_values(self):
        document = {
            "_id": ObjectId(OID),
            "at": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            "day": date(2024, 1, 2),
            "amount": Decimal128("12.50"),
            "tags": (ObjectId(OID),),
            "nested": {"raw": b"\x01\x02"},
        }

        assert to_json_safe(document) == {
            "_id": OID,
            "at": "2024-01-02T03:04:05+00:00",
            "day": "2024-01-02",
            "amount": "12.50",
            "tags": [OID],
            "nested": {"raw": "0102"},
        }

    def test_plain_values_unchanged(self):
        assert to_json_safe({"a": 1, "b": [True, None, "x"]}) == {"a": 1, "b": [True, None, "x"]}


def test_looks_like_object_id():
    assert looks_like_object_id(OID)
    assert looks_like_object_id(OID.upper())
    assert not looks_like_object_id(OID[:-1])
    assert not looks_like_object_id(12345)
