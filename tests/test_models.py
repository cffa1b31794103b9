"""Tests for record types and the lifecycle envelope."""

from datetime import datetime, timedelta, timezone

import pytest

from rollcall.models import (
    EPOCH,
    Activity,
    AttendanceRecord,
    AuditLogEntry,
    Person,
    PersonStatus,
    format_timestamp,
    parse_date,
    parse_timestamp,
)

T1 = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)


class TestDirtyDetection:
    """Tests for the dirty rule: never synced or changed since."""

    def test_never_synced_is_dirty(self):
        assert Person(name="Ann", updated_at=T1).is_dirty

    def test_synced_at_same_version_is_clean(self):
        assert not Person(name="Ann", updated_at=T1, synced_at=T1).is_dirty

    def test_synced_before_update_is_dirty(self):
        person = Person(name="Ann", updated_at=T1, synced_at=T1 - timedelta(seconds=1))
        assert person.is_dirty

    @pytest.mark.parametrize("minutes", [0, 1, 60 * 24 * 365])
    def test_rule_holds_for_any_timestamp(self, minutes):
        t = T1 + timedelta(minutes=minutes)
        assert not Activity(name="x", updated_at=t, synced_at=t).is_dirty
        assert Activity(name="x", updated_at=t).is_dirty


class TestTimestamps:
    def test_parse_js_iso_string(self):
        parsed = parse_timestamp("2025-01-10T10:00:00.000Z")
        assert parsed == T1

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2025-01-10T10:00:00") == T1

    def test_format_uses_z_suffix(self):
        assert format_timestamp(T1) == "2025-01-10T10:00:00Z"

    def test_parse_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_parse_date(self):
        assert parse_date("1990-05-17").month == 5
        assert parse_date("") is None
        assert parse_date("not a date") is None


class TestSerialization:
    """Tests for the camelCase dicts stored locally."""

    def test_person_to_dict_uses_camel_case(self):
        person = Person(name="Ann", is_jrs=True, updated_at=T1)
        data = person.to_dict()

        assert data["name"] == "Ann"
        assert data["isJRs"] is True
        assert data["updatedAt"] == "2025-01-10T10:00:00Z"
        assert data["status"] == PersonStatus.MEMBER.value
        assert "syncedAt" not in data

    def test_person_roundtrip(self):
        original = Person(
            name="Ann",
            phone="111",
            dob="1990-05-17",
            updated_at=T1,
            synced_at=T1,
        )
        assert Person.from_dict(original.to_dict()) == original

    def test_unknown_fields_kept_as_extensions(self):
        data = Activity(name="Meeting", date="2025-01-10", updated_at=T1).to_dict()
        data["location"] = "Hall B"

        activity = Activity.from_dict(data)

        assert activity.extensions == {"location": "Hall B"}
        assert activity.to_dict()["location"] == "Hall B"

    def test_attendance_roundtrip(self):
        record = AttendanceRecord(
            activity_id="a1",
            person_ids=["p1", "p2"],
            count=2,
            is_locked=True,
            updated_at=T1,
        )
        restored = AttendanceRecord.from_dict(record.to_dict())
        assert restored == record
        assert restored.person_ids == ["p1", "p2"]

    def test_audit_entry_updated_at_defaults_to_timestamp(self):
        entry = AuditLogEntry.from_dict(
            {
                "id": "e1",
                "action": "CREATE",
                "entityType": "PERSON",
                "entityName": "Ann",
                "timestamp": "2025-01-10T10:00:00.000Z",
                "userName": "Unknown",
                "userEmail": "Unknown",
                "deviceId": "MOB-ABC123",
            }
        )
        assert entry.updated_at == T1
        assert entry.is_dirty

    def test_null_or_missing_updated_at_reads_as_epoch(self):
        null = Person.from_dict({"id": "p1", "name": "Ann", "updatedAt": None})
        missing = Person.from_dict({"id": "p1", "name": "Ann"})

        assert null.updated_at == EPOCH
        assert missing == null
        assert Person.from_dict(null.to_dict()) == null

    def test_audit_entry_without_timestamp_is_deterministic(self):
        data = {"id": "e1", "action": "CREATE"}

        entry = AuditLogEntry.from_dict(data)

        assert entry.timestamp == EPOCH
        assert entry.updated_at == EPOCH
        assert AuditLogEntry.from_dict(data) == entry

    def test_row_without_id_rejected(self):
        with pytest.raises(ValueError):
            Person.from_dict({"name": "Ann"})

    def test_person_ids_must_be_a_list(self):
        with pytest.raises(TypeError):
            AttendanceRecord.from_dict({"id": "r1", "activityId": "a1", "personIds": None})
