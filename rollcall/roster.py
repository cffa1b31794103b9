"""Day-to-day operations on people, activities and attendance.

This is the layer forms and lists call. It stamps ``updated_at``, attaches
audit metadata and enforces the attendance lock before anything reaches the
entity store, which itself has no notion of locks.
"""

import logging
from dataclasses import replace
from typing import Any

from .errors import AttendanceLockedError, RecordNotFoundError
from .models import Activity, AttendanceRecord, Collection, Person, Record, utcnow
from .store.entity_store import AuditMeta, EntityStore

logger = logging.getLogger(__name__)


def _find(records: list[Record], record_id: str) -> int:
    for i, record in enumerate(records):
        if record.id == record_id:
            return i
    raise RecordNotFoundError(record_id)


class Roster:
    """CRUD entry points used by the presentation layer."""

    def __init__(self, store: EntityStore):
        self._store = store

    # People

    def people(self) -> list[Person]:
        return self._store.load(Collection.PEOPLE)

    def active_people(self) -> list[Person]:
        """People shown on rosters: not archived, not deleted."""
        return [p for p in self.people() if p.is_active]

    def create_person(self, name: str, **fields: Any) -> Person:
        person = Person(name=name, updated_at=utcnow(), **fields)
        people = self.people()
        people.append(person)
        self._store.save(Collection.PEOPLE, people, AuditMeta("CREATE", person.name))
        return person

    def update_person(self, person_id: str, **changes: Any) -> Person:
        people = self.people()
        i = _find(people, person_id)
        people[i] = replace(people[i], updated_at=utcnow(), **changes)
        self._store.save(Collection.PEOPLE, people, AuditMeta("UPDATE", people[i].name))
        return people[i]

    def archive_person(self, person_id: str) -> Person:
        people = self.people()
        i = _find(people, person_id)
        people[i] = replace(people[i], is_archived=True, updated_at=utcnow())
        self._store.save(Collection.PEOPLE, people, AuditMeta("ARCHIVE", people[i].name))
        return people[i]

    def delete_person(self, person_id: str) -> Person:
        """Tombstone a person; the record stays in storage."""
        people = self.people()
        i = _find(people, person_id)
        now = utcnow()
        people[i] = replace(people[i], is_deleted=True, deleted_at=now, updated_at=now)
        self._store.save(Collection.PEOPLE, people, AuditMeta("DELETE", people[i].name))
        return people[i]

    # Activities

    def activities(self) -> list[Activity]:
        return [a for a in self._store.load(Collection.ACTIVITIES) if not a.is_deleted]

    def create_activity(self, name: str, date: str | None = None, **fields: Any) -> Activity:
        if date is not None:
            fields["date"] = date
        activity = Activity(name=name, updated_at=utcnow(), **fields)
        activities = self._store.load(Collection.ACTIVITIES)
        activities.append(activity)
        self._store.save(
            Collection.ACTIVITIES, activities, AuditMeta("CREATE", activity.name)
        )
        return activity

    def update_activity(self, activity_id: str, **changes: Any) -> Activity:
        activities = self._store.load(Collection.ACTIVITIES)
        i = _find(activities, activity_id)
        activities[i] = replace(activities[i], updated_at=utcnow(), **changes)
        self._store.save(
            Collection.ACTIVITIES, activities, AuditMeta("UPDATE", activities[i].name)
        )
        return activities[i]

    def delete_activity(self, activity_id: str) -> Activity:
        activities = self._store.load(Collection.ACTIVITIES)
        i = _find(activities, activity_id)
        now = utcnow()
        activities[i] = replace(activities[i], is_deleted=True, deleted_at=now, updated_at=now)
        self._store.save(
            Collection.ACTIVITIES, activities, AuditMeta("DELETE", activities[i].name)
        )
        return activities[i]

    # Attendance

    def attendance_for(self, activity_id: str) -> AttendanceRecord | None:
        for record in self._store.load(Collection.ATTENDANCE):
            if record.activity_id == activity_id:
                return record
        return None

    def record_attendance(
        self,
        activity_id: str,
        person_ids: list[str],
        lock: bool = False,
    ) -> AttendanceRecord:
        """Save who attended an activity, optionally finalizing the record.

        Finalizing is one way: once locked, the attendee list can no longer
        be changed and there is no unlock.

        Raises:
            RecordNotFoundError: Unknown activity.
            AttendanceLockedError: The record is locked and the ids differ.
        """
        activities = self._store.load(Collection.ACTIVITIES)
        activity = activities[_find(activities, activity_id)]

        attendance = self._store.load(Collection.ATTENDANCE)
        existing = next((a for a in attendance if a.activity_id == activity_id), None)
        ids = list(dict.fromkeys(person_ids))

        if existing is not None and existing.is_locked:
            if set(ids) != set(existing.person_ids):
                raise AttendanceLockedError(
                    f"Attendance for '{activity.name}' is finalized"
                )
            return existing

        record = AttendanceRecord(
            id=existing.id if existing is not None else activity.id,
            activity_id=activity.id,
            activity_name=activity.name,
            date=activity.date,
            person_ids=ids,
            count=len(ids),
            is_locked=lock,
            updated_at=utcnow(),
        )
        if existing is not None:
            record.extensions = dict(existing.extensions)

        others = [a for a in attendance if a.activity_id != activity_id]
        action = "LOCK" if lock else ("UPDATE" if existing is not None else "CREATE")
        self._store.save(
            Collection.ATTENDANCE, others + [record], AuditMeta(action, activity.name)
        )
        if lock:
            logger.info(f"Attendance for '{activity.name}' finalized ({record.count})")
        return record
