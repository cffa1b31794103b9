"""Conditions the UI should tell the user about.

The core only decides *whether* to notify and with what text; the hook
passed in by the presentation layer decides how to show it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from .models import Activity, AttendanceRecord, Collection, Person, parse_date
from .store.entity_store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    kind: str  # "birthday" or "pending_attendance"
    title: str
    body: str
    level: str = "info"
    record_ids: list[str] = field(default_factory=list)


NotificationHook = Callable[[Notification], None]


def birthdays_today(people: list[Person], today: date) -> list[Person]:
    """Active people whose date of birth falls on ``today``'s month and day."""
    matches = []
    for person in people:
        if not person.is_active:
            continue
        dob = parse_date(person.dob)
        if dob is not None and (dob.month, dob.day) == (today.month, today.day):
            matches.append(person)
    return matches


def pending_attendance(
    activities: list[Activity],
    attendance: list[AttendanceRecord],
    today: date,
) -> list[Activity]:
    """Past activities whose attendance has not been finalized."""
    locked = {a.activity_id for a in attendance if a.is_locked}
    pending = []
    for activity in activities:
        if activity.is_deleted:
            continue
        held_on = parse_date(activity.date)
        if held_on is not None and held_on < today and activity.id not in locked:
            pending.append(activity)
    return pending


def check_notifications(
    store: EntityStore,
    hook: NotificationHook,
    today: date | None = None,
) -> list[Notification]:
    """Evaluate every condition and fire ``hook`` once per non-empty one.

    Returns:
        The notifications that were fired.
    """
    today = today or date.today()
    fired: list[Notification] = []

    celebrants = birthdays_today(store.load(Collection.PEOPLE), today)
    if celebrants:
        names = ", ".join(p.name for p in celebrants)
        fired.append(
            Notification(
                kind="birthday",
                title="Birthday Celebration!",
                body=f"Today is the birthday of: {names}. Don't forget to celebrate!",
                record_ids=[p.id for p in celebrants],
            )
        )

    pending = pending_attendance(
        store.load(Collection.ACTIVITIES), store.load(Collection.ATTENDANCE), today
    )
    if pending:
        noun = "activity" if len(pending) == 1 else "activities"
        fired.append(
            Notification(
                kind="pending_attendance",
                title="Attendance Audit Required",
                body=(
                    f"There are {len(pending)} past {noun} with unlocked "
                    f"attendance. Please finalize them."
                ),
                level="warning",
                record_ids=[a.id for a in pending],
            )
        )

    for notification in fired:
        try:
            hook(notification)
        except Exception as e:
            logger.error(f"Notification hook failed for {notification.kind}: {e}")

    return fired
