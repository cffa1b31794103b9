"""Attendance insights: who is engaged, who is drifting away."""

from dataclasses import dataclass
from datetime import date

from .models import Activity, AttendanceRecord, Person, parse_date

RECENT_WINDOW = 10

DROP_RISK = "Drop Risk"
GROWING = "Growing"
STABLE = "Stable"


@dataclass
class VitalityRanking:
    person: Person
    attendance_count: int
    score: float
    forecast: str


def recent_activities(activities: list[Activity], today: date, limit: int) -> list[Activity]:
    """Non-deleted activities held on or before ``today``, newest first."""
    held = [
        (held_on, a)
        for a in activities
        if not a.is_deleted
        and (held_on := parse_date(a.date)) is not None
        and held_on <= today
    ]
    held.sort(key=lambda pair: pair[0], reverse=True)
    return [a for _, a in held[:limit]]


def _attended(attendance: list[AttendanceRecord], person_id: str, activity_ids: list[str]) -> int:
    wanted = set(activity_ids)
    return sum(
        1 for r in attendance if r.activity_id in wanted and person_id in r.person_ids
    )


def vitality_rankings(
    people: list[Person],
    activities: list[Activity],
    attendance: list[AttendanceRecord],
    today: date | None = None,
) -> list[VitalityRanking]:
    """Rank active people by their share of the last 10 activities attended.

    The forecast compares the latest 3 sessions with the 3 before them.
    """
    today = today or date.today()
    recent = recent_activities(activities, today, RECENT_WINDOW)
    recent_ids = [a.id for a in recent]
    latest_three, previous_three = recent_ids[:3], recent_ids[3:6]

    rankings = []
    for person in people:
        if not person.is_active:
            continue

        forecast = STABLE
        if latest_three and previous_three:
            latest = _attended(attendance, person.id, latest_three)
            previous = _attended(attendance, person.id, previous_three)
            if latest == 0 and previous > 0:
                forecast = DROP_RISK
            elif latest > previous:
                forecast = GROWING
            elif 0 < latest < previous:
                forecast = DROP_RISK

        rankings.append(
            VitalityRanking(
                person=person,
                attendance_count=sum(1 for r in attendance if person.id in r.person_ids),
                score=_attended(attendance, person.id, recent_ids) / (len(recent) or 1),
                forecast=forecast,
            )
        )

    rankings.sort(key=lambda r: r.score, reverse=True)
    return rankings


def at_risk_members(
    people: list[Person],
    activities: list[Activity],
    attendance: list[AttendanceRecord],
    consecutive_misses: int = 3,
    today: date | None = None,
) -> list[Person]:
    """Active people who missed each of the last ``consecutive_misses`` activities."""
    today = today or date.today()
    recent = recent_activities(activities, today, consecutive_misses)
    if len(recent) < consecutive_misses:
        return []

    recent_ids = [a.id for a in recent]
    return [
        p for p in people
        if p.is_active and _attended(attendance, p.id, recent_ids) == 0
    ]
