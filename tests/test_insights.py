"""Tests for vitality rankings and at-risk members."""

from datetime import date

import pytest

from rollcall.insights import (
    DROP_RISK,
    GROWING,
    STABLE,
    at_risk_members,
    recent_activities,
    vitality_rankings,
)
from rollcall.models import Activity, AttendanceRecord, Person

TODAY = date(2025, 6, 30)


@pytest.fixture
def activities():
    # Six past activities, one per week of June, plus one in the future
    past = [Activity(name=f"W{i}", date=f"2025-06-{i * 4 + 1:02d}") for i in range(6)]
    return past + [Activity(name="Next", date="2025-07-15")]


def attended(activities, person_ids_by_week):
    return [
        AttendanceRecord(
            activity_id=activity.id,
            person_ids=list(ids),
            count=len(ids),
        )
        for activity, ids in zip(activities, person_ids_by_week)
    ]


class TestRecentActivities:
    def test_newest_first_and_past_only(self, activities):
        recent = recent_activities(activities, TODAY, 3)
        assert [a.name for a in recent] == ["W5", "W4", "W3"]


class TestVitalityRankings:
    def test_scores_and_forecasts(self, activities):
        ann = Person(name="Ann", id="ann")
        bob = Person(name="Bob", id="bob")
        eve = Person(name="Eve", id="eve")
        # W0..W5: Ann always, Bob only early, Eve only late
        attendance = attended(
            activities,
            [
                ["ann", "bob"],
                ["ann", "bob"],
                ["ann", "bob"],
                ["ann", "eve"],
                ["ann", "eve"],
                ["ann", "eve"],
            ],
        )

        rankings = vitality_rankings([bob, eve, ann], activities, attendance, today=TODAY)

        assert [r.person.name for r in rankings] == ["Ann", "Bob", "Eve"]
        by_name = {r.person.name: r for r in rankings}
        assert by_name["Ann"].score == 1.0
        assert by_name["Ann"].forecast == STABLE
        assert by_name["Bob"].forecast == DROP_RISK
        assert by_name["Eve"].forecast == GROWING
        assert by_name["Eve"].attendance_count == 3

    def test_inactive_people_skipped(self, activities):
        people = [Person(name="Ann"), Person(name="Old", is_archived=True)]
        rankings = vitality_rankings(people, activities, [], today=TODAY)
        assert [r.person.name for r in rankings] == ["Ann"]

    def test_no_activities(self):
        rankings = vitality_rankings([Person(name="Ann")], [], [], today=TODAY)
        assert rankings[0].score == 0
        assert rankings[0].forecast == STABLE


class TestAtRiskMembers:
    def test_missed_last_three(self, activities):
        ann = Person(name="Ann", id="ann")
        bob = Person(name="Bob", id="bob")
        attendance = attended(activities, [["bob"], ["bob"], ["bob"], ["ann"], ["ann"], []])

        assert at_risk_members([ann, bob], activities, attendance, today=TODAY) == [bob]

    def test_not_enough_history(self, activities):
        ann = Person(name="Ann")
        assert at_risk_members([ann], activities[:2], [], today=TODAY) == []
