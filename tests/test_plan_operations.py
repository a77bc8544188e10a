import sys
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path

import pytest

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium import (
    Degree,
    EventStatus,
    Exam,
    PlanningError,
    RoomMapping,
    ScheduleConfig,
    ScheduledEvent,
    StaffMember,
    UnknownEntityError,
    VersionStatus,
    active_version,
    cancel_event,
    change_protocolist,
    create_version,
    events_for_version,
    find_move_slots,
    move_event,
    publish_version,
)

D1, D2 = date(2026, 2, 9), date(2026, 2, 10)
CONFIG = ScheduleConfig(days=(D1, D2), rooms=("R1", "R2"), day_start=540, day_end=720)
STAFF = [StaffMember("S1", "Prof. A", ("X",)), StaffMember("S2", "Prof. B"), StaffMember("P1", "Dr. P")]
EXAMS = [
    Exam("E1", Degree.BA, "S1", "", competence_area="X"),
    Exam("E2", Degree.BA, "S2", "", competence_area="X"),
]
MAPPINGS = [RoomMapping(Degree.BA, "X", ("R2",))]


def _events():
    return [
        ScheduledEvent("ev1", "v1", "E1", D1, "R1", 540, 590, "P1"),
        ScheduledEvent("ev2", "v1", "E2", D1, "R2", 600, 650, "P1"),
        ScheduledEvent("old", "v0", "E1", D2, "R1", 540, 590, "P1"),
    ]


def test_versions_lifecycle():
    versions, v1 = create_version([], "first", now=datetime(2026, 1, 10, 9, 0))
    versions, v2 = create_version(versions, "second", version_id="v2", now=datetime(2026, 1, 11, 9, 0))

    assert v1.version_id.startswith("ver-")
    assert v1.status is VersionStatus.DRAFT
    assert active_version(versions) == v2

    published = publish_version(versions, v1.version_id)
    assert [v.status for v in published] == [VersionStatus.PUBLISHED, VersionStatus.DRAFT]
    assert active_version(published).version_id == v1.version_id

    republished = publish_version(published, "v2")
    assert [v.status for v in republished] == [VersionStatus.DRAFT, VersionStatus.PUBLISHED]

    assert publish_version(versions, "missing") is None
    assert active_version([]) is None


def test_events_for_version():
    assert [e.event_id for e in events_for_version(_events(), "v1")] == ["ev1", "ev2"]


def test_cancel_event_returns_new_list():
    events = _events()
    now = datetime(2026, 2, 9, 8, 0)

    updated = cancel_event(events, "ev1", "Student ill", now=now)

    assert events[0].status is EventStatus.SCHEDULED
    cancelled = updated[0]
    assert cancelled.status is EventStatus.CANCELLED
    assert cancelled.cancelled_reason == "Student ill"
    assert cancelled.cancelled_at == now
    assert not cancelled.is_active
    assert updated[1:] == events[1:]


def test_unknown_event_raises():
    with pytest.raises(UnknownEntityError) as exc:
        cancel_event(_events(), "nope")
    assert "nope" in str(exc.value)
    with pytest.raises(KeyError):
        change_protocolist(_events(), "nope", "S2")


def test_move_event_keeps_duration():
    updated = move_event(_events(), "ev1", D2, "R2", 600)
    moved = updated[0]
    assert (moved.day, moved.room, moved.start, moved.end) == (D2, "R2", 600, 650)
    assert moved.duration_minutes == 50

    with pytest.raises(PlanningError):
        move_event(_events(), "ev1", D2, "R2", 600, 600)


def test_change_protocolist():
    updated = change_protocolist(_events(), "ev2", "S1")
    assert updated[1].protocolist_id == "S1"
    assert updated[0] == _events()[0]


def test_find_move_slots_skips_busy_and_current_slots():
    events = _events()
    slots = find_move_slots(events[0], events, EXAMS, STAFF, MAPPINGS, CONFIG)

    keys = [(s.day, s.room, s.start) for s in slots]
    assert (D1, "R1", 540) not in keys
    # Preferred room of the competence area comes first
    assert keys[0] == (D1, "R2", 540)
    # P1 protocols ev2 at 10:00-10:50 in R2
    assert all(not (s.day == D1 and s.start < 650 and s.end > 600) for s in slots)
    # Events of other versions do not block
    assert (D2, "R1", 540) in keys
    assert all(s.end - s.start == 50 for s in slots)


def test_find_move_slots_needs_a_known_exam():
    orphan = ScheduledEvent("x", "v1", "E9", D1, "R1", 540, 590, "P1")
    with pytest.raises(UnknownEntityError):
        find_move_slots(orphan, [orphan], EXAMS, STAFF, MAPPINGS, CONFIG)


def test_find_move_slots_without_configured_rooms():
    events = _events()
    slots = find_move_slots(events[0], events, EXAMS, STAFF, MAPPINGS, replace(CONFIG, rooms=()))

    # Mapped rooms first, then rooms the version already uses
    assert slots[0].room == "R2"
    assert {s.room for s in slots} == {"R1", "R2"}
