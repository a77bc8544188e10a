"""Conflict checks shared by the scheduler, the merge workflow and plan edits."""

from __future__ import annotations

from datetime import date
from typing import Collection, Dict, Iterable, List, Optional

from .models import Exam, ScheduledEvent
from .timeutils import overlaps


def staff_in_event(staff_id: str, event: ScheduledEvent, exams_by_id: Dict[str, Exam]) -> bool:
    """True if `staff_id` examines (any examiner slot) or protocols `event`."""

    if not staff_id:
        return False
    if event.protocolist_id == staff_id:
        return True
    exam = exams_by_id.get(event.exam_id)
    return exam is not None and staff_id in exam.all_examiner_ids


def events_on_day(
    events: Iterable[ScheduledEvent],
    day: date,
    *,
    exclude_ids: Collection[str] = (),
) -> List[ScheduledEvent]:
    return [e for e in events if e.is_active and e.day == day and e.event_id not in exclude_ids]


def staff_busy(
    staff_id: str,
    day: date,
    start: int,
    end: int,
    events: Iterable[ScheduledEvent],
    exams_by_id: Dict[str, Exam],
    *,
    exclude_ids: Collection[str] = (),
) -> Optional[ScheduledEvent]:
    """Return the first overlapping event on `day` that already involves `staff_id`."""

    for e in events_on_day(events, day, exclude_ids=exclude_ids):
        if overlaps(start, end, e.start, e.end) and staff_in_event(staff_id, e, exams_by_id):
            return e
    return None


def room_conflict(
    room: str,
    day: date,
    start: int,
    end: int,
    events: Iterable[ScheduledEvent],
    *,
    gap_minutes: int = 0,
    exclude_ids: Collection[str] = (),
) -> Optional[ScheduledEvent]:
    """Return an event in `room` that overlaps [start, end) widened by `gap_minutes`."""

    for e in events_on_day(events, day, exclude_ids=exclude_ids):
        if e.room != room:
            continue
        if not (end + gap_minutes <= e.start or start >= e.end + gap_minutes):
            return e
    return None
