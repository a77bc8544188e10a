"""Manual edits to a computed plan.

All operations take the current collections and return new ones; nothing is
mutated in place. Unknown event ids raise `UnknownEntityError`.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import List, Optional, Sequence

from .merge import MergeSlotOption, validate_merge_slot
from .models import (
    Degree,
    EventStatus,
    Exam,
    PlanningError,
    RoomMapping,
    ScheduleConfig,
    ScheduledEvent,
    Slot,
    StaffMember,
    UnknownEntityError,
)
from .rooms import search_rooms
from .versions import active_version, create_version, events_for_version, publish_version

__all__ = [
    "active_version",
    "create_version",
    "publish_version",
    "events_for_version",
    "cancel_event",
    "find_move_slots",
    "move_event",
    "change_protocolist",
]


def _get_event(events: Sequence[ScheduledEvent], event_id: str) -> ScheduledEvent:
    for e in events:
        if e.event_id == event_id:
            return e
    raise UnknownEntityError("event", event_id)


def _replace_event(events: Sequence[ScheduledEvent], updated: ScheduledEvent) -> List[ScheduledEvent]:
    return [updated if e.event_id == updated.event_id else e for e in events]


def cancel_event(
    events: Sequence[ScheduledEvent],
    event_id: str,
    reason: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> List[ScheduledEvent]:
    event = _get_event(events, event_id)
    cancelled = replace(
        event,
        status=EventStatus.CANCELLED,
        cancelled_reason=reason,
        cancelled_at=now or datetime.now(),
    )
    return _replace_event(events, cancelled)


def _preferred_move_rooms(
    exam: Exam,
    staff: Sequence[StaffMember],
    room_mappings: Sequence[RoomMapping],
    config: ScheduleConfig,
    events: Sequence[ScheduledEvent] = (),
) -> List[str]:
    def mapped(area: Optional[str]) -> List[str]:
        key = (area or "").strip().lower()
        if not key:
            return []
        for m in room_mappings:
            if m.competence_area.strip().lower() == key:
                return list(m.rooms)
        return []

    preferred = mapped(exam.competence_area)
    if exam.degree is Degree.MA:
        first = next((s for s in staff if s.staff_id == exam.examiner_a), None)
        if first is not None:
            preferred += mapped(first.primary_competence_area)

    out: List[str] = []
    for room in preferred + search_rooms(config.rooms, room_mappings, events):
        if room not in out:
            out.append(room)
    return out


def find_move_slots(
    event: ScheduledEvent,
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    room_mappings: Sequence[RoomMapping],
    config: ScheduleConfig,
) -> List[MergeSlotOption]:
    """Every valid slot for `event` with its own duration, preferred rooms first.

    Slots are checked with the merge validation for the event's examiners and
    protocolist; the event's current slot is skipped.
    """

    exam = next((x for x in exams if x.exam_id == event.exam_id), None)
    if exam is None:
        raise UnknownEntityError("exam", event.exam_id)

    duration = event.end - event.start
    version_events = events_for_version(events, event.version_id)
    rooms = _preferred_move_rooms(exam, staff, room_mappings, config, version_events)

    out: List[MergeSlotOption] = []
    for day in config.days:
        for room in rooms:
            start = config.day_start
            while start + duration <= config.day_end:
                if day == event.day and room == event.room and start == event.start:
                    start += config.move_step_minutes
                    continue
                slot = Slot(day=day, room=room, start=start, duration_minutes=duration)
                result = validate_merge_slot(
                    slot,
                    exam.all_examiner_ids,
                    event.protocolist_id,
                    version_events,
                    exams,
                    staff,
                    config,
                    exclude_event_ids=(event.event_id,),
                )
                if result.valid:
                    out.append(MergeSlotOption(day=day, room=room, start=slot.start, end=slot.end))
                start += config.move_step_minutes
    return out


def move_event(
    events: Sequence[ScheduledEvent],
    event_id: str,
    day: date,
    room: str,
    start: int,
    end: Optional[int] = None,
) -> List[ScheduledEvent]:
    """Move an event; without `end` the event keeps its duration."""

    event = _get_event(events, event_id)
    if end is None:
        end = start + (event.end - event.start)
    if end <= start:
        raise PlanningError("end must be after start")
    moved = replace(event, day=day, room=room, start=start, end=end, duration_minutes=end - start)
    return _replace_event(events, moved)


def change_protocolist(
    events: Sequence[ScheduledEvent],
    event_id: str,
    protocolist_id: Optional[str],
) -> List[ScheduledEvent]:
    event = _get_event(events, event_id)
    return _replace_event(events, replace(event, protocolist_id=protocolist_id))
