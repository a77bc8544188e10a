"""Merging two single colloquia into one team session.

Workflow:
1. `validate_merge` checks the structural preconditions and validates the
   target slot (default: the earlier of the two sessions), offering
   alternatives when it fails.
2. `merge_exams` creates the team exam and its event, drops the two source
   events and runs `reoptimize_after_merge` on the freed slot.

Structural problems (unknown exam, different degrees, no version, no event)
yield None rather than an exception.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Collection, Dict, List, Optional, Sequence, Tuple

from .availability import is_available
from .break_rule import respects_break_rule
from .conflicts import staff_busy
from .models import (
    Exam,
    RoomMapping,
    ScheduleConfig,
    ScheduledEvent,
    ScheduleVersion,
    Slot,
    StaffMember,
    effective_duration,
)
from .rooms import search_rooms
from .scheduler import new_event_id
from .timeutils import format_hhmm, overlaps
from .versions import active_version

logger = logging.getLogger(__name__)

MAX_TEAM_EXAMINERS = 4


# ----------------------------
# Result types
# ----------------------------


@dataclass(frozen=True)
class MergeValidationResult:
    valid: bool
    conflicts: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MergeSlotOption:
    day: date
    room: str
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return format_hhmm(self.start)

    @property
    def end_time(self) -> str:
        return format_hhmm(self.end)


@dataclass(frozen=True)
class MergeProposal:
    validation: MergeValidationResult
    target_slot: Slot
    examiner_ids: Tuple[str, ...]
    protocolist_id: Optional[str]
    alternative_slots: Tuple[MergeSlotOption, ...] = ()


@dataclass(frozen=True)
class ReoptimizationResult:
    moved_events: Tuple[ScheduledEvent, ...] = ()


@dataclass(frozen=True)
class MergeOutcome:
    merged_exam: Exam
    merged_event: ScheduledEvent
    moved_events: Tuple[ScheduledEvent, ...]
    exams: Tuple[Exam, ...]
    events: Tuple[ScheduledEvent, ...]


# ----------------------------
# Slot validation
# ----------------------------


def _name(staff_by_id: Dict[str, StaffMember], staff_id: str) -> str:
    member = staff_by_id.get(staff_id)
    return member.name if member else staff_id


def validate_merge_slot(
    slot: Slot,
    examiner_ids: Sequence[str],
    protocolist_id: Optional[str],
    current_events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    config: ScheduleConfig,
    exclude_event_ids: Collection[str] = (),
) -> MergeValidationResult:
    """Check whether a session for `examiner_ids` fits into `slot`.

    Conflicts make the slot invalid; warnings (break rule) are informational.
    """

    exams_by_id = {x.exam_id: x for x in exams}
    staff_by_id = {s.staff_id: s for s in staff}
    exclude = set(exclude_event_ids)
    conflicts: List[str] = []
    warnings: List[str] = []

    if slot.end > config.day_end:
        return MergeValidationResult(
            valid=False,
            conflicts=(f"Session would end at {format_hhmm(slot.end)}, after the end of day {format_hhmm(config.day_end)}",),
        )

    for e in current_events:
        if not e.is_active or e.event_id in exclude:
            continue
        if e.day == slot.day and e.room == slot.room and overlaps(slot.start, slot.end, e.start, e.end):
            conflicts.append(f"Room {slot.room} is occupied {e.start_time}-{e.end_time}")
            break

    examiners = [sid for sid in examiner_ids if sid][:MAX_TEAM_EXAMINERS]
    for sid in examiners:
        member = staff_by_id.get(sid)
        if member is not None and not is_available(member, slot.day, slot.start, slot.end, config):
            conflicts.append(f"{_name(staff_by_id, sid)} is not available")
        busy = staff_busy(sid, slot.day, slot.start, slot.end, current_events, exams_by_id, exclude_ids=exclude)
        if busy is not None:
            conflicts.append(f"{_name(staff_by_id, sid)} is already assigned {busy.start_time}-{busy.end_time}")

    if protocolist_id:
        member = staff_by_id.get(protocolist_id)
        label = _name(staff_by_id, protocolist_id)
        if member is None:
            conflicts.append(f"Protocolist {label} is unknown")
        else:
            if not member.can_protocol:
                conflicts.append(f"{label} cannot take protocol duty")
            if protocolist_id in examiners:
                conflicts.append(f"{label} is an examiner of this session")
            if not is_available(member, slot.day, slot.start, slot.end, config):
                conflicts.append(f"Protocolist {label} is not available")
        busy = staff_busy(protocolist_id, slot.day, slot.start, slot.end, current_events, exams_by_id, exclude_ids=exclude)
        if busy is not None:
            conflicts.append(f"Protocolist {label} is already assigned {busy.start_time}-{busy.end_time}")

    remaining = [e for e in current_events if e.event_id not in exclude]
    involved = examiners + ([protocolist_id] if protocolist_id and protocolist_id not in examiners else [])
    for sid in involved:
        if not respects_break_rule(sid, remaining, slot, exams_by_id, config):
            warnings.append(f"{_name(staff_by_id, sid)} would have no {config.break_minutes} min break")

    return MergeValidationResult(valid=not conflicts, conflicts=tuple(conflicts), warnings=tuple(warnings))


def find_alternative_merge_slots(
    duration_minutes: int,
    examiner_ids: Sequence[str],
    protocolist_id: Optional[str],
    current_events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    config: ScheduleConfig,
    exclude_event_ids: Collection[str] = (),
    preferred_day: Optional[date] = None,
    limit: int = 5,
    room_mappings: Sequence[RoomMapping] = (),
) -> List[MergeSlotOption]:
    """Up to `limit` valid slots, scanning day x room x `merge_step_minutes`.

    Without configured rooms the mapped rooms (and rooms already in use) are scanned.
    """

    days = list(config.days)
    if preferred_day is not None and preferred_day in days:
        days.remove(preferred_day)
        days.insert(0, preferred_day)

    rooms = search_rooms(config.rooms, room_mappings, current_events)
    out: List[MergeSlotOption] = []
    for day in days:
        for room in rooms:
            start = config.day_start
            while start + duration_minutes <= config.day_end:
                slot = Slot(day=day, room=room, start=start, duration_minutes=duration_minutes)
                result = validate_merge_slot(
                    slot, examiner_ids, protocolist_id, current_events, exams, staff, config, exclude_event_ids
                )
                if result.valid:
                    out.append(MergeSlotOption(day=day, room=room, start=slot.start, end=slot.end))
                    if len(out) >= limit:
                        return out
                start += config.merge_step_minutes
    return out


# ----------------------------
# Re-optimization
# ----------------------------


def reoptimize_after_merge(
    freed_slot: Slot,
    current_events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    config: ScheduleConfig,
) -> ReoptimizationResult:
    """Pull the next session in the same room/day forward into the freed slot.

    Only the first later session is considered and at most one session moves.
    """

    later = sorted(
        (
            e
            for e in current_events
            if e.is_active and e.day == freed_slot.day and e.room == freed_slot.room and e.start > freed_slot.start
        ),
        key=lambda e: (e.start, e.end),
    )
    if not later:
        return ReoptimizationResult()

    candidate = later[0]
    exams_by_id = {x.exam_id: x for x in exams}
    exam = exams_by_id.get(candidate.exam_id)
    if exam is None:
        return ReoptimizationResult()

    duration = candidate.end - candidate.start
    slot = Slot(day=freed_slot.day, room=freed_slot.room, start=freed_slot.start, duration_minutes=duration)
    result = validate_merge_slot(
        slot,
        exam.all_examiner_ids,
        candidate.protocolist_id,
        current_events,
        exams,
        staff,
        config,
        exclude_event_ids=(candidate.event_id,),
    )
    if not result.valid:
        logger.debug("Cannot move %s to %s: %s", candidate.event_id, format_hhmm(slot.start), "; ".join(result.conflicts))
        return ReoptimizationResult()

    moved = replace(candidate, start=slot.start, end=slot.end)
    logger.info("Moved %s from %s to %s", candidate.event_id, candidate.start_time, moved.start_time)
    return ReoptimizationResult(moved_events=(moved,))


# ----------------------------
# Merge workflow
# ----------------------------


def _team_examiners(exam_1: Exam, exam_2: Exam) -> Tuple[str, ...]:
    out: List[str] = []
    for sid in exam_1.all_examiner_ids + exam_2.all_examiner_ids:
        if sid and sid not in out:
            out.append(sid)
    return tuple(out[:MAX_TEAM_EXAMINERS])


def _source_events(
    exam_id_1: str,
    exam_id_2: str,
    exams: Sequence[Exam],
    events: Sequence[ScheduledEvent],
    versions: Sequence[ScheduleVersion],
):
    by_id = {x.exam_id: x for x in exams}
    exam_1, exam_2 = by_id.get(exam_id_1), by_id.get(exam_id_2)
    if exam_1 is None or exam_2 is None or exam_id_1 == exam_id_2:
        return None
    if exam_1.degree is not exam_2.degree or exam_1.is_team or exam_2.is_team:
        return None

    version = active_version(versions)
    if version is None:
        return None

    def find(exam_id: str) -> Optional[ScheduledEvent]:
        for e in events:
            if e.exam_id == exam_id and e.version_id == version.version_id and e.is_active:
                return e
        return None

    event_1, event_2 = find(exam_id_1), find(exam_id_2)
    if event_1 is None or event_2 is None:
        return None

    version_events = [e for e in events if e.version_id == version.version_id]
    return exam_1, exam_2, event_1, event_2, version, version_events


def default_merge_protocolist(
    examiner_ids: Sequence[str],
    event_1: ScheduledEvent,
    event_2: ScheduledEvent,
) -> str:
    """First source protocolist who does not examine the team session."""

    for e in (event_1, event_2):
        if e.protocolist_id and e.protocolist_id not in examiner_ids:
            return e.protocolist_id
    return event_1.protocolist_id


def _ordered(event_1: ScheduledEvent, event_2: ScheduledEvent) -> Tuple[ScheduledEvent, ScheduledEvent]:
    if (event_1.day, event_1.start) <= (event_2.day, event_2.start):
        return event_1, event_2
    return event_2, event_1


def validate_merge(
    exam_id_1: str,
    exam_id_2: str,
    exams: Sequence[Exam],
    events: Sequence[ScheduledEvent],
    versions: Sequence[ScheduleVersion],
    staff: Sequence[StaffMember],
    config: ScheduleConfig,
    protocolist_id: Optional[str] = None,
    target: Optional[Slot] = None,
    room_mappings: Sequence[RoomMapping] = (),
) -> Optional[MergeProposal]:
    found = _source_events(exam_id_1, exam_id_2, exams, events, versions)
    if found is None:
        return None
    exam_1, _exam_2, event_1, event_2, _version, version_events = found

    examiners = _team_examiners(exam_1, _exam_2)
    duration = config.base_duration(exam_1.degree) * 2
    earlier, _later = _ordered(event_1, event_2)
    base = target or Slot(day=earlier.day, room=earlier.room, start=earlier.start, duration_minutes=duration)
    slot = replace(base, duration_minutes=duration)
    protocolist = protocolist_id or default_merge_protocolist(examiners, event_1, event_2)
    exclude = (event_1.event_id, event_2.event_id)

    validation = validate_merge_slot(slot, examiners, protocolist, version_events, exams, staff, config, exclude)
    alternatives: List[MergeSlotOption] = []
    if not validation.valid:
        alternatives = find_alternative_merge_slots(
            duration,
            examiners,
            protocolist,
            version_events,
            exams,
            staff,
            config,
            exclude,
            preferred_day=earlier.day,
            room_mappings=room_mappings,
        )

    return MergeProposal(
        validation=validation,
        target_slot=slot,
        examiner_ids=examiners,
        protocolist_id=protocolist,
        alternative_slots=tuple(alternatives),
    )


def merge_exams(
    exam_id_1: str,
    exam_id_2: str,
    exams: Sequence[Exam],
    events: Sequence[ScheduledEvent],
    versions: Sequence[ScheduleVersion],
    staff: Sequence[StaffMember],
    config: ScheduleConfig,
    protocolist_id: Optional[str] = None,
    target: Optional[Slot] = None,
) -> Optional[MergeOutcome]:
    """Combine two exams into one team session.

    The slot is not re-validated here; call `validate_merge` first. Returns
    the new exam/event collections alongside the created objects.
    """

    found = _source_events(exam_id_1, exam_id_2, exams, events, versions)
    if found is None:
        return None
    exam_1, exam_2, event_1, event_2, version, version_events = found

    examiners = _team_examiners(exam_1, exam_2)
    names = tuple(n for n in (exam_1.student_name, exam_2.student_name) if n)
    merged_exam = Exam(
        exam_id=f"exam-{uuid.uuid4().hex[:12]}",
        degree=exam_1.degree,
        examiner_a=examiners[0] if examiners else "",
        examiner_b=examiners[1] if len(examiners) > 1 else "",
        competence_area=exam_1.competence_area or exam_2.competence_area,
        student_name=" & ".join(names),
        topic=exam_1.topic if exam_1.topic == exam_2.topic else f"{exam_1.topic} / {exam_2.topic}",
        is_public=exam_1.is_public and exam_2.is_public,
        integrated=exam_1.integrated or exam_2.integrated,
        examiner_ids=examiners,
        student_names=names,
        source_exam_ids=(exam_1.exam_id, exam_2.exam_id),
    )
    duration = effective_duration(merged_exam, config)
    merged_exam = replace(merged_exam, duration_minutes=duration)

    earlier, later = _ordered(event_1, event_2)
    slot = target or Slot(day=earlier.day, room=earlier.room, start=earlier.start, duration_minutes=duration)
    merged_event = ScheduledEvent(
        event_id=new_event_id(),
        version_id=version.version_id,
        exam_id=merged_exam.exam_id,
        day=slot.day,
        room=slot.room,
        start=slot.start,
        end=slot.start + duration,
        protocolist_id=protocolist_id or default_merge_protocolist(examiners, event_1, event_2),
        is_team=True,
        duration_minutes=duration,
    )

    freed = Slot(day=later.day, room=later.room, start=later.start, duration_minutes=later.end - later.start)
    dropped = {event_1.event_id, event_2.event_id}
    remaining = [e for e in version_events if e.event_id not in dropped] + [merged_event]
    new_exams = tuple(exams) + (merged_exam,)

    moved = reoptimize_after_merge(freed, remaining, new_exams, staff, config).moved_events
    moved_by_id = {m.event_id: m for m in moved}

    new_events = [moved_by_id.get(e.event_id, e) for e in events if e.event_id not in dropped]
    new_events.append(merged_event)

    logger.info(
        "Merged %s and %s into %s (%d min, %d moved)",
        exam_1.exam_id,
        exam_2.exam_id,
        merged_exam.exam_id,
        duration,
        len(moved),
    )
    return MergeOutcome(
        merged_exam=merged_exam,
        merged_event=merged_event,
        moved_events=moved,
        exams=new_exams,
        events=tuple(new_events),
    )
