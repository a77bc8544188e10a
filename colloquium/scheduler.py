"""Primary colloquium scheduling.

A greedy first-fit search: exams are ordered by priority, and each one takes
the first (day, room, start) candidate that passes every hard check. The
protocolist is chosen per candidate by `select_best_protocolist`.

Hard checks per candidate, in order:
- room free (with `room_gap_minutes` between sessions in the same room)
- every examiner available for the window
- no examiner already busy (as examiner or protocolist) in an overlapping event
- at least one eligible protocolist
- break rule for every examiner and the chosen protocolist

Exams that cannot be placed become `error` ConflictReports; the run always
attempts every exam.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import date
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .availability import has_any_availability, is_available
from .break_rule import fits_day_breaks, respects_break_rule
from .conflicts import room_conflict, staff_busy, staff_in_event
from .models import (
    ConflictKind,
    ConflictReport,
    Degree,
    Exam,
    RoomMapping,
    ScheduleConfig,
    ScheduledEvent,
    Severity,
    Slot,
    StaffMember,
    effective_duration,
)
from .protocolist import WorkloadLedger, eligible_protocolists, select_best_protocolist
from .rooms import rooms_for
from .timeutils import format_hhmm

logger = logging.getLogger(__name__)


def new_event_id() -> str:
    return f"evt-{uuid.uuid4().hex[:12]}"


# ----------------------------
# Ordering
# ----------------------------


def schedulable_exams(exams: Sequence[Exam]) -> List[Exam]:
    """Exams that need their own session (sources of a team exam are covered by it)."""

    merged_sources: Set[str] = set()
    for exam in exams:
        merged_sources.update(exam.source_exam_ids)
    return [x for x in exams if x.exam_id not in merged_sources]


def order_exams(exams: Sequence[Exam], ledger: WorkloadLedger) -> List[Exam]:
    """MA first, then heavily-booked examiners, then competence area, then input order."""

    def key(item: Tuple[int, Exam]):
        idx, exam = item
        load = ledger.supervision_count(exam.examiner_a) + ledger.supervision_count(exam.examiner_b)
        return (
            0 if exam.degree is Degree.MA else 1,
            -load,
            (exam.competence_area or "").lower(),
            idx,
        )

    return [x for _, x in sorted(enumerate(exams), key=key)]


def _candidate_days(exam: Exam, events: Sequence[ScheduledEvent], exams_by_id: Dict[str, Exam], config: ScheduleConfig) -> List[date]:
    examiners = exam.all_examiner_ids
    present = {
        e.day
        for e in events
        if e.is_active and any(staff_in_event(sid, e, exams_by_id) for sid in examiners)
    }
    indexed = list(enumerate(config.days))
    indexed.sort(key=lambda t: (0 if t[1] in present else 1, t[0]))
    return [d for _, d in indexed]


# ----------------------------
# Search
# ----------------------------


class _Blockers:
    """Counts which examiner rejected candidates most often."""

    def __init__(self) -> None:
        self.counts: Counter = Counter()

    def hit(self, staff_id: str) -> None:
        self.counts[staff_id] += 1

    def most_common(self) -> Optional[str]:
        top = self.counts.most_common(1)
        return top[0][0] if top else None


def _try_slot(
    exam: Exam,
    slot: Slot,
    examiners: Sequence[StaffMember],
    staff: Sequence[StaffMember],
    events: Sequence[ScheduledEvent],
    exams_by_id: Dict[str, Exam],
    ledger: WorkloadLedger,
    config: ScheduleConfig,
    blockers: _Blockers,
) -> Optional[StaffMember]:
    """Return the protocolist if `slot` is acceptable for `exam`, else None."""

    if room_conflict(slot.room, slot.day, slot.start, slot.end, events, gap_minutes=config.room_gap_minutes):
        return None

    for member in examiners:
        if not is_available(member, slot.day, slot.start, slot.end, config):
            blockers.hit(member.staff_id)
            return None

    for sid in exam.all_examiner_ids:
        if staff_busy(sid, slot.day, slot.start, slot.end, events, exams_by_id) is not None:
            blockers.hit(sid)
            return None

    candidates = eligible_protocolists(exam, slot, staff, events, exams_by_id, config)
    protocolist = select_best_protocolist(candidates, ledger, exam, slot.day)
    if protocolist is None:
        logger.debug("No protocolist for %s at %s %s %s", exam.exam_id, slot.day, slot.room, format_hhmm(slot.start))
        return None

    for sid in exam.all_examiner_ids + (protocolist.staff_id,):
        if not (
            respects_break_rule(sid, events, slot, exams_by_id, config)
            and fits_day_breaks(sid, events, slot, exams_by_id, config)
        ):
            if sid != protocolist.staff_id:
                blockers.hit(sid)
            return None

    return protocolist


def _place_exam(
    exam: Exam,
    staff: Sequence[StaffMember],
    staff_by_id: Dict[str, StaffMember],
    room_mappings: Sequence[RoomMapping],
    config: ScheduleConfig,
    events: Sequence[ScheduledEvent],
    exams_by_id: Dict[str, Exam],
    ledger: WorkloadLedger,
    blockers: _Blockers,
) -> Tuple[Optional[Slot], Optional[StaffMember], List[str]]:
    duration = effective_duration(exam, config)
    rooms = rooms_for(exam, room_mappings, staff_by_id)
    if config.rooms:
        rooms = [r for r in rooms if r in config.rooms]
    if not rooms:
        return None, None, rooms

    examiners = [staff_by_id[sid] for sid in exam.all_examiner_ids if sid in staff_by_id]

    for day in _candidate_days(exam, events, exams_by_id, config):
        missing = [m for m in examiners if not has_any_availability(m, day, config)]
        if missing:
            for m in missing:
                blockers.hit(m.staff_id)
            continue

        for room in rooms:
            start = config.day_start
            while start + duration <= config.day_end:
                slot = Slot(day=day, room=room, start=start, duration_minutes=duration)
                protocolist = _try_slot(exam, slot, examiners, staff, events, exams_by_id, ledger, config, blockers)
                if protocolist is not None:
                    return slot, protocolist, rooms
                start += config.scan_step_minutes

    return None, None, rooms


def generate_schedule(
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    room_mappings: Sequence[RoomMapping],
    config: ScheduleConfig,
    version_id: str,
) -> Tuple[List[ScheduledEvent], List[ConflictReport]]:
    """Compute a full plan for `version_id`.

    Returns (events, conflicts). Conflicts hold one error per unplaced exam
    plus distribution/workload warnings.
    """

    staff = list(staff)
    staff_by_id = {s.staff_id: s for s in staff}
    exams_by_id = {x.exam_id: x for x in exams}
    todo = schedulable_exams(exams)

    ledger = WorkloadLedger.from_exams(staff, todo)
    events: List[ScheduledEvent] = []
    conflicts: List[ConflictReport] = []

    for exam in order_exams(todo, ledger):
        blockers = _Blockers()
        slot, protocolist, rooms = _place_exam(
            exam, staff, staff_by_id, room_mappings, config, events, exams_by_id, ledger, blockers
        )

        if slot is None or protocolist is None:
            conflicts.append(_unplaced_report(exam, rooms, blockers, staff_by_id))
            continue

        events.append(
            ScheduledEvent(
                event_id=new_event_id(),
                version_id=version_id,
                exam_id=exam.exam_id,
                day=slot.day,
                room=slot.room,
                start=slot.start,
                end=slot.end,
                protocolist_id=protocolist.staff_id,
                is_team=exam.is_team,
                duration_minutes=slot.duration_minutes,
            )
        )
        ledger = ledger.with_protocol(protocolist.staff_id, slot.day)
        logger.debug(
            "Placed %s on %s in %s at %s (protocol: %s)",
            exam.exam_id,
            slot.day.isoformat(),
            slot.room,
            format_hhmm(slot.start),
            protocolist.staff_id,
        )

    conflicts.extend(_distribution_warnings(events, config))
    conflicts.extend(_workload_warnings(events, config))

    logger.info("Scheduled %d of %d exams (%d conflicts)", len(events), len(todo), len(conflicts))
    return events, conflicts


# ----------------------------
# Diagnostics
# ----------------------------


def _unplaced_report(
    exam: Exam,
    rooms: Sequence[str],
    blockers: _Blockers,
    staff_by_id: Dict[str, StaffMember],
) -> ConflictReport:
    if not rooms:
        logger.warning("No usable room for exam %s", exam.exam_id)
        return ConflictReport(
            kind=ConflictKind.ROOM,
            severity=Severity.ERROR,
            message=f"Could not schedule exam for {exam.label}: no room available",
            exam_id=exam.exam_id,
            suggestion="Add a room mapping for the competence area or more rooms",
        )

    blocking = blockers.most_common()
    message = f"Could not schedule exam for {exam.label}"
    if blocking:
        member = staff_by_id.get(blocking)
        message += f" (blocked by {member.name if member else blocking})"
    logger.warning("%s", message)
    return ConflictReport(
        kind=ConflictKind.CONSTRAINT,
        severity=Severity.ERROR,
        message=message,
        exam_id=exam.exam_id,
        staff_id=blocking,
        suggestion="Add more days, rooms, or check staff availability constraints",
    )


def _distribution_warnings(events: Sequence[ScheduledEvent], config: ScheduleConfig) -> List[ConflictReport]:
    per_day = {d: 0 for d in config.days}
    for e in events:
        if e.is_active:
            per_day[e.day] = per_day.get(e.day, 0) + 1

    logger.info(
        "Day distribution: %s",
        ", ".join(f"{d.isoformat()}={n}" for d, n in per_day.items()) or "-",
    )

    if not events:
        return []
    return [
        ConflictReport(
            kind=ConflictKind.DISTRIBUTION,
            severity=Severity.WARNING,
            message=f"No sessions on {d.isoformat()}",
            suggestion="Remove the day or check staff availability",
        )
        for d in config.days
        if per_day.get(d, 0) == 0
    ]


def _workload_warnings(events: Sequence[ScheduledEvent], config: ScheduleConfig) -> List[ConflictReport]:
    counts = Counter(e.protocolist_id for e in events if e.is_active and e.protocolist_id)
    if not counts:
        return []
    lo, hi = min(counts.values()), max(counts.values())
    if hi - lo <= config.imbalance_threshold:
        return []
    return [
        ConflictReport(
            kind=ConflictKind.CONSTRAINT,
            severity=Severity.WARNING,
            message=f"Protocol workload imbalance: {lo} to {hi} assignments per person",
            suggestion="Consider adjusting availability or adding more eligible protocolists",
        )
    ]


def compute_metrics(events: Sequence[ScheduledEvent], exams: Sequence[Exam], config: ScheduleConfig) -> Dict[str, float]:
    """Flat metrics dict for dashboards and the demo script."""

    active = [e for e in events if e.is_active]
    placed = {e.exam_id for e in active}
    todo = schedulable_exams(exams)

    metrics: Dict[str, float] = {
        "exams": float(len(todo)),
        "scheduled": float(len(active)),
        "cancelled": float(len(events) - len(active)),
        "unscheduled": float(sum(1 for x in todo if x.exam_id not in placed)),
        "rooms_used": float(len({e.room for e in active})),
    }

    for d in config.days:
        metrics[f"day_{d.isoformat()}"] = float(sum(1 for e in active if e.day == d))

    protocols = Counter(e.protocolist_id for e in active if e.protocolist_id)
    if protocols:
        values = list(protocols.values())
        metrics["protocol_min"] = float(min(values))
        metrics["protocol_max"] = float(max(values))
        metrics["protocol_avg"] = float(sum(values)) / len(values)
    else:
        metrics["protocol_min"] = metrics["protocol_max"] = metrics["protocol_avg"] = 0.0

    return metrics
