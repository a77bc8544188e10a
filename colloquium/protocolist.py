"""Protocolist selection and workload scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .availability import is_available
from .break_rule import respects_break_rule
from .conflicts import staff_busy
from .models import Exam, ScheduleConfig, ScheduledEvent, Slot, StaffMember


# ----------------------------
# Workload ledger
# ----------------------------


@dataclass(frozen=True)
class WorkloadLedger:
    """Per-person counters used for scoring.

    - supervisions: exams a person examines (fixed for a run)
    - protocols: protocol assignments committed so far
    - protocol_days: days on which a person already protocols

    The ledger is never updated in place; `with_protocol` returns a copy.
    """

    staff_ids: Tuple[str, ...] = ()
    supervisions: Mapping[str, int] = field(default_factory=dict)
    protocols: Mapping[str, int] = field(default_factory=dict)
    protocol_days: Mapping[str, FrozenSet[date]] = field(default_factory=dict)

    @classmethod
    def from_exams(cls, staff: Sequence[StaffMember], exams: Iterable[Exam]) -> "WorkloadLedger":
        known = {s.staff_id for s in staff}
        supervisions: Dict[str, int] = {s.staff_id: 0 for s in staff}
        for exam in exams:
            for sid in exam.all_examiner_ids:
                if sid in known:
                    supervisions[sid] += 1
        return cls(staff_ids=tuple(s.staff_id for s in staff), supervisions=supervisions)

    def supervision_count(self, staff_id: str) -> int:
        return int(self.supervisions.get(staff_id, 0))

    def protocol_count(self, staff_id: str) -> int:
        return int(self.protocols.get(staff_id, 0))

    def days_assigned(self, staff_id: str) -> FrozenSet[date]:
        return self.protocol_days.get(staff_id, frozenset())

    def total_load(self, staff_id: str) -> int:
        return self.supervision_count(staff_id) + self.protocol_count(staff_id)

    def average_load(self) -> float:
        if not self.staff_ids:
            return 0.0
        return sum(self.total_load(sid) for sid in self.staff_ids) / len(self.staff_ids)

    def with_protocol(self, staff_id: str, day: date) -> "WorkloadLedger":
        protocols = dict(self.protocols)
        protocols[staff_id] = protocols.get(staff_id, 0) + 1
        days = dict(self.protocol_days)
        days[staff_id] = frozenset(days.get(staff_id, frozenset()) | {day})
        staff_ids = self.staff_ids if staff_id in self.staff_ids else self.staff_ids + (staff_id,)
        return WorkloadLedger(
            staff_ids=staff_ids,
            supervisions=self.supervisions,
            protocols=protocols,
            protocol_days=days,
        )


# ----------------------------
# Scoring
# ----------------------------


def _shares_competence_area(staff: StaffMember, exam: Exam) -> bool:
    area = (exam.competence_area or "").strip().lower()
    if not area:
        return False
    return any(a.strip().lower() == area for a in staff.competence_areas)


def protocolist_score(staff: StaffMember, ledger: WorkloadLedger, exam: Exam, day: date) -> float:
    """Lower is better."""

    sid = staff.staff_id
    supervisions = ledger.supervision_count(sid)
    protocols = ledger.protocol_count(sid)
    total = supervisions + protocols
    days = ledger.days_assigned(sid)

    score = 3.0 * (total - ledger.average_load())
    score += 1.5 * protocols
    if supervisions < 3:
        score -= 2.0
    if day not in days and total > 2:
        score += 2.0
    score += 0.3 * len(days)
    if _shares_competence_area(staff, exam):
        score -= 1.0
    return score


def select_best_protocolist(
    eligible: Sequence[StaffMember],
    ledger: WorkloadLedger,
    exam: Exam,
    day: date,
) -> Optional[StaffMember]:
    if not eligible:
        return None
    # sorted() is stable: equal scores keep the caller's order
    ranked = sorted(eligible, key=lambda s: protocolist_score(s, ledger, exam, day))
    return ranked[0]


def eligible_protocolists(
    exam: Exam,
    slot: Slot,
    staff: Sequence[StaffMember],
    events: Sequence[ScheduledEvent],
    exams_by_id: Dict[str, Exam],
    config: ScheduleConfig,
) -> List[StaffMember]:
    """Internal, not excluded, not examining this exam, available and not busy."""

    examiners = set(exam.all_examiner_ids)
    out: List[StaffMember] = []
    for s in staff:
        if not s.can_protocol or s.staff_id in examiners:
            continue
        if not is_available(s, slot.day, slot.start, slot.end, config):
            continue
        if staff_busy(s.staff_id, slot.day, slot.start, slot.end, events, exams_by_id) is not None:
            continue
        out.append(s)
    return out


# ----------------------------
# Manual protocolist change
# ----------------------------


@dataclass(frozen=True)
class ProtocolistCandidate:
    staff: StaffMember
    available: bool
    not_double_booked: bool
    break_rule_ok: bool
    supervision_count: int
    protocol_count: int
    score: float
    reasons: Tuple[str, ...] = ()

    @property
    def eligible(self) -> bool:
        return self.available and self.not_double_booked


def rank_protocolist_candidates(
    event: ScheduledEvent,
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    config: ScheduleConfig,
) -> List[ProtocolistCandidate]:
    """All protocol-eligible non-examiners for `event`, best first.

    Counts are taken over the active events of the event's version. Hard
    problems (unavailable, double-booked) add 1000 each, a break-rule problem
    adds 100, so usable candidates always sort ahead.
    """

    exams_by_id = {x.exam_id: x for x in exams}
    exam = exams_by_id.get(event.exam_id)
    if exam is None:
        return []

    version_events = [e for e in events if e.version_id == event.version_id and e.is_active]
    others = [e for e in version_events if e.event_id != event.event_id]

    supervisions: Dict[str, int] = {}
    protocols: Dict[str, int] = {}
    for e in version_events:
        ex = exams_by_id.get(e.exam_id)
        if ex is not None:
            for sid in ex.all_examiner_ids:
                supervisions[sid] = supervisions.get(sid, 0) + 1
        if e.protocolist_id:
            protocols[e.protocolist_id] = protocols.get(e.protocolist_id, 0) + 1

    slot = Slot(day=event.day, room=event.room, start=event.start, duration_minutes=event.end - event.start)
    examiners = set(exam.all_examiner_ids)

    candidates: List[ProtocolistCandidate] = []
    for s in staff:
        if not s.can_protocol or s.staff_id in examiners:
            continue

        reasons: List[str] = []
        available = is_available(s, slot.day, slot.start, slot.end, config)
        if not available:
            reasons.append("Not available (time restriction)")

        busy = staff_busy(s.staff_id, slot.day, slot.start, slot.end, others, exams_by_id)
        not_double_booked = busy is None
        if not not_double_booked:
            reasons.append("Already assigned at the same time")

        break_ok = respects_break_rule(s.staff_id, others, slot, exams_by_id, config)
        if not break_ok:
            reasons.append(
                f"Would break the break rule (>{config.max_consecutive} sessions without a {config.break_minutes} min break)"
            )

        sup = supervisions.get(s.staff_id, 0)
        prot = protocols.get(s.staff_id, 0)
        score = 2.0 * prot + 0.5 * sup
        if not available:
            score += 1000
        if not not_double_booked:
            score += 1000
        if not break_ok:
            score += 100

        candidates.append(
            ProtocolistCandidate(
                staff=s,
                available=available,
                not_double_booked=not_double_booked,
                break_rule_ok=break_ok,
                supervision_count=sup,
                protocol_count=prot,
                score=score,
                reasons=tuple(reasons),
            )
        )

    candidates.sort(key=lambda c: c.score)
    return candidates
