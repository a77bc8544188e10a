"""Room eligibility.

Ordinary BA exams are bound to the rooms of their competence area so that an
area's colloquia stay physically together. MA exams (no competence area of
their own) and integrated/cross-field BA work follow the rooms of their
examiners' primary areas and may fall back to any mapped room.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .models import Degree, Exam, RoomMapping, ScheduledEvent, StaffMember


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _mapping_for(area: Optional[str], mappings: Sequence[RoomMapping], degree: Degree) -> Optional[RoomMapping]:
    """Case-insensitive lookup; a mapping scoped to `degree` wins over other scopes."""

    key = _norm(area)
    if not key:
        return None
    candidates = [m for m in mappings if _norm(m.competence_area) == key]
    if not candidates:
        return None
    for m in candidates:
        if m.degree_scope is degree:
            return m
    return candidates[0]


def _dedupe(rooms: Iterable[str]) -> List[str]:
    out: List[str] = []
    for r in rooms:
        if r and r not in out:
            out.append(r)
    return out


def all_mapped_rooms(mappings: Sequence[RoomMapping]) -> List[str]:
    return _dedupe(r for m in mappings for r in m.rooms)


def follows_examiner_rooms(exam: Exam) -> bool:
    return exam.degree is Degree.MA or exam.integrated


def rooms_for(exam: Exam, mappings: Sequence[RoomMapping], staff_by_id: Dict[str, StaffMember]) -> List[str]:
    """Ordered room names allowed for `exam` (highest priority first)."""

    if follows_examiner_rooms(exam):
        preferred: List[str] = []
        for examiner_id in (exam.examiner_a, exam.examiner_b):
            member = staff_by_id.get(examiner_id)
            if member is None:
                continue
            mapping = _mapping_for(member.primary_competence_area, mappings, exam.degree)
            if mapping is not None:
                preferred.extend(mapping.rooms)
        return _dedupe(list(preferred) + all_mapped_rooms(mappings))

    mapping = _mapping_for(exam.competence_area, mappings, exam.degree)
    if mapping is not None:
        return _dedupe(mapping.rooms)
    return all_mapped_rooms(mappings)


def search_rooms(
    configured: Sequence[str],
    mappings: Sequence[RoomMapping] = (),
    events: Iterable[ScheduledEvent] = (),
) -> List[str]:
    """Rooms to scan when searching free slots.

    The configured rooms when set; otherwise every mapped room, then any room
    already used by an event.
    """

    if configured:
        return _dedupe(configured)
    return _dedupe(all_mapped_rooms(mappings) + [e.room for e in events])
