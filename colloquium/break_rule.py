"""Break rule: after four back-to-back sessions a person needs a 45 minute break.

The rule is evaluated as a small state machine over one person's sessions on
the candidate's day, in start order, considering only sessions that begin
strictly before the candidate:

- gap since the previous session >= break_minutes  -> chain resets to 1
- gap <= gap_tolerance_minutes                       -> chain continues (+1)
- anything in between                                -> fresh chain of 1

After folding, a chain of at least `max_consecutive` sessions whose last end is
less than `break_minutes` before the candidate start violates the rule.

`fits_day_breaks` applies the same fold to the whole day with the candidate
inserted, so sessions booked after the candidate are taken into account too.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .conflicts import staff_in_event
from .models import Exam, ScheduleConfig, ScheduledEvent, Slot


@dataclass(frozen=True)
class BreakChain:
    consecutive: int = 0
    last_end: Optional[int] = None


def fold_break_chain(
    staff_id: str,
    events: Iterable[ScheduledEvent],
    slot: Slot,
    exams_by_id: Dict[str, Exam],
    config: ScheduleConfig,
) -> BreakChain:
    prior = sorted(
        (
            e
            for e in events
            if e.is_active
            and e.day == slot.day
            and e.start < slot.start
            and staff_in_event(staff_id, e, exams_by_id)
        ),
        key=lambda e: (e.start, e.end),
    )

    consecutive = 0
    last_end: Optional[int] = None
    for e in prior:
        if last_end is None:
            consecutive = 1
        else:
            gap = e.start - last_end
            if gap >= config.break_minutes:
                consecutive = 1
            elif gap <= config.gap_tolerance_minutes:
                consecutive += 1
            else:
                consecutive = 1
        last_end = e.end

    return BreakChain(consecutive=consecutive, last_end=last_end)


def respects_break_rule(
    staff_id: str,
    events: Iterable[ScheduledEvent],
    slot: Slot,
    exams: Sequence[Exam] | Dict[str, Exam],
    config: ScheduleConfig,
) -> bool:
    """False if scheduling `staff_id` into `slot` would skip a required break."""

    if not staff_id:
        return True

    exams_by_id = exams if isinstance(exams, dict) else {x.exam_id: x for x in exams}
    chain = fold_break_chain(staff_id, events, slot, exams_by_id, config)
    if chain.last_end is None:
        return True
    if chain.consecutive >= config.max_consecutive and slot.start - chain.last_end < config.break_minutes:
        return False
    return True


def _day_sessions(
    staff_id: str,
    events: Iterable[ScheduledEvent],
    day,
    exams_by_id: Dict[str, Exam],
) -> List[Tuple[int, int]]:
    return sorted(
        (e.start, e.end)
        for e in events
        if e.is_active and e.day == day and staff_in_event(staff_id, e, exams_by_id)
    )


def first_break_violation(sessions: Sequence[Tuple[int, int]], config: ScheduleConfig) -> Optional[int]:
    """Index of the first session that follows a full chain too closely, else None.

    `sessions` are (start, end) pairs of one person on one day, in start order.
    """

    consecutive = 0
    last_end: Optional[int] = None
    for i, (start, end) in enumerate(sessions):
        if last_end is None:
            consecutive = 1
        else:
            gap = start - last_end
            if consecutive >= config.max_consecutive and gap < config.break_minutes:
                return i
            if gap <= config.gap_tolerance_minutes:
                consecutive += 1
            else:
                consecutive = 1
        last_end = end
    return None


def fits_day_breaks(
    staff_id: str,
    events: Iterable[ScheduledEvent],
    slot: Slot,
    exams: Sequence[Exam] | Dict[str, Exam],
    config: ScheduleConfig,
) -> bool:
    """False if adding `slot` anywhere in the person's day leaves a chain without its break.

    Unlike `respects_break_rule` this also folds the sessions after the
    candidate, so an early placement cannot extend a chain booked later.
    """

    if not staff_id:
        return True

    exams_by_id = exams if isinstance(exams, dict) else {x.exam_id: x for x in exams}
    sessions = _day_sessions(staff_id, events, slot.day, exams_by_id)
    sessions.append((slot.start, slot.end))
    sessions.sort()
    return first_break_violation(sessions, config) is None
