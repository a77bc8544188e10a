"""Staff availability evaluation.

Default-open model: a person without an override is available on every
planning day for the whole working window. An override narrows that in three
layers which are evaluated in order (day whitelist, per-day windows,
unavailable blocks); a slot must pass all of them.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Tuple

from .models import AvailabilityOverride, DayKey, ScheduleConfig, StaffMember, TimeWindow
from .timeutils import overlaps, within


def _day_matches(key: DayKey, day: date, day_number: Optional[int]) -> bool:
    # bool is an int subclass; never treat it as a day index
    if isinstance(key, bool):
        return False
    if isinstance(key, date):
        return key == day
    return day_number is not None and int(key) == day_number


def _windows_for(override: AvailabilityOverride, day: date, day_number: Optional[int]) -> Optional[Tuple[TimeWindow, ...]]:
    for key, windows in override.time_windows.items():
        if _day_matches(key, day, day_number):
            return tuple(windows)
    return None


def _is_day_allowed(override: AvailabilityOverride, day: date, day_number: Optional[int]) -> bool:
    if override.available_days is None:
        return True
    return any(_day_matches(k, day, day_number) for k in override.available_days)


def is_available(staff: StaffMember, day: date, start: int, end: int, config: ScheduleConfig) -> bool:
    """True if `staff` can be scheduled for [start, end) on `day`."""

    override = staff.availability
    if override is None:
        return True

    day_number = config.day_number(day)

    if not _is_day_allowed(override, day, day_number):
        return False

    windows = _windows_for(override, day, day_number)
    if windows is not None:
        if not any(within(start, end, w.start, w.end) for w in windows):
            return False

    for block in override.unavailable_blocks:
        if block.day == day and overlaps(start, end, block.start, block.end):
            return False

    return True


def is_staff_available_for_slot(
    staff: StaffMember,
    day: date,
    start: int,
    duration_minutes: int,
    config: ScheduleConfig,
) -> bool:
    """What-if check used by the UI (start + duration instead of an end time)."""

    return is_available(staff, day, start, start + int(duration_minutes), config)


def available_intervals(staff: StaffMember, day: date, config: ScheduleConfig) -> List[Tuple[int, int]]:
    """Free intervals of the working window on `day` after all override layers."""

    override = staff.availability
    if override is None:
        return [(config.day_start, config.day_end)]

    day_number = config.day_number(day)
    if not _is_day_allowed(override, day, day_number):
        return []

    windows = _windows_for(override, day, day_number)
    if windows is None:
        base = [(config.day_start, config.day_end)]
    else:
        base = []
        for w in sorted(windows, key=lambda w: (w.start, w.end)):
            s, e = max(w.start, config.day_start), min(w.end, config.day_end)
            if s < e:
                base.append((s, e))

    blocks = sorted(
        ((b.start, b.end) for b in override.unavailable_blocks if b.day == day),
    )

    out: List[Tuple[int, int]] = []
    for s, e in base:
        pieces = [(s, e)]
        for bs, be in blocks:
            next_pieces = []
            for ps, pe in pieces:
                if not overlaps(ps, pe, bs, be):
                    next_pieces.append((ps, pe))
                    continue
                if ps < bs:
                    next_pieces.append((ps, bs))
                if be < pe:
                    next_pieces.append((be, pe))
            pieces = next_pieces
        out.extend(pieces)
    return out


def has_any_availability(staff: Optional[StaffMember], day: date, config: ScheduleConfig) -> bool:
    """False when `staff` cannot work at all during the working window of `day`.

    Unknown staff (None) are treated as available, matching how examiners that
    are missing from the staff list are handled elsewhere.
    """

    if staff is None:
        return True
    return bool(available_intervals(staff, day, config))
