"""Domain model for colloquium planning.

Everything here is an immutable value object. The engine never mutates an
entity in place; operations return new objects (see `dataclasses.replace`).

Representation
--------------
- Days are `datetime.date`.
- Times of day are `int` minutes since midnight (09:00 -> 540).
- Conversion from/to text happens in `colloquium.timeutils` and the loaders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Tuple, Union


# ----------------------------
# Errors
# ----------------------------


class PlanningError(ValueError):
    """Base class for invalid planning input."""


class TimeFormatError(PlanningError):
    """A time or date could not be parsed or is out of range."""


class UnknownEntityError(PlanningError, KeyError):
    """An operation referenced an exam/event/version id that does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"Unknown {kind}: {entity_id}")

    def __str__(self) -> str:
        return f"Unknown {self.kind}: {self.entity_id}"


# ----------------------------
# Enums
# ----------------------------


class Degree(str, Enum):
    BA = "BA"
    MA = "MA"

    @property
    def requires_competence_area(self) -> bool:
        return self is Degree.BA


class EmploymentType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    ADJUNCT = "adjunct"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class VersionStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ConflictKind(str, Enum):
    AVAILABILITY = "availability"
    ROOM = "room"
    BREAK = "break"
    CONSTRAINT = "constraint"
    DISTRIBUTION = "distribution"


# Day keys in availability overrides: an exact date or a 1-based index into config.days
DayKey = Union[date, int]


# ----------------------------
# Configuration
# ----------------------------


@dataclass(frozen=True)
class ScheduleConfig:
    """Planning parameters for one run.

    The rule constants (break length, gap tolerance, ...) are part of the
    config so a planning office can tune them without touching the engine.
    """

    days: Tuple[date, ...] = ()
    rooms: Tuple[str, ...] = ()
    day_start: int = 9 * 60
    day_end: int = 18 * 60
    ba_slot_minutes: int = 50
    ma_slot_minutes: int = 75

    # Break rule: after `max_consecutive` chained sessions a person needs `break_minutes`
    break_minutes: int = 45
    gap_tolerance_minutes: int = 5
    max_consecutive: int = 4

    # Search granularity
    room_gap_minutes: int = 5
    scan_step_minutes: int = 5
    merge_step_minutes: int = 30
    move_step_minutes: int = 15

    # Warn when protocol assignments differ by more than this between people
    imbalance_threshold: int = 3

    def base_duration(self, degree: Degree) -> int:
        return self.ba_slot_minutes if degree is Degree.BA else self.ma_slot_minutes

    def day_number(self, day: date) -> Optional[int]:
        """1-based position of `day` in the planning days, or None."""

        try:
            return self.days.index(day) + 1
        except ValueError:
            return None


# ----------------------------
# Staff
# ----------------------------


@dataclass(frozen=True)
class TimeWindow:
    start: int
    end: int


@dataclass(frozen=True)
class UnavailableBlock:
    day: date
    start: int
    end: int
    reason: str = ""


@dataclass(frozen=True)
class AvailabilityOverride:
    """Per-person restrictions, applied in order: days, windows, blocks.

    - available_days None => every planning day
    - no time_windows entry for a day => the full default working window
    - unavailable_blocks subtract from whatever the first two layers allow
    """

    available_days: Optional[Tuple[DayKey, ...]] = None
    time_windows: Dict[DayKey, Tuple[TimeWindow, ...]] = field(default_factory=dict)
    unavailable_blocks: Tuple[UnavailableBlock, ...] = ()
    notes: str = ""


@dataclass(frozen=True)
class StaffMember:
    staff_id: str
    name: str
    competence_areas: Tuple[str, ...] = ()
    employment: EmploymentType = EmploymentType.INTERNAL
    protocol_excluded: bool = False
    availability: Optional[AvailabilityOverride] = None

    @property
    def primary_competence_area(self) -> Optional[str]:
        return self.competence_areas[0] if self.competence_areas else None

    @property
    def can_protocol(self) -> bool:
        # External and adjunct staff never take protocol duty, whatever the toggle says.
        return self.employment is EmploymentType.INTERNAL and not self.protocol_excluded


# ----------------------------
# Exams
# ----------------------------


@dataclass(frozen=True)
class Exam:
    exam_id: str
    degree: Degree
    examiner_a: str
    examiner_b: str
    competence_area: Optional[str] = None
    student_name: str = ""
    topic: str = ""
    is_public: bool = True

    # Integrated / cross-field work follows the examiners' rooms like MA exams.
    integrated: bool = False

    # Team (merged) exams
    examiner_ids: Tuple[str, ...] = ()
    student_names: Tuple[str, ...] = ()
    duration_minutes: Optional[int] = None
    source_exam_ids: Tuple[str, ...] = ()

    @property
    def is_team(self) -> bool:
        return bool(self.source_exam_ids)

    @property
    def all_examiner_ids(self) -> Tuple[str, ...]:
        ids = self.examiner_ids or (self.examiner_a, self.examiner_b)
        out: list[str] = []
        for sid in ids:
            if sid and sid not in out:
                out.append(sid)
        return tuple(out)

    @property
    def display_names(self) -> Tuple[str, ...]:
        return self.student_names or ((self.student_name,) if self.student_name else ())

    @property
    def label(self) -> str:
        return " & ".join(self.display_names) or self.exam_id


def effective_duration(exam: Exam, config: ScheduleConfig) -> int:
    """Override if present, else base duration for the degree (doubled for team exams)."""

    if exam.duration_minutes:
        return int(exam.duration_minutes)
    factor = 2 if exam.is_team else 1
    return config.base_duration(exam.degree) * factor


@dataclass(frozen=True)
class RoomMapping:
    degree_scope: Degree
    competence_area: str
    rooms: Tuple[str, ...]
    mapping_id: str = ""


# ----------------------------
# Schedule
# ----------------------------


@dataclass(frozen=True)
class ScheduledEvent:
    event_id: str
    version_id: str
    exam_id: str
    day: date
    room: str
    start: int
    end: int
    protocolist_id: Optional[str]
    status: EventStatus = EventStatus.SCHEDULED
    cancelled_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    is_team: bool = False
    duration_minutes: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status is EventStatus.SCHEDULED

    @property
    def start_time(self) -> str:
        return f"{self.start // 60:02d}:{self.start % 60:02d}"

    @property
    def end_time(self) -> str:
        return f"{self.end // 60:02d}:{self.end % 60:02d}"


@dataclass(frozen=True)
class ScheduleVersion:
    version_id: str
    created_at: datetime
    status: VersionStatus = VersionStatus.DRAFT
    notes: str = ""


@dataclass(frozen=True)
class ConflictReport:
    kind: ConflictKind
    severity: Severity
    message: str
    exam_id: Optional[str] = None
    staff_id: Optional[str] = None
    suggestion: Optional[str] = None


@dataclass(frozen=True)
class Slot:
    """A candidate (day, room, start, duration)."""

    day: date
    room: str
    start: int
    duration_minutes: int

    @property
    def end(self) -> int:
        return self.start + self.duration_minutes
