"""JSON / dict conversion for engine entities.

Used by the demo script (JSON files) and the SQLite layer (JSON columns).
Times are stored as "HH:MM" and days as ISO dates.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    AvailabilityOverride,
    DayKey,
    Degree,
    EmploymentType,
    EventStatus,
    Exam,
    PlanningError,
    RoomMapping,
    ScheduleConfig,
    ScheduledEvent,
    ScheduleVersion,
    StaffMember,
    TimeWindow,
    UnavailableBlock,
    VersionStatus,
)
from .timeutils import format_hhmm, parse_day, parse_hhmm


@dataclass(frozen=True)
class PlanningInput:
    """Everything `generate_schedule` needs, as loaded from one document."""

    config: ScheduleConfig
    staff: Tuple[StaffMember, ...]
    exams: Tuple[Exam, ...]
    room_mappings: Tuple[RoomMapping, ...]


# ----------------------------
# Enums
# ----------------------------


def parse_degree(value: Any) -> Degree:
    try:
        return Degree(str(value).strip().upper())
    except ValueError as exc:
        raise PlanningError(f"Invalid degree: {value!r}") from exc


def parse_employment(value: Any) -> EmploymentType:
    try:
        return EmploymentType(str(value or "internal").strip().lower())
    except ValueError as exc:
        raise PlanningError(f"Invalid employment type: {value!r}") from exc


# ----------------------------
# Availability
# ----------------------------


def _parse_day_key(value: Any) -> DayKey:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    return parse_day(text)


def _day_key_to_json(key: DayKey) -> Any:
    return key if isinstance(key, int) else key.isoformat()


def _window_from_dict(raw: Dict[str, Any]) -> TimeWindow:
    return TimeWindow(start=parse_hhmm(raw["start"]), end=parse_hhmm(raw["end"]))


def availability_from_dict(raw: Optional[Dict[str, Any]]) -> Optional[AvailabilityOverride]:
    if not raw:
        return None

    days = raw.get("available_days")
    windows = {
        _parse_day_key(k): tuple(_window_from_dict(w) for w in v)
        for k, v in (raw.get("time_windows") or {}).items()
    }
    blocks = tuple(
        UnavailableBlock(
            day=parse_day(b["day"]),
            start=parse_hhmm(b["start"]),
            end=parse_hhmm(b["end"]),
            reason=b.get("reason", ""),
        )
        for b in raw.get("unavailable_blocks") or []
    )
    return AvailabilityOverride(
        available_days=None if days is None else tuple(_parse_day_key(d) for d in days),
        time_windows=windows,
        unavailable_blocks=blocks,
        notes=raw.get("notes", ""),
    )


def availability_to_dict(override: Optional[AvailabilityOverride]) -> Optional[Dict[str, Any]]:
    if override is None:
        return None
    return {
        "available_days": None
        if override.available_days is None
        else [_day_key_to_json(d) for d in override.available_days],
        "time_windows": {
            str(_day_key_to_json(k)): [{"start": format_hhmm(w.start), "end": format_hhmm(w.end)} for w in ws]
            for k, ws in override.time_windows.items()
        },
        "unavailable_blocks": [
            {
                "day": b.day.isoformat(),
                "start": format_hhmm(b.start),
                "end": format_hhmm(b.end),
                "reason": b.reason,
            }
            for b in override.unavailable_blocks
        ],
        "notes": override.notes,
    }


# ----------------------------
# Entities
# ----------------------------


def staff_from_dict(raw: Dict[str, Any]) -> StaffMember:
    return StaffMember(
        staff_id=str(raw["staff_id"]),
        name=raw.get("name", raw["staff_id"]),
        competence_areas=tuple(raw.get("competence_areas", [])),
        employment=parse_employment(raw.get("employment")),
        protocol_excluded=bool(raw.get("protocol_excluded", False)),
        availability=availability_from_dict(raw.get("availability")),
    )


def staff_to_dict(s: StaffMember) -> Dict[str, Any]:
    return {
        "staff_id": s.staff_id,
        "name": s.name,
        "competence_areas": list(s.competence_areas),
        "employment": s.employment.value,
        "protocol_excluded": s.protocol_excluded,
        "availability": availability_to_dict(s.availability),
    }


def exam_from_dict(raw: Dict[str, Any]) -> Exam:
    degree = parse_degree(raw["degree"])
    area = raw.get("competence_area") or None
    if degree.requires_competence_area and not area:
        raise PlanningError(f"Exam {raw['exam_id']}: BA exams need a competence area")

    duration = raw.get("duration_minutes")
    return Exam(
        exam_id=str(raw["exam_id"]),
        degree=degree,
        examiner_a=str(raw.get("examiner_a") or ""),
        examiner_b=str(raw.get("examiner_b") or ""),
        competence_area=area,
        student_name=raw.get("student_name", ""),
        topic=raw.get("topic", ""),
        is_public=bool(raw.get("is_public", True)),
        integrated=bool(raw.get("integrated", False)),
        examiner_ids=tuple(raw.get("examiner_ids", [])),
        student_names=tuple(raw.get("student_names", [])),
        duration_minutes=int(duration) if duration else None,
        source_exam_ids=tuple(raw.get("source_exam_ids", [])),
    )


def exam_to_dict(x: Exam) -> Dict[str, Any]:
    return {
        "exam_id": x.exam_id,
        "degree": x.degree.value,
        "examiner_a": x.examiner_a,
        "examiner_b": x.examiner_b,
        "competence_area": x.competence_area,
        "student_name": x.student_name,
        "topic": x.topic,
        "is_public": x.is_public,
        "integrated": x.integrated,
        "examiner_ids": list(x.examiner_ids),
        "student_names": list(x.student_names),
        "duration_minutes": x.duration_minutes,
        "source_exam_ids": list(x.source_exam_ids),
    }


def room_mapping_from_dict(raw: Dict[str, Any]) -> RoomMapping:
    return RoomMapping(
        degree_scope=parse_degree(raw.get("degree_scope", "BA")),
        competence_area=raw["competence_area"],
        rooms=tuple(raw.get("rooms", [])),
        mapping_id=str(raw.get("mapping_id", "")),
    )


def room_mapping_to_dict(m: RoomMapping) -> Dict[str, Any]:
    return {
        "mapping_id": m.mapping_id,
        "degree_scope": m.degree_scope.value,
        "competence_area": m.competence_area,
        "rooms": list(m.rooms),
    }


_CONFIG_INT_FIELDS = (
    "ba_slot_minutes",
    "ma_slot_minutes",
    "break_minutes",
    "gap_tolerance_minutes",
    "max_consecutive",
    "room_gap_minutes",
    "scan_step_minutes",
    "merge_step_minutes",
    "move_step_minutes",
    "imbalance_threshold",
)


def config_from_dict(raw: Dict[str, Any]) -> ScheduleConfig:
    kwargs: Dict[str, Any] = {
        "days": tuple(parse_day(d) for d in raw.get("days", [])),
        "rooms": tuple(raw.get("rooms", [])),
    }
    if "day_start" in raw:
        kwargs["day_start"] = parse_hhmm(raw["day_start"])
    if "day_end" in raw:
        kwargs["day_end"] = parse_hhmm(raw["day_end"])
    for name in _CONFIG_INT_FIELDS:
        if name in raw:
            kwargs[name] = int(raw[name])

    config = ScheduleConfig(**kwargs)
    if config.day_end <= config.day_start:
        raise PlanningError("day_end must be after day_start")
    return config


def config_to_dict(c: ScheduleConfig) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "days": [d.isoformat() for d in c.days],
        "rooms": list(c.rooms),
        "day_start": format_hhmm(c.day_start),
        "day_end": format_hhmm(c.day_end),
    }
    for name in _CONFIG_INT_FIELDS:
        out[name] = getattr(c, name)
    return out


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise PlanningError(f"Invalid timestamp: {value!r}") from exc


def event_from_dict(raw: Dict[str, Any]) -> ScheduledEvent:
    start = parse_hhmm(raw["start"])
    end = parse_hhmm(raw["end"])
    return ScheduledEvent(
        event_id=str(raw["event_id"]),
        version_id=str(raw["version_id"]),
        exam_id=str(raw["exam_id"]),
        day=parse_day(raw["day"]),
        room=raw["room"],
        start=start,
        end=end,
        protocolist_id=raw.get("protocolist_id") or None,
        status=EventStatus(raw.get("status", "scheduled")),
        cancelled_reason=raw.get("cancelled_reason"),
        cancelled_at=_parse_ts(raw.get("cancelled_at")),
        is_team=bool(raw.get("is_team", False)),
        duration_minutes=raw.get("duration_minutes") or (end - start),
    )


def event_to_dict(e: ScheduledEvent) -> Dict[str, Any]:
    return {
        "event_id": e.event_id,
        "version_id": e.version_id,
        "exam_id": e.exam_id,
        "day": e.day.isoformat(),
        "room": e.room,
        "start": format_hhmm(e.start),
        "end": format_hhmm(e.end),
        "protocolist_id": e.protocolist_id,
        "status": e.status.value,
        "cancelled_reason": e.cancelled_reason,
        "cancelled_at": e.cancelled_at.isoformat() if e.cancelled_at else None,
        "is_team": e.is_team,
        "duration_minutes": e.duration_minutes,
    }


def version_from_dict(raw: Dict[str, Any]) -> ScheduleVersion:
    return ScheduleVersion(
        version_id=str(raw["version_id"]),
        created_at=_parse_ts(raw.get("created_at")) or datetime.now(),
        status=VersionStatus(raw.get("status", "draft")),
        notes=raw.get("notes", "") or "",
    )


def version_to_dict(v: ScheduleVersion) -> Dict[str, Any]:
    return {
        "version_id": v.version_id,
        "created_at": v.created_at.isoformat(),
        "status": v.status.value,
        "notes": v.notes,
    }


# ----------------------------
# Documents
# ----------------------------


def planning_input_from_dict(raw: Dict[str, Any]) -> PlanningInput:
    staff: List[StaffMember] = [staff_from_dict(s) for s in raw.get("staff", [])]
    return PlanningInput(
        config=config_from_dict(raw.get("config", {})),
        staff=tuple(staff),
        exams=tuple(exam_from_dict(x) for x in raw.get("exams", [])),
        room_mappings=tuple(room_mapping_from_dict(m) for m in raw.get("room_mappings", [])),
    )


def load_planning_input_from_json(path: str) -> PlanningInput:
    """Load a `PlanningInput` from a JSON file."""

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return planning_input_from_dict(raw)
