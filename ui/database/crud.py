"""CRUD operations for the Streamlit UI.

All DB access is centralized here so pages remain clean. Rows are converted
to engine entities through `colloquium.loaders`, so the pages only ever see
`StaffMember`, `Exam`, `ScheduledEvent`, ...

We use simple `sqlite3` + parameterized queries.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from colloquium.loaders import (
    availability_from_dict,
    availability_to_dict,
    config_from_dict,
    config_to_dict,
    event_from_dict,
    event_to_dict,
    exam_from_dict,
    exam_to_dict,
    parse_degree,
    parse_employment,
    version_from_dict,
    version_to_dict,
)
from colloquium.models import (
    Exam,
    RoomMapping,
    ScheduleConfig,
    ScheduledEvent,
    ScheduleVersion,
    StaffMember,
    VersionStatus,
)
from colloquium.versions import new_version_id

logger = logging.getLogger(__name__)


# -----------------
# Helper utilities
# -----------------


def _rows(conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    cur = conn.execute(query, params)
    return [dict(r) for r in cur.fetchall()]


def _row(conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    cur = conn.execute(query, params)
    r = cur.fetchone()
    return dict(r) if r is not None else None


# -----------------
# Planning config
# -----------------


def get_planning_config(conn: sqlite3.Connection) -> ScheduleConfig:
    r = _row(conn, "SELECT config_json FROM planning_config WHERE id=1")
    assert r is not None
    return config_from_dict(json.loads(r["config_json"] or "{}"))


def save_planning_config(conn: sqlite3.Connection, config: ScheduleConfig) -> None:
    conn.execute(
        "UPDATE planning_config SET config_json=?, updated_at=datetime('now') WHERE id=1",
        (json.dumps(config_to_dict(config)),),
    )


# ------
# Staff
# ------


def _staff_from_row(r: Dict[str, Any]) -> StaffMember:
    avail = json.loads(r["availability_json"]) if r.get("availability_json") else None
    return StaffMember(
        staff_id=r["staff_id"],
        name=r["name"],
        competence_areas=tuple(json.loads(r.get("competence_areas_json") or "[]")),
        employment=parse_employment(r["employment"]),
        protocol_excluded=bool(r["protocol_excluded"]),
        availability=availability_from_dict(avail),
    )


def list_staff(conn: sqlite3.Connection) -> List[StaffMember]:
    return [_staff_from_row(r) for r in _rows(conn, "SELECT * FROM staff ORDER BY name, staff_id")]


def get_staff(conn: sqlite3.Connection, staff_id: str) -> Optional[StaffMember]:
    r = _row(conn, "SELECT * FROM staff WHERE staff_id=?", (staff_id,))
    return _staff_from_row(r) if r is not None else None


def upsert_staff(conn: sqlite3.Connection, staff: StaffMember) -> None:
    avail = availability_to_dict(staff.availability)
    conn.execute(
        """
        INSERT INTO staff (staff_id, name, competence_areas_json, employment, protocol_excluded, availability_json)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(staff_id) DO UPDATE SET
            name=excluded.name,
            competence_areas_json=excluded.competence_areas_json,
            employment=excluded.employment,
            protocol_excluded=excluded.protocol_excluded,
            availability_json=excluded.availability_json
        """,
        (
            staff.staff_id,
            staff.name,
            json.dumps(list(staff.competence_areas)),
            staff.employment.value,
            int(staff.protocol_excluded),
            json.dumps(avail) if avail is not None else None,
        ),
    )


def delete_staff(conn: sqlite3.Connection, staff_id: str) -> None:
    conn.execute("DELETE FROM staff WHERE staff_id=?", (staff_id,))


# ------
# Exams
# ------


def _exam_from_row(r: Dict[str, Any]) -> Exam:
    raw = dict(r)
    raw["is_public"] = bool(r["is_public"])
    raw["integrated"] = bool(r["integrated"])
    raw["examiner_ids"] = json.loads(r.get("examiner_ids_json") or "[]")
    raw["student_names"] = json.loads(r.get("student_names_json") or "[]")
    raw["source_exam_ids"] = json.loads(r.get("source_exam_ids_json") or "[]")
    return exam_from_dict(raw)


def list_exams(conn: sqlite3.Connection) -> List[Exam]:
    return [_exam_from_row(r) for r in _rows(conn, "SELECT * FROM exams ORDER BY rowid")]


def upsert_exam(conn: sqlite3.Connection, exam: Exam) -> None:
    d = exam_to_dict(exam)
    conn.execute(
        """
        INSERT INTO exams (
            exam_id, degree, examiner_a, examiner_b, competence_area, student_name, topic,
            is_public, integrated, examiner_ids_json, student_names_json, duration_minutes, source_exam_ids_json
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(exam_id) DO UPDATE SET
            degree=excluded.degree,
            examiner_a=excluded.examiner_a,
            examiner_b=excluded.examiner_b,
            competence_area=excluded.competence_area,
            student_name=excluded.student_name,
            topic=excluded.topic,
            is_public=excluded.is_public,
            integrated=excluded.integrated,
            examiner_ids_json=excluded.examiner_ids_json,
            student_names_json=excluded.student_names_json,
            duration_minutes=excluded.duration_minutes,
            source_exam_ids_json=excluded.source_exam_ids_json
        """,
        (
            d["exam_id"],
            d["degree"],
            d["examiner_a"],
            d["examiner_b"],
            d["competence_area"],
            d["student_name"],
            d["topic"],
            int(d["is_public"]),
            int(d["integrated"]),
            json.dumps(d["examiner_ids"]),
            json.dumps(d["student_names"]),
            d["duration_minutes"],
            json.dumps(d["source_exam_ids"]),
        ),
    )


def delete_exam(conn: sqlite3.Connection, exam_id: str) -> None:
    conn.execute("DELETE FROM exams WHERE exam_id=?", (exam_id,))


# --------------
# Room mappings
# --------------


def list_room_mappings(conn: sqlite3.Connection) -> List[RoomMapping]:
    return [
        RoomMapping(
            degree_scope=parse_degree(r["degree_scope"]),
            competence_area=r["competence_area"],
            rooms=tuple(json.loads(r.get("rooms_json") or "[]")),
            mapping_id=r["mapping_id"],
        )
        for r in _rows(conn, "SELECT * FROM room_mappings ORDER BY degree_scope, competence_area")
    ]


def upsert_room_mapping(conn: sqlite3.Connection, mapping: RoomMapping) -> str:
    mapping_id = mapping.mapping_id or f"{mapping.degree_scope.value}:{mapping.competence_area}"
    conn.execute(
        """
        INSERT INTO room_mappings (mapping_id, degree_scope, competence_area, rooms_json)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(mapping_id) DO UPDATE SET
            degree_scope=excluded.degree_scope,
            competence_area=excluded.competence_area,
            rooms_json=excluded.rooms_json
        """,
        (mapping_id, mapping.degree_scope.value, mapping.competence_area, json.dumps(list(mapping.rooms))),
    )
    return mapping_id


def delete_room_mapping(conn: sqlite3.Connection, mapping_id: str) -> None:
    conn.execute("DELETE FROM room_mappings WHERE mapping_id=?", (mapping_id,))


# ------------------
# Schedule versions
# ------------------


def list_schedule_versions(conn: sqlite3.Connection) -> List[ScheduleVersion]:
    return [
        version_from_dict(r)
        for r in _rows(conn, "SELECT * FROM schedule_versions ORDER BY created_at, rowid")
    ]


def create_schedule_version(conn: sqlite3.Connection, *, notes: str = "") -> ScheduleVersion:
    version = ScheduleVersion(version_id=new_version_id(), created_at=datetime.now(), notes=notes)
    d = version_to_dict(version)
    conn.execute(
        "INSERT INTO schedule_versions (version_id, created_at, status, notes) VALUES (?, ?, ?, ?)",
        (d["version_id"], d["created_at"], d["status"], d["notes"]),
    )
    logger.info("Created schedule version %s", version.version_id)
    return version


def publish_schedule_version(conn: sqlite3.Connection, version_id: str) -> bool:
    """Publish one version and unpublish all others. False if the id is unknown."""

    if _row(conn, "SELECT version_id FROM schedule_versions WHERE version_id=?", (version_id,)) is None:
        return False
    conn.execute("UPDATE schedule_versions SET status=?", (VersionStatus.DRAFT.value,))
    conn.execute(
        "UPDATE schedule_versions SET status=? WHERE version_id=?",
        (VersionStatus.PUBLISHED.value, version_id),
    )
    logger.info("Published schedule version %s", version_id)
    return True


def delete_schedule_version(conn: sqlite3.Connection, version_id: str) -> None:
    conn.execute("DELETE FROM schedule_versions WHERE version_id=?", (version_id,))


# -----------------
# Scheduled events
# -----------------


def _event_from_row(r: Dict[str, Any]) -> ScheduledEvent:
    return event_from_dict(
        {
            "event_id": r["event_id"],
            "version_id": r["version_id"],
            "exam_id": r["exam_id"],
            "day": r["day_date"],
            "room": r["room"],
            "start": r["start_time"],
            "end": r["end_time"],
            "protocolist_id": r.get("protocolist_id"),
            "status": r["status"],
            "cancelled_reason": r.get("cancelled_reason"),
            "cancelled_at": r.get("cancelled_at"),
            "is_team": bool(r["is_team"]),
            "duration_minutes": r.get("duration_minutes"),
        }
    )


def list_scheduled_events(conn: sqlite3.Connection, version_id: Optional[str] = None) -> List[ScheduledEvent]:
    if version_id:
        rows = _rows(
            conn,
            "SELECT * FROM scheduled_events WHERE version_id=? ORDER BY day_date, start_time, room",
            (version_id,),
        )
    else:
        rows = _rows(conn, "SELECT * FROM scheduled_events ORDER BY version_id, day_date, start_time, room")
    return [_event_from_row(r) for r in rows]


def upsert_scheduled_event(conn: sqlite3.Connection, event: ScheduledEvent) -> None:
    d = event_to_dict(event)
    conn.execute(
        """
        INSERT INTO scheduled_events (
            event_id, version_id, exam_id, day_date, room, start_time, end_time, protocolist_id,
            status, cancelled_reason, cancelled_at, is_team, duration_minutes
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(event_id) DO UPDATE SET
            version_id=excluded.version_id,
            exam_id=excluded.exam_id,
            day_date=excluded.day_date,
            room=excluded.room,
            start_time=excluded.start_time,
            end_time=excluded.end_time,
            protocolist_id=excluded.protocolist_id,
            status=excluded.status,
            cancelled_reason=excluded.cancelled_reason,
            cancelled_at=excluded.cancelled_at,
            is_team=excluded.is_team,
            duration_minutes=excluded.duration_minutes
        """,
        (
            d["event_id"],
            d["version_id"],
            d["exam_id"],
            d["day"],
            d["room"],
            d["start"],
            d["end"],
            d["protocolist_id"],
            d["status"],
            d["cancelled_reason"],
            d["cancelled_at"],
            int(d["is_team"]),
            d["duration_minutes"],
        ),
    )


def replace_scheduled_events(conn: sqlite3.Connection, version_id: str, events: Iterable[ScheduledEvent]) -> int:
    """Replace every event of `version_id` (plans are regenerated wholesale)."""

    conn.execute("DELETE FROM scheduled_events WHERE version_id=?", (version_id,))
    n = 0
    for e in events:
        upsert_scheduled_event(conn, e)
        n += 1
    logger.info("Stored %d events for version %s", n, version_id)
    return n


def delete_scheduled_event(conn: sqlite3.Connection, event_id: str) -> None:
    conn.execute("DELETE FROM scheduled_events WHERE event_id=?", (event_id,))
