import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium import Degree, EmploymentType, Exam, RoomMapping, ScheduleConfig, StaffMember
from ui.database import crud
from ui.database.db import db_session
from ui.pages.colloquium_planner import _build_input_from_db, _merge_protocolist_options, _weekdays_between
from ui.utils.schedule_cache import cached_plan, compute_planning_input_hash, store_plan


def test_build_input_from_db_smoke(tmp_path, monkeypatch):
    # Use an isolated DB
    monkeypatch.setenv("COLLOQUIUM_DB", str(tmp_path / "colloquium.db"))

    # Empty DB still yields a usable input
    planning = _build_input_from_db()
    assert planning.config.days == ()
    assert planning.exams == ()

    with db_session() as conn:
        crud.save_planning_config(conn, ScheduleConfig(days=(date(2026, 2, 9),), rooms=("R1",)))
        crud.upsert_staff(conn, StaffMember("S001", "Prof. Weber"))
        crud.upsert_exam(conn, Exam("E001", Degree.MA, "S001", ""))
        crud.upsert_room_mapping(conn, RoomMapping(Degree.BA, "Product Design", ("R1",)))

    planning = _build_input_from_db()
    assert planning.config.rooms == ("R1",)
    assert [s.staff_id for s in planning.staff] == ["S001"]
    assert [x.exam_id for x in planning.exams] == ["E001"]
    assert len(planning.room_mappings) == 1


def test_plan_cache_is_keyed_by_input_hash(tmp_path, monkeypatch):
    monkeypatch.setenv("COLLOQUIUM_DB", str(tmp_path / "colloquium.db"))

    planning = _build_input_from_db()
    h = compute_planning_input_hash(planning)
    assert h == compute_planning_input_hash(_build_input_from_db())

    state = {}
    assert cached_plan(state, h) is None
    store_plan(state, input_hash=h, version_id="v1", events=[], conflicts=[])
    assert cached_plan(state, h)["version_id"] == "v1"

    with db_session() as conn:
        crud.upsert_staff(conn, StaffMember("S001", "Prof. Weber"))
    changed = compute_planning_input_hash(_build_input_from_db())
    assert changed != h
    assert cached_plan(state, changed) is None


def test_weekdays_between_skips_weekends():
    days = _weekdays_between(date(2026, 2, 6), date(2026, 2, 10))
    assert days == [date(2026, 2, 6), date(2026, 2, 9), date(2026, 2, 10)]


def test_merge_protocolist_options_leave_out_the_team():
    staff = [
        StaffMember("S1", "Prof. Weber"),
        StaffMember("S2", "Dr. Lang"),
        StaffMember("S3", "M. Vogel", employment=EmploymentType.EXTERNAL),
        StaffMember("S4", "Dr. Berg"),
    ]
    options = _merge_protocolist_options(staff, ("S1", "S2"))
    assert [s.staff_id for s in options] == ["S4"]
