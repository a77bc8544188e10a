import sys
from datetime import date
from pathlib import Path

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium import (
    ConflictKind,
    Degree,
    EmploymentType,
    Exam,
    RoomMapping,
    ScheduleConfig,
    Severity,
    StaffMember,
    compute_metrics,
    generate_schedule,
    load_planning_input_from_json,
)
from colloquium.availability import is_available
from colloquium.break_rule import first_break_violation
from colloquium.models import AvailabilityOverride, UnavailableBlock
from colloquium.protocolist import WorkloadLedger
from colloquium.scheduler import order_exams, schedulable_exams

D1, D2 = date(2026, 2, 9), date(2026, 2, 10)


def _placements(events):
    return [(e.exam_id, e.day, e.room, e.start, e.end, e.protocolist_id) for e in events]


def test_single_exam_lands_at_day_start():
    config = ScheduleConfig(days=(D1,), rooms=("R1",), day_start=540, day_end=600)
    staff = [StaffMember("S1", "Prof. A", ("X",)), StaffMember("S2", "Prof. B")]
    exams = [Exam("E1", Degree.BA, "S1", "", competence_area="X", student_name="Lena")]
    mappings = [RoomMapping(Degree.BA, "X", ("R1",))]

    events, conflicts = generate_schedule(exams, staff, mappings, config, "v1")

    assert conflicts == []
    assert len(events) == 1
    e = events[0]
    assert (e.day, e.room, e.start_time, e.end_time) == (D1, "R1", "09:00", "09:50")
    assert e.protocolist_id == "S2"
    assert e.version_id == "v1"


def test_exam_without_any_room_is_reported():
    config = ScheduleConfig(days=(D1,), rooms=("R1",))
    staff = [StaffMember("S1", "Prof. A"), StaffMember("S2", "Prof. B")]
    exams = [Exam("E1", Degree.BA, "S1", "", competence_area="Sound Design", student_name="Tim")]

    events, conflicts = generate_schedule(exams, staff, [], config, "v1")

    assert events == []
    assert len(conflicts) == 1
    c = conflicts[0]
    assert c.severity is Severity.ERROR
    assert c.kind is ConflictKind.ROOM
    assert c.exam_id == "E1"
    assert "Tim" in c.message


def test_blocking_examiner_is_named():
    config = ScheduleConfig(days=(D1,), rooms=("R1",))
    away = StaffMember(
        "S1",
        "Prof. Away",
        availability=AvailabilityOverride(unavailable_blocks=(UnavailableBlock(D1, 540, 1080),)),
    )
    staff = [away, StaffMember("S2", "Prof. B"), StaffMember("S3", "Prof. C")]
    exams = [Exam("E1", Degree.BA, "S1", "S2", competence_area="X")]

    events, conflicts = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "X", ("R1",))], config, "v1")

    assert events == []
    errors = [c for c in conflicts if c.severity is Severity.ERROR]
    assert len(errors) == 1
    assert errors[0].kind is ConflictKind.CONSTRAINT
    assert errors[0].staff_id == "S1"
    assert "Prof. Away" in errors[0].message


def test_no_protocolist_means_unplaced():
    config = ScheduleConfig(days=(D1,), rooms=("R1",))
    staff = [
        StaffMember("S1", "Prof. A"),
        StaffMember("S2", "External", employment=EmploymentType.EXTERNAL),
    ]
    exams = [Exam("E1", Degree.BA, "S1", "", competence_area="X")]

    events, conflicts = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "X", ("R1",))], config, "v1")

    assert events == []
    assert [c.exam_id for c in conflicts] == ["E1"]


def test_room_gap_between_sessions():
    config = ScheduleConfig(days=(D1,), rooms=("R1",))
    staff = [StaffMember(f"S{i}", f"Prof. {i}") for i in range(1, 6)]
    exams = [
        Exam("E1", Degree.BA, "S1", "", competence_area="X"),
        Exam("E2", Degree.BA, "S2", "", competence_area="X"),
    ]

    events, _ = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "X", ("R1",))], config, "v1")

    starts = sorted(e.start for e in events)
    assert starts == [540, 595]


def test_fifth_back_to_back_session_waits_for_the_break():
    config = ScheduleConfig(days=(D1,), rooms=("R1",))
    staff = [StaffMember("S1", "Prof. A"), StaffMember("P1", "Dr. P"), StaffMember("P2", "Dr. Q")]
    exams = [Exam(f"E{i}", Degree.BA, "S1", "", competence_area="X") for i in range(5)]

    events, conflicts = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "X", ("R1",))], config, "v1")

    assert not [c for c in conflicts if c.severity is Severity.ERROR]
    ordered = sorted(events, key=lambda e: e.start)
    assert [e.start for e in ordered[:4]] == [540, 595, 650, 705]
    assert ordered[4].start - ordered[3].end >= config.break_minutes


def test_ma_exams_are_ordered_first():
    exams = [
        Exam("E1", Degree.BA, "S1", "", competence_area="B"),
        Exam("E2", Degree.MA, "S2", ""),
        Exam("E3", Degree.BA, "S3", "S1", competence_area="A"),
    ]
    ledger = WorkloadLedger.from_exams([StaffMember(s, s) for s in ("S1", "S2", "S3")], exams)
    assert [x.exam_id for x in order_exams(exams, ledger)] == ["E2", "E3", "E1"]


def test_team_sources_are_not_scheduled_on_their_own():
    exams = [
        Exam("E1", Degree.BA, "S1", "", competence_area="X"),
        Exam("E2", Degree.BA, "S2", "", competence_area="X"),
        Exam("T1", Degree.BA, "S1", "S2", competence_area="X", source_exam_ids=("E1", "E2")),
    ]
    assert [x.exam_id for x in schedulable_exams(exams)] == ["T1"]

    config = ScheduleConfig(days=(D1,), rooms=("R1",))
    staff = [StaffMember("S1", "A"), StaffMember("S2", "B"), StaffMember("S3", "C")]
    events, _ = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "X", ("R1",))], config, "v1")
    assert [(e.exam_id, e.end - e.start, e.is_team) for e in events] == [("T1", 100, True)]


def test_empty_day_gets_a_distribution_warning():
    config = ScheduleConfig(days=(D1, D2), rooms=("R1",))
    staff = [StaffMember("S1", "A"), StaffMember("S2", "B")]
    exams = [Exam("E1", Degree.BA, "S1", "", competence_area="X")]

    events, conflicts = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "X", ("R1",))], config, "v1")

    assert len(events) == 1
    assert [(c.kind, c.severity) for c in conflicts] == [(ConflictKind.DISTRIBUTION, Severity.WARNING)]
    assert D2.isoformat() in conflicts[0].message


def test_sample_problem_respects_hard_rules():
    planning = load_planning_input_from_json(str(ROOT / "data" / "sample_colloquium_problem.json"))
    staff_by_id = {s.staff_id: s for s in planning.staff}
    exams_by_id = {x.exam_id: x for x in planning.exams}

    events, conflicts = generate_schedule(
        planning.exams, planning.staff, planning.room_mappings, planning.config, "demo"
    )

    assert not [c for c in conflicts if c.severity is Severity.ERROR]
    assert len(events) == len(planning.exams)
    for e in events:
        exam = exams_by_id[e.exam_id]
        protocolist = staff_by_id[e.protocolist_id]
        assert protocolist.can_protocol
        assert protocolist.staff_id not in exam.all_examiner_ids
        for sid in exam.all_examiner_ids + (e.protocolist_id,):
            assert is_available(staff_by_id[sid], e.day, e.start, e.end, planning.config)

    metrics = compute_metrics(events, planning.exams, planning.config)
    assert metrics["scheduled"] == float(len(events))
    assert metrics["unscheduled"] == 0.0


def test_generation_is_deterministic():
    planning = load_planning_input_from_json(str(ROOT / "data" / "sample_colloquium_problem.json"))
    args = (planning.exams, planning.staff, planning.room_mappings, planning.config, "demo")

    first, _ = generate_schedule(*args)
    second, _ = generate_schedule(*args)

    assert _placements(first) == _placements(second)


def test_early_placement_does_not_extend_a_later_chain():
    config = ScheduleConfig(days=(D1,), rooms=("R1",), day_start=545, day_end=1080)
    late = AvailabilityOverride(unavailable_blocks=(UnavailableBlock(D1, 545, 600),))
    staff = [
        StaffMember("X", "Prof. X", ("A",)),
        StaffMember("Y", "Prof. Y", ("A",), availability=late),
        StaffMember("Z", "Prof. Z", ("A",)),
        StaffMember("P1", "Dr. P1"),
        StaffMember("P2", "Dr. P2"),
        StaffMember("P3", "Dr. P3"),
    ]
    exams = [Exam(f"E{i}", Degree.BA, "X", "Y", competence_area="A") for i in range(1, 5)]
    exams.append(Exam("E5", Degree.BA, "X", "Z", competence_area="A"))
    exams_by_id = {x.exam_id: x for x in exams}

    events, conflicts = generate_schedule(exams, staff, [RoomMapping(Degree.BA, "A", ("R1",))], config, "v1")

    assert len(events) == 5
    assert not [c for c in conflicts if c.severity is Severity.ERROR]
    for member in staff:
        sessions = sorted(
            (e.start, e.end)
            for e in events
            if member.staff_id in exams_by_id[e.exam_id].all_examiner_ids or e.protocolist_id == member.staff_id
        )
        assert first_break_violation(sessions, config) is None, member.staff_id
