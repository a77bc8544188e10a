import sys
from datetime import date
from itertools import combinations
from pathlib import Path

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium import (
    AvailabilityOverride,
    Degree,
    EmploymentType,
    Exam,
    RoomMapping,
    ScheduleConfig,
    StaffMember,
    UnavailableBlock,
    generate_schedule,
)
from colloquium.availability import is_available
from colloquium.break_rule import first_break_violation
from colloquium.timeutils import overlaps

DAYS = (date(2026, 2, 9), date(2026, 2, 10))
AREAS = ("Interaction Design", "Product Design")
MAPPINGS = (
    RoomMapping(Degree.BA, "Interaction Design", ("R1", "R2")),
    RoomMapping(Degree.BA, "Product Design", ("R3",)),
)
CONFIG = ScheduleConfig(days=DAYS, rooms=("R1", "R2", "R3"))


@st.composite
def planning_problems(draw):
    n_staff = draw(st.integers(min_value=3, max_value=7))
    staff = []
    for i in range(n_staff):
        employment = draw(st.sampled_from(list(EmploymentType)))
        blocked = draw(st.booleans())
        availability = None
        if blocked:
            day = draw(st.sampled_from(DAYS))
            start = draw(st.integers(min_value=9, max_value=16)) * 60
            availability = AvailabilityOverride(unavailable_blocks=(UnavailableBlock(day, start, start + 90),))
        staff.append(
            StaffMember(
                staff_id=f"S{i}",
                name=f"Staff {i}",
                competence_areas=(draw(st.sampled_from(AREAS)),),
                employment=employment,
                protocol_excluded=draw(st.booleans()) if employment is EmploymentType.INTERNAL else False,
                availability=availability,
            )
        )

    ids = [s.staff_id for s in staff]
    n_exams = draw(st.integers(min_value=1, max_value=12))
    exams = []
    for i in range(n_exams):
        degree = draw(st.sampled_from(list(Degree)))
        examiners = draw(st.lists(st.sampled_from(ids), min_size=1, max_size=2, unique=True))
        exams.append(
            Exam(
                exam_id=f"E{i}",
                degree=degree,
                examiner_a=examiners[0],
                examiner_b=examiners[1] if len(examiners) > 1 else "",
                competence_area=draw(st.sampled_from(AREAS)) if degree is Degree.BA else None,
            )
        )
    return staff, exams


def _involved(event, exams_by_id):
    return set(exams_by_id[event.exam_id].all_examiner_ids) | {event.protocolist_id}


@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(planning_problems())
def test_committed_events_never_double_book(problem):
    staff, exams = problem
    exams_by_id = {x.exam_id: x for x in exams}

    events, _ = generate_schedule(exams, staff, MAPPINGS, CONFIG, "v1")

    for a, b in combinations(events, 2):
        if a.day != b.day or not overlaps(a.start, a.end, b.start, b.end):
            continue
        assert a.room != b.room
        assert not (_involved(a, exams_by_id) & _involved(b, exams_by_id))


@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(planning_problems())
def test_nobody_works_a_fifth_chained_session(problem):
    staff, exams = problem
    exams_by_id = {x.exam_id: x for x in exams}

    events, _ = generate_schedule(exams, staff, MAPPINGS, CONFIG, "v1")

    for member in staff:
        for day in DAYS:
            sessions = sorted(
                (e.start, e.end) for e in events if e.day == day and member.staff_id in _involved(e, exams_by_id)
            )
            assert first_break_violation(sessions, CONFIG) is None


@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(planning_problems())
def test_protocolists_are_eligible_and_everyone_is_available(problem):
    staff, exams = problem
    staff_by_id = {s.staff_id: s for s in staff}
    exams_by_id = {x.exam_id: x for x in exams}

    events, conflicts = generate_schedule(exams, staff, MAPPINGS, CONFIG, "v1")

    placed = {e.exam_id for e in events}
    unplaced = {c.exam_id for c in conflicts if c.exam_id}
    assert placed | unplaced == set(exams_by_id)
    assert not (placed & unplaced)

    for e in events:
        exam = exams_by_id[e.exam_id]
        protocolist = staff_by_id[e.protocolist_id]
        assert protocolist.employment is EmploymentType.INTERNAL
        assert not protocolist.protocol_excluded
        assert protocolist.staff_id not in exam.all_examiner_ids
        assert CONFIG.day_start <= e.start < e.end <= CONFIG.day_end
        for sid in _involved(e, exams_by_id):
            assert is_available(staff_by_id[sid], e.day, e.start, e.end, CONFIG)


@settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(planning_problems())
def test_same_input_same_plan(problem):
    staff, exams = problem

    first, first_conflicts = generate_schedule(exams, staff, MAPPINGS, CONFIG, "v1")
    second, second_conflicts = generate_schedule(exams, staff, MAPPINGS, CONFIG, "v1")

    key = lambda e: (e.exam_id, e.day, e.room, e.start, e.end, e.protocolist_id)
    assert [key(e) for e in first] == [key(e) for e in second]
    assert first_conflicts == second_conflicts
