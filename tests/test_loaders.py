import json
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium.loaders import (
    availability_from_dict,
    availability_to_dict,
    config_from_dict,
    config_to_dict,
    event_from_dict,
    event_to_dict,
    exam_from_dict,
    load_planning_input_from_json,
    parse_degree,
    parse_employment,
    staff_from_dict,
)
from colloquium.models import (
    Degree,
    EmploymentType,
    EventStatus,
    PlanningError,
    ScheduledEvent,
    TimeFormatError,
    TimeWindow,
)


def test_parse_enums():
    assert parse_degree(" ma ") is Degree.MA
    assert parse_employment(None) is EmploymentType.INTERNAL
    assert parse_employment("Adjunct") is EmploymentType.ADJUNCT
    with pytest.raises(PlanningError):
        parse_degree("PhD")
    with pytest.raises(PlanningError):
        parse_employment("guest")


def test_availability_day_keys():
    raw = {
        "available_days": [2, "2026-02-11"],
        "time_windows": {"2": [{"start": "10:00", "end": "12:00"}]},
        "unavailable_blocks": [{"day": "2026-02-11", "start": "13:00", "end": "14:00", "reason": "Senate"}],
        "notes": "part time",
    }
    override = availability_from_dict(raw)

    assert override.available_days == (2, date(2026, 2, 11))
    assert override.time_windows == {2: (TimeWindow(600, 720),)}
    assert override.unavailable_blocks[0].start == 780
    assert override.unavailable_blocks[0].reason == "Senate"
    assert availability_from_dict(None) is None

    again = availability_from_dict(json.loads(json.dumps(availability_to_dict(override))))
    assert again == override


def test_staff_defaults():
    s = staff_from_dict({"staff_id": "S1", "competence_areas": ["Product Design"]})
    assert s.name == "S1"
    assert s.employment is EmploymentType.INTERNAL
    assert s.can_protocol
    assert s.availability is None


def test_ba_exam_needs_competence_area():
    with pytest.raises(PlanningError):
        exam_from_dict({"exam_id": "E1", "degree": "BA", "examiner_a": "S1"})

    ma = exam_from_dict({"exam_id": "E2", "degree": "MA", "examiner_a": "S1", "examiner_b": "S2"})
    assert ma.competence_area is None
    assert ma.all_examiner_ids == ("S1", "S2")


def test_config_parsing():
    config = config_from_dict({"days": ["2026-02-09"], "day_start": "08:30", "break_minutes": 30})
    assert config.days == (date(2026, 2, 9),)
    assert config.day_start == 510
    assert config.day_end == 18 * 60
    assert config.break_minutes == 30
    assert config_from_dict(config_to_dict(config)) == config

    with pytest.raises(PlanningError):
        config_from_dict({"day_start": "12:00", "day_end": "11:00"})
    with pytest.raises(TimeFormatError):
        config_from_dict({"days": ["09.02.2026"]})


def test_event_conversion_keeps_cancellation():
    event = ScheduledEvent(
        "ev1",
        "v1",
        "E1",
        date(2026, 2, 9),
        "R1",
        540,
        590,
        None,
        status=EventStatus.CANCELLED,
        cancelled_reason="ill",
        cancelled_at=datetime(2026, 2, 8, 17, 30),
        duration_minutes=50,
    )
    d = event_to_dict(event)
    assert d["start"] == "09:00"
    assert d["day"] == "2026-02-09"
    assert event_from_dict(d) == event


def test_sample_file_loads():
    planning = load_planning_input_from_json(str(ROOT / "data" / "sample_colloquium_problem.json"))

    assert len(planning.config.days) == 3
    assert planning.config.rooms == ("A101", "A102", "B201", "B202")
    assert len(planning.staff) == 9
    assert len(planning.exams) == 10
    assert {m.competence_area for m in planning.room_mappings} == {
        "Interaction Design",
        "Visual Communication",
        "Product Design",
    }
