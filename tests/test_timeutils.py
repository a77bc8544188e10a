import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium.models import PlanningError, TimeFormatError
from colloquium.timeutils import add_minutes, format_hhmm, overlaps, parse_day, parse_hhmm, within


def test_parse_and_format_hhmm():
    assert parse_hhmm("09:30") == 570
    assert parse_hhmm("9:05") == 545
    assert parse_hhmm(600) == 600
    assert format_hhmm(570) == "09:30"
    assert format_hhmm(24 * 60) == "24:00"
    assert add_minutes("09:00", 50) == "09:50"


@pytest.mark.parametrize("bad", ["", "0930", "9:3x", "25:00", "10:60", "24:01"])
def test_parse_hhmm_rejects_malformed_text(bad):
    with pytest.raises(TimeFormatError):
        parse_hhmm(bad)


def test_time_errors_are_planning_errors():
    with pytest.raises(PlanningError):
        format_hhmm(-1)
    with pytest.raises(ValueError):
        parse_day("03.02.2026")


def test_parse_day():
    assert parse_day("2026-02-03") == date(2026, 2, 3)
    assert parse_day(date(2026, 2, 3)) == date(2026, 2, 3)


def test_overlaps_is_half_open():
    assert overlaps(540, 590, 580, 630)
    assert not overlaps(540, 590, 590, 640)
    assert not overlaps(590, 640, 540, 590)
    assert within(600, 650, 540, 1080)
    assert not within(530, 580, 540, 1080)
