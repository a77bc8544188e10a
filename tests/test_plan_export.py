from __future__ import annotations

import io
import sys
import zipfile
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pandas as pd
from openpyxl import load_workbook

from colloquium import ConflictKind, ConflictReport, Degree, EventStatus, Exam, ScheduledEvent, Severity, StaffMember
from utils.plan_export import (
    PLAN_COLUMNS,
    conflicts_df,
    day_gantt_png_bytes,
    df_to_markdown,
    plan_csv_bytes,
    plan_df,
    plan_reports_zip_bytes,
    plan_workbook_bytes,
    staff_workload_df,
)

DAY = date(2026, 2, 9)
STAFF = [StaffMember("S1", "Prof. Weber"), StaffMember("S2", "Dr. Lang"), StaffMember("P1", "Dr. Sommer")]
EXAMS = [
    Exam("E1", Degree.BA, "S1", "S2", competence_area="Interaction Design", student_name="Lena", topic="Voice UI"),
    Exam("E2", Degree.MA, "S2", "", student_name="Tim", topic="Services", is_public=False),
]
EVENTS = [
    ScheduledEvent("ev2", "v1", "E2", DAY, "A101", 600, 675, "S1"),
    ScheduledEvent("ev1", "v1", "E1", DAY, "A101", 540, 590, "P1"),
    ScheduledEvent(
        "ev3", "v1", "E1", DAY, "A102", 700, 750, "P1", status=EventStatus.CANCELLED, cancelled_reason="ill"
    ),
]


def test_df_to_markdown_basic() -> None:
    df = pd.DataFrame([["A", "B|C"], ["D", "E"]], columns=["Col1", "Col2"])
    md = df_to_markdown(df)
    assert "| Col1 | Col2 |" in md
    assert "| A | B\\|C |" in md


def test_plan_df_rows_are_sorted_and_named() -> None:
    df = plan_df(EVENTS, EXAMS, STAFF)

    assert list(df.columns) == PLAN_COLUMNS
    assert list(df["Name"]) == ["Lena", "Tim", "Lena"]
    first = df.iloc[0]
    assert first["Examiner 1"] == "Prof. Weber"
    assert first["Examiner 2"] == "Dr. Lang"
    assert first["Protocol"] == "Dr. Sommer"
    assert first["Time"] == "09:00-09:50"
    assert df.iloc[1]["Non-public"] == "yes"
    assert df.iloc[2]["Status"] == "cancelled"

    assert len(plan_df(EVENTS, EXAMS, STAFF, include_cancelled=False)) == 2
    assert list(plan_df(EVENTS, EXAMS, STAFF, degree=Degree.MA)["Name"]) == ["Tim"]


def test_staff_workload_counts_active_events() -> None:
    df = staff_workload_df(EVENTS, EXAMS, STAFF).set_index("staff_id")
    assert df.loc["S2", "Supervisions"] == 2
    assert df.loc["S1", "Supervisions"] == 1
    assert df.loc["S1", "Protocols"] == 1
    assert df.loc["P1", "Protocols"] == 1


def test_workbook_has_one_sheet_per_table() -> None:
    conflicts = [ConflictReport(ConflictKind.ROOM, Severity.ERROR, "No room", exam_id="E9")]
    data = plan_workbook_bytes(EVENTS, EXAMS, STAFF, conflicts)

    wb = load_workbook(io.BytesIO(data))
    assert wb.sheetnames == ["Bachelor", "Master", "Staff Workload", "Conflicts"]
    assert wb["Bachelor"]["A1"].value == "Competence area"
    assert wb["Conflicts"].max_row == 2

    assert list(conflicts_df(conflicts)["message"]) == ["No room"]


def test_reports_zip_contents() -> None:
    data = plan_reports_zip_bytes(EVENTS, EXAMS, STAFF)
    names = set(zipfile.ZipFile(io.BytesIO(data)).namelist())

    assert {"colloquium_plan.xlsx", "tables/plan.csv", "tables/staff_workload.csv"} <= names
    assert {"staff/S1.csv", "staff/S2.csv", "staff/P1.csv"} <= names
    assert plan_csv_bytes(EVENTS, EXAMS, STAFF).decode("utf-8").startswith("Competence area,Name")


def test_day_gantt_is_png() -> None:
    png = day_gantt_png_bytes(EVENTS, EXAMS, DAY)
    assert png[:8] == b"\x89PNG\r\n\x1a\n"
