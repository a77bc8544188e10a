from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from colloquium.models import ConflictReport, Degree, Exam, ScheduledEvent, StaffMember

PLAN_COLUMNS = [
    "Competence area",
    "Name",
    "Topic",
    "Examiner 1",
    "Examiner 2",
    "Examiner 3",
    "Examiner 4",
    "Protocol",
    "Room",
    "Date",
    "Time",
    "Duration",
    "Team",
    "Non-public",
    "Status",
    "Cancel reason",
]


def _staff_name(staff_by_id: Dict[str, StaffMember], staff_id: Optional[str]) -> str:
    if not staff_id:
        return ""
    member = staff_by_id.get(staff_id)
    return member.name if member else staff_id


def plan_rows(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    *,
    degree: Optional[Degree] = None,
    include_cancelled: bool = True,
) -> List[Dict[str, object]]:
    """One row per event, sorted by date, time and room."""

    exams_by_id = {x.exam_id: x for x in exams}
    staff_by_id = {s.staff_id: s for s in staff}

    rows: List[Dict[str, object]] = []
    for e in sorted(events, key=lambda e: (e.day, e.start, e.room)):
        exam = exams_by_id.get(e.exam_id)
        if exam is None:
            continue
        if degree is not None and exam.degree is not degree:
            continue
        if not include_cancelled and not e.is_active:
            continue

        examiners = list(exam.all_examiner_ids) + [""] * 4
        row: Dict[str, object] = {
            "Competence area": exam.competence_area or "",
            "Name": exam.label,
            "Topic": exam.topic,
        }
        for i in range(4):
            row[f"Examiner {i + 1}"] = _staff_name(staff_by_id, examiners[i])
        row.update(
            {
                "Protocol": _staff_name(staff_by_id, e.protocolist_id),
                "Room": e.room,
                "Date": e.day.isoformat(),
                "Time": f"{e.start_time}-{e.end_time}",
                "Duration": e.end - e.start,
                "Team": "yes" if e.is_team or exam.is_team else "",
                "Non-public": "" if exam.is_public else "yes",
                "Status": e.status.value,
                "Cancel reason": e.cancelled_reason or "",
            }
        )
        rows.append(row)
    return rows


def plan_df(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    *,
    degree: Optional[Degree] = None,
    include_cancelled: bool = True,
) -> pd.DataFrame:
    rows = plan_rows(events, exams, staff, degree=degree, include_cancelled=include_cancelled)
    return pd.DataFrame(rows, columns=PLAN_COLUMNS)


def staff_workload_df(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
) -> pd.DataFrame:
    """Supervisions, protocols and distinct days per person (active events only)."""

    exams_by_id = {x.exam_id: x for x in exams}
    rows = {
        s.staff_id: {
            "staff_id": s.staff_id,
            "name": s.name,
            "employment": s.employment.value,
            "Supervisions": 0,
            "Protocols": 0,
            "_days": set(),
        }
        for s in staff
    }

    for e in events:
        if not e.is_active:
            continue
        exam = exams_by_id.get(e.exam_id)
        involved = []
        if exam is not None:
            for sid in exam.all_examiner_ids:
                involved.append((sid, "Supervisions"))
        if e.protocolist_id:
            involved.append((e.protocolist_id, "Protocols"))
        for sid, col in involved:
            if sid not in rows:
                continue
            rows[sid][col] += 1
            rows[sid]["_days"].add(e.day)

    out = []
    for r in rows.values():
        days = r.pop("_days")
        r["Days"] = len(days)
        r["Total"] = r["Supervisions"] + r["Protocols"]
        out.append(r)

    df = pd.DataFrame(out, columns=["staff_id", "name", "employment", "Supervisions", "Protocols", "Days", "Total"])
    if df.empty:
        return df
    return df.sort_values(["Total", "name"], ascending=[False, True]).reset_index(drop=True)


def conflicts_df(conflicts: Sequence[ConflictReport]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "severity": c.severity.value,
                "kind": c.kind.value,
                "message": c.message,
                "exam_id": c.exam_id or "",
                "staff_id": c.staff_id or "",
                "suggestion": c.suggestion or "",
            }
            for c in conflicts
        ],
        columns=["severity", "kind", "message", "exam_id", "staff_id", "suggestion"],
    )


def _safe_sheet_name(name: str) -> str:
    """Excel sheet names: max 31 chars, cannot contain: `: \\ / ? * [ ]`."""

    bad = [":", "\\", "/", "?", "*", "[", "]"]
    out = str(name or "Sheet")
    for b in bad:
        out = out.replace(b, "-")
    out = out.strip() or "Sheet"
    return out[:31]


def plan_workbook_bytes(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    conflicts: Sequence[ConflictReport] = (),
) -> bytes:
    """Excel workbook with Bachelor / Master plans, staff workload and conflicts."""

    out = io.BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        plan_df(events, exams, staff, degree=Degree.BA).to_excel(
            writer, sheet_name=_safe_sheet_name("Bachelor"), index=False
        )
        plan_df(events, exams, staff, degree=Degree.MA).to_excel(
            writer, sheet_name=_safe_sheet_name("Master"), index=False
        )
        staff_workload_df(events, exams, staff).to_excel(
            writer, sheet_name=_safe_sheet_name("Staff Workload"), index=False
        )
        conflicts_df(conflicts).to_excel(writer, sheet_name=_safe_sheet_name("Conflicts"), index=False)
    return out.getvalue()


def plan_csv_bytes(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
) -> bytes:
    return plan_df(events, exams, staff).to_csv(index=False).encode("utf-8")


def plan_reports_zip_bytes(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    staff: Sequence[StaffMember],
    conflicts: Sequence[ConflictReport] = (),
) -> bytes:
    """ZIP with the workbook, the full plan as CSV and one CSV per staff member."""

    staff_by_id = {s.staff_id: s for s in staff}
    exams_by_id = {x.exam_id: x for x in exams}

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as z:
        z.writestr("colloquium_plan.xlsx", plan_workbook_bytes(events, exams, staff, conflicts))
        z.writestr("tables/plan.csv", plan_csv_bytes(events, exams, staff))
        z.writestr(
            "tables/staff_workload.csv",
            staff_workload_df(events, exams, staff).to_csv(index=False).encode("utf-8"),
        )

        for sid in sorted(staff_by_id):
            mine = [
                e
                for e in events
                if e.protocolist_id == sid
                or (e.exam_id in exams_by_id and sid in exams_by_id[e.exam_id].all_examiner_ids)
            ]
            if not mine:
                continue
            df = plan_df(mine, exams, staff)
            z.writestr(f"staff/{sid}.csv", df.to_csv(index=False).encode("utf-8"))

    return buf.getvalue()


@dataclass(frozen=True)
class ImageExportOptions:
    title: Optional[str] = None
    font_size: int = 8
    row_height: float = 0.6
    hour_width: float = 1.4


def df_to_markdown(df: pd.DataFrame) -> str:
    """Convert DataFrame to a GitHub-flavored Markdown table."""

    cols = list(df.columns)
    rows = df.astype(str).values.tolist()

    def esc(s: str) -> str:
        return str(s).replace("\n", " ").replace("|", "\\|")

    header = "| " + " | ".join(esc(c) for c in cols) + " |"
    sep = "| " + " | ".join(["---"] * len(cols)) + " |"
    body = ["| " + " | ".join(esc(v) for v in r) + " |" for r in rows]
    return "\n".join([header, sep] + body) + "\n"


def day_gantt_png_bytes(
    events: Sequence[ScheduledEvent],
    exams: Sequence[Exam],
    day: date,
    *,
    day_start: int = 9 * 60,
    day_end: int = 18 * 60,
    options: ImageExportOptions = ImageExportOptions(),
) -> bytes:
    """Render one day as a room x time chart (PNG bytes).

    Uses matplotlib's broken_barh; cancelled sessions are drawn hatched.
    """

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    exams_by_id = {x.exam_id: x for x in exams}
    todays = sorted((e for e in events if e.day == day), key=lambda e: (e.room, e.start))
    rooms = sorted({e.room for e in todays})

    hours = max(1.0, (day_end - day_start) / 60.0)
    fig_w = max(6.0, float(options.hour_width) * hours)
    fig_h = max(2.0, float(options.row_height) * (len(rooms) + 2))
    fig, ax = plt.subplots(figsize=(fig_w, fig_h))

    for idx, room in enumerate(rooms):
        for e in (x for x in todays if x.room == room):
            exam = exams_by_id.get(e.exam_id)
            ax.broken_barh(
                [(e.start, e.end - e.start)],
                (idx - 0.4, 0.8),
                facecolors="#d9e7f7" if e.is_active else "#eeeeee",
                edgecolors="#4a6fa5",
                hatch=None if e.is_active else "//",
            )
            ax.text(
                e.start + 2,
                idx,
                exam.label if exam else e.exam_id,
                va="center",
                ha="left",
                fontsize=options.font_size,
                clip_on=True,
            )

    ax.set_yticks(range(len(rooms)))
    ax.set_yticklabels(rooms)
    ax.set_xlim(day_start, day_end)
    ticks = list(range(day_start - day_start % 60 + (60 if day_start % 60 else 0), day_end + 1, 60))
    ax.set_xticks(ticks)
    ax.set_xticklabels([f"{t // 60:02d}:00" for t in ticks])
    ax.invert_yaxis()
    ax.grid(axis="x", linewidth=0.4, alpha=0.6)
    ax.set_title(options.title or day.isoformat(), fontsize=options.font_size + 2)

    buf = io.BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()
