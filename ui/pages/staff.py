"""Staff Management page.

Streamlit pages are auto-discovered when running `streamlit run ui/app.py`.
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium.availability import available_intervals
from colloquium.models import (
    AvailabilityOverride,
    EmploymentType,
    ScheduleConfig,
    StaffMember,
    TimeWindow,
    UnavailableBlock,
)
from colloquium.timeutils import format_hhmm, parse_hhmm
from ui.database import crud
from ui.database.db import db_session
from ui.utils.id_generator import generate_staff_id
from ui.utils.validators import require_non_empty, validate_id, validate_time_range


def _availability_editor(config: ScheduleConfig, existing: Optional[AvailabilityOverride]) -> Tuple[Optional[AvailabilityOverride], List[str]]:
    """Edit the three availability layers; returns (override, errors)."""

    errors: List[str] = []
    days = list(config.days)

    restrict = st.checkbox(
        "Restrict availability",
        value=existing is not None,
        help="Without restrictions a person is available on every planning day for the whole working window.",
    )
    if not restrict:
        return None, errors

    current_days = (
        [d for d in existing.available_days if isinstance(d, date)]
        if existing and existing.available_days is not None
        else days
    )
    chosen_days = st.multiselect(
        "Available days",
        options=days,
        default=[d for d in current_days if d in days],
        format_func=lambda d: d.strftime("%a %d.%m.%Y"),
    )

    st.caption("Optional time window per day (HH:MM-HH:MM); leave empty for the full day.")
    windows: Dict[date, Tuple[TimeWindow, ...]] = {}
    for d in chosen_days:
        prev = existing.time_windows.get(d) if existing else None
        default = f"{format_hhmm(prev[0].start)}-{format_hhmm(prev[0].end)}" if prev else ""
        text = st.text_input(f"Window {d.isoformat()}", value=default, key=f"win_{d.isoformat()}")
        if text.strip():
            start, _, end = text.partition("-")
            ok, msg = validate_time_range(start.strip(), end.strip(), f"Window {d.isoformat()}")
            if not ok:
                errors.append(msg)
                continue
            windows[d] = (TimeWindow(parse_hhmm(start.strip()), parse_hhmm(end.strip())),)

    st.caption("Unavailable blocks (date, start, end, reason)")
    block_rows = [
        {"day": b.day.isoformat(), "start": format_hhmm(b.start), "end": format_hhmm(b.end), "reason": b.reason}
        for b in (existing.unavailable_blocks if existing else ())
    ]
    edited = st.data_editor(
        pd.DataFrame(block_rows, columns=["day", "start", "end", "reason"]),
        num_rows="dynamic",
        use_container_width=True,
        key="blocks_editor",
    )

    blocks: List[UnavailableBlock] = []
    for _, r in edited.iterrows():
        if not str(r.get("day") or "").strip():
            continue
        ok, msg = validate_time_range(str(r["start"]), str(r["end"]), f"Block {r['day']}")
        if not ok:
            errors.append(msg)
            continue
        try:
            day = date.fromisoformat(str(r["day"]).strip())
        except ValueError:
            errors.append(f"Block date must be YYYY-MM-DD: {r['day']}")
            continue
        blocks.append(
            UnavailableBlock(day=day, start=parse_hhmm(str(r["start"])), end=parse_hhmm(str(r["end"])), reason=str(r.get("reason") or ""))
        )

    notes = st.text_area("Notes", value=existing.notes if existing else "")
    override = AvailabilityOverride(
        available_days=tuple(chosen_days),
        time_windows=windows,
        unavailable_blocks=tuple(blocks),
        notes=notes,
    )
    return override, errors


def _availability_summary(member: StaffMember, config: ScheduleConfig) -> str:
    if member.availability is None:
        return "always"
    parts = []
    for d in config.days:
        intervals = available_intervals(member, d, config)
        if intervals:
            spans = ", ".join(f"{format_hhmm(s)}-{format_hhmm(e)}" for s, e in intervals)
            parts.append(f"{d.strftime('%d.%m')}: {spans}")
    return "; ".join(parts) or "never"


def main() -> None:
    st.title("Staff Management")

    with db_session() as conn:
        config = crud.get_planning_config(conn)
        staff_existing = crud.list_staff(conn)

    tab_add, tab_view = st.tabs(["Add / Update", "View / Delete"])

    with tab_add:
        options = ["(New staff member)"] + [s.staff_id for s in staff_existing]
        edit_id = st.selectbox("Select Staff ID", options=options)
        initial = next((s for s in staff_existing if s.staff_id == edit_id), None)

        if "staff_id" not in st.session_state:
            with db_session() as conn:
                st.session_state["staff_id"] = generate_staff_id(conn)

        c1, c2, c3 = st.columns([1, 2, 1])
        staff_id = c1.text_input(
            "Staff ID",
            value=initial.staff_id if initial else st.session_state.get("staff_id", ""),
            disabled=bool(initial),
        )
        name = c2.text_input("Name", value=initial.name if initial else "", placeholder="e.g., Prof. Weber")
        employment = c3.selectbox(
            "Employment",
            options=[e.value for e in EmploymentType],
            index=[e.value for e in EmploymentType].index(initial.employment.value) if initial else 0,
        )

        areas = st.text_input(
            "Competence areas (comma separated, primary first)",
            value=", ".join(initial.competence_areas) if initial else "",
        )
        protocol_excluded = st.checkbox(
            "Exclude from protocol duty",
            value=initial.protocol_excluded if initial else False,
            help="External and adjunct staff never take protocol duty.",
        )

        st.markdown("### Availability")
        if not config.days:
            st.info("Configure planning days on the Colloquium Planner page to edit availability.")
            availability, errors = (initial.availability if initial else None), []
        else:
            availability, errors = _availability_editor(config, initial.availability if initial else None)

        if st.button("Save Staff Member", type="primary"):
            ok, msg = validate_id(staff_id, "Staff ID")
            if not ok:
                st.error(msg)
                st.stop()
            ok, msg = require_non_empty(name, "Name")
            if not ok:
                st.error(msg)
                st.stop()
            if errors:
                for e in errors:
                    st.error(e)
                st.stop()

            member = StaffMember(
                staff_id=staff_id.strip(),
                name=name.strip(),
                competence_areas=tuple(a.strip() for a in areas.split(",") if a.strip()),
                employment=EmploymentType(employment),
                protocol_excluded=bool(protocol_excluded),
                availability=availability,
            )
            with db_session() as conn:
                crud.upsert_staff(conn, member)
                st.session_state["staff_id"] = generate_staff_id(conn)
            st.success("Staff member saved.")

    with tab_view:
        with db_session() as conn:
            staff = crud.list_staff(conn)

        if not staff:
            st.info("No staff records yet.")
            return

        df = pd.DataFrame(
            [
                {
                    "staff_id": s.staff_id,
                    "name": s.name,
                    "competence_areas": ", ".join(s.competence_areas),
                    "employment": s.employment.value,
                    "can_protocol": s.can_protocol,
                    "availability": _availability_summary(s, config),
                }
                for s in staff
            ]
        )
        st.dataframe(df, use_container_width=True)

        st.divider()
        st.subheader("Delete staff member")
        to_delete = st.selectbox("Select Staff ID", options=[s.staff_id for s in staff], key="delete_staff")
        if st.button("Delete", type="primary"):
            with db_session() as conn:
                crud.delete_staff(conn, to_delete)
            st.success(f"Deleted {to_delete}")
            st.rerun()


if __name__ == "__main__":
    main()
