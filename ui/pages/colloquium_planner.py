"""Colloquium Planner page.

Loads staff, exams, room mappings and the planning config from SQLite, runs
`colloquium.generate_schedule`, stores the result as a draft version and
offers the manual edits of a live plan (cancel, move, change protocolist,
merge two sessions) plus downloads.
"""

from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium import (
    PlanningInput,
    ScheduleConfig,
    Severity,
    active_version,
    cancel_event,
    change_protocolist,
    compute_metrics,
    find_move_slots,
    generate_schedule,
    merge_exams,
    move_event,
    rank_protocolist_candidates,
    validate_merge,
)
from colloquium.models import PlanningError, Slot
from colloquium.timeutils import format_hhmm, parse_hhmm
from ui.database import crud
from ui.database.db import db_session
from ui.utils.schedule_cache import cached_plan, compute_planning_input_hash, store_plan
from ui.utils.validators import validate_time_range
from utils.plan_export import (
    conflicts_df,
    day_gantt_png_bytes,
    plan_csv_bytes,
    plan_df,
    plan_reports_zip_bytes,
    plan_workbook_bytes,
    staff_workload_df,
)


def _build_input_from_db() -> PlanningInput:
    with db_session() as conn:
        config = crud.get_planning_config(conn)
        staff = crud.list_staff(conn)
        exams = crud.list_exams(conn)
        mappings = crud.list_room_mappings(conn)

    return PlanningInput(
        config=config,
        staff=tuple(staff),
        exams=tuple(exams),
        room_mappings=tuple(mappings),
    )


def _weekdays_between(start: date, end: date) -> List[date]:
    out: List[date] = []
    cur = start
    while cur <= end:
        if cur.weekday() < 5:
            out.append(cur)
        cur += timedelta(days=1)
    return out


def _settings_section(config: ScheduleConfig) -> None:
    st.subheader("Planning settings")

    with st.form("planning_settings"):
        first = config.days[0] if config.days else date.today()
        last = config.days[-1] if config.days else first + timedelta(days=2)
        span = st.date_input("Planning period (weekdays only)", value=(first, last))

        rooms = st.text_input("Rooms (comma separated)", value=", ".join(config.rooms))

        c1, c2, c3, c4 = st.columns(4)
        day_start = c1.text_input("Day start", value=format_hhmm(config.day_start))
        day_end = c2.text_input("Day end", value=format_hhmm(config.day_end))
        ba = c3.number_input("BA minutes", min_value=15, max_value=240, value=config.ba_slot_minutes)
        ma = c4.number_input("MA minutes", min_value=15, max_value=240, value=config.ma_slot_minutes)

        saved = st.form_submit_button("Save settings")

    if not saved:
        return

    ok, msg = validate_time_range(day_start, day_end, "Working day")
    if not ok:
        st.error(msg)
        st.stop()
    if not isinstance(span, (tuple, list)) or len(span) != 2:
        st.error("Pick a start and an end date.")
        st.stop()

    new_config = ScheduleConfig(
        days=tuple(_weekdays_between(span[0], span[1])),
        rooms=tuple(r.strip() for r in rooms.split(",") if r.strip()),
        day_start=parse_hhmm(day_start),
        day_end=parse_hhmm(day_end),
        ba_slot_minutes=int(ba),
        ma_slot_minutes=int(ma),
    )
    with db_session() as conn:
        crud.save_planning_config(conn, new_config)
    st.success("Settings saved.")
    st.rerun()


def _generate_section(planning: PlanningInput) -> None:
    st.subheader("Generate plan")

    input_hash = compute_planning_input_hash(planning)
    cached = cached_plan(st.session_state, input_hash)
    if cached:
        st.caption(f"Inputs unchanged since the last run (version {cached['version_id']}).")

    notes = st.text_input("Version notes", value="")
    if st.button("Generate & save as draft", type="primary"):
        with db_session() as conn:
            version = crud.create_schedule_version(conn, notes=notes)

        with st.spinner("Scheduling..."):
            events, conflicts = generate_schedule(
                planning.exams, planning.staff, planning.room_mappings, planning.config, version.version_id
            )

        with db_session() as conn:
            crud.replace_scheduled_events(conn, version.version_id, events)

        store_plan(
            st.session_state,
            input_hash=input_hash,
            version_id=version.version_id,
            events=events,
            conflicts=conflicts,
        )
        st.success(f"Saved {len(events)} sessions as draft {version.version_id}.")

    entry = cached_plan(st.session_state, input_hash)
    if entry and entry["conflicts"]:
        errors = [c for c in entry["conflicts"] if c.severity is Severity.ERROR]
        st.warning(f"{len(errors)} exams could not be placed; {len(entry['conflicts']) - len(errors)} warnings.")
        st.dataframe(conflicts_df(entry["conflicts"]), use_container_width=True)


def _edit_section(planning: PlanningInput, events, version_id: str) -> None:
    st.subheader("Edit sessions")

    exams_by_id = {x.exam_id: x for x in planning.exams}
    active = [e for e in events if e.is_active]
    if not active:
        st.info("No active sessions.")
        return

    def label(e) -> str:
        exam = exams_by_id.get(e.exam_id)
        return f"{e.day.isoformat()} {e.start_time} {e.room} | {exam.label if exam else e.exam_id}"

    event = st.selectbox("Session", options=active, format_func=label)
    tab_cancel, tab_move, tab_protocol = st.tabs(["Cancel", "Move", "Change protocolist"])

    with tab_cancel:
        reason = st.text_input("Reason")
        if st.button("Cancel session"):
            updated = cancel_event(events, event.event_id, reason or None)
            with db_session() as conn:
                crud.replace_scheduled_events(conn, version_id, updated)
            st.rerun()

    with tab_move:
        slots = find_move_slots(
            event, events, list(planning.exams), list(planning.staff), list(planning.room_mappings), planning.config
        )
        if not slots:
            st.info("No free slot found for this session.")
        else:
            choice = st.selectbox(
                "Free slots",
                options=slots,
                format_func=lambda s: f"{s.day.isoformat()} {s.start_time}-{s.end_time} {s.room}",
            )
            if st.button("Move session"):
                updated = move_event(events, event.event_id, choice.day, choice.room, choice.start)
                with db_session() as conn:
                    crud.replace_scheduled_events(conn, version_id, updated)
                st.rerun()

    with tab_protocol:
        candidates = rank_protocolist_candidates(
            event, events, list(planning.exams), list(planning.staff), planning.config
        )
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "name": c.staff.name,
                        "score": c.score,
                        "protocols": c.protocol_count,
                        "supervisions": c.supervision_count,
                        "notes": "; ".join(c.reasons),
                    }
                    for c in candidates
                ]
            ),
            use_container_width=True,
        )
        eligible = [c for c in candidates if c.eligible]
        if eligible:
            pick = st.selectbox("New protocolist", options=eligible, format_func=lambda c: c.staff.name)
            if st.button("Change protocolist"):
                updated = change_protocolist(events, event.event_id, pick.staff.staff_id)
                with db_session() as conn:
                    crud.replace_scheduled_events(conn, version_id, updated)
                st.rerun()


def _merge_protocolist_options(staff, examiner_ids) -> List:
    """Staff who may take protocol duty for a team session."""

    return [s for s in staff if s.can_protocol and s.staff_id not in examiner_ids]


def _merge_section(planning: PlanningInput, events, versions) -> None:
    st.subheader("Merge two sessions into a team session")

    exams_by_id = {x.exam_id: x for x in planning.exams}
    singles = [
        exams_by_id[e.exam_id]
        for e in events
        if e.is_active and e.exam_id in exams_by_id and not exams_by_id[e.exam_id].is_team
    ]
    if len(singles) < 2:
        st.info("At least two scheduled single sessions are needed.")
        return

    c1, c2 = st.columns(2)
    first = c1.selectbox("First exam", options=singles, format_func=lambda x: f"{x.label} ({x.degree.value})")
    second = c2.selectbox(
        "Second exam",
        options=[x for x in singles if x.exam_id != first.exam_id and x.degree is first.degree],
        format_func=lambda x: x.label,
    )
    if second is None:
        st.info("No other exam of the same degree.")
        return

    def propose(protocolist_id: Optional[str] = None):
        return validate_merge(
            first.exam_id,
            second.exam_id,
            planning.exams,
            events,
            versions,
            planning.staff,
            planning.config,
            protocolist_id=protocolist_id,
            room_mappings=planning.room_mappings,
        )

    proposal = propose()
    if proposal is None:
        st.error("These exams cannot be merged.")
        return

    candidates = _merge_protocolist_options(planning.staff, proposal.examiner_ids)
    if not candidates:
        st.error("Nobody outside the examiner team can take protocol duty.")
        return
    ids = [s.staff_id for s in candidates]
    protocolist = st.selectbox(
        "Protocolist",
        options=candidates,
        index=ids.index(proposal.protocolist_id) if proposal.protocolist_id in ids else 0,
        format_func=lambda s: s.name,
    )
    if protocolist.staff_id != proposal.protocolist_id:
        proposal = propose(protocolist.staff_id)

    target: Optional[Slot] = proposal.target_slot
    if proposal.validation.valid:
        st.success(f"Slot {target.day.isoformat()} {format_hhmm(target.start)} {target.room} is free.")
    else:
        for msg in proposal.validation.conflicts:
            st.error(msg)
        if not proposal.alternative_slots:
            st.warning("No alternative slot found.")
            return
        alt = st.selectbox(
            "Alternative slots",
            options=proposal.alternative_slots,
            format_func=lambda s: f"{s.day.isoformat()} {s.start_time}-{s.end_time} {s.room}",
        )
        target = Slot(day=alt.day, room=alt.room, start=alt.start, duration_minutes=alt.end - alt.start)
    for msg in proposal.validation.warnings:
        st.warning(msg)

    if st.button("Merge"):
        outcome = merge_exams(
            first.exam_id,
            second.exam_id,
            planning.exams,
            events,
            versions,
            planning.staff,
            planning.config,
            protocolist_id=protocolist.staff_id,
            target=target,
        )
        if outcome is None:
            st.error("Merge failed.")
            return
        with db_session() as conn:
            crud.upsert_exam(conn, outcome.merged_exam)
            crud.replace_scheduled_events(conn, outcome.merged_event.version_id, outcome.events)
        if outcome.moved_events:
            st.info(f"Moved {len(outcome.moved_events)} later session(s) into the freed slot.")
        st.rerun()


def main() -> None:
    st.title("Colloquium Planner")
    st.caption("Greedy slot search with protocolist balancing, break rule and room mappings.")

    try:
        planning = _build_input_from_db()
    except PlanningError as exc:
        st.error(f"Stored data is invalid: {exc}")
        return

    _settings_section(planning.config)

    if not planning.config.days or not planning.config.rooms:
        st.warning("Configure planning days and rooms first.")
        return
    if not planning.exams:
        st.warning("Add at least one exam first (Exams page).")
        return

    st.divider()
    _generate_section(planning)

    with db_session() as conn:
        versions = crud.list_schedule_versions(conn)
    if not versions:
        return

    st.divider()
    st.subheader("Versions")
    current = active_version(versions)
    version = st.selectbox(
        "Version",
        options=versions,
        index=versions.index(current) if current in versions else 0,
        format_func=lambda v: f"{v.created_at:%Y-%m-%d %H:%M} {v.version_id} ({v.status.value}) {v.notes}",
    )
    if st.button("Publish this version"):
        with db_session() as conn:
            crud.publish_schedule_version(conn, version.version_id)
        st.rerun()

    with db_session() as conn:
        events = crud.list_scheduled_events(conn, version.version_id)

    metrics = compute_metrics(events, planning.exams, planning.config)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Scheduled", int(metrics["scheduled"]))
    c2.metric("Unscheduled", int(metrics["unscheduled"]))
    c3.metric("Cancelled", int(metrics["cancelled"]))
    c4.metric("Protocols (min-max)", f"{int(metrics['protocol_min'])}-{int(metrics['protocol_max'])}")

    st.dataframe(plan_df(events, planning.exams, planning.staff), use_container_width=True)
    with st.expander("Staff workload"):
        st.dataframe(staff_workload_df(events, planning.exams, planning.staff), use_container_width=True)

    day = st.selectbox("Day view", options=list(planning.config.days), format_func=lambda d: d.isoformat())
    st.image(
        day_gantt_png_bytes(
            events, planning.exams, day, day_start=planning.config.day_start, day_end=planning.config.day_end
        )
    )

    st.divider()
    _edit_section(planning, events, version.version_id)

    st.divider()
    _merge_section(planning, events, [version])

    st.divider()
    st.subheader("Downloads")
    c1, c2, c3 = st.columns(3)
    c1.download_button(
        "Workbook (.xlsx)",
        data=plan_workbook_bytes(events, planning.exams, planning.staff),
        file_name="colloquium_plan.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    c2.download_button("Plan (.csv)", data=plan_csv_bytes(events, planning.exams, planning.staff), file_name="colloquium_plan.csv")
    c3.download_button(
        "All reports (.zip)",
        data=plan_reports_zip_bytes(events, planning.exams, planning.staff),
        file_name="colloquium_reports.zip",
    )


if __name__ == "__main__":
    main()
