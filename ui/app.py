"""Main Streamlit app entrypoint.

Run:
    streamlit run ui/app.py

"""

from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs this file
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium.versions import active_version
from ui.database import crud
from ui.database.db import db_session


st.set_page_config(
    page_title="Colloquium Planner",
    page_icon="🗓️",
    layout="wide",
)


def _inject_css() -> None:
    st.markdown(
        """
        <style>
        .block-container { padding-top: 1.2rem; }
        div[data-testid="stMetric"] { background: #0b1220; border: 1px solid rgba(255,255,255,0.08); padding: 12px; border-radius: 12px; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    _inject_css()

    st.sidebar.title("Colloquium Planner")
    st.sidebar.caption("Oral exam sessions, rooms and protocol duty")

    st.title("Dashboard")
    st.write(
        "Use the sidebar pages to manage staff, exams and room mappings. "
        "The Colloquium Planner page generates, edits and publishes the plan."
    )

    with db_session() as conn:
        staff = crud.list_staff(conn)
        exams = crud.list_exams(conn)
        mappings = crud.list_room_mappings(conn)
        versions = crud.list_schedule_versions(conn)
        current = active_version(versions)
        events = crud.list_scheduled_events(conn, current.version_id) if current else []

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Staff", len(staff))
    c2.metric("Exams", len(exams))
    c3.metric("Room mappings", len(mappings))
    c4.metric("Scheduled sessions", sum(1 for e in events if e.is_active))

    st.divider()
    if current is None:
        st.info("No plan yet. Add staff and exams, then generate a plan on the Colloquium Planner page.")
    else:
        st.caption(f"Active version: {current.version_id} ({current.status.value})")

    st.subheader("What’s next")
    st.info(
        "Add Staff first (competence areas, employment, availability), then Exams and Room Mappings, "
        "then configure days/rooms and generate the plan."
    )


if __name__ == "__main__":
    main()
