"""Exams + Room Mappings page."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium.models import Degree, Exam, RoomMapping
from ui.database import crud
from ui.database.db import db_session
from ui.utils.id_generator import generate_exam_id
from ui.utils.validators import require_non_empty, validate_exam_fields, validate_id, validate_unique


def _exam_form(staff_options: dict) -> None:
    with db_session() as conn:
        next_id = generate_exam_id(conn)

    with st.form("exam_form", clear_on_submit=True):
        c1, c2, c3 = st.columns([1, 1, 2])
        exam_id = c1.text_input("Exam ID", value=next_id)
        degree = c2.selectbox("Degree", options=[d.value for d in Degree])
        area = c3.text_input("Competence area (BA)", placeholder="e.g., Interaction Design")

        c4, c5 = st.columns(2)
        student = c4.text_input("Student")
        topic = c5.text_input("Topic")

        ids = list(staff_options.keys())
        c6, c7 = st.columns(2)
        examiner_a = c6.selectbox("Examiner 1", options=ids, format_func=lambda k: staff_options[k])
        examiner_b = c7.selectbox("Examiner 2", options=[""] + ids, format_func=lambda k: staff_options.get(k, "-"))

        c8, c9 = st.columns(2)
        is_public = c8.checkbox("Public", value=True)
        integrated = c9.checkbox(
            "Integrated / cross-field",
            help="Follows the examiners' rooms like MA exams.",
        )

        submitted = st.form_submit_button("Save Exam")

    if not submitted:
        return

    ok, msg = validate_id(exam_id, "Exam ID")
    if ok:
        ok, msg = validate_exam_fields(
            degree=degree, competence_area=area, examiner_a=examiner_a or "", examiner_b=examiner_b or ""
        )
    if not ok:
        st.error(msg)
        st.stop()

    exam = Exam(
        exam_id=exam_id.strip(),
        degree=Degree(degree),
        examiner_a=examiner_a,
        examiner_b=examiner_b or "",
        competence_area=area.strip() or None,
        student_name=student.strip(),
        topic=topic.strip(),
        is_public=bool(is_public),
        integrated=bool(integrated),
    )
    with db_session() as conn:
        crud.upsert_exam(conn, exam)
    st.success(f"Saved {exam.exam_id}.")


def _room_mapping_form() -> None:
    with st.form("mapping_form", clear_on_submit=True):
        c1, c2 = st.columns([1, 2])
        scope = c1.selectbox("Degree scope", options=[d.value for d in Degree])
        area = c2.text_input("Competence area")
        rooms = st.text_input("Rooms (comma separated, in priority order)")
        submitted = st.form_submit_button("Save Mapping")

    if not submitted:
        return

    room_list = [r.strip() for r in rooms.split(",") if r.strip()]
    for ok, msg in (
        require_non_empty(area, "Competence area"),
        require_non_empty(rooms, "Rooms"),
        validate_unique(room_list, "Rooms"),
    ):
        if not ok:
            st.error(msg)
            st.stop()

    with db_session() as conn:
        crud.upsert_room_mapping(
            conn, RoomMapping(degree_scope=Degree(scope), competence_area=area.strip(), rooms=tuple(room_list))
        )
    st.success("Mapping saved.")


def main() -> None:
    st.title("Exams & Rooms")

    with db_session() as conn:
        staff = crud.list_staff(conn)

    if not staff:
        st.warning("Add at least one staff member first (Staff page).")
        return

    staff_options = {s.staff_id: f"{s.name} ({s.staff_id})" for s in staff}
    tab_exams, tab_rooms = st.tabs(["Exams", "Room Mappings"])

    with tab_exams:
        _exam_form(staff_options)

        with db_session() as conn:
            exams = crud.list_exams(conn)
        if exams:
            df = pd.DataFrame(
                [
                    {
                        "exam_id": x.exam_id,
                        "degree": x.degree.value,
                        "competence_area": x.competence_area or "",
                        "student": x.label,
                        "examiners": ", ".join(staff_options.get(s, s) for s in x.all_examiner_ids),
                        "team": x.is_team,
                    }
                    for x in exams
                ]
            )
            st.dataframe(df, use_container_width=True)

            to_delete = st.selectbox("Delete exam", options=[x.exam_id for x in exams])
            if st.button("Delete exam"):
                with db_session() as conn:
                    crud.delete_exam(conn, to_delete)
                st.rerun()

    with tab_rooms:
        _room_mapping_form()

        with db_session() as conn:
            mappings = crud.list_room_mappings(conn)
        if mappings:
            st.dataframe(
                pd.DataFrame(
                    [
                        {
                            "mapping_id": m.mapping_id,
                            "degree_scope": m.degree_scope.value,
                            "competence_area": m.competence_area,
                            "rooms": ", ".join(m.rooms),
                        }
                        for m in mappings
                    ]
                ),
                use_container_width=True,
            )
            to_delete = st.selectbox("Delete mapping", options=[m.mapping_id for m in mappings])
            if st.button("Delete mapping"):
                with db_session() as conn:
                    crud.delete_room_mapping(conn, to_delete)
                st.rerun()


if __name__ == "__main__":
    main()
