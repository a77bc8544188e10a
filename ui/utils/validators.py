"""Validation helpers for Streamlit forms.

Each helper returns `(ok, message)` so pages can show `st.error(msg)`.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

from colloquium.models import PlanningError
from colloquium.timeutils import parse_hhmm


_ID_RE = re.compile(r"^[A-Za-z0-9_-]{2,32}$")


def require_non_empty(value: str, field: str) -> Tuple[bool, str]:
    if not value or not value.strip():
        return False, f"{field} cannot be empty"
    return True, ""


def validate_id(value: str, field: str) -> Tuple[bool, str]:
    ok, msg = require_non_empty(value, field)
    if not ok:
        return ok, msg
    if not _ID_RE.match(value.strip()):
        return False, f"{field} must be 2-32 chars (letters/numbers/_/-)"
    return True, ""


def validate_time_range(start: str, end: str, field: str) -> Tuple[bool, str]:
    """Both values must be HH:MM and `end` must be after `start`."""

    try:
        s, e = parse_hhmm(start), parse_hhmm(end)
    except PlanningError as exc:
        return False, f"{field}: {exc}"
    if e <= s:
        return False, f"{field}: end must be after start"
    return True, ""


def validate_exam_fields(
    *,
    degree: str,
    competence_area: Optional[str],
    examiner_a: str,
    examiner_b: str,
) -> Tuple[bool, str]:
    if degree == "BA" and not (competence_area or "").strip():
        return False, "BA exams need a competence area"
    if not examiner_a:
        return False, "Examiner 1 is required"
    if examiner_b and examiner_a == examiner_b:
        return False, "Examiner 1 and Examiner 2 must differ"
    return True, ""


def validate_unique(values: Iterable[str], field: str) -> Tuple[bool, str]:
    vals = [v.strip() for v in values if v and v.strip()]
    if len(vals) != len(set(vals)):
        return False, f"{field} contains duplicates"
    return True, ""
