"""ID generation helpers for the Streamlit UI.

IDs stay short and human-friendly:
- Staff: S001, S002, ...
- Exams: E001, E002, ... (merged team exams use `exam-<hex>`)
"""

from __future__ import annotations

import re
import sqlite3


def _next_numeric_suffix(existing: list[str], prefix: str, width: int) -> int:
    pat = re.compile(rf"^{re.escape(prefix)}(\d{{{width}}})$")
    nums = []
    for x in existing:
        m = pat.match(x)
        if m:
            nums.append(int(m.group(1)))
    return (max(nums) + 1) if nums else 1


def generate_next_id(conn: sqlite3.Connection, *, table: str, id_column: str, prefix: str, width: int = 3) -> str:
    """Generate next ID by scanning existing rows (single-user local app)."""

    cur = conn.execute(f"SELECT {id_column} FROM {table}")
    existing = [r[0] for r in cur.fetchall()]
    n = _next_numeric_suffix(existing, prefix, width)
    return f"{prefix}{n:0{width}d}"


def generate_staff_id(conn: sqlite3.Connection) -> str:
    return generate_next_id(conn, table="staff", id_column="staff_id", prefix="S", width=3)


def generate_exam_id(conn: sqlite3.Connection) -> str:
    return generate_next_id(conn, table="exams", id_column="exam_id", prefix="E", width=3)
