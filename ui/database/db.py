"""SQLite database connection + schema initialization.

- SQLite file stored locally (persists between restarts)
- schema created on first run
- foreign keys enabled

The Streamlit UI and the CRUD layer import this module.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


DEFAULT_DB_FILENAME = "colloquium.db"


@dataclass(frozen=True)
class DBConfig:
    """Database configuration for the app."""

    db_path: Path


def default_db_path() -> Path:
    """Resolve DB path.

    Uses `COLLOQUIUM_DB` env var if set, else stores under `ui/database/`.
    """

    override = os.getenv("COLLOQUIUM_DB")
    if override:
        return Path(override).expanduser().resolve()

    return (Path(__file__).resolve().parent / DEFAULT_DB_FILENAME).resolve()


def get_connection(config: Optional[DBConfig] = None) -> sqlite3.Connection:
    """Create a SQLite connection with sane defaults."""

    db_path = config.db_path if config else default_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA foreign_keys = ON;")
    logger.debug("Opened %s", db_path)
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create all required tables if they do not exist."""

    conn.executescript(
        """
        -- Single-row planning parameters (ScheduleConfig as JSON)
        CREATE TABLE IF NOT EXISTS planning_config (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            config_json TEXT NOT NULL DEFAULT '{}',
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        INSERT OR IGNORE INTO planning_config (id) VALUES (1);

        CREATE TABLE IF NOT EXISTS staff (
            staff_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            competence_areas_json TEXT NOT NULL DEFAULT '[]',
            employment TEXT NOT NULL DEFAULT 'internal' CHECK (employment IN ('internal','external','adjunct')),
            protocol_excluded INTEGER NOT NULL DEFAULT 0 CHECK (protocol_excluded IN (0,1)),
            availability_json TEXT
        );

        CREATE TABLE IF NOT EXISTS exams (
            exam_id TEXT PRIMARY KEY,
            degree TEXT NOT NULL CHECK (degree IN ('BA','MA')),
            examiner_a TEXT NOT NULL DEFAULT '',
            examiner_b TEXT NOT NULL DEFAULT '',
            competence_area TEXT,
            student_name TEXT NOT NULL DEFAULT '',
            topic TEXT NOT NULL DEFAULT '',
            is_public INTEGER NOT NULL DEFAULT 1 CHECK (is_public IN (0,1)),
            integrated INTEGER NOT NULL DEFAULT 0 CHECK (integrated IN (0,1)),
            -- Team (merged) exams
            examiner_ids_json TEXT NOT NULL DEFAULT '[]',
            student_names_json TEXT NOT NULL DEFAULT '[]',
            duration_minutes INTEGER,
            source_exam_ids_json TEXT NOT NULL DEFAULT '[]'
        );

        CREATE TABLE IF NOT EXISTS room_mappings (
            mapping_id TEXT PRIMARY KEY,
            degree_scope TEXT NOT NULL CHECK (degree_scope IN ('BA','MA')),
            competence_area TEXT NOT NULL,
            rooms_json TEXT NOT NULL DEFAULT '[]'
        );

        -- -----------------------------
        -- Schedule versions + events
        -- -----------------------------

        CREATE TABLE IF NOT EXISTS schedule_versions (
            version_id TEXT PRIMARY KEY,
            created_at TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','published')),
            notes TEXT NOT NULL DEFAULT ''
        );

        -- At most one published version
        CREATE UNIQUE INDEX IF NOT EXISTS uq_schedule_versions_published
        ON schedule_versions(status) WHERE status = 'published';

        CREATE TABLE IF NOT EXISTS scheduled_events (
            event_id TEXT PRIMARY KEY,
            version_id TEXT NOT NULL,
            exam_id TEXT NOT NULL,
            day_date TEXT NOT NULL,   -- ISO date YYYY-MM-DD
            room TEXT NOT NULL,
            start_time TEXT NOT NULL, -- HH:MM
            end_time TEXT NOT NULL,   -- HH:MM
            protocolist_id TEXT,
            status TEXT NOT NULL DEFAULT 'scheduled' CHECK (status IN ('scheduled','cancelled')),
            cancelled_reason TEXT,
            cancelled_at TEXT,
            is_team INTEGER NOT NULL DEFAULT 0 CHECK (is_team IN (0,1)),
            duration_minutes INTEGER,
            FOREIGN KEY (version_id) REFERENCES schedule_versions(version_id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_scheduled_events_version ON scheduled_events(version_id);
        """
    )
    conn.commit()


class db_session:
    """Context manager that opens a connection and ensures schema exists."""

    def __init__(self, config: Optional[DBConfig] = None):
        self._config = config
        self._conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        self._conn = get_connection(self._config)
        init_db(self._conn)
        return self._conn

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._conn is not None
        if exc_type is None:
            self._conn.commit()
        else:
            logger.warning("Rolling back after %s", exc_type.__name__)
            self._conn.rollback()
        self._conn.close()
        self._conn = None
