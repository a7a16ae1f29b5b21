from __future__ import annotations

import os
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from skillgate.core.config import settings

_conn: sqlite3.Connection | None = None
_conn_lock = threading.RLock()

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS skill_attempts (
        attempt_id TEXT PRIMARY KEY,
        candidate_id TEXT NOT NULL,
        skill_name TEXT NOT NULL,
        skill_key TEXT NOT NULL,
        attempt_number INTEGER NOT NULL,
        status TEXT NOT NULL,
        started_at TEXT NOT NULL,
        submitted_at TEXT,
        questions_json TEXT NOT NULL,
        answers_json TEXT NOT NULL DEFAULT '[]',
        violation_count INTEGER NOT NULL DEFAULT 0,
        auto_submitted INTEGER NOT NULL DEFAULT 0,
        correct_count INTEGER NOT NULL DEFAULT 0,
        accuracy INTEGER NOT NULL DEFAULT 0,
        verification_status TEXT NOT NULL DEFAULT 'not_verified',
        UNIQUE (candidate_id, skill_key, attempt_number)
    );
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_skill_attempts_open
    ON skill_attempts (candidate_id, skill_key) WHERE status = 'in_progress';
    """,
    """
    CREATE TABLE IF NOT EXISTS job_attempts (
        attempt_id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL,
        candidate_id TEXT NOT NULL,
        attempt_number INTEGER NOT NULL,
        status TEXT NOT NULL,
        started_at TEXT NOT NULL,
        submitted_at TEXT,
        questions_json TEXT NOT NULL,
        answers_json TEXT NOT NULL DEFAULT '[]',
        pass_percent REAL NOT NULL,
        marks_per_question REAL NOT NULL,
        total_marks REAL NOT NULL DEFAULT 0,
        correct_count INTEGER NOT NULL DEFAULT 0,
        score_marks REAL NOT NULL DEFAULT 0,
        percent REAL NOT NULL DEFAULT 0,
        passed INTEGER NOT NULL DEFAULT 0,
        UNIQUE (candidate_id, job_id, attempt_number)
    );
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_job_attempts_open
    ON job_attempts (candidate_id, job_id) WHERE status = 'in_progress';
    """,
    """
    CREATE TABLE IF NOT EXISTS candidate_profiles (
        candidate_id TEXT PRIMARY KEY,
        skills_json TEXT NOT NULL DEFAULT '[]',
        resume_skills_json TEXT NOT NULL DEFAULT '[]',
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS jobs (
        job_id TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'active',
        required_skills_json TEXT NOT NULL DEFAULT '[]',
        assessment_json TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS applications (
        application_id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL,
        candidate_id TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        cover_letter TEXT NOT NULL DEFAULT '',
        match_score INTEGER,
        created_at TEXT NOT NULL,
        UNIQUE (job_id, candidate_id)
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_applications_candidate
    ON applications (candidate_id, created_at);
    """,
)

_TABLES = ("skill_attempts", "job_attempts", "candidate_profiles", "jobs", "applications")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    # Stored timestamps are UTC so text order matches time order; naive values are taken as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def get_connection() -> sqlite3.Connection:
    global _conn
    with _conn_lock:
        if _conn is not None:
            return _conn

        db_path = settings.db_path
        if db_path != ":memory:":
            directory = os.path.dirname(db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        conn = sqlite3.connect(
            db_path,
            check_same_thread=False,
            timeout=5,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        for statement in _SCHEMA:
            conn.execute(statement)
        _conn = conn
        return _conn


def init_db() -> None:
    get_connection()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Serialized write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so
    read-then-write sequences inside the block (attempt numbering, open
    attempt checks) cannot interleave with another writer.
    """
    conn = get_connection()
    with _conn_lock:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        conn.commit()


def fetch_one(sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
    conn = get_connection()
    with _conn_lock:
        return conn.execute(sql, params).fetchone()


def fetch_all(sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
    conn = get_connection()
    with _conn_lock:
        return conn.execute(sql, params).fetchall()


def reset_database() -> None:
    conn = get_connection()
    with _conn_lock:
        for table in _TABLES:
            conn.execute(f"DELETE FROM {table}")
