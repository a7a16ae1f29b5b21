from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any

from skillgate.storage.db import fetch_all, fetch_one, from_iso, to_iso, transaction, utc_now


def _skill_row_to_record(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "attempt_id": row["attempt_id"],
        "candidate_id": row["candidate_id"],
        "skill_name": row["skill_name"],
        "skill_key": row["skill_key"],
        "attempt_number": int(row["attempt_number"]),
        "status": row["status"],
        "started_at": from_iso(row["started_at"]),
        "submitted_at": from_iso(row["submitted_at"]),
        "questions": json.loads(row["questions_json"] or "[]"),
        "answers": json.loads(row["answers_json"] or "[]"),
        "violation_count": int(row["violation_count"] or 0),
        "auto_submitted": bool(row["auto_submitted"]),
        "correct_count": int(row["correct_count"] or 0),
        "accuracy": int(row["accuracy"] or 0),
        "verification_status": row["verification_status"],
    }


def _job_row_to_record(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "attempt_id": row["attempt_id"],
        "job_id": row["job_id"],
        "candidate_id": row["candidate_id"],
        "attempt_number": int(row["attempt_number"]),
        "status": row["status"],
        "started_at": from_iso(row["started_at"]),
        "submitted_at": from_iso(row["submitted_at"]),
        "questions": json.loads(row["questions_json"] or "[]"),
        "answers": json.loads(row["answers_json"] or "[]"),
        "pass_percent": float(row["pass_percent"]),
        "marks_per_question": float(row["marks_per_question"]),
        "total_marks": float(row["total_marks"] or 0),
        "correct_count": int(row["correct_count"] or 0),
        "score_marks": float(row["score_marks"] or 0),
        "percent": float(row["percent"] or 0),
        "passed": bool(row["passed"]),
    }


# -- per-skill attempts -------------------------------------------------------


def find_open_skill_attempt(candidate_id: str, skill_key: str) -> dict[str, Any] | None:
    row = fetch_one(
        """
        SELECT * FROM skill_attempts
        WHERE candidate_id = ? AND skill_key = ? AND status = 'in_progress'
        """,
        (candidate_id, skill_key),
    )
    return _skill_row_to_record(row) if row else None


def recent_skill_question_hashes(candidate_id: str, skill_key: str, limit: int) -> set[str]:
    rows = fetch_all(
        """
        SELECT questions_json FROM skill_attempts
        WHERE candidate_id = ? AND skill_key = ?
        ORDER BY attempt_number DESC
        LIMIT ?
        """,
        (candidate_id, skill_key, limit),
    )
    hashes: set[str] = set()
    for row in rows:
        for question in json.loads(row["questions_json"] or "[]"):
            content_hash = question.get("content_hash")
            if content_hash:
                hashes.add(content_hash)
    return hashes


def create_skill_attempt(
    *,
    candidate_id: str,
    skill_name: str,
    skill_key: str,
    questions: list[dict[str, Any]],
) -> tuple[dict[str, Any], bool]:
    """Insert a new in-progress attempt, or return the open one.

    Returns ``(record, created)``. The open-attempt check and the next
    attempt number are read inside the same write transaction as the insert.
    """
    with transaction() as conn:
        open_row = conn.execute(
            """
            SELECT * FROM skill_attempts
            WHERE candidate_id = ? AND skill_key = ? AND status = 'in_progress'
            """,
            (candidate_id, skill_key),
        ).fetchone()
        if open_row is not None:
            return _skill_row_to_record(open_row), False

        latest = conn.execute(
            "SELECT COALESCE(MAX(attempt_number), 0) FROM skill_attempts WHERE candidate_id = ? AND skill_key = ?",
            (candidate_id, skill_key),
        ).fetchone()
        attempt_number = int(latest[0]) + 1
        attempt_id = uuid.uuid4().hex
        conn.execute(
            """
            INSERT INTO skill_attempts (
                attempt_id, candidate_id, skill_name, skill_key, attempt_number,
                status, started_at, questions_json
            ) VALUES (?, ?, ?, ?, ?, 'in_progress', ?, ?)
            """,
            (
                attempt_id,
                candidate_id,
                skill_name,
                skill_key,
                attempt_number,
                to_iso(utc_now()),
                json.dumps(questions, ensure_ascii=False),
            ),
        )
        row = conn.execute("SELECT * FROM skill_attempts WHERE attempt_id = ?", (attempt_id,)).fetchone()
    return _skill_row_to_record(row), True


def get_skill_attempt(attempt_id: str) -> dict[str, Any] | None:
    row = fetch_one("SELECT * FROM skill_attempts WHERE attempt_id = ?", (attempt_id,))
    return _skill_row_to_record(row) if row else None


def finalize_skill_attempt(
    attempt_id: str,
    *,
    status: str,
    answers: list[dict[str, Any]],
    violation_count: int,
    auto_submitted: bool,
    correct_count: int,
    accuracy: int,
    verification_status: str,
) -> dict[str, Any] | None:
    """Write the graded outcome. Returns ``None`` when the attempt was already terminal."""
    with transaction() as conn:
        cur = conn.execute(
            """
            UPDATE skill_attempts
            SET status = ?, submitted_at = ?, answers_json = ?, violation_count = ?,
                auto_submitted = ?, correct_count = ?, accuracy = ?, verification_status = ?
            WHERE attempt_id = ? AND submitted_at IS NULL
            """,
            (
                status,
                to_iso(utc_now()),
                json.dumps(answers, ensure_ascii=False),
                violation_count,
                int(auto_submitted),
                correct_count,
                accuracy,
                verification_status,
                attempt_id,
            ),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT * FROM skill_attempts WHERE attempt_id = ?", (attempt_id,)).fetchone()
    return _skill_row_to_record(row)


def list_skill_attempts(candidate_id: str, skill_key: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
    if skill_key:
        rows = fetch_all(
            """
            SELECT * FROM skill_attempts
            WHERE candidate_id = ? AND skill_key = ?
            ORDER BY started_at DESC, attempt_number DESC
            LIMIT ?
            """,
            (candidate_id, skill_key, limit),
        )
    else:
        rows = fetch_all(
            """
            SELECT * FROM skill_attempts
            WHERE candidate_id = ?
            ORDER BY started_at DESC, attempt_number DESC
            LIMIT ?
            """,
            (candidate_id, limit),
        )
    return [_skill_row_to_record(row) for row in rows]


def list_verified_skill_attempts(candidate_id: str) -> list[dict[str, Any]]:
    rows = fetch_all(
        """
        SELECT * FROM skill_attempts
        WHERE candidate_id = ? AND status = 'submitted' AND verification_status = 'verified'
        """,
        (candidate_id,),
    )
    return [_skill_row_to_record(row) for row in rows]


def insert_skill_attempt_records(records: list[dict[str, Any]]) -> None:
    """Store fully formed attempt rows as-is, all or nothing (imports of historical attempts)."""
    with transaction() as conn:
        for record in records:
            conn.execute(
                """
                INSERT INTO skill_attempts (
                    attempt_id, candidate_id, skill_name, skill_key, attempt_number, status,
                    started_at, submitted_at, questions_json, answers_json, violation_count,
                    auto_submitted, correct_count, accuracy, verification_status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record["attempt_id"],
                    record["candidate_id"],
                    record["skill_name"],
                    record["skill_key"],
                    record["attempt_number"],
                    record["status"],
                    to_iso(record["started_at"]),
                    to_iso(record.get("submitted_at")),
                    json.dumps(record.get("questions", []), ensure_ascii=False),
                    json.dumps(record.get("answers", []), ensure_ascii=False),
                    int(record.get("violation_count", 0)),
                    int(bool(record.get("auto_submitted", False))),
                    int(record.get("correct_count", 0)),
                    int(record.get("accuracy", 0)),
                    record.get("verification_status", "not_verified"),
                ),
            )


# -- per-job attempts ---------------------------------------------------------


def create_job_attempt(
    *,
    candidate_id: str,
    job_id: str,
    questions: list[dict[str, Any]],
    pass_percent: float,
    marks_per_question: float,
) -> tuple[dict[str, Any], bool]:
    with transaction() as conn:
        open_row = conn.execute(
            """
            SELECT * FROM job_attempts
            WHERE candidate_id = ? AND job_id = ? AND status = 'in_progress'
            """,
            (candidate_id, job_id),
        ).fetchone()
        if open_row is not None:
            return _job_row_to_record(open_row), False

        latest = conn.execute(
            "SELECT COALESCE(MAX(attempt_number), 0) FROM job_attempts WHERE candidate_id = ? AND job_id = ?",
            (candidate_id, job_id),
        ).fetchone()
        attempt_number = int(latest[0]) + 1
        attempt_id = uuid.uuid4().hex
        conn.execute(
            """
            INSERT INTO job_attempts (
                attempt_id, job_id, candidate_id, attempt_number, status, started_at,
                questions_json, pass_percent, marks_per_question, total_marks
            ) VALUES (?, ?, ?, ?, 'in_progress', ?, ?, ?, ?, ?)
            """,
            (
                attempt_id,
                job_id,
                candidate_id,
                attempt_number,
                to_iso(utc_now()),
                json.dumps(questions, ensure_ascii=False),
                pass_percent,
                marks_per_question,
                marks_per_question * len(questions),
            ),
        )
        row = conn.execute("SELECT * FROM job_attempts WHERE attempt_id = ?", (attempt_id,)).fetchone()
    return _job_row_to_record(row), True


def get_job_attempt(attempt_id: str) -> dict[str, Any] | None:
    row = fetch_one("SELECT * FROM job_attempts WHERE attempt_id = ?", (attempt_id,))
    return _job_row_to_record(row) if row else None


def latest_job_attempt(candidate_id: str, job_id: str) -> dict[str, Any] | None:
    row = fetch_one(
        """
        SELECT * FROM job_attempts
        WHERE candidate_id = ? AND job_id = ?
        ORDER BY attempt_number DESC
        LIMIT 1
        """,
        (candidate_id, job_id),
    )
    return _job_row_to_record(row) if row else None


def has_passed_job_attempt(candidate_id: str, job_id: str) -> bool:
    row = fetch_one(
        """
        SELECT 1 FROM job_attempts
        WHERE candidate_id = ? AND job_id = ? AND status = 'submitted' AND passed = 1
        LIMIT 1
        """,
        (candidate_id, job_id),
    )
    return row is not None


def finalize_job_attempt(
    attempt_id: str,
    *,
    answers: list[dict[str, Any]],
    correct_count: int,
    total_marks: float,
    score_marks: float,
    percent: float,
    passed: bool,
) -> dict[str, Any] | None:
    with transaction() as conn:
        cur = conn.execute(
            """
            UPDATE job_attempts
            SET status = 'submitted', submitted_at = ?, answers_json = ?, correct_count = ?,
                total_marks = ?, score_marks = ?, percent = ?, passed = ?
            WHERE attempt_id = ? AND submitted_at IS NULL
            """,
            (
                to_iso(utc_now()),
                json.dumps(answers, ensure_ascii=False),
                correct_count,
                total_marks,
                score_marks,
                percent,
                int(passed),
                attempt_id,
            ),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT * FROM job_attempts WHERE attempt_id = ?", (attempt_id,)).fetchone()
    return _job_row_to_record(row)
