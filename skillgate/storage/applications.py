from __future__ import annotations

import sqlite3
import uuid
from typing import Any

from skillgate.storage.db import fetch_all, fetch_one, from_iso, to_iso, transaction, utc_now


class DuplicateApplication(Exception):
    pass


def _row_to_application(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "application_id": row["application_id"],
        "job_id": row["job_id"],
        "candidate_id": row["candidate_id"],
        "status": row["status"],
        "cover_letter": row["cover_letter"],
        "match_score": row["match_score"],
        "created_at": from_iso(row["created_at"]),
    }


def find_application(candidate_id: str, job_id: str) -> dict[str, Any] | None:
    row = fetch_one(
        "SELECT * FROM applications WHERE candidate_id = ? AND job_id = ?",
        (candidate_id, job_id),
    )
    return _row_to_application(row) if row else None


def create_application(*, candidate_id: str, job_id: str, cover_letter: str, match_score: int) -> dict[str, Any]:
    application_id = uuid.uuid4().hex
    try:
        with transaction() as conn:
            conn.execute(
                """
                INSERT INTO applications (application_id, job_id, candidate_id, status, cover_letter, match_score, created_at)
                VALUES (?, ?, ?, 'pending', ?, ?, ?)
                """,
                (application_id, job_id, candidate_id, cover_letter, match_score, to_iso(utc_now())),
            )
            row = conn.execute("SELECT * FROM applications WHERE application_id = ?", (application_id,)).fetchone()
    except sqlite3.IntegrityError as exc:
        raise DuplicateApplication(f"{candidate_id} already applied to {job_id}") from exc
    return _row_to_application(row)


def list_candidate_applications(
    candidate_id: str,
    *,
    status: str | None,
    offset: int,
    limit: int,
) -> tuple[list[dict[str, Any]], int]:
    if status:
        where = "WHERE candidate_id = ? AND status = ?"
        params: tuple[Any, ...] = (candidate_id, status)
    else:
        where = "WHERE candidate_id = ?"
        params = (candidate_id,)
    rows = fetch_all(
        f"SELECT * FROM applications {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
        params + (limit, offset),
    )
    total_row = fetch_one(f"SELECT COUNT(1) FROM applications {where}", params)
    total = int(total_row[0]) if total_row else 0
    return [_row_to_application(row) for row in rows], total


def backfill_match_score(application_id: str, match_score: int) -> None:
    with transaction() as conn:
        conn.execute(
            "UPDATE applications SET match_score = ? WHERE application_id = ? AND match_score IS NULL",
            (match_score, application_id),
        )
