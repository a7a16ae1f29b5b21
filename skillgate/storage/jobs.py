from __future__ import annotations

import json
from typing import Any

from skillgate.storage.db import fetch_all, fetch_one, from_iso, to_iso, transaction, utc_now


def _row_to_job(row) -> dict[str, Any]:
    return {
        "job_id": row["job_id"],
        "title": row["title"],
        "status": row["status"],
        "required_skills": json.loads(row["required_skills_json"] or "[]"),
        "assessment": json.loads(row["assessment_json"] or "{}"),
        "created_at": from_iso(row["created_at"]),
        "updated_at": from_iso(row["updated_at"]),
    }


def upsert_job(
    job_id: str,
    *,
    title: str,
    status: str,
    required_skills: list[str],
    assessment: dict[str, Any] | None,
) -> dict[str, Any]:
    """Create or replace a job configuration.

    ``assessment=None`` keeps the stored screening definition untouched.
    """
    now_iso = to_iso(utc_now())
    with transaction() as conn:
        existing = conn.execute("SELECT assessment_json FROM jobs WHERE job_id = ?", (job_id,)).fetchone()
        if assessment is None:
            assessment_json = existing["assessment_json"] if existing else "{}"
        else:
            assessment_json = json.dumps(assessment, ensure_ascii=False)
        conn.execute(
            """
            INSERT INTO jobs (job_id, title, status, required_skills_json, assessment_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (job_id) DO UPDATE SET
                title = excluded.title,
                status = excluded.status,
                required_skills_json = excluded.required_skills_json,
                assessment_json = excluded.assessment_json,
                updated_at = excluded.updated_at
            """,
            (
                job_id,
                title,
                status,
                json.dumps(required_skills, ensure_ascii=False),
                assessment_json,
                now_iso,
                now_iso,
            ),
        )
    job = get_job(job_id)
    assert job is not None
    return job


def get_job(job_id: str) -> dict[str, Any] | None:
    row = fetch_one("SELECT * FROM jobs WHERE job_id = ?", (job_id,))
    return _row_to_job(row) if row else None


def get_jobs(job_ids: list[str]) -> dict[str, dict[str, Any]]:
    if not job_ids:
        return {}
    placeholders = ", ".join("?" for _ in job_ids)
    rows = fetch_all(f"SELECT * FROM jobs WHERE job_id IN ({placeholders})", tuple(job_ids))
    return {row["job_id"]: _row_to_job(row) for row in rows}


def list_active_jobs(limit: int = 500) -> list[dict[str, Any]]:
    rows = fetch_all(
        "SELECT * FROM jobs WHERE status = 'active' ORDER BY created_at DESC LIMIT ?",
        (limit,),
    )
    return [_row_to_job(row) for row in rows]
