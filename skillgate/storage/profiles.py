from __future__ import annotations

import json
from typing import Any

from skillgate.skills.keys import normalize_skill_key
from skillgate.storage.db import fetch_one, from_iso, to_iso, transaction, utc_now


def upsert_candidate_profile(
    candidate_id: str,
    *,
    skills: list[dict[str, Any]],
    resume_skills: list[str],
) -> dict[str, Any]:
    now_iso = to_iso(utc_now())
    with transaction() as conn:
        conn.execute(
            """
            INSERT INTO candidate_profiles (candidate_id, skills_json, resume_skills_json, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (candidate_id) DO UPDATE SET
                skills_json = excluded.skills_json,
                resume_skills_json = excluded.resume_skills_json,
                updated_at = excluded.updated_at
            """,
            (
                candidate_id,
                json.dumps(skills, ensure_ascii=False),
                json.dumps(resume_skills, ensure_ascii=False),
                now_iso,
            ),
        )
    profile = get_candidate_profile(candidate_id)
    assert profile is not None
    return profile


def get_candidate_profile(candidate_id: str) -> dict[str, Any] | None:
    row = fetch_one(
        "SELECT candidate_id, skills_json, resume_skills_json, updated_at FROM candidate_profiles WHERE candidate_id = ?",
        (candidate_id,),
    )
    if not row:
        return None
    return {
        "candidate_id": row["candidate_id"],
        "skills": json.loads(row["skills_json"] or "[]"),
        "resume_skills": json.loads(row["resume_skills_json"] or "[]"),
        "updated_at": from_iso(row["updated_at"]),
    }


def mark_skill_verified(candidate_id: str, skill_name: str) -> bool:
    """Flag every profile skill whose key matches ``skill_name`` as verified."""
    target = normalize_skill_key(skill_name)
    if not target:
        return False
    with transaction() as conn:
        row = conn.execute(
            "SELECT skills_json FROM candidate_profiles WHERE candidate_id = ?",
            (candidate_id,),
        ).fetchone()
        if not row:
            return False
        skills = json.loads(row["skills_json"] or "[]")
        changed = False
        for skill in skills:
            if normalize_skill_key(skill.get("name")) == target and not skill.get("verified"):
                skill["verified"] = True
                changed = True
        if changed:
            conn.execute(
                "UPDATE candidate_profiles SET skills_json = ?, updated_at = ? WHERE candidate_id = ?",
                (json.dumps(skills, ensure_ascii=False), to_iso(utc_now()), candidate_id),
            )
    return changed
