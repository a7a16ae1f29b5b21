"""Application gate: may this candidate apply to this job, and with what score.

Checks run in a fixed order and stop at the first failure:

1. an enabled screening assessment must have a passed, submitted attempt;
2. the candidate must hold at least one verified skill;
3. the verified match against the job's required skills must reach the
   global apply threshold.
"""

from __future__ import annotations

import logging
from typing import Any

from skillgate.core.errors import conflict, not_found, precondition_failed
from skillgate.core.policy import policy_int
from skillgate.schemas.applications import (
    ApplicationCreated,
    MyApplicationItem,
    MyApplicationsPage,
)
from skillgate.schemas.matching import EligibilityResponse
from skillgate.services.ingest import load_assessment
from skillgate.services.matching import clamp_page, score
from skillgate.services.verification import claimed_skill_keys, resume_skill_keys, verified_skill_keys
from skillgate.storage import applications as application_store
from skillgate.storage import attempts as attempt_store
from skillgate.storage import jobs as job_store

logger = logging.getLogger(__name__)


def apply_min_score() -> int:
    return policy_int("matching.apply_min_score", 60)


def _get_job(job_id: str) -> dict[str, Any]:
    job = job_store.get_job(job_id)
    if job is None:
        raise not_found("JOB_NOT_FOUND", "Job not found")
    return job


def _evaluate(candidate_id: str, job: dict[str, Any]) -> int:
    if load_assessment(job).enabled and not attempt_store.has_passed_job_attempt(candidate_id, job["job_id"]):
        raise precondition_failed(
            "ASSESSMENT_NOT_PASSED",
            "You must pass this job's screening assessment before applying",
        )

    keys = verified_skill_keys(candidate_id)
    if not keys:
        raise precondition_failed(
            "SKILLS_NOT_VERIFIED",
            "Verify at least one skill before applying",
        )

    result = score(job["required_skills"], keys)
    threshold = apply_min_score()
    if result.match_score < threshold:
        raise precondition_failed(
            "LOW_MATCH",
            f"Your verified skill match is {result.match_score}%; at least {threshold}% is required",
        )
    return result.match_score


def check_application_eligibility(candidate_id: str, job_id: str) -> EligibilityResponse:
    match_score = _evaluate(candidate_id, _get_job(job_id))
    return EligibilityResponse(eligible=True, match_score=match_score)


def apply_to_job(candidate_id: str, job_id: str, *, cover_letter: str = "") -> ApplicationCreated:
    job = _get_job(job_id)
    if application_store.find_application(candidate_id, job_id) is not None:
        raise conflict("ALREADY_APPLIED", "You already applied to this job")

    match_score = _evaluate(candidate_id, job)
    try:
        application = application_store.create_application(
            candidate_id=candidate_id,
            job_id=job_id,
            cover_letter=cover_letter or "",
            match_score=match_score,
        )
    except application_store.DuplicateApplication as exc:
        raise conflict("ALREADY_APPLIED", "You already applied to this job") from exc

    logger.info(
        "application_created application_id=%s candidate_id=%s job_id=%s match_score=%s",
        application["application_id"],
        candidate_id,
        job_id,
        match_score,
    )
    return ApplicationCreated(
        application_id=application["application_id"],
        job_id=job_id,
        status=application["status"],
        match_score=match_score,
        applied_at=application["created_at"],
    )


def list_my_applications(
    candidate_id: str,
    *,
    status: str | None = None,
    page: int | None = 1,
    page_size: int | None = None,
) -> MyApplicationsPage:
    """Candidate's applications with live match figures.

    ``match_score`` is the snapshot taken at apply time and is only filled in
    from the live verified match when it is missing. ``profile_match`` also
    counts unverified and resume-derived skills and is informational only.
    """
    p, ps = clamp_page(page, page_size, 10)
    rows, total = application_store.list_candidate_applications(
        candidate_id,
        status=status or None,
        offset=(p - 1) * ps,
        limit=ps,
    )
    jobs = job_store.get_jobs([row["job_id"] for row in rows])

    verified = verified_skill_keys(candidate_id)
    display_keys = claimed_skill_keys(candidate_id) | resume_skill_keys(candidate_id) | verified

    items: list[MyApplicationItem] = []
    for row in rows:
        job = jobs.get(row["job_id"])
        required = job["required_skills"] if job else []
        live = score(required, verified)
        stored_score = row["match_score"]
        if stored_score is None:
            stored_score = live.match_score
            application_store.backfill_match_score(row["application_id"], stored_score)
        items.append(
            MyApplicationItem(
                application_id=row["application_id"],
                job_id=row["job_id"],
                job_title=job["title"] if job else "",
                status=row["status"],
                applied_at=row["created_at"],
                match_score=stored_score,
                verified_match=live,
                profile_match=score(required, display_keys),
            )
        )
    return MyApplicationsPage(items=items, total=total, page=p, page_size=ps)
