"""Overlap scoring between job requirements and a candidate's skill keys."""

from __future__ import annotations

from collections.abc import Iterable, Set

from skillgate.core.policy import policy_int
from skillgate.schemas.matching import MatchedJob, MatchedJobsPage, MatchMode, MatchResult
from skillgate.services.grading import round_half_up
from skillgate.services.verification import claimed_skill_keys, verified_skill_keys
from skillgate.skills.keys import normalize_skill_key
from skillgate.storage import jobs as job_store


def score(required_skills: Iterable[str], candidate_keys: Set[str]) -> MatchResult:
    """Pure, total overlap score.

    A required skill matches iff its key is in ``candidate_keys``. Matched and
    missing lists keep the original display strings. No requirements yields 0.
    """
    matched: list[str] = []
    missing: list[str] = []
    for raw in required_skills or []:
        original = str(raw)
        key = normalize_skill_key(original)
        if not key:
            continue
        if key in candidate_keys:
            matched.append(original)
        else:
            missing.append(original)

    total = len(matched) + len(missing)
    match_score = round_half_up(len(matched) / total * 100) if total else 0
    return MatchResult(match_score=match_score, matched_skills=matched, missing_skills=missing)


def candidate_keys(candidate_id: str, mode: MatchMode) -> set[str]:
    if mode is MatchMode.VERIFIED:
        return verified_skill_keys(candidate_id)
    if mode is MatchMode.CLAIMED:
        return claimed_skill_keys(candidate_id)
    raise ValueError(f"Unsupported match mode: {mode!r}")


def compute_match(required_skills: Iterable[str], candidate_id: str, mode: MatchMode) -> MatchResult:
    return score(required_skills, candidate_keys(candidate_id, mode))


def clamp_page(page: int | None, page_size: int | None, default_size: int) -> tuple[int, int]:
    max_size = policy_int("matching.max_page_size", 50)
    p = max(1, int(page or 1))
    ps = min(max_size, max(1, int(page_size or default_size)))
    return p, ps


def list_matched_jobs(
    candidate_id: str,
    *,
    min_score: int | None = None,
    page: int | None = 1,
    page_size: int | None = None,
) -> MatchedJobsPage:
    """Active jobs ranked by verified match, best first."""
    default_min = policy_int("matching.matched_jobs_min_score", 60)
    threshold = max(0, min(100, default_min if min_score is None else int(min_score)))
    p, ps = clamp_page(page, page_size, policy_int("matching.matched_jobs_page_size", 12))

    keys = verified_skill_keys(candidate_id)
    if not keys:
        return MatchedJobsPage(items=[], total=0, page=p, page_size=ps, min_score=threshold)

    scored: list[MatchedJob] = []
    for job in job_store.list_active_jobs():
        result = score(job["required_skills"], keys)
        if result.match_score < threshold:
            continue
        scored.append(
            MatchedJob(
                job_id=job["job_id"],
                title=job["title"],
                required_skills=job["required_skills"],
                match_score=result.match_score,
                matched_skills=result.matched_skills,
                missing_skills=result.missing_skills,
            )
        )
    scored.sort(key=lambda item: item.match_score, reverse=True)

    start = (p - 1) * ps
    return MatchedJobsPage(
        items=scored[start : start + ps],
        total=len(scored),
        page=p,
        page_size=ps,
        min_score=threshold,
    )
