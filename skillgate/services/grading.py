"""Grading and verification classification.

Pure functions over attempt snapshots: nothing here touches storage. The
per-skill variant is proctored (anti-cheat signals veto correctness), the
per-job screening variant is weighted by marks and has no such override.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from skillgate.core.policy import policy_int

VERIFIED = "verified"
PARTIALLY_VERIFIED = "partially_verified"
NOT_VERIFIED = "not_verified"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


@dataclass(frozen=True)
class SkillGrade:
    correct_count: int
    accuracy: int
    tier: str
    failed: bool

    @property
    def status(self) -> str:
        return "failed" if self.failed else "submitted"


@dataclass(frozen=True)
class JobGrade:
    correct_count: int
    total_marks: float
    score_marks: float
    percent: float
    passed: bool


def violation_limit() -> int:
    return policy_int("skill_assessment.violation_limit", 2)


def is_failed_submission(violation_count: int, auto_submitted: bool) -> bool:
    return violation_count >= violation_limit() or bool(auto_submitted)


def is_failed_record(status: str, violation_count: int | None, auto_submitted: bool | None) -> bool:
    return status == "failed" or is_failed_submission(int(violation_count or 0), bool(auto_submitted))


def verification_tier(accuracy: int) -> str:
    if accuracy >= policy_int("skill_assessment.tiers.verified", 70):
        return VERIFIED
    if accuracy >= policy_int("skill_assessment.tiers.partially_verified", 50):
        return PARTIALLY_VERIFIED
    return NOT_VERIFIED


def _correct_index_by_question(questions: Sequence[Mapping[str, Any]]) -> dict[str, int]:
    return {str(q["question_id"]): int(q["correct_index"]) for q in questions}


def grade_skill_attempt(
    questions: Sequence[Mapping[str, Any]],
    selections: Mapping[str, int],
    *,
    violation_count: int,
    auto_submitted: bool,
) -> SkillGrade:
    """Score a proctored per-skill attempt.

    ``accuracy = round(correct / question_count * 100)``. A failed submission
    (violation limit reached or forced auto-submit) scores 0 and is never
    verified, whatever the answers were.
    """
    question_count = policy_int("skill_assessment.question_count", 10)
    if is_failed_submission(violation_count, auto_submitted):
        return SkillGrade(correct_count=0, accuracy=0, tier=NOT_VERIFIED, failed=True)

    correct_by_id = _correct_index_by_question(questions)
    correct = sum(1 for qid, selected in selections.items() if correct_by_id.get(qid) == selected)
    accuracy = round_half_up(correct / question_count * 100)
    return SkillGrade(correct_count=correct, accuracy=accuracy, tier=verification_tier(accuracy), failed=False)


def grade_job_attempt(
    questions: Sequence[Mapping[str, Any]],
    selections: Mapping[str, int | None],
    *,
    marks_per_question: float,
    pass_percent: float,
) -> JobGrade:
    correct_by_id = _correct_index_by_question(questions)
    correct = sum(
        1
        for qid, selected in selections.items()
        if selected is not None and correct_by_id.get(qid) == selected
    )
    total_marks = marks_per_question * len(questions)
    score_marks = marks_per_question * correct
    percent = round_one_decimal((score_marks / total_marks) * 100) if total_marks > 0 else 0.0
    # The pass decision uses the same one-decimal figure the candidate sees.
    return JobGrade(
        correct_count=correct,
        total_marks=total_marks,
        score_marks=score_marks,
        percent=percent,
        passed=percent >= pass_percent,
    )


@dataclass(frozen=True)
class SkillAttemptView:
    """Read-side projection of a stored per-skill attempt."""

    accuracy: int
    tier: str
    correct_count: int
    failed: bool


def skill_attempt_view(record: Mapping[str, Any]) -> SkillAttemptView:
    """Project a stored attempt the way every reader must see it.

    Rows stored before the anti-cheat veto existed may carry a score next to
    violation flags; any failed, auto-submitted or over-limit attempt reads as
    accuracy 0 / not verified.
    """
    failed = is_failed_record(
        str(record.get("status") or ""),
        record.get("violation_count"),
        record.get("auto_submitted"),
    )
    if failed:
        return SkillAttemptView(accuracy=0, tier=NOT_VERIFIED, correct_count=0, failed=True)
    return SkillAttemptView(
        accuracy=int(record.get("accuracy") or 0),
        tier=str(record.get("verification_status") or NOT_VERIFIED),
        correct_count=int(record.get("correct_count") or 0),
        failed=False,
    )
