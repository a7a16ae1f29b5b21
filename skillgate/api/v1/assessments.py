from fastapi import APIRouter, Depends, Query, Request

from skillgate.core.errors import EngineError, raise_http_error
from skillgate.core.rate_limit import rate_limit
from skillgate.core.security import current_candidate_id
from skillgate.schemas.assessment import (
    SkillAttemptHistory,
    SkillAttemptStarted,
    SkillAttemptStartRequest,
    SkillAttemptSubmitRequest,
    SkillGradedResult,
)
from skillgate.services.attempts import list_skill_attempt_history, start_skill_attempt, submit_skill_attempt

router = APIRouter()


@router.post("/assessments/skills/attempts", response_model=SkillAttemptStarted)
@rate_limit()
async def start_skill_assessment(
    request: Request,
    payload: SkillAttemptStartRequest,
    candidate_id: str = Depends(current_candidate_id),
):
    try:
        return start_skill_attempt(candidate_id, payload.skill_name)
    except EngineError as exc:
        raise_http_error(exc)


@router.post("/assessments/skills/attempts/{attempt_id}/submit", response_model=SkillGradedResult)
async def submit_skill_assessment(
    attempt_id: str,
    payload: SkillAttemptSubmitRequest,
    candidate_id: str = Depends(current_candidate_id),
):
    try:
        return submit_skill_attempt(
            candidate_id,
            attempt_id,
            payload.answers,
            violation_count=payload.violation_count,
            auto_submitted=payload.auto_submitted,
        )
    except EngineError as exc:
        raise_http_error(exc)


@router.get("/assessments/skills/history", response_model=SkillAttemptHistory)
async def skill_assessment_history(
    skill_name: str | None = Query(default=None, max_length=200),
    candidate_id: str = Depends(current_candidate_id),
):
    return list_skill_attempt_history(candidate_id, skill_name)
