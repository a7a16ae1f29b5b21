from fastapi import APIRouter, Depends, Request

from skillgate.core.errors import EngineError, raise_http_error
from skillgate.core.rate_limit import rate_limit
from skillgate.core.security import current_candidate_id
from skillgate.schemas.assessment import (
    JobAssessmentForCandidate,
    JobAttemptStarted,
    JobAttemptSubmitRequest,
    JobAttemptSummary,
)
from skillgate.services.attempts import (
    job_assessment_for_candidate,
    latest_job_attempt,
    start_job_attempt,
    submit_job_attempt,
)

router = APIRouter()


@router.get("/jobs/{job_id}/assessment", response_model=JobAssessmentForCandidate)
async def get_job_assessment(job_id: str, candidate_id: str = Depends(current_candidate_id)):
    try:
        return job_assessment_for_candidate(candidate_id, job_id)
    except EngineError as exc:
        raise_http_error(exc)


@router.get("/jobs/{job_id}/assessment/attempts/latest", response_model=JobAttemptSummary | None)
async def get_latest_job_attempt(job_id: str, candidate_id: str = Depends(current_candidate_id)):
    try:
        return latest_job_attempt(candidate_id, job_id)
    except EngineError as exc:
        raise_http_error(exc)


@router.post("/jobs/{job_id}/assessment/attempts", response_model=JobAttemptStarted)
@rate_limit()
async def start_job_assessment(
    request: Request,
    job_id: str,
    candidate_id: str = Depends(current_candidate_id),
):
    try:
        return start_job_attempt(candidate_id, job_id)
    except EngineError as exc:
        raise_http_error(exc)


@router.post("/jobs/{job_id}/assessment/attempts/{attempt_id}/submit", response_model=JobAttemptSummary)
async def submit_job_assessment(
    job_id: str,
    attempt_id: str,
    payload: JobAttemptSubmitRequest,
    candidate_id: str = Depends(current_candidate_id),
):
    try:
        return submit_job_attempt(candidate_id, job_id, attempt_id, payload.answers)
    except EngineError as exc:
        raise_http_error(exc)
