from fastapi import APIRouter, Depends, Query, status

from skillgate.core.errors import EngineError, raise_http_error
from skillgate.core.security import current_candidate_id
from skillgate.schemas.applications import ApplicationCreated, ApplyRequest, MyApplicationsPage
from skillgate.schemas.matching import EligibilityResponse
from skillgate.services.eligibility import apply_to_job, check_application_eligibility, list_my_applications

router = APIRouter()


@router.get("/jobs/{job_id}/eligibility", response_model=EligibilityResponse)
async def job_eligibility(job_id: str, candidate_id: str = Depends(current_candidate_id)):
    try:
        return check_application_eligibility(candidate_id, job_id)
    except EngineError as exc:
        raise_http_error(exc)


@router.post("/jobs/{job_id}/apply", response_model=ApplicationCreated, status_code=status.HTTP_201_CREATED)
async def apply(job_id: str, payload: ApplyRequest, candidate_id: str = Depends(current_candidate_id)):
    try:
        return apply_to_job(candidate_id, job_id, cover_letter=payload.cover_letter)
    except EngineError as exc:
        raise_http_error(exc)


@router.get("/applications/mine", response_model=MyApplicationsPage)
async def my_applications(
    status_filter: str | None = Query(default=None, alias="status", max_length=40),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    candidate_id: str = Depends(current_candidate_id),
):
    return list_my_applications(candidate_id, status=status_filter, page=page, page_size=page_size)
