from fastapi import APIRouter, Depends, Query

from skillgate.core.security import current_candidate_id
from skillgate.schemas.matching import MatchedJobsPage, MatchRequest, MatchResult
from skillgate.services.matching import compute_match, list_matched_jobs

router = APIRouter()


@router.post("/match", response_model=MatchResult)
async def match_skills(payload: MatchRequest, candidate_id: str = Depends(current_candidate_id)):
    return compute_match(payload.required_skills, candidate_id, payload.mode)


@router.get("/jobs/matched", response_model=MatchedJobsPage)
async def matched_jobs(
    min_score: int | None = Query(default=None, ge=0, le=100),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    candidate_id: str = Depends(current_candidate_id),
):
    return list_matched_jobs(candidate_id, min_score=min_score, page=page, page_size=page_size)
