from fastapi import APIRouter, Depends, status

from skillgate.core.errors import EngineError, raise_http_error
from skillgate.core.security import require_api_key
from skillgate.schemas.ingest import (
    CandidateProfileIn,
    CandidateProfileOut,
    JobConfigIn,
    JobConfigOut,
    LegacySkillAttemptImport,
    LegacySkillAttemptImportResult,
)
from skillgate.services.ingest import import_legacy_skill_attempts, upsert_candidate_profile, upsert_job_config

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.put("/candidates/{candidate_id}/profile", response_model=CandidateProfileOut)
async def put_candidate_profile(candidate_id: str, payload: CandidateProfileIn):
    try:
        return upsert_candidate_profile(candidate_id, payload)
    except EngineError as exc:
        raise_http_error(exc)


@router.put("/jobs/{job_id}", response_model=JobConfigOut)
async def put_job_config(job_id: str, payload: JobConfigIn):
    try:
        return upsert_job_config(job_id, payload)
    except EngineError as exc:
        raise_http_error(exc)


@router.post(
    "/candidates/{candidate_id}/skill-attempts/import",
    response_model=LegacySkillAttemptImportResult,
    status_code=status.HTTP_201_CREATED,
)
async def import_skill_attempts(candidate_id: str, payload: LegacySkillAttemptImport):
    try:
        return import_legacy_skill_attempts(candidate_id, payload)
    except EngineError as exc:
        raise_http_error(exc)
