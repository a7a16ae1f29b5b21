"""Writes coming from the profile store and job-configuration collaborators."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Any

from skillgate.core.errors import conflict, validation_error
from skillgate.core.policy import policy_float
from skillgate.schemas.assessment import (
    JobAssessmentConfig,
    JobAssessmentQuestionIn,
    JobAssessmentView,
    Question,
    QuestionOut,
)
from skillgate.schemas.ingest import (
    CandidateProfileIn,
    CandidateProfileOut,
    CandidateSkill,
    JobAssessmentIn,
    JobConfigIn,
    JobConfigOut,
    LegacySkillAttemptImport,
    LegacySkillAttemptImportResult,
)
from skillgate.services.question_supply import content_hash, stable_question_id
from skillgate.skills.keys import normalize_skill_key
from skillgate.storage import attempts as attempt_store
from skillgate.storage import jobs as job_store
from skillgate.storage import profiles as profile_store
from skillgate.storage.db import utc_now

logger = logging.getLogger(__name__)


def normalize_job_question(job_id: str, question: JobAssessmentQuestionIn) -> Question:
    return Question(
        question_id=(question.question_id or "").strip() or stable_question_id(job_id, question.text),
        text=question.text,
        options=list(question.options),
        correct_index=question.correct_index,
        difficulty=question.difficulty,
        content_hash=(question.content_hash or "").strip() or content_hash(question.text),
    )


def normalize_job_assessment(job_id: str, payload: JobAssessmentIn) -> JobAssessmentConfig:
    questions = [normalize_job_question(job_id, q) for q in payload.questions]
    ids = [q.question_id for q in questions]
    if len(set(ids)) != len(ids):
        raise validation_error("Assessment questions must be unique")
    return JobAssessmentConfig(
        enabled=payload.enabled,
        pass_percent=payload.pass_percent,
        marks_per_question=payload.marks_per_question,
        questions=questions,
        updated_at=utc_now(),
    )


def load_assessment(job: dict[str, Any]) -> JobAssessmentConfig:
    """Screening definition stored on a job, with policy defaults filled in."""
    raw = dict(job.get("assessment") or {})
    raw.setdefault("pass_percent", policy_float("job_assessment.default_pass_percent", 60))
    raw.setdefault("marks_per_question", policy_float("job_assessment.default_marks_per_question", 1))
    return JobAssessmentConfig.model_validate(raw)


def assessment_view(config: JobAssessmentConfig) -> JobAssessmentView:
    return JobAssessmentView(
        enabled=config.enabled,
        pass_percent=config.pass_percent,
        marks_per_question=config.marks_per_question,
        questions=[QuestionOut.from_question(q) for q in config.questions],
        questions_count=len(config.questions),
        updated_at=config.updated_at,
    )


def _job_out(job: dict[str, Any]) -> JobConfigOut:
    return JobConfigOut(
        job_id=job["job_id"],
        title=job["title"],
        status=job["status"],
        required_skills=job["required_skills"],
        assessment=assessment_view(load_assessment(job)),
        updated_at=job["updated_at"],
    )


def upsert_job_config(job_id: str, payload: JobConfigIn) -> JobConfigOut:
    job_id = (job_id or "").strip()
    if not job_id:
        raise validation_error("job_id is required")
    required_skills = [skill.strip() for skill in payload.required_skills if normalize_skill_key(skill)]
    assessment = None
    if payload.assessment is not None:
        assessment = normalize_job_assessment(job_id, payload.assessment).model_dump(mode="json")
    job = job_store.upsert_job(
        job_id,
        title=payload.title.strip(),
        status=payload.status,
        required_skills=required_skills,
        assessment=assessment,
    )
    logger.info(
        "job_config_upserted job_id=%s status=%s required_skills=%s",
        job_id,
        job["status"],
        len(required_skills),
    )
    return _job_out(job)


def _profile_out(profile: dict[str, Any]) -> CandidateProfileOut:
    return CandidateProfileOut(
        candidate_id=profile["candidate_id"],
        skills=[CandidateSkill.model_validate(skill) for skill in profile["skills"]],
        resume_skills=profile["resume_skills"],
        updated_at=profile["updated_at"],
    )


def upsert_candidate_profile(candidate_id: str, payload: CandidateProfileIn) -> CandidateProfileOut:
    candidate_id = (candidate_id or "").strip()
    if not candidate_id:
        raise validation_error("candidate_id is required")
    skills = [
        {"name": skill.name.strip(), "verified": skill.verified}
        for skill in payload.skills
        if normalize_skill_key(skill.name)
    ]
    resume_skills = [name.strip() for name in payload.resume_skills if normalize_skill_key(name)]
    profile = profile_store.upsert_candidate_profile(candidate_id, skills=skills, resume_skills=resume_skills)
    logger.info("candidate_profile_upserted candidate_id=%s skills=%s", candidate_id, len(skills))
    return _profile_out(profile)


def import_legacy_skill_attempts(candidate_id: str, payload: LegacySkillAttemptImport) -> LegacySkillAttemptImportResult:
    """Store historical attempts verbatim; read-time views reclassify them."""
    records: list[dict[str, Any]] = []
    for item in payload.attempts:
        record = item.model_dump()
        record["attempt_id"] = (item.attempt_id or "").strip() or uuid.uuid4().hex
        record["candidate_id"] = candidate_id
        record["skill_name"] = item.skill_name.strip()
        record["skill_key"] = normalize_skill_key(item.skill_name)
        if not record["skill_key"]:
            raise validation_error("skill_name is required")
        record["submitted_at"] = item.submitted_at or item.started_at
        records.append(record)
    try:
        attempt_store.insert_skill_attempt_records(records)
    except sqlite3.IntegrityError as exc:
        raise conflict("ATTEMPT_EXISTS", "One or more imported attempts already exist") from exc
    imported = len(records)
    logger.info("legacy_skill_attempts_imported candidate_id=%s count=%s", candidate_id, imported)
    return LegacySkillAttemptImportResult(imported=imported)
