from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from skillgate.schemas.assessment import JobAssessmentQuestionIn, JobAssessmentView

JobStatus = Literal["active", "paused", "closed"]


class CandidateSkill(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    verified: bool = False


class CandidateProfileIn(BaseModel):
    skills: list[CandidateSkill] = Field(default_factory=list, max_length=500)
    resume_skills: list[str] = Field(default_factory=list, max_length=500)


class CandidateProfileOut(BaseModel):
    candidate_id: str
    skills: list[CandidateSkill]
    resume_skills: list[str]
    updated_at: datetime


class JobAssessmentIn(BaseModel):
    enabled: bool = False
    pass_percent: float = Field(default=60, ge=0, le=100)
    marks_per_question: float = Field(default=1, ge=0.25, le=100)
    questions: list[JobAssessmentQuestionIn] = Field(default_factory=list, max_length=200)


class JobConfigIn(BaseModel):
    title: str = Field(default="", max_length=300)
    status: JobStatus = "active"
    required_skills: list[str] = Field(default_factory=list, max_length=200)
    assessment: JobAssessmentIn | None = None


class JobConfigOut(BaseModel):
    job_id: str
    title: str
    status: JobStatus
    required_skills: list[str]
    assessment: JobAssessmentView
    updated_at: datetime


class LegacySkillAttemptIn(BaseModel):
    """Historical per-skill attempt carried over from an earlier system, stored as-is."""

    attempt_id: str | None = None
    skill_name: str = Field(min_length=1, max_length=200)
    attempt_number: int = Field(ge=1)
    status: Literal["submitted", "failed"] = "submitted"
    started_at: datetime
    submitted_at: datetime | None = None
    correct_count: int = Field(default=0, ge=0)
    accuracy: int = Field(default=0, ge=0, le=100)
    verification_status: Literal["verified", "partially_verified", "not_verified"] = "not_verified"
    violation_count: int = Field(default=0, ge=0)
    auto_submitted: bool = False


class LegacySkillAttemptImport(BaseModel):
    attempts: list[LegacySkillAttemptIn] = Field(min_length=1, max_length=500)


class LegacySkillAttemptImportResult(BaseModel):
    imported: int
