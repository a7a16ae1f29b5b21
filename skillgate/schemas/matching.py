from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class MatchMode(str, Enum):
    """Which candidate key set a match is computed against.

    ``VERIFIED`` feeds enforcement (apply gate, matched jobs); ``CLAIMED`` is
    informational display only.
    """

    VERIFIED = "verified"
    CLAIMED = "claimed"


class MatchResult(BaseModel):
    match_score: int = Field(ge=0, le=100)
    matched_skills: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)


class MatchRequest(BaseModel):
    required_skills: list[str] = Field(default_factory=list, max_length=200)
    mode: MatchMode = MatchMode.VERIFIED


class MatchedJob(BaseModel):
    job_id: str
    title: str
    required_skills: list[str]
    match_score: int
    matched_skills: list[str]
    missing_skills: list[str]


class MatchedJobsPage(BaseModel):
    items: list[MatchedJob] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
    min_score: int


class EligibilityResponse(BaseModel):
    eligible: bool
    match_score: int
