from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from skillgate.schemas.matching import MatchResult

ApplicationStatus = Literal["pending", "reviewing", "shortlisted", "interview", "offered", "rejected", "withdrawn"]


class ApplyRequest(BaseModel):
    cover_letter: str = Field(default="", max_length=20000)


class ApplicationCreated(BaseModel):
    application_id: str
    job_id: str
    status: ApplicationStatus
    match_score: int
    applied_at: datetime


class MyApplicationItem(BaseModel):
    application_id: str
    job_id: str
    job_title: str
    status: ApplicationStatus
    applied_at: datetime
    match_score: int
    verified_match: MatchResult
    profile_match: MatchResult


class MyApplicationsPage(BaseModel):
    items: list[MyApplicationItem] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
