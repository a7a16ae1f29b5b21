from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

Difficulty = Literal["easy", "medium", "hard"]
VerificationTier = Literal["verified", "partially_verified", "not_verified"]
SkillAttemptStatus = Literal["in_progress", "submitted", "failed"]
JobAttemptStatus = Literal["in_progress", "submitted"]


class Question(BaseModel):
    """Question snapshot embedded in an attempt, including the correct answer."""

    question_id: str
    text: str
    options: list[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(ge=0, le=3)
    difficulty: Difficulty
    content_hash: str


class QuestionOut(BaseModel):
    question_id: str
    text: str
    options: list[str]
    difficulty: Difficulty

    @classmethod
    def from_question(cls, question: Question) -> "QuestionOut":
        return cls(
            question_id=question.question_id,
            text=question.text,
            options=list(question.options),
            difficulty=question.difficulty,
        )


class AnswerIn(BaseModel):
    question_id: str = ""
    selected_index: int | None = None


class SkillAttemptStartRequest(BaseModel):
    skill_name: str = Field(default="", max_length=200)


class SkillAttemptSubmitRequest(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)
    violation_count: int = 0
    auto_submitted: bool = False


class SkillAttemptSummary(BaseModel):
    attempt_id: str
    skill_name: str
    attempt_number: int
    status: SkillAttemptStatus
    started_at: datetime
    total_questions: int
    resumed: bool = False


class SkillAttemptStarted(BaseModel):
    attempt: SkillAttemptSummary
    questions: list[QuestionOut]


class SkillGradedResult(BaseModel):
    attempt_id: str
    skill_name: str
    attempt_number: int
    correct_answers: int
    total_questions: int
    accuracy: int
    status: VerificationTier
    violation_count: int
    auto_submitted: bool
    exam_status: SkillAttemptStatus
    submitted_at: datetime | None = None


class SkillAttemptHistoryItem(BaseModel):
    attempt_id: str
    skill_name: str
    attempt_number: int
    accuracy: int
    status: VerificationTier
    correct_answers: int
    total_questions: int
    started_at: datetime
    submitted_at: datetime | None = None
    violation_count: int
    auto_submitted: bool
    exam_status: SkillAttemptStatus


class SkillAttemptHistory(BaseModel):
    items: list[SkillAttemptHistoryItem] = Field(default_factory=list)


class JobAssessmentQuestionIn(BaseModel):
    question_id: str | None = None
    text: str = Field(min_length=1, max_length=2000)
    options: list[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(ge=0, le=3)
    difficulty: str
    content_hash: str | None = None

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("question text is required")
        return stripped

    @field_validator("options")
    @classmethod
    def _validate_options(cls, value: list[str]) -> list[str]:
        cleaned = [str(option).strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("each question must have exactly 4 non-empty options")
        return cleaned

    @field_validator("difficulty")
    @classmethod
    def _validate_difficulty(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"easy", "medium", "hard"}:
            raise ValueError("difficulty must be easy|medium|hard")
        return normalized


class JobAssessmentConfig(BaseModel):
    enabled: bool = False
    pass_percent: float = Field(default=60, ge=0, le=100)
    marks_per_question: float = Field(default=1, ge=0.25, le=100)
    questions: list[Question] = Field(default_factory=list)
    updated_at: datetime | None = None


class JobAssessmentView(BaseModel):
    enabled: bool
    pass_percent: float
    marks_per_question: float
    questions: list[QuestionOut] = Field(default_factory=list)
    questions_count: int
    updated_at: datetime | None = None


class JobAttemptSummary(BaseModel):
    attempt_id: str
    job_id: str
    status: JobAttemptStatus
    attempt_number: int
    started_at: datetime
    submitted_at: datetime | None = None
    correct_count: int
    total_questions: int
    marks_per_question: float
    total_marks: float
    score_marks: float
    percent: float
    pass_percent: float
    passed: bool


class JobAttemptStarted(BaseModel):
    attempt: JobAttemptSummary
    questions: list[QuestionOut]


class JobAttemptSubmitRequest(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)


class JobAssessmentForCandidate(BaseModel):
    assessment: JobAssessmentView
    my_attempt: JobAttemptSummary | None = None
