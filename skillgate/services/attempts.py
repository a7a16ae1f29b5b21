"""Attempt lifecycle: start, resume and submit assessment attempts.

Two variants share one state machine (``in_progress`` -> ``submitted`` |
``failed``): proctored per-skill tests of a fixed size drawn from the question
supply, and per-job screening tests authored on the job.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from skillgate.core.errors import (
    conflict,
    forbidden,
    not_found,
    precondition_failed,
    upstream_unavailable,
    validation_error,
)
from skillgate.core.policy import policy_int
from skillgate.schemas.assessment import (
    AnswerIn,
    JobAssessmentForCandidate,
    JobAttemptStarted,
    JobAttemptSummary,
    Question,
    QuestionOut,
    SkillAttemptHistory,
    SkillAttemptHistoryItem,
    SkillAttemptStarted,
    SkillAttemptSummary,
    SkillGradedResult,
)
from skillgate.services.grading import (
    VERIFIED,
    grade_job_attempt,
    grade_skill_attempt,
    skill_attempt_view,
)
from skillgate.services.ingest import assessment_view, load_assessment
from skillgate.services.question_supply import (
    QuestionSupply,
    QuestionSupplyUnavailable,
    get_default_question_supply,
    skill_question_count,
    validate_supplied_questions,
)
from skillgate.skills.keys import normalize_skill_key
from skillgate.storage import attempts as attempt_store
from skillgate.storage import jobs as job_store
from skillgate.storage import profiles as profile_store

logger = logging.getLogger(__name__)


def _questions_out(questions: Sequence[dict[str, Any]]) -> list[QuestionOut]:
    return [QuestionOut.from_question(Question.model_validate(q)) for q in questions]


def _parse_selections(
    answers: Sequence[AnswerIn],
    questions: Sequence[dict[str, Any]],
    *,
    allow_empty_selection: bool,
) -> dict[str, int | None]:
    """Validate the whole answer list up front; one bad entry rejects the submission."""
    known_ids = {str(q["question_id"]) for q in questions}
    selections: dict[str, int | None] = {}
    for answer in answers:
        question_id = (answer.question_id or "").strip()
        if not question_id:
            raise validation_error("answer.question_id is required")
        if question_id not in known_ids:
            raise validation_error(f"Unknown question_id '{question_id}' in answers")
        if question_id in selections:
            raise validation_error(f"Duplicate answer for question_id '{question_id}'")
        selected = answer.selected_index
        if selected is None:
            if not allow_empty_selection:
                raise validation_error("answer.selected_index must be 0..3")
        elif selected < 0 or selected > 3:
            raise validation_error("answer.selected_index must be 0..3")
        selections[question_id] = selected
    return selections


# -- per-skill ----------------------------------------------------------------


def _skill_summary(record: dict[str, Any], *, resumed: bool) -> SkillAttemptSummary:
    return SkillAttemptSummary(
        attempt_id=record["attempt_id"],
        skill_name=record["skill_name"],
        attempt_number=record["attempt_number"],
        status=record["status"],
        started_at=record["started_at"],
        total_questions=len(record["questions"]),
        resumed=resumed,
    )


def start_skill_attempt(
    candidate_id: str,
    skill_name: str,
    *,
    supply: QuestionSupply | None = None,
) -> SkillAttemptStarted:
    display_name = (skill_name or "").strip()
    skill_key = normalize_skill_key(display_name)
    if not skill_key:
        raise validation_error("skill_name is required")

    existing = attempt_store.find_open_skill_attempt(candidate_id, skill_key)
    if existing is not None:
        logger.info("skill_attempt_resumed attempt_id=%s candidate_id=%s", existing["attempt_id"], candidate_id)
        return SkillAttemptStarted(
            attempt=_skill_summary(existing, resumed=True),
            questions=_questions_out(existing["questions"]),
        )

    supply = supply or get_default_question_supply()
    if supply is None:
        raise upstream_unavailable("NO_GENERATOR", "No question supply is configured for skill assessments.")

    count = skill_question_count()
    avoid_hashes = attempt_store.recent_skill_question_hashes(
        candidate_id,
        skill_key,
        policy_int("skill_assessment.recent_attempts_for_avoidance", 5),
    )
    try:
        questions = supply.supply_questions(display_name, count, avoid_hashes)
    except QuestionSupplyUnavailable as exc:
        raise upstream_unavailable("NO_GENERATOR", str(exc)) from exc

    try:
        validate_supplied_questions(questions, count)
    except ValueError as exc:
        logger.warning("question_supply_invalid skill=%s error=%s", skill_key, exc)
        raise upstream_unavailable("QUESTION_SUPPLY_INVALID", f"Question supply returned invalid questions: {exc}") from exc

    record, created = attempt_store.create_skill_attempt(
        candidate_id=candidate_id,
        skill_name=display_name,
        skill_key=skill_key,
        questions=[q.model_dump() for q in questions],
    )
    if created:
        logger.info(
            "skill_attempt_started attempt_id=%s candidate_id=%s skill=%s attempt_number=%s",
            record["attempt_id"],
            candidate_id,
            skill_key,
            record["attempt_number"],
        )
    return SkillAttemptStarted(
        attempt=_skill_summary(record, resumed=not created),
        questions=_questions_out(record["questions"]),
    )


def submit_skill_attempt(
    candidate_id: str,
    attempt_id: str,
    answers: Sequence[AnswerIn],
    *,
    violation_count: int = 0,
    auto_submitted: bool = False,
) -> SkillGradedResult:
    record = attempt_store.get_skill_attempt(attempt_id)
    if record is None:
        raise not_found("ATTEMPT_NOT_FOUND", "Assessment attempt not found")
    if record["candidate_id"] != candidate_id:
        raise forbidden()
    if record["submitted_at"] is not None or record["status"] != "in_progress":
        raise conflict("ALREADY_SUBMITTED", "This assessment has already been submitted")

    count = skill_question_count()
    if len(answers) != count:
        raise validation_error(f"answers must be an array of {count} items")
    selections = _parse_selections(answers, record["questions"], allow_empty_selection=False)

    violations = max(0, int(violation_count or 0))
    grade = grade_skill_attempt(
        record["questions"],
        {qid: int(selected) for qid, selected in selections.items() if selected is not None},
        violation_count=violations,
        auto_submitted=auto_submitted,
    )
    stored = attempt_store.finalize_skill_attempt(
        attempt_id,
        status=grade.status,
        answers=[{"question_id": qid, "selected_index": selected} for qid, selected in selections.items()],
        violation_count=violations,
        auto_submitted=bool(auto_submitted),
        correct_count=grade.correct_count,
        accuracy=grade.accuracy,
        verification_status=grade.tier,
    )
    if stored is None:
        raise conflict("ALREADY_SUBMITTED", "This assessment has already been submitted")

    logger.info(
        "skill_attempt_submitted attempt_id=%s candidate_id=%s accuracy=%s tier=%s failed=%s",
        attempt_id,
        candidate_id,
        grade.accuracy,
        grade.tier,
        grade.failed,
    )
    if grade.tier == VERIFIED and not grade.failed:
        if profile_store.mark_skill_verified(candidate_id, stored["skill_name"]):
            logger.info("profile_skill_verified candidate_id=%s skill=%s", candidate_id, stored["skill_key"])

    return SkillGradedResult(
        attempt_id=stored["attempt_id"],
        skill_name=stored["skill_name"],
        attempt_number=stored["attempt_number"],
        correct_answers=grade.correct_count,
        total_questions=count,
        accuracy=grade.accuracy,
        status=grade.tier,
        violation_count=stored["violation_count"],
        auto_submitted=stored["auto_submitted"],
        exam_status=stored["status"],
        submitted_at=stored["submitted_at"],
    )


def history_item(record: dict[str, Any]) -> SkillAttemptHistoryItem:
    view = skill_attempt_view(record)
    return SkillAttemptHistoryItem(
        attempt_id=record["attempt_id"],
        skill_name=record["skill_name"],
        attempt_number=record["attempt_number"],
        accuracy=view.accuracy,
        status=view.tier,
        correct_answers=view.correct_count,
        total_questions=len(record["questions"]) or skill_question_count(),
        started_at=record["started_at"],
        submitted_at=record["submitted_at"],
        violation_count=record["violation_count"],
        auto_submitted=record["auto_submitted"],
        exam_status=record["status"],
    )


def list_skill_attempt_history(candidate_id: str, skill_name: str | None = None) -> SkillAttemptHistory:
    skill_key = normalize_skill_key(skill_name) if skill_name else None
    records = attempt_store.list_skill_attempts(
        candidate_id,
        skill_key,
        limit=policy_int("skill_assessment.history_limit", 50),
    )
    return SkillAttemptHistory(items=[history_item(record) for record in records])


# -- per-job ------------------------------------------------------------------


def job_attempt_summary(record: dict[str, Any]) -> JobAttemptSummary:
    return JobAttemptSummary(
        attempt_id=record["attempt_id"],
        job_id=record["job_id"],
        status=record["status"],
        attempt_number=record["attempt_number"],
        started_at=record["started_at"],
        submitted_at=record["submitted_at"],
        correct_count=record["correct_count"],
        total_questions=len(record["questions"]),
        marks_per_question=record["marks_per_question"],
        total_marks=record["total_marks"],
        score_marks=record["score_marks"],
        percent=record["percent"],
        pass_percent=record["pass_percent"],
        passed=record["passed"],
    )


def _active_job(job_id: str) -> dict[str, Any]:
    job = job_store.get_job(job_id)
    if job is None or job["status"] != "active":
        raise not_found("JOB_NOT_FOUND", "Job not found")
    return job


def job_assessment_for_candidate(candidate_id: str, job_id: str) -> JobAssessmentForCandidate:
    job = _active_job(job_id)
    config = load_assessment(job)
    if not config.enabled:
        return JobAssessmentForCandidate(assessment=assessment_view(config), my_attempt=None)
    latest = attempt_store.latest_job_attempt(candidate_id, job_id)
    return JobAssessmentForCandidate(
        assessment=assessment_view(config),
        my_attempt=job_attempt_summary(latest) if latest else None,
    )


def latest_job_attempt(candidate_id: str, job_id: str) -> JobAttemptSummary | None:
    _active_job(job_id)
    latest = attempt_store.latest_job_attempt(candidate_id, job_id)
    return job_attempt_summary(latest) if latest else None


def start_job_attempt(candidate_id: str, job_id: str) -> JobAttemptStarted:
    job = _active_job(job_id)
    config = load_assessment(job)
    if not config.enabled:
        raise precondition_failed("ASSESSMENT_DISABLED", "This job does not require an assessment")
    if not config.questions:
        raise precondition_failed("NOT_CONFIGURED", "Assessment is not configured yet")

    record, created = attempt_store.create_job_attempt(
        candidate_id=candidate_id,
        job_id=job_id,
        questions=[q.model_dump() for q in config.questions],
        pass_percent=config.pass_percent,
        marks_per_question=config.marks_per_question,
    )
    logger.info(
        "job_attempt_%s attempt_id=%s candidate_id=%s job_id=%s attempt_number=%s",
        "started" if created else "resumed",
        record["attempt_id"],
        candidate_id,
        job_id,
        record["attempt_number"],
    )
    return JobAttemptStarted(attempt=job_attempt_summary(record), questions=_questions_out(record["questions"]))


def submit_job_attempt(
    candidate_id: str,
    job_id: str,
    attempt_id: str,
    answers: Sequence[AnswerIn],
) -> JobAttemptSummary:
    record = attempt_store.get_job_attempt(attempt_id)
    if record is None:
        raise not_found("ATTEMPT_NOT_FOUND", "Attempt not found")
    if record["job_id"] != job_id:
        raise validation_error("Invalid attempt for job")
    if record["candidate_id"] != candidate_id:
        raise forbidden()
    if record["submitted_at"] is not None or record["status"] != "in_progress":
        raise conflict("ALREADY_SUBMITTED", "This assessment has already been submitted")
    if not record["questions"]:
        raise precondition_failed("NOT_CONFIGURED", "No questions in attempt")

    answered = _parse_selections(answers, record["questions"], allow_empty_selection=True)
    # Unanswered questions are recorded as "no selection".
    selections = {str(q["question_id"]): answered.get(str(q["question_id"])) for q in record["questions"]}
    grade = grade_job_attempt(
        record["questions"],
        selections,
        marks_per_question=record["marks_per_question"],
        pass_percent=record["pass_percent"],
    )
    stored = attempt_store.finalize_job_attempt(
        attempt_id,
        answers=[{"question_id": qid, "selected_index": selected} for qid, selected in selections.items()],
        correct_count=grade.correct_count,
        total_marks=grade.total_marks,
        score_marks=grade.score_marks,
        percent=grade.percent,
        passed=grade.passed,
    )
    if stored is None:
        raise conflict("ALREADY_SUBMITTED", "This assessment has already been submitted")

    logger.info(
        "job_attempt_submitted attempt_id=%s candidate_id=%s job_id=%s percent=%s passed=%s",
        attempt_id,
        candidate_id,
        job_id,
        grade.percent,
        grade.passed,
    )
    return job_attempt_summary(stored)
