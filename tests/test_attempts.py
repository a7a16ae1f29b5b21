import os
import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("SKILLGATE_DB_PATH", ":memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from skillgate.core.errors import EngineError, ErrorKind
from skillgate.schemas.assessment import AnswerIn, JobAssessmentQuestionIn, Question
from skillgate.schemas.ingest import (
    CandidateProfileIn,
    CandidateSkill,
    JobAssessmentIn,
    JobConfigIn,
    LegacySkillAttemptImport,
    LegacySkillAttemptIn,
)
from skillgate.services.attempts import (
    job_assessment_for_candidate,
    latest_job_attempt,
    list_skill_attempt_history,
    start_job_attempt,
    start_skill_attempt,
    submit_job_attempt,
    submit_skill_attempt,
)
from skillgate.services.ingest import import_legacy_skill_attempts, upsert_candidate_profile, upsert_job_config
from skillgate.services.question_supply import QuestionSupplyUnavailable, content_hash
from skillgate.services.verification import verified_skill_keys
from skillgate.storage import attempts as attempt_store
from skillgate.storage import profiles as profile_store
from skillgate.storage.db import reset_database


class FakeSupply:
    def __init__(self, size: int | None = None):
        self.size = size
        self.calls: list[set[str]] = []

    def supply_questions(self, skill_name, count, avoid_hashes):
        self.calls.append(set(avoid_hashes))
        offset = len(self.calls) * 100
        levels = ["easy"] * 5 + ["medium"] * 3 + ["hard"] * 2
        questions = []
        for i in range(self.size if self.size is not None else count):
            text = f"{skill_name} question {offset + i}"
            questions.append(
                Question(
                    question_id=f"q{offset + i}",
                    text=text,
                    options=["a", "b", "c", "d"],
                    correct_index=i % 4,
                    difficulty=levels[i % 10],
                    content_hash=content_hash(text),
                )
            )
        return questions


class DownSupply:
    def supply_questions(self, skill_name, count, avoid_hashes):
        raise QuestionSupplyUnavailable("offline")


def answers_for(attempt_id: str, correct: int) -> list[AnswerIn]:
    record = attempt_store.get_skill_attempt(attempt_id)
    answers = []
    for i, question in enumerate(record["questions"]):
        right = question["correct_index"]
        answers.append(AnswerIn(question_id=question["question_id"], selected_index=right if i < correct else (right + 1) % 4))
    return answers


class SkillAttemptLifecycleTests(unittest.TestCase):
    def setUp(self):
        reset_database()
        self.supply = FakeSupply()

    def assertEngineError(self, ctx, kind, code=None):
        self.assertEqual(ctx.exception.kind, kind)
        if code:
            self.assertEqual(ctx.exception.code, code)

    def test_start_hides_answers_and_resumes_open_attempt(self):
        started = start_skill_attempt("cand-1", " Python ", supply=self.supply)
        self.assertEqual(started.attempt.attempt_number, 1)
        self.assertEqual(started.attempt.status, "in_progress")
        self.assertEqual(started.attempt.skill_name, "Python")
        self.assertFalse(started.attempt.resumed)
        self.assertEqual(len(started.questions), 10)
        self.assertNotIn("correct_index", started.questions[0].model_dump())

        again = start_skill_attempt("cand-1", "PYTHON", supply=self.supply)
        self.assertEqual(again.attempt.attempt_id, started.attempt.attempt_id)
        self.assertTrue(again.attempt.resumed)
        self.assertEqual([q.question_id for q in again.questions], [q.question_id for q in started.questions])
        self.assertEqual(len(self.supply.calls), 1)

    def test_attempt_numbers_increase_and_recent_questions_are_avoided(self):
        first = start_skill_attempt("cand-1", "python", supply=self.supply)
        submit_skill_attempt("cand-1", first.attempt.attempt_id, answers_for(first.attempt.attempt_id, 5))
        second = start_skill_attempt("cand-1", "python", supply=self.supply)
        self.assertEqual(second.attempt.attempt_number, 2)
        first_hashes = {q["content_hash"] for q in attempt_store.get_skill_attempt(first.attempt.attempt_id)["questions"]}
        self.assertEqual(self.supply.calls[1], first_hashes)

        other_skill = start_skill_attempt("cand-1", "sql", supply=self.supply)
        self.assertEqual(other_skill.attempt.attempt_number, 1)

    def test_blank_skill_is_rejected(self):
        with self.assertRaises(EngineError) as ctx:
            start_skill_attempt("cand-1", "   ", supply=self.supply)
        self.assertEngineError(ctx, ErrorKind.VALIDATION)

    def test_supply_failures(self):
        with self.assertRaises(EngineError) as ctx:
            start_skill_attempt("cand-1", "python", supply=DownSupply())
        self.assertEngineError(ctx, ErrorKind.UPSTREAM_UNAVAILABLE, "NO_GENERATOR")

        with self.assertRaises(EngineError) as ctx:
            start_skill_attempt("cand-1", "python", supply=FakeSupply(size=9))
        self.assertEngineError(ctx, ErrorKind.UPSTREAM_UNAVAILABLE, "QUESTION_SUPPLY_INVALID")
        self.assertIsNone(attempt_store.find_open_skill_attempt("cand-1", "python"))

    def test_submit_grades_and_verifies_profile_skill(self):
        upsert_candidate_profile("cand-1", CandidateProfileIn(skills=[CandidateSkill(name="python")]))
        started = start_skill_attempt("cand-1", "Python", supply=self.supply)
        result = submit_skill_attempt("cand-1", started.attempt.attempt_id, answers_for(started.attempt.attempt_id, 8))
        self.assertEqual(result.accuracy, 80)
        self.assertEqual(result.status, "verified")
        self.assertEqual(result.exam_status, "submitted")
        self.assertEqual(result.correct_answers, 8)
        self.assertEqual(profile_store.get_candidate_profile("cand-1")["skills"], [{"name": "python", "verified": True}])
        self.assertEqual(verified_skill_keys("cand-1"), {"python"})

    def test_violations_fail_the_attempt(self):
        started = start_skill_attempt("cand-1", "python", supply=self.supply)
        result = submit_skill_attempt(
            "cand-1",
            started.attempt.attempt_id,
            answers_for(started.attempt.attempt_id, 10),
            violation_count=2,
        )
        self.assertEqual(result.exam_status, "failed")
        self.assertEqual(result.accuracy, 0)
        self.assertEqual(result.status, "not_verified")
        self.assertEqual(verified_skill_keys("cand-1"), set())

    def test_negative_violation_count_is_clamped(self):
        started = start_skill_attempt("cand-1", "python", supply=self.supply)
        result = submit_skill_attempt(
            "cand-1",
            started.attempt.attempt_id,
            answers_for(started.attempt.attempt_id, 7),
            violation_count=-3,
        )
        self.assertEqual(result.violation_count, 0)
        self.assertEqual(result.status, "verified")

    def test_submit_errors(self):
        started = start_skill_attempt("cand-1", "python", supply=self.supply)
        attempt_id = started.attempt.attempt_id
        good = answers_for(attempt_id, 6)

        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-1", "missing", good)
        self.assertEngineError(ctx, ErrorKind.NOT_FOUND, "ATTEMPT_NOT_FOUND")

        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-2", attempt_id, good)
        self.assertEngineError(ctx, ErrorKind.FORBIDDEN)

        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-1", attempt_id, good[:9])
        self.assertEngineError(ctx, ErrorKind.VALIDATION)

        unknown = good[:9] + [AnswerIn(question_id="nope", selected_index=0)]
        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-1", attempt_id, unknown)
        self.assertEngineError(ctx, ErrorKind.VALIDATION)

        duplicated = good[:9] + [good[0]]
        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-1", attempt_id, duplicated)
        self.assertEngineError(ctx, ErrorKind.VALIDATION)

        out_of_range = good[:9] + [AnswerIn(question_id=good[9].question_id, selected_index=4)]
        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-1", attempt_id, out_of_range)
        self.assertEngineError(ctx, ErrorKind.VALIDATION)

        # Rejected submissions leave the attempt open.
        self.assertEqual(attempt_store.get_skill_attempt(attempt_id)["status"], "in_progress")

        submit_skill_attempt("cand-1", attempt_id, good)
        with self.assertRaises(EngineError) as ctx:
            submit_skill_attempt("cand-1", attempt_id, good)
        self.assertEngineError(ctx, ErrorKind.CONFLICT, "ALREADY_SUBMITTED")

    def test_history_is_newest_first_and_filtered_by_skill(self):
        first = start_skill_attempt("cand-1", "python", supply=self.supply)
        submit_skill_attempt("cand-1", first.attempt.attempt_id, answers_for(first.attempt.attempt_id, 5))
        start_skill_attempt("cand-1", "python", supply=self.supply)
        start_skill_attempt("cand-1", "sql", supply=self.supply)

        history = list_skill_attempt_history("cand-1", "Python")
        self.assertEqual([item.attempt_number for item in history.items], [2, 1])
        self.assertEqual(history.items[1].accuracy, 50)
        self.assertEqual(history.items[1].status, "partially_verified")
        self.assertEqual(len(list_skill_attempt_history("cand-1").items), 3)


class LegacyHistoryTests(unittest.TestCase):
    def setUp(self):
        reset_database()

    def test_stored_violations_override_stored_score(self):
        started_at = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        import_legacy_skill_attempts(
            "cand-1",
            LegacySkillAttemptImport(
                attempts=[
                    LegacySkillAttemptIn(
                        attempt_id="legacy-1",
                        skill_name="Python",
                        attempt_number=1,
                        started_at=started_at,
                        correct_count=8,
                        accuracy=80,
                        verification_status="verified",
                        violation_count=3,
                    )
                ]
            ),
        )
        item = list_skill_attempt_history("cand-1").items[0]
        self.assertEqual(item.accuracy, 0)
        self.assertEqual(item.status, "not_verified")
        self.assertEqual(verified_skill_keys("cand-1"), set())

        stored = attempt_store.get_skill_attempt("legacy-1")
        self.assertEqual(stored["accuracy"], 80)

    def test_duplicate_import_conflicts(self):
        payload = LegacySkillAttemptImport(
            attempts=[
                LegacySkillAttemptIn(
                    attempt_id="legacy-1",
                    skill_name="SQL",
                    attempt_number=1,
                    started_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
                    accuracy=90,
                    verification_status="verified",
                )
            ]
        )
        import_legacy_skill_attempts("cand-1", payload)
        self.assertEqual(verified_skill_keys("cand-1"), {"sql"})
        with self.assertRaises(EngineError) as ctx:
            import_legacy_skill_attempts("cand-1", payload)
        self.assertEqual(ctx.exception.code, "ATTEMPT_EXISTS")

    def test_history_orders_by_instant_across_utc_offsets(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        import_legacy_skill_attempts(
            "cand-1",
            LegacySkillAttemptImport(
                attempts=[
                    LegacySkillAttemptIn(
                        attempt_id="a1",
                        skill_name="Python",
                        attempt_number=1,
                        started_at=datetime(2024, 5, 1, 12, 0, tzinfo=ist),
                    ),
                    LegacySkillAttemptIn(
                        attempt_id="a2",
                        skill_name="Go",
                        attempt_number=1,
                        started_at=datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
                    ),
                ]
            ),
        )
        items = list_skill_attempt_history("cand-1").items
        self.assertEqual([item.attempt_id for item in items], ["a2", "a1"])
        self.assertEqual(items[1].started_at, datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc))


def _screening_questions() -> list[JobAssessmentQuestionIn]:
    return [
        JobAssessmentQuestionIn(text=f"Screening {i}", options=["a", "b", "c", "d"], correct_index=i % 4, difficulty="Easy")
        for i in range(5)
    ]


class JobAttemptLifecycleTests(unittest.TestCase):
    def setUp(self):
        reset_database()
        upsert_job_config(
            "job-1",
            JobConfigIn(
                title="Backend",
                required_skills=["Python"],
                assessment=JobAssessmentIn(enabled=True, pass_percent=60, marks_per_question=2, questions=_screening_questions()),
            ),
        )

    def _answers(self, attempt_id: str, correct: int) -> list[AnswerIn]:
        record = attempt_store.get_job_attempt(attempt_id)
        answers = []
        for i, question in enumerate(record["questions"]):
            right = question["correct_index"]
            answers.append(AnswerIn(question_id=question["question_id"], selected_index=right if i < correct else (right + 1) % 4))
        return answers

    def test_candidate_view_hides_answers(self):
        view = job_assessment_for_candidate("cand-1", "job-1")
        self.assertTrue(view.assessment.enabled)
        self.assertEqual(view.assessment.questions_count, 5)
        self.assertNotIn("correct_index", view.assessment.questions[0].model_dump())
        self.assertIsNone(view.my_attempt)

    def test_start_resume_and_submit(self):
        started = start_job_attempt("cand-1", "job-1")
        resumed = start_job_attempt("cand-1", "job-1")
        self.assertEqual(started.attempt.attempt_id, resumed.attempt.attempt_id)
        self.assertEqual(started.attempt.total_marks, 10)

        attempt_id = started.attempt.attempt_id
        # Unanswered questions count as wrong.
        result = submit_job_attempt("cand-1", "job-1", attempt_id, self._answers(attempt_id, 3)[:3])
        self.assertEqual(result.status, "submitted")
        self.assertEqual(result.correct_count, 3)
        self.assertEqual(result.score_marks, 6)
        self.assertEqual(result.percent, 60.0)
        self.assertTrue(result.passed)
        self.assertTrue(attempt_store.has_passed_job_attempt("cand-1", "job-1"))

        view = job_assessment_for_candidate("cand-1", "job-1")
        self.assertEqual(view.my_attempt.attempt_id, attempt_id)

        with self.assertRaises(EngineError) as ctx:
            submit_job_attempt("cand-1", "job-1", attempt_id, [])
        self.assertEqual(ctx.exception.code, "ALREADY_SUBMITTED")

        retry = start_job_attempt("cand-1", "job-1")
        self.assertEqual(retry.attempt.attempt_number, 2)

    def test_failing_attempt_does_not_pass(self):
        started = start_job_attempt("cand-1", "job-1")
        attempt_id = started.attempt.attempt_id
        result = submit_job_attempt("cand-1", "job-1", attempt_id, self._answers(attempt_id, 2))
        self.assertEqual(result.percent, 40.0)
        self.assertFalse(result.passed)
        self.assertFalse(attempt_store.has_passed_job_attempt("cand-1", "job-1"))

    def test_submit_checks(self):
        upsert_job_config("job-2", JobConfigIn(title="Other", required_skills=["Go"]))
        attempt_id = start_job_attempt("cand-1", "job-1").attempt.attempt_id

        with self.assertRaises(EngineError) as ctx:
            submit_job_attempt("cand-1", "job-2", attempt_id, [])
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

        with self.assertRaises(EngineError) as ctx:
            submit_job_attempt("cand-2", "job-1", attempt_id, [])
        self.assertEqual(ctx.exception.kind, ErrorKind.FORBIDDEN)

        with self.assertRaises(EngineError) as ctx:
            submit_job_attempt("cand-1", "job-1", "missing", [])
        self.assertEqual(ctx.exception.code, "ATTEMPT_NOT_FOUND")

    def test_latest_attempt(self):
        self.assertIsNone(latest_job_attempt("cand-1", "job-1"))
        first = start_job_attempt("cand-1", "job-1").attempt
        submit_job_attempt("cand-1", "job-1", first.attempt_id, [])
        second = start_job_attempt("cand-1", "job-1").attempt
        latest = latest_job_attempt("cand-1", "job-1")
        self.assertEqual(latest.attempt_id, second.attempt_id)
        self.assertEqual(latest.attempt_number, 2)
        self.assertIsNone(latest_job_attempt("cand-2", "job-1"))

        upsert_job_config("job-1", JobConfigIn(title="Backend", status="paused", required_skills=["Python"]))
        with self.assertRaises(EngineError) as ctx:
            latest_job_attempt("cand-1", "job-1")
        self.assertEqual(ctx.exception.code, "JOB_NOT_FOUND")

    def test_start_preconditions(self):
        upsert_job_config("job-off", JobConfigIn(title="No screening", required_skills=["Go"]))
        with self.assertRaises(EngineError) as ctx:
            start_job_attempt("cand-1", "job-off")
        self.assertEqual(ctx.exception.code, "ASSESSMENT_DISABLED")

        upsert_job_config(
            "job-empty",
            JobConfigIn(title="Empty", required_skills=["Go"], assessment=JobAssessmentIn(enabled=True)),
        )
        with self.assertRaises(EngineError) as ctx:
            start_job_attempt("cand-1", "job-empty")
        self.assertEqual(ctx.exception.code, "NOT_CONFIGURED")

        upsert_job_config("job-closed", JobConfigIn(title="Closed", status="closed"))
        with self.assertRaises(EngineError) as ctx:
            start_job_attempt("cand-1", "job-closed")
        self.assertEqual(ctx.exception.code, "JOB_NOT_FOUND")

        with self.assertRaises(EngineError) as ctx:
            start_job_attempt("cand-1", "missing")
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)


if __name__ == "__main__":
    unittest.main()
