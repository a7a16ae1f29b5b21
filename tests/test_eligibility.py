import os
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("SKILLGATE_DB_PATH", ":memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from skillgate.core.errors import EngineError, ErrorKind
from skillgate.schemas.assessment import AnswerIn, JobAssessmentQuestionIn
from skillgate.schemas.ingest import CandidateProfileIn, CandidateSkill, JobAssessmentIn, JobConfigIn
from skillgate.services.attempts import start_job_attempt, submit_job_attempt
from skillgate.services.eligibility import apply_to_job, check_application_eligibility, list_my_applications
from skillgate.services.ingest import upsert_candidate_profile, upsert_job_config
from skillgate.storage import attempts as attempt_store
from skillgate.storage.db import fetch_one, reset_database, transaction


def _profile(verified: list[str], claimed: list[str] = (), resume: list[str] = ()) -> CandidateProfileIn:
    skills = [CandidateSkill(name=name, verified=True) for name in verified]
    skills += [CandidateSkill(name=name) for name in claimed]
    return CandidateProfileIn(skills=skills, resume_skills=list(resume))


class EligibilityTests(unittest.TestCase):
    def setUp(self):
        reset_database()
        upsert_job_config("job-1", JobConfigIn(title="Backend", required_skills=["Python", "SQL"]))

    def assertPrecondition(self, code):
        with self.assertRaises(EngineError) as ctx:
            check_application_eligibility("cand-1", "job-1")
        self.assertEqual(ctx.exception.kind, ErrorKind.PRECONDITION_FAILED)
        self.assertEqual(ctx.exception.code, code)

    def test_full_match_is_eligible(self):
        upsert_candidate_profile("cand-1", _profile(["python", "sql"]))
        result = check_application_eligibility("cand-1", "job-1")
        self.assertTrue(result.eligible)
        self.assertEqual(result.match_score, 100)

    def test_half_match_is_below_threshold(self):
        upsert_candidate_profile("cand-1", _profile(["python"]))
        self.assertPrecondition("LOW_MATCH")

    def test_threshold_is_inclusive(self):
        upsert_job_config("job-1", JobConfigIn(title="Backend", required_skills=["a", "b", "c", "d", "e"]))
        upsert_candidate_profile("cand-1", _profile(["a", "b", "c"]))
        self.assertEqual(check_application_eligibility("cand-1", "job-1").match_score, 60)

    def test_claimed_skills_do_not_count(self):
        upsert_candidate_profile("cand-1", _profile([], claimed=["python", "sql"], resume=["python", "sql"]))
        self.assertPrecondition("SKILLS_NOT_VERIFIED")

    def test_missing_job(self):
        with self.assertRaises(EngineError) as ctx:
            check_application_eligibility("cand-1", "nope")
        self.assertEqual(ctx.exception.code, "JOB_NOT_FOUND")

    def test_screening_is_checked_first(self):
        upsert_job_config(
            "job-1",
            JobConfigIn(
                title="Backend",
                required_skills=["Python", "SQL"],
                assessment=JobAssessmentIn(
                    enabled=True,
                    questions=[
                        JobAssessmentQuestionIn(text="Pick b", options=["a", "b", "c", "d"], correct_index=1, difficulty="easy")
                    ],
                ),
            ),
        )
        self.assertPrecondition("ASSESSMENT_NOT_PASSED")

        attempt = start_job_attempt("cand-1", "job-1").attempt
        question_id = attempt_store.get_job_attempt(attempt.attempt_id)["questions"][0]["question_id"]
        submit_job_attempt("cand-1", "job-1", attempt.attempt_id, [AnswerIn(question_id=question_id, selected_index=1)])
        self.assertPrecondition("SKILLS_NOT_VERIFIED")

        upsert_candidate_profile("cand-1", _profile(["python", "sql"]))
        self.assertTrue(check_application_eligibility("cand-1", "job-1").eligible)


class ApplyTests(unittest.TestCase):
    def setUp(self):
        reset_database()
        upsert_job_config("job-1", JobConfigIn(title="Backend", required_skills=["Python", "SQL", "Docker"]))
        upsert_candidate_profile("cand-1", _profile(["python", "sql"], resume=["docker"]))

    def test_apply_snapshots_match_score(self):
        created = apply_to_job("cand-1", "job-1", cover_letter="Hello")
        self.assertEqual(created.status, "pending")
        self.assertEqual(created.match_score, 67)

    def test_second_apply_conflicts_even_when_no_longer_eligible(self):
        apply_to_job("cand-1", "job-1")
        upsert_candidate_profile("cand-1", _profile([]))
        with self.assertRaises(EngineError) as ctx:
            apply_to_job("cand-1", "job-1")
        self.assertEqual(ctx.exception.kind, ErrorKind.CONFLICT)
        self.assertEqual(ctx.exception.code, "ALREADY_APPLIED")

    def test_ineligible_apply_creates_nothing(self):
        upsert_candidate_profile("cand-1", _profile(["python"]))
        with self.assertRaises(EngineError) as ctx:
            apply_to_job("cand-1", "job-1")
        self.assertEqual(ctx.exception.code, "LOW_MATCH")
        self.assertEqual(list_my_applications("cand-1").total, 0)

    def test_my_applications_carry_live_and_display_matches(self):
        apply_to_job("cand-1", "job-1")
        page = list_my_applications("cand-1")
        self.assertEqual(page.total, 1)
        item = page.items[0]
        self.assertEqual(item.job_title, "Backend")
        self.assertEqual(item.match_score, 67)
        self.assertEqual(item.verified_match.match_score, 67)
        self.assertEqual(item.profile_match.match_score, 100)
        self.assertEqual(list_my_applications("cand-1", status="rejected").total, 0)

    def test_missing_match_score_is_backfilled(self):
        created = apply_to_job("cand-1", "job-1")
        with transaction() as conn:
            conn.execute("UPDATE applications SET match_score = NULL WHERE application_id = ?", (created.application_id,))
        upsert_candidate_profile("cand-1", _profile(["python", "sql", "docker"]))

        page = list_my_applications("cand-1")
        self.assertEqual(page.items[0].match_score, 100)
        row = fetch_one("SELECT match_score FROM applications WHERE application_id = ?", (created.application_id,))
        self.assertEqual(row["match_score"], 100)

    def test_stored_match_score_is_not_rewritten(self):
        created = apply_to_job("cand-1", "job-1")
        upsert_candidate_profile("cand-1", _profile(["python", "sql", "docker"]))
        item = list_my_applications("cand-1").items[0]
        self.assertEqual(item.match_score, 67)
        self.assertEqual(item.verified_match.match_score, 100)
        row = fetch_one("SELECT match_score FROM applications WHERE application_id = ?", (created.application_id,))
        self.assertEqual(row["match_score"], 67)


if __name__ == "__main__":
    unittest.main()
