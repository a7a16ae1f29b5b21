from __future__ import annotations

from skillgate.services.grading import VERIFIED, skill_attempt_view
from skillgate.skills.keys import normalize_skill_key, skill_key_set
from skillgate.storage import attempts as attempt_store
from skillgate.storage import profiles as profile_store


def verified_skill_keys(candidate_id: str) -> set[str]:
    """Skill keys the candidate has demonstrably verified.

    Union of profile entries flagged verified (manual/legacy path) and skills
    with at least one submitted attempt classified ``verified``. There is no
    expiry.
    """
    keys: set[str] = set()

    profile = profile_store.get_candidate_profile(candidate_id)
    if profile:
        keys |= skill_key_set(skill.get("name") for skill in profile["skills"] if skill.get("verified"))

    for record in attempt_store.list_verified_skill_attempts(candidate_id):
        if skill_attempt_view(record).tier != VERIFIED:
            continue
        key = normalize_skill_key(record["skill_name"])
        if key:
            keys.add(key)

    return keys


def claimed_skill_keys(candidate_id: str) -> set[str]:
    """Every skill listed on the profile, verified or not."""
    profile = profile_store.get_candidate_profile(candidate_id)
    if not profile:
        return set()
    return skill_key_set(skill.get("name") for skill in profile["skills"])


def resume_skill_keys(candidate_id: str) -> set[str]:
    # Display-only; never part of enforcement.
    profile = profile_store.get_candidate_profile(candidate_id)
    if not profile:
        return set()
    return skill_key_set(profile["resume_skills"])
