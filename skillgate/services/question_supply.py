from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from skillgate.core.config import settings
from skillgate.core.policy import get_policy_value, policy_int
from skillgate.schemas.assessment import Question
from skillgate.skills.keys import normalize_skill_key

logger = logging.getLogger(__name__)

_DIFFICULTIES = ("easy", "medium", "hard")


class QuestionSupplyUnavailable(Exception):
    """The supply cannot produce questions for the requested skill."""


class QuestionSupply(Protocol):
    def supply_questions(self, skill_name: str, count: int, avoid_hashes: set[str]) -> list[Question]:
        """Return ``count`` questions, avoiding content hashes in ``avoid_hashes`` where possible."""


def content_hash(text: str) -> str:
    return hashlib.sha256(str(text or "").strip().lower().encode("utf-8")).hexdigest()


def stable_question_id(scope: str, text: str) -> str:
    base = f"{scope}::{str(text or '').strip().lower()}"
    return hashlib.sha1(base.encode("utf-8")).hexdigest()


def difficulty_mix() -> dict[str, int]:
    raw = get_policy_value("skill_assessment.difficulty_mix", {}) or {}
    return {level: int(raw.get(level, 0)) for level in _DIFFICULTIES}


class BankQuestionSupply:
    """Question supply backed by a static JSON bank keyed by skill name.

    Each skill maps difficulty -> list of ``{text, options, correct_index}``.
    Questions whose content hash the caller asked to avoid are used only when
    the bank runs out of fresh ones.
    """

    def __init__(self, bank_path: str | Path | None = None) -> None:
        path = Path(bank_path) if bank_path else Path(__file__).with_name("question_bank.json")
        self._bank = self._load_bank(path)

    @staticmethod
    def _load_bank(path: Path) -> dict[str, dict[str, list[dict[str, Any]]]]:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        return {normalize_skill_key(key): value for key, value in raw.items() if normalize_skill_key(key)}

    def supply_questions(self, skill_name: str, count: int, avoid_hashes: set[str]) -> list[Question]:
        skill_key = normalize_skill_key(skill_name)
        bank = self._bank.get(skill_key)
        if not bank:
            raise QuestionSupplyUnavailable(f"No question bank exists for skill '{skill_name}'.")

        mix = difficulty_mix()
        if sum(mix.values()) != count:
            mix = {"easy": count, "medium": 0, "hard": 0}

        picked: list[Question] = []
        for difficulty in _DIFFICULTIES:
            wanted = mix[difficulty]
            if wanted <= 0:
                continue
            chosen = _pick(bank.get(difficulty, []), wanted, avoid_hashes)
            if len(chosen) < wanted:
                raise QuestionSupplyUnavailable(
                    f"Question bank for '{skill_name}' has fewer than {wanted} {difficulty} questions."
                )
            for item in chosen:
                picked.append(
                    Question(
                        question_id=stable_question_id(skill_key, item["text"]),
                        text=str(item["text"]).strip(),
                        options=[str(option).strip() for option in item["options"]],
                        correct_index=int(item["correct_index"]),
                        difficulty=difficulty,
                        content_hash=content_hash(item["text"]),
                    )
                )
        return picked


def _pick(source: Iterable[dict[str, Any]], count: int, avoid_hashes: set[str]) -> list[dict[str, Any]]:
    fresh: list[dict[str, Any]] = []
    seen: list[dict[str, Any]] = []
    used: set[str] = set()
    for item in source:
        digest = content_hash(item.get("text", ""))
        if digest in used:
            continue
        used.add(digest)
        (seen if digest in avoid_hashes else fresh).append(item)
    return (fresh + seen)[:count]


def validate_supplied_questions(questions: list[Question], count: int) -> None:
    """Reject supply output that could not be graded consistently."""
    if len(questions) != count:
        raise ValueError(f"expected exactly {count} questions, got {len(questions)}")
    hashes = {q.content_hash for q in questions}
    ids = {q.question_id for q in questions}
    if len(hashes) != count or len(ids) != count:
        raise ValueError("duplicate questions detected")
    for question in questions:
        if not question.text.strip():
            raise ValueError("question text missing")
        if any(not option.strip() for option in question.options):
            raise ValueError("each question must have 4 non-empty options")


_DEFAULT_SUPPLY: QuestionSupply | None = None


def get_default_question_supply() -> QuestionSupply | None:
    """Bank-backed supply, loaded once. A failed load is retried on the next call."""
    global _DEFAULT_SUPPLY

    if _DEFAULT_SUPPLY is not None:
        return _DEFAULT_SUPPLY
    try:
        _DEFAULT_SUPPLY = BankQuestionSupply(settings.question_bank_path)
    except (OSError, ValueError) as exc:
        logger.warning("question_bank_unavailable path=%s error=%s", settings.question_bank_path, exc)
        return None
    return _DEFAULT_SUPPLY


def skill_question_count() -> int:
    return policy_int("skill_assessment.question_count", 10)
