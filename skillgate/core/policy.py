"""Engine policy constants loaded from the packaged policy.yaml.

Sections read by the engine: ``skill_assessment`` (question count, difficulty
mix, violation limit, tier thresholds, avoidance window, history limit),
``job_assessment`` (default pass percent and marks per question) and
``matching`` (apply threshold, matched-jobs defaults, page size cap). These
are global; jobs only override pass percent and marks through their own
screening definition.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

_POLICY_CACHE: dict[str, Any] | None = None
_POLICY_PATH = Path(__file__).with_name("policy.yaml")


def get_policy_config() -> dict[str, Any]:
    """Load engine policy constants from the packaged policy.yaml and cache them."""
    global _POLICY_CACHE

    if _POLICY_CACHE is not None:
        return _POLICY_CACHE

    if not _POLICY_PATH.exists():
        raise RuntimeError(f"Policy config not found at '{_POLICY_PATH}'.")

    try:
        raw = _POLICY_PATH.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"Failed to read policy config '{_POLICY_PATH}': {exc}") from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Invalid YAML in policy config '{_POLICY_PATH}': {exc}") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError(f"Invalid policy config '{_POLICY_PATH}': expected a top-level mapping.")

    _POLICY_CACHE = parsed
    return _POLICY_CACHE


def get_policy_value(path: str, default: Any = None) -> Any:
    """Get nested policy value using dot path notation, e.g. 'skill_assessment.tiers.verified'."""
    if not path:
        return default

    current: Any = get_policy_config()
    for key in path.split("."):
        if not isinstance(current, dict):
            return default
        if key not in current:
            return default
        current = current[key]
    return current


def policy_int(path: str, default: int) -> int:
    return int(get_policy_value(path, default))


def policy_float(path: str, default: float) -> float:
    return float(get_policy_value(path, default))
