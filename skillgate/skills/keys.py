from __future__ import annotations

from collections.abc import Iterable


def normalize_skill_key(name: str | None) -> str:
    """Canonical comparison key for a free-text skill name.

    Trims surrounding whitespace and case-folds. Total: ``None`` and blank
    input map to ``""``, which callers must drop before building key sets.
    """
    return str(name or "").strip().casefold()


def skill_key_set(names: Iterable[str | None]) -> set[str]:
    keys: set[str] = set()
    for name in names:
        key = normalize_skill_key(name)
        if key:
            keys.add(key)
    return keys
