from .keys import normalize_skill_key, skill_key_set

__all__ = ["normalize_skill_key", "skill_key_set"]
