import math
import re
import time
from typing import Iterable, Optional


class MathTools:
    """Provides the small numeric helpers shared by the models."""

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def to_number(value: object, default: float = 0.0) -> float:
        """Parse user input, returning ``default`` for blanks and garbage."""
        if value is None or isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            result = float(value)
        else:
            try:
                result = float(str(value).strip().replace(",", "."))
            except ValueError:
                return default
        # nan and inf parse as floats but are not usable numbers
        return result if math.isfinite(result) else default

    @classmethod
    def to_int(cls, value: object, default: int = 0) -> int:
        return int(cls.to_number(value, default))

    @classmethod
    def volume(cls, sets: Iterable[tuple[object, object]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += cls.to_number(reps) * cls.to_number(weight)
        return vol


class SlugTools:
    """Derive stable training-day tags from free text."""

    MAX_LENGTH = 40
    _NON_ALNUM = re.compile(r"[^a-z0-9]+")

    @classmethod
    def slugify(cls, text: str) -> str:
        slug = cls._NON_ALNUM.sub("-", (text or "").lower()).strip("-")
        return slug[: cls.MAX_LENGTH]

    @classmethod
    def first_slug(
        cls, candidates: Iterable[Optional[str]], now_ms: int | None = None
    ) -> str:
        """Slug of the first candidate that yields one, else a timestamp tag."""
        for candidate in candidates:
            slug = cls.slugify(candidate or "")
            if slug:
                return slug
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        return f"plan-{stamp}"


PLAN_PALETTE = [
    "#F2E8FF",
    "#E8F3FF",
    "#E9FBF2",
    "#FFF4E5",
    "#E8F7FF",
    "#FFF0F2",
    "#E7ECFF",
]


def pick_color(seed: str | None) -> str:
    if not seed:
        return PLAN_PALETTE[0]
    total = sum(ord(ch) for ch in seed)
    return PLAN_PALETTE[total % len(PLAN_PALETTE)]


def confirmed(confirm, prompt: str) -> bool:
    """Resolve a deletion confirmation given as a flag or a prompt callable."""
    if callable(confirm):
        return bool(confirm(prompt))
    return bool(confirm)
