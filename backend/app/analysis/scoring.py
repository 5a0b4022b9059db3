"""
Category scores and the weighted overall score.

Each category starts at 100, accumulates deductions across every page of a
crawl and is clamped to [0, 100] once all pages are scored. The overall
score is the weighted sum rounded half-up.
"""

import math
from dataclasses import dataclass, field

MAX_SCORE = 100

# Category key -> weight in the overall score; order is the summation order
SCORE_WEIGHTS: dict[str, float] = {
    "technical": 0.25,
    "onpage": 0.3,
    "content": 0.2,
    "performance": 0.15,
    "mobile": 0.1,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 rounding up."""
    return math.floor(value + 0.5)


def clamp_score(value: int) -> int:
    return max(0, min(MAX_SCORE, value))


@dataclass
class ScoreCard:
    """Running deductions for the five score categories."""

    deductions: dict[str, int] = field(
        default_factory=lambda: {key: 0 for key in SCORE_WEIGHTS}
    )

    def deduct(self, category: str, points: int) -> None:
        if category not in self.deductions:
            raise KeyError(f"Unknown score category: {category}")
        self.deductions[category] += points

    def scores(self) -> dict[str, int]:
        """Clamped score per category."""
        return {
            key: clamp_score(MAX_SCORE - deducted)
            for key, deducted in self.deductions.items()
        }


def overall_score(scores: dict[str, int]) -> int:
    """
    Weighted overall score.

    >>> overall_score({"technical": 100, "onpage": 93, "content": 97,
    ...                "performance": 100, "mobile": 100})
    97
    """
    total = 0.0
    for key, weight in SCORE_WEIGHTS.items():
        total += scores[key] * weight
    return round_half_up(total)


def score_breakdown(scores: dict[str, int]) -> dict[str, dict[str, float]]:
    """Per-category score and weight, as stored on the audit score row."""
    return {
        key: {"score": scores[key], "weight": weight}
        for key, weight in SCORE_WEIGHTS.items()
    }
