"""Weighted press score from evaluation dimensions."""

from storyscout.core.constants import SCORE_WEIGHTS
from storyscout.core.models import Evaluation


def calculate_press_score(evaluation: Evaluation, weights: dict[str, float] = SCORE_WEIGHTS) -> float:
    """Weighted sum of the five dimensions, rounded to 4 decimals.

    Dimensions are already clamped to [0, 1] and the weights sum to 1, so
    the result lies in [0, 1].
    """
    score = sum(getattr(evaluation, dim) * weight for dim, weight in weights.items())
    return round(min(1.0, max(0.0, score)), 4)


__all__ = ["calculate_press_score"]
