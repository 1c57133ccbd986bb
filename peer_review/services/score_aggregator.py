"""
Score aggregation for peer reviews.

Per-criterion scores are combined with an outlier-resistant trimmed mean and
the four criterion means are folded into one consensus number.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Dict, Any

DEFAULT_TRIM_THRESHOLD = 5


def trimmed_mean(values: Sequence[float], min_count: int = DEFAULT_TRIM_THRESHOLD) -> float:
    """
    Mean of ``values`` with one lowest and one highest value dropped.

    Fewer than ``min_count`` values are averaged as-is; an empty input yields 0.
    The input is not modified.
    """
    if not values:
        return 0.0
    if len(values) < min_count:
        return sum(values) / len(values)
    kept = sorted(values)[1:-1]
    return sum(kept) / len(kept)


def round_half_away_from_zero(value: float, places: int = 2) -> float:
    """Round so that ties move away from zero (4.125 -> 4.13)."""
    factor = 10 ** places
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


def overall_score(clarity: float, argument: float, style: float, moral_depth: float) -> float:
    """Mean of the four criterion means, rounded to two decimals."""
    return round_half_away_from_zero((clarity + argument + style + moral_depth) / 4)


@dataclass
class CriterionMeans:
    """Trimmed mean per criterion for one submission"""
    clarity: float
    argument: float
    style: float
    moral_depth: float

    @property
    def overall(self) -> float:
        return overall_score(self.clarity, self.argument, self.style, self.moral_depth)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clarity": self.clarity,
            "argument": self.argument,
            "style": self.style,
            "moral_depth": self.moral_depth,
            "overall": self.overall,
        }


def aggregate_reviews(reviews: Iterable[Any], min_count: int = DEFAULT_TRIM_THRESHOLD) -> CriterionMeans:
    """Collect each criterion across ``reviews`` and take its trimmed mean."""
    reviews = list(reviews)
    return CriterionMeans(
        clarity=trimmed_mean([r.clarity for r in reviews], min_count),
        argument=trimmed_mean([r.argument for r in reviews], min_count),
        style=trimmed_mean([r.style for r in reviews], min_count),
        moral_depth=trimmed_mean([r.moral_depth for r in reviews], min_count),
    )
