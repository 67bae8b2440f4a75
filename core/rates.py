from __future__ import annotations

from typing import Iterable, Tuple

from core.data import round_half_up


def percentage(numerator: float, denominator: float, precision: int = 0) -> float:
    """``numerator / denominator * 100`` rounded half-up; 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return round_half_up(numerator / denominator * 100, precision) or 0.0


def average_workforce(started: float, ended: float) -> float:
    return (started + ended) / 2


def period_average_workforce(pairs: Iterable[Tuple[float, float]]) -> float:
    # Per-record averages are summed; the period ratio is taken afterwards.
    return sum(average_workforce(s, e) for s, e in pairs)


def turnover_rate(finished: float, avg_workforce: float, precision: int = 2) -> float:
    return percentage(finished, avg_workforce, precision)
