"""Score normalisation for the five-way classification distribution."""
from __future__ import annotations

import math
from typing import Mapping

SUM_TOLERANCE = 0.01


def _round_hundredths(value: float) -> float:
    # Half-up, so 0.125 → 0.13 rather than Python's banker's 0.12
    return math.floor(value * 100 + 0.5) / 100


def normalize_scores(raw_scores: Mapping[str, float]) -> dict[str, float]:
    """
    Rescale scores proportionally so they sum to 1, rounded to 2 decimals.

    An all-zero map is returned unchanged. Rounding may leave the sum up to
    SUM_TOLERANCE away from 1.0, and such results are exactly the plain
    rescale-and-round values; only if it drifts further (possible when every
    score rounds the same way) the scores with the largest rounding error
    are moved one hundredth back toward their exact value.
    """
    total = sum(raw_scores.values())
    if total <= 0:
        return dict(raw_scores)

    if math.isinf(total):
        # Sum overflowed; rescale by the largest score first
        peak = max(raw_scores.values())
        raw_scores = {key: score / peak for key, score in raw_scores.items()}
        total = sum(raw_scores.values())

    exact = {key: score / total for key, score in raw_scores.items()}
    rounded = {key: _round_hundredths(value) for key, value in exact.items()}

    drift = round(sum(rounded.values()) - 1.0, 2)
    while abs(drift) > SUM_TOLERANCE:
        step = -0.01 if drift > 0 else 0.01
        candidates = [
            k for k in rounded
            if (rounded[k] > 0 if step < 0 else rounded[k] < 1)
        ]
        key = max(candidates, key=lambda k: (exact[k] - rounded[k]) * step)
        rounded[key] = round(rounded[key] + step, 2)
        drift = round(drift + step, 2)
    return rounded
