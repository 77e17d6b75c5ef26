"""
Global offset search by normalized cross-correlation of energy profiles.
"""

import logging
import math
from collections.abc import Sequence

import numpy as np

from .models import EnergyProfile, OffsetResult

logger = logging.getLogger("dubsync")

MAX_OFFSET_MS = 15 * 60 * 1000  # search window of +/- 15 minutes
STD_FLOOR = 1e-6


def normalize_series(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Z-score normalize; the std floor keeps constant series finite."""
    data = np.asarray(values, dtype=np.float64)
    if data.size == 0:
        return data
    std = max(float(data.std()), STD_FLOOR)
    return (data - data.mean()) / std


def find_best_offset(
    series_a: Sequence[float] | np.ndarray | EnergyProfile,
    series_b: Sequence[float] | np.ndarray | EnergyProfile,
    hop_ms: float,
    max_offset_ms: float = MAX_OFFSET_MS,
) -> OffsetResult:
    """
    Exhaustive search over integer hop steps in [-max_steps, +max_steps].

    For step > 0, a[i] is compared with b[i + step]; for step < 0, a[i - step]
    with b[i]. The score is the mean product over the overlap, the first best
    step wins ties, and steps with no overlap score -inf.
    """
    if isinstance(series_a, EnergyProfile):
        series_a = series_a.values
    if isinstance(series_b, EnergyProfile):
        series_b = series_b.values
    if hop_ms <= 0:
        raise ValueError("hop_ms must be positive")
    a = normalize_series(series_a)
    b = normalize_series(series_b)

    max_steps = int(math.floor(max_offset_ms / hop_ms))
    best = OffsetResult(offset_ms=0, score=-math.inf)

    # Steps outside this range have no overlap and score -inf.
    first = max(-max_steps, -(len(a) - 1))
    last = min(max_steps, len(b) - 1)
    for step in range(first, last + 1):
        a_start = max(0, -step)
        b_start = max(0, step)
        n = min(len(a) - a_start, len(b) - b_start)
        if n <= 0:
            continue
        score = float(np.dot(a[a_start : a_start + n], b[b_start : b_start + n])) / n
        if score > best.score:
            best = OffsetResult(offset_ms=int(round(step * hop_ms)), score=score)

    logger.debug(
        "Offset search over %d steps: %d ms (score %.3f)", 2 * max_steps + 1, best.offset_ms, best.score
    )
    return best
