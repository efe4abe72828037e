# trunkskel/stats.py
"""Per-axis summary statistics over an interleaved coordinate buffer."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

from utils.error_tracker import InvalidInput


@dataclass(frozen=True)
class AxisStats:
    count: int
    sum: float
    min: float
    max: float
    mean: float
    var: float  # sample variance, n - 1 denominator
    sd: float

    @property
    def mid(self) -> float:
        return 0.5 * (self.min + self.max)

    @property
    def half_extent(self) -> float:
        return 0.5 * (self.max - self.min)


def as_rows(data, stride: int) -> np.ndarray:
    """View a flat buffer as (n, stride) rows; rejects ragged lengths."""
    if stride < 1:
        raise InvalidInput(f"stride must be >= 1, got {stride}")
    buf = np.asarray(data, dtype=np.float64)
    if buf.ndim != 1:
        buf = buf.reshape(-1)
    if buf.size % stride != 0:
        raise InvalidInput(
            f"buffer length {buf.size} is not a multiple of stride {stride}"
        )
    return buf.reshape(-1, stride)


def compute_axis_stats(data, stride: int = 3) -> List[AxisStats]:
    """
    Two-pass statistics per axis: sum/min/max first, then the squared
    deviations around the already computed mean.

    With a single sample the (n - 1) denominator is zero and ``var``/``sd``
    come out as NaN; callers that need a spread must require n >= 2.
    An empty buffer raises InvalidInput.
    """
    rows = as_rows(data, stride)
    n = rows.shape[0]
    if n == 0:
        raise InvalidInput("cannot compute statistics of an empty buffer")
    sums = rows.sum(axis=0)
    mins = rows.min(axis=0)
    maxs = rows.max(axis=0)
    means = sums / n
    sq = ((rows - means[None, :]) ** 2).sum(axis=0)
    with np.errstate(invalid="ignore", divide="ignore"):
        var = sq / np.float64(n - 1)
    sd = np.sqrt(var)
    return [
        AxisStats(
            count=int(n),
            sum=float(sums[k]),
            min=float(mins[k]),
            max=float(maxs[k]),
            mean=float(means[k]),
            var=float(var[k]),
            sd=float(sd[k]),
        )
        for k in range(stride)
    ]
