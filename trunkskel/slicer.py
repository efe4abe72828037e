# trunkskel/slicer.py
"""Partition a height-ordered cloud into contiguous bands."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

import numpy as np

from utils.error_tracker import InvalidInput
from utils.logger import Logger

from .stats import as_rows

LOG = Logger.get_logger("slicer")


@dataclass(frozen=True)
class Band:
    """Half-open index range [start, end) into the cloud."""

    index: int
    start: int
    end: int
    min_height: float
    max_height: float

    @property
    def mid_height(self) -> float:
        return 0.5 * (self.min_height + self.max_height)

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def span(self) -> float:
        return self.max_height - self.min_height


class Slicer:
    """
    Re-iterable band sequence over a static buffer.

    A band opens at the current index with ``band_min`` set to its first
    height and grows while ``height - band_min <= delta``. The last band is
    always emitted, however short. Input must be ascending along ``axis``;
    a descending step raises InvalidInput instead of producing overlapping
    bands.
    """

    def __init__(self, data, stride: int = 3, delta: float = 0.1, axis: int = 2):
        if not delta > 0:
            raise InvalidInput(f"delta must be positive, got {delta}")
        if not 0 <= axis < stride:
            raise InvalidInput(f"axis {axis} outside stride {stride}")
        self.heights = np.ascontiguousarray(as_rows(data, stride)[:, axis])
        self.delta = float(delta)
        drops = np.flatnonzero(np.diff(self.heights) < 0)
        if drops.size:
            raise InvalidInput(
                f"heights not ascending at index {int(drops[0]) + 1}; "
                "sort the cloud along the slicing axis first"
            )

    def __iter__(self) -> Iterator[Band]:
        h = self.heights
        n = h.size
        start = 0
        index = 0
        while start < n:
            band_min = h[start]
            # first index whose height exceeds band_min + delta
            end = start + 1
            while end < n and (h[end] - band_min) <= self.delta:
                end += 1
            yield Band(index, start, end, float(band_min), float(h[end - 1]))
            index += 1
            start = end

    def bands(self) -> List[Band]:
        out = list(self)
        LOG.info(
            f"{len(out)} bands over {self.heights.size} points "
            f"(delta={self.delta:g})"
        )
        return out


def calc_bands(data, stride: int = 3, delta: float = 0.1, axis: int = 2) -> List[Band]:
    return Slicer(data, stride, delta, axis).bands()
