# trunkskel/assemble.py
"""Centerline and ring geometry from refined cross-sections."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from utils.logger import Logger

from .refine import RefinedCrossSection
from .transforms import GridFrame

LOG = Logger.get_logger("assemble")


@dataclass(frozen=True)
class Skeleton:
    centers: np.ndarray  # (M, 3), ascending height
    radii: np.ndarray  # (M,)
    rings: np.ndarray  # (M, N, 3)
    band_indices: np.ndarray  # (M,)
    axis: int = 2

    def __len__(self) -> int:
        return int(self.centers.shape[0])

    @property
    def heights(self) -> np.ndarray:
        return self.centers[:, self.axis]

    def ring_polyline(self) -> np.ndarray:
        """All rings flattened into one (M * N, 3) line strip."""
        return self.rings.reshape(-1, 3)


def circle_coords(n: int) -> np.ndarray:
    """(n, 2) unit circle, first point at angle 0, counter-clockwise."""
    a = (2.0 * np.pi / n) * np.arange(n)
    return np.stack([np.cos(a), np.sin(a)], axis=1)


def world_center(rc: RefinedCrossSection, coarse: GridFrame) -> np.ndarray:
    """
    Coarse frame center + coarse blob center + sub-cell correction, each
    converted back to world units by the scale of the frame it lives in.
    """
    blob = rc.blob
    return (
        np.asarray(coarse.center, float)
        + np.asarray(blob.center, float) / coarse.scale
        + np.asarray(rc.center_correct, float) / blob.rescale
    )


def assemble_skeleton(
    refined: Sequence[RefinedCrossSection],
    coarse: GridFrame,
    n_ring: int = 24,
    axis: int = 2,
) -> Skeleton:
    keep = sorted(
        (rc for rc in refined if rc.section.is_single),
        key=lambda rc: (rc.section.height, rc.section.band_index),
    )
    m = len(keep)
    centers = np.zeros((m, 3), float)
    radii = np.zeros(m, float)
    bands = np.zeros(m, int)
    ax = list(coarse.axes)
    for i, rc in enumerate(keep):
        centers[i, ax] = world_center(rc, coarse)
        centers[i, axis] = rc.section.height
        radii[i] = rc.radius / rc.blob.rescale
        bands[i] = rc.section.band_index
    circle = circle_coords(n_ring)
    rings = np.repeat(centers[:, None, :], n_ring, axis=1)
    rings[:, :, ax[0]] += radii[:, None] * circle[None, :, 0]
    rings[:, :, ax[1]] += radii[:, None] * circle[None, :, 1]
    LOG.info(f"skeleton: {m} centers, {m * n_ring} ring points")
    return Skeleton(centers, radii, rings, bands, axis)
