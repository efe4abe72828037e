# trunkskel/transforms.py
"""World <-> normalized grid coordinate frames."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np


@dataclass(frozen=True)
class GridFrame:
    """
    Isotropic planar frame: ndc = (p - center) * scale.

    The grid covers ndc [-1, 1] on both planar axes; ``axes`` picks the two
    world coordinates that span the grid.
    """

    center: Tuple[float, float]
    scale: float
    axes: Tuple[int, int] = (0, 1)

    @property
    def half_extent(self) -> float:
        """World distance from the frame center to the grid edge."""
        return 1.0 / self.scale

    def ndc_to_world(self, ndc) -> np.ndarray:
        return np.asarray(self.center, float) + np.asarray(ndc, float) / self.scale

    def as_matrix(self) -> np.ndarray:
        """3x3 planar affine, uploaded as the splat program's transform."""
        s = self.scale
        cx, cy = self.center
        return np.array(
            [[s, 0.0, -cx * s], [0.0, s, -cy * s], [0.0, 0.0, 1.0]], float
        )


def apply_matrix(M: np.ndarray, uv: np.ndarray) -> np.ndarray:
    return uv @ M[:2, :2].T + M[:2, 2][None, :]


def ndc_to_cell(
    ndc: np.ndarray, size: Union[int, np.ndarray]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map ndc (n, 2) to integer cells (col, row). Points outside [-1, 1] are
    clipped away; the upper edge (ndc == 1) lands in the last cell.
    """
    size = np.asarray(size)
    inside = np.all((ndc >= -1.0) & (ndc <= 1.0), axis=1)
    idx = np.floor((ndc[inside] + 1.0) * 0.5 * size).astype(int)
    idx = np.minimum(idx, size - 1)
    return idx, inside


def cell_edges_ndc(lo: int, hi: int, size: int) -> Tuple[float, float]:
    """ndc span of cells lo..hi inclusive: (2 * (i + edge) - size) / size."""
    return (
        (2.0 * (lo + 0) - size) / size,
        (2.0 * (hi + 1) - size) / size,
    )


def coarse_frame(
    xy_mid: Tuple[float, float],
    xy_half: Tuple[float, float],
    axes: Tuple[int, int] = (0, 1),
) -> GridFrame:
    """Frame that fits the whole cloud footprint into the grid."""
    half = max(float(xy_half[0]), float(xy_half[1]))
    scale = 1.0 / half if half > 0 else 1.0
    return GridFrame(center=(float(xy_mid[0]), float(xy_mid[1])), scale=scale, axes=axes)
