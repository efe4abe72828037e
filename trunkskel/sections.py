# trunkskel/sections.py
"""Per-band blob boxes read back from a classified grid."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from scipy import ndimage

from utils.logger import Logger

from .slicer import Band
from .transforms import GridFrame, cell_edges_ndc

LOG = Logger.get_logger("sections")


@dataclass(frozen=True)
class BlobBox:
    id: int
    xrange: Tuple[float, float]  # ndc of the coarse frame
    yrange: Tuple[float, float]
    rescale: float  # scale that maps the box onto the full grid

    @property
    def center(self) -> Tuple[float, float]:
        return (
            0.5 * (self.xrange[0] + self.xrange[1]),
            0.5 * (self.yrange[0] + self.yrange[1]),
        )


@dataclass(frozen=True)
class CrossSection:
    band_index: int
    height: float
    blobs: Tuple[BlobBox, ...]

    @property
    def blob_count(self) -> int:
        return len(self.blobs)

    @property
    def is_single(self) -> bool:
        return len(self.blobs) == 1


def extract_cross_section(grid: np.ndarray, band: Band, frame: GridFrame) -> CrossSection:
    """
    One BlobBox per distinct positive id in ``grid`` (H, W, 4), in ascending
    id order. Only point cells (count > 0) span a box; link cells grown by
    propagation carry ids but no points. Boxes are cell-edge aligned;
    ``rescale`` is 2 / max(half_extent * box_w, half_extent * box_h), i.e.
    the box width in world units mapped onto the grid's [-1, 1] span.
    """
    H, W = grid.shape[:2]
    ids = grid[..., 3]
    pos = (ids > 0) & (grid[..., 0] > 0)
    if not pos.any():
        LOG.debug(f"band {band.index}: empty grid")
        return CrossSection(band.index, band.mid_height, ())
    uniq = np.unique(ids[pos])
    labels = np.zeros((H, W), np.int32)
    labels[pos] = np.searchsorted(uniq, ids[pos]) + 1
    half = frame.half_extent
    blobs: List[BlobBox] = []
    for cid, sl in zip(uniq, ndimage.find_objects(labels)):
        rows, cols = sl
        xr = cell_edges_ndc(cols.start, cols.stop - 1, W)
        yr = cell_edges_ndc(rows.start, rows.stop - 1, H)
        span = max(half * (xr[1] - xr[0]), half * (yr[1] - yr[0]))
        blobs.append(BlobBox(int(cid), xr, yr, 2.0 / span))
    LOG.debug(f"band {band.index}: {len(blobs)} blob(s)")
    return CrossSection(band.index, band.mid_height, tuple(blobs))
