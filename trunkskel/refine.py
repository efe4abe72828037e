# trunkskel/refine.py
"""Blob-magnified re-classification of single-blob bands."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from utils.error_tracker import EmptyBlob
from utils.logger import Logger

from .clustering import OccupancyEngine
from .sections import BlobBox, CrossSection
from .slicer import Band
from .stats import AxisStats, compute_axis_stats
from .transforms import GridFrame

LOG = Logger.get_logger("refine")


@dataclass(frozen=True)
class RefinedCrossSection:
    section: CrossSection
    center_correct: Tuple[float, float]  # ndc of the blob-centred frame
    radius_stats: AxisStats  # distances in ndc of the blob-centred frame

    @property
    def blob(self) -> BlobBox:
        return self.section.blobs[0]

    @property
    def radius(self) -> float:
        """Enclosing radius in ndc of the blob-centred frame."""
        return self.radius_stats.max


def blob_frame(blob: BlobBox, coarse: GridFrame) -> GridFrame:
    """Frame centred on the blob box, magnified so the box fills the grid."""
    cx, cy = coarse.ndc_to_world(blob.center)
    return GridFrame(center=(float(cx), float(cy)), scale=blob.rescale, axes=coarse.axes)


class ClusterRefiner:
    """Single-pass re-classification of one-blob bands at blob magnification."""

    def __init__(self, engine: OccupancyEngine, coarse: GridFrame, reach_px: int) -> None:
        self.engine = engine
        self.coarse = coarse
        self.reach_px = int(reach_px)

    def refine(
        self, section: CrossSection, band: Band, vertices: np.ndarray
    ) -> RefinedCrossSection:
        if not section.is_single:
            raise ValueError(
                f"band {section.band_index} has {section.blob_count} blobs"
            )
        self.engine.splat(vertices, band, blob_frame(section.blobs[0], self.coarse))
        self.engine.run_passes(1, self.reach_px)
        self.engine.geometry_pass()
        px = self.engine.readback().reshape(-1, 4)
        # geometry readout keeps point cells only
        cells = px[px[:, 3] > 0]
        if cells.shape[0] == 0:
            raise EmptyBlob(f"band {section.band_index}: no cells under magnification")
        stats = compute_axis_stats(cells[:, 0].astype(np.float64), 1)[0]
        return RefinedCrossSection(
            section=section,
            center_correct=(float(cells[0, 1]), float(cells[0, 2])),
            radius_stats=stats,
        )
