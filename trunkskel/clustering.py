# trunkskel/clustering.py
"""Occupancy clustering over two ping-pong grids."""
from __future__ import annotations

from typing import Dict

import numpy as np

from utils.logger import Logger

from .backend import (
    CLUSTER_PROPAGATION,
    GEOMETRY_READOUT,
    POINT_SPLAT,
    ProgramHandle,
    RenderBackend,
    TargetHandle,
)
from .slicer import Band
from .transforms import GridFrame

LOG = Logger.get_logger("cluster")


class OccupancyEngine:
    """
    Owns the grid pair for a run. ``splat`` seeds grid A from one band,
    ``run_passes`` relaxes ids back and forth between the two grids. The
    engine never decides when to stop; the caller enforces the budget.
    """

    def __init__(
        self,
        backend: RenderBackend,
        programs: Dict[str, ProgramHandle],
        grid_size: int,
    ) -> None:
        self.backend = backend
        self.programs = programs
        self.grid_size = int(grid_size)
        self.targets: tuple[TargetHandle, TargetHandle] = (
            backend.create_target(self.grid_size, self.grid_size),
            backend.create_target(self.grid_size, self.grid_size),
        )
        self.current = 0
        self.passes_done = 0

    @property
    def front(self) -> TargetHandle:
        return self.targets[self.current]

    def _flip(self) -> tuple[TargetHandle, TargetHandle]:
        src = self.targets[self.current]
        self.current = 1 - self.current
        dst = self.targets[self.current]
        self.backend.clear(dst)
        return src, dst

    def splat(self, vertices: np.ndarray, band: Band, frame: GridFrame) -> None:
        self.current = 0
        self.passes_done = 0
        dst = self.targets[0]
        self.backend.clear(dst)
        self.backend.draw(
            self.programs[POINT_SPLAT],
            vertices,
            (band.start, band.end),
            dst,
            {"transform": frame.as_matrix(), "axes": frame.axes},
        )

    def run_passes(self, n: int, reach: int) -> int:
        """Run ``n`` more passes; the pass index since ``splat`` is the ``step`` uniform."""
        prog = self.programs[CLUSTER_PROPAGATION]
        for _ in range(max(0, int(n))):
            src, dst = self._flip()
            self.backend.draw(
                prog,
                None,
                (0, 0),
                dst,
                {"source": src, "reach": reach, "step": self.passes_done},
            )
            self.passes_done += 1
        return self.passes_done

    def geometry_pass(self) -> None:
        src, dst = self._flip()
        self.backend.draw(self.programs[GEOMETRY_READOUT], None, (0, 0), dst, {"source": src})

    def readback(self) -> np.ndarray:
        """Front grid as (H, W, 4); blocks until the draws finished."""
        flat = self.backend.read_pixels(self.front)
        return flat.reshape(self.grid_size, self.grid_size, 4)
