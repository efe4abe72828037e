# trunkskel/backend.py
"""Rendering backend contract and the numpy/OpenCV software implementation."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol, Tuple

import numpy as np

from utils.error_tracker import DeviceLost, InvalidInput
from utils.logger import Logger

from . import kernels

LOG = Logger.get_logger("backend")

POINT_SPLAT = "point-splat"
CLUSTER_PROPAGATION = "cluster-propagation"
GEOMETRY_READOUT = "geometry-readout"
BILLBOARD_COMPOSITE = "billboard-composite"
PROGRAM_NAMES = (POINT_SPLAT, CLUSTER_PROPAGATION, GEOMETRY_READOUT, BILLBOARD_COMPOSITE)


@dataclass(frozen=True)
class ProgramHandle:
    id: int
    name: str


@dataclass
class TargetHandle:
    id: int
    width: int
    height: int
    pixels: np.ndarray = field(repr=False)


class RenderBackend(Protocol):
    @property
    def is_lost(self) -> bool: ...

    def release(self) -> None: ...

    def compile_program(self, vertex_source: str, fragment_source: str) -> ProgramHandle: ...

    def create_target(self, width: int, height: int) -> TargetHandle: ...

    def clear(self, target: TargetHandle) -> None: ...

    def draw(
        self,
        program: ProgramHandle,
        vertices: Optional[np.ndarray],
        index_range: Tuple[int, int],
        target: TargetHandle,
        uniforms: Dict,
    ) -> None: ...

    def read_pixels(
        self, target: TargetHandle, region: Optional[Tuple[int, int, int, int]] = None
    ) -> np.ndarray: ...


def program_name(source: str) -> str:
    """Kernel name declared on the ``// program: <name>`` line of a source."""
    for line in source.splitlines():
        line = line.strip()
        if line.startswith("// program:"):
            return line.split(":", 1)[1].strip()
    raise InvalidInput("program source has no '// program:' declaration")


class CpuBackend:
    """
    Software stand-in for a GPU context. Targets are float32 RGBA grids,
    draws run synchronously, so read_pixels always sees finished work.
    """

    _KERNELS: Dict[str, Callable] = {
        POINT_SPLAT: kernels.point_splat,
        CLUSTER_PROPAGATION: kernels.cluster_propagation,
        GEOMETRY_READOUT: kernels.geometry_readout,
        BILLBOARD_COMPOSITE: kernels.billboard_composite,
    }

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._programs: Dict[int, str] = {}
        self._targets: Dict[int, TargetHandle] = {}
        self._lost = False

    # ------------------------------------------------------------------ state
    @property
    def is_lost(self) -> bool:
        return self._lost

    def lose_device(self) -> None:
        """Simulate context loss; every later call raises DeviceLost."""
        LOG.warning("device lost")
        self._lost = True

    def _check(self) -> None:
        if self._lost:
            raise DeviceLost("rendering context was lost")

    def release(self) -> None:
        self._programs.clear()
        self._targets.clear()

    # -------------------------------------------------------------- resources
    def compile_program(self, vertex_source: str, fragment_source: str) -> ProgramHandle:
        self._check()
        name = program_name(fragment_source)
        if name not in self._KERNELS:
            raise InvalidInput(f"unknown program {name!r}")
        handle = ProgramHandle(next(self._ids), name)
        self._programs[handle.id] = name
        LOG.debug(f"compiled {name} -> #{handle.id}")
        return handle

    def create_target(self, width: int, height: int) -> TargetHandle:
        self._check()
        if width < 1 or height < 1:
            raise InvalidInput(f"bad target size {width}x{height}")
        pixels = np.empty((height, width, 4), np.float32)
        pixels[...] = kernels.CLEAR_VALUE
        handle = TargetHandle(next(self._ids), width, height, pixels)
        self._targets[handle.id] = handle
        return handle

    # ---------------------------------------------------------------- drawing
    def clear(self, target: TargetHandle) -> None:
        self._check()
        target.pixels[...] = kernels.CLEAR_VALUE

    def draw(
        self,
        program: ProgramHandle,
        vertices: Optional[np.ndarray],
        index_range: Tuple[int, int],
        target: TargetHandle,
        uniforms: Dict,
    ) -> None:
        self._check()
        name = self._programs.get(program.id)
        if name is None:
            raise InvalidInput(f"program #{program.id} not compiled here")
        kernel = self._KERNELS[name]
        if name == POINT_SPLAT:
            kernel(target.pixels, vertices, index_range, uniforms)
            return
        src = uniforms.get("source")
        if isinstance(src, TargetHandle):
            if src is target:
                raise InvalidInput("source and target must differ")
            uniforms = dict(uniforms, source=src.pixels)
        kernel(target.pixels, uniforms)

    def read_pixels(
        self, target: TargetHandle, region: Optional[Tuple[int, int, int, int]] = None
    ) -> np.ndarray:
        """Flat float32 copy, RGBA per cell, rows bottom-up as drawn."""
        self._check()
        px = target.pixels
        if region is not None:
            x, y, w, h = region
            px = px[y : y + h, x : x + w]
        return px.reshape(-1).copy()
