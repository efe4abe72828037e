# trunkskel/snapshots.py
"""Debug PNG snapshots of occupancy grids."""
from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from utils.logger import Logger

from .backend import BILLBOARD_COMPOSITE, ProgramHandle, RenderBackend, TargetHandle

LOG = Logger.get_logger("snap")


def composite_image(
    backend: RenderBackend,
    program: ProgramHandle,
    grid: TargetHandle,
    scratch: TargetHandle,
) -> np.ndarray:
    """Render ``grid`` through the composite program; returns uint8 RGB, top row first."""
    backend.clear(scratch)
    backend.draw(program, None, (0, 0), scratch, {"source": grid})
    px = backend.read_pixels(scratch).reshape(scratch.height, scratch.width, 4)
    rgb = np.clip(px[..., :3] * 255.0, 0, 255).astype(np.uint8)
    return rgb[::-1]


def save_grid_png(
    path: Path,
    backend: RenderBackend,
    programs: dict,
    grid: TargetHandle,
    scratch: TargetHandle,
    upscale: int = 4,
) -> Path:
    rgb = composite_image(backend, programs[BILLBOARD_COMPOSITE], grid, scratch)
    if upscale > 1:
        rgb = cv2.resize(
            rgb,
            (rgb.shape[1] * upscale, rgb.shape[0] * upscale),
            interpolation=cv2.INTER_NEAREST,
        )
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    LOG.debug(f"saved {path}")
    return path
