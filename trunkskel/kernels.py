# trunkskel/kernels.py
"""
Per-cell programs executed by the software backend.

Every kernel writes a full (H, W, 4) float32 grid. Channel layout:
  0: distance-like scalar (point count after splatting, 0 on link cells
     grown by propagation, distance to the blob center after geometry
     readout)
  1, 2: planar position in the grid's ndc frame
  3: classification id; <= 0 means empty
"""
from __future__ import annotations

from typing import Dict

import cv2
import numpy as np

from .transforms import apply_matrix, ndc_to_cell

CLEAR_VALUE = np.array([-1.0, -2.0, -3.0, -4.0], np.float32)

_NEIGHBOURS = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 3))
_HOPS_PER_PASS = 2
_LINK_SHADE = 0.35


def point_splat(
    out: np.ndarray, vertices: np.ndarray, index_range, uniforms: Dict
) -> None:
    """Rasterize points; each occupied cell gets a unique positive id."""
    H, W = out.shape[:2]
    start, end = index_range
    axes = list(uniforms.get("axes", (0, 1)))
    uv = vertices[start:end][:, axes]
    ndc = apply_matrix(np.asarray(uniforms["transform"], float), uv)
    cells, inside = ndc_to_cell(ndc, np.array([W, H]))
    if cells.size == 0:
        return
    ndc = ndc[inside]
    lin = cells[:, 1] * W + cells[:, 0]
    counts = np.bincount(lin, minlength=W * H)
    sx = np.bincount(lin, weights=ndc[:, 0], minlength=W * H)
    sy = np.bincount(lin, weights=ndc[:, 1], minlength=W * H)
    occ = np.flatnonzero(counts)
    flat = out.reshape(-1, 4)
    flat[occ, 0] = counts[occ]
    flat[occ, 1] = sx[occ] / counts[occ]
    flat[occ, 2] = sy[occ] / counts[occ]
    flat[occ, 3] = occ + 1


def _dilate(seeds: np.ndarray) -> np.ndarray:
    return cv2.dilate(seeds, _NEIGHBOURS, borderType=cv2.BORDER_CONSTANT, borderValue=0)


def cluster_propagation(out: np.ndarray, uniforms: Dict) -> None:
    """
    One relaxation pass over the claimed cells (id > 0).

    While ``step < reach`` the claimed region first grows by one cell in
    every direction; grown link cells get count 0 and only relay ids. Once
    the growth budget is spent, point cells up to ``2 * reach + 1`` cells
    apart lie in one connected region and far-apart ones never do. Each pass
    then moves the largest id ``_HOPS_PER_PASS`` cells through the region.
    """
    src = uniforms["source"]
    reach = max(0, int(uniforms.get("reach", 1)))
    step = int(uniforms.get("step", 0))
    out[...] = src
    claimed = src[..., 3] > 0
    if not claimed.any():
        return
    seeds = np.where(claimed, src[..., 3], 0.0).astype(np.float32)
    if step < reach:
        seeds = _dilate(seeds)
        grown = (seeds > 0) & ~claimed
        out[grown] = (0.0, CLEAR_VALUE[1], CLEAR_VALUE[2], 0.0)
        claimed |= grown
    for _ in range(_HOPS_PER_PASS):
        seeds = np.where(claimed, np.maximum(seeds, _dilate(seeds)), 0.0)
    out[..., 3][claimed] = seeds[claimed]


def geometry_readout(out: np.ndarray, uniforms: Dict) -> None:
    """
    Smallest circle enclosing the point cells (count > 0 and id > 0). Each
    point cell receives (distance to the circle center, center x, center y,
    id); link cells are dropped. The farthest cell lies on the circle, so
    the largest distance is the section radius for filled and hollow
    sections alike.
    """
    src = uniforms["source"]
    occ = (src[..., 0] > 0) & (src[..., 3] > 0)
    if not occ.any():
        return
    cells = src[occ]
    (cx, cy), _ = cv2.minEnclosingCircle(cells[:, None, 1:3].astype(np.float32))
    pos = cells[:, 1:3].astype(np.float64)
    res = np.empty_like(cells)
    res[:, 0] = np.hypot(pos[:, 0] - cx, pos[:, 1] - cy)
    res[:, 1] = cx
    res[:, 2] = cy
    res[:, 3] = cells[:, 3]
    out[occ] = res


def billboard_composite(out: np.ndarray, uniforms: Dict) -> None:
    """False-color view of a grid: one hue per id, link cells dimmed, empty cells black."""
    src = uniforms["source"]
    ids = src[..., 3]
    occ = ids > 0
    out[...] = 0.0
    out[..., 3] = 1.0
    if not occ.any():
        return
    hue = (ids[occ].astype(np.int64) * 47) % 180
    hsv = np.zeros((hue.size, 1, 3), np.uint8)
    hsv[:, 0, 0] = hue
    hsv[:, 0, 1] = 200
    hsv[:, 0, 2] = 255
    rgb = cv2.cvtColor(hsv, cv2.COLOR_HSV2RGB)[:, 0, :].astype(np.float32) / 255.0
    rgb[src[..., 0][occ] <= 0] *= _LINK_SHADE
    out[..., :3][occ] = rgb
