# trunkskel/io.py
"""Point loading and skeleton export."""
from __future__ import annotations

import asyncio
import csv
import io as _io
import json
from pathlib import Path
from typing import Optional, Union

import numpy as np
import requests

from utils.error_tracker import InvalidInput, LoadError
from utils.logger import Logger

from .assemble import Skeleton
from .config import LoadCfg

LOG = Logger.get_logger("io")

Source = Union[str, Path]


# ============================================================================ #
# Loading
# ============================================================================ #
def _is_url(source: Source) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def parse_xyz_text(text: str) -> np.ndarray:
    """Whitespace separated floats -> (n, 3); any layout of line breaks."""
    try:
        flat = np.array(text.split(), dtype=np.float64)
    except ValueError as e:
        raise LoadError(f"non-numeric token in point data: {e}") from e
    if flat.size % 3 != 0:
        raise InvalidInput(f"{flat.size} values is not a multiple of 3")
    return flat.reshape(-1, 3)


def _fetch_text(url: str, timeout: float) -> str:
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise LoadError(f"fetch failed for {url}: {e}") from e
    return resp.text


def _read_ply(path: Path) -> np.ndarray:
    import open3d as o3d

    pc = o3d.io.read_point_cloud(str(path))
    if len(pc.points) == 0:
        raise LoadError(f"empty or unreadable cloud at {path}")
    return np.asarray(pc.points, dtype=np.float64)


def load_points(source: Source, cfg: Optional[LoadCfg] = None) -> np.ndarray:
    """
    Read a cloud as (n, 3) float64, sorted ascending by z unless
    ``cfg.sort_by_height`` is off. Local ``.ply`` goes through Open3D;
    everything else is parsed as whitespace separated x y z triples.
    """
    cfg = cfg or LoadCfg()
    if _is_url(source):
        LOG.info(f"fetch {source}")
        pts = parse_xyz_text(_fetch_text(str(source), cfg.timeout_s))
    else:
        path = Path(source)
        if not path.exists():
            raise LoadError(f"no such file: {path}")
        if path.suffix.lower() == ".ply":
            pts = _read_ply(path)
        else:
            try:
                text = path.read_text()
            except (OSError, UnicodeDecodeError) as e:
                raise LoadError(f"cannot read {path}: {e}") from e
            pts = parse_xyz_text(text)
    if pts.shape[0] < 2:
        raise InvalidInput(f"need at least 2 points, got {pts.shape[0]}")
    if cfg.sort_by_height:
        order = np.argsort(pts[:, 2], kind="stable")
        if np.any(order != np.arange(order.size)):
            LOG.warning("input not height ordered; sorted by z")
            pts = pts[order]
    LOG.info(f"loaded {pts.shape[0]} points from {source}")
    return pts


async def aload_points(source: Source, cfg: Optional[LoadCfg] = None) -> np.ndarray:
    """Non-blocking variant of load_points for event-loop hosts."""
    return await asyncio.to_thread(load_points, source, cfg)


# ============================================================================ #
# Export
# ============================================================================ #
def skeleton_to_dict(sk: Skeleton) -> dict:
    return {
        "centers": [[float(c) for c in p] for p in sk.centers],
        "radii": [float(r) for r in sk.radii],
        "bands": [int(b) for b in sk.band_indices],
        "rings": [[[float(c) for c in p] for p in ring] for ring in sk.rings],
    }


def save_skeleton_json(sk: Skeleton, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(skeleton_to_dict(sk)))
    LOG.info(f"saved skeleton: {path}")
    return path


def save_radius_csv(sk: Skeleton, path: Path) -> Path:
    """One row per center: band, x, y, z, radius."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    buf = _io.StringIO()
    w = csv.writer(buf)
    w.writerow(["band", "x", "y", "z", "radius"])
    for b, c, r in Logger.progress(
        zip(sk.band_indices, sk.centers, sk.radii), desc="csv", total=len(sk)
    ):
        w.writerow([int(b), f"{c[0]:.6f}", f"{c[1]:.6f}", f"{c[2]:.6f}", f"{r:.6f}"])
    path.write_text(buf.getvalue())
    LOG.info(f"saved radius profile: {path}")
    return path
