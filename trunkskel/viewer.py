# trunkskel/viewer.py
"""Open3D geometries and viewer for the finished skeleton."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import numpy as np
import open3d as o3d

from utils.logger import Logger

from .assemble import Skeleton
from .config import ViewerCfg

LOG = Logger.get_logger("viewer")


def make_lineset_from_polylines(
    polys: Iterable[np.ndarray],
    color: Tuple[float, float, float],
    closed: bool = False,
) -> o3d.geometry.LineSet:
    """Polylines -> one LineSet; ``closed`` joins each last point to its first."""
    pts, segs, base = [], [], 0
    for P in polys:
        if P is None or len(P) < 2:
            continue
        n = len(P)
        a = np.arange(base, base + n - 1)
        if closed:
            a = np.append(a, base + n - 1)
        b = np.where(a + 1 < base + n, a + 1, base)
        pts.append(P)
        segs.append(np.stack([a, b], axis=1))
        base += n
    ls = o3d.geometry.LineSet()
    if not pts:
        return ls
    E = np.vstack(segs).astype(np.int32)
    ls.points = o3d.utility.Vector3dVector(np.vstack(pts))
    ls.lines = o3d.utility.Vector2iVector(E)
    ls.colors = o3d.utility.Vector3dVector(np.tile(np.asarray(color, float), (len(E), 1)))
    return ls


def skeleton_linesets(
    sk: Skeleton, cfg: ViewerCfg = ViewerCfg()
) -> Tuple[o3d.geometry.LineSet, o3d.geometry.LineSet]:
    center_ls = make_lineset_from_polylines([sk.centers], cfg.centerline_rgb)
    rings_ls = make_lineset_from_polylines(list(sk.rings), cfg.rings_rgb, closed=True)
    return center_ls, rings_ls


def cloud_geometry(points: np.ndarray, cfg: ViewerCfg = ViewerCfg()) -> o3d.geometry.PointCloud:
    pc = o3d.geometry.PointCloud(
        o3d.utility.Vector3dVector(np.asarray(points)[:: max(1, cfg.point_stride)])
    )
    pc.paint_uniform_color(cfg.cloud_rgb)
    return pc


def save_skeleton_ply(sk: Skeleton, out_dir: Path, cfg: ViewerCfg = ViewerCfg()) -> List[Path]:
    """centerline.ply + rings.ply; empty skeletons are skipped."""
    if len(sk) == 0:
        LOG.warning("empty skeleton; no line sets written")
        return []
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    center_ls, rings_ls = skeleton_linesets(sk, cfg)
    paths = [out_dir / "centerline.ply", out_dir / "rings.ply"]
    o3d.io.write_line_set(str(paths[0]), center_ls)
    o3d.io.write_line_set(str(paths[1]), rings_ls)
    LOG.info(f"saved line sets to {out_dir}")
    return paths


def open_view(points: np.ndarray, sk: Skeleton, cfg: ViewerCfg = ViewerCfg()) -> None:
    """Cloud + centerline + rings; keys 1/2/3 toggle the layers."""
    center_ls, rings_ls = skeleton_linesets(sk, cfg)
    geoms: Dict[str, List] = {
        "cloud": [cloud_geometry(points, cfg)],
        "centerline": [center_ls],
        "rings": [rings_ls],
    }
    visible = {name: True for name in geoms}

    vis = o3d.visualization.VisualizerWithKeyCallback()
    vis.create_window(window_name=cfg.title, width=cfg.window[0], height=cfg.window[1])
    for group in geoms.values():
        for g in group:
            vis.add_geometry(g)

    def toggle(name: str):
        def _cb(v) -> bool:
            visible[name] = not visible[name]
            for g in geoms[name]:
                if visible[name]:
                    v.add_geometry(g, reset_bounding_box=False)
                else:
                    v.remove_geometry(g, reset_bounding_box=False)
            LOG.info(f"toggle {name} -> {visible[name]}")
            return True

        return _cb

    for key, name in zip("123", ("cloud", "centerline", "rings")):
        vis.register_key_callback(ord(key), toggle(name))
    LOG.info(f"viewer: {len(sk)} centers; keys 1:cloud 2:centerline 3:rings")
    vis.run()
    vis.destroy_window()
