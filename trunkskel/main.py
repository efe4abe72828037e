# trunkskel/main.py
"""Command-line entry point: flags to TrunkPipelineCfg, then run."""
from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from utils import config as ucfg
from utils.error_tracker import TrunkError
from utils.logger import Logger

from .config import ClusterCfg, SliceCfg, TrunkPipelineCfg
from .pipeline import run

LOG = Logger.get_logger("main")


def _resolve_source(source: str) -> str:
    """Catalogue names (e.g. FEXC1.asc) expand to their public URL."""
    if source in ucfg.CLOUD_FILENAMES and not Path(source).exists():
        return ucfg.cloud_url(source)
    return source


def _debug_dir(args) -> Optional[str]:
    if args.debug_dir:
        return args.debug_dir
    if args.debug:
        return str(Path(args.out_dir) / ucfg.DEBUG_DIR_NAME)
    return None


def build_cfg(argv: Optional[List[str]] = None) -> TrunkPipelineCfg:
    base = TrunkPipelineCfg()
    ap = argparse.ArgumentParser(
        description="Trunk centerline + radius profile from a TLS point cloud"
    )
    ap.add_argument("--source", required=True, help="x y z text file, .ply, URL or catalogue scan name")
    ap.add_argument("--delta", type=float, default=base.slicing.delta, help="Band height")
    ap.add_argument("--grid-size", type=int, default=base.cluster.grid_size)
    ap.add_argument("--iterations", type=int, default=base.cluster.iterations)
    ap.add_argument("--passes-per-step", type=int, default=base.cluster.passes_per_step)
    ap.add_argument("--reach-px", type=int, default=base.cluster.reach_px)
    ap.add_argument("--rings", type=int, default=base.rings.n_points, help="Points per ring")
    ap.add_argument("--out-dir", default=base.out_dir)
    ap.add_argument("--debug", action="store_true", help="Write per-band grid PNGs")
    ap.add_argument("--debug-dir", default=None, help="PNG folder (implies --debug)")
    ap.add_argument("--no-sort", action="store_true", help="Trust input height order")
    ap.add_argument("--no-view", action="store_true")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args(argv)

    cfg = replace(
        base,
        source=_resolve_source(args.source),
        out_dir=args.out_dir,
        debug_dir=_debug_dir(args),
        open_viewer=not args.no_view,
        log_level=args.log_level,
        slicing=SliceCfg(delta=args.delta),
        cluster=ClusterCfg(
            grid_size=args.grid_size,
            iterations=args.iterations,
            passes_per_step=args.passes_per_step,
            reach_px=args.reach_px,
        ),
        rings=replace(base.rings, n_points=args.rings),
        load=replace(base.load, sort_by_height=not args.no_sort),
    )
    return cfg


def _main(argv: Optional[List[str]] = None) -> int:
    cfg = build_cfg(argv)
    try:
        out = run(cfg)
    except TrunkError as e:
        LOG.error(f"{type(e).__name__}: {e}")
        return 1
    if out is not None:
        LOG.info(f"outputs in {out.parent}")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
