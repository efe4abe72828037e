# trunkskel/pipeline.py
"""Trunk skeleton pipeline: synchronous driver and full run."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np

from utils.error_tracker import ErrorTracker
from utils.logger import Logger

from .assemble import Skeleton
from .backend import CpuBackend, RenderBackend
from .config import TrunkPipelineCfg
from .io import load_points, save_radius_csv, save_skeleton_json
from .orchestrator import PipelineOrchestrator
from .scheduler import FrameScheduler

LOG = Logger.get_logger("pipeline")


def extract_skeleton(
    points,
    cfg: Optional[TrunkPipelineCfg] = None,
    backend: Optional[RenderBackend] = None,
    max_frames: Optional[int] = None,
) -> Skeleton:
    """Run every stage on ``points`` by ticking a private FrameScheduler."""
    cfg = cfg or TrunkPipelineCfg()
    orch = PipelineOrchestrator(backend or CpuBackend(), cfg)
    orch.load(points)
    sched = FrameScheduler()
    orch.start(sched)
    with Logger.timed(LOG, "extraction"):
        frames = sched.run_until_idle(max_frames)
    if orch.skeleton is None:
        orch.stop()
        raise RuntimeError(f"pipeline unfinished after {frames} frames")
    LOG.info(f"done in {frames} frames")
    return orch.skeleton


def export_outputs(sk: Skeleton, out_dir: Path) -> Path:
    out_dir = Path(out_dir)
    path = save_skeleton_json(sk, out_dir / "skeleton.json")
    save_radius_csv(sk, out_dir / "radius_profile.csv")
    # lazy: keeps Open3D's window stack out of headless exports
    from .viewer import save_skeleton_ply

    save_skeleton_ply(sk, out_dir)
    return path


def run(cfg: Optional[TrunkPipelineCfg] = None) -> Optional[Path]:
    """
    Load -> extract -> export -> view. Esc (when a keyboard backend is
    available), Ctrl+C and SIGTERM cancel the run between frames.
    """
    cfg = cfg or TrunkPipelineCfg()
    Logger.configure(level=cfg.log_level)
    ErrorTracker.install_excepthook()
    ErrorTracker.install_signal_handlers()

    if not cfg.source:
        raise ValueError("cfg.source is not set")
    points = load_points(cfg.source, cfg.load)

    orch = PipelineOrchestrator(CpuBackend(), cfg)
    orch.load(points)
    sched = FrameScheduler()
    ErrorTracker.register_cleanup(orch.stop)
    ErrorTracker.install_keyboard_listener(orch.stop, stop_key="esc")
    try:
        orch.start(sched)
        with Logger.timed(LOG, "extraction"):
            sched.run_until_idle()
    finally:
        ErrorTracker.stop_keyboard_listener()

    sk = orch.skeleton
    if sk is None:
        LOG.warning("run cancelled; nothing exported")
        return None
    if len(sk) == 0:
        LOG.warning("no single-blob bands; skeleton is empty")
    out = export_outputs(sk, Path(cfg.out_dir))
    if cfg.open_viewer and len(sk):
        from .viewer import open_view

        open_view(np.asarray(points), sk, cfg.viewer)
    return out
