# trunkskel/config.py
"""Frozen run settings for the extraction pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from utils import config as ucfg


@dataclass(frozen=True)
class SliceCfg:
    delta: float = 0.1  # max band height (world units)
    axis: int = 2  # slicing axis; the grid spans the other two
    stride: int = 3


@dataclass(frozen=True)
class ClusterCfg:
    grid_size: int = 128
    iterations: int = 128  # fixed propagation budget per band
    passes_per_step: int = 128  # passes executed per frame callback
    # link growth in cells (one per pass); point cells up to 2 * reach_px + 1
    # apart join one blob
    reach_px: int = 48


@dataclass(frozen=True)
class RefineCfg:
    enabled: bool = True
    reach_px: int = 2


@dataclass(frozen=True)
class RingCfg:
    n_points: int = 24


@dataclass(frozen=True)
class LoadCfg:
    sort_by_height: bool = True
    timeout_s: float = 30.0


@dataclass(frozen=True)
class ViewerCfg:
    window: Tuple[int, int] = (1280, 800)
    title: str = "Trunk skeleton"
    point_stride: int = 4
    cloud_rgb: Tuple[float, float, float] = (0.7, 0.7, 0.7)
    centerline_rgb: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    rings_rgb: Tuple[float, float, float] = (1.0, 1.0, 0.0)


@dataclass(frozen=True)
class TrunkPipelineCfg:
    source: Optional[str] = None
    out_dir: str = str(ucfg.OUTPUT_ROOT)
    debug_dir: Optional[str] = None
    open_viewer: bool = True
    log_level: str = "INFO"
    slicing: SliceCfg = field(default_factory=SliceCfg)
    cluster: ClusterCfg = field(default_factory=ClusterCfg)
    refine: RefineCfg = field(default_factory=RefineCfg)
    rings: RingCfg = field(default_factory=RingCfg)
    load: LoadCfg = field(default_factory=LoadCfg)
    viewer: ViewerCfg = field(default_factory=ViewerCfg)
