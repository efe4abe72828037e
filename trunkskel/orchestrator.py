# trunkskel/orchestrator.py
"""Frame-driven state machine that sequences the extraction stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from utils.error_tracker import DeviceLost, EmptyBlob, InvalidInput
from utils.logger import Logger

from .assemble import Skeleton, assemble_skeleton
from .backend import RenderBackend
from .clustering import OccupancyEngine
from .config import TrunkPipelineCfg
from .programs import compile_programs, load_program_sources
from .refine import ClusterRefiner, RefinedCrossSection
from .scheduler import FrameScheduler
from .sections import CrossSection, extract_cross_section
from .slicer import Band, Slicer
from .snapshots import save_grid_png
from .stats import AxisStats, as_rows, compute_axis_stats
from .transforms import GridFrame, coarse_frame

LOG = Logger.get_logger("orch")

SkeletonConsumer = Callable[[Skeleton, np.ndarray], None]


class Stage(Enum):
    IDLE = "idle"
    SLICING_DONE = "slicing_done"
    CLUSTERING_BAND = "clustering_band"
    EXTRACTED_BAND = "extracted_band"
    ALL_BANDS_CLUSTERED = "all_bands_clustered"
    REFINING = "refining"
    ALL_REFINED = "all_refined"
    ASSEMBLED = "assembled"


@dataclass
class RunState:
    """Everything a run accumulates; replaced wholesale on stop/abort."""

    stage: Stage = Stage.IDLE
    band_index: int = 0
    iterations: int = 0
    section_index: int = -1
    sections: List[CrossSection] = field(default_factory=list)
    refined: List[RefinedCrossSection] = field(default_factory=list)
    dropped: List[int] = field(default_factory=list)
    skeleton: Optional[Skeleton] = None


@dataclass(frozen=True)
class LoadedCloud:
    points: np.ndarray  # (n, 3), read-only
    stats: Tuple[AxisStats, ...]
    bands: Tuple[Band, ...]
    frame: GridFrame


def check_cfg(cfg: TrunkPipelineCfg) -> TrunkPipelineCfg:
    """Reject settings that would stall or break the frame loop."""
    cc = cfg.cluster
    if cc.grid_size < 1:
        raise InvalidInput(f"grid_size must be >= 1, got {cc.grid_size}")
    if cc.passes_per_step < 1:
        raise InvalidInput(f"passes_per_step must be >= 1, got {cc.passes_per_step}")
    if cc.iterations < 0:
        raise InvalidInput(f"iterations must be >= 0, got {cc.iterations}")
    if cc.reach_px < 0 or cfg.refine.reach_px < 0:
        raise InvalidInput(
            f"reach_px must be >= 0, got {cc.reach_px} / {cfg.refine.reach_px}"
        )
    if cfg.rings.n_points < 1:
        raise InvalidInput(f"rings need >= 1 point, got {cfg.rings.n_points}")
    return cfg


class PipelineOrchestrator:
    """
    Owns the grid pair and the run state. ``step`` performs one bounded unit
    of work (one pass batch, one extraction or one refine) and returns the
    successor state; ``start`` chains steps through a FrameScheduler.
    """

    def __init__(
        self,
        backend: RenderBackend,
        cfg: Optional[TrunkPipelineCfg] = None,
        program_sources: Optional[Dict[str, Tuple[str, str]]] = None,
    ) -> None:
        self.cfg = check_cfg(cfg or TrunkPipelineCfg())
        self.backend = backend
        self.programs = compile_programs(
            backend, program_sources or load_program_sources()
        )
        self.engine = OccupancyEngine(backend, self.programs, self.cfg.cluster.grid_size)
        self.cloud: Optional[LoadedCloud] = None
        self.refiner: Optional[ClusterRefiner] = None
        self.state = RunState()
        self.scheduler: Optional[FrameScheduler] = None
        self._handle: Optional[int] = None
        self._generation = 0
        self._consumers: List[SkeletonConsumer] = []
        self._scratch = None

    # ------------------------------------------------------------ lifecycle
    def load(self, points) -> LoadedCloud:
        """Validate, summarise and slice the cloud: Idle -> SlicingDone."""
        sc = self.cfg.slicing
        if sc.stride != 3:
            raise InvalidInput(f"point buffers are xyz triples, stride={sc.stride}")
        rows = as_rows(points, sc.stride)
        if rows.shape[0] < 2:
            raise InvalidInput(f"need at least 2 points, got {rows.shape[0]}")
        rows = np.array(rows, dtype=np.float64)
        rows.setflags(write=False)
        stats = tuple(compute_axis_stats(rows, sc.stride))
        bands = tuple(Slicer(rows, sc.stride, sc.delta, sc.axis).bands())
        axes = tuple(k for k in range(3) if k != sc.axis)
        frame = coarse_frame(
            (stats[axes[0]].mid, stats[axes[1]].mid),
            (stats[axes[0]].half_extent, stats[axes[1]].half_extent),
            axes=axes,
        )
        self.cloud = LoadedCloud(rows, stats, bands, frame)
        self.refiner = ClusterRefiner(self.engine, frame, self.cfg.refine.reach_px)
        self.state = RunState(stage=Stage.SLICING_DONE)
        LOG.info(
            f"cloud: {rows.shape[0]} points, {len(bands)} bands, "
            f"frame center=({frame.center[0]:.3f}, {frame.center[1]:.3f}) "
            f"half={frame.half_extent:.3f}"
        )
        return self.cloud

    def subscribe(self, consumer: SkeletonConsumer) -> None:
        """Register a consumer called once with (skeleton, points) on completion."""
        self._consumers.append(consumer)

    def start(self, scheduler: FrameScheduler) -> None:
        if self.cloud is None:
            raise InvalidInput("load a cloud before starting")
        if self._handle is not None:
            raise RuntimeError("pipeline already running")
        if self.state.stage in (Stage.IDLE, Stage.ASSEMBLED):
            self.state = RunState(stage=Stage.SLICING_DONE)
        self.scheduler = scheduler
        self._handle = scheduler.request_callback(self._on_frame)

    def stop(self) -> None:
        """Cancel the next callback and discard everything computed so far."""
        if self.scheduler is not None and self._handle is not None:
            self.scheduler.cancel(self._handle)
        self._handle = None
        self._generation += 1
        if self.state.stage is not Stage.IDLE:
            LOG.info(f"stopped in {self.state.stage.value}; run state discarded")
        self.state = RunState()

    def reset(self) -> None:
        """Assembled -> Idle."""
        self.stop()

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def skeleton(self) -> Optional[Skeleton]:
        if self.state.stage is Stage.ASSEMBLED:
            return self.state.skeleton
        return None

    def _on_frame(self, timestamp: float) -> None:
        self._handle = None
        generation = self._generation
        nxt = self.step(self.state)
        if generation != self._generation:
            # stop() arrived from another thread while the step ran
            return
        self.state = nxt
        if self.state.stage is Stage.ASSEMBLED:
            for consumer in self._consumers:
                consumer(self.state.skeleton, self.cloud.points)
            return
        if self.state.stage is Stage.IDLE:
            return
        self._handle = self.scheduler.request_callback(self._on_frame)

    # ----------------------------------------------------------- transitions
    def step(self, state: RunState) -> RunState:
        try:
            return self._advance(state)
        except DeviceLost:
            LOG.error(f"device lost during {state.stage.value}; aborting run")
            self.stop()
            raise

    def _advance(self, st: RunState) -> RunState:
        handler = {
            Stage.IDLE: lambda s: s,
            Stage.SLICING_DONE: self._begin_clustering,
            Stage.CLUSTERING_BAND: self._cluster_band,
            Stage.EXTRACTED_BAND: self._next_band,
            Stage.ALL_BANDS_CLUSTERED: self._begin_refine,
            Stage.REFINING: self._refine_section,
            Stage.ALL_REFINED: self._assemble,
            Stage.ASSEMBLED: lambda s: s,
        }[st.stage]
        return handler(st)

    def _begin_clustering(self, st: RunState) -> RunState:
        st.band_index = 0
        st.iterations = 0
        st.stage = Stage.CLUSTERING_BAND if self.cloud.bands else Stage.ALL_BANDS_CLUSTERED
        return st

    def _cluster_band(self, st: RunState) -> RunState:
        cc = self.cfg.cluster
        band = self.cloud.bands[st.band_index]
        if st.iterations == 0:
            self.engine.splat(self.cloud.points, band, self.cloud.frame)
        n = min(cc.passes_per_step, cc.iterations - st.iterations)
        if n > 0:
            st.iterations = self.engine.run_passes(n, cc.reach_px)
        if st.iterations < cc.iterations:
            return st
        section = extract_cross_section(self.engine.readback(), band, self.cloud.frame)
        st.sections.append(section)
        self._snapshot(f"band_{band.index:04d}.png")
        LOG.debug(
            f"band {band.index} h={band.mid_height:.3f} n={band.size}: "
            f"{section.blob_count} blob(s)"
        )
        st.stage = Stage.EXTRACTED_BAND
        return st

    def _next_band(self, st: RunState) -> RunState:
        st.band_index += 1
        st.iterations = 0
        if st.band_index < len(self.cloud.bands):
            st.stage = Stage.CLUSTERING_BAND
            return st
        total = sum(s.blob_count for s in st.sections)
        single = sum(1 for s in st.sections if s.is_single)
        LOG.info(
            f"clustered {len(st.sections)} bands: {total} blobs total, "
            f"{single} single-blob bands"
        )
        st.stage = Stage.ALL_BANDS_CLUSTERED
        return st

    def _next_single(self, st: RunState, after: int) -> int:
        for j in range(after + 1, len(st.sections)):
            if st.sections[j].is_single:
                return j
        return -1

    def _begin_refine(self, st: RunState) -> RunState:
        j = self._next_single(st, -1) if self.cfg.refine.enabled else -1
        st.section_index = j
        st.stage = Stage.REFINING if j >= 0 else Stage.ALL_REFINED
        return st

    def _refine_section(self, st: RunState) -> RunState:
        section = st.sections[st.section_index]
        band = self.cloud.bands[section.band_index]
        try:
            st.refined.append(self.refiner.refine(section, band, self.cloud.points))
        except EmptyBlob as e:
            LOG.debug(f"dropped: {e}")
            st.dropped.append(section.band_index)
        j = self._next_single(st, st.section_index)
        st.section_index = j
        if j < 0:
            LOG.info(f"refined {len(st.refined)} sections, dropped {len(st.dropped)}")
            st.stage = Stage.ALL_REFINED
        return st

    def _assemble(self, st: RunState) -> RunState:
        st.skeleton = assemble_skeleton(
            st.refined,
            self.cloud.frame,
            self.cfg.rings.n_points,
            self.cfg.slicing.axis,
        )
        st.stage = Stage.ASSEMBLED
        return st

    def _snapshot(self, name: str) -> None:
        if not self.cfg.debug_dir:
            return
        if self._scratch is None:
            g = self.cfg.cluster.grid_size
            self._scratch = self.backend.create_target(g, g)
        save_grid_png(
            Path(self.cfg.debug_dir) / name,
            self.backend,
            self.programs,
            self.engine.front,
            self._scratch,
        )
