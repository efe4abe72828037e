import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from utils.error_tracker import InvalidInput

from trunkskel.backend import CpuBackend
from trunkskel.config import ClusterCfg, TrunkPipelineCfg
from trunkskel.orchestrator import PipelineOrchestrator, Stage
from trunkskel.pipeline import extract_skeleton, run
from trunkskel.slicer import calc_bands

from conftest import filled_cylinder, shell_cylinder, single_column, two_columns


def test_filled_cylinder_with_defaults():
    # 1000 points inside r=0.5, h=10; delta 0.1, 128 grid, 128 passes
    pts = filled_cylinder(n=1000, radius=0.5, height=10.0, center=(0.0, 0.0))
    bands = calc_bands(pts)
    assert 80 <= len(bands) <= 100
    sk = extract_skeleton(pts, TrunkPipelineCfg(open_viewer=False))
    assert len(sk) >= 0.95 * len(bands)
    assert np.all(np.diff(sk.heights) > 0)

    off = np.linalg.norm(sk.centers[:, :2], axis=1)
    assert np.median(off) < 0.075
    assert np.percentile(off, 90) < 0.1
    assert_allclose(sk.centers[:, :2].mean(axis=0), 0.0, atol=0.02)

    # enclosing radius of ~10 samples: never above r, close to it on average
    assert np.all(sk.radii <= 0.5 + 1e-5)
    assert 0.4 <= sk.radii.mean() <= 0.5
    assert np.percentile(sk.radii, 10) >= 0.35


def test_hollow_cylinder_with_defaults():
    pts = shell_cylinder(n=1000, radius=0.5, height=10.0, center=(1.0, -2.0))
    sk = extract_skeleton(pts, TrunkPipelineCfg(open_viewer=False))
    assert len(sk) == len(calc_bands(pts)) == 100
    assert np.all(np.diff(sk.heights) > 0)
    assert_allclose(sk.centers[:, 0], 1.0, atol=1e-3)
    assert_allclose(sk.centers[:, 1], -2.0, atol=1e-3)
    assert_allclose(sk.radii, 0.5, atol=1e-3)
    ring_r = np.linalg.norm(sk.rings[..., :2] - sk.centers[:, None, :2], axis=2)
    assert_allclose(ring_r, np.repeat(sk.radii[:, None], 24, axis=1))


def test_single_column_has_zero_radius():
    pts = single_column()
    sk = extract_skeleton(pts, TrunkPipelineCfg(open_viewer=False))
    assert len(sk) == len(calc_bands(pts))
    assert_allclose(sk.centers[:, :2], np.tile([1.5, -2.25], (len(sk), 1)), atol=1e-9)
    assert_allclose(sk.radii, 0.0, atol=1e-9)


def test_two_columns_stay_apart_and_skip_refinement():
    orch = PipelineOrchestrator(CpuBackend(), TrunkPipelineCfg(open_viewer=False))
    orch.load(two_columns())
    st, seen = orch.state, []
    for _ in range(100_000):
        st = orch.step(st)
        orch.state = st
        seen.append(st.stage)
        if st.stage is Stage.ASSEMBLED:
            break
    assert st.stage is Stage.ASSEMBLED
    assert len(st.sections) == len(orch.cloud.bands) > 0
    assert all(s.blob_count == 2 for s in st.sections)
    assert st.refined == [] and st.dropped == []
    assert Stage.REFINING not in seen
    assert len(orch.skeleton) == 0
    assert orch.skeleton.centers.shape == (0, 3)


def test_zero_passes_per_step_is_rejected(cylinder):
    cfg = TrunkPipelineCfg(open_viewer=False, cluster=ClusterCfg(passes_per_step=0))
    with pytest.raises(InvalidInput):
        extract_skeleton(cylinder, cfg, max_frames=50)


def test_reruns_are_identical(small_cfg, cylinder):
    a = extract_skeleton(cylinder, small_cfg)
    b = extract_skeleton(cylinder, small_cfg)
    assert_array_equal(a.centers, b.centers)
    assert_array_equal(a.radii, b.radii)
    assert_array_equal(a.rings, b.rings)


def test_frame_budget(small_cfg, cylinder):
    with pytest.raises(RuntimeError, match="unfinished"):
        extract_skeleton(cylinder, small_cfg, max_frames=2)


def test_run_requires_source(quiet_run):
    with pytest.raises(ValueError):
        run(TrunkPipelineCfg(open_viewer=False))


def test_run_exports(quiet_run, small_cfg, cylinder, tmp_path):
    pytest.importorskip("open3d")
    src = tmp_path / "tree.asc"
    np.savetxt(src, cylinder)
    out = tmp_path / "out"
    cfg = TrunkPipelineCfg(
        source=str(src),
        out_dir=str(out),
        open_viewer=False,
        cluster=small_cfg.cluster,
    )
    path = run(cfg)
    assert path == out / "skeleton.json"
    for name in ("skeleton.json", "radius_profile.csv", "centerline.ply", "rings.ply"):
        assert (out / name).exists()
