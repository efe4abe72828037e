import numpy as np
import pytest
from numpy.testing import assert_allclose

from utils.error_tracker import EmptyBlob

from trunkskel.assemble import assemble_skeleton, circle_coords, world_center
from trunkskel.backend import CpuBackend
from trunkskel.clustering import OccupancyEngine
from trunkskel.programs import BUILTIN_SOURCES, compile_programs
from trunkskel.refine import ClusterRefiner, RefinedCrossSection, blob_frame
from trunkskel.sections import BlobBox, CrossSection, extract_cross_section
from trunkskel.slicer import Band
from trunkskel.stats import AxisStats
from trunkskel.transforms import GridFrame


COARSE = GridFrame(center=(2.0, 3.0), scale=1.0)


def _ring(n=12, r=0.5, c=(2.0, 3.0)):
    # phase keeps points off cell edges
    a = 0.1 + 2 * np.pi * np.arange(n) / n
    return np.stack([c[0] + r * np.cos(a), c[1] + r * np.sin(a), np.linspace(0, 0.05, n)], 1)


@pytest.fixture
def engine():
    backend = CpuBackend()
    return OccupancyEngine(backend, compile_programs(backend, BUILTIN_SOURCES), 32)


def test_engine_ping_pong(engine):
    pts = _ring()
    band = Band(0, 0, len(pts), 0.0, 0.05)
    engine.splat(pts, band, COARSE)
    assert engine.current == 0
    # link growth has to close the ring interior before ids cross it
    assert engine.run_passes(11, 8) == 11
    assert engine.current == 1
    ids = engine.readback()[..., 3]
    assert np.unique(ids[ids > 0]).size == 1


def test_refine_recovers_ring(engine):
    pts = _ring()
    band = Band(0, 0, len(pts), 0.0, 0.05)
    coarse = COARSE
    engine.splat(pts, band, coarse)
    engine.run_passes(11, 8)
    section = extract_cross_section(engine.readback(), band, coarse)
    assert section.is_single

    rc = ClusterRefiner(engine, coarse, reach_px=32).refine(section, band, pts)
    assert_allclose(world_center(rc, coarse), [2.0, 3.0], atol=1e-5)
    assert rc.radius / rc.blob.rescale == pytest.approx(0.5, abs=1e-5)
    # hollow ring: every sample sits on the enclosing circle
    assert rc.radius_stats.min == pytest.approx(rc.radius, abs=1e-5)
    assert rc.radius_stats.count == 12


def test_refine_needs_single_blob(engine):
    pts = _ring()
    box = BlobBox(1, (-1.0, 0.0), (-1.0, 0.0), 2.0)
    cs = CrossSection(0, 0.0, (box, box))
    with pytest.raises(ValueError):
        ClusterRefiner(engine, COARSE, 2).refine(cs, Band(0, 0, 12, 0, 0.05), pts)


def test_refine_empty_blob(engine):
    pts = _ring()
    far = BlobBox(1, (0.9, 1.0), (0.9, 1.0), 100.0)
    cs = CrossSection(0, 0.0, (far,))
    with pytest.raises(EmptyBlob):
        ClusterRefiner(engine, COARSE, 2).refine(cs, Band(0, 0, 12, 0, 0.05), pts)


def test_blob_frame():
    coarse = GridFrame(center=(1.0, 1.0), scale=0.5)
    f = blob_frame(BlobBox(1, (-0.5, 0.5), (0.0, 1.0), 4.0), coarse)
    assert f.center == (1.0, 2.0) and f.scale == 4.0


def test_circle_coords():
    assert_allclose(circle_coords(4), [[1, 0], [0, 1], [-1, 0], [0, -1]], atol=1e-12)


def _refined(band_index, height, radius, blobs=1):
    box = BlobBox(1, (-0.5, 0.5), (0.0, 1.0), 4.0)
    stats = AxisStats(3, 2 * radius, 0.0, radius, 2 * radius / 3, 0.0, 0.0)
    cs = CrossSection(band_index, height, (box,) * blobs)
    return RefinedCrossSection(cs, (0.4, -0.8), stats)


def test_assemble_geometry():
    coarse = GridFrame(center=(1.0, 1.0), scale=0.5)
    sk = assemble_skeleton(
        [_refined(5, 2.0, 0.8), _refined(1, 1.0, 0.4), _refined(3, 1.5, 0.4, blobs=2)],
        coarse,
        n_ring=24,
    )
    assert len(sk) == 2
    assert list(sk.band_indices) == [1, 5]
    assert_allclose(sk.heights, [1.0, 2.0])
    assert_allclose(sk.centers[1], [1.1, 1.8, 2.0])
    assert_allclose(sk.radii, [0.1, 0.2])
    assert sk.rings.shape == (2, 24, 3)
    d = np.linalg.norm(sk.rings[..., :2] - sk.centers[:, None, :2], axis=2)
    assert_allclose(d, np.repeat(sk.radii[:, None], 24, axis=1))
    assert_allclose(sk.rings[..., 2], np.repeat(sk.heights[:, None], 24, axis=1))
    assert sk.ring_polyline().shape == (48, 3)


def test_assemble_empty():
    sk = assemble_skeleton([], GridFrame(center=(0.0, 0.0), scale=1.0))
    assert len(sk) == 0
    assert sk.rings.shape == (0, 24, 3)
