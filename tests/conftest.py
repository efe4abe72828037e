from __future__ import annotations

import numpy as np
import pytest

from utils.error_tracker import ErrorTracker
from utils.logger import Logger

from trunkskel.config import ClusterCfg, TrunkPipelineCfg

Logger.configure(level="WARNING", file_sink=False)

GOLDEN_ANGLE = np.pi * (3.0 - np.sqrt(5.0))


def shell_cylinder(
    n: int = 1000,
    radius: float = 0.5,
    height: float = 10.0,
    center=(1.0, -2.0),
) -> np.ndarray:
    """Points on a vertical cylinder surface, golden-angle spiral, ascending z."""
    k = np.arange(n)
    a = k * GOLDEN_ANGLE
    return np.stack(
        [
            center[0] + radius * np.cos(a),
            center[1] + radius * np.sin(a),
            np.linspace(0.0, height, n),
        ],
        axis=1,
    )


def filled_cylinder(
    n: int = 1000,
    radius: float = 0.5,
    height: float = 10.0,
    center=(0.0, 0.0),
    seed: int = 7,
) -> np.ndarray:
    """Points uniform inside a vertical cylinder, sorted by z."""
    rng = np.random.default_rng(seed)
    r = radius * np.sqrt(rng.random(n))
    a = 2.0 * np.pi * rng.random(n)
    z = np.sort(height * rng.random(n))
    return np.stack([center[0] + r * np.cos(a), center[1] + r * np.sin(a), z], axis=1)


def single_column(n: int = 50, xy=(1.5, -2.25), height: float = 1.0) -> np.ndarray:
    pts = np.zeros((n, 3))
    pts[:, 0], pts[:, 1] = xy
    pts[:, 2] = np.linspace(0.0, height, n)
    return pts


def two_columns(n: int = 400, offset: float = 5.0, radius: float = 0.1) -> np.ndarray:
    k = np.arange(n)
    a = k * GOLDEN_ANGLE
    side = np.where(k % 2 == 0, -offset, offset)
    return np.stack(
        [side + radius * np.cos(a), radius * np.sin(a), np.linspace(0.0, 2.0, n)],
        axis=1,
    )


@pytest.fixture
def small_cfg() -> TrunkPipelineCfg:
    """32px grid grown over its full width: every band collapses to one blob."""
    return TrunkPipelineCfg(
        open_viewer=False,
        cluster=ClusterCfg(grid_size=32, iterations=16, passes_per_step=8, reach_px=16),
    )


@pytest.fixture
def cylinder() -> np.ndarray:
    return shell_cylinder(n=200, height=1.0)


@pytest.fixture
def quiet_run(monkeypatch):
    """run() without global hooks, keyboard threads or log files."""
    monkeypatch.setattr(Logger, "configure", staticmethod(lambda **kw: None))
    monkeypatch.setattr(ErrorTracker, "install_excepthook", classmethod(lambda cls: None))
    monkeypatch.setattr(ErrorTracker, "install_signal_handlers", classmethod(lambda cls: None))
    monkeypatch.setattr(
        ErrorTracker,
        "install_keyboard_listener",
        classmethod(lambda cls, on_stop, stop_key="esc": False),
    )
    yield
    ErrorTracker.clear_cleanup()
