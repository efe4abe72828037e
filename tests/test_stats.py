import math

import numpy as np
import pytest

from utils.error_tracker import InvalidInput

from trunkskel.stats import as_rows, compute_axis_stats


def test_axis_stats_values():
    data = np.array([[0, 1, 2], [2, 3, 6], [4, 5, 10]], float).ravel()
    x, y, z = compute_axis_stats(data, 3)
    assert x.count == 3 and x.sum == 6.0
    assert (x.min, x.max, x.mean) == (0.0, 4.0, 2.0)
    assert x.var == pytest.approx(4.0)
    assert x.sd == pytest.approx(2.0)
    assert y.mean == pytest.approx(3.0)
    assert z.var == pytest.approx(16.0)
    assert z.mid == 6.0 and z.half_extent == 4.0


def test_mean_and_sd_relations_random():
    rng = np.random.default_rng(7)
    data = rng.normal(size=(500, 3)) * [1.0, 5.0, 0.1]
    for k, st in enumerate(compute_axis_stats(data, 3)):
        assert st.mean == pytest.approx(st.sum / st.count)
        assert st.sd == pytest.approx(math.sqrt(st.var))
        assert st.var >= 0.0
        assert st.var == pytest.approx(np.var(data[:, k], ddof=1))


def test_single_sample_has_nan_spread():
    (st,) = compute_axis_stats([3.5], 1)
    assert st.mean == 3.5
    assert math.isnan(st.var) and math.isnan(st.sd)


def test_empty_buffer_rejected():
    with pytest.raises(InvalidInput):
        compute_axis_stats([], 3)


def test_ragged_buffer_rejected():
    with pytest.raises(InvalidInput):
        as_rows([1.0, 2.0, 3.0, 4.0], 3)
    with pytest.raises(ValueError):
        compute_axis_stats([1.0, 2.0], 0)
