import asyncio
import csv
import json

import numpy as np
import pytest
import requests
from numpy.testing import assert_array_equal

from utils.error_tracker import InvalidInput, LoadError

from trunkskel.assemble import Skeleton
from trunkskel.config import LoadCfg
from trunkskel.io import (
    aload_points,
    load_points,
    parse_xyz_text,
    save_radius_csv,
    save_skeleton_json,
)

TEXT = "0 0 0.2\n1 1 0.1\n2 2 0.0 3 3 0.3\n"


class _Resp:
    def __init__(self, text, status=200):
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


def test_parse_any_line_layout():
    pts = parse_xyz_text(TEXT)
    assert pts.shape == (4, 3)
    assert_array_equal(pts[2], [2.0, 2.0, 0.0])


def test_parse_errors():
    with pytest.raises(InvalidInput):
        parse_xyz_text("1 2 3 4")
    with pytest.raises(LoadError):
        parse_xyz_text("1 nope 3")


def test_load_sorts_by_height(tmp_path):
    f = tmp_path / "tree.asc"
    f.write_text(TEXT)
    pts = load_points(f)
    assert_array_equal(pts[:, 2], [0.0, 0.1, 0.2, 0.3])
    assert_array_equal(pts[0], [2.0, 2.0, 0.0])


def test_load_keeps_order_when_asked(tmp_path):
    f = tmp_path / "tree.xyz"
    f.write_text(TEXT)
    pts = load_points(str(f), LoadCfg(sort_by_height=False))
    assert_array_equal(pts[:, 2], [0.2, 0.1, 0.0, 0.3])


def test_load_errors(tmp_path):
    with pytest.raises(LoadError):
        load_points(tmp_path / "missing.asc")
    one = tmp_path / "one.asc"
    one.write_text("1 2 3")
    with pytest.raises(InvalidInput):
        load_points(one)


def test_load_url(monkeypatch):
    seen = {}

    def fake_get(url, timeout):
        seen["url"], seen["timeout"] = url, timeout
        return _Resp(TEXT)

    monkeypatch.setattr(requests, "get", fake_get)
    pts = load_points("https://example.org/tree.asc", LoadCfg(timeout_s=5.0))
    assert seen == {"url": "https://example.org/tree.asc", "timeout": 5.0}
    assert pts.shape == (4, 3)


def _not_found(url, timeout):
    return _Resp("", status=404)


def _offline(url, timeout):
    raise requests.ConnectionError("down")


@pytest.mark.parametrize("failure", [_not_found, _offline])
def test_load_url_failures(monkeypatch, failure):
    monkeypatch.setattr(requests, "get", failure)
    with pytest.raises(LoadError):
        load_points("http://example.org/tree.asc")


def test_aload(tmp_path):
    f = tmp_path / "tree.txt"
    f.write_text(TEXT)
    pts = asyncio.run(aload_points(f))
    assert pts.shape == (4, 3)


def _skeleton():
    centers = np.array([[0.0, 0.0, 0.05], [0.1, 0.0, 0.15]])
    radii = np.array([0.5, 0.25])
    rings = np.repeat(centers[:, None, :], 4, axis=1)
    return Skeleton(centers, radii, rings, np.array([0, 1]))


def test_save_json(tmp_path):
    path = save_skeleton_json(_skeleton(), tmp_path / "out" / "skeleton.json")
    data = json.loads(path.read_text())
    assert data["radii"] == [0.5, 0.25]
    assert data["bands"] == [0, 1]
    assert len(data["rings"]) == 2 and len(data["rings"][0]) == 4
    assert data["centers"][1] == [0.1, 0.0, 0.15]


def test_save_csv(tmp_path):
    path = save_radius_csv(_skeleton(), tmp_path / "radius.csv")
    rows = list(csv.reader(path.read_text().splitlines()))
    assert rows[0] == ["band", "x", "y", "z", "radius"]
    assert len(rows) == 3
    assert float(rows[2][4]) == 0.25 and rows[2][0] == "1"
