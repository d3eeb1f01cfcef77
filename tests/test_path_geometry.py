"""
tests/test_path_geometry.py

Path data parsing and the two PathGeometry backends.
"""

from __future__ import annotations

import math

import pytest

from geometry.path_data import (
    PathCommand,
    flatten,
    format_number,
    has_drawable_segment,
    parse_path,
    translate_commands,
)
from geometry.path_geometry import PolylinePathGeometry, QtPathGeometry, make_path_geometry


# ─────────────────────────────────────────────────────────
# Parsing
# ─────────────────────────────────────────────────────────


class TestParsePath:

    def test_absolute_commands(self):
        cmds = parse_path("M50,40L50,65L50,90")
        assert cmds == [
            PathCommand("M", ((50.0, 40.0),)),
            PathCommand("L", ((50.0, 65.0),)),
            PathCommand("L", ((50.0, 90.0),)),
        ]

    def test_relative_and_hv(self):
        cmds = parse_path("m10 10 h20 v5 l-5 -5 z")
        assert [c.op for c in cmds] == ["M", "L", "L", "L", "Z"]
        assert cmds[1].points[0] == (30.0, 10.0)
        assert cmds[2].points[0] == (30.0, 15.0)
        assert cmds[3].points[0] == (25.0, 10.0)

    def test_implicit_lineto_after_move(self):
        cmds = parse_path("M0 0 10 0 10 10")
        assert [c.op for c in cmds] == ["M", "L", "L"]

    def test_smooth_cubic_reflects_control(self):
        cmds = parse_path("M0,0 C0,10 10,10 10,0 S20,-10 20,0")
        assert cmds[2].op == "C"
        assert cmds[2].points[0] == pytest.approx((10.0, -10.0))

    def test_arc_becomes_cubics(self):
        cmds = parse_path("M0,0 A10,10 0 0,1 20,0")
        assert all(c.op == "C" for c in cmds[1:])
        assert cmds[-1].points[-1] == pytest.approx((20.0, 0.0))

    def test_stops_at_malformed_token(self):
        cmds = parse_path("M0,0 L10,0 L5")
        assert [c.op for c in cmds] == ["M", "L"]

    def test_empty(self):
        assert parse_path("") == []
        assert parse_path(None) == []

    def test_drawable_segment(self):
        assert has_drawable_segment(parse_path("M0,0 L1,1"))
        assert not has_drawable_segment(parse_path("M0,0 M5,5"))

    def test_translate(self):
        moved = translate_commands(parse_path("M0,0 L10,0"), 5, -5)
        assert moved[0].points[0] == (5.0, -5.0)
        assert moved[1].points[0] == (15.0, -5.0)

    @pytest.mark.parametrize("value, text", [
        (10.0, "10"), (10.5, "10.5"), (-3.0, "-3"), (0.1 + 0.2, "0.3"),
    ])
    def test_format_number(self, value, text):
        assert format_number(value) == text


def test_flatten_splits_subpaths():
    subpaths = flatten(parse_path("M0,0 L10,0 M20,0 L30,0"))
    assert len(subpaths) == 2
    assert subpaths[1][0] == (20.0, 0.0)


# ─────────────────────────────────────────────────────────
# Backends
# ─────────────────────────────────────────────────────────


STRAIGHT_PATHS = [
    "M0,0 L100,0",
    "M50,40L50,65L50,90",
    "M0,0 L30,0 L30,40",
    "M 76 109 L 271 109",
]


class TestBackends:

    @pytest.mark.parametrize("d", STRAIGHT_PATHS)
    def test_backends_agree_on_straight_paths(self, d):
        cmds = parse_path(d)
        qt = QtPathGeometry(cmds)
        poly = PolylinePathGeometry(cmds)
        assert qt.length() == pytest.approx(poly.length(), rel=1e-6)
        assert qt.point_at(0.5) == pytest.approx(poly.point_at(0.5), abs=1e-3)
        assert qt.bounding_box() == pytest.approx(poly.bounding_box(), abs=1e-6)

    @pytest.mark.parametrize("backend", ["qt", "polyline"])
    def test_arc_length_midpoint(self, backend):
        geom = make_path_geometry(parse_path("M0,0 L30,0 L30,40"), backend)
        assert geom.length() == pytest.approx(70.0)
        # 35 units along: 30 on the first leg, 5 on the second
        assert geom.point_at(0.5) == pytest.approx((30.0, 5.0), abs=1e-3)
        assert geom.point_at(0.0) == pytest.approx((0.0, 0.0), abs=1e-3)
        assert geom.point_at(1.0) == pytest.approx((30.0, 40.0), abs=1e-3)

    @pytest.mark.parametrize("backend", ["qt", "polyline"])
    def test_curve_length_close(self, backend):
        # Quarter circle of radius 100
        k = 0.5522847498 * 100
        d = f"M100,0 C100,{k} {k},100 0,100"
        geom = make_path_geometry(parse_path(d), backend)
        assert geom.length() == pytest.approx(math.pi * 50, rel=0.01)

    @pytest.mark.parametrize("backend", ["qt", "polyline"])
    def test_unmeasurable_path_has_no_point(self, backend):
        geom = make_path_geometry(parse_path("M5,5"), backend)
        assert not geom.is_measurable()
        assert geom.point_at(0.5) is None

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            make_path_geometry(parse_path("M0,0 L1,1"), "skia")
