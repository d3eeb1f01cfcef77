"""
geometry/path_geometry.py

Measurement capability for connector and shape paths.

``PathGeometry`` answers three questions about a path: its bounding box,
its arc length, and the point at a fraction of that length.  Two backends
implement it:

- ``QtPathGeometry`` wraps a ``QPainterPath`` (the native primitive the
  compositor also strokes with).
- ``PolylinePathGeometry`` flattens the path and measures the polyline in
  pure Python, for contexts that should not touch Qt.
"""

from __future__ import annotations

import bisect
import math
from typing import List, Optional, Sequence, Tuple

from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QPainterPath

from geometry.path_data import PathCommand, Point, flatten

BBox = Tuple[float, float, float, float]

GEOMETRY_BACKENDS = ("qt", "polyline")


class PathGeometry:
    """Interface for path measurement.

    All coordinates are in the space the path commands were given in.
    """

    def bounding_box(self) -> Optional[BBox]:
        """Return ``(x, y, width, height)`` or None for an empty path."""
        raise NotImplementedError

    def length(self) -> float:
        """Total arc length."""
        raise NotImplementedError

    def point_at(self, fraction: float) -> Optional[Point]:
        """Point at ``fraction * length()`` along the path.

        Returns None when the path has no measurable length, so callers
        can skip drawing instead of rendering at the origin.
        """
        raise NotImplementedError

    def is_measurable(self) -> bool:
        total = self.length()
        return math.isfinite(total) and total > 0


# ─────────────────────────────────────────────────────────
# Qt backend
# ─────────────────────────────────────────────────────────


def build_painter_path(commands: Sequence[PathCommand]) -> QPainterPath:
    """Build a ``QPainterPath`` from absolute path commands."""
    path = QPainterPath()
    started = False
    for cmd in commands:
        if cmd.op == "M":
            path.moveTo(QPointF(*cmd.points[0]))
            started = True
            continue
        if not started:
            path.moveTo(QPointF(0.0, 0.0))
            started = True
        if cmd.op == "L":
            path.lineTo(QPointF(*cmd.points[0]))
        elif cmd.op == "C":
            c1, c2, end = cmd.points
            path.cubicTo(QPointF(*c1), QPointF(*c2), QPointF(*end))
        elif cmd.op == "Q":
            ctrl, end = cmd.points
            path.quadTo(QPointF(*ctrl), QPointF(*end))
        elif cmd.op == "Z":
            path.closeSubpath()
    return path


class QtPathGeometry(PathGeometry):
    """PathGeometry backed by ``QPainterPath``."""

    def __init__(self, commands: Sequence[PathCommand]):
        self._path = build_painter_path(commands)
        self._length = self._path.length()

    @property
    def painter_path(self) -> QPainterPath:
        return self._path

    def bounding_box(self) -> Optional[BBox]:
        if self._path.isEmpty():
            return None
        r = self._path.boundingRect()
        return (r.x(), r.y(), r.width(), r.height())

    def length(self) -> float:
        return self._length

    def point_at(self, fraction: float) -> Optional[Point]:
        if not self.is_measurable():
            return None
        f = min(max(fraction, 0.0), 1.0)
        percent = self._path.percentAtLength(f * self._length)
        p = self._path.pointAtPercent(percent)
        return (p.x(), p.y())


# ─────────────────────────────────────────────────────────
# Pure-Python backend
# ─────────────────────────────────────────────────────────


class PolylinePathGeometry(PathGeometry):
    """PathGeometry over a flattened polyline.

    Curves are sampled by ``flatten()``; lengths are cumulative chord
    lengths, so straight paths are exact and curves are close
    approximations.
    """

    def __init__(self, commands: Sequence[PathCommand]):
        self._subpaths = flatten(commands)
        self._segments: List[Tuple[Point, Point]] = []
        self._cumulative: List[float] = []
        total = 0.0
        for pts in self._subpaths:
            for a, b in zip(pts, pts[1:]):
                seg = math.dist(a, b)
                if seg == 0:
                    continue
                total += seg
                self._segments.append((a, b))
                self._cumulative.append(total)
        self._length = total
        # Bounding box covers moves too, matching QPainterPath
        self._points = [p for pts in self._subpaths for p in pts]
        if not self._points:
            self._points = [c.points[-1] for c in commands if c.points]

    def bounding_box(self) -> Optional[BBox]:
        if not self._points:
            return None
        xs = [p[0] for p in self._points]
        ys = [p[1] for p in self._points]
        return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    def length(self) -> float:
        return self._length

    def point_at(self, fraction: float) -> Optional[Point]:
        if not self.is_measurable():
            return None
        target = min(max(fraction, 0.0), 1.0) * self._length
        idx = min(bisect.bisect_left(self._cumulative, target), len(self._segments) - 1)
        (ax, ay), (bx, by) = self._segments[idx]
        seg_end = self._cumulative[idx]
        seg_len = math.hypot(bx - ax, by - ay)
        t = 1.0 - (seg_end - target) / seg_len
        t = min(max(t, 0.0), 1.0)
        return (ax + (bx - ax) * t, ay + (by - ay) * t)


def make_path_geometry(commands: Sequence[PathCommand], backend: str = "qt") -> PathGeometry:
    """Create a PathGeometry for *commands* using the named backend.

    Args:
        commands: Absolute path commands.
        backend: ``"qt"`` or ``"polyline"``.

    Returns:
        A PathGeometry instance.

    Raises:
        ValueError: If *backend* is not a known backend name.
    """
    if backend == "qt":
        return QtPathGeometry(commands)
    if backend == "polyline":
        return PolylinePathGeometry(commands)
    raise ValueError(f"Unknown geometry backend: {backend!r} (expected one of {GEOMETRY_BACKENDS})")
