"""
geometry/path_data.py

SVG path ``d`` parsing into absolute path commands.

Every command is normalized to one of ``M``, ``L``, ``C``, ``Q`` or ``Z``
with absolute coordinates: relative forms are resolved, ``H``/``V`` become
lines, ``S``/``T`` get their reflected control points, and elliptical arcs
are converted to cubic Béziers.  The result can be translated, measured,
and flattened without knowing anything about SVG syntax.
"""

from __future__ import annotations

import math
import re
from typing import List, NamedTuple, Optional, Sequence, Tuple

Point = Tuple[float, float]


class PathCommand(NamedTuple):
    """A single absolute path command.

    ``points`` holds the command's coordinates in order: one point for
    ``M``/``L``, two for ``Q`` (control, end), three for ``C``
    (control 1, control 2, end), none for ``Z``.
    """
    op: str
    points: Tuple[Point, ...]


_NUM = r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?"
_TOKEN_RE = re.compile(rf"[MmLlHhVvCcSsQqTtAaZz]|{_NUM}")

# Number of arguments consumed per command letter
_ARITY = {"M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4, "Q": 4, "T": 2, "A": 7, "Z": 0}


def format_number(value: float) -> str:
    """Format a coordinate the way a browser would stringify it (``10``, ``10.5``)."""
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(round(value, 6))


# ─────────────────────────────────────────────────────────
# Parsing
# ─────────────────────────────────────────────────────────


def parse_path(d: Optional[str]) -> List[PathCommand]:
    """Parse an SVG path description into absolute commands.

    Parsing stops silently at the first malformed token (a number with no
    preceding command, or a command with too few arguments), keeping what
    was parsed so far.  This mirrors how browsers render path data up to
    the first error.

    Args:
        d: The SVG path ``d`` attribute string.

    Returns:
        List of ``PathCommand`` with absolute coordinates.
    """
    tokens = _TOKEN_RE.findall(d or "")
    commands: List[PathCommand] = []

    cx, cy = 0.0, 0.0        # current point
    sx, sy = 0.0, 0.0        # subpath start (for Z)
    last_ctrl: Optional[Point] = None
    last_op = ""
    op: Optional[str] = None
    i = 0

    while i < len(tokens):
        tok = tokens[i]
        if tok.isalpha():
            op = tok
            i += 1
            if op in "Zz":
                commands.append(PathCommand("Z", ()))
                cx, cy = sx, sy
                last_ctrl = None
                last_op = "Z"
                continue
        elif op is None or op in "Zz":
            break

        arity = _ARITY[op.upper()]
        args_tokens = tokens[i:i + arity]
        if len(args_tokens) < arity or any(t.isalpha() for t in args_tokens):
            break
        a = [float(t) for t in args_tokens]
        i += arity
        rel = op.islower()
        upper = op.upper()

        if upper == "M":
            cx, cy = (cx + a[0], cy + a[1]) if rel else (a[0], a[1])
            sx, sy = cx, cy
            commands.append(PathCommand("M", ((cx, cy),)))
            last_ctrl = None
            # Subsequent coordinate pairs are implicit lineto
            op = "l" if rel else "L"
        elif upper == "L":
            cx, cy = (cx + a[0], cy + a[1]) if rel else (a[0], a[1])
            commands.append(PathCommand("L", ((cx, cy),)))
            last_ctrl = None
        elif upper == "H":
            cx = cx + a[0] if rel else a[0]
            commands.append(PathCommand("L", ((cx, cy),)))
            last_ctrl = None
        elif upper == "V":
            cy = cy + a[0] if rel else a[0]
            commands.append(PathCommand("L", ((cx, cy),)))
            last_ctrl = None
        elif upper == "C":
            pts = _resolve(a, cx, cy, rel)
            commands.append(PathCommand("C", tuple(pts)))
            last_ctrl = pts[1]
            cx, cy = pts[2]
        elif upper == "S":
            c1 = _reflect(last_ctrl, cx, cy) if last_op in ("C", "S") else (cx, cy)
            c2, end = _resolve(a, cx, cy, rel)
            commands.append(PathCommand("C", (c1, c2, end)))
            last_ctrl = c2
            cx, cy = end
        elif upper == "Q":
            ctrl, end = _resolve(a, cx, cy, rel)
            commands.append(PathCommand("Q", (ctrl, end)))
            last_ctrl = ctrl
            cx, cy = end
        elif upper == "T":
            ctrl = _reflect(last_ctrl, cx, cy) if last_op in ("Q", "T") else (cx, cy)
            (end,) = _resolve(a, cx, cy, rel)
            commands.append(PathCommand("Q", (ctrl, end)))
            last_ctrl = ctrl
            cx, cy = end
        elif upper == "A":
            end = (cx + a[5], cy + a[6]) if rel else (a[5], a[6])
            for c1, c2, p in _arc_to_cubics((cx, cy), a[0], a[1], a[2], a[3] != 0, a[4] != 0, end):
                commands.append(PathCommand("C", (c1, c2, p)))
            last_ctrl = None
            cx, cy = end
        last_op = upper

    return commands


def _resolve(args: Sequence[float], cx: float, cy: float, rel: bool) -> List[Point]:
    """Pair up coordinates, offsetting by the current point for relative commands."""
    pts = []
    for k in range(0, len(args), 2):
        if rel:
            pts.append((cx + args[k], cy + args[k + 1]))
        else:
            pts.append((args[k], args[k + 1]))
    return pts


def _reflect(ctrl: Optional[Point], cx: float, cy: float) -> Point:
    if ctrl is None:
        return (cx, cy)
    return (2 * cx - ctrl[0], 2 * cy - ctrl[1])


def _arc_to_cubics(
    p0: Point, rx: float, ry: float, phi_deg: float,
    large_arc: bool, sweep: bool, p1: Point,
) -> List[Tuple[Point, Point, Point]]:
    """Convert an SVG elliptical arc to cubic Bézier segments.

    Uses the endpoint-to-center conversion from the SVG implementation notes
    and splits the sweep into quarter turns at most.  Degenerate radii turn
    the arc into a straight segment.
    """
    x0, y0 = p0
    x1, y1 = p1
    if (x0, y0) == (x1, y1):
        return []
    rx, ry = abs(rx), abs(ry)
    if rx == 0 or ry == 0:
        return [((x0, y0), (x1, y1), (x1, y1))]

    phi = math.radians(phi_deg % 360)
    cos_phi, sin_phi = math.cos(phi), math.sin(phi)
    dx2, dy2 = (x0 - x1) / 2.0, (y0 - y1) / 2.0
    x1p = cos_phi * dx2 + sin_phi * dy2
    y1p = -sin_phi * dx2 + cos_phi * dy2

    # Scale radii up when the endpoints are too far apart
    lam = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
    if lam > 1:
        s = math.sqrt(lam)
        rx *= s
        ry *= s

    num = rx * rx * ry * ry - rx * rx * y1p * y1p - ry * ry * x1p * x1p
    den = rx * rx * y1p * y1p + ry * ry * x1p * x1p
    coef = math.sqrt(max(0.0, num / den)) if den else 0.0
    if large_arc == sweep:
        coef = -coef
    cxp = coef * (rx * y1p / ry)
    cyp = coef * -(ry * x1p / rx)
    ccx = cos_phi * cxp - sin_phi * cyp + (x0 + x1) / 2.0
    ccy = sin_phi * cxp + cos_phi * cyp + (y0 + y1) / 2.0

    def _angle(ux: float, uy: float, vx: float, vy: float) -> float:
        a = math.atan2(ux * vy - uy * vx, ux * vx + uy * vy)
        return a

    theta1 = _angle(1.0, 0.0, (x1p - cxp) / rx, (y1p - cyp) / ry)
    delta = _angle((x1p - cxp) / rx, (y1p - cyp) / ry, (-x1p - cxp) / rx, (-y1p - cyp) / ry)
    if not sweep and delta > 0:
        delta -= 2 * math.pi
    elif sweep and delta < 0:
        delta += 2 * math.pi

    segments = max(1, int(math.ceil(abs(delta) / (math.pi / 2) - 1e-9)))
    step = delta / segments
    k = 4.0 / 3.0 * math.tan(step / 4.0)

    def _point(t: float) -> Point:
        ex, ey = rx * math.cos(t), ry * math.sin(t)
        return (cos_phi * ex - sin_phi * ey + ccx, sin_phi * ex + cos_phi * ey + ccy)

    def _deriv(t: float) -> Point:
        ex, ey = -rx * math.sin(t), ry * math.cos(t)
        return (cos_phi * ex - sin_phi * ey, sin_phi * ex + cos_phi * ey)

    out = []
    t = theta1
    for _ in range(segments):
        t2 = t + step
        a0, a1 = _point(t), _point(t2)
        d0, d1 = _deriv(t), _deriv(t2)
        c1 = (a0[0] + k * d0[0], a0[1] + k * d0[1])
        c2 = (a1[0] - k * d1[0], a1[1] - k * d1[1])
        out.append((c1, c2, a1))
        t = t2
    # Land exactly on the requested endpoint
    if out:
        c1, c2, _ = out[-1]
        out[-1] = (c1, c2, (x1, y1))
    return out


# ─────────────────────────────────────────────────────────
# Transformation and flattening
# ─────────────────────────────────────────────────────────


def translate_commands(commands: Sequence[PathCommand], dx: float, dy: float) -> Tuple[PathCommand, ...]:
    """Return *commands* shifted by ``(dx, dy)``."""
    if dx == 0 and dy == 0:
        return tuple(commands)
    return tuple(
        PathCommand(c.op, tuple((x + dx, y + dy) for x, y in c.points))
        for c in commands
    )


def has_drawable_segment(commands: Sequence[PathCommand]) -> bool:
    """True if the commands contain anything beyond bare moves."""
    return any(c.op in ("L", "C", "Q") for c in commands)


def flatten(commands: Sequence[PathCommand], tolerance: float = 0.5) -> List[List[Point]]:
    """Flatten commands into polylines, one per subpath.

    Curves are sampled with a segment count derived from their control
    polygon length, so short curves stay cheap and long ones stay smooth.

    Args:
        commands: Absolute path commands.
        tolerance: Approximate maximum segment length divisor.

    Returns:
        List of subpaths, each a list of points.
    """
    subpaths: List[List[Point]] = []
    current: List[Point] = []
    start: Optional[Point] = None
    pos: Point = (0.0, 0.0)

    for cmd in commands:
        if cmd.op == "M":
            if len(current) > 1:
                subpaths.append(current)
            pos = cmd.points[0]
            start = pos
            current = [pos]
            continue
        if not current:
            current = [pos]
            start = pos
        if cmd.op == "L":
            pos = cmd.points[0]
            current.append(pos)
        elif cmd.op == "C":
            c1, c2, end = cmd.points
            n = _curve_steps((pos, c1, c2, end), tolerance)
            for k in range(1, n + 1):
                current.append(_cubic_at(pos, c1, c2, end, k / n))
            pos = end
        elif cmd.op == "Q":
            ctrl, end = cmd.points
            n = _curve_steps((pos, ctrl, end), tolerance)
            for k in range(1, n + 1):
                current.append(_quad_at(pos, ctrl, end, k / n))
            pos = end
        elif cmd.op == "Z" and start is not None:
            if current[-1] != start:
                current.append(start)
            pos = start

    if len(current) > 1:
        subpaths.append(current)
    return subpaths


def _curve_steps(ctrl: Sequence[Point], tolerance: float) -> int:
    length = sum(math.dist(ctrl[k], ctrl[k + 1]) for k in range(len(ctrl) - 1))
    return max(4, min(128, int(length * tolerance / 2.0) + 1))


def _cubic_at(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    mt = 1.0 - t
    a, b, c, d = mt * mt * mt, 3 * mt * mt * t, 3 * mt * t * t, t * t * t
    return (
        a * p0[0] + b * p1[0] + c * p2[0] + d * p3[0],
        a * p0[1] + b * p1[1] + c * p2[1] + d * p3[1],
    )


def _quad_at(p0: Point, p1: Point, p2: Point, t: float) -> Point:
    mt = 1.0 - t
    a, b, c = mt * mt, 2 * mt * t, t * t
    return (a * p0[0] + b * p1[0] + c * p2[0], a * p0[1] + b * p1[1] + c * p2[1])
