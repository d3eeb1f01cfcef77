"""
utils.py

Color and number helpers shared by extraction and compositing.
"""

from __future__ import annotations

import re
from typing import Optional

from PyQt6.QtGui import QColor


_RGB_FUNC_RE = re.compile(r"^(rgba?|hsla?)\s*\(\s*([^)]*)\)$", re.IGNORECASE)


def parse_float(value: Optional[str], default: float = 0.0) -> float:
    """Parse an SVG length/number attribute, ignoring a trailing unit.

    Args:
        value: Attribute value such as ``"12"``, ``"12.5px"`` or ``None``.
        default: Returned when nothing numeric can be read.

    Returns:
        The numeric value or *default*.
    """
    if value is None:
        return default
    m = re.match(r"\s*([-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?)", str(value))
    if not m:
        return default
    return float(m.group(1))


def parse_color(s: Optional[str]) -> Optional[QColor]:
    """
    Parse a CSS color value to a QColor.

    Accepts ``#rgb``, ``#rgba``, ``#rrggbb``, ``#rrggbbaa`` (CSS alpha-last
    order), ``rgb()``/``rgba()``, ``hsl()``/``hsla()`` and named colors.

    Args:
        s: The CSS color string

    Returns:
        Parsed QColor, or None if *s* is empty, ``none``/``transparent``
        or not a color
    """
    if not s:
        return None
    s = s.strip()
    low = s.lower()
    if low in ("none", "transparent", "currentcolor", "inherit"):
        return None

    if low.startswith("#"):
        digits = low[1:]
        if not re.fullmatch(r"[0-9a-f]+", digits):
            return None
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        if len(digits) == 6:
            return QColor(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
        if len(digits) == 8:
            return QColor(int(digits[0:2], 16), int(digits[2:4], 16),
                          int(digits[4:6], 16), int(digits[6:8], 16))
        return None

    m = _RGB_FUNC_RE.match(s)
    if m:
        func = m.group(1).lower()
        parts = [p for p in re.split(r"[\s,/]+", m.group(2).strip()) if p]
        if len(parts) < 3:
            return None
        alpha = 1.0
        if len(parts) >= 4:
            alpha = _channel(parts[3], 1.0)
        if func.startswith("rgb"):
            r, g, b = (_channel(p, 255.0) for p in parts[:3])
            c = QColor(_clamp_byte(r), _clamp_byte(g), _clamp_byte(b))
        else:
            h = parse_float(parts[0]) % 360.0
            sat = _channel(parts[1], 1.0)
            light = _channel(parts[2], 1.0)
            c = QColor.fromHslF(h / 360.0, min(max(sat, 0.0), 1.0), min(max(light, 0.0), 1.0))
        c.setAlphaF(min(max(alpha, 0.0), 1.0))
        return c

    if QColor.isValidColorName(s):
        return QColor(s)
    return None


def _channel(token: str, scale: float) -> float:
    """Read one color channel; percentages map onto *scale*."""
    if token.endswith("%"):
        return parse_float(token[:-1]) / 100.0 * scale
    return parse_float(token)


def _clamp_byte(v: float) -> int:
    return int(round(min(max(v, 0.0), 255.0)))


def qcolor_to_hex(c: QColor, include_alpha: bool = False) -> str:
    """
    Convert a QColor to a hex string.

    Args:
        c: The QColor to convert
        include_alpha: If True, emit Qt's ``#AARRGGBB`` form

    Returns:
        Hex string like "#rrggbb" or "#aarrggbb"
    """
    if include_alpha:
        return c.name(QColor.NameFormat.HexArgb)
    return c.name(QColor.NameFormat.HexRgb)


def color_to_hex(s: Optional[str]) -> Optional[str]:
    """Normalize any CSS color to ``#rrggbb`` (or ``#aarrggbb`` when translucent)."""
    c = parse_color(s)
    if c is None:
        return None
    return qcolor_to_hex(c, include_alpha=c.alpha() < 255)


def with_alpha(s: str, alpha: float) -> str:
    """Return color *s* with its opacity forced to *alpha* (0..1).

    *s* may be a CSS color or a stored ``#aarrggbb`` value.
    """
    c = to_qcolor(s, "#000000")
    c.setAlphaF(min(max(alpha, 0.0), 1.0))
    return qcolor_to_hex(c, include_alpha=True)


def to_qcolor(s: Optional[str], fallback: str = "#000000") -> QColor:
    """Parse *s*, returning *fallback* as a QColor when it is not a color.

    Stored colors use Qt's ``#aarrggbb`` ordering, which ``QColor`` reads
    natively, so they round-trip through this helper.
    """
    if s and s.startswith("#") and len(s) == 9:
        c = QColor(s)
        if c.isValid():
            return c
    return parse_color(s) or QColor(fallback)


def is_pure_black(s: Optional[str]) -> bool:
    """True for opaque black in any notation (``#000``, ``rgb(0, 0, 0)``...)."""
    c = parse_color(s)
    return c is not None and c.alpha() == 255 and (c.red(), c.green(), c.blue()) == (0, 0, 0)
