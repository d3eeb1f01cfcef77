"""
geometry package

SVG path data parsing and path measurement (bounding box, arc length,
point at fraction) behind a backend-neutral interface.
"""

from geometry.path_data import PathCommand, parse_path, translate_commands
from geometry.path_geometry import (
    PathGeometry,
    QtPathGeometry,
    PolylinePathGeometry,
    make_path_geometry,
)

__all__ = [
    "PathCommand",
    "parse_path",
    "translate_commands",
    "PathGeometry",
    "QtPathGeometry",
    "PolylinePathGeometry",
    "make_path_geometry",
]
