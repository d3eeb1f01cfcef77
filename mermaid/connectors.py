"""
mermaid/connectors.py

Connector extraction from a rendered Mermaid SVG.

Primary pass (document order, each element once):

- message edges: ``path`` inside ``.edgePath``, ``.flowchart-link``,
  ``line``/``path`` with ``messageLine0``/``messageLine1``
- structural edges: ``.actor-line``, or a ``line`` whose class contains
  ``actor-line``

Secondary pass: any remaining near-vertical long ``line`` is a lifeline
(structural), unless an edge with the same description already exists.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import List, Optional, Set

from debug_trace import trace
from geometry.path_data import format_number, has_drawable_segment, parse_path, translate_commands
from geometry.path_geometry import make_path_geometry
from mermaid.computed_style import ComputedStyle
from mermaid.transform import cumulative_translation
from mermaid.tree import VectorTree, class_tokens, has_class, local_name
from models import DiagramEdge, EdgeKind, StyleTier, default_stroke
from utils import color_to_hex, parse_float

_MESSAGE_LINE_CLASSES = ("messageLine0", "messageLine1")


def classify_connector(tree: VectorTree, el: ET.Element) -> Optional[EdgeKind]:
    """Return the edge kind marked on *el*, or None if it is not a connector."""
    tag = local_name(el.tag)
    tokens = class_tokens(el)
    if tag == "path" and any(has_class(a, "edgePath") for a in tree.ancestors(el)):
        return EdgeKind.MESSAGE
    if "flowchart-link" in tokens:
        return EdgeKind.MESSAGE
    if tag in ("line", "path") and any(c in tokens for c in _MESSAGE_LINE_CLASSES):
        return EdgeKind.MESSAGE
    if "actor-line" in tokens:
        return EdgeKind.STRUCTURAL
    if tag == "line" and "actor-line" in (el.get("class") or ""):
        return EdgeKind.STRUCTURAL
    return None


def line_description(el: ET.Element) -> str:
    """Synthesize ``M x1 y1 L x2 y2`` for a ``<line>``; empty if an endpoint is missing."""
    coords = [el.get(a) for a in ("x1", "y1", "x2", "y2")]
    if any(c is None or not c.strip() for c in coords):
        return ""
    x1, y1, x2, y2 = (format_number(parse_float(c)) for c in coords)
    return f"M {x1} {y1} L {x2} {y2}"


def element_description(el: ET.Element) -> str:
    tag = local_name(el.tag)
    if tag == "line":
        return line_description(el)
    if tag == "path":
        return (el.get("d") or "").strip()
    return ""


def is_lifeline(el: ET.Element, ratio: float = 3.0, min_length: float = 50.0) -> bool:
    """True if a ``<line>`` is near-vertical and long enough to be a lifeline."""
    dx = abs(parse_float(el.get("x2")) - parse_float(el.get("x1")))
    dy = abs(parse_float(el.get("y2")) - parse_float(el.get("y1")))
    return dy > dx * ratio and dy > min_length


class ConnectorExtractor:
    """Builds DiagramEdge values from one vector tree.

    Args:
        tree: Parsed vector tree.
        style: Computed style resolver for *tree*.
        tier: Style tier selecting the default stroke.
        min_path_chars: Descriptions not longer than this are noise.
        lifeline_ratio: Minimum ``|dy| / |dx|`` for the lifeline heuristic.
        lifeline_min_length: Minimum ``|dy|`` for the lifeline heuristic.
        geometry_backend: PathGeometry backend name.
    """

    def __init__(
        self,
        tree: VectorTree,
        style: ComputedStyle,
        tier: StyleTier = StyleTier.PREMIUM,
        min_path_chars: int = 10,
        lifeline_ratio: float = 3.0,
        lifeline_min_length: float = 50.0,
        geometry_backend: str = "qt",
    ):
        self.tree = tree
        self.style = style
        self.tier = tier
        self.min_path_chars = min_path_chars
        self.lifeline_ratio = lifeline_ratio
        self.lifeline_min_length = lifeline_min_length
        self.geometry_backend = geometry_backend
        self._edges: List[DiagramEdge] = []
        self._captured: Set[ET.Element] = set()

    def _emit(self, el: ET.Element, kind: EdgeKind) -> None:
        self._captured.add(el)
        d = element_description(el)
        if len(d) <= self.min_path_chars:
            return
        commands = parse_path(d)
        if not has_drawable_segment(commands):
            return
        tx, ty = cumulative_translation(self.tree, el)
        path = translate_commands(commands, tx, ty)
        self._edges.append(DiagramEdge(
            id=f"edge-{len(self._edges) + 1}",
            description=d,
            path=path,
            kind=kind,
            stroke_color=color_to_hex(self.style.stroke(el)) or default_stroke(self.tier),
            dash_pattern=self.style.dash_pattern(el),
            geometry=make_path_geometry(path, self.geometry_backend),
        ))

    def extract(self) -> List[DiagramEdge]:
        """Run both passes and return the edges in emission order."""
        self._edges = []
        self._captured = set()

        for el in self.tree.iter_elements():
            kind = classify_connector(self.tree, el)
            if kind is not None:
                self._emit(el, kind)
        marked = len(self._edges)

        for line in self.tree.iter_tag("line"):
            if line in self._captured:
                continue
            if not is_lifeline(line, self.lifeline_ratio, self.lifeline_min_length):
                continue
            d = line_description(line)
            if any(e.description == d for e in self._edges):
                continue
            self._emit(line, EdgeKind.STRUCTURAL)

        trace(f"extracted {len(self._edges)} edges ({len(self._edges) - marked} by lifeline heuristic)", "EXTRACT")
        return list(self._edges)


def extract_edges(tree: VectorTree, style: ComputedStyle, **options) -> List[DiagramEdge]:
    """Convenience wrapper around ``ConnectorExtractor(...).extract()``."""
    return ConnectorExtractor(tree, style, **options).extract()
