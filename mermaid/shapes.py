"""
mermaid/shapes.py

Node extraction from a rendered Mermaid SVG.

Each ``<g>`` is classified once into a ``NodeKind``; its first drawable
descendant (``rect``, ``circle``, ``polygon`` or ``path``) gives the
``ShapePrimitive`` and a local bounding box.  The absolute center is
shape-agnostic::

    center = cumulative_translation + bbox_origin + bbox_size / 2
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Set, Tuple

from debug_trace import trace
from geometry.path_data import parse_path
from geometry.path_geometry import make_path_geometry
from mermaid.computed_style import ComputedStyle
from mermaid.transform import cumulative_translation
from mermaid.tree import VectorTree, class_tokens, has_class, local_name
from models import (
    DEFAULT_FILL,
    NOTE_FILL,
    NOTE_STROKE,
    DiagramNode,
    NodeKind,
    ShapePrimitive,
    StyleTier,
    default_stroke,
    visual_shape,
)
from utils import color_to_hex, is_pure_black, parse_float, with_alpha

_DRAWABLE_TAGS = {
    "rect": ShapePrimitive.RECT,
    "circle": ShapePrimitive.CIRCLE,
    "polygon": ShapePrimitive.POLYGON,
    "path": ShapePrimitive.PATH,
}

BBox = Tuple[float, float, float, float]


# ─────────────────────────────────────────────────────────
# Classification
# ─────────────────────────────────────────────────────────


def _has_direct_rect(g: ET.Element, class_name: str) -> bool:
    return any(
        local_name(child.tag) == "rect" and has_class(child, class_name)
        for child in g
    )


def classify_group(g: ET.Element) -> Optional[NodeKind]:
    """Classify a ``<g>`` element.

    Precedence: container > actor > annotation > standalone.  Groups with
    none of the role markers return None.
    """
    tokens = class_tokens(g)
    if "cluster" in tokens:
        return NodeKind.CONTAINER
    if "actor" in tokens or _has_direct_rect(g, "actor"):
        return NodeKind.ACTOR
    if "note" in tokens or _has_direct_rect(g, "note"):
        return NodeKind.ANNOTATION
    if "node" in tokens:
        return NodeKind.STANDALONE
    return None


def first_drawable(g: ET.Element) -> Optional[Tuple[ET.Element, ShapePrimitive]]:
    """First descendant drawable element of *g* in document order."""
    for el in g.iter():
        if el is g:
            continue
        primitive = _DRAWABLE_TAGS.get(local_name(el.tag))
        if primitive is not None:
            return el, primitive
    return None


# ─────────────────────────────────────────────────────────
# Geometry
# ─────────────────────────────────────────────────────────


def _parse_points(points_str: str) -> List[Tuple[float, float]]:
    nums = re.findall(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?", points_str or "")
    values = [float(n) for n in nums]
    return list(zip(values[0::2], values[1::2]))


def local_bbox(el: ET.Element, primitive: ShapePrimitive, geometry_backend: str = "qt") -> Optional[BBox]:
    """Bounding box of a drawable element in its own coordinate space.

    Args:
        el: The drawable element.
        primitive: Its classified primitive.
        geometry_backend: PathGeometry backend used for ``path`` elements.

    Returns:
        ``(x, y, width, height)`` or None when nothing can be measured.
    """
    if primitive is ShapePrimitive.RECT:
        return (
            parse_float(el.get("x")),
            parse_float(el.get("y")),
            parse_float(el.get("width")),
            parse_float(el.get("height")),
        )
    if primitive is ShapePrimitive.CIRCLE:
        r = parse_float(el.get("r"))
        cx = parse_float(el.get("cx"))
        cy = parse_float(el.get("cy"))
        return (cx - r, cy - r, 2 * r, 2 * r)
    if primitive is ShapePrimitive.POLYGON:
        pts = _parse_points(el.get("points", ""))
        if not pts:
            return None
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))
    if primitive is ShapePrimitive.PATH:
        commands = parse_path(el.get("d", ""))
        if not commands:
            return None
        return make_path_geometry(commands, geometry_backend).bounding_box()
    raise ValueError(f"Unhandled shape primitive: {primitive!r}")


# ─────────────────────────────────────────────────────────
# Labels
# ─────────────────────────────────────────────────────────


def _text_with_breaks(el: ET.Element) -> str:
    """Text content of *el* with ``<br>`` elements rendered as newlines."""
    parts = [el.text or ""]
    for child in el:
        if local_name(child.tag) == "br":
            parts.append("\n")
        else:
            parts.append(_text_with_breaks(child))
        parts.append(child.tail or "")
    return "".join(parts)


def extract_label(g: ET.Element) -> str:
    """Label text of a node group.

    Rich text in a ``foreignObject`` wins over ``<text>``.  ``<tspan>`` runs
    are joined with newlines in document order.
    """
    fo = next((el for el in g.iter() if local_name(el.tag) == "foreignObject"), None)
    if fo is not None:
        div = next((el for el in fo.iter() if local_name(el.tag) == "div"), None)
        label = _text_with_breaks(div) if div is not None else "".join(fo.itertext())
        return label.strip()

    text_el = next((el for el in g.iter() if local_name(el.tag) == "text"), None)
    if text_el is None:
        return ""
    spans = [el for el in text_el.iter() if local_name(el.tag) == "tspan"]
    if spans:
        return "\n".join("".join(s.itertext()) for s in spans).strip()
    return "".join(text_el.itertext()).strip()


# ─────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────


def _resolve_fill(style: ComputedStyle, el: ET.Element) -> str:
    raw = style.fill(el)
    if raw is None or is_pure_black(raw):
        return DEFAULT_FILL
    return color_to_hex(raw) or DEFAULT_FILL


def _resolve_stroke(style: ComputedStyle, el: ET.Element, tier: StyleTier) -> str:
    return color_to_hex(style.stroke(el)) or default_stroke(tier)


def extract_nodes(
    tree: VectorTree,
    style: ComputedStyle,
    tier: StyleTier = StyleTier.PREMIUM,
    container_fill_alpha: float = 0.05,
    geometry_backend: str = "qt",
) -> List[DiagramNode]:
    """Extract every node of the vector tree in document order.

    Args:
        tree: Parsed vector tree.
        style: Computed style resolver for *tree*.
        tier: Style tier selecting the default stroke.
        container_fill_alpha: Opacity forced onto container fills.
        geometry_backend: PathGeometry backend for path-shaped nodes.

    Returns:
        List of DiagramNode.  Groups without a drawable shape or with a
        zero dimension are skipped.
    """
    nodes: List[DiagramNode] = []
    used_ids: Set[str] = set()

    for g in tree.iter_tag("g"):
        kind = classify_group(g)
        if kind is None:
            continue
        found = first_drawable(g)
        if found is None:
            continue
        el, primitive = found
        bbox = local_bbox(el, primitive, geometry_backend)
        if bbox is None:
            continue
        bx, by, w, h = bbox
        if not (w > 0 and h > 0):
            continue

        tx, ty = cumulative_translation(tree, el)
        center = (tx + bx + w / 2.0, ty + by + h / 2.0)

        fill = _resolve_fill(style, el)
        stroke = _resolve_stroke(style, el, tier)
        if kind is NodeKind.CONTAINER:
            fill = with_alpha(fill, container_fill_alpha)
        elif kind is NodeKind.ANNOTATION:
            fill, stroke = NOTE_FILL, NOTE_STROKE

        seq = len(nodes) + 1
        node_id = g.get("id") or f"node-{seq}"
        if node_id in used_ids:
            node_id = f"{node_id}-{seq}"
        used_ids.add(node_id)

        nodes.append(DiagramNode(
            id=node_id,
            label=extract_label(g),
            kind=kind,
            shape=visual_shape(kind, primitive),
            primitive=primitive,
            center=center,
            size=(w, h),
            fill_color=fill,
            stroke_color=stroke,
        ))

    trace(f"extracted {len(nodes)} nodes", "EXTRACT")
    return nodes
