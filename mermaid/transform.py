"""
mermaid/transform.py

Cumulative translation of an SVG element up to the document root.

Mermaid positions nodes and clusters with nested ``translate()``
transforms only.  Rotation, scale, skew and matrix functions are ignored:
the extracted scene is axis-aligned.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Tuple

from mermaid.tree import VectorTree

_NUM = r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?"
_TRANSLATE_RE = re.compile(
    rf"translate\(\s*({_NUM})(?:\s*,\s*|\s+)?({_NUM})?\s*\)", re.IGNORECASE
)


def parse_translate(transform: str) -> Tuple[float, float]:
    """Sum every ``translate(x[, y])`` in a transform attribute.

    Examples:
        ``"translate(10, 20)"`` -> ``(10.0, 20.0)``
        ``"translate(10 20) translate(-5,5)"`` -> ``(5.0, 25.0)``
        ``"translate(7)"`` -> ``(7.0, 0.0)``

    Malformed or absent strings give ``(0.0, 0.0)``.
    """
    dx = dy = 0.0
    for m in _TRANSLATE_RE.finditer(transform or ""):
        dx += float(m.group(1))
        if m.group(2) is not None:
            dy += float(m.group(2))
    return dx, dy


def cumulative_translation(tree: VectorTree, element: ET.Element) -> Tuple[float, float]:
    """Sum the translations of *element* and its ancestors, excluding the root.

    Args:
        tree: The vector tree containing *element*.
        element: Any element of the tree.

    Returns:
        ``(dx, dy)`` in root coordinates; ``(0.0, 0.0)`` for the root itself.
    """
    dx = dy = 0.0
    node = element
    while node is not None and node is not tree.root:
        tx, ty = parse_translate(node.get("transform", ""))
        dx += tx
        dy += ty
        node = tree.parent(node)
    return dx, dy
