"""
canvas/hit_test.py

Pointer to scene mapping and hover resolution.

Hit-testing uses each node's axis-aligned bounding box, including for
circles and diamonds, and returns the first match in extraction order.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from models import DiagramNode, InteractionState, Scene


def to_scene(scene: Scene, x: float, y: float) -> Tuple[float, float]:
    """Map surface-local coordinates to scene coordinates."""
    ox, oy = scene.coordinate_offset
    return (x - ox, y - oy)


def node_at(nodes: Iterable[DiagramNode], x: float, y: float) -> Optional[DiagramNode]:
    """First node whose inclusive bounding box contains the scene point."""
    for node in nodes:
        if node.contains(x, y):
            return node
    return None


def pointer_moved(scene: Scene, x: float, y: float) -> InteractionState:
    """Hover state for a pointer at surface coordinates ``(x, y)``."""
    sx, sy = to_scene(scene, x, y)
    hit = node_at(scene.nodes, sx, sy)
    return InteractionState(hovered_node_id=hit.id if hit else None, pointer=(sx, sy))


def pointer_left() -> InteractionState:
    """Hover state once the pointer has left the surface."""
    return InteractionState()
