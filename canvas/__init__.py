"""
canvas package

Frame compositing, the render loop, and the PyQt6 widget that shows it.
"""

from canvas.compositor import Compositor
from canvas.glow import GlowCache
from canvas.hit_test import node_at, pointer_left, pointer_moved, to_scene
from canvas.recorder import Recorder
from canvas.render_loop import RenderLoop
from canvas.view import FlowCanvas

__all__ = [
    "Compositor",
    "GlowCache",
    "node_at",
    "pointer_left",
    "pointer_moved",
    "to_scene",
    "Recorder",
    "RenderLoop",
    "FlowCanvas",
]
