"""
canvas/render_loop.py

Per-frame step of the animation: advance particles, draw the frame onto
an offscreen ``QImage`` surface and hand it to any frame listeners.

``RenderLoop`` owns no timer.  ``FlowCanvas`` drives it from a ``QTimer``
and the headless exporter drives it with a fixed time step, so both
produce the same frames.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from PyQt6.QtGui import QImage, QPainter

from animation.particles import advance
from canvas.compositor import Compositor
from debug_trace import trace, trace_exception
from models import InteractionState, LiveConfig, Scene

FrameListener = Callable[[QImage], None]


class RenderLoop:
    """Holds the current scene, live config and hover state and renders frames.

    Swapping any of them is a single reference assignment, so a frame
    always sees a consistent snapshot.

    Args:
        compositor: Frame compositor (a default one is created when omitted).
        config: Initial live configuration.
    """

    def __init__(self, compositor: Optional[Compositor] = None, config: Optional[LiveConfig] = None):
        self.compositor = compositor or Compositor()
        self.scene: Scene = Scene.empty()
        self.config: LiveConfig = config or LiveConfig()
        self.interaction: InteractionState = InteractionState()
        self.recording = False
        self.frame_count = 0
        self.error_count = 0
        self._listeners: List[FrameListener] = []
        self.surface = self._new_surface(self.scene)

    @staticmethod
    def _new_surface(scene: Scene) -> QImage:
        w, h = scene.surface_size
        image = QImage(max(1, w), max(1, h), QImage.Format.Format_ARGB32_Premultiplied)
        image.fill(0)
        return image

    # ─── state ───

    def set_scene(self, scene: Scene) -> None:
        """Replace the scene; the surface is resized to the new scene."""
        if scene.surface_size != self.scene.surface_size:
            self.surface = self._new_surface(scene)
        self.scene = scene
        # Hover ids belong to the previous extraction pass
        if scene.node(self.interaction.hovered_node_id) is None:
            self.interaction = InteractionState(pointer=self.interaction.pointer)

    def set_config(self, config: LiveConfig) -> None:
        self.config = config

    def set_interaction(self, interaction: InteractionState) -> None:
        self.interaction = interaction

    def add_frame_listener(self, listener: FrameListener) -> None:
        self._listeners.append(listener)

    def remove_frame_listener(self, listener: FrameListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ─── frame ───

    def render(self) -> QImage:
        """Draw the current state without advancing particles."""
        scene, config, interaction = self.scene, self.config, self.interaction
        painter = QPainter(self.surface)
        try:
            self.compositor.draw_frame(
                painter, self.surface.width(), self.surface.height(),
                scene, config, interaction, self.recording,
            )
        finally:
            painter.end()
        return self.surface

    def step(self, elapsed_ms: Optional[float] = None) -> QImage:
        """Advance one frame and return the surface.

        An exception raised while advancing or drawing is traced and the
        frame is skipped; the next call runs normally.

        Args:
            elapsed_ms: Time since the previous step, or None for exactly
                one reference frame.
        """
        try:
            if self.config.premium:
                advance(self.scene.particles, self.config.particle_speed, elapsed_ms)
            self.render()
            for listener in list(self._listeners):
                listener(self.surface)
        except Exception:
            self.error_count += 1
            trace_exception(f"frame {self.frame_count} failed")
            return self.surface
        self.frame_count += 1
        trace(f"frame {self.frame_count} ({elapsed_ms} ms)", "PAINT")
        return self.surface
