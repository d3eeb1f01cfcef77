"""
tests/test_compositor.py

Frame compositing and the render loop step.
"""

from __future__ import annotations

import random

import pytest
from PyQt6.QtGui import QImage, QPainter

from canvas.compositor import (
    DRAFT_BACKGROUND,
    PREMIUM_BACKGROUND,
    PREMIUM_MESSAGE_STROKE,
    PREMIUM_STRUCTURAL_STROKE,
    Compositor,
    edge_dash,
    edge_pen_color,
    make_pen,
)
from canvas.glow import GlowCache, make_glow_sprite
from canvas.render_loop import RenderLoop
from mermaid.parser import extract_scene
from models import (
    DiagramEdge,
    DiagramNode,
    EdgeKind,
    InteractionState,
    LiveConfig,
    NodeKind,
    NodeShape,
    Scene,
    ShapePrimitive,
    StyleTier,
)

PREMIUM = LiveConfig(style_tier=StyleTier.PREMIUM)
DRAFT = LiveConfig(style_tier=StyleTier.DRAFT)


@pytest.fixture()
def scene(qapp, sequence_svg):
    return extract_scene(sequence_svg, rng=random.Random(0))


class _Spy:
    """Wraps a compositor method and counts calls."""

    def __init__(self, func):
        self.func = func
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        return self.func(*args, **kwargs)


def _render(compositor: Compositor, scene: Scene, config: LiveConfig, **kwargs) -> QImage:
    w, h = scene.surface_size
    image = QImage(w, h, QImage.Format.Format_ARGB32_Premultiplied)
    painter = QPainter(image)
    try:
        compositor.draw_frame(painter, w, h, scene, config, InteractionState(), **kwargs)
    finally:
        painter.end()
    return image


class TestTiers:

    def test_draft_draws_no_grid_or_particles(self, scene):
        compositor = Compositor()
        compositor._grid_path = _Spy(compositor._grid_path)
        compositor.draw_particles = _Spy(compositor.draw_particles)
        _render(compositor, scene, DRAFT)
        assert compositor._grid_path.calls == 0
        assert compositor.draw_particles.calls == 0

    def test_premium_draws_grid_and_particles(self, scene):
        compositor = Compositor()
        compositor._grid_path = _Spy(compositor._grid_path)
        compositor.draw_particles = _Spy(compositor.draw_particles)
        _render(compositor, scene, PREMIUM)
        assert compositor._grid_path.calls == 1
        assert compositor.draw_particles.calls == 1

    @pytest.mark.parametrize("config, background", [
        (PREMIUM, PREMIUM_BACKGROUND),
        (DRAFT, DRAFT_BACKGROUND),
    ])
    def test_background(self, qapp, config, background):
        empty = Scene(surface_size=(100, 100))
        image = _render(Compositor(), empty, config)
        # (20, 20) sits between grid lines
        assert image.pixelColor(20, 20).name() == background

    def test_recording_indicator(self, scene):
        compositor = Compositor()
        compositor.draw_recording_indicator = _Spy(compositor.draw_recording_indicator)
        _render(compositor, scene, PREMIUM)
        assert compositor.draw_recording_indicator.calls == 0
        _render(compositor, scene, PREMIUM, recording=True)
        assert compositor.draw_recording_indicator.calls == 1

    def test_hovered_node_renders(self, scene):
        w, h = scene.surface_size
        image = QImage(w, h, QImage.Format.Format_ARGB32_Premultiplied)
        painter = QPainter(image)
        try:
            Compositor().draw_frame(painter, w, h, scene, PREMIUM,
                                    InteractionState(hovered_node_id=scene.nodes[0].id))
        finally:
            painter.end()

class TestHover:

    @staticmethod
    def _single(kind: NodeKind, fill: str) -> Scene:
        node = DiagramNode(
            id="n", label="", kind=kind, shape=NodeShape.ROUNDED_RECTANGLE,
            primitive=ShapePrimitive.RECT, center=(100.0, 100.0), size=(100.0, 100.0),
            fill_color=fill, stroke_color="#94a3b8",
        )
        return Scene(nodes=(node,), surface_size=(200, 200))

    @staticmethod
    def _draw(scene: Scene, hovered_id) -> QImage:
        image = QImage(200, 200, QImage.Format.Format_ARGB32_Premultiplied)
        painter = QPainter(image)
        try:
            Compositor().draw_frame(painter, 200, 200, scene, DRAFT,
                                    InteractionState(hovered_node_id=hovered_id))
        finally:
            painter.end()
        return image

    @pytest.mark.parametrize("kind, fill", [
        (NodeKind.STANDALONE, "#ececff"),
        (NodeKind.CONTAINER, "#0dffffde"),
    ])
    def test_glow_reaches_outside_the_node(self, qapp, kind, fill):
        scene = self._single(kind, fill)
        plain = self._draw(scene, None).pixelColor(42, 100)
        glowing = self._draw(scene, "n").pixelColor(42, 100)
        assert plain.name() == DRAFT_BACKGROUND
        diff = sum(abs(a - b) for a, b in zip(plain.getRgb()[:3], glowing.getRgb()[:3]))
        assert diff > 40


class TestEdgeStyle:

    def test_layers_put_structural_edges_first(self, scene):
        layers = Compositor().layers(scene)
        kinds = [e.kind for e in layers.edges]
        assert kinds == sorted(kinds, key=lambda k: k is EdgeKind.MESSAGE)

    def test_premium_overrides_edge_colors(self, scene):
        structural = next(e for e in scene.edges if e.kind is EdgeKind.STRUCTURAL)
        message = next(e for e in scene.edges if e.kind is EdgeKind.MESSAGE)
        assert edge_pen_color(structural, PREMIUM) == PREMIUM_STRUCTURAL_STROKE
        assert edge_pen_color(message, PREMIUM) == PREMIUM_MESSAGE_STROKE
        assert edge_pen_color(message, DRAFT) == "#333333"

    def test_structural_edges_default_to_dashed(self):
        structural = DiagramEdge(id="s", description="M 0 0 L 10 0", path=(), kind=EdgeKind.STRUCTURAL)
        message = DiagramEdge(id="m", description="M 0 0 L 10 0", path=(), kind=EdgeKind.MESSAGE)
        assert edge_dash(structural) == (5.0, 5.0)
        assert edge_dash(message) is None
        assert edge_dash(DiagramEdge(id="d", description="", path=(), kind=EdgeKind.MESSAGE,
                                     dash_pattern=(3.0, 3.0))) == (3.0, 3.0)

    def test_pen_dash_in_width_units(self, qapp):
        from PyQt6.QtGui import QColor
        pen = make_pen(QColor("#000"), 2.0, (6.0, 4.0))
        assert list(pen.dashPattern()) == pytest.approx([3.0, 2.0])

    def test_odd_dash_pattern_is_doubled(self, qapp):
        from PyQt6.QtGui import QColor
        pen = make_pen(QColor("#000"), 1.0, (2.0,))
        assert list(pen.dashPattern()) == pytest.approx([2.0, 2.0])


class TestGlow:

    def test_sprite_is_padded(self, qapp):
        from PyQt6.QtGui import QColor
        image, pad = make_glow_sprite(NodeShape.ROUNDED_RECTANGLE, (40, 20), QColor(0, 0, 0, 25), 10.0, 4.0)
        assert pad > 0
        assert (image.width(), image.height()) == (40 + 2 * pad, 20 + 2 * pad)

    def test_cache_reuses_and_evicts(self, qapp):
        from PyQt6.QtGui import QColor
        cache = GlowCache(max_entries=2)
        first = cache.sprite(NodeShape.CIRCLE, (6, 6), QColor("red"), 4.0)
        assert cache.sprite(NodeShape.CIRCLE, (6, 6), QColor("red"), 4.0) is first
        cache.sprite(NodeShape.CIRCLE, (8, 8), QColor("red"), 4.0)
        cache.sprite(NodeShape.CIRCLE, (10, 10), QColor("red"), 4.0)
        assert len(cache) == 2


class TestRenderLoop:

    def test_premium_step_advances_particles(self, scene):
        loop = RenderLoop(config=PREMIUM)
        loop.set_scene(scene)
        before = [p.progress for p in scene.particles]
        loop.step()
        assert [p.progress for p in scene.particles] != before
        assert loop.frame_count == 1

    def test_draft_step_freezes_particles(self, scene):
        loop = RenderLoop(config=DRAFT)
        loop.set_scene(scene)
        before = [p.progress for p in scene.particles]
        loop.step()
        assert [p.progress for p in scene.particles] == before

    def test_surface_follows_scene(self, scene):
        loop = RenderLoop()
        loop.set_scene(scene)
        assert (loop.surface.width(), loop.surface.height()) == scene.surface_size

    def test_stale_hover_is_cleared(self, scene):
        loop = RenderLoop()
        loop.set_scene(scene)
        loop.set_interaction(InteractionState(hovered_node_id=scene.nodes[0].id, pointer=(1.0, 2.0)))
        loop.set_scene(Scene.empty())
        assert loop.interaction.hovered_node_id is None
        assert loop.interaction.pointer == (1.0, 2.0)

    def test_frame_error_does_not_stop_the_loop(self, scene):
        compositor = Compositor()
        real = compositor.draw_frame
        state = {"fail": True}

        def flaky(*args, **kwargs):
            if state.pop("fail", False):
                raise RuntimeError("boom")
            return real(*args, **kwargs)

        compositor.draw_frame = flaky
        loop = RenderLoop(compositor=compositor)
        loop.set_scene(scene)
        loop.step()
        assert loop.error_count == 1
        assert loop.frame_count == 0
        loop.step()
        assert loop.error_count == 1
        assert loop.frame_count == 1

    def test_listeners_receive_frames(self, scene):
        loop = RenderLoop()
        loop.set_scene(scene)
        frames = []
        listener = frames.append
        loop.add_frame_listener(listener)
        loop.step()
        loop.step()
        loop.remove_frame_listener(listener)
        loop.step()
        assert len(frames) == 2
        assert frames[0] is loop.surface

    def test_failing_listener_is_isolated(self, scene):
        loop = RenderLoop()
        loop.set_scene(scene)

        def bad(_image):
            raise ValueError("sink exploded")

        loop.add_frame_listener(bad)
        loop.step()
        loop.step()
        assert loop.error_count == 2
