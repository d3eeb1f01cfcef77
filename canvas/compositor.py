"""
canvas/compositor.py

Draws one animation frame of a Scene with QPainter.

Layer order, after the background and the optional grid:

1. container nodes
2. edges, structural before message
3. particles (premium tier only, multiply composition)
4. remaining nodes, annotations last

The recording indicator is drawn last in surface coordinates.
"""

from __future__ import annotations

import math
from typing import Dict, Optional, Sequence, Tuple

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QColor, QFont, QFontMetricsF, QPainter, QPainterPath, QPen, QPolygonF

from animation.particles import particle_position
from canvas.glow import NOTE_FOLD, GlowCache
from debug_trace import trace
from geometry.path_geometry import QtPathGeometry, build_painter_path
from models import (
    DRAFT_STROKE,
    DiagramEdge,
    DiagramNode,
    EdgeKind,
    InteractionState,
    LiveConfig,
    NodeKind,
    NodeShape,
    Scene,
)
from utils import to_qcolor

# ─────────────────────────────────────────────────────────
# Palette and metrics
# ─────────────────────────────────────────────────────────

PREMIUM_BACKGROUND = "#f8fafc"
DRAFT_BACKGROUND = "#ffffff"
GRID_COLOR = QColor(0, 0, 0, round(0.05 * 255))
PREMIUM_STRUCTURAL_STROKE = "#cbd5e1"
PREMIUM_MESSAGE_STROKE = "#64748b"
STRUCTURAL_DASH = (5.0, 5.0)
CONTAINER_DASH = (5.0, 5.0)
EDGE_WIDTH = 2.0
NODE_STROKE_WIDTH = 2.0
HIGHLIGHT_WIDTH = 2.0
CONTAINER_RADIUS = 16.0
NODE_RADIUS = 4.0
HOVER_GLOW_BLUR = 25.0
SHADOW_COLOR = QColor(0, 0, 0, round(0.1 * 255))
SHADOW_BLUR = 10.0
SHADOW_OFFSET = (0.0, 4.0)
LABEL_LINE_HEIGHT = 16.0
CONTAINER_LABEL_DROP = 20.0
FONT_FAMILIES = ["Inter", "Helvetica", "Arial", "sans-serif"]


def _font(pixel_size: int) -> QFont:
    font = QFont()
    font.setFamilies(FONT_FAMILIES)
    font.setPixelSize(pixel_size)
    font.setBold(True)
    return font


def make_pen(color: QColor, width: float, dash: Optional[Sequence[float]] = None) -> QPen:
    """Pen with canvas-like caps, joins and pixel-unit dashes.

    QPen dash patterns are in units of the pen width, so pixel lengths are
    divided by *width*.  Odd-length patterns repeat once, as on an HTML
    canvas.
    """
    pen = QPen(color)
    pen.setWidthF(width)
    pen.setCapStyle(Qt.PenCapStyle.FlatCap)
    pen.setJoinStyle(Qt.PenJoinStyle.MiterJoin)
    if dash:
        pattern = list(dash)
        if len(pattern) % 2:
            pattern = pattern * 2
        pen.setDashPattern([max(v, 0.01) / width for v in pattern])
    return pen


def node_path(node: DiagramNode) -> QPainterPath:
    """Outline of a node according to its shape."""
    x, y = node.center
    w, h = node.size
    left, top = x - w / 2.0, y - h / 2.0
    path = QPainterPath()
    if node.shape is NodeShape.CIRCLE:
        path.addEllipse(QPointF(x, y), w / 2.0, w / 2.0)
    elif node.shape is NodeShape.DIAMOND:
        path.addPolygon(QPolygonF([
            QPointF(x, top), QPointF(left + w, y), QPointF(x, top + h), QPointF(left, y),
        ]))
        path.closeSubpath()
    elif node.shape is NodeShape.FOLDED_NOTE:
        path.addPolygon(QPolygonF([
            QPointF(left, top),
            QPointF(left + w - NOTE_FOLD, top),
            QPointF(left + w, top + NOTE_FOLD),
            QPointF(left + w, top + h),
            QPointF(left, top + h),
        ]))
        path.closeSubpath()
    else:
        r = corner_radius(node)
        path.addRoundedRect(QRectF(left, top, w, h), r, r)
    return path


def corner_radius(node: DiagramNode) -> float:
    return CONTAINER_RADIUS if node.kind is NodeKind.CONTAINER else NODE_RADIUS


def edge_pen_color(edge: DiagramEdge, config: LiveConfig) -> str:
    """Stroke color of an edge for the current tier."""
    if config.premium:
        return PREMIUM_STRUCTURAL_STROKE if edge.kind is EdgeKind.STRUCTURAL else PREMIUM_MESSAGE_STROKE
    if edge.kind is EdgeKind.STRUCTURAL and not edge.stroke_color:
        return DRAFT_STROKE
    return edge.stroke_color or DRAFT_STROKE


def edge_dash(edge: DiagramEdge) -> Optional[Tuple[float, ...]]:
    if edge.dash_pattern:
        return edge.dash_pattern
    if edge.kind is EdgeKind.STRUCTURAL:
        return STRUCTURAL_DASH
    return None


class _SceneLayers:
    """Per-scene draw order and painter paths, built once per scene."""

    def __init__(self, scene: Scene):
        self.scene = scene
        self.containers = [n for n in scene.nodes if n.kind is NodeKind.CONTAINER]
        others = [n for n in scene.nodes if n.kind is not NodeKind.CONTAINER]
        # Stable: annotations last
        self.foreground = sorted(others, key=lambda n: n.kind is NodeKind.ANNOTATION)
        self.edges = sorted(scene.edges, key=lambda e: e.kind is not EdgeKind.STRUCTURAL)
        self.edge_paths: Dict[str, QPainterPath] = {}
        for e in self.edges:
            if isinstance(e.geometry, QtPathGeometry):
                self.edge_paths[e.id] = e.geometry.painter_path
            else:
                self.edge_paths[e.id] = build_painter_path(e.path)
        self.node_paths: Dict[str, QPainterPath] = {n.id: node_path(n) for n in scene.nodes}


class Compositor:
    """Draws frames; holds caches that depend only on the scene and sizes.

    Args:
        glow_cache: Sprite cache (a private one is created when omitted).
        grid_spacing: Grid cell size in pixels.
        particle_radius: Particle disc radius.
        particle_blur: Particle glow blur.
    """

    def __init__(self, glow_cache: Optional[GlowCache] = None, grid_spacing: float = 40.0,
                 particle_radius: float = 3.0, particle_blur: float = 4.0):
        self.glow = glow_cache or GlowCache()
        self.grid_spacing = grid_spacing
        self.particle_radius = particle_radius
        self.particle_blur = particle_blur
        self._layers: Optional[_SceneLayers] = None
        self._grid: Optional[Tuple[Tuple[int, int], QPainterPath]] = None
        self._label_font = _font(14)
        self._container_font = _font(12)
        self._rec_font = _font(16)

    @classmethod
    def from_settings(cls, app_settings, glow_cache: Optional[GlowCache] = None) -> "Compositor":
        """Build from a ``settings.AppSettings`` instance."""
        return cls(
            glow_cache=glow_cache,
            grid_spacing=app_settings.render.grid_spacing,
            particle_radius=app_settings.particles.radius,
            particle_blur=app_settings.particles.glow_blur,
        )

    # ─── caches ───

    def layers(self, scene: Scene) -> _SceneLayers:
        if self._layers is None or self._layers.scene is not scene:
            self._layers = _SceneLayers(scene)
        return self._layers

    def _grid_path(self, width: int, height: int) -> QPainterPath:
        if self._grid is not None and self._grid[0] == (width, height):
            return self._grid[1]
        big_w, big_h = width * 2, height * 2
        step = max(self.grid_spacing, 1.0)
        path = QPainterPath()
        x = -big_w
        while x <= big_w:
            path.moveTo(x, -big_h)
            path.lineTo(x, big_h)
            x += step
        y = -big_h
        while y <= big_h:
            path.moveTo(-big_w, y)
            path.lineTo(big_w, y)
            y += step
        self._grid = ((width, height), path)
        return path

    # ─── frame ───

    def draw_frame(self, painter: QPainter, width: int, height: int, scene: Scene,
                   config: LiveConfig, interaction: InteractionState,
                   recording: bool = False) -> None:
        """Draw one complete frame onto *painter*'s device.

        Args:
            painter: Active painter on a ``width`` x ``height`` surface.
            width: Surface width in pixels.
            height: Surface height in pixels.
            scene: Scene to draw.
            config: Live configuration for this frame.
            interaction: Hover state for this frame.
            recording: Draw the recording indicator.
        """
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
        painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_SourceOver)
        painter.fillRect(QRectF(0, 0, width, height),
                         QColor(PREMIUM_BACKGROUND if config.premium else DRAFT_BACKGROUND))

        layers = self.layers(scene)
        particle_color = to_qcolor(config.particle_color, "#6366f1")

        painter.save()
        painter.translate(*scene.coordinate_offset)

        if config.premium:
            painter.setPen(make_pen(GRID_COLOR, 1.0))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawPath(self._grid_path(width, height))

        for node in layers.containers:
            self.draw_node(painter, node, layers.node_paths[node.id], config, interaction, particle_color)

        self.draw_edges(painter, layers, config)

        if config.premium:
            self.draw_particles(painter, scene.particles, particle_color)

        for node in layers.foreground:
            self.draw_node(painter, node, layers.node_paths[node.id], config, interaction, particle_color)

        painter.restore()

        if recording:
            self.draw_recording_indicator(painter)

    def draw_edges(self, painter: QPainter, layers: _SceneLayers, config: LiveConfig) -> None:
        painter.setBrush(Qt.BrushStyle.NoBrush)
        for edge in layers.edges:
            pen = make_pen(to_qcolor(edge_pen_color(edge, config), DRAFT_STROKE), EDGE_WIDTH, edge_dash(edge))
            painter.setPen(pen)
            painter.drawPath(layers.edge_paths[edge.id])

    def draw_particles(self, painter: QPainter, particles, color: QColor) -> None:
        painter.save()
        painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_Multiply)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(color)
        r = self.particle_radius
        drawn = 0
        for p in particles:
            pos = particle_position(p)
            if pos is None:
                continue
            x, y = pos
            self.glow.draw(painter, NodeShape.CIRCLE, x - r, y - r, (2 * r, 2 * r), color, self.particle_blur)
            painter.drawEllipse(QPointF(x, y), r, r)
            drawn += 1
        painter.restore()
        trace(f"drew {drawn}/{len(particles)} particles", "PAINT")

    def draw_node(self, painter: QPainter, node: DiagramNode, path: QPainterPath,
                  config: LiveConfig, interaction: InteractionState, particle_color: QColor) -> None:
        """Draw a node with its shadow or hover glow, outline and label."""
        hovered = node.id == interaction.hovered_node_id
        fill = to_qcolor(node.fill_color, "#ffffff")
        left, top, w, h = node.bounds()
        if hovered:
            self.glow.draw(painter, node.shape, left - 1, top - 1, (w + 2, h + 2), particle_color,
                           HOVER_GLOW_BLUR, corner_radius(node))
        elif config.premium and node.kind is not NodeKind.CONTAINER:
            shadow = QColor(SHADOW_COLOR)
            shadow.setAlphaF(shadow.alphaF() * fill.alphaF())
            self.glow.draw(painter, node.shape, left - 1, top - 1, (w + 2, h + 2), shadow,
                           SHADOW_BLUR, corner_radius(node), offset=SHADOW_OFFSET)

        dash = CONTAINER_DASH if node.kind is NodeKind.CONTAINER else None
        painter.setPen(make_pen(to_qcolor(node.stroke_color, DRAFT_STROKE), NODE_STROKE_WIDTH, dash))
        painter.setBrush(fill)
        painter.drawPath(path)

        if hovered:
            painter.setPen(make_pen(particle_color, HIGHLIGHT_WIDTH, dash))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawPath(path)

        self.draw_label(painter, node)

    def draw_label(self, painter: QPainter, node: DiagramNode) -> None:
        if not node.label:
            return
        painter.setPen(QColor("#000000"))
        x, y = node.center
        if node.kind is NodeKind.CONTAINER:
            painter.setFont(self._container_font)
            _draw_centered(painter, node.label.replace("\n", " "), x, y - node.height / 2.0 + CONTAINER_LABEL_DROP)
            return
        painter.setFont(self._label_font)
        lines = node.label.split("\n")
        total = len(lines) * LABEL_LINE_HEIGHT
        for i, line in enumerate(lines):
            _draw_centered(painter, line, x, y - total / 2.0 + i * LABEL_LINE_HEIGHT + LABEL_LINE_HEIGHT / 2.0)

    def draw_recording_indicator(self, painter: QPainter) -> None:
        painter.setFont(self._rec_font)
        painter.setPen(QColor("red"))
        painter.drawText(QPointF(20, 30), "● REC")


def _draw_centered(painter: QPainter, text: str, x: float, y: float) -> None:
    """Draw *text* centered horizontally on *x* with its middle on *y*."""
    fm = QFontMetricsF(painter.font())
    advance = fm.horizontalAdvance(text)
    baseline = y + (fm.ascent() - fm.descent()) / 2.0
    if not math.isfinite(baseline):
        return
    painter.drawText(QPointF(x - advance / 2.0, baseline), text)
