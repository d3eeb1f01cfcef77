"""
models.py

Data models and constants for the FlowMotion scene graph.

Extraction produces immutable ``DiagramNode``/``DiagramEdge`` values that are
gathered into a ``Scene``.  A scene is never edited in place: every
extraction pass builds a new one and the render loop swaps it in with a
single assignment.  Only ``Particle.progress`` changes between frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from geometry.path_data import PathCommand
    from geometry.path_geometry import PathGeometry


# ----------------------------
# Discriminators
# ----------------------------

class NodeKind(Enum):
    """Role of a node group in the diagram."""
    STANDALONE = "standalone"
    CONTAINER = "container"
    ACTOR = "actor"
    ANNOTATION = "annotation"


class ShapePrimitive(Enum):
    """Drawable element a node was extracted from."""
    RECT = "rect"
    CIRCLE = "circle"
    POLYGON = "polygon"
    PATH = "path"


class NodeShape(Enum):
    """Shape the compositor draws for a node."""
    RECTANGLE = "rectangle"
    ROUNDED_RECTANGLE = "roundedRectangle"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    FOLDED_NOTE = "foldedNote"


class EdgeKind(Enum):
    """MESSAGE edges carry particles, STRUCTURAL edges are static."""
    MESSAGE = "message"
    STRUCTURAL = "structural"


class StyleTier(Enum):
    """Visual preset controlling grid, particles, shadows and color overrides."""
    DRAFT = "draft"
    PREMIUM = "premium"

    @classmethod
    def from_name(cls, name: str, fallback: Optional["StyleTier"] = None) -> "StyleTier":
        """Resolve a settings/CLI string, falling back to PREMIUM."""
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            return fallback or cls.PREMIUM


def visual_shape(kind: NodeKind, primitive: ShapePrimitive) -> NodeShape:
    """Map a node's role and source primitive to the shape it is drawn as.

    Path primitives (storage cylinders and other complex outlines) are drawn
    as rounded rectangles.

    Args:
        kind: Classified node role.
        primitive: Tag of the drawable element found in the group.

    Returns:
        The NodeShape the compositor should draw.
    """
    if kind is NodeKind.ACTOR:
        return NodeShape.RECTANGLE
    if kind is NodeKind.ANNOTATION:
        return NodeShape.FOLDED_NOTE
    if primitive is ShapePrimitive.CIRCLE:
        return NodeShape.CIRCLE
    if primitive is ShapePrimitive.POLYGON:
        return NodeShape.DIAMOND
    if primitive in (ShapePrimitive.RECT, ShapePrimitive.PATH):
        return NodeShape.ROUNDED_RECTANGLE
    raise ValueError(f"Unhandled shape primitive: {primitive!r}")


# ----------------------------
# Scene graph values
# ----------------------------

@dataclass(frozen=True)
class DiagramNode:
    """A node in scene coordinates.

    ``center`` and ``size`` describe the axis-aligned bounding box of the
    drawable shape after the cumulative translation has been applied.
    """
    id: str
    label: str
    kind: NodeKind
    shape: NodeShape
    primitive: ShapePrimitive
    center: Tuple[float, float]
    size: Tuple[float, float]
    fill_color: str
    stroke_color: str

    def __post_init__(self):
        w, h = self.size
        if not (w > 0 and h > 0):
            raise ValueError(f"DiagramNode {self.id!r} has degenerate size {self.size}")

    @property
    def width(self) -> float:
        return self.size[0]

    @property
    def height(self) -> float:
        return self.size[1]

    def bounds(self) -> Tuple[float, float, float, float]:
        """Return ``(left, top, width, height)``."""
        cx, cy = self.center
        w, h = self.size
        return (cx - w / 2.0, cy - h / 2.0, w, h)

    def contains(self, x: float, y: float) -> bool:
        """Inclusive axis-aligned bounding box test."""
        left, top, w, h = self.bounds()
        return left <= x <= left + w and top <= y <= top + h


@dataclass(frozen=True)
class DiagramEdge:
    """A connector in scene coordinates.

    ``description`` is the raw (or synthesized) path description; its
    character count drives particle density.  ``geometry`` is built once
    per extraction pass and excluded from equality.
    """
    id: str
    description: str
    path: Tuple["PathCommand", ...]
    kind: EdgeKind
    stroke_color: str = ""
    dash_pattern: Optional[Tuple[float, ...]] = None
    geometry: Optional["PathGeometry"] = field(default=None, compare=False, repr=False)


@dataclass
class Particle:
    """A point flowing along an edge.

    Attributes:
        progress: Fraction of the edge's arc length, always in [0, 1).
        speed: Progress added per reference frame (1/60 s).
        geometry: Read-only geometry of the bound edge.
        edge_id: Id of the bound edge.
    """
    progress: float
    speed: float
    geometry: Optional["PathGeometry"] = field(default=None, repr=False)
    edge_id: str = ""


@dataclass(frozen=True)
class Scene:
    """Nodes, edges and particles of one extraction pass.

    ``coordinate_offset`` maps scene coordinates onto a positive surface of
    ``surface_size`` pixels.
    """
    nodes: Tuple[DiagramNode, ...] = ()
    edges: Tuple[DiagramEdge, ...] = ()
    particles: Tuple[Particle, ...] = ()
    coordinate_offset: Tuple[float, float] = (0.0, 0.0)
    surface_size: Tuple[int, int] = (800, 600)

    @classmethod
    def empty(cls) -> "Scene":
        return cls()

    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    def node(self, node_id: Optional[str]) -> Optional[DiagramNode]:
        if node_id is None:
            return None
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None


@dataclass(frozen=True)
class InteractionState:
    """Pointer-derived hover state passed into every draw call."""
    hovered_node_id: Optional[str] = None
    pointer: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class LiveConfig:
    """Configuration read by the render loop every frame.

    Attributes:
        style_tier: DRAFT or PREMIUM.
        particle_color: Color string understood by ``utils.parse_color``.
        particle_speed: Speed multiplier, clamped to >= 0.
    """
    style_tier: StyleTier = StyleTier.PREMIUM
    particle_color: str = "#6366f1"
    particle_speed: float = 1.0

    def __post_init__(self):
        if not self.particle_speed > 0:
            object.__setattr__(self, "particle_speed", 0.0)

    @property
    def premium(self) -> bool:
        return self.style_tier is StyleTier.PREMIUM

    def with_changes(self, **changes) -> "LiveConfig":
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, render_settings) -> "LiveConfig":
        """Build from a ``settings.RenderSettings`` section."""
        return cls(
            style_tier=StyleTier.from_name(render_settings.style_tier),
            particle_color=render_settings.particle_color,
            particle_speed=float(render_settings.particle_speed),
        )


# ----------------------------
# Drawing constants
# ----------------------------

DEFAULT_FILL = "#ffffff"
PREMIUM_STROKE = "#94a3b8"
DRAFT_STROKE = "#333333"
NOTE_FILL = "#fef3c7"
NOTE_STROKE = "#d97706"


def default_stroke(tier: StyleTier) -> str:
    """Stroke used when extraction resolves none."""
    return PREMIUM_STROKE if tier is StyleTier.PREMIUM else DRAFT_STROKE
