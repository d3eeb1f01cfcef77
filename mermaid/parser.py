"""
mermaid/parser.py

Build a FlowMotion ``Scene`` from a pre-rendered Mermaid SVG.

The root ``viewBox`` sets the drawing surface: the surface is the viewBox
plus a margin on every side, and ``coordinate_offset`` moves viewBox
coordinates (which may be negative) onto it.  Nodes and edges come from
``mermaid.shapes`` and ``mermaid.connectors``; particles are spawned for
the message edges.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from debug_trace import trace, trace_call
from animation.particles import spawn_particles
from mermaid.computed_style import ComputedStyle
from mermaid.connectors import extract_edges
from mermaid.shapes import extract_nodes
from mermaid.tree import VectorTree
from models import Scene, StyleTier
from utils import parse_float

# Surface used when the SVG carries neither a viewBox nor a size
_FALLBACK_SIZE = (800.0, 600.0)


@dataclass
class ExtractionOptions:
    """Everything an extraction pass depends on besides the SVG itself."""
    tier: StyleTier = StyleTier.PREMIUM
    margin: float = 50.0
    min_path_chars: int = 10
    lifeline_ratio: float = 3.0
    lifeline_min_length: float = 50.0
    container_fill_alpha: float = 0.05
    geometry_backend: str = "qt"
    chars_per_particle: int = 150
    min_speed: float = 0.002
    max_speed: float = 0.006

    @classmethod
    def from_settings(cls, app_settings, tier: Optional[StyleTier] = None) -> "ExtractionOptions":
        """Build options from a ``settings.AppSettings`` instance.

        Args:
            app_settings: Loaded application settings.
            tier: Overrides ``render.style_tier`` when given.
        """
        r = app_settings.render
        e = app_settings.extraction
        p = app_settings.particles
        return cls(
            tier=tier or StyleTier.from_name(r.style_tier),
            margin=r.margin,
            min_path_chars=e.min_path_chars,
            lifeline_ratio=e.lifeline_ratio,
            lifeline_min_length=e.lifeline_min_length,
            container_fill_alpha=e.container_fill_alpha,
            geometry_backend=e.geometry_backend,
            chars_per_particle=p.chars_per_particle,
            min_speed=p.min_speed,
            max_speed=p.max_speed,
        )


def parse_svg(svg_text: str) -> VectorTree:
    """Parse SVG text into a VectorTree.

    Raises:
        xml.etree.ElementTree.ParseError: If the text is not well-formed.
    """
    return VectorTree.from_string(svg_text)


def surface_geometry(tree: VectorTree, margin: float = 50.0) -> Tuple[Tuple[float, float], Tuple[int, int]]:
    """Compute ``(coordinate_offset, surface_size)`` for a vector tree.

    Uses the root ``viewBox`` when present, else its ``width``/``height``.
    """
    vb = tree.view_box()
    if vb is None:
        w = parse_float(tree.root.get("width"), 0.0)
        h = parse_float(tree.root.get("height"), 0.0)
        if not (w > 0 and h > 0):
            w, h = _FALLBACK_SIZE
        vb = (0.0, 0.0, w, h)
    x, y, w, h = vb
    offset = (-x + margin, -y + margin)
    size = (int(math.ceil(w + 2 * margin)), int(math.ceil(h + 2 * margin)))
    return offset, size


@trace_call("EXTRACT")
def extract_scene(
    source: Union[str, VectorTree],
    options: Optional[ExtractionOptions] = None,
    rng: Optional[random.Random] = None,
) -> Scene:
    """Extract the full scene from an SVG.

    Args:
        source: SVG text or an already parsed VectorTree.
        options: Extraction options; defaults when omitted.
        rng: Random source for particle spawning.

    Returns:
        A new Scene.  An SVG with no recognised groups or connectors gives
        an empty node/edge set, never an error.

    Raises:
        xml.etree.ElementTree.ParseError: If *source* is malformed SVG text.
    """
    options = options or ExtractionOptions()
    tree = parse_svg(source) if isinstance(source, str) else source
    style = ComputedStyle(tree)

    nodes = extract_nodes(
        tree, style, options.tier,
        container_fill_alpha=options.container_fill_alpha,
        geometry_backend=options.geometry_backend,
    )
    edges = extract_edges(
        tree, style,
        tier=options.tier,
        min_path_chars=options.min_path_chars,
        lifeline_ratio=options.lifeline_ratio,
        lifeline_min_length=options.lifeline_min_length,
        geometry_backend=options.geometry_backend,
    )
    particles = spawn_particles(
        edges, rng,
        chars_per_particle=options.chars_per_particle,
        min_speed=options.min_speed,
        max_speed=options.max_speed,
    )
    offset, size = surface_geometry(tree, options.margin)

    trace(
        f"scene: {len(nodes)} nodes, {len(edges)} edges, {len(particles)} particles, "
        f"offset={offset}, surface={size}",
        "EXTRACT",
    )
    return Scene(
        nodes=tuple(nodes),
        edges=tuple(edges),
        particles=tuple(particles),
        coordinate_offset=offset,
        surface_size=size,
    )


def extract_scene_from_file(svg_path: str, options: Optional[ExtractionOptions] = None,
                            rng: Optional[random.Random] = None) -> Scene:
    """Extract a scene from an ``.svg`` file on disk."""
    return extract_scene(VectorTree.from_file(svg_path), options, rng)
