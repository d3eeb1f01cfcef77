"""
animation/particles.py

Particle population bound to message edges.

Particles are rebuilt wholesale whenever the edge set changes.  Between
rebuilds only ``progress`` moves: ``advance()`` adds ``speed * multiplier``
per reference frame and wraps modulo 1.  Positions are resolved by arc
length through the edge's PathGeometry, so flow speed is even along
curves.
"""

from __future__ import annotations

import math
import random
from typing import Iterable, List, Optional, Sequence, Tuple

from models import DiagramEdge, EdgeKind, Particle

# Reference frame the per-particle speeds are expressed in
REFERENCE_FRAME_MS = 1000.0 / 60.0

# Upper bound on frames credited to one tick (after a stall or a hidden window)
MAX_FRAMES_PER_TICK = 6.0


def particle_count(description: str, chars_per_particle: int = 150) -> int:
    """Number of particles for a message edge: ``max(1, len // chars) + 1``."""
    return max(1, len(description) // max(1, chars_per_particle)) + 1


def spawn_particles(
    edges: Iterable[DiagramEdge],
    rng: Optional[random.Random] = None,
    chars_per_particle: int = 150,
    min_speed: float = 0.002,
    max_speed: float = 0.006,
) -> List[Particle]:
    """Create particles for every MESSAGE edge.

    Args:
        edges: Edges of the new scene.
        rng: Random source; pass a seeded ``random.Random`` for reproducible
            scenes.
        chars_per_particle: Description characters per extra particle.
        min_speed: Lower bound (inclusive) of the per-frame speed.
        max_speed: Upper bound (exclusive) of the per-frame speed.

    Returns:
        List of Particle with progress uniform in [0, 1).
    """
    rng = rng or random.Random()
    span = max(0.0, max_speed - min_speed)
    particles: List[Particle] = []
    for edge in edges:
        if edge.kind is not EdgeKind.MESSAGE:
            continue
        for _ in range(particle_count(edge.description, chars_per_particle)):
            particles.append(Particle(
                progress=rng.random(),
                speed=min_speed + rng.random() * span,
                geometry=edge.geometry,
                edge_id=edge.id,
            ))
    return particles


def _wrap(value: float) -> float:
    wrapped = math.fmod(value, 1.0)
    if wrapped < 0:
        wrapped += 1.0
    # fmod of a value just below an integer can round up to exactly 1.0
    return 0.0 if wrapped >= 1.0 else wrapped


def advance(particles: Sequence[Particle], multiplier: float, elapsed_ms: Optional[float] = None) -> None:
    """Move every particle forward in place.

    Args:
        particles: Particles to advance.
        multiplier: Live speed multiplier, read on every call.
        elapsed_ms: Wall time since the previous tick.  None advances by
            exactly one reference frame.
    """
    if elapsed_ms is None:
        frames = 1.0
    else:
        frames = min(max(elapsed_ms, 0.0) / REFERENCE_FRAME_MS, MAX_FRAMES_PER_TICK)
    step = max(multiplier, 0.0) * frames
    if step == 0:
        return
    for p in particles:
        p.progress = _wrap(p.progress + p.speed * step)


def particle_position(particle: Particle) -> Optional[Tuple[float, float]]:
    """Scene position of a particle, or None when it should not be drawn."""
    if particle.geometry is None:
        return None
    pos = particle.geometry.point_at(particle.progress)
    if pos is None or not all(math.isfinite(v) for v in pos):
        return None
    return pos
