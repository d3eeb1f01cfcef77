"""
animation package

Particle system flowing along message edges.
"""

from animation.particles import advance, particle_count, particle_position, spawn_particles

__all__ = ["advance", "particle_count", "particle_position", "spawn_particles"]
