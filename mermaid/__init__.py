"""
mermaid package

Mermaid compilation (mmdc) and extraction of nodes and edges from the
rendered SVG.
"""

from mermaid.parser import ExtractionOptions, extract_scene, extract_scene_from_file, parse_svg
from mermaid.renderer import MermaidRenderError, compile_source_to_svg, find_mmdc

__all__ = [
    "ExtractionOptions",
    "extract_scene",
    "extract_scene_from_file",
    "parse_svg",
    "MermaidRenderError",
    "compile_source_to_svg",
    "find_mmdc",
]
