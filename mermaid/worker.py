"""
mermaid/worker.py

Background compile + extract.

Compiling with mmdc takes hundreds of milliseconds to seconds, so the
controller runs it on a ``QThread``.  Each worker carries the generation
number of the extraction it was scheduled for; the controller drops
results from stale generations.
"""

from __future__ import annotations

import random
import traceback
import xml.etree.ElementTree as ET
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from debug_trace import trace
from mermaid.parser import ExtractionOptions, extract_scene
from mermaid.renderer import MermaidRenderError, compile_source_to_svg
from models import Scene

NO_DIAGRAM_TYPE = "No diagram type detected"
NO_DIAGRAM_TYPE_HINT = (
    "No diagram type detected. Start the source with a diagram keyword "
    "such as 'graph TD', 'flowchart LR' or 'sequenceDiagram'."
)
EMPTY_SOURCE_MESSAGE = "Enter Mermaid source to render."


def is_svg_text(source: str) -> bool:
    """True if *source* is already an SVG document rather than Mermaid text."""
    head = source.lstrip()[:512].lower()
    return head.startswith("<?xml") or head.startswith("<svg") or "<svg" in head


def scene_from_source(source: str, options: Optional[ExtractionOptions] = None,
                      rng: Optional[random.Random] = None) -> Scene:
    """Compile (when needed) and extract a scene.

    Args:
        source: Mermaid source text, or SVG text.
        options: Extraction options.
        rng: Random source for particles.

    Raises:
        MermaidRenderError: If compilation fails.
        xml.etree.ElementTree.ParseError: If the SVG is malformed.
    """
    svg = source if is_svg_text(source) else compile_source_to_svg(source)
    return extract_scene(svg, options, rng)


def error_message(exc: Exception) -> str:
    """User-facing message for an extraction failure."""
    if isinstance(exc, MermaidRenderError):
        if NO_DIAGRAM_TYPE in exc.detail:
            return NO_DIAGRAM_TYPE_HINT
        return exc.first_line or "Mermaid rendering failed."
    if isinstance(exc, ET.ParseError):
        return f"Invalid SVG: {exc}"
    first = str(exc).strip().splitlines()
    return first[0] if first else type(exc).__name__


class ExtractWorker(QObject):
    """
    Background worker that compiles Mermaid source and extracts a Scene.

    Signals:
        finished(int, object): Emitted with generation and Scene on success
        failed(int, str): Emitted with generation and a user message on failure
    """

    finished = pyqtSignal(int, object)
    failed = pyqtSignal(int, str)

    def __init__(self, generation: int, source: str, options: ExtractionOptions,
                 rng: Optional[random.Random] = None):
        """
        Initialize the extraction worker.

        Args:
            generation: Sequence number of the scheduled extraction
            source: Mermaid or SVG source text
            options: Extraction options captured at scheduling time
            rng: Random source for particle spawning
        """
        super().__init__()
        self.generation = generation
        self.source = source
        self.options = options
        self.rng = rng

    def run(self):
        """Execute compile + extract."""
        trace(f"generation {self.generation}: extracting {len(self.source)} chars", "EXTRACT")
        try:
            scene = scene_from_source(self.source, self.options, self.rng)
        except (MermaidRenderError, ET.ParseError) as e:
            trace(f"generation {self.generation} failed: {e}", "EXTRACT")
            self.failed.emit(self.generation, error_message(e))
            return
        except Exception as e:
            trace(f"generation {self.generation} crashed: {e}\n{traceback.format_exc()}", "ERROR")
            self.failed.emit(self.generation, error_message(e))
            return
        self.finished.emit(self.generation, scene)
