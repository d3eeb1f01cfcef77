"""
scene_controller.py

Schedules extraction passes and publishes the resulting scenes.

Edits restart a single-shot debounce timer.  When it fires, compile +
extract runs on a ``QThread``.  Every scheduled pass gets a generation
number and only the newest generation may replace the scene; older results
and failures are dropped.  A failed pass leaves the previous scene in
place and reports a message through ``error``.
"""

from __future__ import annotations

import dataclasses
import random
import xml.etree.ElementTree as ET
from typing import Dict, Optional, Tuple

from PyQt6.QtCore import QObject, QThread, QTimer, pyqtSignal

from debug_trace import trace
from mermaid.parser import ExtractionOptions
from mermaid.renderer import MermaidRenderError
from mermaid.worker import EMPTY_SOURCE_MESSAGE, ExtractWorker, error_message, scene_from_source
from models import Scene, StyleTier
from settings import get_settings


class SceneController(QObject):
    """
    Owns the current scene for one source buffer.

    Signals:
        scene_changed(object): Emitted with the new Scene
        error(str): Emitted with a user-facing message
        busy_changed(bool): Emitted when an extraction starts or ends

    Args:
        options: Base extraction options (defaults come from settings).
        debounce_ms: Delay after the last edit (defaults from settings).
        rng: Random source for particle spawning.
        parent: Optional QObject parent.
    """

    scene_changed = pyqtSignal(object)
    error = pyqtSignal(str)
    busy_changed = pyqtSignal(bool)

    def __init__(self, options: Optional[ExtractionOptions] = None, debounce_ms: Optional[int] = None,
                 rng: Optional[random.Random] = None, parent=None):
        super().__init__(parent)
        app_settings = get_settings().settings
        self.options = options or ExtractionOptions.from_settings(app_settings)
        self.tier: StyleTier = self.options.tier
        self.rng = rng
        self.scene: Scene = Scene.empty()
        self.source = ""
        self.generation = 0
        self.applied_generation = 0
        self.last_error: Optional[str] = None
        self._launched_generation = 0
        self._jobs: Dict[int, Tuple[QThread, ExtractWorker]] = {}

        if debounce_ms is None:
            debounce_ms = app_settings.extraction.debounce_ms
        self._debounce = QTimer(self)
        self._debounce.setSingleShot(True)
        self._debounce.setInterval(max(0, int(debounce_ms)))
        self._debounce.timeout.connect(self._launch)

    # ─── scheduling ───

    def set_source(self, source: str) -> None:
        """Replace the source text and schedule an extraction."""
        self.source = source
        self.schedule()

    def set_tier(self, tier: StyleTier) -> None:
        """Switch style tier; default colors depend on it, so re-extract."""
        if tier is self.tier:
            return
        self.tier = tier
        if self.source.strip():
            self.schedule()

    def schedule(self) -> int:
        """Start (or restart) the debounce timer for a new generation."""
        self.generation += 1
        self._debounce.start()
        return self.generation

    def is_pending(self) -> bool:
        """True while the newest generation has not produced a result yet."""
        return self._debounce.isActive() or self.generation in self._jobs

    def current_options(self) -> ExtractionOptions:
        return dataclasses.replace(self.options, tier=self.tier)

    def _launch(self) -> None:
        generation = self.generation
        if generation == self._launched_generation:
            return
        self._launched_generation = generation
        source = self.source
        if not source.strip():
            self.apply_failure(generation, EMPTY_SOURCE_MESSAGE)
            return

        thread = QThread()
        worker = ExtractWorker(generation, source, self.current_options(), self.rng)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(self.apply_result)
        worker.failed.connect(self.apply_failure)

        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)

        thread.finished.connect(thread.deleteLater)
        thread.finished.connect(lambda g=generation: self._job_done(g))

        self._jobs[generation] = (thread, worker)
        trace(f"generation {generation}: launched ({len(self._jobs)} in flight)", "EXTRACT")
        self.busy_changed.emit(True)
        thread.start()

    def _job_done(self, generation: int) -> None:
        self._jobs.pop(generation, None)
        if not self._jobs:
            self.busy_changed.emit(False)

    # ─── results ───

    def apply_result(self, generation: int, scene: Scene) -> bool:
        """Swap in *scene* if it belongs to the newest generation.

        Returns:
            True if the scene was applied.
        """
        if generation != self.generation:
            trace(f"generation {generation}: stale result dropped (current {self.generation})", "EXTRACT")
            return False
        self.scene = scene
        self.applied_generation = generation
        self.last_error = None
        trace(f"generation {generation}: {len(scene.nodes)} nodes, {len(scene.edges)} edges, "
              f"{len(scene.particles)} particles", "EXTRACT")
        self.scene_changed.emit(scene)
        return True

    def apply_failure(self, generation: int, message: str) -> bool:
        """Report *message* if it belongs to the newest generation.

        The current scene is kept.
        """
        if generation != self.generation:
            return False
        self.last_error = message
        trace(f"generation {generation}: {message}", "EXTRACT")
        self.error.emit(message)
        return True

    def flush(self) -> Scene:
        """Run any pending extraction synchronously and return the scene.

        A pass already running in the background is superseded.
        """
        if not self.is_pending():
            return self.scene
        self._debounce.stop()
        if self.generation in self._jobs:
            self.generation += 1
        generation = self.generation
        self._launched_generation = generation

        if not self.source.strip():
            self.apply_failure(generation, EMPTY_SOURCE_MESSAGE)
            return self.scene
        try:
            scene = scene_from_source(self.source, self.current_options(), self.rng)
        except (MermaidRenderError, ET.ParseError, ValueError) as e:
            self.apply_failure(generation, error_message(e))
            return self.scene
        self.apply_result(generation, scene)
        return self.scene
