"""
canvas/view.py

QWidget that drives the render loop and shows its surface.

A precise ``QTimer`` ticks at the configured frame rate; each tick
measures the real elapsed time with ``QElapsedTimer`` so particle motion
stays frame-rate independent.  Pointer moves update the hover state only,
they never trigger extraction.
"""

from __future__ import annotations

from typing import Callable, Optional

from PyQt6.QtCore import QElapsedTimer, QPointF, QSize, Qt, QTimer
from PyQt6.QtGui import QPainter
from PyQt6.QtWidgets import QSizePolicy, QWidget

from canvas.hit_test import pointer_left, pointer_moved
from canvas.render_loop import RenderLoop
from debug_trace import trace
from models import Scene

# File types accepted by drag & drop
DROP_SUFFIXES = (".svg", ".mmd", ".mermaid")


class FlowCanvas(QWidget):
    """
    Animated diagram surface.

    Behavior:
    - Renders one frame per timer tick through ``RenderLoop.step``
    - Pointer move highlights the node under the cursor (pointing-hand cursor)
    - Pointer leave clears the highlight
    - Dropping an .svg/.mmd/.mermaid file calls *on_drop_file_cb*
    """

    def __init__(self, render_loop: RenderLoop, frame_rate: int = 60,
                 on_drop_file_cb: Optional[Callable[[str], None]] = None, parent=None):
        super().__init__(parent)
        self.render_loop = render_loop
        self.on_drop_file_cb = on_drop_file_cb
        self.setMouseTracking(True)
        self.setAcceptDrops(on_drop_file_cb is not None)
        self.setAttribute(Qt.WidgetAttribute.WA_OpaquePaintEvent, True)
        self.setSizePolicy(QSizePolicy.Policy.Fixed, QSizePolicy.Policy.Fixed)

        self._clock = QElapsedTimer()
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timer.timeout.connect(self._tick)
        self.set_frame_rate(frame_rate)
        self._sync_size()

    # ─── loop control ───

    def set_frame_rate(self, frame_rate: int) -> None:
        self._frame_interval_ms = max(1, int(round(1000.0 / max(1, frame_rate))))
        self._timer.setInterval(self._frame_interval_ms)

    @property
    def frame_rate(self) -> float:
        """Frames per second the timer actually delivers (its interval is whole ms)."""
        return 1000.0 / self._frame_interval_ms

    def start(self) -> None:
        self._clock.start()
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def is_running(self) -> bool:
        return self._timer.isActive()

    def _tick(self) -> None:
        elapsed = float(self._clock.restart()) if self._clock.isValid() else None
        self.render_loop.step(elapsed)
        self.update()

    # ─── scene ───

    def set_scene(self, scene: Scene) -> None:
        """Swap in a new scene and resize to its surface."""
        self.render_loop.set_scene(scene)
        self._sync_size()
        self._update_cursor()
        self.update()

    def _sync_size(self) -> None:
        w, h = self.render_loop.scene.surface_size
        self.setFixedSize(QSize(max(1, w), max(1, h)))

    def sizeHint(self) -> QSize:
        w, h = self.render_loop.scene.surface_size
        return QSize(w, h)

    # ─── painting ───

    def paintEvent(self, event):
        painter = QPainter(self)
        try:
            painter.drawImage(QPointF(0, 0), self.render_loop.surface)
        finally:
            painter.end()

    # ─── pointer ───

    def mouseMoveEvent(self, event):
        pos = event.position()
        state = pointer_moved(self.render_loop.scene, pos.x(), pos.y())
        previous = self.render_loop.interaction.hovered_node_id
        self.render_loop.set_interaction(state)
        if state.hovered_node_id != previous:
            trace(f"hover -> {state.hovered_node_id}", "HOVER")
        self._update_cursor()
        super().mouseMoveEvent(event)

    def leaveEvent(self, event):
        self.render_loop.set_interaction(pointer_left())
        self._update_cursor()
        super().leaveEvent(event)

    def _update_cursor(self) -> None:
        if self.render_loop.interaction.hovered_node_id is not None:
            self.setCursor(Qt.CursorShape.PointingHandCursor)
        else:
            self.unsetCursor()

    # ─── drag & drop ───

    def dragEnterEvent(self, event):
        """Accept SVG and Mermaid source file drops."""
        if event.mimeData().hasUrls():
            for u in event.mimeData().urls():
                if u.toLocalFile().lower().endswith(DROP_SUFFIXES):
                    event.acceptProposedAction()
                    return
        event.ignore()

    def dragMoveEvent(self, event):
        event.acceptProposedAction()

    def dropEvent(self, event):
        """Handle SVG or Mermaid file drop."""
        if event.mimeData().hasUrls() and self.on_drop_file_cb is not None:
            for u in event.mimeData().urls():
                path = u.toLocalFile()
                if path.lower().endswith(DROP_SUFFIXES):
                    self.on_drop_file_cb(path)
                    event.acceptProposedAction()
                    return
        event.ignore()
