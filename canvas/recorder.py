"""
canvas/recorder.py

Timed capture of the live canvas.

While a recording is active the render loop draws the "● REC" overlay and
every frame it produces is handed to a frame sink.  When the duration
elapses the sink is finalized on a background thread and ``finished``
carries the written path.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QObject, QThread, QTimer, pyqtSignal
from PyQt6.QtGui import QImage

from canvas.render_loop import RenderLoop
from debug_trace import trace
from video_export import EncodeWorker, ExportError, FrameSink


class Recorder(QObject):
    """
    Records the frames of a ``RenderLoop`` for a fixed duration.

    Signals:
        started(): Emitted when capture begins
        finished(str): Emitted with the output path after encoding
        failed(str): Emitted with an error message
    """

    started = pyqtSignal()
    finished = pyqtSignal(str)
    failed = pyqtSignal(str)

    def __init__(self, render_loop: RenderLoop, parent=None):
        super().__init__(parent)
        self.render_loop = render_loop
        self._sink: Optional[FrameSink] = None
        self._frame_error: Optional[str] = None
        self._stop_timer = QTimer(self)
        self._stop_timer.setSingleShot(True)
        self._stop_timer.timeout.connect(self.stop)
        self._thread: Optional[QThread] = None
        self._worker: Optional[EncodeWorker] = None

    def is_recording(self) -> bool:
        return self._sink is not None

    def is_encoding(self) -> bool:
        return self._worker is not None

    def start(self, sink: FrameSink, duration_ms: int, fps: float = 60.0) -> bool:
        """Begin capturing into *sink*.

        Returns:
            True if recording started.  On failure ``failed`` is emitted.
        """
        if self.is_recording() or self.is_encoding():
            self.failed.emit("A recording is already in progress.")
            return False
        w, h = self.render_loop.scene.surface_size
        try:
            sink.begin(w, h, fps)
        except ExportError as e:
            self.failed.emit(str(e))
            return False

        self._sink = sink
        self._frame_error = None
        self.render_loop.recording = True
        self.render_loop.add_frame_listener(self._on_frame)
        self._stop_timer.start(max(1, int(duration_ms)))
        trace(f"recording {w}x{h} for {duration_ms} ms to {sink.output_path}", "RECORD")
        self.started.emit()
        return True

    def _on_frame(self, image: QImage) -> None:
        if self._sink is None or self._frame_error is not None:
            return
        try:
            self._sink.add_frame(image)
        except ExportError as e:
            # Keep the loop running; report once when the recording stops
            self._frame_error = str(e)

    def stop(self) -> None:
        """End capture and encode in the background."""
        if self._sink is None:
            return
        self._stop_timer.stop()
        self.render_loop.remove_frame_listener(self._on_frame)
        self.render_loop.recording = False
        sink, self._sink = self._sink, None

        if self._frame_error is not None:
            sink.abort()
            self.failed.emit(self._frame_error)
            return

        trace(f"recording stopped after {sink.frame_count} frames", "RECORD")
        self._thread = QThread()
        self._worker = EncodeWorker(sink)
        self._worker.moveToThread(self._thread)

        self._thread.started.connect(self._worker.run)
        self._worker.finished.connect(self._on_encoded)
        self._worker.failed.connect(self._on_encode_failed)

        self._worker.finished.connect(self._thread.quit)
        self._worker.failed.connect(self._thread.quit)

        self._thread.finished.connect(self._thread.deleteLater)
        self._thread.finished.connect(self._clear_worker)

        self._thread.start()

    def _clear_worker(self) -> None:
        self._worker = None
        self._thread = None

    def _on_encoded(self, path: str) -> None:
        trace(f"recording saved to {path}", "RECORD")
        self.finished.emit(path)

    def _on_encode_failed(self, message: str) -> None:
        trace(f"recording failed: {message}", "RECORD")
        self.failed.emit(message)
