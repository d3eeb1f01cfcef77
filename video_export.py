"""
video_export.py

Frame sinks and headless export.

Captured frames go to a ``FrameSink``:

- ``FfmpegFrameSink`` pipes raw RGBA frames into ``ffmpeg`` (``.webm`` or
  ``.mp4``)
- ``GifFrameSink`` collects frames with Pillow and writes an animated GIF

``export_animation()`` renders a scene for a fixed duration with a fixed
time step, without a window.  ``EncodeWorker`` finalizes a sink on a
``QThread`` so the GUI keeps animating while ffmpeg finishes.
"""

from __future__ import annotations

import math
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from PIL import Image
from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QImage

from debug_trace import trace
from models import LiveConfig, Scene
from settings import get_settings

FFMPEG_INSTALL_HINT = (
    "ffmpeg not found.\n\n"
    "Install it from https://ffmpeg.org or your package manager,\n"
    "or set the FFMPEG_PATH environment variable to the ffmpeg executable."
)

# Encoder arguments per output suffix
_FFMPEG_CODECS = {
    ".webm": ["-c:v", "libvpx-vp9", "-deadline", "realtime", "-cpu-used", "8",
              "-b:v", "0", "-crf", "32", "-pix_fmt", "yuv420p"],
    ".mp4": ["-c:v", "libx264", "-preset", "veryfast", "-pix_fmt", "yuv420p",
             "-movflags", "+faststart"],
}
GIF_SUFFIX = ".gif"
SUPPORTED_SUFFIXES = tuple(_FFMPEG_CODECS) + (GIF_SUFFIX,)

# GIF frame delays are in centiseconds; faster rates play back unevenly
GIF_MAX_FPS = 25


class ExportError(RuntimeError):
    """Export could not start or the encoder failed."""


def find_ffmpeg() -> Optional[str]:
    """Find the ffmpeg executable.

    Search order:
        1. FlowMotion settings (external_tools.ffmpeg_path)
        2. FFMPEG_PATH environment variable
        3. ffmpeg on system PATH

    Returns:
        Path to ffmpeg if found, None otherwise.
    """
    configured = get_settings().settings.external_tools.ffmpeg_path
    if configured and os.path.isfile(configured):
        return configured

    env_path = os.environ.get("FFMPEG_PATH")
    if env_path and os.path.isfile(env_path):
        return env_path

    return shutil.which("ffmpeg")


def qimage_to_rgba_bytes(image: QImage, width: int, height: int) -> bytes:
    """Raw RGBA bytes of *image*, scaled to ``width`` x ``height`` if needed."""
    if image.width() != width or image.height() != height:
        image = image.scaled(width, height, Qt.AspectRatioMode.IgnoreAspectRatio,
                             Qt.TransformationMode.SmoothTransformation)
    rgba = image.convertToFormat(QImage.Format.Format_RGBA8888)
    ptr = rgba.constBits()
    ptr.setsize(rgba.sizeInBytes())
    data = bytes(ptr)
    stride = rgba.bytesPerLine()
    if stride == width * 4:
        return data
    # Drop per-line padding
    return b"".join(data[y * stride:y * stride + width * 4] for y in range(height))


# ─────────────────────────────────────────────────────────
# Frame sinks
# ─────────────────────────────────────────────────────────


class FrameSink:
    """Consumer of rendered frames.

    Call ``begin()`` once, ``add_frame()`` per frame, then ``close()``
    (or ``abort()``).
    """

    def __init__(self, output_path: str):
        self.output_path = str(output_path)
        self.width = 0
        self.height = 0
        self.fps = 60.0
        self.frame_count = 0

    def begin(self, width: int, height: int, fps: float) -> None:
        self.width, self.height, self.fps = int(width), int(height), max(1.0, float(fps))
        self.frame_count = 0

    def add_frame(self, image: QImage) -> None:
        raise NotImplementedError

    def close(self) -> str:
        """Finish encoding and return the output path.

        Raises:
            ExportError: If encoding failed or no frame was captured.
        """
        raise NotImplementedError

    def abort(self) -> None:
        """Discard everything captured so far."""


class FfmpegFrameSink(FrameSink):
    """Pipes raw RGBA frames into ffmpeg."""

    def __init__(self, output_path: str, ffmpeg_path: Optional[str] = None):
        super().__init__(output_path)
        self.ffmpeg_path = ffmpeg_path
        self._proc: Optional[subprocess.Popen] = None

    def build_command(self, ffmpeg: str) -> List[str]:
        suffix = Path(self.output_path).suffix.lower()
        codec = _FFMPEG_CODECS.get(suffix)
        if codec is None:
            raise ExportError(f"Unsupported video format: {suffix or self.output_path}")
        return [
            ffmpeg, "-y", "-loglevel", "error",
            "-f", "rawvideo", "-pix_fmt", "rgba",
            "-s", f"{self.width}x{self.height}",
            "-r", f"{self.fps:g}",
            "-i", "-",
            # Encoders need even dimensions
            "-vf", "pad=ceil(iw/2)*2:ceil(ih/2)*2",
            *codec,
            self.output_path,
        ]

    def begin(self, width: int, height: int, fps: float) -> None:
        super().begin(width, height, fps)
        ffmpeg = self.ffmpeg_path or find_ffmpeg()
        if ffmpeg is None:
            raise ExportError(FFMPEG_INSTALL_HINT)
        cmd = self.build_command(ffmpeg)
        trace(f"ffmpeg command: {' '.join(cmd)}", "FFMPEG")
        try:
            self._proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, stdout=subprocess.DEVNULL,
                                          stderr=subprocess.PIPE)
        except OSError as e:
            raise ExportError(f"Could not start ffmpeg: {e}") from e

    def add_frame(self, image: QImage) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise ExportError("ffmpeg sink is not open")
        try:
            self._proc.stdin.write(qimage_to_rgba_bytes(image, self.width, self.height))
        except BrokenPipeError as e:
            raise ExportError("ffmpeg stopped accepting frames") from e
        self.frame_count += 1

    def close(self) -> str:
        if self._proc is None:
            raise ExportError("ffmpeg sink was never started")
        proc, self._proc = self._proc, None
        try:
            _, stderr = proc.communicate()
        except BrokenPipeError:
            stderr = proc.stderr.read() if proc.stderr else b""
            proc.wait()
        detail = (stderr or b"").decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            raise ExportError(f"ffmpeg failed (exit {proc.returncode}):\n{detail}")
        if self.frame_count == 0:
            raise ExportError("No frames were captured")
        trace(f"ffmpeg wrote {self.frame_count} frames to {self.output_path}", "FFMPEG")
        return self.output_path

    def abort(self) -> None:
        if self._proc is not None:
            self._proc.kill()
            self._proc.wait()
            self._proc = None


class GifFrameSink(FrameSink):
    """Collects frames and writes an animated GIF with Pillow.

    Frames beyond ``GIF_MAX_FPS`` are dropped evenly.
    """

    def __init__(self, output_path: str, max_fps: int = GIF_MAX_FPS):
        super().__init__(output_path)
        self.max_fps = max_fps
        self._frames: List[Image.Image] = []
        self._stride = 1
        self._seen = 0

    def begin(self, width: int, height: int, fps: float) -> None:
        super().begin(width, height, fps)
        self._frames = []
        self._seen = 0
        self._stride = max(1, math.ceil(self.fps / self.max_fps))

    @property
    def effective_fps(self) -> float:
        return self.fps / self._stride

    def add_frame(self, image: QImage) -> None:
        index = self._seen
        self._seen += 1
        if index % self._stride:
            return
        data = qimage_to_rgba_bytes(image, self.width, self.height)
        frame = Image.frombytes("RGBA", (self.width, self.height), data).convert("RGB")
        self._frames.append(frame)
        self.frame_count += 1

    def close(self) -> str:
        if not self._frames:
            raise ExportError("No frames were captured")
        first, rest = self._frames[0], self._frames[1:]
        duration = int(round(1000.0 / self.effective_fps))
        try:
            first.save(self.output_path, save_all=True, append_images=rest,
                       duration=duration, loop=0, optimize=False)
        except OSError as e:
            raise ExportError(f"Could not write GIF: {e}") from e
        trace(f"wrote {len(self._frames)} GIF frames to {self.output_path}", "FFMPEG")
        self._frames = []
        return self.output_path

    def abort(self) -> None:
        self._frames = []


def make_sink(output_path: str) -> FrameSink:
    """Pick a sink from the output suffix.

    Raises:
        ExportError: For an unsupported suffix.
    """
    suffix = Path(output_path).suffix.lower()
    if suffix == GIF_SUFFIX:
        return GifFrameSink(output_path)
    if suffix in _FFMPEG_CODECS:
        return FfmpegFrameSink(output_path)
    raise ExportError(
        f"Unsupported export format '{suffix or output_path}' "
        f"(expected one of {', '.join(SUPPORTED_SUFFIXES)})"
    )


# ─────────────────────────────────────────────────────────
# Headless export
# ─────────────────────────────────────────────────────────


def export_animation(
    scene: Scene,
    output_path: str,
    config: Optional[LiveConfig] = None,
    duration_s: float = 3.0,
    fps: int = 60,
    sink: Optional[FrameSink] = None,
    progress: Optional[Callable[[int, int], None]] = None,
    compositor=None,
) -> str:
    """Render *scene* for *duration_s* seconds and encode it.

    Args:
        scene: Scene to animate.  Its particles are advanced in place.
        output_path: Destination file; its suffix selects the sink.
        config: Live configuration (tier, particle color and speed).
        duration_s: Clip length in seconds.
        fps: Frames per second.
        sink: Explicit sink (overrides the suffix choice).
        progress: Called with ``(frame_index, total_frames)``.
        compositor: Frame compositor (defaults to a plain ``Compositor``).

    Returns:
        Path of the written file.

    Raises:
        ExportError: If the sink cannot start or encoding fails.
    """
    from canvas.render_loop import RenderLoop

    fps = max(1, int(fps))
    total = max(1, int(round(duration_s * fps)))
    sink = sink or make_sink(output_path)
    loop = RenderLoop(compositor=compositor, config=config)
    loop.set_scene(scene)

    w, h = scene.surface_size
    sink.begin(w, h, fps)
    trace(f"exporting {total} frames at {fps} fps to {output_path}", "RECORD")
    step_ms = 1000.0 / fps
    try:
        for i in range(total):
            surface = loop.step(step_ms)
            sink.add_frame(surface)
            if progress is not None:
                progress(i + 1, total)
    except Exception:
        sink.abort()
        raise
    return sink.close()


class EncodeWorker(QObject):
    """
    Background worker that finalizes a frame sink.

    Signals:
        finished(str): Emitted with the output path on success
        failed(str): Emitted with an error message on failure
    """

    finished = pyqtSignal(str)
    failed = pyqtSignal(str)

    def __init__(self, sink: FrameSink):
        super().__init__()
        self.sink = sink

    def run(self):
        """Close the sink (waits for the encoder to finish)."""
        try:
            path = self.sink.close()
        except ExportError as e:
            self.failed.emit(str(e))
            return
        self.finished.emit(path)
