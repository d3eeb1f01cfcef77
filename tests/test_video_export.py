"""
tests/test_video_export.py

Frame sinks and headless export.  ffmpeg is replaced by a fake process;
GIF output goes through Pillow for real.
"""

from __future__ import annotations

import io
import random

import pytest
from PIL import Image
from PyQt6.QtGui import QColor, QImage

import video_export
from mermaid.parser import extract_scene
from models import LiveConfig, StyleTier
from video_export import (
    ExportError,
    FfmpegFrameSink,
    FrameSink,
    GifFrameSink,
    export_animation,
    make_sink,
    qimage_to_rgba_bytes,
)


def solid(w: int, h: int, color: str) -> QImage:
    image = QImage(w, h, QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(QColor(color))
    return image


class FakeProcess:
    """Minimal ``subprocess.Popen`` stand-in."""

    instances = []

    def __init__(self, cmd, returncode=0, fake_stderr=b"", **kwargs):
        self.cmd = cmd
        self.kwargs = kwargs
        self.stdin = io.BytesIO()
        self.stderr = None
        self._stderr = fake_stderr
        self.returncode = None
        self._exit = returncode
        self.killed = False
        FakeProcess.instances.append(self)

    def communicate(self):
        self.written = self.stdin.getvalue()
        self.returncode = self._exit
        return None, self._stderr

    def kill(self):
        self.killed = True

    def wait(self):
        self.returncode = -9
        return self.returncode


@pytest.fixture()
def fake_popen(monkeypatch):
    FakeProcess.instances = []

    def install(returncode=0, stderr=b""):
        def popen(cmd, **kwargs):
            return FakeProcess(cmd, returncode=returncode, fake_stderr=stderr, **kwargs)
        monkeypatch.setattr(video_export.subprocess, "Popen", popen)
        return FakeProcess.instances

    return install


# ─────────────────────────────────────────────────────────
# Raw frames
# ─────────────────────────────────────────────────────────


def test_rgba_bytes(qapp):
    data = qimage_to_rgba_bytes(solid(3, 2, "#ff0000"), 3, 2)
    assert len(data) == 3 * 2 * 4
    assert data[:4] == bytes((255, 0, 0, 255))


def test_rgba_bytes_scales_to_target(qapp):
    data = qimage_to_rgba_bytes(solid(6, 4, "#00ff00"), 3, 2)
    assert len(data) == 3 * 2 * 4


# ─────────────────────────────────────────────────────────
# Sink selection
# ─────────────────────────────────────────────────────────


@pytest.mark.parametrize("name, kind", [
    ("clip.webm", FfmpegFrameSink),
    ("clip.MP4", FfmpegFrameSink),
    ("clip.gif", GifFrameSink),
])
def test_make_sink(name, kind):
    assert isinstance(make_sink(name), kind)


@pytest.mark.parametrize("name", ["clip.avi", "clip"])
def test_make_sink_rejects_unknown_suffix(name):
    with pytest.raises(ExportError, match="Unsupported export format"):
        make_sink(name)


# ─────────────────────────────────────────────────────────
# ffmpeg sink
# ─────────────────────────────────────────────────────────


class TestFfmpegSink:

    def test_webm_command(self, tmp_path, fake_popen):
        procs = fake_popen()
        out = str(tmp_path / "clip.webm")
        sink = FfmpegFrameSink(out, ffmpeg_path="/opt/ffmpeg")
        sink.begin(101, 51, 30)
        cmd = procs[0].cmd
        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-s") + 1] == "101x51"
        assert cmd[cmd.index("-r") + 1] == "30"
        assert "libvpx-vp9" in cmd
        assert cmd[-1] == out

    def test_mp4_command(self, tmp_path, fake_popen):
        procs = fake_popen()
        sink = FfmpegFrameSink(str(tmp_path / "clip.mp4"), ffmpeg_path="/opt/ffmpeg")
        sink.begin(10, 10, 60)
        assert "libx264" in procs[0].cmd

    def test_frames_are_piped(self, qapp, tmp_path, fake_popen):
        procs = fake_popen()
        out = str(tmp_path / "clip.webm")
        sink = FfmpegFrameSink(out, ffmpeg_path="/opt/ffmpeg")
        sink.begin(4, 2, 60)
        sink.add_frame(solid(4, 2, "#0000ff"))
        sink.add_frame(solid(4, 2, "#0000ff"))
        assert sink.close() == out
        assert len(procs[0].written) == 2 * 4 * 2 * 4
        assert sink.frame_count == 2

    def test_encoder_failure(self, qapp, tmp_path, fake_popen):
        fake_popen(returncode=1, stderr=b"Unknown encoder 'libvpx-vp9'\n")
        sink = FfmpegFrameSink(str(tmp_path / "clip.webm"), ffmpeg_path="/opt/ffmpeg")
        sink.begin(4, 2, 60)
        sink.add_frame(solid(4, 2, "#0000ff"))
        with pytest.raises(ExportError, match="Unknown encoder"):
            sink.close()

    def test_no_frames(self, tmp_path, fake_popen):
        fake_popen()
        sink = FfmpegFrameSink(str(tmp_path / "clip.webm"), ffmpeg_path="/opt/ffmpeg")
        sink.begin(4, 2, 60)
        with pytest.raises(ExportError, match="No frames"):
            sink.close()

    def test_abort_kills_encoder(self, tmp_path, fake_popen):
        procs = fake_popen()
        sink = FfmpegFrameSink(str(tmp_path / "clip.webm"), ffmpeg_path="/opt/ffmpeg")
        sink.begin(4, 2, 60)
        sink.abort()
        assert procs[0].killed

    def test_missing_ffmpeg(self, tmp_path, monkeypatch):
        monkeypatch.setattr(video_export, "find_ffmpeg", lambda: None)
        sink = FfmpegFrameSink(str(tmp_path / "clip.webm"))
        with pytest.raises(ExportError, match="ffmpeg not found"):
            sink.begin(4, 2, 60)

    def test_find_ffmpeg_prefers_settings(self, tmp_path, isolated_settings):
        configured = tmp_path / "ffmpeg"
        configured.write_text("")
        isolated_settings.settings.external_tools.ffmpeg_path = str(configured)
        assert video_export.find_ffmpeg() == str(configured)


# ─────────────────────────────────────────────────────────
# GIF sink
# ─────────────────────────────────────────────────────────


class TestGifSink:

    COLORS = ["#ff0000", "#00ff00", "#0000ff", "#ffff00", "#00ffff", "#ff00ff"]

    def test_writes_animated_gif(self, qapp, tmp_path):
        out = str(tmp_path / "clip.gif")
        sink = GifFrameSink(out)
        sink.begin(8, 6, 20)
        for color in self.COLORS[:3]:
            sink.add_frame(solid(8, 6, color))
        assert sink.close() == out
        with Image.open(out) as gif:
            assert gif.size == (8, 6)
            assert gif.n_frames == 3
            assert gif.info["duration"] == 50

    def test_high_frame_rates_are_decimated(self, qapp, tmp_path):
        sink = GifFrameSink(str(tmp_path / "clip.gif"))
        sink.begin(8, 6, 60)
        assert sink.effective_fps == 20
        for color in self.COLORS:
            sink.add_frame(solid(8, 6, color))
        assert sink.frame_count == 2

    def test_empty_gif_is_an_error(self, tmp_path):
        sink = GifFrameSink(str(tmp_path / "clip.gif"))
        sink.begin(8, 6, 20)
        with pytest.raises(ExportError):
            sink.close()


# ─────────────────────────────────────────────────────────
# Headless export
# ─────────────────────────────────────────────────────────


class RecordingSink(FrameSink):
    """Keeps frame sizes in memory."""

    def __init__(self):
        super().__init__("memory")
        self.sizes = []
        self.aborted = False

    def add_frame(self, image):
        self.sizes.append((image.width(), image.height()))
        self.frame_count += 1

    def close(self):
        return self.output_path

    def abort(self):
        self.aborted = True


def test_export_frame_count(qapp, flowchart_svg):
    scene = extract_scene(flowchart_svg, rng=random.Random(3))
    sink = RecordingSink()
    progress = []
    path = export_animation(scene, "memory.gif", duration_s=0.5, fps=10, sink=sink,
                            progress=lambda i, n: progress.append((i, n)))
    assert path == "memory"
    assert sink.frame_count == 5
    assert set(sink.sizes) == {scene.surface_size}
    assert (sink.width, sink.height, sink.fps) == (*scene.surface_size, 10)
    assert progress[-1] == (5, 5)


def test_export_advances_particles(qapp, flowchart_svg):
    scene = extract_scene(flowchart_svg, rng=random.Random(3))
    before = [p.progress for p in scene.particles]
    export_animation(scene, "memory.gif", duration_s=0.1, fps=10, sink=RecordingSink())
    assert [p.progress for p in scene.particles] != before


def test_export_aborts_sink_on_failure(qapp, flowchart_svg):
    scene = extract_scene(flowchart_svg, rng=random.Random(3))

    class Exploding(RecordingSink):
        def add_frame(self, image):
            raise ExportError("disk full")

    sink = Exploding()
    with pytest.raises(ExportError, match="disk full"):
        export_animation(scene, "memory.gif", duration_s=0.1, fps=10, sink=sink)
    assert sink.aborted


def test_export_gif_file(qapp, tmp_path, sequence_svg):
    scene = extract_scene(sequence_svg, rng=random.Random(5))
    out = tmp_path / "sequence.gif"
    config = LiveConfig(style_tier=StyleTier.PREMIUM, particle_speed=3.0)
    assert export_animation(scene, str(out), config=config, duration_s=0.2, fps=10) == str(out)
    with Image.open(out) as gif:
        assert gif.size == scene.surface_size


def test_fractional_frame_rate_reaches_ffmpeg(tmp_path, fake_popen):
    procs = fake_popen()
    sink = FfmpegFrameSink(str(tmp_path / "clip.webm"), ffmpeg_path="/opt/ffmpeg")
    sink.begin(4, 2, 1000.0 / 17)
    cmd = procs[0].cmd
    assert float(cmd[cmd.index("-r") + 1]) == pytest.approx(1000.0 / 17, rel=1e-5)
