"""
main.py

FlowMotion - Animated Diagram Viewer

PyQt6 application that turns a Mermaid diagram into an animated scene:
- Mermaid source editor with sample presets (compiled with mmdc)
- Particles flowing along message edges, hover glow on nodes
- Draft / Premium style tiers, particle color and speed controls
- Recording of the live canvas to WebM/MP4 (ffmpeg) or GIF

Usage:
    python main.py [SOURCE] [--draft] [--color HEX] [--speed X]
    python main.py diagram.mmd --export out.webm --duration 3 --fps 60

Dependencies:
    pip install PyQt6 pillow platformdirs tomli-w

External tools:
    mmdc   (npm install -g @mermaid-js/mermaid-cli), or MMDC_PATH=...
    ffmpeg (video export), or FFMPEG_PATH=...
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QColor, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QColorDialog,
    QComboBox,
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QScrollArea,
    QSlider,
    QSplitter,
    QToolBar,
)

import debug_trace
from canvas import Compositor, FlowCanvas, Recorder, RenderLoop
from debug_trace import close_log, trace, trace_exception
from models import LiveConfig, StyleTier
from presets import DEFAULT_PRESET, PRESETS
from scene_controller import SceneController
from settings import SettingsManager, get_settings
from utils import color_to_hex, qcolor_to_hex
from video_export import ExportError, export_animation, make_sink

# Speed slider works in tenths: 1..50 -> 0.1x..5.0x
SPEED_SLIDER_SCALE = 10


def load_source(path: str) -> str:
    """Read a Mermaid or SVG source file."""
    return Path(path).read_text(encoding="utf-8")


def live_config_from_args(args: argparse.Namespace, settings_manager: SettingsManager) -> LiveConfig:
    """Settings defaults overridden by command-line options."""
    config = LiveConfig.from_settings(settings_manager.settings.render)
    changes = {}
    if args.draft:
        changes["style_tier"] = StyleTier.DRAFT
    if args.color:
        changes["particle_color"] = color_to_hex(args.color) or config.particle_color
    if args.speed is not None:
        changes["particle_speed"] = args.speed
    return config.with_changes(**changes) if changes else config


# =============================================================================
# Main Window
# =============================================================================


class MainWindow(QMainWindow):
    """Main application window: source editor on the left, animated canvas on the right."""

    def __init__(self, settings_manager: SettingsManager, config: Optional[LiveConfig] = None,
                 initial_source: Optional[str] = None):
        super().__init__()
        self.settings_manager = settings_manager
        app_settings = settings_manager.settings
        self.setWindowTitle("FlowMotion")

        self.render_loop = RenderLoop(Compositor.from_settings(app_settings),
                                      config or LiveConfig.from_settings(app_settings.render))
        self.canvas = FlowCanvas(self.render_loop, frame_rate=app_settings.render.frame_rate,
                                 on_drop_file_cb=self.open_source_file)
        self.controller = SceneController(parent=self)
        self.controller.set_tier(self.render_loop.config.style_tier)
        self.controller.scene_changed.connect(self.on_scene_changed)
        self.controller.error.connect(self.on_extract_error)
        self.controller.busy_changed.connect(self.on_busy_changed)

        self.recorder = Recorder(self.render_loop, self)
        self.recorder.started.connect(self.on_record_started)
        self.recorder.finished.connect(self.on_record_finished)
        self.recorder.failed.connect(self.on_record_failed)

        # Source editor
        self.editor = QPlainTextEdit()
        self.editor.setPlaceholderText("Mermaid source (graph TD, flowchart LR, sequenceDiagram, ...)")
        self.editor.setTabStopDistance(4 * self.editor.fontMetrics().horizontalAdvance(" "))
        self.editor.textChanged.connect(self._on_text_changed)

        scroll = QScrollArea()
        scroll.setWidget(self.canvas)
        scroll.setAlignment(Qt.AlignmentFlag.AlignCenter)
        scroll.setWidgetResizable(False)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self.editor)
        splitter.addWidget(scroll)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 3)
        self.setCentralWidget(splitter)

        self._build_menus()
        self._build_toolbar()

        self.editor.setPlainText(initial_source if initial_source is not None else PRESETS[DEFAULT_PRESET])
        self.canvas.start()
        self.statusBar().showMessage("Edit the source; the diagram re-renders after a short pause.")

    # ─── UI construction ───

    def _build_menus(self):
        """Build the application menu bar."""
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")

        open_act = QAction("Open Source...", self)
        open_act.setShortcut(QKeySequence.StandardKey.Open)
        open_act.triggered.connect(self.open_source_dialog)
        file_menu.addAction(open_act)

        file_menu.addSeparator()

        export_act = QAction("Export Animation...", self)
        export_act.triggered.connect(self.export_animation_dialog)
        file_menu.addAction(export_act)

        file_menu.addSeparator()

        exit_act = QAction("E&xit", self)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        view_menu = menubar.addMenu("&View")

        refresh_act = QAction("Re-render Now", self)
        refresh_act.setShortcut(QKeySequence(Qt.Key.Key_F5))
        refresh_act.triggered.connect(self.refresh_now)
        view_menu.addAction(refresh_act)

    def _build_toolbar(self):
        """Build the application toolbar."""
        tb = QToolBar("Controls")
        self.addToolBar(tb)

        tb.addWidget(QLabel(" Preset: "))
        self.preset_combo = QComboBox()
        self.preset_combo.addItems(list(PRESETS))
        self.preset_combo.setCurrentText(DEFAULT_PRESET)
        self.preset_combo.activated.connect(self._on_preset_selected)
        tb.addWidget(self.preset_combo)

        tb.addSeparator()

        self.premium_act = QAction("Premium", self)
        self.premium_act.setCheckable(True)
        self.premium_act.setChecked(self.render_loop.config.premium)
        self.premium_act.setToolTip("Toggle between Draft and Premium rendering")
        self.premium_act.toggled.connect(self._on_premium_toggled)
        tb.addAction(self.premium_act)

        color_act = QAction("Particle Color...", self)
        color_act.triggered.connect(self.choose_particle_color)
        tb.addAction(color_act)

        tb.addWidget(QLabel(" Speed: "))
        self.speed_slider = QSlider(Qt.Orientation.Horizontal)
        self.speed_slider.setRange(1, 5 * SPEED_SLIDER_SCALE)
        self.speed_slider.setFixedWidth(120)
        self.speed_slider.setValue(int(round(self.render_loop.config.particle_speed * SPEED_SLIDER_SCALE)))
        self.speed_slider.valueChanged.connect(self._on_speed_changed)
        tb.addWidget(self.speed_slider)
        self.speed_label = QLabel(f" {self.render_loop.config.particle_speed:.1f}x ")
        tb.addWidget(self.speed_label)

        tb.addSeparator()

        self.record_act = QAction("Record", self)
        self.record_act.setToolTip("Record the canvas for a few seconds")
        self.record_act.triggered.connect(self.start_recording)
        tb.addAction(self.record_act)

    # ─── source ───

    def _on_text_changed(self):
        self.controller.set_source(self.editor.toPlainText())

    def _on_preset_selected(self, index: int):
        name = self.preset_combo.itemText(index)
        trace(f"preset selected: {name}", "MAIN")
        self.editor.setPlainText(PRESETS[name])

    def open_source_dialog(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Diagram Source", "",
            "Diagram sources (*.mmd *.mermaid *.svg);;All files (*)",
        )
        if path:
            self.open_source_file(path)

    def open_source_file(self, path: str):
        """Load a .mmd/.mermaid/.svg file into the editor."""
        try:
            text = load_source(path)
        except (OSError, UnicodeDecodeError) as e:
            QMessageBox.critical(self, "Open failed", f"Could not read {path}:\n{e}")
            return
        self.editor.setPlainText(text)
        self.statusBar().showMessage(f"Loaded {Path(path).name}")

    def refresh_now(self):
        self.controller.schedule()
        self.controller.flush()

    # ─── extraction results ───

    def on_scene_changed(self, scene):
        self.canvas.set_scene(scene)
        self.statusBar().showMessage(
            f"{len(scene.nodes)} nodes, {len(scene.edges)} edges, {len(scene.particles)} particles"
        )

    def on_extract_error(self, message: str):
        # The previous scene keeps animating
        self.statusBar().showMessage(message)

    def on_busy_changed(self, busy: bool):
        if busy:
            self.statusBar().showMessage("Rendering diagram...")

    # ─── live configuration ───

    def _set_config(self, **changes):
        self.render_loop.set_config(self.render_loop.config.with_changes(**changes))

    def _on_premium_toggled(self, checked: bool):
        tier = StyleTier.PREMIUM if checked else StyleTier.DRAFT
        self._set_config(style_tier=tier)
        self.controller.set_tier(tier)
        self.settings_manager.settings.render.style_tier = tier.value

    def choose_particle_color(self):
        current = QColor(self.render_loop.config.particle_color)
        color = QColorDialog.getColor(current, self, "Particle Color")
        if not color.isValid():
            return
        hex_color = qcolor_to_hex(color)
        self._set_config(particle_color=hex_color)
        self.settings_manager.settings.render.particle_color = hex_color

    def _on_speed_changed(self, value: int):
        speed = value / SPEED_SLIDER_SCALE
        self._set_config(particle_speed=speed)
        self.speed_label.setText(f" {speed:.1f}x ")
        self.settings_manager.settings.render.particle_speed = speed

    # ─── recording ───

    def start_recording(self):
        rec = self.settings_manager.settings.recording
        try:
            sink = make_sink(rec.output_path)
        except ExportError as e:
            QMessageBox.critical(self, "Recording failed", str(e))
            return
        self.recorder.start(sink, int(rec.duration_s * 1000), self.canvas.frame_rate)

    def on_record_started(self):
        self.record_act.setEnabled(False)
        self.statusBar().showMessage("Recording...")

    def on_record_finished(self, path: str):
        self.record_act.setEnabled(True)
        self.statusBar().showMessage(f"Recording saved to {path}")

    def on_record_failed(self, message: str):
        self.record_act.setEnabled(True)
        self.statusBar().showMessage("Recording failed.")
        QMessageBox.critical(self, "Recording failed", message)

    def export_animation_dialog(self):
        rec = self.settings_manager.settings.recording
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Animation", rec.output_path,
            "WebM video (*.webm);;MP4 video (*.mp4);;Animated GIF (*.gif)",
        )
        if not path:
            return
        scene = self.controller.flush()
        if scene.is_empty():
            QMessageBox.information(self, "Nothing to export", "Render a diagram first.")
            return
        self.statusBar().showMessage(f"Exporting {Path(path).name}...")
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            export_animation(scene, path, self.render_loop.config, rec.duration_s, rec.fps,
                             compositor=Compositor.from_settings(self.settings_manager.settings))
        except ExportError as e:
            QMessageBox.critical(self, "Export failed", str(e))
            self.statusBar().showMessage("Export failed.")
            return
        finally:
            QApplication.restoreOverrideCursor()
        self.statusBar().showMessage(f"Exported {path}")

    def closeEvent(self, event):
        self.canvas.stop()
        self.recorder.stop()
        super().closeEvent(event)


# =============================================================================
# Command line
# =============================================================================


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowmotion",
        description="Animate Mermaid diagrams with particles flowing along their edges.",
    )
    parser.add_argument("source", nargs="?", help="Mermaid (.mmd/.mermaid) or SVG file")
    parser.add_argument("--draft", action="store_true", help="start in the Draft style tier")
    parser.add_argument("--color", help="particle color (hex or CSS color)")
    parser.add_argument("--speed", type=float, help="particle speed multiplier")
    parser.add_argument("--export", metavar="OUT", help="render headlessly to OUT (.webm, .mp4, .gif) and exit")
    parser.add_argument("--duration", type=float, help="export length in seconds")
    parser.add_argument("--fps", type=int, help="export frames per second")
    return parser


def run_export(args: argparse.Namespace, settings_manager: SettingsManager) -> int:
    """Headless export.  Returns the process exit code."""
    if not args.source:
        print("error: --export needs a SOURCE file", file=sys.stderr)
        return 1
    try:
        source = load_source(args.source)
    except (OSError, UnicodeDecodeError) as e:
        print(f"error: could not read {args.source}: {e}", file=sys.stderr)
        return 1

    app_settings = settings_manager.settings
    config = live_config_from_args(args, settings_manager)
    controller = SceneController(debounce_ms=0)
    controller.set_tier(config.style_tier)
    controller.set_source(source)
    scene = controller.flush()
    if controller.last_error is not None:
        print(f"error: {controller.last_error}", file=sys.stderr)
        return 1

    duration = args.duration if args.duration is not None else app_settings.recording.duration_s
    fps = args.fps if args.fps is not None else app_settings.recording.fps
    try:
        path = export_animation(scene, args.export, config, duration, fps,
                                compositor=Compositor.from_settings(app_settings))
    except ExportError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = build_arg_parser().parse_args(argv)

    settings_manager = get_settings()
    settings_manager.ensure_file_complete()
    dbg = settings_manager.settings.debug
    debug_trace.configure(dbg.trace, dbg.trace_paint, dbg.log_file)
    trace("Application starting", "MAIN")

    if args.export:
        # No window needed; fonts and painting still need a QApplication
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
        app = QApplication.instance() or QApplication(sys.argv[:1])
        try:
            return run_export(args, settings_manager)
        finally:
            close_log()

    initial_source = None
    if args.source:
        try:
            initial_source = load_source(args.source)
        except (OSError, UnicodeDecodeError) as e:
            print(f"error: could not read {args.source}: {e}", file=sys.stderr)
            return 1

    app = QApplication(sys.argv[:1])

    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager, live_config_from_args(args, settings_manager), initial_source)
    w.resize(1400, 900)
    w.show()
    trace("Entering event loop", "MAIN")
    return app.exec()


if __name__ == "__main__":
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        sys.exit(main())
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
