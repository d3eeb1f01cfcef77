"""
tests/test_main.py

Command-line options and headless export.
"""

from __future__ import annotations

import os

from PIL import Image

from main import build_arg_parser, live_config_from_args, main, run_export
from models import StyleTier

SVG_DIR = os.path.join(os.path.dirname(__file__), "..", "test_data", "MERMAID")


def parse(*argv):
    return build_arg_parser().parse_args(list(argv))


def test_defaults_come_from_settings(isolated_settings):
    isolated_settings.settings.render.particle_speed = 2.0
    config = live_config_from_args(parse(), isolated_settings)
    assert config.style_tier is StyleTier.PREMIUM
    assert config.particle_speed == 2.0


def test_options_override_settings(isolated_settings):
    config = live_config_from_args(parse("--draft", "--color", "red", "--speed", "0.5"), isolated_settings)
    assert config.style_tier is StyleTier.DRAFT
    assert config.particle_color == "#ff0000"
    assert config.particle_speed == 0.5


def test_unparseable_color_keeps_default(isolated_settings):
    config = live_config_from_args(parse("--color", "not-a-color"), isolated_settings)
    assert config.particle_color == isolated_settings.settings.render.particle_color


def test_export_svg_to_gif(qapp, tmp_path, isolated_settings, capsys):
    out = tmp_path / "flow.gif"
    args = parse(os.path.join(SVG_DIR, "flowchart_chain.svg"), "--export", str(out),
                 "--duration", "0.2", "--fps", "10")
    assert run_export(args, isolated_settings) == 0
    assert capsys.readouterr().out.strip() == str(out)
    with Image.open(out) as gif:
        assert gif.size == (216, 376)


def test_export_needs_source(qapp, tmp_path, isolated_settings, capsys):
    assert run_export(parse("--export", str(tmp_path / "x.gif")), isolated_settings) == 1
    assert "needs a SOURCE" in capsys.readouterr().err


def test_export_missing_file(qapp, tmp_path, isolated_settings, capsys):
    args = parse(str(tmp_path / "missing.mmd"), "--export", str(tmp_path / "x.gif"))
    assert run_export(args, isolated_settings) == 1
    assert "could not read" in capsys.readouterr().err


def test_export_reports_extraction_error(qapp, tmp_path, isolated_settings, capsys):
    src = tmp_path / "broken.svg"
    src.write_text("<svg><g></svg>", encoding="utf-8")
    out = tmp_path / "x.gif"
    assert run_export(parse(str(src), "--export", str(out)), isolated_settings) == 1
    assert "Invalid SVG" in capsys.readouterr().err
    assert not out.exists()


def test_export_rejects_unknown_format(qapp, tmp_path, isolated_settings, capsys):
    args = parse(os.path.join(SVG_DIR, "sequence.svg"), "--export", str(tmp_path / "x.avi"))
    assert run_export(args, isolated_settings) == 1
    assert "Unsupported export format" in capsys.readouterr().err


def test_main_export_mode(qapp, tmp_path, isolated_settings):
    out = tmp_path / "arch.gif"
    code = main([os.path.join(SVG_DIR, "architecture.svg"), "--export", str(out),
                 "--duration", "0.1", "--fps", "10", "--draft"])
    assert code == 0
    assert out.exists()
    assert isolated_settings.get_settings_path().exists()


def test_main_window_renders_initial_source(qapp, isolated_settings, flowchart_svg):
    from main import MainWindow
    window = MainWindow(isolated_settings, initial_source=flowchart_svg)
    try:
        window.controller.flush()
        assert len(window.render_loop.scene.nodes) == 3
        window._on_speed_changed(25)
        assert window.render_loop.config.particle_speed == 2.5
        assert isolated_settings.settings.render.particle_speed == 2.5
        window.premium_act.setChecked(False)
        assert window.render_loop.config.style_tier is StyleTier.DRAFT
        assert isolated_settings.settings.render.style_tier == "draft"
    finally:
        window.controller.flush()
        window.close()
        window.deleteLater()
