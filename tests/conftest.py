"""Shared fixtures: offscreen QApplication, isolated settings, SVG fixtures."""
from __future__ import annotations

import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from PyQt6.QtWidgets import QApplication

import settings
from settings import SettingsManager

SVG_DIR = os.path.join(os.path.dirname(__file__), "..", "test_data", "MERMAID")


def read_svg(name: str) -> str:
    with open(os.path.join(SVG_DIR, name), encoding="utf-8") as f:
        return f.read()


@pytest.fixture(scope="session")
def qapp():
    """Provide a single QApplication for the entire test session."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings singleton at an empty temporary directory."""
    manager = SettingsManager(settings_dir=tmp_path / "config")
    monkeypatch.setattr(settings, "_settings_manager", manager)
    monkeypatch.delenv("MMDC_PATH", raising=False)
    monkeypatch.delenv("FFMPEG_PATH", raising=False)
    yield manager


@pytest.fixture()
def flowchart_svg() -> str:
    return read_svg("flowchart_chain.svg")


@pytest.fixture()
def sequence_svg() -> str:
    return read_svg("sequence.svg")


@pytest.fixture()
def architecture_svg() -> str:
    return read_svg("architecture.svg")
