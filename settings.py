"""
settings.py

Persistent settings management for FlowMotion.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/flowmotion/settings.toml
    - macOS: ~/Library/Application Support/flowmotion/settings.toml
    - Linux: ~/.config/flowmotion/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs
import tomli_w

APP_NAME = "flowmotion"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Render Settings
# =============================================================================

@dataclass
class RenderSettings:
    """Frame loop and compositing settings.

    Defaults:
        style_tier: "premium"
        particle_color: "#6366f1"
        particle_speed: 1.0
        frame_rate: 60
        margin: 50.0
        grid_spacing: 40.0
    """
    style_tier: str = "premium"        # Default: "premium" (or "draft")
    particle_color: str = "#6366f1"    # Default: indigo
    particle_speed: float = 1.0        # Default: 1.0x
    frame_rate: int = 60               # Default: 60 frames per second
    margin: float = 50.0               # Default: 50.0 pixels around the viewBox
    grid_spacing: float = 40.0         # Default: 40.0 pixels


# =============================================================================
# Extraction Settings
# =============================================================================

@dataclass
class ExtractionSettings:
    """Vector tree extraction settings.

    Defaults:
        debounce_ms: 800
        min_path_chars: 10
        lifeline_ratio: 3.0
        lifeline_min_length: 50.0
        container_fill_alpha: 0.05
        geometry_backend: "qt"
    """
    debounce_ms: int = 800                # Default: 800 ms after the last edit
    min_path_chars: int = 10              # Default: descriptions of 10 chars or less are noise
    lifeline_ratio: float = 3.0           # Default: |dy| must exceed 3x |dx|
    lifeline_min_length: float = 50.0     # Default: 50.0 pixels
    container_fill_alpha: float = 0.05    # Default: 0.05
    geometry_backend: str = "qt"          # Default: "qt" (or "polyline")


# =============================================================================
# Particle Settings
# =============================================================================

@dataclass
class ParticleSettings:
    """Particle population settings.

    Defaults:
        chars_per_particle: 150
        min_speed: 0.002
        max_speed: 0.006
        radius: 3.0
        glow_blur: 4.0
    """
    chars_per_particle: int = 150   # Default: one extra particle per 150 path chars
    min_speed: float = 0.002        # Default: 0.002 progress per frame
    max_speed: float = 0.006        # Default: 0.006 progress per frame
    radius: float = 3.0             # Default: 3.0 pixels
    glow_blur: float = 4.0          # Default: 4.0 pixels


# =============================================================================
# Recording Settings
# =============================================================================

@dataclass
class RecordingSettings:
    """Recording/export settings.

    Defaults:
        duration_s: 3.0
        fps: 60
        output_path: "flowmotion.webm"
    """
    duration_s: float = 3.0                  # Default: 3 seconds
    fps: int = 60                            # Default: 60 frames per second
    output_path: str = "flowmotion.webm"     # Default: WebM next to the working dir


# =============================================================================
# External Tool Settings
# =============================================================================

@dataclass
class ExternalToolSettings:
    """Paths to external collaborators.

    Defaults:
        mmdc_path: "" (search MMDC_PATH, then PATH)
        ffmpeg_path: "" (search FFMPEG_PATH, then PATH)
        mmdc_timeout_s: 60
    """
    mmdc_path: str = ""
    ffmpeg_path: str = ""
    mmdc_timeout_s: int = 60


# =============================================================================
# Debug Settings
# =============================================================================

@dataclass
class DebugSettings:
    """Trace output settings.

    Defaults:
        trace: False
        trace_paint: False
        log_file: ""
    """
    trace: bool = False        # Default: False
    trace_paint: bool = False  # Default: False (very verbose)
    log_file: str = ""         # Default: "" (stderr only)


# =============================================================================
# Main Application Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        render: Frame loop and compositing settings.
        extraction: Vector tree extraction settings.
        particles: Particle population settings.
        recording: Recording/export settings.
        external_tools: Locations of mmdc and ffmpeg.
        debug: Trace output settings.
    """
    render: RenderSettings = field(default_factory=RenderSettings)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    particles: ParticleSettings = field(default_factory=ParticleSettings)
    recording: RecordingSettings = field(default_factory=RecordingSettings)
    external_tools: ExternalToolSettings = field(default_factory=ExternalToolSettings)
    debug: DebugSettings = field(default_factory=DebugSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Optional explicit directory (used by tests).
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError):
            # If file is corrupted or invalid, return defaults
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        r = data.get("render", {})
        settings.render.style_tier = str(r.get("style_tier", settings.render.style_tier))
        settings.render.particle_color = str(r.get("particle_color", settings.render.particle_color))
        settings.render.particle_speed = float(r.get("particle_speed", settings.render.particle_speed))
        settings.render.frame_rate = int(r.get("frame_rate", settings.render.frame_rate))
        settings.render.margin = float(r.get("margin", settings.render.margin))
        settings.render.grid_spacing = float(r.get("grid_spacing", settings.render.grid_spacing))

        e = data.get("extraction", {})
        settings.extraction.debounce_ms = int(e.get("debounce_ms", settings.extraction.debounce_ms))
        settings.extraction.min_path_chars = int(e.get("min_path_chars", settings.extraction.min_path_chars))
        settings.extraction.lifeline_ratio = float(e.get("lifeline_ratio", settings.extraction.lifeline_ratio))
        settings.extraction.lifeline_min_length = float(e.get("lifeline_min_length", settings.extraction.lifeline_min_length))
        settings.extraction.container_fill_alpha = float(e.get("container_fill_alpha", settings.extraction.container_fill_alpha))
        settings.extraction.geometry_backend = str(e.get("geometry_backend", settings.extraction.geometry_backend))

        p = data.get("particles", {})
        settings.particles.chars_per_particle = int(p.get("chars_per_particle", settings.particles.chars_per_particle))
        settings.particles.min_speed = float(p.get("min_speed", settings.particles.min_speed))
        settings.particles.max_speed = float(p.get("max_speed", settings.particles.max_speed))
        settings.particles.radius = float(p.get("radius", settings.particles.radius))
        settings.particles.glow_blur = float(p.get("glow_blur", settings.particles.glow_blur))

        rec = data.get("recording", {})
        settings.recording.duration_s = float(rec.get("duration_s", settings.recording.duration_s))
        settings.recording.fps = int(rec.get("fps", settings.recording.fps))
        settings.recording.output_path = str(rec.get("output_path", settings.recording.output_path))

        ext = data.get("external_tools", {})
        settings.external_tools.mmdc_path = str(ext.get("mmdc_path", settings.external_tools.mmdc_path))
        settings.external_tools.ffmpeg_path = str(ext.get("ffmpeg_path", settings.external_tools.ffmpeg_path))
        settings.external_tools.mmdc_timeout_s = int(ext.get("mmdc_timeout_s", settings.external_tools.mmdc_timeout_s))

        dbg = data.get("debug", {})
        settings.debug.trace = bool(dbg.get("trace", settings.debug.trace))
        settings.debug.trace_paint = bool(dbg.get("trace_paint", settings.debug.trace_paint))
        settings.debug.log_file = str(dbg.get("log_file", settings.debug.log_file))

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "render": {
                "style_tier": s.render.style_tier,
                "particle_color": s.render.particle_color,
                "particle_speed": s.render.particle_speed,
                "frame_rate": s.render.frame_rate,
                "margin": s.render.margin,
                "grid_spacing": s.render.grid_spacing,
            },
            "extraction": {
                "debounce_ms": s.extraction.debounce_ms,
                "min_path_chars": s.extraction.min_path_chars,
                "lifeline_ratio": s.extraction.lifeline_ratio,
                "lifeline_min_length": s.extraction.lifeline_min_length,
                "container_fill_alpha": s.extraction.container_fill_alpha,
                "geometry_backend": s.extraction.geometry_backend,
            },
            "particles": {
                "chars_per_particle": s.particles.chars_per_particle,
                "min_speed": s.particles.min_speed,
                "max_speed": s.particles.max_speed,
                "radius": s.particles.radius,
                "glow_blur": s.particles.glow_blur,
            },
            "recording": {
                "duration_s": s.recording.duration_s,
                "fps": s.recording.fps,
                "output_path": s.recording.output_path,
            },
            "external_tools": {
                "mmdc_path": s.external_tools.mmdc_path,
                "ffmpeg_path": s.external_tools.ffmpeg_path,
                "mmdc_timeout_s": s.external_tools.mmdc_timeout_s,
            },
            "debug": {
                "trace": s.debug.trace,
                "trace_paint": s.debug.trace_paint,
                "log_file": s.debug.log_file,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        return tomli_w.dumps(self._to_toml_dict())

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
