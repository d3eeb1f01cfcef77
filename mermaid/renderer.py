"""
mermaid/renderer.py

Compile Mermaid source text to SVG with the Mermaid CLI (``mmdc``).

The CLI is an external collaborator: this module only locates it, writes
the source and a config file to a temporary directory, runs it, and
returns the SVG text.  Failures are raised as ``MermaidRenderError``
carrying the CLI's own error detail.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from debug_trace import trace
from settings import get_settings

# Config passed with ``mmdc -c``
MERMAID_CONFIG: Dict[str, Any] = {
    "theme": "base",
    "flowchart": {"htmlLabels": True, "curve": "basis"},
    "sequence": {"useMaxWidth": False},
}

MMDC_INSTALL_HINT = (
    "Mermaid CLI (mmdc) not found.\n\n"
    "Install with:  npm install -g @mermaid-js/mermaid-cli\n\n"
    "Or set the MMDC_PATH environment variable to the mmdc executable."
)


class MermaidRenderError(RuntimeError):
    """The Mermaid CLI rejected the source or could not be run.

    Attributes:
        detail: The CLI's error output (or a description of why it could
            not run).
    """

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    @property
    def first_line(self) -> str:
        for line in self.detail.splitlines():
            if line.strip():
                return line.strip()
        return ""


def find_mmdc() -> Optional[str]:
    """Find the Mermaid CLI (mmdc) executable.

    Search order:
        1. FlowMotion settings (external_tools.mmdc_path)
        2. MMDC_PATH environment variable
        3. mmdc on system PATH

    Returns:
        Path to mmdc executable if found, None otherwise.
    """
    # 1. FlowMotion settings
    configured = get_settings().settings.external_tools.mmdc_path
    if configured and os.path.isfile(configured):
        return configured

    # 2. Environment variable
    env_path = os.environ.get("MMDC_PATH")
    if env_path and os.path.isfile(env_path):
        return env_path

    # 3. System PATH
    return shutil.which("mmdc")


def _run_mmdc(input_file: Path, output_file: Path, tmp_dir: str) -> None:
    mmdc = find_mmdc()
    if mmdc is None:
        raise MermaidRenderError(MMDC_INSTALL_HINT)

    config_path = Path(tmp_dir) / "mermaid-config.json"
    config_path.write_text(json.dumps(MERMAID_CONFIG), encoding="utf-8")

    cmd = [mmdc, "-i", str(input_file), "-o", str(output_file), "-c", str(config_path)]
    trace(f"mmdc command: {' '.join(cmd)}", "MMDC")

    timeout = get_settings().settings.external_tools.mmdc_timeout_s
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise MermaidRenderError(f"mmdc timed out after {timeout}s") from e
    except OSError as e:
        raise MermaidRenderError(f"Could not run mmdc: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        trace(f"mmdc failed (exit {result.returncode}): {detail}", "MMDC")
        raise MermaidRenderError(detail or f"mmdc rendering failed (exit {result.returncode})")

    if not output_file.is_file():
        raise MermaidRenderError(
            "mmdc ran successfully but produced no SVG output.\n"
            f"Command: {' '.join(cmd)}\n"
            f"stdout: {result.stdout.strip()}\n"
            f"stderr: {result.stderr.strip()}"
        )


def compile_source_to_svg(source: str) -> str:
    """Compile Mermaid source text to SVG text.

    Args:
        source: Mermaid diagram source.

    Returns:
        The SVG document produced by mmdc.

    Raises:
        MermaidRenderError: If mmdc cannot be found, times out or rejects
            the source.
    """
    tmp_dir = tempfile.mkdtemp(prefix="flowmotion_mmd_")
    try:
        input_file = Path(tmp_dir) / "input.mmd"
        output_file = Path(tmp_dir) / "output.svg"
        input_file.write_text(source, encoding="utf-8")
        _run_mmdc(input_file, output_file, tmp_dir)
        svg = output_file.read_text(encoding="utf-8")
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
    trace(f"mmdc produced {len(svg)} chars of SVG", "MMDC")
    return svg
