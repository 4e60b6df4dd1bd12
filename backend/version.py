"""
Application version reported by /health and the OpenAPI document.

A source checkout reads the repo root VERSION file; an installed distribution
without that file falls back to the package metadata.
"""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Optional

DEFAULT_VERSION = "0.0.0"
DISTRIBUTION_NAME = "player-tracker"

# backend/version.py -> repo root
VERSION_FILE = Path(__file__).resolve().parent.parent / "VERSION"


def _read_version_file(path: Path) -> Optional[str]:
    try:
        raw = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return raw.splitlines()[0].strip() if raw else None


def get_version(path: Optional[Path] = None) -> str:
    """Return the checkout version, the installed version, or DEFAULT_VERSION."""
    found = _read_version_file(path or VERSION_FILE)
    if found:
        return found
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return DEFAULT_VERSION
