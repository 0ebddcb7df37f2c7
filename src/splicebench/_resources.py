"""Resource path resolution for splicebench.

Handles correct path resolution whether running from:
- Source tree (development)
- pip install (site-packages)
- PyInstaller bundle (frozen binary)
"""

from __future__ import annotations

import sys
from pathlib import Path


def _package_dir() -> Path:
    """Return the splicebench package directory."""
    if getattr(sys, "frozen", False):
        # PyInstaller bundle -- data files extracted under _MEIPASS
        return Path(sys._MEIPASS) / "splicebench"  # type: ignore[attr-defined]
    return Path(__file__).parent


def get_templates_dir() -> Path:
    """Return path to the SQL templates directory."""
    return _package_dir() / "templates"
