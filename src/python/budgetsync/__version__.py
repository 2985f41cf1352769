"""Package version identifier."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

try:
    # Installed package metadata
    __version__ = version("budgetsync")
except PackageNotFoundError:
    # Fall back to reading VERSION file (for development/editable installs)
    _version_file = Path(__file__).parent.parent.parent.parent / "VERSION"
    __version__ = _version_file.read_text().strip()
