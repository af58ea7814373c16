"""XDG-compliant config paths."""

from __future__ import annotations

import os
from pathlib import Path


def config_dir() -> Path:
    """Return ~/.config/padmap, creating it if needed."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    p = Path(xdg) / "padmap" if xdg else Path.home() / ".config" / "padmap"
    p.mkdir(parents=True, exist_ok=True)
    return p


def default_config_path() -> Path:
    """Return the default config file path."""
    return config_dir() / "config.toml"
