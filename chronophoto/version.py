"""Version string of chrono-photo with the git build it was run from."""
from __future__ import annotations

import platform
import subprocess
from pathlib import Path
from typing import Dict, Optional

import numpy as np

__version__ = "0.3.0"

PACKAGE_DIR = Path(__file__).resolve().parent


def _git(*args: str) -> Optional[str]:
    try:
        proc = subprocess.run(["git", *args], cwd=PACKAGE_DIR, capture_output=True, text=True)
    except OSError:
        return None
    return proc.stdout.strip() if proc.returncode == 0 else None


def get_build_meta() -> Dict[str, str]:
    """Version, git hash and runtime versions, as recorded in bench and profile reports."""
    changes = _git("status", "--porcelain", "--untracked-files=no")
    return {
        "version": __version__,
        "git_hash": _git("rev-parse", "--short", "HEAD") or "unknown",
        "dirty": "1" if changes else "0",
        "python": platform.python_version(),
        "numpy": np.__version__,
    }


def get_version_string() -> str:
    meta = get_build_meta()
    build = meta["git_hash"] + ("+dirty" if meta["dirty"] == "1" else "")
    return f"chrono-photo {meta['version']} ({build})"
