"""
Chromium installation for the URL reachability check.

The URL check renders pages in Playwright's Chromium build. This module
finds an existing install (honouring PLAYWRIGHT_BROWSERS_PATH) and runs
``playwright install chromium`` only when none is present.
"""

import os
import subprocess
import sys
from pathlib import Path
from typing import Optional


def browsers_path() -> Path:
    """
    Directory where Playwright keeps downloaded browsers.

    Returns:
        PLAYWRIGHT_BROWSERS_PATH when set, else the per-platform cache dir
    """
    override = os.environ.get("PLAYWRIGHT_BROWSERS_PATH")
    if override and override != "0":
        return Path(override)
    if sys.platform == "win32":
        return Path.home() / "AppData" / "Local" / "ms-playwright"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "ms-playwright"
    return Path.home() / ".cache" / "ms-playwright"


def is_chromium_installed(path: Optional[Path] = None) -> bool:
    """
    True when a completed Chromium download is present.

    Playwright drops an INSTALLATION_COMPLETE marker in each finished
    ``chromium-<revision>`` directory.
    """
    path = path or browsers_path()
    if not path.is_dir():
        return False
    return any(
        (candidate / "INSTALLATION_COMPLETE").exists()
        for candidate in path.glob("chromium-*")
    )


def install_chromium(with_deps: bool = False) -> int:
    """
    Download Chromium through the playwright CLI.

    Args:
        with_deps: Also install OS packages Chromium needs (Linux, needs root)

    Returns:
        Exit code of the playwright command
    """
    command = [sys.executable, "-m", "playwright", "install", "chromium"]
    if with_deps:
        command.append("--with-deps")
    result = subprocess.run(command, check=False)
    return result.returncode


def ensure_chromium(with_deps: bool = False, force: bool = False) -> int:
    """Install Chromium unless it is already there; returns an exit code."""
    if not force and is_chromium_installed():
        return 0
    return install_chromium(with_deps=with_deps)
