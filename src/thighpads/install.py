"""Global install / uninstall / self-update through `uv tool` or pip.

Used by `thighpads install`, `thighpads uninstall` and `thighpads update`.
Each helper returns (success, message) so the CLI decides how to report.
"""

from __future__ import annotations

import shutil
import subprocess
import sys

PACKAGE_NAME = "thighpads"
SOURCE_URL = "git+https://github.com/s42yt/thighpads.git"


def _uv() -> str | None:
    return shutil.which("uv")


def _run(cmd: list[str]) -> tuple[bool, str]:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        return False, f"{cmd[0]}: {exc}"
    output = (result.stdout + result.stderr).strip()
    return result.returncode == 0, output


def is_installed_globally() -> bool:
    """True if a `thighpads` executable is on PATH."""
    return shutil.which(PACKAGE_NAME) is not None


def install_globally(source: str = SOURCE_URL) -> tuple[bool, str]:
    if _uv():
        cmd = ["uv", "tool", "install", "--force", source]
        tool = "uv"
    else:
        cmd = [sys.executable, "-m", "pip", "install", "--user", source]
        tool = "pip"
    ok, out = _run(cmd)
    if ok:
        return True, f"Installed {PACKAGE_NAME} via {tool}"
    return False, f"Install via {tool} failed: {out or 'no output'}"


def uninstall_globally() -> tuple[bool, str]:
    if _uv():
        cmd = ["uv", "tool", "uninstall", PACKAGE_NAME]
        tool = "uv"
    else:
        cmd = [sys.executable, "-m", "pip", "uninstall", "-y", PACKAGE_NAME]
        tool = "pip"
    ok, out = _run(cmd)
    if ok:
        return True, f"Uninstalled {PACKAGE_NAME} via {tool}"
    return False, f"Uninstall via {tool} failed: {out or 'no output'}"


def self_update(source: str = SOURCE_URL) -> tuple[bool, str]:
    """Reinstall from source, replacing the current installation."""
    if _uv():
        cmd = ["uv", "tool", "install", "--force", source]
        tool = "uv"
    else:
        cmd = [sys.executable, "-m", "pip", "install", "--upgrade", source]
        tool = "pip"
    ok, out = _run(cmd)
    if ok:
        return True, f"Updated {PACKAGE_NAME} via {tool}"
    return False, f"Update failed. Try manually: uv tool install --force {source}\n{out}"
