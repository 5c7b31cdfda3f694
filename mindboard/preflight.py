"""Environment and dependency preflight checks for the desktop app.

The idea map engine and ``mindboard-cli`` run without GTK; only the desktop
window needs the bindings checked here. Set MINDBOARD_SKIP_PREFLIGHT=1 to
bypass.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _has_display() -> bool:
    return bool(os.environ.get("WAYLAND_DISPLAY") or os.environ.get("DISPLAY"))


def _check_python_deps() -> Optional[str]:
    """Return an error message if required deps are missing."""
    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install the desktop extra (pip install 'mindboard[gui]') and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4/libadwaita bindings. Install PyGObject together with "
            "the system gtk4 and libadwaita libraries. "
            f"Underlying error: {exc}"
        )

    return None


def run_preflight(*, require_display: bool = True, check_deps: bool = True) -> PreflightResult:
    """Run checks and return a structured result."""
    if os.environ.get("MINDBOARD_SKIP_PREFLIGHT") == "1":
        return PreflightResult(True, "Preflight skipped via MINDBOARD_SKIP_PREFLIGHT=1")

    if require_display and not _has_display():
        return PreflightResult(
            False,
            "No graphical session found (neither WAYLAND_DISPLAY nor DISPLAY is set). "
            "Use mindboard-cli for headless access, or set MINDBOARD_SKIP_PREFLIGHT=1 to bypass.",
        )

    if check_deps:
        dep_error = _check_python_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(*, require_display: bool = True, check_deps: bool = True) -> None:
    result = run_preflight(require_display=require_display, check_deps=check_deps)
    if result.ok:
        return

    sys.stderr.write("\nMindBoard preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    raise SystemExit(1)
