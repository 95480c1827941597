from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


PREFERENCES_VERSION = 1


@dataclass
class Preferences:
    palette_path: str = ""
    check_palette_widths: bool = True
    close_on_success: bool = True
    from_palette: str = ""
    to_palette: str = ""
    tolerance: int = 0

    # Optional on-disk image used instead of the built-in channel reference
    channel_palette_path: Optional[str] = None


def _clamp_tolerance(value) -> int:
    try:
        tol = int(value)
    except (TypeError, ValueError):
        tol = 0
    return max(0, min(255, tol))


def save_preferences(path: str, prefs: Preferences) -> None:
    prefs_file = Path(path)
    payload = {
        "version": PREFERENCES_VERSION,
        "preferences": {
            "palette_path": prefs.palette_path,
            "check_palette_widths": bool(prefs.check_palette_widths),
            "close_on_success": bool(prefs.close_on_success),
            "from_palette": prefs.from_palette,
            "to_palette": prefs.to_palette,
            "tolerance": _clamp_tolerance(prefs.tolerance),
            "channel_palette_path": prefs.channel_palette_path,
        },
    }
    prefs_file.parent.mkdir(parents=True, exist_ok=True)
    prefs_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_preferences(path: str) -> Preferences:
    prefs_file = Path(path)
    if not prefs_file.is_file():
        return Preferences()
    raw = json.loads(prefs_file.read_text(encoding="utf-8"))
    prefs_raw = raw.get("preferences", {}) if isinstance(raw, dict) else {}
    if not isinstance(prefs_raw, dict):
        prefs_raw = {}

    channel = prefs_raw.get("channel_palette_path")
    return Preferences(
        palette_path=str(prefs_raw.get("palette_path", "") or ""),
        check_palette_widths=bool(prefs_raw.get("check_palette_widths", True)),
        close_on_success=bool(prefs_raw.get("close_on_success", True)),
        from_palette=str(prefs_raw.get("from_palette", "") or ""),
        to_palette=str(prefs_raw.get("to_palette", "") or ""),
        tolerance=_clamp_tolerance(prefs_raw.get("tolerance", 0)),
        channel_palette_path=str(channel) if channel else None,
    )
