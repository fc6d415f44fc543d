"""Persisted rendering preferences.

One JSON file, $XDG_CONFIG_HOME/termrender/settings.json:

    {"render": {...RenderOptions fields...}, "theme": "...", "highlighter": "..."}

Reads are total: a missing, unreadable or malformed file yields defaults.
Writes merge into whatever is already stored and replace the file in one
rename so a crash never leaves half a file behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from termrender.options import RenderOptions

logger = logging.getLogger(__name__)

DEFAULT_THEME = "textual-dark"
DEFAULT_HIGHLIGHTER = "pygments"


@dataclass(frozen=True)
class Preferences:
    options: RenderOptions = field(default_factory=RenderOptions)
    theme: str = DEFAULT_THEME
    highlighter: str = DEFAULT_HIGHLIGHTER


def get_config_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return Path(config_home) / "termrender" / "settings.json"


def load_settings() -> dict:
    """The stored mapping, or {} when there is nothing usable on disk."""
    path = get_config_path()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        logger.warning("ignoring unreadable settings file %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def update_settings(**values) -> dict:
    """Merge `values` into the stored mapping and write it back atomically."""
    data = load_settings()
    data.update(values)
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".settings-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return data


def load_preferences() -> Preferences:
    data = load_settings()
    return Preferences(
        options=RenderOptions.from_mapping(data.get("render", {})),
        theme=str(data.get("theme", DEFAULT_THEME)),
        highlighter=str(data.get("highlighter", DEFAULT_HIGHLIGHTER)),
    )


def save_preferences(prefs: Preferences) -> None:
    update_settings(render=prefs.options.to_mapping(), theme=prefs.theme, highlighter=prefs.highlighter)
