"""TaskitConfig: user config for where the save file lives and how it is shown.

Config file location (first match wins):

    $TASKIT_CONFIG
    $XDG_CONFIG_HOME/taskit/taskit.toml     (default ~/.config/taskit/taskit.toml)

taskit.toml example:

    [store]
    path = "~/.local/share/taskit/save.json"   # default: $XDG_DATA_HOME/taskit/save.json
    backup_dir = ""                            # default: next to the save file

    [display]
    max_days = 14     # days shown by `taskit show` without a date filter (0 = all)

$TASKIT_FILE overrides store.path; the --file CLI option overrides both.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "taskit.toml"
_SAVE_FILENAME = "save.json"
_DEFAULT_MAX_DAYS = 14


def _xdg(var: str, fallback: str) -> Path:
    value = os.environ.get(var)
    return Path(value) if value else Path.home() / fallback


def default_config_path() -> Path:
    explicit = os.environ.get("TASKIT_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    return _xdg("XDG_CONFIG_HOME", ".config") / "taskit" / _CONFIG_FILENAME


def default_save_path() -> Path:
    return _xdg("XDG_DATA_HOME", ".local/share") / "taskit" / _SAVE_FILENAME


@dataclass
class StoreConfig:
    path: Path = field(default_factory=default_save_path)
    backup_dir: Path | None = None     # None = next to the save file


@dataclass
class DisplayConfig:
    max_days: int = _DEFAULT_MAX_DAYS


@dataclass
class TaskitConfig:
    """Resolved configuration."""

    config_path: Path
    store: StoreConfig = field(default_factory=StoreConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    @property
    def save_path(self) -> Path:
        return self.store.path


def load_config(path: Path | str | None = None, *, save_file: Path | str | None = None) -> TaskitConfig:
    """Load taskit.toml (missing file = defaults) and apply overrides."""
    config_path = Path(path).expanduser() if path else default_config_path()

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    store_section = raw.get("store", {})
    display_section = raw.get("display", {})

    store_path = (
        save_file
        or os.environ.get("TASKIT_FILE")
        or store_section.get("path")
        or default_save_path()
    )
    backup_dir = store_section.get("backup_dir") or None

    return TaskitConfig(
        config_path=config_path,
        store=StoreConfig(
            path=Path(store_path).expanduser(),
            backup_dir=Path(backup_dir).expanduser() if backup_dir else None,
        ),
        display=DisplayConfig(
            max_days=int(display_section.get("max_days", _DEFAULT_MAX_DAYS)),
        ),
    )


def init_config(path: Path | str | None = None) -> Path:
    """Write a commented default taskit.toml. Raises if it already exists."""
    config_path = Path(path).expanduser() if path else default_config_path()
    if config_path.exists():
        msg = f"{_CONFIG_FILENAME} already exists at {config_path}"
        raise FileExistsError(msg)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    content = f"""\
[store]
# path = "{default_save_path()}"
# backup_dir = ""   # default: next to the save file

[display]
# max_days = {_DEFAULT_MAX_DAYS}   # days shown by `taskit show` without a date filter (0 = all)
"""
    config_path.write_text(content)
    return config_path
