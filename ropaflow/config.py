"""Settings for layout, canvas, panels and storage, optionally read from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

COLLECTION_KEY = "ropa_flows_v3"
DEFAULT_STORE_DIR = Path(".ropaflow")
CONFIG_FILENAME = "ropaflow.yml"


@dataclass
class Settings:
    # Node bounding box shared by layout and renderers
    node_width: float = 180.0
    node_height: float = 80.0

    # Layout spacing
    rank_gap: float = 80.0
    node_gap: float = 40.0
    ordering_passes: int = 4

    # Area used for pseudo-random placement of new nodes
    canvas_width: float = 1200.0
    canvas_height: float = 800.0
    export_margin: float = 40.0

    left_panel_width: float = 224.0
    left_panel_min: float = 160.0
    left_panel_max: float = 400.0
    right_panel_width: float = 320.0
    right_panel_min: float = 240.0
    right_panel_max: float = 560.0

    collection_key: str = COLLECTION_KEY
    store_dir: Path = DEFAULT_STORE_DIR


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, Path):
        return Path(str(value))
    if isinstance(default, bool) or isinstance(value, bool):
        raise TypeError(f"{name}: unexpected boolean")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, str):
        if not isinstance(value, str) or not value.strip():
            raise TypeError(f"{name}: expected non-empty string")
        return value.strip()
    return value


def settings_from_mapping(data: dict[str, Any]) -> Settings:
    """Build Settings from a mapping, keeping defaults for unknown or bad values."""
    settings = Settings()
    known = {f.name for f in fields(Settings)}
    for key, value in data.items():
        if key not in known:
            logger.debug("Ignoring unknown setting %r", key)
            continue
        default = getattr(settings, key)
        try:
            setattr(settings, key, _coerce(key, value, default))
        except (TypeError, ValueError):
            logger.warning("Invalid value for setting %r: %r (keeping %r)", key, value, default)

    if settings.ordering_passes < 0:
        settings.ordering_passes = 0
    return settings


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a YAML file.

    A missing file gives defaults. An unreadable or malformed file is logged
    and also gives defaults.
    """
    if path is None or not path.exists():
        return Settings()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read settings from %s: %s", path, e)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("Settings file %s is not a mapping; using defaults", path)
        return Settings()
    return settings_from_mapping(data)
