"""JSON configuration for the photo store."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from loguru import logger

DEFAULT_CONFIG_NAME = "config.json"


def load_config(path: Optional[str]) -> dict[str, Any]:
    """Read a JSON config file; a missing or unreadable file yields ``{}``."""
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        logger.debug("Config file does not exist: {}", p)
        return {}
    try:
        with p.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring config file {}: {}", p, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file {}: top level is not an object", p)
        return {}
    logger.debug("Loaded config from {}", p)
    return data


def _resolve(value: str, base: Optional[Path]) -> str:
    # URLs are left alone; relative paths are taken relative to the config file
    if "://" in value or value == ":memory:":
        return value
    p = Path(value).expanduser()
    if base is not None and not p.is_absolute():
        p = base / p
    return str(p)


@dataclass
class StoreConfig:
    database: str = "gallery.db"
    photo_dir: str = "photos"
    location_timeout: float = 10.0
    log_dir: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, cfg: dict[str, Any], base_dir: Optional[Path] = None) -> "StoreConfig":
        out = cls()
        if cfg.get("database"):
            out.database = _resolve(str(cfg["database"]), base_dir)
        elif base_dir is not None:
            out.database = _resolve(out.database, base_dir)
        if cfg.get("photo_dir"):
            out.photo_dir = _resolve(str(cfg["photo_dir"]), base_dir)
        elif base_dir is not None:
            out.photo_dir = _resolve(out.photo_dir, base_dir)
        try:
            if cfg.get("location_timeout") is not None:
                out.location_timeout = max(0.0, float(cfg["location_timeout"]))
        except (TypeError, ValueError):
            logger.warning("Invalid location_timeout {!r}; using {}", cfg.get("location_timeout"), out.location_timeout)
        if cfg.get("log_dir"):
            out.log_dir = _resolve(str(cfg["log_dir"]), base_dir)
        if cfg.get("log_level"):
            out.log_level = str(cfg["log_level"]).upper()
        return out

    @classmethod
    def load(cls, path: Optional[str] = None) -> "StoreConfig":
        """Load ``path`` (default: ``config.json`` in the working directory)."""
        cfg_path = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_NAME
        raw = load_config(str(cfg_path))
        base = cfg_path.resolve().parent if raw else None
        return cls.from_mapping(raw, base)
