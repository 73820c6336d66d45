"""Configuration loader for famtree_py.

Behavior:
- Load defaults.
- If a path is given, or environment variable `FAMTREE_CONFIG` is set, load
  that JSON file and merge.
- Environment variables override file values (variables: FAMTREE_DATA_DIR,
  FAMTREE_DATA_FILE, FAMTREE_TEMPLATES_DIR, FAMTREE_LOG_LEVEL,
  FAMTREE_MAX_DEPTH, FAMTREE_SEED), but only when no explicit path was passed.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import os
import json
import logging
from typing import Optional

from .templating import TEMPLATES_DIR

_TRUE = ("1", "true", "yes", "on")


@dataclass
class Config:
    data_dir: Path = Path("data")
    data_file: str = "family-data.json"
    templates_dir: Path = TEMPLATES_DIR
    log_level: str = "INFO"
    # default generation limit until one is saved in settings.json
    max_depth: int = 10
    # populate an empty store with the demo family on first start
    seed: bool = True

    @property
    def data_path(self) -> Path:
        return self.data_dir / self.data_file

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "settings.json"


def _load_json_file(path: Path) -> Optional[dict]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        logging.warning("Could not read config file %s", path)
        return None


def _as_bool(v) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in _TRUE


def _as_depth(v, default: int) -> int:
    try:
        return max(0, int(v))
    except (TypeError, ValueError):
        logging.warning("Invalid max_depth %r; using %d", v, default)
        return default


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from (1) defaults, (2) JSON file, (3) env vars.

    :param config_path: optional path to a JSON config file. If not provided
                        will use environment variable `FAMTREE_CONFIG` if set.
    """
    cfg = Config()

    # 1) config file
    cp = config_path or os.environ.get("FAMTREE_CONFIG")
    if cp:
        data = _load_json_file(Path(cp))
        if isinstance(data, dict):
            if data.get("data_dir"):
                cfg.data_dir = Path(data["data_dir"])
            if data.get("data_file"):
                cfg.data_file = str(data["data_file"])
            if data.get("templates_dir"):
                cfg.templates_dir = Path(data["templates_dir"])
            if data.get("log_level"):
                cfg.log_level = str(data["log_level"]).upper()
            if "max_depth" in data:
                cfg.max_depth = _as_depth(data["max_depth"], cfg.max_depth)
            if "seed" in data:
                cfg.seed = _as_bool(data["seed"])

    # 2) environment variables; an explicit config_path is authoritative
    if config_path is None:
        env = os.environ
        if env.get("FAMTREE_DATA_DIR"):
            cfg.data_dir = Path(env["FAMTREE_DATA_DIR"])
        if env.get("FAMTREE_DATA_FILE"):
            cfg.data_file = env["FAMTREE_DATA_FILE"]
        if env.get("FAMTREE_TEMPLATES_DIR"):
            cfg.templates_dir = Path(env["FAMTREE_TEMPLATES_DIR"])
        if env.get("FAMTREE_LOG_LEVEL"):
            cfg.log_level = env["FAMTREE_LOG_LEVEL"].upper()
        if env.get("FAMTREE_MAX_DEPTH"):
            cfg.max_depth = _as_depth(env["FAMTREE_MAX_DEPTH"], cfg.max_depth)
        if env.get("FAMTREE_SEED"):
            cfg.seed = _as_bool(env["FAMTREE_SEED"])

    return cfg
