"""Filesystem helpers for the JSON-file persistence variant.

The family file is a single JSON object keyed by person id. It is read and
written wholesale; writes go through a temp file in the same directory and an
atomic rename so a crash never leaves a half-written file behind.

Failures are raised as :class:`PersistenceError` so the boundary layer (the
HTTP app or the CLI) can report them. The tree code never handles them.
"""
from __future__ import annotations
from pathlib import Path
import json
import tempfile
import os
from typing import Any, Dict, Optional


class PersistenceError(Exception):
    """Reading or writing the persisted family map failed."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


def ensure_dir(path: Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """Write text to path atomically using a temp file in the same dir."""
    path = Path(path)
    ensure_dir(path.parent)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(text)
        os.replace(tmp, str(path))
    finally:
        # only left behind when the replace failed
        if Path(tmp).exists():
            Path(tmp).unlink()


def read_text(path: Path, default: Optional[str] = None, encoding: str = "utf-8") -> Optional[str]:
    p = Path(path)
    if not p.exists():
        return default
    return p.read_text(encoding=encoding)


def json_load_map(path: Path) -> Dict[str, Any]:
    """Load a JSON object from ``path``.

    A missing file is an empty map. An unreadable file, invalid JSON or a
    top-level value that is not an object raises :class:`PersistenceError`.
    """
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"Failed to read {p}: {exc}", p) from exc
    if not isinstance(data, dict):
        raise PersistenceError(f"{p} does not contain a JSON object", p)
    return data


def json_save_map(path: Path, obj: Dict[str, Any]) -> None:
    p = Path(path)
    text = json.dumps(obj, ensure_ascii=False, indent=2)
    try:
        atomic_write_text(p, text)
    except OSError as exc:
        raise PersistenceError(f"Failed to write {p}: {exc}", p) from exc


def ensure_json_file(path: Path) -> None:
    """Create ``path`` holding an empty JSON object when it does not exist."""
    p = Path(path)
    if not p.exists():
        json_save_map(p, {})
