"""Load and expose column configuration from YAML (with fallbacks)."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import COMPARE_ROW_COLUMNS, DISPLAY_ORDER_COMPARE, EXPORT_ORDER_COMPARE

logger = logging.getLogger(__name__)

_CACHE: dict[str, list[str]] | None = None


def _defaults() -> dict[str, list[str]]:
    return {
        "compare": list(DISPLAY_ORDER_COMPARE),
        "export": list(EXPORT_ORDER_COMPARE),
        "rows": list(COMPARE_ROW_COLUMNS),
    }


def load_column_sets(base_path: str | Path | None = None, *, refresh: bool = False):
    global _CACHE
    if _CACHE is not None and not refresh:
        return _CACHE
    base = Path(base_path or Path(__file__).resolve().parent.parent)
    yaml_path = base / "columns.yaml"
    sets = _defaults()
    if yaml_path.exists():
        try:
            data = yaml.safe_load(yaml_path.read_text()) or {}
        except yaml.YAMLError as exc:
            logger.warning("Ignoring unreadable %s: %s", yaml_path, exc)
            data = {}
        for name, cols in (data.get("sets") or {}).items():
            if isinstance(cols, list) and cols:
                sets[name] = [str(c) for c in cols]
    _CACHE = sets
    return _CACHE


def get_columns(set_name: str) -> list[str]:
    sets = load_column_sets()
    return sets.get(set_name, [])
