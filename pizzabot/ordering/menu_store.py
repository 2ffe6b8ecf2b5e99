# pizzabot/ordering/menu_store.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import structlog

LOGGER = structlog.get_logger(__name__)

_MENU_CACHE: Dict[str, Dict[str, Any]] = {}


def load_menu(path: str | Path) -> Dict[str, Any]:
    menu_path = Path(path).resolve()
    key = str(menu_path)

    # 1) cache hit
    if key in _MENU_CACHE:
        return _MENU_CACHE[key]

    if not menu_path.exists():
        raise FileNotFoundError(f"Menu not found: {menu_path}")

    try:
        data = json.loads(menu_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {menu_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Menu {menu_path} must be a JSON object")

    LOGGER.info("menu_loaded", path=key, toppings=len(data.get("toppings") or []))
    _MENU_CACHE[key] = data
    return data
