from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def load_yaml(path: str | Path) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path.resolve()}")
    with config_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get(cfg: Dict[str, Any], key: str, default: Any = None) -> Any:
    """
    Dot-access helper:
      get(cfg, "sampling.interval_s", 1.5)
    """
    cur: Any = cfg
    for part in key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def get_secret(cfg: Dict[str, Any], key: str, default_env: str) -> Optional[str]:
    """Resolve an API key through the env var named at ``key`` (falls back to ``default_env``)."""
    env_name = get(cfg, key, default_env) or default_env
    value = os.environ.get(str(env_name), "").strip()
    return value or None
