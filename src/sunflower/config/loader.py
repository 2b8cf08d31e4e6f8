import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_CONFIG_PATH = Path("sunflower.config.yaml")
ACCESS_KEY_ENV_VAR = "UNSPLASH_ACCESS_KEY"

BASE_CONFIG: Dict[str, Dict[str, Any]] = {
    "database": {
        "sqlite_path": "sunflower.db",
        "seed_file": "data/plants.json",
    },
    "unsplash": {
        "base_url": "https://api.unsplash.com/",
        "access_key": None,
        "page_size": 25,
        "timeout_seconds": 20,
    },
    "state": {
        "path": ".sunflower_state.json",
    },
    "workers": {
        "max_workers": 4,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}


def _merge_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay each user section on top of the built-in defaults."""
    merged = deepcopy(BASE_CONFIG)
    for section, values in config.items():
        if values is None:
            continue
        if section in merged:
            if not isinstance(values, dict):
                raise ValueError(f"Config section '{section}' must be a dictionary")
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def load_config(path: Path | None = None, *, required: bool = False) -> Dict[str, Any]:
    """
    Load the sunflower configuration from YAML, merged over built-in defaults.

    Args:
        path: Optional path to the config file. Defaults to sunflower.config.yaml
        required: If True, a missing file is an error instead of "use defaults"

    Returns:
        Dictionary with database, unsplash, state, workers and logging sections

    Raises:
        FileNotFoundError: If required and the config file doesn't exist
        ValueError: If the config structure is invalid
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif required:
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    if not isinstance(raw, dict):
        raise ValueError("Config must be a dictionary")

    config = _merge_defaults(raw)

    env_key = os.environ.get(ACCESS_KEY_ENV_VAR)
    if env_key:
        config["unsplash"]["access_key"] = env_key

    page_size = config["unsplash"].get("page_size")
    if not isinstance(page_size, int) or page_size <= 0:
        raise ValueError("unsplash.page_size must be a positive integer")

    max_workers = config["workers"].get("max_workers")
    if not isinstance(max_workers, int) or max_workers <= 0:
        raise ValueError("workers.max_workers must be a positive integer")

    return config
