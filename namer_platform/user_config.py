"""User-level configuration persistence for figma-namer clients.

Only non-secret preferences are stored; tokens and model keys are never
written to disk.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

USER_CONFIG_PATH_ENV = "FIGMA_NAMER_USER_CONFIG_PATH"


@dataclass
class UserConfig:
    api_url: str | None = None
    provider: str | None = None
    platform: str | None = None


CONFIG_KEYS = tuple(f.name for f in fields(UserConfig))


def get_user_config_path() -> Path:
    """Return the user-level config file path.

    Uses a platform-appropriate location and supports an override via
    ``FIGMA_NAMER_USER_CONFIG_PATH`` for tests.
    """
    override = os.environ.get(USER_CONFIG_PATH_ENV, "").strip()
    if override:
        return Path(override)

    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))
        return base / "figma-namer" / "config.json"

    return Path.home() / ".config" / "figma-namer" / "config.json"


def load_user_config() -> UserConfig:
    path = get_user_config_path()
    if not path.exists():
        return UserConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return UserConfig()
    if not isinstance(data, dict):
        return UserConfig()

    values = {}
    for key in CONFIG_KEYS:
        value = data.get(key)
        values[key] = (value.strip() or None) if isinstance(value, str) else None
    return UserConfig(**values)


def save_user_config(config: UserConfig) -> None:
    path = get_user_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(config), indent=2), encoding="utf-8")


def set_user_config_value(key: str, value: str) -> UserConfig:
    """Update one key and persist; raises ValueError for unknown keys."""
    if key not in CONFIG_KEYS:
        raise ValueError(f"Unknown config key '{key}'. Valid keys: {', '.join(CONFIG_KEYS)}")
    config = load_user_config()
    setattr(config, key, value.strip() or None)
    save_user_config(config)
    return config
