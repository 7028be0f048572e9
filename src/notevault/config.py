"""notevault configuration management.

Loads and merges settings from vault and user-level settings.json files.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from notevault.utils.paths import (
    get_user_settings_path,
    get_vault_settings_path,
)
from notevault.vault.note import DEFAULT_CONTENT_DIRS


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SETTINGS: dict[str, Any] = {
    "db_path": ".notevault/search.db",
    "default_limit": 5,
    "content_dirs": list(DEFAULT_CONTENT_DIRS),
    "log_level": "WARNING",
}


@dataclass
class NotevaultSettings:
    """Merged notevault settings."""

    db_path: str = ".notevault/search.db"
    default_limit: int = 5
    content_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_DIRS))
    log_level: str = "WARNING"

    def to_dict(self) -> dict[str, Any]:
        return {
            "db_path": self.db_path,
            "default_limit": self.default_limit,
            "content_dirs": self.content_dirs,
            "log_level": self.log_level,
        }


def load_json_file(path: Path) -> dict[str, Any]:
    """Load a JSON file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict.

    - Dicts are recursively merged
    - Lists are replaced (not appended)
    - Scalars are replaced
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(vault_root: Path | None = None) -> NotevaultSettings:
    """Load and merge settings from user + vault levels.

    Precedence: vault settings override user settings override defaults.
    """
    merged = dict(DEFAULT_SETTINGS)

    user_settings = load_json_file(get_user_settings_path())
    if user_settings:
        merged = deep_merge(merged, user_settings)

    if vault_root is not None:
        vault_settings = load_json_file(get_vault_settings_path(vault_root))
        if vault_settings:
            merged = deep_merge(merged, vault_settings)

    return NotevaultSettings(
        db_path=merged.get("db_path", DEFAULT_SETTINGS["db_path"]),
        default_limit=merged.get("default_limit", 5),
        content_dirs=list(merged.get("content_dirs", DEFAULT_CONTENT_DIRS)),
        log_level=merged.get("log_level", "WARNING"),
    )


def save_settings(settings: NotevaultSettings, path: Path) -> None:
    """Save settings to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(settings.to_dict(), indent=2) + "\n",
        encoding="utf-8",
    )


def validate_settings(settings: NotevaultSettings) -> list[str]:
    """Validate settings, returning list of error messages (empty if valid)."""
    errors = []

    if not isinstance(settings.db_path, str) or not settings.db_path.strip():
        errors.append("db_path must be a non-empty string")

    if (
        not isinstance(settings.default_limit, int)
        or isinstance(settings.default_limit, bool)
        or settings.default_limit < 1
    ):
        errors.append("default_limit must be a positive integer")

    if not isinstance(settings.content_dirs, list) or not settings.content_dirs:
        errors.append("content_dirs must be a non-empty list")
    elif not all(isinstance(d, str) and d for d in settings.content_dirs):
        errors.append("content_dirs entries must be non-empty strings")

    if not isinstance(settings.log_level, str) or settings.log_level.upper() not in LOG_LEVELS:
        errors.append(f"log_level must be one of: {', '.join(LOG_LEVELS)}")

    return errors
