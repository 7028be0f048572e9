"""Vault path helpers for notevault."""

from __future__ import annotations

from pathlib import Path


NOTEVAULT_DIR = ".notevault"


def find_vault_root(start: Path | None = None) -> Path | None:
    """Walk up from start directory to find the vault root.

    The vault root is identified by a .notevault/ directory, or failing
    that by a Notes/ directory.
    """
    current = (start or Path.cwd()).resolve()
    candidates = [current, *current.parents]
    for directory in candidates:
        if (directory / NOTEVAULT_DIR).is_dir():
            return directory
    for directory in candidates:
        if (directory / "Notes").is_dir():
            return directory
    return None


def get_notevault_dir(vault_root: Path) -> Path:
    """Get .notevault/ directory, creating if needed."""
    d = vault_root / NOTEVAULT_DIR
    d.mkdir(exist_ok=True)
    return d


def resolve_db_path(vault_root: Path, db_path: str) -> Path:
    """Resolve a configured database path against the vault root."""
    p = Path(db_path).expanduser()
    return p if p.is_absolute() else vault_root / p


def get_user_settings_path() -> Path:
    """Get user-level settings.json path."""
    return Path.home() / NOTEVAULT_DIR / "settings.json"


def get_vault_settings_path(vault_root: Path) -> Path:
    """Get vault-level settings.json path."""
    return vault_root / NOTEVAULT_DIR / "settings.json"
