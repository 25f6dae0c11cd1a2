"""User configuration for declutter.

Settings live in ``~/.declutter/config.json``. A missing or unreadable file
means defaults; configuration problems are never fatal.
"""

import json
import os
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from declutter.scanner import expand_path


def config_dir() -> Path:
    """Directory holding the config file (``DECLUTTER_CONFIG_DIR`` overrides)."""
    override = os.environ.get("DECLUTTER_CONFIG_DIR")
    if override:
        return expand_path(override)
    return expand_path("~/.declutter")


def config_file() -> Path:
    return config_dir() / "config.json"


class Settings(BaseModel):
    """Tunable scan and cleanup policy."""

    protected_paths: list[str] = Field(default_factory=list)
    excluded_categories: list[str] = Field(default_factory=list)
    duplicate_roots: list[str] = Field(
        default_factory=lambda: ["~/Downloads", "~/Documents", "~/Desktop", "~/Pictures"]
    )
    duplicate_min_size_bytes: int = Field(default=1024, ge=0)
    large_file_min_bytes: int = Field(default=50 * 1024 * 1024, ge=0)
    max_workers: int = Field(default=8, ge=1)
    size_chunk_files: int = Field(default=500, ge=1)
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    def is_protected(self, path: str | Path) -> bool:
        """Check if a path is, or lives under, a protected path."""
        expanded = str(expand_path(str(path)))
        for protected in self.protected_paths:
            protected_expanded = str(expand_path(protected))
            if expanded == protected_expanded or expanded.startswith(protected_expanded + "/"):
                return True
        return False


def log_directory(settings: Settings) -> str:
    """Configured log directory, defaulting to ``logs`` beside the config file."""
    return settings.log_dir or str(config_dir() / "logs")


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or config_file()
    if not path.exists():
        return Settings()

    try:
        with open(path) as f:
            return Settings.model_validate(json.load(f))
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        logger.warning("Ignoring unreadable config {}: {}", path, e)
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> bool:
    """Save settings to disk."""
    path = path or config_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(settings.model_dump(), f, indent=2)
        return True
    except OSError as e:
        logger.error("Could not save config {}: {}", path, e)
        return False


def add_protection(path: str, config_path: Path | None = None) -> dict:
    """Protect a path from scanning and cleanup."""
    settings = load_settings(config_path)
    expanded = str(expand_path(path))

    if expanded in settings.protected_paths:
        return {"success": False, "error": f"Already protected: {expanded}"}

    settings.protected_paths.append(expanded)
    if not save_settings(settings, config_path):
        return {"success": False, "error": "Could not save configuration"}
    return {"success": True, "path": expanded}


def remove_protection(path: str, config_path: Path | None = None) -> dict:
    """Remove a path from the protected list."""
    settings = load_settings(config_path)
    expanded = str(expand_path(path))

    if expanded not in settings.protected_paths:
        return {"success": False, "error": f"Not protected: {expanded}"}

    settings.protected_paths.remove(expanded)
    if not save_settings(settings, config_path):
        return {"success": False, "error": "Could not save configuration"}
    return {"success": True, "path": expanded}
