"""
Invoice Bridge - Settings Store v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

JSON-backed persistence for the user's output (and config) directory.
Defaults are created on first access; every directory named in the
settings exists on disk once load() or save() returns.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, Optional

from .context import AppContext
from .database import init_database
from .errors import DirectoryCreationError, SettingsIOError

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class Settings:
    """Persisted front-end settings."""
    output_directory: str
    config_directory: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        data = {"outputDirectory": self.output_directory}
        if self.config_directory:
            data["configDirectory"] = self.config_directory
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Accepts both camelCase and the snake_case keys older builds wrote."""
        output = data.get("outputDirectory", data.get("output_directory")) or ""
        config = data.get("configDirectory", data.get("config_directory")) or None
        return cls(output_directory=str(output), config_directory=str(config) if config else None)


# =============================================================================
# SETTINGS STORE
# =============================================================================

class SettingsStore:
    """
    Load/save Settings for one AppContext.

    Handles:
    - First-run defaults (and first-run database seeding in database mode)
    - Eager directory creation
    - Atomic writes
    """

    def __init__(self, context: AppContext):
        self.context = context

    @property
    def path(self) -> Path:
        return self.context.settings_path

    def exists(self) -> bool:
        return self.path.exists()

    def defaults(self) -> Settings:
        """Settings a fresh install starts with."""
        config_dir = None
        if not self.context.config.uses_database:
            config_dir = str(self.context.default_config_dir)
        return Settings(
            output_directory=str(self.context.default_output_dir),
            config_directory=config_dir,
        )

    # =========================================================================
    # LOAD / SAVE
    # =========================================================================

    def load(self) -> Settings:
        """
        Return persisted settings, creating defaults on first run.

        Raises:
            SettingsIOError: file unreadable or not a JSON object
            DirectoryCreationError: a configured directory cannot be created
        """
        if not self.path.exists():
            return self._create_defaults()

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as e:
            raise SettingsIOError("parse", str(self.path), e.msg) from e
        except OSError as e:
            raise SettingsIOError("read", str(self.path), e.strerror or str(e)) from e

        if not isinstance(data, dict):
            raise SettingsIOError("parse", str(self.path), "expected a JSON object")

        settings = Settings.from_dict(data)
        if not settings.output_directory:
            settings.output_directory = str(self.context.default_output_dir)
        self._ensure_directories(settings)
        return settings

    def save(self, settings: Settings) -> Settings:
        """
        Persist settings after creating every referenced directory.

        An empty output directory means "use the default".
        """
        if not settings.output_directory:
            settings = Settings(
                output_directory=str(self.context.default_output_dir),
                config_directory=settings.config_directory,
            )

        self._ensure_directories(settings)
        self._ensure_directory(self.path.parent, "settings directory")

        serialized = json.dumps(settings.to_dict(), indent=2)
        try:
            with NamedTemporaryFile(
                "w", encoding="utf-8", dir=str(self.path.parent), delete=False
            ) as handle:
                handle.write(serialized)
                handle.write("\n")
                temp_name = handle.name
            os.replace(temp_name, self.path)
        except OSError as e:
            raise SettingsIOError("write", str(self.path), e.strerror or str(e)) from e

        logger.info(f"Saved settings: output={settings.output_directory}")
        return settings

    def reset(self) -> Settings:
        """Delete the settings file and recreate defaults."""
        if self.path.exists():
            try:
                self.path.unlink()
            except OSError as e:
                raise SettingsIOError("delete", str(self.path), e.strerror or str(e)) from e
            logger.info(f"Removed settings file: {self.path}")
        return self.load()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _create_defaults(self) -> Settings:
        settings = self.save(self.defaults())
        if self.context.config.uses_database:
            init_database(self.context.db_path)
        logger.info(f"Created default settings at {self.path}")
        return settings

    def _ensure_directories(self, settings: Settings) -> None:
        self._ensure_directory(Path(settings.output_directory).expanduser(), "output directory")
        if settings.config_directory:
            self._ensure_directory(Path(settings.config_directory).expanduser(), "config directory")

    @staticmethod
    def _ensure_directory(directory: Path, purpose: str) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(str(directory), e.strerror or str(e), purpose) from e


__all__ = ["Settings", "SettingsStore"]
