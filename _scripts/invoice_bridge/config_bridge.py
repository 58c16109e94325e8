"""
Invoice Bridge - Legacy Config Bridge v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Uniform read/write surface for the five legacy invoice fields (sender,
bank details, description, amount, recipients). Newer installs keep them
in the shared database's settings table; older installs keep one text
file per field. Callers never see which.

Reads never fail for a missing value: an unset field reads as "" so the
GUI stays usable before the database or config tree exists.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .context import AppContext
from .database import INITIALIZED_KEY, connect, ensure_settings_table
from .errors import DirectoryCreationError, SettingsIOError, UnknownFieldError

logger = logging.getLogger(__name__)


CONFIG_FIELDS = ("sender", "bankdetails", "description", "amount", "recipients")
FIELD_FILENAMES = {name: f"{name}.txt" for name in CONFIG_FIELDS}
_FILENAME_FIELDS = {filename: name for name, filename in FIELD_FILENAMES.items()}


def normalise_field(name: str) -> Optional[str]:
    """Map a field name or legacy filename ("amount.txt") to a field name."""
    if name in FIELD_FILENAMES:
        return name
    return _FILENAME_FIELDS.get(name)


# =============================================================================
# BACKENDS
# =============================================================================

class FieldBackend(ABC):
    """Key/value storage for config values."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Stored value, or None if unset."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def accepts_key(self, key: str) -> bool:
        """Whether arbitrary (non-field) keys can be stored."""
        pass

    @abstractmethod
    def is_initialized(self) -> bool:
        pass


class DatabaseFieldBackend(FieldBackend):
    """Values live in the `settings` table of the shared database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def get(self, key: str) -> Optional[str]:
        if not self.db_path.exists():
            return None
        conn = connect(self.db_path)
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        except sqlite3.DatabaseError as e:
            # Settings table not created yet, or not a database at all
            logger.debug(f"Settings lookup for {key} degraded to empty: {e}")
            return None
        finally:
            conn.close()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        conn = connect(self.db_path)
        try:
            ensure_settings_table(conn)
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def accepts_key(self, key: str) -> bool:
        return True

    def is_initialized(self) -> bool:
        return self.get(INITIALIZED_KEY) is not None


class FileFieldBackend(FieldBackend):
    """Values live in <config_dir>/<field>.txt."""

    def __init__(self, config_dir: Path, settings_path: Optional[Path] = None):
        self.config_dir = Path(config_dir)
        self.settings_path = Path(settings_path) if settings_path else None

    def _file_for(self, key: str) -> Path:
        return self.config_dir / FIELD_FILENAMES[key]

    def get(self, key: str) -> Optional[str]:
        if key not in FIELD_FILENAMES:
            return None
        path = self._file_for(key)
        if not path.exists():
            return None
        # newline="" keeps line endings byte-for-byte
        with path.open("r", encoding="utf-8", newline="") as handle:
            return handle.read()

    def set(self, key: str, value: str) -> None:
        path = self._file_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(str(path.parent), e.strerror or str(e), "config directory") from e
        try:
            with path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(value)
        except OSError as e:
            raise SettingsIOError("write", str(path), e.strerror or str(e)) from e

    def accepts_key(self, key: str) -> bool:
        return key in FIELD_FILENAMES

    def is_initialized(self) -> bool:
        return self.settings_path is not None and self.settings_path.exists()


# =============================================================================
# BRIDGE
# =============================================================================

class LegacyConfigBridge:
    """
    Read/write the five legacy fields regardless of backing store.

    Usage:
        bridge = LegacyConfigBridge.for_context(ctx, settings_store)
        bridge.write_field("amount", "1200.00")
        bridge.read_all()   # {"sender": ..., "amount": "1200.00", ...}
    """

    def __init__(self, backend: FieldBackend):
        self.backend = backend

    @classmethod
    def for_context(cls, context: AppContext, settings_store=None) -> "LegacyConfigBridge":
        """Pick the backend for the deployment's storage mode."""
        if context.config.uses_database:
            return cls(DatabaseFieldBackend(context.db_path))

        config_dir = context.default_config_dir
        if settings_store is not None and settings_store.exists():
            configured = settings_store.load().config_directory
            if configured:
                config_dir = Path(configured).expanduser()
        return cls(FileFieldBackend(config_dir, context.settings_path))

    # =========================================================================
    # FIELDS
    # =========================================================================

    def read_field(self, name: str) -> str:
        """Field value, "" if unset or unknown."""
        field = normalise_field(name)
        if field is None:
            return ""
        return self.backend.get(field) or ""

    def write_field(self, name: str, text: str) -> None:
        """
        Raises:
            UnknownFieldError: name is not one of CONFIG_FIELDS (nothing is written)
        """
        field = normalise_field(name)
        if field is None:
            raise UnknownFieldError(name, list(CONFIG_FIELDS))
        self.backend.set(field, text)
        logger.debug(f"Wrote config field {field} ({len(text)} chars)")

    def read_all(self) -> Dict[str, str]:
        return {name: self.read_field(name) for name in CONFIG_FIELDS}

    def write_all(self, values: Dict[str, str]) -> None:
        """Write several fields; all names are validated before anything is written."""
        fields = {}
        for name, text in values.items():
            field = normalise_field(name)
            if field is None:
                raise UnknownFieldError(name, list(CONFIG_FIELDS))
            fields[field] = text if text is not None else ""
        for field, text in fields.items():
            self.backend.set(field, text)

    def write_invoice_details(self, description: str, amount: str) -> None:
        self.write_field("description", description)
        self.write_field("amount", amount)

    # =========================================================================
    # RAW KEYS
    # =========================================================================

    def get_value(self, key: str) -> str:
        """Any stored key (database mode) or field; "" if unset."""
        field = normalise_field(key)
        if field is not None:
            return self.read_field(field)
        if not self.backend.accepts_key(key):
            return ""
        return self.backend.get(key) or ""

    def set_value(self, key: str, value: str) -> None:
        field = normalise_field(key)
        if field is not None:
            self.write_field(field, value)
            return
        if not self.backend.accepts_key(key):
            raise UnknownFieldError(key, list(CONFIG_FIELDS))
        self.backend.set(key, value)

    def is_first_run(self) -> bool:
        return not self.backend.is_initialized()


__all__ = [
    "CONFIG_FIELDS",
    "FIELD_FILENAMES",
    "normalise_field",
    "FieldBackend",
    "DatabaseFieldBackend",
    "FileFieldBackend",
    "LegacyConfigBridge",
]
