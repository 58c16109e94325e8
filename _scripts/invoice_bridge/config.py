"""
Invoice Bridge - Configuration v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Tuneables for locating, preparing and running the invoice generator.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


STORAGE_DATABASE = "database"
STORAGE_FILES = "files"
STORAGE_MODES = (STORAGE_DATABASE, STORAGE_FILES)


@dataclass
class BridgeConfig:
    """
    Configuration for the generator integration layer.

    Defaults match the packaged desktop build. Use for_testing() for
    temporary trees and from_env() to honour INVOICE_BRIDGE_* overrides.
    """

    # =========================================================================
    # APPLICATION
    # =========================================================================

    app_name: str = "InvoiceSplitter"
    storage_mode: str = STORAGE_DATABASE       # "database" or "files"
    database_name: str = "invoices.db"
    settings_name: str = "settings.json"

    # =========================================================================
    # GENERATOR LOCATION
    # =========================================================================

    generator_dir_name: str = "ocaml-backend"
    generator_dir: Optional[str] = None        # Pin an explicit root
    marker_dir: str = "src"

    # =========================================================================
    # GENERATOR PROCESS
    # =========================================================================

    binary_relpath: str = "_build/default/src/main.exe"
    build_command: List[str] = field(default_factory=lambda: ["dune", "build"])
    allow_build: Optional[bool] = None         # None = only when not frozen
    dry_run_flag: str = "-dry"
    timeout_seconds: Optional[float] = 300.0   # None = wait forever

    # =========================================================================
    # MIRRORING & OUTPUT
    # =========================================================================

    link_database: bool = True                 # False forces copy strategy
    config_subdir: str = "config"
    output_subdir: str = "out"
    artifact_extensions: Tuple[str, ...] = (".pdf",)

    # =========================================================================
    # METHODS
    # =========================================================================

    def __post_init__(self):
        if self.storage_mode not in STORAGE_MODES:
            raise ValueError(
                f"storage_mode must be one of {STORAGE_MODES}, got {self.storage_mode!r}"
            )
        self.artifact_extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.artifact_extensions
        )

    @property
    def uses_database(self) -> bool:
        return self.storage_mode == STORAGE_DATABASE

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to dictionary."""
        return {
            "app_name": self.app_name,
            "storage_mode": self.storage_mode,
            "database_name": self.database_name,
            "settings_name": self.settings_name,
            "generator_dir_name": self.generator_dir_name,
            "generator_dir": self.generator_dir,
            "marker_dir": self.marker_dir,
            "binary_relpath": self.binary_relpath,
            "build_command": list(self.build_command),
            "allow_build": self.allow_build,
            "dry_run_flag": self.dry_run_flag,
            "timeout_seconds": self.timeout_seconds,
            "link_database": self.link_database,
            "config_subdir": self.config_subdir,
            "output_subdir": self.output_subdir,
            "artifact_extensions": list(self.artifact_extensions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeConfig":
        """Create config from dictionary."""
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "artifact_extensions" in values:
            values["artifact_extensions"] = tuple(values["artifact_extensions"])
        return cls(**values)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "BridgeConfig":
        """Load config from JSON file."""
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_env(cls, base: Optional["BridgeConfig"] = None) -> "BridgeConfig":
        """Apply INVOICE_BRIDGE_* environment overrides."""
        data = (base or cls()).to_dict()

        generator_dir = os.environ.get("INVOICE_BRIDGE_GENERATOR_DIR")
        if generator_dir:
            data["generator_dir"] = generator_dir

        storage_mode = os.environ.get("INVOICE_BRIDGE_STORAGE_MODE")
        if storage_mode:
            data["storage_mode"] = storage_mode.strip().lower()

        timeout = os.environ.get("INVOICE_BRIDGE_TIMEOUT")
        if timeout:
            try:
                value = float(timeout)
            except ValueError as e:
                raise ValueError(
                    f"INVOICE_BRIDGE_TIMEOUT must be a number of seconds, got {timeout!r}"
                ) from e
            data["timeout_seconds"] = value if value > 0 else None

        return cls.from_dict(data)

    @classmethod
    def for_testing(cls, **overrides) -> "BridgeConfig":
        """Create config for temporary generator trees (no builds, short timeout)."""
        values = {"allow_build": False, "timeout_seconds": 30.0}
        values.update(overrides)
        return cls(**values)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "BridgeConfig",
    "STORAGE_DATABASE",
    "STORAGE_FILES",
    "STORAGE_MODES",
]
