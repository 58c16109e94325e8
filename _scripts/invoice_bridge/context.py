"""
Invoice Bridge - Application Context

Resolved directories and configuration, built once at startup and passed
explicitly into every component. Tests construct one over tmp_path.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import BridgeConfig


def is_frozen() -> bool:
    """True when running from a packaged (PyInstaller-style) build."""
    return bool(getattr(sys, "frozen", False))


def executable_dir() -> Path:
    """Directory the generator topologies are searched from."""
    if is_frozen():
        return Path(sys.executable).resolve().parent
    return Path(sys.argv[0] or __file__).resolve().parent


def platform_data_dir() -> Path:
    """Per-user application data base directory."""
    if sys.platform.startswith("win"):
        return Path(os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming")
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(os.environ.get("XDG_DATA_HOME") or (Path.home() / ".local" / "share"))


def platform_documents_dir() -> Path:
    return Path.home() / "Documents"


@dataclass
class AppContext:
    """Everything a component needs to find its files."""

    data_dir: Path
    documents_dir: Path
    base_dir: Path
    config: BridgeConfig = field(default_factory=BridgeConfig)

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.documents_dir = Path(self.documents_dir)
        self.base_dir = Path(self.base_dir)

    @classmethod
    def from_environment(cls, config: Optional[BridgeConfig] = None) -> "AppContext":
        """
        Build the production context.

        INVOICE_BRIDGE_DATA_DIR and INVOICE_BRIDGE_DOCUMENTS_DIR replace the
        platform directories outright (no app name is appended).
        """
        config = BridgeConfig.from_env(config)

        data_override = os.environ.get("INVOICE_BRIDGE_DATA_DIR")
        docs_override = os.environ.get("INVOICE_BRIDGE_DOCUMENTS_DIR")

        data_dir = Path(data_override) if data_override else platform_data_dir() / config.app_name
        documents_dir = (
            Path(docs_override) if docs_override
            else platform_documents_dir() / config.app_name
        )

        return cls(
            data_dir=data_dir.expanduser(),
            documents_dir=documents_dir.expanduser(),
            base_dir=executable_dir(),
            config=config,
        )

    # =========================================================================
    # DERIVED PATHS
    # =========================================================================

    @property
    def db_path(self) -> Path:
        """Canonical (front-end owned) database file."""
        return self.data_dir / self.config.database_name

    @property
    def settings_path(self) -> Path:
        return self.data_dir / self.config.settings_name

    @property
    def default_output_dir(self) -> Path:
        return self.documents_dir

    @property
    def default_config_dir(self) -> Path:
        return self.data_dir / self.config.config_subdir

    @property
    def allow_build(self) -> bool:
        """Development builds may run the build command; packaged builds never do."""
        if self.config.allow_build is not None:
            return self.config.allow_build
        return not is_frozen()


__all__ = [
    "AppContext",
    "is_frozen",
    "executable_dir",
    "platform_data_dir",
    "platform_documents_dir",
]
