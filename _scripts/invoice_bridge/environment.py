"""
Invoice Bridge - Environment Reconciler v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Prepares the generator's working directory before every run so both
processes observe the same state:
- database mode: link (or copy) the canonical database into the root
- files mode: mirror the five legacy config files into <root>/config

prepare() restarts the full sequence every time, so a partially mirrored
tree left behind by a failed run is healed by the next call.
"""

import errno
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .config_bridge import CONFIG_FIELDS, FIELD_FILENAMES
from .context import AppContext
from .errors import DirectoryCreationError, LinkOrCopyError
from .paths import PathResolver

logger = logging.getLogger(__name__)


MODE_LINK = "link"
MODE_COPY = "copy"

# errno values meaning "this filesystem/platform cannot symlink"
_LINK_UNSUPPORTED_ERRNOS = {
    errno.EPERM,
    errno.ENOSYS,
    getattr(errno, "ENOTSUP", errno.EPERM),
    getattr(errno, "EOPNOTSUPP", errno.EPERM),
}
_WINDOWS_PRIVILEGE_NOT_HELD = 1314


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class GeneratorEnvironment:
    """Resolved generator root plus what was mirrored into it."""
    root: Path
    output_dir: Path
    database_path: Optional[Path] = None
    canonical_database: Optional[Path] = None
    database_mode: Optional[str] = None      # "link", "copy" or None
    config_dir: Optional[Path] = None
    mirrored_files: List[Path] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "root": str(self.root),
            "output_dir": str(self.output_dir),
            "database_path": str(self.database_path) if self.database_path else None,
            "database_mode": self.database_mode,
            "config_dir": str(self.config_dir) if self.config_dir else None,
            "mirrored_files": [str(p) for p in self.mirrored_files],
        }


# =============================================================================
# LINK / COPY STRATEGY
# =============================================================================

def link_unsupported(exc: BaseException) -> bool:
    """True when a symlink attempt failed because linking is unavailable."""
    if isinstance(exc, NotImplementedError):
        return True
    if isinstance(exc, OSError):
        if getattr(exc, "winerror", None) == _WINDOWS_PRIVILEGE_NOT_HELD:
            return True
        return exc.errno in _LINK_UNSUPPORTED_ERRNOS
    return False


def same_file(first: Path, second: Path) -> bool:
    """True when both paths lead to the same file once links are followed."""
    try:
        return first.resolve() == second.resolve()
    except (OSError, RuntimeError):
        # Symlink loop
        return False


def remove_stale(path: Path) -> None:
    """Remove a file or (possibly dangling) symlink if present."""
    if not (path.exists() or path.is_symlink()):
        return
    try:
        path.unlink()
    except OSError as e:
        raise LinkOrCopyError("remove stale", str(path), e.strerror or str(e)) from e


def copy_file(source: Path, target: Path) -> str:
    try:
        shutil.copyfile(source, target)
    except OSError as e:
        raise LinkOrCopyError("copy", f"{source} -> {target}", e.strerror or str(e)) from e
    return MODE_COPY


def link_or_copy(
    source: Path,
    target: Path,
    prefer_link: bool = True,
    symlink: Callable[[Path, Path], None] = os.symlink,
) -> str:
    """
    Mirror source at target, replacing whatever is there.

    Attempts a symlink first; only the "linking unsupported" failure falls
    back to a byte copy. Any other failure raises LinkOrCopyError.

    Returns:
        "link" or "copy"
    """
    if same_file(source, target):
        # Target already is (or links to) the source; removing it would delete the source
        logger.debug(f"{target} already shares {source}")
        return MODE_LINK

    remove_stale(target)

    if prefer_link:
        try:
            symlink(source, target)
            return MODE_LINK
        except (NotImplementedError, OSError) as e:
            if not link_unsupported(e):
                raise LinkOrCopyError("link", f"{target} -> {source}", str(e)) from e
            logger.info(f"Symlinks unavailable ({e}); copying {source.name} instead")

    return copy_file(source, target)


# =============================================================================
# RECONCILER
# =============================================================================

class EnvironmentReconciler:
    """
    Builds a GeneratorEnvironment before each invocation.

    Usage:
        reconciler = EnvironmentReconciler(ctx, settings_store)
        env = reconciler.prepare()
        ... run generator ...
        reconciler.sync_back(env)
    """

    def __init__(
        self,
        context: AppContext,
        settings_store,
        resolver: Optional[PathResolver] = None,
        symlink: Callable[[Path, Path], None] = os.symlink,
    ):
        self.context = context
        self.config = context.config
        self.settings_store = settings_store
        self.resolver = resolver or PathResolver.from_context(context)
        self._symlink = symlink

    def prepare(self) -> GeneratorEnvironment:
        """
        Resolve the generator root and mirror shared state into it.

        Raises:
            PathNotFoundError: generator root undiscoverable
            LinkOrCopyError: a mirroring step failed (names file and operation)
            DirectoryCreationError: generator config directory cannot be created
        """
        root = self.resolver.resolve()
        env = GeneratorEnvironment(root=root, output_dir=root / self.config.output_subdir)

        if self.config.uses_database:
            self._share_database(env)
        else:
            self._mirror_config_files(env)

        logger.info(
            f"Generator environment ready at {root} "
            f"(database={env.database_mode}, mirrored={len(env.mirrored_files)})"
        )
        return env

    def sync_back(self, env: GeneratorEnvironment) -> bool:
        """
        Copy the generator's database back after a run that used the copy
        fallback. Linked databases need nothing.

        Returns:
            True if a copy was written back
        """
        if env.database_mode != MODE_COPY or env.database_path is None:
            return False
        if not env.database_path.exists():
            return False
        copy_file(env.database_path, env.canonical_database)
        logger.info(f"Synced generator database back to {env.canonical_database}")
        return True

    # =========================================================================
    # DATABASE SHARING
    # =========================================================================

    def _share_database(self, env: GeneratorEnvironment) -> None:
        canonical = self.context.db_path
        target = env.root / self.config.database_name

        if not canonical.exists():
            # Empty placeholder; the generator initializes its own schema
            try:
                canonical.parent.mkdir(parents=True, exist_ok=True)
                canonical.touch()
            except OSError as e:
                raise LinkOrCopyError("create placeholder", str(canonical), e.strerror or str(e)) from e
            logger.info(f"Created placeholder database {canonical}")

        env.database_mode = link_or_copy(
            canonical,
            target,
            prefer_link=self.config.link_database,
            symlink=self._symlink,
        )
        env.database_path = target
        env.canonical_database = canonical
        env.mirrored_files.append(target)

    # =========================================================================
    # CONFIG FILE MIRRORING
    # =========================================================================

    def _mirror_config_files(self, env: GeneratorEnvironment) -> None:
        source_dir = self._user_config_dir()
        target_dir = env.root / self.config.config_subdir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(str(target_dir), e.strerror or str(e), "generator config directory") from e

        env.config_dir = target_dir
        for name in CONFIG_FIELDS:
            filename = FIELD_FILENAMES[name]
            source = source_dir / filename
            target = target_dir / filename

            if same_file(source, target):
                # User config directory is the generator's own config directory
                if not source.exists():
                    self._write_empty(target)
                env.mirrored_files.append(target)
                continue

            remove_stale(target)

            if source.exists():
                copy_file(source, target)
            else:
                # Generator must never see a missing optional field
                self._write_empty(target)
            env.mirrored_files.append(target)

    @staticmethod
    def _write_empty(target: Path) -> None:
        try:
            target.write_text("", encoding="utf-8")
        except OSError as e:
            raise LinkOrCopyError("create empty", str(target), e.strerror or str(e)) from e

    def _user_config_dir(self) -> Path:
        settings = self.settings_store.load()
        if settings.config_directory:
            return Path(settings.config_directory).expanduser()
        return self.context.default_config_dir


__all__ = [
    "MODE_LINK",
    "MODE_COPY",
    "GeneratorEnvironment",
    "link_unsupported",
    "same_file",
    "remove_stale",
    "copy_file",
    "link_or_copy",
    "EnvironmentReconciler",
]
