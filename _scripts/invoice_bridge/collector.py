"""
Invoice Bridge - Output Collector

Copies generated artifacts from the generator's out/ directory into the
user's configured output directory.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List

from .environment import GeneratorEnvironment
from .errors import OutputCopyError

logger = logging.getLogger(__name__)


class OutputCollector:
    """Scan env.output_dir and copy recognised artifacts to the user's folder."""

    def __init__(self, settings_store, extensions: Iterable[str] = (".pdf",)):
        self.settings_store = settings_store
        self.extensions = tuple(ext.lower() for ext in extensions)

    @classmethod
    def from_context(cls, context, settings_store) -> "OutputCollector":
        return cls(settings_store, context.config.artifact_extensions)

    def is_artifact(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def collect(self, env: GeneratorEnvironment) -> List[str]:
        """
        Copy artifacts; returns filenames in directory-iteration order.

        A missing out/ directory is not an error. A failed copy aborts the
        collection; files copied before it stay in place.

        Raises:
            OutputCopyError: a file could not be read or copied
        """
        source_dir = env.output_dir
        if not source_dir.is_dir():
            logger.debug(f"No generator output directory at {source_dir}")
            return []

        target_dir = Path(self.settings_store.load().output_directory).expanduser()

        copied = []
        try:
            entries = list(os.scandir(source_dir))
        except OSError as e:
            raise OutputCopyError(str(source_dir), e.strerror or str(e)) from e

        for entry in entries:
            path = Path(entry.path)
            if not entry.is_file() or not self.is_artifact(path):
                continue
            try:
                shutil.copyfile(path, target_dir / entry.name)
            except OSError as e:
                raise OutputCopyError(entry.name, e.strerror or str(e)) from e
            copied.append(entry.name)

        logger.info(f"Copied {len(copied)} artifact(s) to {target_dir}", extra={"file_count": len(copied)})
        return copied


__all__ = ["OutputCollector"]
