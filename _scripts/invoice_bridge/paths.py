"""
Invoice Bridge - Generator Path Resolver v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Finds the generator's working directory across development checkouts and
packaged bundles. Topologies are checked in priority order; the first
candidate that contains the marker subdirectory wins.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import PathNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# TOPOLOGIES
# =============================================================================

@dataclass(frozen=True)
class Topology:
    """A named deployment layout: maps the base directory to a candidate root."""
    label: str
    candidate: Callable[[Path], Path]

    def __call__(self, base_dir: Path) -> Path:
        return self.candidate(base_dir)


def relative_topology(label: str, *parts: str) -> Topology:
    """Topology whose candidate is base_dir joined with fixed parts."""
    return Topology(label, lambda base: Path(base).joinpath(*parts))


def default_topologies(generator_dir_name: str = "ocaml-backend") -> List[Topology]:
    """Known layouts, development trees first, then bundles."""
    name = generator_dir_name
    return [
        relative_topology("dev-sibling", "..", name),
        relative_topology("dev-nested", "..", "..", name),
        relative_topology("dev-workspace", "..", "..", "..", name),
        relative_topology("bundled", name),
        relative_topology("macos-bundle-up", "..", "Resources", "_up_", name),
        relative_topology("macos-bundle", "..", "Resources", name),
    ]


# =============================================================================
# RESOLVER
# =============================================================================

class PathResolver:
    """
    Priority-ordered search for the generator root.

    Usage:
        resolver = PathResolver(exe_dir)
        root = resolver.resolve()   # absolute, marker-verified

    Pass `topologies` to replace the default list, or `explicit` to pin a
    directory (still marker-verified).
    """

    def __init__(
        self,
        base_dir: Path,
        topologies: Optional[Sequence[Topology]] = None,
        marker: str = "src",
        explicit: Optional[Path] = None,
    ):
        self.base_dir = Path(base_dir)
        self.topologies = list(topologies) if topologies is not None else default_topologies()
        self.marker = marker
        self.explicit = Path(explicit) if explicit else None

    @classmethod
    def from_context(cls, context) -> "PathResolver":
        config = context.config
        return cls(
            base_dir=context.base_dir,
            topologies=default_topologies(config.generator_dir_name),
            marker=config.marker_dir,
            explicit=Path(config.generator_dir).expanduser() if config.generator_dir else None,
        )

    def candidates(self) -> List[tuple]:
        """(label, path) pairs in search order, duplicates removed."""
        if self.explicit is not None:
            return [("explicit", self.explicit)]

        pairs = [(topology.label, topology(self.base_dir)) for topology in self.topologies]

        seen = set()
        unique = []
        for label, path in pairs:
            key = str(_normalise(path))
            if key in seen:
                continue
            seen.add(key)
            unique.append((label, path))
        return unique

    def is_generator_root(self, path: Path) -> bool:
        return path.is_dir() and (path / self.marker).is_dir()

    def resolve(self) -> Path:
        """
        Return the first candidate containing the marker directory.

        Raises:
            PathNotFoundError: no candidate matched; lists everything tried
        """
        tried = []
        for label, path in self.candidates():
            if self.is_generator_root(path):
                resolved = path.resolve()
                logger.debug(f"Generator root found via {label}: {resolved}")
                return resolved
            tried.append(f"{label} ({_normalise(path)})")

        logger.error(f"Generator root not found from {self.base_dir}")
        raise PathNotFoundError(tried, marker=self.marker)


def _normalise(path: Path) -> Path:
    """Lexically collapse '..' without touching the filesystem."""
    return Path(os.path.normpath(str(path)))


__all__ = [
    "Topology",
    "relative_topology",
    "default_topologies",
    "PathResolver",
]
