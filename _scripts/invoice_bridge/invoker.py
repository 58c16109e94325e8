"""
Invoice Bridge - Generator Invoker v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Runs the generator binary inside a prepared GeneratorEnvironment and
captures its output. In development trees a missing binary triggers the
build command first; packaged builds never build.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .context import AppContext
from .environment import GeneratorEnvironment
from .errors import (
    BuildFailedError,
    ExecutionError,
    GenerationTimeoutError,
    LaunchError,
)
from .logging_utils import Timer

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of one successful generator run."""
    stdout: str
    produced_files: List[str] = field(default_factory=list)
    dry_run: bool = False
    returncode: int = 0
    stderr: str = ""

    def summary(self) -> str:
        """stdout followed by the list of copied PDFs, as shown in the GUI."""
        text = self.stdout
        if self.produced_files:
            text += "\n\nGenerated PDFs copied to output directory:\n"
            for name in self.produced_files:
                text += f"- {name}\n"
        return text

    def to_dict(self) -> dict:
        return {
            "stdout": self.stdout,
            "produced_files": list(self.produced_files),
            "dry_run": self.dry_run,
            "summary": self.summary(),
        }


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class GeneratorInvoker:
    """
    Build (when allowed) and execute the generator.

    The call blocks until the process exits or `timeout_seconds` expires;
    a timed-out process is killed by subprocess.run before the error is
    raised.
    """

    def __init__(
        self,
        binary_relpath: str = "_build/default/src/main.exe",
        build_command: Optional[List[str]] = None,
        allow_build: bool = False,
        dry_run_flag: str = "-dry",
        timeout_seconds: Optional[float] = 300.0,
    ):
        self.binary_relpath = binary_relpath
        self.build_command = list(build_command) if build_command else ["dune", "build"]
        self.allow_build = allow_build
        self.dry_run_flag = dry_run_flag
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_context(cls, context: AppContext) -> "GeneratorInvoker":
        config = context.config
        return cls(
            binary_relpath=config.binary_relpath,
            build_command=config.build_command,
            allow_build=context.allow_build,
            dry_run_flag=config.dry_run_flag,
            timeout_seconds=config.timeout_seconds,
        )

    def binary_path(self, env: GeneratorEnvironment) -> Path:
        return env.root / self.binary_relpath

    def command(self, env: GeneratorEnvironment, dry_run: bool = False) -> List[str]:
        args = [str(self.binary_path(env))]
        if dry_run:
            args.append(self.dry_run_flag)
        return args

    # =========================================================================
    # RUN
    # =========================================================================

    def run(self, env: GeneratorEnvironment, dry_run: bool = False) -> GenerationResult:
        """
        Execute the generator in env.root.

        Raises:
            LaunchError: binary missing (packaged) or process cannot start
            BuildFailedError: development build exited non-zero
            ExecutionError: generator exited non-zero (carries stderr)
            GenerationTimeoutError: generator exceeded timeout_seconds
        """
        binary = self.binary_path(env)
        if not binary.exists():
            if not self.allow_build:
                raise LaunchError(
                    str(binary),
                    "generator binary not found in bundle. The application may not be properly built.",
                )
            self.build(env)
            if not binary.exists():
                raise LaunchError(str(binary), "build finished but the generator binary is still missing")

        args = self.command(env, dry_run)
        logger.info(
            f"Running generator: {' '.join(args)}",
            extra={"dry_run": dry_run, "generator_root": str(env.root)},
        )

        with Timer(logger, "generator run", level=logging.INFO):
            completed = self._execute(args, env.root, label="generator")

        stdout = _decode(completed.stdout)
        stderr = _decode(completed.stderr)
        if completed.returncode != 0:
            logger.error(
                f"Generator failed: {stderr.strip()[:200]}",
                extra={"returncode": completed.returncode},
            )
            raise ExecutionError(stderr, completed.returncode)

        return GenerationResult(stdout=stdout, dry_run=dry_run, returncode=0, stderr=stderr)

    def build(self, env: GeneratorEnvironment) -> None:
        """Run the development build command in the generator root."""
        logger.info(f"Generator binary missing, building: {' '.join(self.build_command)}")
        with Timer(logger, "generator build", level=logging.INFO):
            completed = self._execute(self.build_command, env.root, label="build")
        if completed.returncode != 0:
            raise BuildFailedError(_decode(completed.stderr), completed.returncode)

    def _execute(self, args: List[str], cwd: Path, label: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                args,
                cwd=str(cwd),
                capture_output=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"{label} timed out after {self.timeout_seconds}s")
            raise GenerationTimeoutError(self.timeout_seconds, _decode(e.stderr)) from e
        except OSError as e:
            # FileNotFoundError, PermissionError, exec format errors
            raise LaunchError(args[0], e.strerror or str(e)) from e


__all__ = ["GenerationResult", "GeneratorInvoker"]
