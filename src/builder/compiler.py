"""
HotSwap Builder.

Runs the external toolchain as a blocking subprocess and verifies
that it actually produced an artifact.
Requires Python 3.11+.
"""

import shlex
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from utils.config import Settings, get_settings
from utils.logger import LoggerMixin


@dataclass
class BuildResult:
    """Outcome of one toolchain invocation."""

    success: bool
    output_path: Path
    duration: float
    returncode: int | None = None
    error: str | None = None


class Compiler(LoggerMixin):
    """
    Invokes `<toolchain> build -o <output> [flags...] <source>`.

    Compiler diagnostics go straight to the tool's own stdout/stderr
    unless sinks are supplied.
    """

    def __init__(
        self,
        toolchain: str | Sequence[str] | None = None,
        timeout: float | None = None,
        stdout: Any = None,
        stderr: Any = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the compiler.

        Args:
            toolchain: Build command (string is split shell-style)
            timeout: Seconds before the build is killed; None waits forever
            stdout: Sink for toolchain stdout, None inherits
            stderr: Sink for toolchain stderr, None inherits
            settings: Source of the toolchain and timeout defaults
        """
        settings = settings or get_settings()
        if toolchain is None:
            toolchain = settings.build.toolchain
        if isinstance(toolchain, str):
            toolchain = shlex.split(toolchain)
        if not toolchain:
            raise ValueError("toolchain command must not be empty")

        self._command = list(toolchain)
        self._timeout = timeout if timeout is not None else settings.build.timeout_seconds
        self._stdout = stdout
        self._stderr = stderr

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def build_args(
        self, output_path: Path, source_path: Path, build_flags: Sequence[str] = ()
    ) -> list[str]:
        """Full argument vector for one build."""
        args = [*self._command, "build", "-o", str(output_path)]
        args.extend(flag for flag in build_flags if flag)
        args.append(str(source_path))
        return args

    def compile(
        self, output_path: Path, source_path: Path, build_flags: Sequence[str] = ()
    ) -> BuildResult:
        """
        Build source_path into output_path.

        Never raises for toolchain failures; the result carries the error.
        """
        output_path = Path(output_path)
        source_path = Path(source_path)
        args = self.build_args(output_path, source_path, build_flags)
        cwd = source_path if source_path.is_dir() else source_path.parent

        self.log.debug("build_started", args=args)
        start_time = time.perf_counter()

        def result(success: bool, returncode: int | None = None, error: str | None = None) -> BuildResult:
            return BuildResult(
                success=success,
                output_path=output_path,
                duration=time.perf_counter() - start_time,
                returncode=returncode,
                error=error,
            )

        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                stdout=self._stdout,
                stderr=self._stderr,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return result(False, error=f"build timed out after {self._timeout}s")
        except OSError as e:
            return result(False, error=f"cannot run toolchain: {e}")

        if completed.returncode != 0:
            return result(
                False,
                returncode=completed.returncode,
                error=f"toolchain exited with status {completed.returncode}",
            )

        if not output_path.is_file():
            return result(
                False,
                returncode=completed.returncode,
                error=f"toolchain reported success but {output_path} is missing",
            )

        build = result(True, returncode=completed.returncode)
        self.log.debug("build_finished", duration=round(build.duration, 3))

        return build
