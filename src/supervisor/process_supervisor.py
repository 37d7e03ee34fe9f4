"""
HotSwap Process Supervisor.

Owns the single child slot: terminates the old child, swaps the
freshly built artifact into the canonical path and launches it.
Requires Python 3.11+.
"""

import subprocess
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from utils.config import get_settings
from utils.logger import LoggerMixin

_UNSET: Any = object()


class ChildState(str, Enum):
    """States of the child slot."""

    ABSENT = "absent"
    RUNNING = "running"
    TERMINATING = "terminating"


class ProcessSupervisor(LoggerMixin):
    """
    Lifecycle manager for at most one child process.

    The Popen handle never leaves this class. Only the engine's
    worker thread calls into it, so there is no locking.
    """

    def __init__(
        self,
        terminate_timeout: float | None = _UNSET,
        stdout: Any = None,
        stderr: Any = None,
        verbose: bool = False,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            terminate_timeout: Seconds to wait after SIGTERM before killing;
                None waits indefinitely. Defaults to the configured value.
            stdout: Sink for the child's stdout, None inherits
            stderr: Sink for the child's stderr, None inherits
            verbose: Log artifact housekeeping
        """
        if terminate_timeout is _UNSET:
            terminate_timeout = get_settings().supervisor.terminate_timeout_seconds
        self._terminate_timeout = terminate_timeout
        self._stdout = stdout
        self._stderr = stderr
        self._verbose = verbose
        self._process: subprocess.Popen[bytes] | None = None
        self._state = ChildState.ABSENT

    @property
    def state(self) -> ChildState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def is_running(self) -> bool:
        """True while the recorded child has not exited."""
        return self._process is not None and self._process.poll() is None

    def terminate(self) -> int | None:
        """
        Stop the current child, best effort.

        Sends a termination signal, waits up to the configured
        timeout, then kills. The slot ends up ABSENT whatever happens.

        Returns:
            The child's exit status, if one was observed
        """
        process = self._process
        if process is None:
            self._state = ChildState.ABSENT
            return None

        self._state = ChildState.TERMINATING
        returncode = process.poll()
        try:
            if returncode is None:
                process.terminate()
                try:
                    returncode = process.wait(timeout=self._terminate_timeout)
                except subprocess.TimeoutExpired:
                    self.log.warning(
                        "child_terminate_timeout",
                        pid=process.pid,
                        timeout=self._terminate_timeout,
                    )
                    process.kill()
                    returncode = process.wait()
        except OSError as e:
            self.log.error("child_terminate_failed", pid=process.pid, error=str(e))
        finally:
            self._process = None
            self._state = ChildState.ABSENT

        self.log.debug("child_stopped", pid=process.pid, returncode=returncode)
        return returncode

    def swap(
        self,
        temp_artifact: Path,
        artifact: Path,
        args: Sequence[str] = (),
        cwd: Path | None = None,
    ) -> bool:
        """
        Replace the running child with a fresh one built at temp_artifact.

        Args:
            temp_artifact: Freshly built executable
            artifact: Canonical executable path
            args: Run-time arguments for the child
            cwd: Working directory for the child, defaults to artifact's parent

        Returns:
            True if a new child is running afterwards
        """
        temp_artifact = Path(temp_artifact)
        artifact = Path(artifact)

        if self._process is not None:
            self.terminate()

        if artifact.exists():
            try:
                artifact.unlink()
            except OSError as e:
                self.log.error("remove_old_artifact_failed", path=str(artifact), error=str(e))
                return False
            if self._verbose:
                self.log.info("removed_old_artifact", path=str(artifact))

        try:
            temp_artifact.rename(artifact)
        except OSError as e:
            self.log.error(
                "artifact_rename_failed",
                src=str(temp_artifact),
                dest=str(artifact),
                error=str(e),
            )
            return False

        return self.spawn(artifact, args, cwd)

    def spawn(self, artifact: Path, args: Sequence[str] = (), cwd: Path | None = None) -> bool:
        """Launch artifact into the empty slot."""
        if self._process is not None:
            self.terminate()

        artifact = Path(artifact)
        try:
            self._process = subprocess.Popen(
                [str(artifact), *args],
                cwd=str(cwd or artifact.parent),
                stdout=self._stdout,
                stderr=self._stderr,
            )
        except OSError as e:
            self.log.error("child_spawn_failed", path=str(artifact), error=str(e))
            self._process = None
            self._state = ChildState.ABSENT
            return False

        self._state = ChildState.RUNNING
        self.log.debug("child_started", pid=self._process.pid, path=str(artifact))
        return True
