"""
Tests for the Process Supervisor.

Requires Python 3.11+.
"""

import os
import signal
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from supervisor.process_supervisor import ChildState, ProcessSupervisor
from tests.conftest import started_records, wait_until

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals and launchers")


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


class TestProcessSupervisor:
    """Test cases for ProcessSupervisor."""

    @pytest.fixture
    def supervisor(self):
        supervisor = ProcessSupervisor(
            terminate_timeout=5.0,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        yield supervisor
        supervisor.terminate()

    def test_initially_absent(self, supervisor: ProcessSupervisor):
        assert supervisor.state is ChildState.ABSENT
        assert supervisor.pid is None
        assert not supervisor.is_running
        assert supervisor.terminate() is None

    def test_swap_from_absent(
        self, supervisor: ProcessSupervisor, output_dir: Path, make_artifact: Callable[[Path], Path]
    ):
        temp = make_artifact(output_dir / "tmp_app")
        artifact = output_dir / "app"

        assert supervisor.swap(temp, artifact, ["--port", "8080"], cwd=output_dir)

        assert supervisor.state is ChildState.RUNNING
        assert supervisor.is_running
        assert artifact.is_file()
        assert not temp.exists()

        assert wait_until(lambda: len(started_records(output_dir)) == 1)
        record = started_records(output_dir)[0]
        assert record["argv"] == ["--port", "8080"]
        assert Path(record["cwd"]).resolve() == output_dir.resolve()

    def test_swap_replaces_running_child(
        self, supervisor: ProcessSupervisor, output_dir: Path, make_artifact: Callable[[Path], Path]
    ):
        artifact = output_dir / "app"
        supervisor.swap(make_artifact(output_dir / "tmp_app"), artifact)
        first_pid = supervisor.pid

        assert supervisor.swap(make_artifact(output_dir / "tmp_app"), artifact)

        assert supervisor.pid != first_pid
        assert not pid_alive(first_pid)
        assert supervisor.is_running

    def test_rename_failure_leaves_slot_empty(
        self, supervisor: ProcessSupervisor, output_dir: Path, make_artifact: Callable[[Path], Path]
    ):
        artifact = output_dir / "app"
        supervisor.swap(make_artifact(output_dir / "tmp_app"), artifact)
        old_pid = supervisor.pid

        assert not supervisor.swap(output_dir / "tmp_app", artifact)

        assert supervisor.state is ChildState.ABSENT
        assert supervisor.pid is None
        assert not pid_alive(old_pid)

    def test_spawn_failure_leaves_slot_empty(self, supervisor: ProcessSupervisor, output_dir: Path):
        temp = output_dir / "tmp_app"
        temp.write_text("not executable")
        temp.chmod(0o644)

        assert not supervisor.swap(temp, output_dir / "app")

        assert supervisor.state is ChildState.ABSENT
        assert not supervisor.is_running

    def test_terminate(
        self, supervisor: ProcessSupervisor, output_dir: Path, make_artifact: Callable[[Path], Path]
    ):
        supervisor.swap(make_artifact(output_dir / "tmp_app"), output_dir / "app")
        pid = supervisor.pid

        returncode = supervisor.terminate()

        assert returncode == -signal.SIGTERM
        assert supervisor.state is ChildState.ABSENT
        assert not pid_alive(pid)

    def test_terminate_timeout_escalates_to_kill(
        self, output_dir: Path, make_artifact: Callable[[Path], Path]
    ):
        supervisor = ProcessSupervisor(
            terminate_timeout=0.5, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
        supervisor.swap(make_artifact(output_dir / "tmp_app"), output_dir / "app", ["--ignore-term"])
        assert wait_until(lambda: len(started_records(output_dir)) == 1)

        returncode = supervisor.terminate()

        assert returncode == -signal.SIGKILL
        assert supervisor.state is ChildState.ABSENT

    def test_terminate_already_exited_child(
        self, supervisor: ProcessSupervisor, output_dir: Path, make_artifact: Callable[[Path], Path]
    ):
        supervisor.swap(make_artifact(output_dir / "tmp_app"), output_dir / "app")
        os.kill(supervisor.pid, signal.SIGKILL)
        assert wait_until(lambda: not supervisor.is_running)

        assert supervisor.terminate() == -signal.SIGKILL
        assert supervisor.state is ChildState.ABSENT
