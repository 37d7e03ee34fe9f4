"""
HotSwap Test Configuration.

Pytest fixtures and configuration. The Go toolchain is replaced by a
small Python script that understands `build -o OUT [flags] SRC`.
Requires Python 3.11+.
"""

import json
import queue
import sys
import textwrap
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from builder.compiler import BuildResult
from utils.config import Settings, WatcherSettings

CHILD_SOURCE = '''\
import json
import os
import signal
import sys
import time

if "--ignore-term" in sys.argv:
    signal.signal(signal.SIGTERM, signal.SIG_IGN)

with open(f"started-{os.getpid()}.json", "w") as f:
    json.dump({"argv": sys.argv[1:], "cwd": os.getcwd()}, f)

time.sleep(120)
'''

TOOLCHAIN_SOURCE = '''\
import pathlib
import sys
import time

args = sys.argv[1:]
if args[:2] != ["build", "-o"]:
    sys.exit(64)

out = pathlib.Path(args[2])
flags = args[3:-1]
src = pathlib.Path(args[-1])

if (src / "BROKEN").exists():
    print("main.go:1: syntax error", file=sys.stderr)
    sys.exit(2)
if "--sleep" in flags:
    time.sleep(5)
if "--no-output" in flags:
    sys.exit(0)

out.write_text({launcher!r})
out.chmod(0o755)
'''


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeObserver:
    """Stand-in for a watchdog observer that records schedules."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.scheduled: list[tuple[str, bool]] = []
        self.handler: Any = None
        self.failing = failing or set()
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        if path in self.failing:
            raise OSError(28, "inotify watch limit reached")
        self.scheduled.append((path, recursive))
        self.handler = handler

    def unschedule_all(self) -> None:
        self.scheduled.clear()

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        pass


class FakeCompiler:
    """Builder double: writes a text artifact and advances the clock."""

    def __init__(self, clock: FakeClock | None = None, build_seconds: float = 0.0) -> None:
        self.clock = clock
        self.build_seconds = build_seconds
        self.fail = False
        self.calls: list[tuple[Path, Path, tuple[str, ...]]] = []
        self.stale_seen: list[bool] = []

    def compile(self, output_path: Path, source_path: Path, build_flags: Any = ()) -> BuildResult:
        self.calls.append((output_path, source_path, tuple(build_flags)))
        self.stale_seen.append(output_path.exists())
        if self.clock is not None:
            self.clock.advance(self.build_seconds)
        if self.fail:
            return BuildResult(False, output_path, self.build_seconds, 2, "toolchain exited with status 2")
        output_path.write_text(f"build {len(self.calls)}")
        return BuildResult(True, output_path, self.build_seconds, 0)


class FakeSupervisor:
    """Process supervisor double that only moves files."""

    def __init__(self) -> None:
        self.swaps: list[tuple[Path, Path, tuple[str, ...], Path | None]] = []
        self.fail = False
        self.pid: int | None = None

    def swap(self, temp_artifact: Path, artifact: Path, args: Any = (), cwd: Path | None = None) -> bool:
        if self.fail:
            return False
        temp_artifact.replace(artifact)
        self.swaps.append((temp_artifact, artifact, tuple(args), cwd))
        self.pid = len(self.swaps)
        return True

    def terminate(self) -> None:
        self.pid = None


def wait_until(predicate: Callable[[], bool], timeout: float = 10.0, interval: float = 0.05) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def drain_until(events: "queue.Queue[Any]", predicate: Callable[[Any], bool], timeout: float = 5.0) -> Any:
    """Consume events until one matches predicate; None on timeout."""
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        try:
            event = events.get(timeout=remaining)
        except queue.Empty:
            return None
        if predicate(event):
            return event


def started_records(directory: Path) -> list[dict[str, Any]]:
    """Records written by child processes on startup."""
    return [json.loads(p.read_text()) for p in sorted(directory.glob("started-*.json"))]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with a fast polling observer."""
    return Settings(
        watcher=WatcherSettings(polling=True, polling_interval=0.1),
    )


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small Go-looking project tree."""
    root = tmp_path / "proj"
    (root / "handlers").mkdir(parents=True)
    (root / "handlers" / "api").mkdir()
    (root / ".git").mkdir()
    (root / "main.go").write_text("package main\n\nfunc main() {}\n")
    (root / "handlers" / "users.go").write_text("package handlers\n")
    (root / "README.txt").write_text("readme\n")
    return root


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def child_script(tmp_path: Path) -> Path:
    path = tmp_path / "child.py"
    path.write_text(CHILD_SOURCE)
    return path


@pytest.fixture
def launcher_source(child_script: Path) -> str:
    """Shell launcher used as the built executable."""
    return textwrap.dedent(
        f"""\
        #!/bin/sh
        exec "{sys.executable}" "{child_script}" "$@"
        """
    )


@pytest.fixture
def fake_toolchain(tmp_path: Path, launcher_source: str) -> list[str]:
    """Command prefix standing in for `go`."""
    script = tmp_path / "fake_go.py"
    script.write_text(TOOLCHAIN_SOURCE.format(launcher=launcher_source))
    return [sys.executable, str(script)]


@pytest.fixture
def make_artifact(launcher_source: str) -> Callable[[Path], Path]:
    """Write an executable launcher at the given path."""

    def _make(path: Path) -> Path:
        path.write_text(launcher_source)
        path.chmod(0o755)
        return path

    return _make
