"""
HotSwap Directory Watcher.

Registers every directory of the watch root with watchdog, one
non-recursive watch per directory, and feeds change notifications
into the engine's event channel.
Requires Python 3.11+.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from utils.logger import LoggerMixin
from watcher.events import WatchEvent

EventSink = Callable[[WatchEvent], None]


class StartupError(RuntimeError):
    """The watch facility or the working directory is unusable."""


class ChangeEventHandler(FileSystemEventHandler, LoggerMixin):
    """
    Translates watchdog events into WatchEvents.

    Only creations (files and directories) and file writes are
    forwarded; the engine ignores everything else anyway.
    """

    def __init__(self, sink: EventSink, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__()
        self._sink = sink
        self._clock = clock

    def dispatch(self, event: Any) -> None:
        # Handler failures travel the same channel as notifications
        try:
            super().dispatch(event)
        except Exception as e:
            self._sink(WatchEvent.failed(e, timestamp=self._clock()))

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        path = os.fsdecode(event.src_path)
        self._sink(WatchEvent.created(path, event.is_directory, timestamp=self._clock()))

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        if event.is_directory:
            return
        self._sink(WatchEvent.written(os.fsdecode(event.src_path), timestamp=self._clock()))

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        # A directory moved into the tree needs registering like a new one
        if event.is_directory:
            path = os.fsdecode(event.dest_path)
            self._sink(WatchEvent.created(path, is_directory=True, timestamp=self._clock()))


class DirectoryWatcher(LoggerMixin):
    """
    Recursive directory registration on top of a watchdog observer.

    The registration set only grows; deleted directories are left
    registered and their watches simply go quiet.
    """

    def __init__(
        self,
        sink: EventSink,
        observer_factory: Callable[[], Any] = Observer,
        ignore_patterns: list[str] | None = None,
        follow_symlinks: bool = False,
        verbose: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the directory watcher.

        Args:
            sink: Receives every WatchEvent (normally a bounded queue's put)
            observer_factory: Callable returning a watchdog observer
            ignore_patterns: Directory names never registered
            follow_symlinks: Descend into symlinked directories
            verbose: Log each registered directory
            clock: Stamps each event with its arrival time
        """
        self._sink = sink
        self._observer_factory = observer_factory
        self._ignore = set(ignore_patterns or [])
        self._follow_symlinks = follow_symlinks
        self._verbose = verbose
        self._handler = ChangeEventHandler(sink, clock)
        self._observer: Any = None
        self._watched: set[Path] = set()

    def start(self) -> None:
        """Create and start the observer; failures here are fatal."""
        if self._observer is not None:
            return
        try:
            observer = self._observer_factory()
            observer.start()
        except Exception as e:
            raise StartupError(f"cannot start file system observer: {e}") from e
        self._observer = observer

    def close(self) -> None:
        """Drop every watch and stop the observer."""
        if self._observer is None:
            return
        self._observer.unschedule_all()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._watched.clear()

    def watch(self, root: Path) -> int:
        """
        Register root and every directory below it.

        Traversal is depth-first over an explicit stack. Directories
        that cannot be listed are logged and their subtree skipped.

        Returns:
            Number of newly registered directories
        """
        registered = 0
        stack = [Path(root)]
        while stack:
            directory = stack.pop()
            if self.register(directory):
                registered += 1

            try:
                with os.scandir(directory) as entries:
                    children = [
                        Path(entry.path)
                        for entry in entries
                        if entry.is_dir(follow_symlinks=self._follow_symlinks)
                        and entry.name not in self._ignore
                    ]
            except OSError as e:
                self.log.warning("directory_list_failed", path=str(directory), error=str(e))
                continue

            # Reversed so the first child is visited first
            stack.extend(sorted(children, reverse=True))
        return registered

    def register(self, directory: Path) -> bool:
        """Subscribe a single directory. Returns False if already watched or on failure."""
        directory = Path(directory)
        if directory in self._watched:
            return False
        if self._observer is None:
            raise StartupError("observer is not running")

        try:
            self._observer.schedule(self._handler, str(directory), recursive=False)
        except OSError as e:
            self.log.warning("directory_watch_failed", path=str(directory), error=str(e))
            return False

        self._watched.add(directory)
        if self._verbose:
            self.log.info("watching", path=str(directory))
        return True

    def is_watched(self, directory: Path) -> bool:
        return Path(directory) in self._watched

    @property
    def watched_directories(self) -> frozenset[Path]:
        return frozenset(self._watched)

    @property
    def is_running(self) -> bool:
        return self._observer is not None
