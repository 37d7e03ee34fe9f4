"""
HotSwap Engine.

Wires the directory watcher, debounce gate, builder and process
supervisor into one control loop: a single worker thread drains a
bounded event channel and runs restart cycles one at a time.
Requires Python 3.11+.
"""

import queue
import threading
import time
from collections.abc import Callable
from typing import Any

from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from builder.compiler import Compiler
from supervisor.process_supervisor import ProcessSupervisor
from utils.config import Settings, get_settings
from utils.logger import LoggerMixin
from utils.options import RestartOptions
from watcher.debouncer import DebounceGate
from watcher.directory_watcher import DirectoryWatcher, StartupError
from watcher.events import EventKind, WatchEvent

# Sentinel that ends the worker loop
_STOP = None


class Restarter(LoggerMixin):
    """
    Watches a source tree and keeps a freshly built child running.

    Usage:
        restarter = Restarter(RestartOptions(source=Path("."), verbose=True))
        restarter.watch()
        restarter.run_forever()
    """

    def __init__(
        self,
        options: RestartOptions | None = None,
        settings: Settings | None = None,
        compiler: Compiler | None = None,
        supervisor: ProcessSupervisor | None = None,
        observer_factory: Callable[[], Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the engine.

        Args:
            options: Session options; defaults watch the current directory
            settings: Ambient settings; defaults to get_settings()
            compiler: Builder, defaults to the configured toolchain
            supervisor: Child slot owner, defaults to one using options' sinks
            observer_factory: watchdog observer factory
            clock: Monotonic time source used for debouncing and timing
        """
        self.options = options or RestartOptions()
        self._settings = settings or get_settings()
        self._compiler = compiler or Compiler(settings=self._settings)
        self._supervisor = supervisor or ProcessSupervisor(
            terminate_timeout=self._settings.supervisor.terminate_timeout_seconds,
            stdout=self.options.stdout,
            stderr=self.options.stderr,
            verbose=self.options.verbose,
        )
        if observer_factory is None:
            observer_factory = self._default_observer_factory()
        self._observer_factory = observer_factory
        self._clock = clock

        self._gate = DebounceGate()
        self._events: queue.Queue[WatchEvent | None] = queue.Queue(
            maxsize=self._settings.watcher.queue_size
        )
        self._watcher: DirectoryWatcher | None = None
        self._worker: threading.Thread | None = None
        self._stopped = threading.Event()
        self._stopping = threading.Event()
        self._terminate_on_stop = False
        self._cycle_count = 0
        self._success_count = 0

        # Lifecycle hooks
        self.on_compile_finish: Callable[[], Any] | None = None
        self.on_run: Callable[[], Any] | None = None

    def _default_observer_factory(self) -> Callable[[], Any]:
        watcher_settings = self._settings.watcher
        if watcher_settings.polling:
            return lambda: PollingObserver(timeout=watcher_settings.polling_interval)
        return Observer

    @property
    def gate(self) -> DebounceGate:
        return self._gate

    @property
    def compiler(self) -> Compiler:
        return self._compiler

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor

    @property
    def watcher(self) -> DirectoryWatcher | None:
        return self._watcher

    @property
    def cycle_count(self) -> int:
        """Number of restart cycles attempted so far."""
        return self._cycle_count

    @property
    def success_count(self) -> int:
        """Number of restart cycles that ended with a running child."""
        return self._success_count

    def new_watcher(self) -> DirectoryWatcher:
        """Create and start a directory watcher feeding the event channel."""
        watcher = DirectoryWatcher(
            sink=self._events.put,
            observer_factory=self._observer_factory,
            ignore_patterns=self._settings.watcher.ignore_patterns,
            follow_symlinks=self._settings.watcher.follow_symlinks,
            verbose=self.options.verbose,
            clock=self._clock,
        )
        watcher.start()
        return watcher

    def watch(self, background: bool = True) -> None:
        """
        Register the source tree and launch the worker.

        Registration is synchronous; the first restart cycle runs on
        the worker. With background=False no worker is started and the
        caller drives bootstrap() and process_event() itself.

        Raises:
            StartupError: the source tree or the observer are unusable
        """
        self.stop()
        self._stopping.clear()
        self._terminate_on_stop = False

        source = self.options.source
        if not source.is_dir():
            raise StartupError(f"watch root {source} is not a directory")

        self._stopped.clear()
        self._gate = DebounceGate()
        self._events = queue.Queue(maxsize=self._settings.watcher.queue_size)
        self._watcher = self.new_watcher()
        self._watcher.watch(source)

        self.log.info(
            "watch_started",
            source=str(source),
            directories=len(self._watcher.watched_directories),
            extensions=self.options.get_extensions(),
        )

        if background:
            self._worker = threading.Thread(target=self._run, name="hotswap-worker", daemon=True)
            self._worker.start()

    def run_forever(self) -> None:
        """Park the calling thread until stop() or KeyboardInterrupt."""
        try:
            while not self._stopped.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            self.log.info("interrupted")
            self.stop()

    def stop(self, terminate_child: bool = False, timeout: float | None = None) -> None:
        """
        Close the watcher and end the worker.

        While a worker is alive the child is terminated by the worker
        itself once its in-flight cycle has returned, so no cycle can
        spawn a child after the slot was emptied. A cycle in flight is
        cancelled before its swap.

        Args:
            terminate_child: Also stop the running child
            timeout: Seconds to wait for an in-flight cycle; None waits
        """
        self._stopping.set()
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None

        worker = self._worker
        if worker is not None and worker.is_alive():
            self._terminate_on_stop = terminate_child
            # Pending events are discarded so the sentinel always fits
            self._drain()
            self._events.put(_STOP)
            if worker is not threading.current_thread():
                worker.join(timeout)
                if worker.is_alive():
                    self.log.warning("worker_still_running", timeout=timeout)
                elif terminate_child:
                    # Worker may have exited before it saw the flag
                    self._supervisor.terminate()
        elif terminate_child:
            self._supervisor.terminate()
        self._worker = None
        self._stopped.set()

    def _drain(self) -> None:
        while True:
            try:
                self._events.get_nowait()
            except queue.Empty:
                return

    def _run(self) -> None:
        try:
            self.bootstrap()
            while True:
                event = self._events.get()
                if event is _STOP:
                    break
                try:
                    self.process_event(event)
                except Exception as e:
                    # Errors never end the loop
                    self.log.exception("event_processing_failed", error=str(e))
        finally:
            if self._terminate_on_stop:
                self._supervisor.terminate()

    def bootstrap(self) -> float:
        """
        Run the startup restart cycle and calibrate the debounce gate.

        Returns:
            The tolerance in effect for the session
        """
        self._gate.reset(self._clock())
        duration = self.restart()

        tolerance = self.options.tolerance_seconds
        if tolerance is None:
            tolerance = duration
        self._gate.calibrate(tolerance)

        if self.options.verbose:
            self.log.info("tolerance_set", seconds=round(self._gate.tolerance, 3))
        return self._gate.tolerance

    def process_event(self, event: WatchEvent, now: float | None = None) -> bool:
        """
        Handle one event from the channel.

        Args:
            event: The event to handle
            now: Event time; defaults to the event's arrival time, then
                to the engine clock

        Returns:
            True if a restart cycle ran
        """
        if event.kind is EventKind.ERROR:
            self.log.error("watcher_error", error=str(event.error))
            return False

        if event.kind is EventKind.CREATED:
            if event.is_directory and self._watcher is not None:
                self._watcher.watch(event.path)
            return False

        if event.kind is not EventKind.WRITTEN:
            self.log.debug("event_ignored", kind=event.kind)
            return False

        if now is None:
            # Writes queued during a slow cycle are judged by when they arrived
            now = event.timestamp if event.timestamp is not None else self._clock()
        if not self._gate.accept(now):
            return False

        if not self.options.has_extension(event.path.suffix):
            self.log.debug("extension_ignored", path=str(event.path))
            return False

        self.log.info("change_detected", path=str(event.path))
        self.restart()
        return True

    def restart(self) -> float:
        """
        Run one restart cycle: clean, build, swap, spawn.

        Failures are logged and leave any running child untouched
        (build) or the slot empty (swap).

        Returns:
            Duration of the cycle in seconds
        """
        start = self._clock()
        self._cycle_count += 1
        options = self.options
        temp_artifact = options.temp_artifact_path
        artifact = options.artifact_path

        def elapsed() -> float:
            return self._clock() - start

        if self._stopping.is_set():
            self.log.info("restart_cancelled", stage="start")
            return elapsed()

        self.log.info("restarting")

        if temp_artifact.exists():
            try:
                temp_artifact.unlink()
            except OSError as e:
                self.log.error("residue_cleanup_failed", path=str(temp_artifact), error=str(e))
                return elapsed()
            if options.verbose:
                self.log.info("cleaned_residue", path=str(temp_artifact))

        if options.verbose:
            self.log.info("building", source=str(options.source))

        result = self._compiler.compile(temp_artifact, options.source, options.compile_tags)
        if not result.success:
            self.log.error("build_failed", error=result.error, returncode=result.returncode)
            return elapsed()

        if options.verbose:
            self.log.info("build_ok", duration=round(result.duration, 3))
        self._call_hook(self.on_compile_finish, "on_compile_finish")

        if self._stopping.is_set():
            self.log.info("restart_cancelled", stage="swap")
            return elapsed()

        if not self._supervisor.swap(temp_artifact, artifact, options.run_tags, cwd=options.output_dir):
            self.log.error("restart_aborted", artifact=str(artifact))
            return elapsed()

        self._call_hook(self.on_run, "on_run")
        self._success_count += 1
        self.log.info("restart_finished", pid=self._supervisor.pid, duration=round(elapsed(), 3))
        return elapsed()

    def _call_hook(self, hook: Callable[[], Any] | None, name: str) -> None:
        if hook is None:
            return
        try:
            hook()
        except Exception as e:
            self.log.error("hook_failed", hook=name, error=str(e))
