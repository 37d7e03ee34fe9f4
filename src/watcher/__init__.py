"""
HotSwap File Watcher Package.

Recursive directory registration and write-event debouncing.
Requires Python 3.11+.
"""

from watcher.debouncer import DebounceGate, should_trigger
from watcher.directory_watcher import DirectoryWatcher, StartupError
from watcher.events import EventKind, WatchEvent

__all__ = [
    "DebounceGate",
    "should_trigger",
    "DirectoryWatcher",
    "StartupError",
    "EventKind",
    "WatchEvent",
]
