"""
HotSwap Watch Events.

The single event type flowing through the engine's inbound channel.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class EventKind(str, Enum):
    """Kinds of events the engine reacts to."""

    CREATED = "created"
    WRITTEN = "written"
    ERROR = "error"


@dataclass(frozen=True)
class WatchEvent:
    """A filesystem notification or a watcher error."""

    kind: EventKind
    path: Path | None = None
    is_directory: bool = False
    error: BaseException | None = None
    # Arrival time on the engine clock, stamped by the handler
    timestamp: float | None = field(default=None, compare=False)

    @classmethod
    def created(
        cls, path: str | Path, is_directory: bool = False, timestamp: float | None = None
    ) -> "WatchEvent":
        return cls(EventKind.CREATED, Path(path), is_directory, timestamp=timestamp)

    @classmethod
    def written(cls, path: str | Path, timestamp: float | None = None) -> "WatchEvent":
        return cls(EventKind.WRITTEN, Path(path), timestamp=timestamp)

    @classmethod
    def failed(cls, error: BaseException, timestamp: float | None = None) -> "WatchEvent":
        return cls(EventKind.ERROR, error=error, timestamp=timestamp)
