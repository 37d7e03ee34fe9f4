"""
HotSwap Debounce Gate.

Collapses bursts of write notifications into a single rebuild trigger.
Requires Python 3.11+.
"""

from utils.logger import LoggerMixin

# Editors commonly emit several writes within about a second per save
BASELINE_SECONDS = 1.0


def should_trigger(now: float, last_accepted: float, tolerance: float) -> bool:
    """
    Decide whether a notification at `now` may trigger a rebuild.

    Args:
        now: Time of the notification (seconds, monotonic)
        last_accepted: Time of the last accepted trigger
        tolerance: Extra spacing on top of the one second baseline

    Returns:
        True if at least 1 + tolerance seconds have passed
    """
    return now - last_accepted >= BASELINE_SECONDS + tolerance


class DebounceGate(LoggerMixin):
    """
    Minimum-interval gate over write notifications.

    The tolerance is calibrated once per session, normally to the
    duration of the first restart cycle, so artifacts written by a
    rebuild cannot immediately trigger another one. It is not
    recalibrated when later builds get slower.

    Only the engine's worker thread touches the gate, so no locking.
    """

    def __init__(self, tolerance: float = 0.0, last_accepted: float = 0.0) -> None:
        self._tolerance = tolerance
        self._last_accepted = last_accepted
        self._calibrated = False

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @property
    def last_accepted(self) -> float:
        return self._last_accepted

    @property
    def is_calibrated(self) -> bool:
        return self._calibrated

    def calibrate(self, tolerance: float) -> None:
        """Set the tolerance for the rest of the session."""
        if self._calibrated:
            self.log.debug("tolerance_already_calibrated", tolerance=self._tolerance)
            return
        self._tolerance = max(0.0, tolerance)
        self._calibrated = True

    def reset(self, now: float) -> None:
        """Treat `now` as the last accepted trigger."""
        self._last_accepted = now

    def accept(self, now: float) -> bool:
        """
        Apply the gate to a notification.

        On acceptance the reference time moves to `now` before the
        caller starts rebuilding, so events arriving during the
        rebuild are debounced against it.
        """
        elapsed = now - self._last_accepted
        if not should_trigger(now, self._last_accepted, self._tolerance):
            self.log.debug(
                "notification_debounced",
                elapsed=round(elapsed, 3),
                required=BASELINE_SECONDS + self._tolerance,
            )
            return False

        self._last_accepted = now
        return True
