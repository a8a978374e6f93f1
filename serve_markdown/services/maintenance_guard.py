from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from time import monotonic

RETENTION_GUARD_COOLDOWN_SECONDS = 60 * 60
SIZE_GUARD_COOLDOWN_SECONDS = 5 * 60


class MaintenanceGuard:
    """
    Time-boxed re-entry guard for one maintenance routine.

    `try_acquire()` is a compare-and-set on the expiry timestamp: the first
    caller inside an expired window wins and arms the guard for another
    cooldown, every other caller gets `False` until the window passes.
    There is no release; the guard only expires.
    """

    def __init__(
        self,
        *,
        name: str,
        cooldown_seconds: float,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._name = name
        self._cooldown_seconds = max(0.0, float(cooldown_seconds))
        self._clock = clock
        self._lock = Lock()
        self._expires_at: float | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_seconds

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._expires_at is not None and now < self._expires_at:
                return False
            self._expires_at = now + self._cooldown_seconds
            return True

    def remaining_seconds(self) -> float:
        with self._lock:
            if self._expires_at is None:
                return 0.0
            return max(0.0, self._expires_at - self._clock())


def build_retention_guard(clock: Callable[[], float] = monotonic) -> MaintenanceGuard:
    return MaintenanceGuard(
        name="retention",
        cooldown_seconds=RETENTION_GUARD_COOLDOWN_SECONDS,
        clock=clock,
    )


def build_size_guard(clock: Callable[[], float] = monotonic) -> MaintenanceGuard:
    return MaintenanceGuard(
        name="size_cap",
        cooldown_seconds=SIZE_GUARD_COOLDOWN_SECONDS,
        clock=clock,
    )
