"""Layered request-rate governor.

Every client identity is counted in three fixed windows at once (daily,
hourly and burst). A window starts at the first request after the previous
one expired, so periods are anchored per client rather than on wall-clock
boundaries. A request is admitted only if every window still has room, in
which case all three counters move together.

Counters live in a :class:`RateCounterStore` owned by the governor. The store
serializes check-and-increment per identity, so a burst of concurrent
requests from one client can never be admitted past a ceiling.
"""

import asyncio
import math
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, Optional, Sequence

from imagegate.app.core.config import Settings
from imagegate.app.core.logging import get_logger

logger = get_logger(__name__)

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR


@dataclass(frozen=True)
class RateWindow:
    """A counting window and the response sent when it is exhausted."""
    label: str
    duration_seconds: int
    limit: int
    error: str
    message: str


@dataclass
class WindowCounter:
    """Count of requests seen in the current period of one window."""
    count: int = 0
    window_start: float = field(default_factory=time.time)

    def expired(self, now: float, duration_seconds: int) -> bool:
        return now - self.window_start >= duration_seconds


@dataclass
class WindowStatus:
    """Read-only view of one window for one identity."""
    label: str
    limit: int
    remaining: int
    reset_time: float
    duration_seconds: int

    @property
    def window_ms(self) -> int:
        return self.duration_seconds * 1000


@dataclass
class AdmitResult:
    """Result of an admission check.

    On rejection ``window`` is the window that refused the request; on
    admission it is the window with the least allowance left, which is what
    the rate limit headers report.
    """
    allowed: bool
    window: RateWindow
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None
    windows: Dict[str, WindowStatus] = field(default_factory=dict)


def build_windows(daily: int = 500, hourly: int = 50, burst: int = 20) -> tuple[RateWindow, ...]:
    """Build the three windows in the order they are checked."""
    return (
        RateWindow(
            label="daily",
            duration_seconds=DAY,
            limit=daily,
            error="daily_limit_exceeded",
            message="You have reached your daily generation limit. Please try again tomorrow.",
        ),
        RateWindow(
            label="hourly",
            duration_seconds=HOUR,
            limit=hourly,
            error="hourly_limit_exceeded",
            message="You have reached your hourly generation limit. Please wait a bit.",
        ),
        RateWindow(
            label="burst",
            duration_seconds=MINUTE,
            limit=burst,
            error="too_many_requests",
            message="You are generating too quickly. Please wait a moment and try again.",
        ),
    )


@dataclass
class _IdentityState:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    counters: Dict[str, WindowCounter] = field(default_factory=dict)
    users: int = 0


class RateCounterStore:
    """In-memory per-identity counter storage.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    - Identities currently being checked are never evicted
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._max_entries = max_entries
        self._states: OrderedDict[str, _IdentityState] = OrderedDict()

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, identity: str) -> bool:
        return identity in self._states

    def _enforce_lru_limit(self) -> None:
        """Evict the least recently used idle identities once over the limit."""
        if len(self._states) < self._max_entries:
            return
        # Drop the oldest 20% in one pass so eviction is not paid per request
        remove_count = max(1, int(self._max_entries * 0.2))
        for identity in list(self._states):
            if remove_count == 0:
                break
            if self._states[identity].users == 0:
                del self._states[identity]
                remove_count -= 1

    @asynccontextmanager
    async def locked(self, identity: str) -> AsyncIterator[Dict[str, WindowCounter]]:
        """Hold the identity's lock and yield its window counters."""
        state = self._states.get(identity)
        if state is None:
            self._enforce_lru_limit()
            state = self._states[identity] = _IdentityState()
        else:
            self._states.move_to_end(identity)

        state.users += 1
        try:
            async with state.lock:
                yield state.counters
        finally:
            state.users -= 1

    def cleanup(self, now: float, windows: Sequence[RateWindow]) -> int:
        """Remove idle identities whose windows have all expired.

        Returns:
            Number of identities removed
        """
        durations = {w.label: w.duration_seconds for w in windows}
        expired = [
            identity
            for identity, state in self._states.items()
            if state.users == 0
            and all(
                counter.expired(now, durations.get(label, 0))
                for label, counter in state.counters.items()
            )
        ]
        for identity in expired:
            del self._states[identity]
        return len(expired)


class RateGovernor:
    """Admits or rejects requests per client identity.

    Windows are checked in the order given (daily, hourly, burst by default)
    and the first full window is reported as the rejection reason.
    """

    def __init__(
        self,
        windows: Sequence[RateWindow],
        store: Optional[RateCounterStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not windows:
            raise ValueError("at least one rate window is required")
        self._windows = tuple(windows)
        self._store = store if store is not None else RateCounterStore()
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        app_settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> "RateGovernor":
        windows = build_windows(
            daily=app_settings.rate_limit_daily,
            hourly=app_settings.rate_limit_hourly,
            burst=app_settings.rate_limit_burst,
        )
        store = RateCounterStore(max_entries=app_settings.rate_limit_max_entries)
        return cls(windows, store=store, clock=clock)

    @property
    def windows(self) -> tuple[RateWindow, ...]:
        return self._windows

    def _statuses(self, counters: Dict[str, WindowCounter], now: float) -> Dict[str, WindowStatus]:
        statuses: Dict[str, WindowStatus] = {}
        for window in self._windows:
            counter = counters.get(window.label)
            if counter is None or counter.expired(now, window.duration_seconds):
                remaining = window.limit
                reset_time = now + window.duration_seconds
            else:
                remaining = max(0, window.limit - counter.count)
                reset_time = counter.window_start + window.duration_seconds
            statuses[window.label] = WindowStatus(
                label=window.label,
                limit=window.limit,
                remaining=remaining,
                reset_time=reset_time,
                duration_seconds=window.duration_seconds,
            )
        return statuses

    async def admit(self, identity: str, now: Optional[float] = None) -> AdmitResult:
        """Check every window and count the request if all have room."""
        now = self._clock() if now is None else now

        async with self._store.locked(identity) as counters:
            for window in self._windows:
                counter = counters.get(window.label)
                if counter is None or counter.expired(now, window.duration_seconds):
                    counter = counters[window.label] = WindowCounter(count=0, window_start=now)

                if counter.count >= window.limit:
                    reset_time = counter.window_start + window.duration_seconds
                    return AdmitResult(
                        allowed=False,
                        window=window,
                        limit=window.limit,
                        remaining=0,
                        reset_time=int(reset_time),
                        retry_after=max(1, math.ceil(reset_time - now)),
                        windows=self._statuses(counters, now),
                    )

            for window in self._windows:
                counters[window.label].count += 1

            statuses = self._statuses(counters, now)

        tightest = min(self._windows, key=lambda w: statuses[w.label].remaining)
        status = statuses[tightest.label]
        return AdmitResult(
            allowed=True,
            window=tightest,
            limit=status.limit,
            remaining=status.remaining,
            reset_time=int(status.reset_time),
            windows=statuses,
        )

    async def snapshot(self, identity: str, now: Optional[float] = None) -> Dict[str, WindowStatus]:
        """Current status of every window for identity, without counting."""
        now = self._clock() if now is None else now
        async with self._store.locked(identity) as counters:
            return self._statuses(counters, now)

    def idle_status(self, now: Optional[float] = None) -> Dict[str, WindowStatus]:
        """Status of every window for a client with no recorded requests.

        Does not touch the store.
        """
        now = self._clock() if now is None else now
        return self._statuses({}, now)

    async def cleanup(self, now: Optional[float] = None) -> int:
        """Forget identities with no live window."""
        now = self._clock() if now is None else now
        removed = self._store.cleanup(now, self._windows)
        if removed:
            logger.debug(f"Rate governor cleanup removed {removed} identities")
        return removed
