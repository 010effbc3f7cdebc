"""Per-caller rate limiting for SubScout."""

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Hashable, Optional

from .logger import get_logger


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admission check."""
    allowed: bool
    retry_after_ms: int = 0

    def __bool__(self) -> bool:
        return self.allowed


class SlidingWindow:
    """Sliding window log of request timestamps for one caller."""

    def __init__(self, max_requests: int, window: float, clock: Callable[[], float]):
        """
        Initialize window.

        Args:
            max_requests: Requests admitted per window
            window: Window width in seconds
            clock: Monotonic time source in seconds
        """
        self.max_requests = max_requests
        self.window = window
        self.clock = clock
        self.timestamps: Deque[float] = deque()
        self.lock = threading.Lock()
        self.retired = False

    def _prune(self, now: float) -> None:
        while self.timestamps and now - self.timestamps[0] >= self.window:
            self.timestamps.popleft()

    def _retry_after_ms(self, now: float) -> int:
        if not self.timestamps:
            return 0
        remaining = self.window - (now - self.timestamps[0])
        return max(0, int(round(remaining * 1000)))

    def acquire(self) -> Optional[RateLimitDecision]:
        """
        Prune, check and record under one lock.

        Returns None if the window was retired; the caller must look up a
        fresh one.
        """
        with self.lock:
            if self.retired:
                return None
            now = self.clock()
            self._prune(now)

            if len(self.timestamps) < self.max_requests:
                self.timestamps.append(now)
                return RateLimitDecision(allowed=True)

            return RateLimitDecision(allowed=False, retry_after_ms=self._retry_after_ms(now))

    def time_until_allowed(self) -> int:
        """Milliseconds until a slot frees up; 0 if one is free now."""
        with self.lock:
            now = self.clock()
            self._prune(now)
            if len(self.timestamps) < self.max_requests:
                return 0
            return self._retry_after_ms(now)

    def retire_if_idle(self) -> bool:
        """Retire the window if nothing is left in it."""
        with self.lock:
            self._prune(self.clock())
            if not self.timestamps:
                self.retired = True
            return self.retired

    def in_window(self) -> int:
        """Get number of requests currently counted against the window."""
        with self.lock:
            self._prune(self.clock())
            return len(self.timestamps)


class RateLimiter:
    """
    Rate limiter that tracks each caller independently.

    Every caller gets its own sliding window with its own lock, so checks for
    different callers never wait on each other. State lives only as long as
    the process.
    """

    def __init__(
        self,
        max_requests: int = 10,
        time_window_ms: int = 180_000,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum requests per caller within the window
            time_window_ms: Window width in milliseconds
            clock: Time source in seconds (defaults to time.monotonic)
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if time_window_ms <= 0:
            raise ValueError("time_window_ms must be positive")

        self.max_requests = max_requests
        self.time_window_ms = time_window_ms
        self.clock = clock or time.monotonic
        self._windows: Dict[Hashable, SlidingWindow] = {}
        self._stats: Dict[Hashable, Dict[str, int]] = defaultdict(lambda: {"allowed": 0, "denied": 0})
        self._lock = threading.Lock()
        self._last_sweep = self.clock()
        self.logger = get_logger("rate_limiter")

    def try_acquire(self, caller_id: Hashable) -> RateLimitDecision:
        """
        Try to admit one request for a caller.

        Args:
            caller_id: Opaque caller identity

        Returns:
            RateLimitDecision; when denied, retry_after_ms says how long until
            the oldest request leaves the window
        """
        self._sweep_if_due()

        decision = None
        while decision is None:
            decision = self._get_or_create_window(caller_id).acquire()

        with self._lock:
            if decision.allowed:
                self._stats[caller_id]["allowed"] += 1
            else:
                self._stats[caller_id]["denied"] += 1

        if not decision.allowed:
            self.logger.warning(
                f"Rate limit exceeded for {caller_id}, retry in {decision.retry_after_ms}ms"
            )

        return decision

    def time_until_allowed(self, caller_id: Hashable) -> int:
        """Milliseconds until the caller may make another request."""
        with self._lock:
            window = self._windows.get(caller_id)
        if window is None:
            return 0
        return window.time_until_allowed()

    def _sweep_if_due(self) -> None:
        """
        Forget callers whose windows have emptied.

        Runs at most once per window width. Stats for a forgotten caller go
        with it.
        """
        now = self.clock()
        with self._lock:
            if now - self._last_sweep < self.time_window_ms / 1000.0:
                return
            self._last_sweep = now
            idle = [caller for caller, window in self._windows.items() if window.retire_if_idle()]
            for caller in idle:
                del self._windows[caller]
                self._stats.pop(caller, None)

        if idle:
            self.logger.debug(f"Dropped {len(idle)} idle rate limit windows")

    def _get_or_create_window(self, caller_id: Hashable) -> SlidingWindow:
        with self._lock:
            window = self._windows.get(caller_id)
            if window is None:
                window = SlidingWindow(self.max_requests, self.time_window_ms / 1000.0, self.clock)
                self._windows[caller_id] = window
            return window

    def reset(self, caller_id: Optional[Hashable] = None) -> None:
        """Forget one caller's window, or every window."""
        with self._lock:
            if caller_id is None:
                self._windows.clear()
            else:
                self._windows.pop(caller_id, None)

    def get_stats(self, caller_id: Optional[Hashable] = None) -> Dict:
        """
        Get admission statistics.

        Args:
            caller_id: Specific caller or None for all

        Returns:
            Statistics dictionary
        """
        with self._lock:
            if caller_id is not None:
                return dict(self._stats.get(caller_id, {"allowed": 0, "denied": 0}))
            return {caller: dict(stats) for caller, stats in self._stats.items()}

    def reset_stats(self) -> None:
        """Reset all statistics."""
        with self._lock:
            self._stats.clear()
