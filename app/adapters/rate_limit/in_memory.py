"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: every counter entry carries its own lock, so checks for
  different identifiers never wait on each other. The table lock is only
  taken to insert or delete entries.
- Idle entries are reclaimed by a background eviction thread, so memory is
  bounded by the cleanup interval rather than reclaimed immediately.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision, RatePolicy

logger = logging.getLogger(__name__)

DEFAULT_KEY_POLICY = RatePolicy(limit=100, window_seconds=3600)
DEFAULT_ADDRESS_POLICY = RatePolicy(limit=1000, window_seconds=86400)
DEFAULT_CLEANUP_INTERVAL_SECONDS = 600.0


@dataclass
class _CounterEntry:
    count: int
    window_start: float
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass(frozen=True)
class CounterSnapshot:
    """Point-in-time copy of one identifier's window."""

    count: int
    window_start: float


class FixedWindowCounterTable:
    """Mapping of identifier -> fixed-window counter.

    Entries are created lazily on first check and removed only by
    :meth:`evict_expired`.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, _CounterEntry] = {}
        self._entries_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def _get_or_create(self, identifier: str) -> _CounterEntry:
        entry = self._entries.get(identifier)
        if entry is not None:
            return entry

        with self._entries_lock:
            entry = self._entries.get(identifier)
            if entry is None:
                entry = _CounterEntry(count=0, window_start=self._clock())
                self._entries[identifier] = entry
            return entry

    def check_and_increment(self, identifier: str, limit: int, window_seconds: float) -> bool:
        """Consume one slot for ``identifier`` if its window has room.

        The reset, the limit check and the increment happen under the entry
        lock, so concurrent calls for the same identifier are serialized and
        never over-admit.

        Args:
            identifier: Non-empty identifier (validated by the caller).
            limit: Max admissions per window.
            window_seconds: Window length in seconds.

        Returns:
            True when admitted, False when the window is full. A rejected
            call leaves the stored count untouched.
        """

        while True:
            entry = self._get_or_create(identifier)
            with entry.lock:
                if entry.evicted:
                    # Removed by the eviction thread after lookup; use a fresh entry.
                    continue

                now = self._clock()
                if now - entry.window_start >= window_seconds:
                    entry.count = 0
                    entry.window_start = now

                if entry.count >= limit:
                    return False

                entry.count += 1
                return True

    def evict_expired(self, window_seconds: float) -> int:
        """Remove entries whose window elapsed with no further traffic.

        An entry is removed when ``now - window_start > window_seconds``,
        regardless of its count.

        Returns:
            Number of entries removed.
        """

        with self._entries_lock:
            candidates = list(self._entries.items())

        removed = 0
        for identifier, entry in candidates:
            with entry.lock:
                if entry.evicted or self._clock() - entry.window_start <= window_seconds:
                    continue
                entry.evicted = True
                with self._entries_lock:
                    if self._entries.get(identifier) is entry:
                        del self._entries[identifier]
                removed += 1
        return removed

    def snapshot(self, identifier: str) -> CounterSnapshot | None:
        """Return a copy of the entry for ``identifier`` without creating one."""

        entry = self._entries.get(identifier)
        if entry is None:
            return None
        with entry.lock:
            if entry.evicted:
                return None
            return CounterSnapshot(count=entry.count, window_start=entry.window_start)


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Two-policy fixed-window limiter (per API key and per client address).

    Construction starts the eviction thread unless ``autostart`` is False.
    The thread wakes every ``cleanup_interval_seconds`` and scans both tables.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        key_policy: RatePolicy = DEFAULT_KEY_POLICY,
        address_policy: RatePolicy = DEFAULT_ADDRESS_POLICY,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        autostart: bool = True,
    ) -> None:
        """Initialize the limiter.

        Args:
            key_policy: Policy applied per API key.
            address_policy: Policy applied per client address.
            cleanup_interval_seconds: Period of the eviction thread.
            clock: Monotonic time source in seconds.
            autostart: Start the eviction thread immediately.

        Raises:
            ValueError: If cleanup_interval_seconds is not positive.
        """
        if cleanup_interval_seconds <= 0:
            raise ValueError("cleanup_interval_seconds must be > 0")

        self.key_policy = key_policy
        self.address_policy = address_policy
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.keys = FixedWindowCounterTable(clock=clock)
        self.addresses = FixedWindowCounterTable(clock=clock)

        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None

        if autostart:
            self.start()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check_key(self, api_key: str) -> bool:
        return self.keys.check_and_increment(
            api_key, self.key_policy.limit, self.key_policy.window_seconds
        )

    def check_address(self, client_address: str) -> bool:
        return self.addresses.check_and_increment(
            client_address, self.address_policy.limit, self.address_policy.window_seconds
        )

    def evaluate_request(self, client_address: str, api_key: str = "") -> RateLimitDecision:
        # A request rejected by address must not consume key quota.
        if not self.check_address(client_address):
            return RateLimitDecision.REJECTED_ADDRESS

        if api_key and not self.check_key(api_key):
            return RateLimitDecision.REJECTED_KEY

        return RateLimitDecision.ADMITTED

    def evict_expired(self) -> int:
        """Run one eviction pass over both tables.

        Returns:
            Total number of entries removed.
        """

        removed_keys = self.keys.evict_expired(self.key_policy.window_seconds)
        removed_addresses = self.addresses.evict_expired(self.address_policy.window_seconds)

        logger.debug(
            "rate_limit.eviction",
            extra={
                "removed_keys": removed_keys,
                "removed_addresses": removed_addresses,
                "remaining_keys": len(self.keys),
                "remaining_addresses": len(self.addresses),
            },
        )
        return removed_keys + removed_addresses

    def stats(self) -> dict[str, int | float | bool]:
        """Return entry counts and policy settings without exposing identifiers."""

        return {
            "key_entries": len(self.keys),
            "address_entries": len(self.addresses),
            "key_limit": self.key_policy.limit,
            "key_window_seconds": self.key_policy.window_seconds,
            "address_limit": self.address_policy.limit,
            "address_window_seconds": self.address_policy.window_seconds,
            "cleanup_interval_seconds": self.cleanup_interval_seconds,
            "running": self.running,
        }

    def _run_eviction(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.cleanup_interval_seconds):
            try:
                self.evict_expired()
            except Exception:
                logger.exception("rate_limit.eviction_failed")

    def start(self) -> None:
        """Start the eviction thread. No-op if it is already running.

        A stopped limiter can be started again; each run gets its own stop
        signal, so a thread from an earlier run never outlives its ``stop()``.
        """

        with self._state_lock:
            if self._thread is not None:
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_eviction,
                args=(self._stop_event,),
                name="rate-limit-eviction",
                daemon=True,
            )
            self._thread.start()

        logger.info(
            "rate_limit.eviction_started",
            extra={"cleanup_interval_s": self.cleanup_interval_seconds},
        )

    def stop(self) -> None:
        """Signal the eviction thread and wait for it to exit.

        Safe to call more than once; calls while not running are no-ops.
        """

        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            self._stop_event.set()

        thread.join()
        logger.info("rate_limit.eviction_stopped")
