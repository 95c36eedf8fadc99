"""
In-memory store of single-use OAuth state tokens.

One store per connection.  A token maps to the user who asked for the
authorization URL and can be consumed exactly once.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from connections.errors import InvalidOAuthState

logger = logging.getLogger(__name__)


class StateStore:
    """Thread-safe map of state token → (user_id, issued_at)."""

    def __init__(
        self,
        ttl_seconds: int = 600,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._states: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def create(self, user_id: str) -> str:
        """Issue a fresh state token for *user_id*."""
        state = secrets.token_hex(16)
        now = self._clock()
        with self._lock:
            self._sweep(now)
            while self.max_entries and len(self._states) >= self.max_entries:
                evicted, _ = self._states.popitem(last=False)
                logger.debug("Evicted oldest OAuth state %s…", evicted[:6])
            self._states[state] = (user_id, now)
        return state

    def peek(self, state: str) -> str:
        """Return the owner of *state* without consuming it."""
        with self._lock:
            entry = self._live_entry(state, self._clock())
        if entry is None:
            raise InvalidOAuthState()
        return entry[0]

    def validate_and_consume(self, state: str) -> str:
        """
        Remove *state* and return its user id.

        Check and delete happen under one lock, so of any number of
        concurrent callers exactly one succeeds.
        """
        with self._lock:
            entry = self._live_entry(state, self._clock())
            if entry is not None:
                del self._states[state]
        if entry is None:
            raise InvalidOAuthState()
        return entry[0]

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    # ── internals (caller holds the lock) ───────────────────────────────

    def _expired(self, issued_at: float, now: float) -> bool:
        return bool(self.ttl_seconds) and now - issued_at > self.ttl_seconds

    def _live_entry(self, state: str, now: float) -> Optional[Tuple[str, float]]:
        entry = self._states.get(state)
        if entry is None:
            return None
        if self._expired(entry[1], now):
            del self._states[state]
            return None
        return entry

    def _sweep(self, now: float) -> None:
        # insertion order == issue order, so stop at the first live entry
        while self._states:
            state, (_, issued_at) = next(iter(self._states.items()))
            if not self._expired(issued_at, now):
                break
            del self._states[state]
