"""
Nonce source for signed actions.

The exchange rejects a nonce it has already seen for the signer and nonces
far from its clock, so every signed action takes a fresh, strictly increasing
millisecond timestamp. One NonceManager is shared by every caller that signs
for the same account.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from hyperliquid_client.observability.logging import get_logger

logger = get_logger(__name__)

# Warn once issued nonces run this far ahead of the wall clock.
MAX_DRIFT_AHEAD_MS = 1_000


def now_ms() -> int:
    return time.time_ns() // 1_000_000


class NonceManager:
    """
    Issue strictly increasing 64-bit nonces.

    Each call returns `max(clock(), last + 1)`, so bursts faster than the
    clock's resolution still get distinct values. Thread-safe: the read of
    the clock and the update of the last issued value happen under one lock.
    """

    def __init__(self, clock: Callable[[], int] | None = None, start: int = 0):
        self._clock = clock or now_ms
        self._last = start
        self._lock = threading.Lock()

    @property
    def last_nonce(self) -> int:
        return self._last

    def next_nonce(self) -> int:
        with self._lock:
            now = self._clock()
            nonce = now if now > self._last else self._last + 1
            self._last = nonce

        if nonce - now > MAX_DRIFT_AHEAD_MS:
            logger.warning(f"Nonce {nonce} is {nonce - now}ms ahead of the clock")
        return nonce
