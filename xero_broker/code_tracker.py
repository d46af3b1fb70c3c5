"""
Tracks authorization codes that have already been submitted for exchange.
The whole set is discarded every sweep interval (10 minutes by default). This
approximates code expiry; it is not a per-code TTL, so a code marked just before
a sweep is forgotten at that sweep.
"""
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


def code_prefix(code: str) -> str:
    """Loggable prefix of an authorization code."""
    return code[:10] + "..."


class UsedCodeTracker:
    def __init__(self, sweep_interval: float = 600) -> None:
        self.sweep_interval = sweep_interval
        self._lock = threading.Lock()
        self._used: set[str] = set()

    def has_been_used(self, code: str) -> bool:
        with self._lock:
            return code in self._used

    def mark_used(self, code: str) -> None:
        with self._lock:
            self._used.add(code)

    def claim(self, code: str) -> bool:
        """
        Atomically mark code as used. Returns False if it was already marked, so two
        concurrent callbacks carrying the same code cannot both proceed to the exchange.
        """
        with self._lock:
            if code in self._used:
                return False
            self._used.add(code)
            return True

    def unmark(self, code: str) -> None:
        """Forget code so the client can retry it (exchange failed for a retryable reason)."""
        with self._lock:
            self._used.discard(code)

    def sweep(self) -> int:
        """Discard every tracked code. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._used)
            self._used.clear()
        if dropped:
            logger.info("Used-code sweep cleared %d code(s)", dropped)
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._used)

    async def run_sweeper(self) -> None:
        """Sweep forever on the configured interval. Started from the app lifespan; cancelled on shutdown."""
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()
