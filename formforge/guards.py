import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from formforge.config import config
from formforge.errors import ValidationFailedError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SubmissionGuard:
    """
    Heuristic bot checks run before a submission is validated.

    - honeypot: hidden input that real respondents never fill in
    - timing: the form must have been on screen for at least min_elapsed_ms

    Both failures surface as the same generic validation error so automated
    clients learn nothing about which check tripped.
    """

    def __init__(self, min_elapsed_ms: Optional[int] = None, clock: Callable[[], int] = now_ms):
        self.min_elapsed_ms = config.MIN_SUBMIT_ELAPSED_MS if min_elapsed_ms is None else min_elapsed_ms
        self.clock = clock

    def check(self, honeypot: Optional[str], load_timestamp: Optional[int]) -> None:
        if honeypot:
            logger.warning("Bot detected: honeypot field populated")
            raise ValidationFailedError("Invalid submission")

        if load_timestamp is not None:
            elapsed = self.clock() - load_timestamp
            if elapsed < self.min_elapsed_ms:
                logger.warning(f"Bot detected: submission too fast ({elapsed}ms)")
                raise ValidationFailedError("Invalid submission")


class RateLimiter:
    """
    Process-local fixed-window counter keyed by client address.

    Lost on restart and not shared between workers; swap in a shared store
    when running more than one process. Expired windows are swept at most
    once per window length, so the map only holds addresses seen within the
    last two windows.
    """

    def __init__(self, limit: Optional[int] = None, window_seconds: int = 3600, clock: Callable[[], float] = time.monotonic):
        self.limit = config.SUBMISSIONS_PER_HOUR if limit is None else limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = clock()

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        stale = [key for key, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now
        if stale:
            logger.debug(f"Dropped {len(stale)} expired rate limit windows")

    def try_acquire(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.limit:
                self._windows[key] = (started, count)
                return False
            self._windows[key] = (started, count + 1)
            return True

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_sweep = self.clock()
