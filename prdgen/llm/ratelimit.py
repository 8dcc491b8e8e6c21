from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List

from .errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Per-model request log over a trailing time window.

    Each check filters the model's timestamps down to the window, rejects
    when the limit is already reached, and otherwise records the attempt.
    Rejected attempts are not recorded. The check-then-record step never
    yields, so callers sharing one limiter cannot undercount.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        self.max_requests = max_requests
        self.window_s = window_s
        self._clock = clock
        self._log: Dict[str, List[float]] = {}

    def _prune(self, now: float) -> None:
        # drop models whose whole log has aged out
        for model_id in list(self._log):
            recent = [t for t in self._log[model_id] if now - t < self.window_s]
            if recent:
                self._log[model_id] = recent
            else:
                del self._log[model_id]

    def check(self, model_id: str, provider: str = "") -> None:
        now = self._clock()
        self._prune(now)
        recent = self._log.get(model_id, [])
        if len(recent) >= self.max_requests:
            logger.warning("Rate limit hit for model %s (%d requests in %.0fs)", model_id, len(recent), self.window_s)
            raise ClassifiedError(
                ErrorKind.RATE_LIMIT_EXCEEDED,
                "Rate limit exceeded. Please try again later.",
                provider=provider,
            )
        self._log[model_id] = recent + [now]

    def recent(self, model_id: str) -> int:
        self._prune(self._clock())
        return len(self._log.get(model_id, []))

    def reset(self) -> None:
        self._log.clear()
