"""Per-connection frame throttling for the WebSocket endpoint."""

import time


class TokenBucket:
    """Allow ``rate`` frames per second on average with bursts up to ``burst``.

    The bucket starts full. allow() takes one token and reports False once
    the bucket is empty.
    """

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._stamp = time.monotonic()

    @property
    def tokens(self) -> float:
        self._refill(time.monotonic())
        return self._tokens

    def allow(self, now: float | None = None) -> bool:
        self._refill(time.monotonic() if now is None else now)
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._stamp)
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
        self._stamp = now
