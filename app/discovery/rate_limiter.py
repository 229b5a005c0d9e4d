"""
Per-host politeness delay for catalog requests.
"""

from __future__ import annotations

import threading
import time
from urllib.parse import urlparse


class HostRateLimiter:
    """
    Keeps a minimum interval between consecutive requests to the same host.

    Portal pages and API calls share the limiter, so a crawl that alternates
    between them is still throttled per host.
    """

    def __init__(self, *, rate_limit_per_second: float) -> None:
        self._min_interval = 1.0 / max(0.1, rate_limit_per_second)
        self._last_request_by_host: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def wait(self, url: str) -> float:
        """
        Block until the host of url may be contacted again; returns seconds slept.
        """

        host = urlparse(url).netloc.lower()
        if not host:
            return 0.0

        slept = 0.0
        with self._lock:
            last_time = self._last_request_by_host.get(host)
            if last_time is not None:
                remaining = self._min_interval - (time.monotonic() - last_time)
                if remaining > 0:
                    time.sleep(remaining)
                    slept = remaining
            self._last_request_by_host[host] = time.monotonic()
        return slept
