"""
In-memory TTL cache for values resolved from Readarr, such as the default
root folder and quality profile of an instance.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

DEFAULTS_TTL_SECONDS = 600


class TTLCache:
    """Simple in-memory cache with TTL, keyed by string."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULTS_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Get cached value if not expired."""
        with self._lock:
            if key in self._cache:
                value, expiry = self._cache[key]
                if self._clock() < expiry:
                    return value
                del self._cache[key]
            return None

    def set(self, key: str, value: Any) -> None:
        """Cache a value for the configured TTL."""
        with self._lock:
            self._cache[key] = (value, self._clock() + self.ttl_seconds)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value, calling ``loader`` on a miss.

        The loader runs outside the lock, so two threads missing at the same
        time may both load; the later write wins.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
