"""
Lazy, idempotent initialization of optional external clients

Each resource is built at most once per process, on first use, under a lock.
A failed or unconfigured init is remembered (value None) until reset().
"""

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyResource(Generic[T]):
    """Holds one lazily-created client; get() never raises"""

    def __init__(self, name: str, factory: Callable[[], Optional[T]]):
        self.name = name
        self._factory = factory
        self._lock = threading.Lock()
        self._initialized = False
        self._value: Optional[T] = None
        self.error: Optional[str] = None

    def get(self) -> Optional[T]:
        if self._initialized:
            return self._value
        with self._lock:
            if not self._initialized:
                try:
                    self._value = self._factory()
                    if self._value is None:
                        logger.info(f"ℹ️ {self.name} not configured")
                    else:
                        logger.info(f"✅ {self.name} initialized")
                except Exception as e:
                    self._value = None
                    self.error = str(e)
                    logger.warning(f"⚠️ {self.name} unavailable: {e}")
                self._initialized = True
        return self._value

    def is_available(self) -> bool:
        return self.get() is not None

    def reset(self) -> None:
        """Forget the cached client so the next get() re-runs the factory"""
        with self._lock:
            self._initialized = False
            self._value = None
            self.error = None
