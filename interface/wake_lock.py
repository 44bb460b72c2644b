"""
Device wake control.

The trigger engine holds a session-long wake hold while running and asks for
a short full wake on critical events. LoggingWakeController tracks holds
in-process for hosts without power management.
"""
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

from core.logger import get_logger

logger = get_logger("wake_lock")


class BaseWakeController(ABC):

    @abstractmethod
    def acquire_session(self, hours: float) -> None:
        pass

    @abstractmethod
    def request_temporary_wake(self, seconds: float) -> None:
        pass

    @abstractmethod
    def release(self) -> None:
        """Release every hold. Idempotent."""
        pass


class LoggingWakeController(BaseWakeController):

    def __init__(self):
        self._lock = threading.Lock()
        self._session_until: Optional[float] = None
        self._wake_until: Optional[float] = None

    @property
    def session_held(self) -> bool:
        with self._lock:
            return self._session_until is not None and time.monotonic() < self._session_until

    def acquire_session(self, hours: float) -> None:
        with self._lock:
            self._session_until = time.monotonic() + hours * 3600
        logger.info("Session wake hold acquired for %.1fh", hours)

    def request_temporary_wake(self, seconds: float) -> None:
        with self._lock:
            self._wake_until = time.monotonic() + seconds
        logger.info("Temporary wake requested for %ds", seconds)

    def release(self) -> None:
        with self._lock:
            held = self._session_until is not None or self._wake_until is not None
            self._session_until = None
            self._wake_until = None
        if held:
            logger.info("Wake holds released")
