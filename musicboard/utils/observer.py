"""Module observer: minimal pub/sub used for lifecycle notifications."""
#
# PURPOSE:
# Components announce state changes (session invalidated, capability state,
# notes refreshed) through Signals. Subscribers are plain callables; a
# subscriber that wants to do async work schedules its own task.
#

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """
    A simple pure-Python signal.
    """
    def __init__(self, name: str = "signal"):
        self.name = name
        self._observers: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]):
        """Subscribe a callback function."""
        if callback not in self._observers:
            self._observers.append(callback)

    def disconnect(self, callback: Callable[..., Any]):
        """Unsubscribe a callback function."""
        if callback in self._observers:
            self._observers.remove(callback)

    def emit(self, *args, **kwargs):
        """Notify all subscribers."""
        for callback in list(self._observers):
            try:
                callback(*args, **kwargs)
            except Exception:
                # One bad subscriber must not break the others
                logger.exception(f"[Signal:{self.name}] Error in observer callback")

    def __len__(self) -> int:
        return len(self._observers)
