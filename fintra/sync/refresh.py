"""
Refresh-Trigger Signal

A shared counter owned by the application shell. Incrementing it asks every
mounted page to re-fetch, bypassing its cache. Subscribers receive the new
value and react to the change, not to the number itself.
"""

from typing import Callable, Optional

import structlog

from fintra.audit import AuditLogger
from fintra.models.audit import AuditEventBuilder


logger = structlog.get_logger(__name__)

RefreshListener = Callable[[int], None]


class RefreshSignal:
    """Monotonic refresh counter with synchronous subscribers."""

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._value = 0
        self._listeners: list[RefreshListener] = []
        self._audit = audit_logger or AuditLogger()

    @property
    def value(self) -> int:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def increment(self) -> int:
        """Bump the counter and notify every subscriber once."""
        self._value += 1
        listeners = list(self._listeners)
        self._audit.log(AuditEventBuilder.refresh_triggered(self._value, len(listeners)))
        for listener in listeners:
            listener(self._value)
        return self._value

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that removes the listener; calling it twice is harmless
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
