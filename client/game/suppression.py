#!/usr/bin/env python
# Echo suppression: swallow the broadcast a view's own write will trigger
import logging
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

ANY_DOCUMENT = "*"


class EchoSuppressor:
    """Short-lived leases that each swallow one inbound notification.

    A lease armed for a document name only matches a notification for that
    document; a lease armed without one matches the next notification of any
    name. Leases expire on their own so a lost echo never wedges the view.
    Time comes from an injectable monotonic clock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._leases: Dict[str, float] = {}

    def arm(self, key: str = ANY_DOCUMENT, ttl: float = 1.0) -> None:
        self._leases[key] = self._clock() + ttl

    def arm_suppression(self, window_ms: int, document_name: Optional[str] = None) -> None:
        self.arm(document_name or ANY_DOCUMENT, window_ms / 1000.0)

    def _expire(self) -> None:
        now = self._clock()
        for key in [k for k, expires_at in self._leases.items() if expires_at <= now]:
            del self._leases[key]

    def consume(self, key: str) -> bool:
        """True when a live lease matches; the lease is used up"""
        self._expire()
        for candidate in (key, ANY_DOCUMENT):
            if candidate in self._leases:
                del self._leases[candidate]
                logger.debug(f"Suppressed echo for {key}")
                return True
        return False

    def is_armed(self, key: Optional[str] = None) -> bool:
        self._expire()
        if key is None:
            return bool(self._leases)
        return key in self._leases or ANY_DOCUMENT in self._leases

    def clear(self) -> None:
        self._leases.clear()
