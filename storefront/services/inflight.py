"""
In-flight guard for order creation.

A second payment request for an order id that is still being sent to the
gateway is rejected instead of producing a second charge attempt.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from ..logging_config import get_logger
from ..psp.errors import DuplicateRequest

logger = get_logger(__name__)


class InFlightRegistry:
    # Check-and-add happens within one event loop turn, so no lock is needed.

    def __init__(self):
        self._keys: Set[str] = set()

    def is_pending(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def acquire(self, key: str) -> None:
        if key in self._keys:
            logger.warning("duplicate_payment_request_rejected", order_id=key)
            raise DuplicateRequest()
        self._keys.add(key)

    def release(self, key: str) -> None:
        self._keys.discard(key)

    @asynccontextmanager
    async def claim(self, key: str) -> AsyncIterator[None]:
        """Hold ``key`` for the duration of the block; released on success or failure."""
        self.acquire(key)
        try:
            yield
        finally:
            self.release(key)
