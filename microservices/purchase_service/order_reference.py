"""
Order Reference Generator

Order references read ``{prefix}_{timestamp_ns}_{payer_id}``, traceable to
who bought and roughly when without a ledger lookup.
"""

import logging
import threading
import time
from typing import Callable

from .protocols import OrderReferenceError

logger = logging.getLogger(__name__)

SUBSCRIPTION_PREFIX = "sub"


class OrderReferenceGenerator:
    """
    Generates order references from a nanosecond wall clock.

    Timestamps handed out by one generator strictly increase, so references
    for the same payer never repeat within a process even when the clock
    does not advance between calls. Cross-process uniqueness is enforced by
    the ledger's unique constraint.
    """

    def __init__(
        self,
        prefix: str = SUBSCRIPTION_PREFIX,
        clock: Callable[[], int] = time.time_ns,
    ):
        self.prefix = prefix
        self._clock = clock
        self._last_timestamp = 0
        self._lock = threading.Lock()

    def _next_timestamp(self) -> int:
        try:
            now = int(self._clock())
        except (OSError, OverflowError, ValueError) as e:
            logger.error(f"Clock unavailable while generating order reference: {e}")
            raise OrderReferenceError(f"Clock unavailable: {e}") from e

        with self._lock:
            if now <= self._last_timestamp:
                now = self._last_timestamp + 1
            self._last_timestamp = now
        return now

    def generate(self, payer_id: str) -> str:
        """
        Generate an order reference for a payer.

        Raises:
            OrderReferenceError: clock failure or empty payer id
        """
        payer = str(payer_id).strip() if payer_id is not None else ""
        if not payer:
            raise OrderReferenceError("Payer identity is required for an order reference")

        return f"{self.prefix}_{self._next_timestamp()}_{payer}"


__all__ = ["SUBSCRIPTION_PREFIX", "OrderReferenceGenerator"]
