"""
Purchase Service Events

Event handlers and publishers for purchase-related events.
"""

from .handlers import PurchaseEventHandlers
from .publishers import PurchaseEventPublisher
from .models import PurchaseEventType, TransactionEventData, PaymentConfirmationEventData

__all__ = [
    "PurchaseEventHandlers",
    "PurchaseEventPublisher",
    "PurchaseEventType",
    "TransactionEventData",
    "PaymentConfirmationEventData",
]
