"""
Purchase Event Models

Event types and payloads published and consumed by the purchase service.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field


class PurchaseEventType(str, Enum):
    """Purchase event types"""
    # Ledger lifecycle (published)
    TRANSACTION_CREATED = "purchase.transaction.created"
    TRANSACTION_PAID = "purchase.transaction.paid"
    TRANSACTION_FAILED = "purchase.transaction.failed"
    TRANSACTION_EXPIRED = "purchase.transaction.expired"

    # Provider confirmations (consumed)
    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_FAILED = "payment.failed"


class TransactionEventData(BaseModel):
    """Payload of purchase.transaction.* events"""
    order_reference: str
    user_id: str
    plan_id: str
    billing_cycle: str
    amount: Decimal
    tokens: int
    status: str
    payment_method: Optional[str] = None
    provider_trade_no: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class PaymentConfirmationEventData(BaseModel):
    """Payload of payment.completed / payment.failed events"""
    model_config = ConfigDict(populate_by_name=True)

    order_reference: str = Field(..., alias="out_trade_no", min_length=1)
    provider_trade_no: Optional[str] = Field(default=None, alias="trade_no")
    amount: Optional[Decimal] = Field(default=None, alias="money")
    reason: Optional[str] = None


__all__ = [
    "PurchaseEventType",
    "TransactionEventData",
    "PaymentConfirmationEventData",
]
