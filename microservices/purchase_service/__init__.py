"""
Purchase Service

Subscription purchase microservice.

Features:
- Plan pricing per billing cycle (monthly / yearly)
- Unique order references per purchase attempt
- Payment provider hand-off returning payable instructions
- Transaction ledger with guarded pending -> paid/failed/expired transitions
- Payment provider notifications over HTTP and NATS
"""

from .models import (
    BillingCycle,
    PaymentMethod,
    SubscriptionPlan,
    Transaction,
    TransactionStatus,
)
from .protocols import PurchaseServiceError

__all__ = [
    "BillingCycle",
    "PaymentMethod",
    "SubscriptionPlan",
    "Transaction",
    "TransactionStatus",
    "PurchaseServiceError",
]
