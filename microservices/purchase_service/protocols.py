"""
Purchase Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import (
    AmountUnit,
    PaymentInstructions,
    PaymentMethod,
    ProviderAmount,
    SubscriptionPlan,
    Transaction,
    TransactionStatus,
)


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class PurchaseServiceError(Exception):
    """Base exception for purchase service errors"""
    error_code = "PURCHASE_ERROR"


class PlanNotFoundError(PurchaseServiceError):
    """Plan is absent from the catalog or inactive"""
    error_code = "PLAN_NOT_FOUND"


class InvalidBillingCycleError(PurchaseServiceError):
    """Billing cycle is not one of the supported values"""
    error_code = "INVALID_BILLING_CYCLE"


class PaymentProviderUnavailableError(PurchaseServiceError):
    """Payment provider did not return usable payment instructions"""
    error_code = "PAYMENT_PROVIDER_UNAVAILABLE"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OrderReferenceError(PurchaseServiceError):
    """Order reference could not be generated"""
    error_code = "ORDER_REFERENCE_FAILED"


class LedgerWriteError(PurchaseServiceError):
    """Ledger store rejected or failed a write"""
    error_code = "LEDGER_WRITE_FAILED"


class DuplicateOrderReferenceError(LedgerWriteError):
    """Order reference already exists in the ledger"""
    error_code = "DUPLICATE_ORDER_REFERENCE"

    def __init__(self, order_reference: str):
        super().__init__(f"Order reference already exists: {order_reference}")
        self.order_reference = order_reference


class TransactionNotFoundError(PurchaseServiceError):
    """No transaction with the given order reference"""
    error_code = "TRANSACTION_NOT_FOUND"


class InvalidStateTransitionError(PurchaseServiceError):
    """Requested status transition is not allowed"""
    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        order_reference: str,
        current_status: TransactionStatus,
        target_status: TransactionStatus,
    ):
        super().__init__(
            f"Cannot move transaction {order_reference} from "
            f"{current_status.value} to {target_status.value}"
        )
        self.order_reference = order_reference
        self.current_status = current_status
        self.target_status = target_status


class NotificationVerificationError(PurchaseServiceError):
    """Payment notification failed signature or amount verification"""
    error_code = "NOTIFICATION_REJECTED"


# ============================================================================
# Plan Catalog Protocol
# ============================================================================

@runtime_checkable
class PlanCatalogProtocol(Protocol):
    """Read-only plan lookup"""

    async def find_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        """Return the plan, or None when it does not exist"""
        ...


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class TransactionRepositoryProtocol(Protocol):
    """
    Interface for the Transaction Ledger.

    Implementations must reject duplicate order references and apply status
    transitions atomically.
    """

    async def initialize(self) -> None:
        """Initialize repository"""
        ...

    async def close(self) -> None:
        """Close repository connections"""
        ...

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction.

        Raises:
            DuplicateOrderReferenceError: order reference already stored
            LedgerWriteError: any other store failure
        """
        ...

    async def get_transaction(self, order_reference: str) -> Optional[Transaction]:
        """Get transaction by order reference"""
        ...

    async def list_user_transactions(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Transaction]:
        """List a payer's transactions, newest first"""
        ...

    async def count_user_transactions(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
    ) -> int:
        """Count a payer's transactions matching the same filter as the listing"""
        ...

    async def update_transaction_status(
        self,
        order_reference: str,
        status: TransactionStatus,
        provider_trade_no: Optional[str] = None,
    ) -> Transaction:
        """
        Move a pending transaction to a terminal status.

        Raises:
            TransactionNotFoundError: unknown order reference
            InvalidStateTransitionError: transition not allowed
        """
        ...

    async def check_connection(self) -> bool:
        """Check database connection"""
        ...


# ============================================================================
# Payment Provider Protocol
# ============================================================================

@runtime_checkable
class PaymentProviderProtocol(Protocol):
    """
    Interface for the external payment provider.

    ``expected_unit`` declares the amount unit the provider bills in; callers
    pass a ProviderAmount in that unit and the adapter refuses any other.
    """

    expected_unit: AmountUnit

    async def create_payment(
        self,
        order_reference: str,
        description: str,
        method: PaymentMethod,
        amount: ProviderAmount,
        payer_id: str,
    ) -> PaymentInstructions:
        """
        Request payable instructions for an order.

        Raises:
            PaymentProviderUnavailableError: transport failure, non-2xx or
                malformed provider response
        """
        ...

    def verify_notification(self, payload: Dict[str, Any]) -> bool:
        """Check the signature of a provider notification"""
        ...


# ============================================================================
# Event Bus Protocol
# ============================================================================

@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> Any:
        """Publish an event"""
        ...


__all__ = [
    # Protocols
    "PlanCatalogProtocol",
    "TransactionRepositoryProtocol",
    "PaymentProviderProtocol",
    "EventBusProtocol",
    # Exceptions
    "PurchaseServiceError",
    "PlanNotFoundError",
    "InvalidBillingCycleError",
    "PaymentProviderUnavailableError",
    "OrderReferenceError",
    "LedgerWriteError",
    "DuplicateOrderReferenceError",
    "TransactionNotFoundError",
    "InvalidStateTransitionError",
    "NotificationVerificationError",
]
