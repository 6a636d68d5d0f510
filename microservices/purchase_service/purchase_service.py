"""
Purchase Service

Business logic for subscription purchases: pricing, order references,
payment provider hand-off and the transaction ledger.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set, Union
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from .events.publishers import PurchaseEventPublisher
from .models import (
    AmountUnit, BillingCycle, PaymentMethod, PaymentNotification, PlanQuote, ProviderAmount,
    PurchaseResponse, Transaction, TransactionListResponse, TransactionStatus,
    TransactionType,
)
from .order_reference import OrderReferenceGenerator
from .pricing import compute_price
from .protocols import (
    EventBusProtocol,
    LedgerWriteError,
    NotificationVerificationError,
    PaymentProviderProtocol,
    PaymentProviderUnavailableError,
    PlanCatalogProtocol,
    PlanNotFoundError,
    PurchaseServiceError,
    TransactionNotFoundError,
    TransactionRepositoryProtocol,
)

logger = logging.getLogger(__name__)


class PurchaseService:
    """
    Subscription purchase orchestration.

    Dependencies are injected so tests can run against in-memory doubles;
    see ``factory.create_purchase_service`` for the production wiring.
    """

    def __init__(
        self,
        plan_catalog: PlanCatalogProtocol,
        repository: TransactionRepositoryProtocol,
        payment_provider: PaymentProviderProtocol,
        order_reference_generator: Optional[OrderReferenceGenerator] = None,
        event_bus: Optional[EventBusProtocol] = None,
        payment_method: Union[str, PaymentMethod] = PaymentMethod.ALIPAY,
        provider_timeout: float = 15.0,
    ):
        self.plan_catalog = plan_catalog
        self.repository = repository
        self.payment_provider = payment_provider
        self.order_reference_generator = order_reference_generator or OrderReferenceGenerator()
        self.event_bus = event_bus
        self.event_publisher = PurchaseEventPublisher(event_bus) if event_bus else None
        self.payment_method = PaymentMethod(payment_method)
        self.provider_timeout = provider_timeout
        self._order_tasks: Set["asyncio.Future[PurchaseResponse]"] = set()
        logger.info("Purchase service initialized")

    async def initialize(self):
        """Initialize the service"""
        await self.repository.initialize()

    async def close(self):
        """Release repository and provider resources"""
        await self.repository.close()
        close_provider = getattr(self.payment_provider, "close", None)
        if close_provider:
            await close_provider()

    # ====================
    # Purchase
    # ====================

    async def purchase(
        self,
        payer_id: str,
        plan_id: str,
        billing_cycle: Union[str, BillingCycle],
    ) -> PurchaseResponse:
        """
        Start a subscription purchase.

        Plan and cycle are validated before anything leaves the process. Once
        an order reference has been issued the rest of the flow runs to
        completion even if the caller goes away.

        Raises:
            PlanNotFoundError: unknown or inactive plan
            InvalidBillingCycleError: unsupported billing cycle
            OrderReferenceError: reference could not be generated
            PaymentProviderUnavailableError: no payment instructions obtained
            DuplicateOrderReferenceError / LedgerWriteError: ledger insert failed
        """
        plan = await self.plan_catalog.find_plan(plan_id)
        if plan is None or not plan.is_active:
            logger.warning(f"Purchase rejected for {payer_id}: plan {plan_id} not available")
            raise PlanNotFoundError(f"Subscription plan not found: {plan_id}")

        quote = compute_price(plan, billing_cycle)

        order_task = asyncio.ensure_future(self._place_order(payer_id, quote))
        self._order_tasks.add(order_task)
        order_task.add_done_callback(self._order_task_done)
        return await asyncio.shield(order_task)

    def _order_task_done(self, task: "asyncio.Future[PurchaseResponse]") -> None:
        self._order_tasks.discard(task)
        if task.cancelled():
            return
        # Retrieve the outcome so a caller that went away leaves no unretrieved exception
        error = task.exception()
        if error is not None:
            logger.debug(f"Order placement finished with {type(error).__name__}: {error}")

    async def _place_order(self, payer_id: str, quote: PlanQuote) -> PurchaseResponse:
        order_reference = self.order_reference_generator.generate(payer_id)
        description = f"{quote.plan_name} subscription ({quote.billing_cycle.label})"

        instructions = await self._request_payment(order_reference, description, quote, payer_id)

        transaction = Transaction(
            order_reference=order_reference,
            user_id=payer_id,
            transaction_type=TransactionType.SUBSCRIPTION,
            plan_id=quote.plan_id,
            billing_cycle=quote.billing_cycle,
            amount=quote.amount,
            tokens=quote.tokens,
            payment_method=self.payment_method,
            status=TransactionStatus.PENDING,
            metadata={"description": description},
        )

        try:
            stored = await self.repository.create_transaction(transaction)
        except LedgerWriteError as e:
            logger.error(
                f"Ledger write failed after provider accepted order {order_reference}; "
                f"provider intent is orphaned: {e}",
                exc_info=True,
            )
            raise
        except Exception as e:
            logger.error(
                f"Unexpected ledger error for order {order_reference}; provider intent is orphaned: {e}",
                exc_info=True,
            )
            raise LedgerWriteError(f"Failed to record transaction: {e}") from e

        logger.info(
            f"Pending transaction {order_reference} recorded for {payer_id}: "
            f"plan={quote.plan_id} cycle={quote.billing_cycle.value} "
            f"amount={quote.amount} tokens={quote.tokens}"
        )

        if self.event_publisher:
            await self.event_publisher.publish_transaction_created(stored)

        return PurchaseResponse(
            success=True,
            order_reference=order_reference,
            payment_data={**instructions.payload, "orderNo": order_reference},
            amount=stored.amount,
            tokens=stored.tokens,
        )

    async def _request_payment(
        self,
        order_reference: str,
        description: str,
        quote: PlanQuote,
        payer_id: str,
    ):
        amount = ProviderAmount(value=quote.amount, unit=AmountUnit.MAJOR)
        try:
            return await asyncio.wait_for(
                self.payment_provider.create_payment(
                    order_reference=order_reference,
                    description=description,
                    method=self.payment_method,
                    amount=amount,
                    payer_id=payer_id,
                ),
                timeout=self.provider_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Payment provider timed out after {self.provider_timeout}s for order {order_reference}")
            raise PaymentProviderUnavailableError("Payment provider timed out") from e
        except PaymentProviderUnavailableError as e:
            logger.error(f"Payment provider unavailable for order {order_reference}: {e}")
            raise
        except PurchaseServiceError:
            raise
        except Exception as e:
            logger.error(f"Payment provider call failed for order {order_reference}: {e}", exc_info=True)
            raise PaymentProviderUnavailableError(f"Payment provider call failed: {e}") from e

    # ====================
    # Confirmation
    # ====================

    async def confirm_transaction(
        self,
        order_reference: str,
        status: TransactionStatus,
        provider_trade_no: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Transaction:
        """
        Apply a provider confirmation to a transaction.

        A confirmation carrying an amount different from the recorded one is
        rejected and leaves the transaction untouched. Repeating a status the
        transaction already has returns it unchanged.

        Raises:
            TransactionNotFoundError: unknown order reference
            NotificationVerificationError: amount mismatch
            InvalidStateTransitionError: transition not allowed
        """
        current = await self.repository.get_transaction(order_reference)
        if current is None:
            raise TransactionNotFoundError(f"Transaction not found: {order_reference}")

        if amount is not None and Decimal(amount) != current.amount:
            logger.error(
                f"Amount mismatch for {order_reference}: confirmed {amount}, recorded {current.amount}"
            )
            raise NotificationVerificationError(f"Amount mismatch for order {order_reference}")

        if current.status == status:
            logger.info(f"Replayed {status.value} confirmation for {order_reference} ignored")
            return current

        updated = await self.repository.update_transaction_status(
            order_reference, status, provider_trade_no
        )
        logger.info(f"Transaction {order_reference} moved {current.status.value} -> {updated.status.value}")

        if self.event_publisher:
            await self.event_publisher.publish_status_changed(updated)

        return updated

    async def update_transaction_status(
        self,
        order_reference: str,
        status: TransactionStatus,
        provider_trade_no: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Transaction:
        """Explicit status change requested by an internal service"""
        if reason:
            logger.info(f"Status change for {order_reference} to {status.value}: {reason}")
        return await self.confirm_transaction(order_reference, status, provider_trade_no)

    async def apply_payment_notification(self, payload: Dict[str, Any]) -> Transaction:
        """
        Verify and apply a payment provider notification.

        Raises:
            NotificationVerificationError: bad signature, unknown trade status
                or amount mismatch
        """
        if not self.payment_provider.verify_notification(payload):
            logger.warning(f"Rejected payment notification with invalid signature: {payload.get('out_trade_no')}")
            raise NotificationVerificationError("Invalid notification signature")

        try:
            notification = PaymentNotification.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Rejected malformed payment notification: {e}")
            raise NotificationVerificationError("Malformed payment notification") from e

        target = notification.target_status
        if target is None:
            raise NotificationVerificationError(f"Unsupported trade status: {notification.trade_status}")

        return await self.confirm_transaction(
            order_reference=notification.order_reference,
            status=target,
            provider_trade_no=notification.provider_trade_no,
            amount=notification.amount,
        )

    # ====================
    # Queries
    # ====================

    async def get_transaction(
        self,
        order_reference: str,
        requester_id: Optional[str] = None,
        is_internal: bool = False,
    ) -> Transaction:
        """
        Get a transaction visible to the requester.

        Other payers' transactions are reported as not found.
        """
        transaction = await self.repository.get_transaction(order_reference)
        if transaction is None or (not is_internal and transaction.user_id != requester_id):
            raise TransactionNotFoundError(f"Transaction not found: {order_reference}")
        return transaction

    async def list_user_transactions(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TransactionListResponse:
        """List a payer's transactions"""
        transactions = await self.repository.list_user_transactions(
            user_id=user_id, status=status, limit=limit, offset=offset
        )
        total = await self.repository.count_user_transactions(user_id=user_id, status=status)
        return TransactionListResponse(
            success=True,
            message=f"Found {total} transactions",
            transactions=transactions,
            total=total,
            limit=limit,
            offset=offset,
        )

    async def health_check(self) -> Dict[str, Any]:
        """Service health check"""
        try:
            database_connected = await self.repository.check_connection()
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            database_connected = False

        return {
            "status": "healthy" if database_connected else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database_connected": database_connected,
        }


__all__ = ["PurchaseService"]
