"""
Purchase Event Handlers

Maps payment provider confirmations arriving on the event bus to the guarded
ledger transition.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from ..models import TransactionStatus
from ..protocols import (
    InvalidStateTransitionError,
    NotificationVerificationError,
    TransactionNotFoundError,
)
from .models import PaymentConfirmationEventData, PurchaseEventType

logger = logging.getLogger(__name__)


def _event_data(event: Any) -> Dict[str, Any]:
    if isinstance(event, dict):
        return event
    return getattr(event, "data", None) or {}


class PurchaseEventHandlers:
    """Event handlers for purchase service"""

    def __init__(self, purchase_service):
        self.purchase_service = purchase_service

    def get_event_handler_map(self) -> Dict[str, Callable[[Any], Awaitable[None]]]:
        """Get mapping of event patterns to handler functions"""
        return {
            PurchaseEventType.PAYMENT_COMPLETED.value: self.handle_payment_completed,
            PurchaseEventType.PAYMENT_FAILED.value: self.handle_payment_failed,
        }

    async def handle_payment_completed(self, event: Any) -> None:
        """Handle provider confirmation of a successful payment"""
        await self._apply_confirmation(event, TransactionStatus.PAID)

    async def handle_payment_failed(self, event: Any) -> None:
        """Handle provider report of a failed payment"""
        await self._apply_confirmation(event, TransactionStatus.FAILED)

    async def _apply_confirmation(self, event: Any, status: TransactionStatus) -> None:
        try:
            data = PaymentConfirmationEventData.model_validate(_event_data(event))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed payment confirmation: {e}")
            return

        try:
            transaction = await self.purchase_service.confirm_transaction(
                order_reference=data.order_reference,
                status=status,
                provider_trade_no=data.provider_trade_no,
                amount=data.amount,
            )
            logger.info(
                f"Transaction {transaction.order_reference} is {transaction.status.value} "
                f"after {status.value} confirmation"
            )
        except TransactionNotFoundError:
            logger.warning(f"Payment confirmation for unknown order {data.order_reference}")
        except (InvalidStateTransitionError, NotificationVerificationError) as e:
            logger.warning(f"Payment confirmation rejected for {data.order_reference}: {e}")


__all__ = ["PurchaseEventHandlers"]
