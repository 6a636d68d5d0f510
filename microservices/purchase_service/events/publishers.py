"""
Purchase Event Publishers

Publishes transaction lifecycle events to the event bus.
"""

import logging
from typing import Optional

from core.nats_client import EventType, ServiceSource, create_event

from ..models import Transaction, TransactionStatus
from .models import PurchaseEventType, TransactionEventData

logger = logging.getLogger(__name__)

STATUS_EVENT_TYPES = {
    TransactionStatus.PAID: PurchaseEventType.TRANSACTION_PAID,
    TransactionStatus.FAILED: PurchaseEventType.TRANSACTION_FAILED,
    TransactionStatus.EXPIRED: PurchaseEventType.TRANSACTION_EXPIRED,
}


class PurchaseEventPublisher:
    """Publisher for purchase events"""

    def __init__(self, event_bus):
        self.event_bus = event_bus

    async def publish_transaction_created(self, transaction: Transaction) -> bool:
        """Publish transaction created event"""
        return await self._publish_event(PurchaseEventType.TRANSACTION_CREATED, transaction)

    async def publish_status_changed(self, transaction: Transaction) -> bool:
        """Publish the event matching a terminal transaction status"""
        event_type = STATUS_EVENT_TYPES.get(transaction.status)
        if event_type is None:
            return False
        return await self._publish_event(event_type, transaction)

    async def _publish_event(
        self,
        event_type: PurchaseEventType,
        transaction: Transaction,
        subject: Optional[str] = None,
    ) -> bool:
        """Publish a transaction event; failures are logged and reported as False"""
        if not self.event_bus:
            logger.debug(f"Event bus not available, skipping {event_type.value}")
            return False

        try:
            data = TransactionEventData(
                order_reference=transaction.order_reference,
                user_id=transaction.user_id,
                plan_id=transaction.plan_id,
                billing_cycle=transaction.billing_cycle.value,
                amount=transaction.amount,
                tokens=transaction.tokens,
                status=transaction.status.value,
                payment_method=transaction.payment_method.value,
                provider_trade_no=transaction.provider_trade_no,
            )
            event = create_event(
                event_type=EventType(event_type.value),
                source=ServiceSource.PURCHASE_SERVICE,
                data=data.model_dump(mode="json"),
                subject=subject or transaction.order_reference,
            )

            published = await self.event_bus.publish_event(event)
            if published is False:
                logger.warning(f"Event bus did not accept {event_type.value} for {transaction.order_reference}")
                return False
            logger.debug(f"Published event: {event_type.value}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False


__all__ = ["PurchaseEventPublisher"]
