"""
NATS Event Bus - Component Tests (Golden)

Envelope encoding and message handling with a stubbed JetStream context.
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.nats_client import Event, EventType, NATSEventBus, ServiceSource, create_event


@pytest.fixture
def event_bus():
    bus = NATSEventBus("purchase_service", servers=["nats://localhost:4222"])
    bus._js = MagicMock()
    bus._js.add_stream = AsyncMock()
    bus._js.publish = AsyncMock(return_value=MagicMock(seq=7))
    bus._js.subscribe = AsyncMock()
    bus._is_connected = True
    return bus


class TestEvent:

    def test_envelope_round_trip(self):
        event = create_event(
            EventType.TRANSACTION_PAID,
            ServiceSource.PURCHASE_SERVICE,
            {"order_reference": "sub_1_user_1"},
            subject="sub_1_user_1",
        )

        restored = Event.from_dict(event.to_dict())

        assert restored.id == event.id
        assert restored.type == "purchase.transaction.paid"
        assert restored.source == "purchase_service"
        assert restored.data == {"order_reference": "sub_1_user_1"}


class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_on_event_type_subject(self, event_bus):
        event = create_event(
            EventType.TRANSACTION_CREATED,
            ServiceSource.PURCHASE_SERVICE,
            {"amount": Decimal("200"), "tokens": 12000},
        )

        assert await event_bus.publish_event(event) is True

        subject, data = event_bus._js.publish.call_args.args
        assert subject == "purchase.transaction.created"
        body = json.loads(data.decode())
        assert body["data"] == {"amount": "200", "tokens": 12000}
        event_bus._js.add_stream.assert_awaited_once_with(
            name="purchase-stream", subjects=["purchase.>"]
        )

    @pytest.mark.asyncio
    async def test_publish_when_disconnected(self):
        bus = NATSEventBus("purchase_service", servers=["nats://localhost:4222"])
        event = create_event(EventType.TRANSACTION_CREATED, ServiceSource.PURCHASE_SERVICE, {})

        assert await bus.publish_event(event) is False

    @pytest.mark.asyncio
    async def test_publish_failure_reported(self, event_bus):
        event_bus._js.publish.side_effect = RuntimeError("no responders")
        event = create_event(EventType.TRANSACTION_CREATED, ServiceSource.PURCHASE_SERVICE, {})

        assert await event_bus.publish_event(event) is False


class TestSubscribe:

    @pytest.mark.asyncio
    async def test_handler_receives_event_and_message_is_acked(self, event_bus):
        received = []

        async def handler(event):
            received.append(event)

        await event_bus.subscribe_to_events("payment.completed", handler)
        callback = event_bus._js.subscribe.call_args.kwargs["cb"]

        msg = MagicMock()
        msg.subject = "payment.completed"
        msg.data = json.dumps({"out_trade_no": "sub_1_user_1"}).encode()
        msg.ack = AsyncMock()
        await callback(msg)

        assert received[0].type == "payment.completed"
        assert received[0].data == {"out_trade_no": "sub_1_user_1"}
        msg.ack.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_handler_leaves_message_unacked(self, event_bus):
        async def handler(event):
            raise RuntimeError("ledger down")

        await event_bus.subscribe_to_events("payment.completed", handler)
        callback = event_bus._js.subscribe.call_args.kwargs["cb"]

        msg = MagicMock()
        msg.subject = "payment.completed"
        msg.data = json.dumps({"out_trade_no": "sub_1_user_1"}).encode()
        msg.ack = AsyncMock()
        await callback(msg)

        msg.ack.assert_not_called()
