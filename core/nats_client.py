"""
NATS JetStream Client for Python Microservices

Event-driven communication between services over NATS JetStream
(``nats-py``). Events are JSON envelopes published on a subject equal to
their event type, e.g. ``purchase.transaction.created``.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

if TYPE_CHECKING:
    from core.config_manager import ConfigManager


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types"""

    # Payment provider confirmations (inbound)
    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_FAILED = "payment.failed"

    # Purchase ledger lifecycle (outbound)
    TRANSACTION_CREATED = "purchase.transaction.created"
    TRANSACTION_PAID = "purchase.transaction.paid"
    TRANSACTION_FAILED = "purchase.transaction.failed"
    TRANSACTION_EXPIRED = "purchase.transaction.expired"


class ServiceSource(Enum):
    """Service sources"""

    PURCHASE_SERVICE = "purchase_service"
    PAYMENT_PROVIDER = "payment_provider"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.utcnow().isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event


EventHandler = Callable[[Event], Awaitable[None]]


class NATSEventBus:
    """
    NATS JetStream event bus.

    One stream per subject prefix (``purchase.>`` -> ``purchase-stream``).
    """

    def __init__(
        self,
        service_name: str,
        config: Optional["ConfigManager"] = None,
        servers: Optional[List[str]] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as connection name)
            config: Optional ConfigManager instance for endpoint resolution
            servers: Explicit NATS server URLs (overrides config)
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        if servers is None:
            if config is None:
                config = ConfigManager(service_name)
            servers = [config.get_infra_config().resolved_nats_url]
        self.servers = servers

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._subscriptions: Dict[str, Any] = {}
        self._known_streams: set = set()
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {', '.join(self.servers)}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=self.servers, name=self.service_name)
            self._js = self._nc.jetstream()
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """Stream name for an event type, e.g. ``payment.completed`` -> ``payment-stream``"""
        prefix = event_type.split('.')[0]
        return f"{prefix}-stream"

    async def _ensure_stream(self, event_type: str) -> str:
        stream_name = self._get_stream_name_for_event(event_type)
        if stream_name in self._known_streams:
            return stream_name

        prefix = event_type.split('.')[0]
        try:
            await self._js.add_stream(name=stream_name, subjects=[f"{prefix}.>"])
        except Exception as e:
            # Stream already exists (possibly with another config)
            logger.debug(f"Stream creation note: {e}")
        self._known_streams.add(stream_name)
        return stream_name

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to JetStream.

        Returns:
            True when the server acknowledged the message
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = await self._ensure_stream(event.type)
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            ack = await self._js.publish(event.type, data)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True
        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def subscribe_to_events(
        self, pattern: str, handler: EventHandler, durable: Optional[str] = None
    ) -> Optional[str]:
        """
        Subscribe to events with a subject pattern using a durable consumer.

        Messages are acknowledged after the handler returns; a handler that
        raises leaves the message unacknowledged for redelivery.

        Args:
            pattern: Subject pattern (e.g., "payment.*")
            handler: Async callback receiving the decoded Event
            durable: Durable consumer name
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return None

        await self._ensure_stream(pattern)
        consumer_name = durable or f"{self.service_name}-{pattern.split('.')[0]}-consumer"

        async def _on_message(msg):
            try:
                payload = json.loads(msg.data.decode())
                if 'type' in payload and 'source' in payload and 'data' in payload:
                    event = Event.from_dict(payload)
                else:
                    # Raw payload without envelope
                    event = Event.__new__(Event)
                    event.id = str(uuid.uuid4())
                    event.type = msg.subject
                    event.source = 'external'
                    event.subject = msg.subject
                    event.timestamp = payload.get('timestamp', datetime.utcnow().isoformat())
                    event.data = payload
                    event.metadata = {}
                    event.version = '1.0.0'

                await handler(event)
                await msg.ack()
            except Exception as e:
                logger.error(f"Error processing message on {msg.subject}: {e}", exc_info=True)

        try:
            sub = await self._js.subscribe(
                pattern,
                durable=consumer_name,
                cb=_on_message,
                manual_ack=True,
            )
            self._subscriptions[pattern] = sub
            logger.info(f"Subscribed to {pattern} (durable={consumer_name})")
            return consumer_name
        except Exception as e:
            logger.error(f"Error subscribing to {pattern}: {e}")
            return None

    async def unsubscribe(self, pattern: str) -> bool:
        sub = self._subscriptions.pop(pattern, None)
        if not sub:
            return False
        await sub.unsubscribe()
        logger.info(f"Unsubscribed from {pattern}")
        return True

    async def close(self):
        """Drain subscriptions and close the connection"""
        for pattern in list(self._subscriptions.keys()):
            try:
                await self.unsubscribe(pattern)
            except Exception as e:
                logger.warning(f"Failed to unsubscribe {pattern}: {e}")

        if self._nc:
            try:
                await self._nc.drain()
            except Exception as e:
                logger.warning(f"NATS drain failed: {e}")
            self._nc = None
            self._js = None

        self._is_connected = False
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None
_event_bus_lock = asyncio.Lock()


async def get_event_bus(
    service_name: str,
    config: Optional["ConfigManager"] = None,
) -> NATSEventBus:
    """
    Get or create the process-wide event bus.

    Args:
        service_name: Name of the service using the event bus
        config: Optional ConfigManager instance

    Returns:
        Connected NATSEventBus instance
    """
    global _event_bus

    async with _event_bus_lock:
        if _event_bus is None:
            bus = NATSEventBus(service_name=service_name, config=config)
            await bus.connect()
            _event_bus = bus

    return _event_bus


def create_event(
    event_type: EventType,
    source: ServiceSource,
    data: Dict[str, Any],
    subject: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> Event:
    """Create an Event instance"""
    return Event(
        event_type=event_type,
        source=source,
        data=data,
        subject=subject,
        metadata=metadata,
    )
