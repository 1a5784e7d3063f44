import aio_pika
import structlog

from .config import RABBIT_URL
from .events import DomainEvent, EventType

EXCHANGE_NAME = "marketplace_events"

logger = structlog.get_logger(__name__)


class RabbitPublisher:
    """Sends DomainEvents to a durable topic exchange, keyed by event type.

    Without a broker URL every call is a no-op. Broker failures are logged and
    dropped: the write that produced the event has already committed.
    """

    def __init__(self, url: str | None = RABBIT_URL, exchange_name: str = EXCHANGE_NAME):
        self.url = url
        self.exchange_name = exchange_name
        self.enabled = bool(url)
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self):
        if not self.enabled or self.connected:
            return

        try:
            self._connection = await aio_pika.connect_robust(self.url)
            channel = await self._connection.channel()
            self._exchange = await channel.declare_exchange(
                self.exchange_name,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
        except Exception as e:
            logger.warning("event_broker_unreachable", exchange=self.exchange_name, error=str(e))
            self._connection = None
            self._exchange = None
            raise

    async def publish(self, event: DomainEvent) -> bool:
        """Returns whether the broker accepted the event."""
        if not self.enabled:
            return False

        try:
            await self.connect()
        except Exception:
            return False

        message = aio_pika.Message(
            body=event.to_json().encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=event.event_id,
            type=event.routing_key,
            timestamp=event.occurred_at,
        )
        try:
            await self._exchange.publish(message, routing_key=event.routing_key)
        except Exception as e:
            logger.warning(
                "event_publish_failed",
                event_type=event.routing_key,
                event_id=event.event_id,
                error=str(e),
            )
            return False

        logger.debug("event_published", event_type=event.routing_key, event_id=event.event_id)
        return True

    async def emit(self, event_type: EventType, data: dict) -> DomainEvent:
        event = DomainEvent(event_type=event_type, data=data)
        await self.publish(event)
        return event

    async def close(self):
        try:
            if self.connected:
                await self._connection.close()
        finally:
            self._connection = None
            self._exchange = None


publisher = RabbitPublisher()
