"""Kafka gateway publishing transfer notices to a topic."""

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from transfer_core.clock import Clock
from transfer_core.config import KafkaConfig
from transfer_core.exceptions import DeliveryError
from transfer_core.models import Event, TransactionResult
from transfer_core.notifications.base import NotificationGateway
from transfer_core.notifications.serialization import to_dict

logger = logging.getLogger(__name__)

EVENT_TYPE = "transfer.received"
EVENT_SOURCE = "transfer-core"


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0


class KafkaNotificationGateway(NotificationGateway):
    """Publish notices as JSON events keyed by recipient email.

    ``notify`` only hands the event to the producer; broker acknowledgements
    arrive through the delivery callback and are counted in ``stats``.
    Retries are left to the producer's own ``retries`` setting.
    """

    def __init__(
        self,
        config: KafkaConfig | str,
        topic: str = "transfers.notifications",
        clock: Clock | None = None,
    ) -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic = topic
        self.clock = clock or Clock()
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()
        # Producer.produce is thread-safe; the lock only guards the counters
        self._lock = threading.Lock()

    def notify(self, recipient_email: str, notice: TransactionResult) -> None:
        event = self.build_event(recipient_email, notice)
        value = json.dumps(to_dict(event), ensure_ascii=False).encode("utf-8")
        try:
            self.producer.produce(
                topic=self.topic,
                key=recipient_email.encode("utf-8"),
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as exc:
            raise DeliveryError(f"Could not enqueue notice {notice.transaction_id}: {exc}") from exc
        with self._lock:
            self.stats.sent += 1
        self.producer.poll(0)

    def build_event(self, recipient_email: str, notice: TransactionResult) -> Event:
        """Wrap ``notice`` in an event stamped with the gateway's clock."""
        return Event(
            event_id=str(uuid.uuid4()),
            event_type=EVENT_TYPE,
            event_time=self.clock.now(),
            source=EVENT_SOURCE,
            subject=notice.transaction_id,
            data=to_dict(notice),
            metadata={"recipient": recipient_email},
        )

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        with self._lock:
            if err:
                self.stats.failed += 1
            else:
                self.stats.delivered += 1
        if err:
            logger.error("Notice delivery failed: %s", err)
        else:
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Kafka notification gateway closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
