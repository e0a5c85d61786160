"""
kafka_client.py - Kafka Producer Wrapper

PURPOSE:
    Publishes pydantic events to Kafka topics with JSON serialization and
    delivery callbacks.

PRODUCER FEATURES:
    - All replicas acknowledgment (acks=all)
    - Automatic retries on transient failures
    - Snappy compression
    - Non-blocking publish: messages are queued and delivered in the background
    - Bounded flush on close so a missing broker cannot hang shutdown

USAGE:
    producer = BaseKafkaProducer("localhost:9092", "purchase-producer")
    producer.publish("order.placed", event)
    producer.close()
"""

import json
import logging
from typing import Optional, Union

from confluent_kafka import Producer
from confluent_kafka.error import KafkaError

try:
    from shared.events import BaseEvent
except ImportError:
    from events import BaseEvent

logger = logging.getLogger(__name__)


class BaseKafkaProducer:
    """Kafka producer with JSON serialization and delivery callbacks."""

    def __init__(self, bootstrap_servers: str, client_id: str = "producer", flush_timeout: float = 5.0):
        """
        Initialize Kafka producer.

        Args:
            bootstrap_servers: Comma-separated Kafka broker addresses
            client_id: Unique identifier for this producer instance
            flush_timeout: Upper bound in seconds for each flush
        """
        self.config = {
            "bootstrap.servers": bootstrap_servers,
            "client.id": client_id,
            "acks": "all",
            "retries": 3,
            "compression.type": "snappy",
        }
        self.flush_timeout = flush_timeout
        self.producer = Producer(self.config)

    def _delivery_report(self, err: Optional[KafkaError], msg) -> None:
        """Delivery report handler called by producer on message delivery."""
        if err is not None:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.info(
                f"Message delivered to topic={msg.topic()}, "
                f"partition={msg.partition()}, offset={msg.offset()}"
            )

    def publish(self, topic: str, event: Union[BaseEvent, dict]) -> None:
        """Publish event to Kafka topic."""
        if isinstance(event, dict):
            message = json.dumps(event, default=str)
            event_type = event.get("event_type", "unknown")
            correlation_id = event.get("correlation_id", "unknown")
        else:
            message = event.model_dump_json()
            event_type = event.event_type
            correlation_id = event.correlation_id

        self.producer.produce(
            topic=topic,
            value=message.encode("utf-8"),
            callback=self._delivery_report,
        )
        # Serve delivery callbacks of earlier messages without waiting
        self.producer.poll(0)
        logger.info(
            f"Queued event for {topic}",
            extra={"event_type": event_type, "correlation_id": correlation_id},
        )

    def flush(self) -> int:
        """Flush pending messages, waiting at most flush_timeout seconds."""
        remaining = self.producer.flush(self.flush_timeout)
        if remaining:
            logger.warning(f"{remaining} message(s) still undelivered after flush")
        return remaining

    def close(self) -> None:
        """Flush before shutdown; confluent producers hold no other resources."""
        self.flush()
        logger.info("Kafka producer closed")
