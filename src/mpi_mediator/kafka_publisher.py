"""
Publishing of bundles to Kafka.

The pipelines depend only on the :class:`BundlePublisher` protocol. The Kafka
implementation holds one producer for the whole process, created on first use and
shared by every in-flight invocation.
"""

import json
import logging
import threading
from collections.abc import Callable
from functools import cache
from typing import Any, Protocol

from kafka import KafkaProducer
from kafka.errors import KafkaError

from fhir.bundle import Bundle
from mpi_mediator.config import get_config

logger = logging.getLogger(__name__)


class BrokerPublishError(Exception):
    """
    Raised when a bundle could not be handed to Kafka.
    """


class BundlePublisher(Protocol):
    def publish(self, bundle: Bundle, topic: str) -> None: ...


def _serialize(value: Any) -> bytes:
    return json.dumps(value).encode("utf-8")


class KafkaBundlePublisher:
    """
    Publishes JSON-serialised bundles with a lazily created, shared
    :class:`kafka.KafkaProducer`.

    ``KafkaProducer`` is thread-safe, so concurrent ``publish`` calls share the
    producer; each call waits only for its own record to be acknowledged.
    """

    def __init__(
        self,
        brokers: tuple[str, ...],
        client_id: str,
        *,
        send_timeout: int = 10,
        producer_factory: Callable[..., KafkaProducer] = KafkaProducer,
    ) -> None:
        self.brokers = brokers
        self.client_id = client_id
        self.send_timeout = send_timeout
        self._producer_factory = producer_factory
        self._producer: KafkaProducer | None = None
        self._lock = threading.Lock()

    def _get_producer(self) -> KafkaProducer:
        with self._lock:
            if self._producer is None:
                self._producer = self._producer_factory(
                    bootstrap_servers=list(self.brokers),
                    client_id=self.client_id,
                    value_serializer=_serialize,
                    retries=0,
                )
            return self._producer

    def publish(self, bundle: Bundle, topic: str) -> None:
        """
        Send ``bundle`` to ``topic`` and wait for the broker's acknowledgement.

        :raises BrokerPublishError: If the producer cannot connect or the send fails.
        """
        try:
            future = self._get_producer().send(topic, value=bundle)
            future.get(timeout=self.send_timeout)
        except KafkaError as err:
            raise BrokerPublishError(str(err) or type(err).__name__) from err

    def close(self) -> None:
        with self._lock:
            if self._producer is not None:
                self._producer.close()
                self._producer = None


@cache
def get_publisher() -> KafkaBundlePublisher:
    """The process-wide publisher, configured from :func:`get_config`."""
    config = get_config()
    return KafkaBundlePublisher(
        brokers=config.kafka_brokers,
        client_id=config.kafka_client_id,
        send_timeout=config.kafka_send_timeout,
    )
