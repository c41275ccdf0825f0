"""
Recording stand-in for the Kafka bundle publisher.
"""

import threading
from typing import Any

from mpi_mediator.kafka_publisher import BrokerPublishError


class RecordingPublisher:
    """
    Records published bundles instead of sending them to a broker.

    Set ``error`` to make every publish fail with that message.
    """

    def __init__(self, error: str | None = None) -> None:
        self.error = error
        self.published: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def publish(self, bundle: dict[str, Any], topic: str) -> None:
        if self.error is not None:
            raise BrokerPublishError(self.error)
        with self._lock:
            self.published.append((topic, bundle))
