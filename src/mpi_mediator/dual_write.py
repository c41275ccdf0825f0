"""
Ordered write of a rewritten bundle to the FHIR datastore and then to Kafka.

The two writes are not transactional. When the datastore accepts the bundle but
Kafka does not, the datastore write stays in place and the outcome is reported as
``Failed`` with status 500 and the broker error as its body.
"""

import json
import logging
from typing import Any

from fhir.bundle import Bundle, BundleEntry, BundleEntryRequest
from mpi_mediator.client_registry import CanonicalIdentity
from mpi_mediator.common.outcome import ErrorKind, MediatorError, TransactionOutcome
from mpi_mediator.fhir_datastore import FhirDatastoreClient
from mpi_mediator.kafka_publisher import BrokerPublishError, BundlePublisher

logger = logging.getLogger(__name__)

STORE_SUCCESS_CODE = 200


def created_patient_entry(identity: CanonicalIdentity) -> BundleEntry:
    """
    Entry recording the upsert of a newly registered patient.

    :raises MediatorError: ``DATA_CONSISTENCY_ERROR`` if the identity has no id.
    """
    patient_id, reference = identity.require_id()
    return {
        "fullUrl": reference,
        "resource": {"resourceType": "Patient", "id": patient_id, **identity.patient},
        "request": BundleEntryRequest(method="PUT", url=f"Patient/{patient_id}"),
    }


def _append_entry(body: Any, entry: BundleEntry) -> Any:
    if not isinstance(body, dict):
        return body
    return {**body, "entry": [*(body.get("entry") or []), entry]}


class DualWriteCoordinator:
    """
    Performs the datastore write followed by the Kafka publish.
    """

    def __init__(
        self, datastore: FhirDatastoreClient, publisher: BundlePublisher, topic: str
    ) -> None:
        self.datastore = datastore
        self.publisher = publisher
        self.topic = topic

    def _store(self, bundle: Bundle) -> Any:
        response = self.datastore.post_bundle(bundle)

        if response.status_code != STORE_SUCCESS_CODE:
            logger.error(
                "Error in sending Fhir bundle to Fhir Datastore: %s!",
                json.dumps(response.body),
            )
            raise MediatorError(
                kind=ErrorKind.STORE_WRITE_FAILURE,
                status_code=response.status_code,
                body=response.body,
            )

        logger.info("Successfully sent Fhir bundle to the Fhir Datastore!")
        return response.body

    def _publish(self, bundle: Bundle) -> None:
        try:
            self.publisher.publish(bundle, self.topic)
        except BrokerPublishError as err:
            logger.error("Sending Fhir bundle to Kafka failed: %s", err)
            raise MediatorError(
                kind=ErrorKind.BROKER_PUBLISH_FAILURE,
                status_code=500,
                body={"kafkaResponseError": str(err)},
            ) from err

        logger.info("Successfully sent Fhir bundle to Kafka")

    def write(
        self, bundle: Bundle, identity: CanonicalIdentity | None = None
    ) -> TransactionOutcome:
        """
        Persist ``bundle`` to the datastore, then publish it to Kafka.

        :param bundle: The rewritten bundle. Not modified.
        :param identity: The canonical identity resolved for this bundle. When it
            was newly created, an entry for the registry patient is appended to
            both the published bundle and the datastore's response body.
        :returns: ``Success`` with the datastore's status and body, or ``Failed``
            with the datastore's status and body (nothing published) or with
            status 500 and the broker error (datastore write kept).
        """
        try:
            store_body = self._store(bundle)

            if identity is not None and identity.created:
                patient_entry = created_patient_entry(identity)
                entries = [*(bundle.get("entry") or []), patient_entry]
                bundle = {**bundle, "entry": entries}
                store_body = _append_entry(store_body, patient_entry)

            self._publish(bundle)
        except MediatorError as err:
            return err.to_outcome()

        return TransactionOutcome.success(STORE_SUCCESS_CODE, store_body)
