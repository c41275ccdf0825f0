"""
Module: mpi_mediator.fhir_datastore

Client for the FHIR datastore. The mediator uses three of its operations:

    - ``POST /fhir/{resourceType}/$validate`` to validate inbound resources,
    - ``POST /fhir`` to apply a transaction bundle,
    - ``GET /fhir/Patient/{id}/$summary`` to fetch a patient summary.
"""

import json
from collections.abc import Mapping
from typing import Any

from fhir.bundle import Bundle
from mpi_mediator.common import transport
from mpi_mediator.common.common import FHIR_JSON, QueryParams, UpstreamResponse


class FhirDatastoreClient:
    """
    A client for the FHIR datastore.

    Attributes:
        base_url (str): Datastore base URL, without the ``/fhir`` path.
        timeout (int): Timeout in seconds for HTTP calls.
    """

    def __init__(self, base_url: str, *, timeout: int = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _build_headers(self) -> dict[str, str]:
        return {"Content-Type": FHIR_JSON, "Accept": FHIR_JSON}

    def validate(self, resource: Mapping[str, Any]) -> UpstreamResponse:
        """
        Validate a resource with the datastore's ``$validate`` operation.

        Args:
            resource: Any FHIR resource; its ``resourceType`` selects the endpoint.

        Returns:
            UpstreamResponse: The validation status and OperationOutcome body.
        """
        return transport.post(
            f"{self.base_url}/fhir/{resource.get('resourceType')}/$validate",
            headers=self._build_headers(),
            data=json.dumps(resource),
            timeout=self.timeout,
        )

    def post_bundle(self, bundle: Bundle) -> UpstreamResponse:
        """
        Apply a transaction bundle.

        Returns:
            UpstreamResponse: The datastore status and transaction-response bundle.
        """
        return transport.post(
            f"{self.base_url}/fhir",
            headers=self._build_headers(),
            data=json.dumps(bundle),
            timeout=self.timeout,
        )

    def get_summary(
        self, patient_id: str, query_params: QueryParams | None = None
    ) -> UpstreamResponse:
        """
        Fetch the ``$summary`` document of a patient.

        Args:
            patient_id: Datastore id of the patient.
            query_params: Optional parameters, URL-encoded onto the request.
        """
        return transport.get(
            f"{self.base_url}/fhir/Patient/{patient_id}/$summary",
            headers=self._build_headers(),
            params=query_params or None,
            timeout=self.timeout,
        )
