"""
In-memory stub of the FHIR datastore.

Implements only:

    * ``POST /fhir/{resourceType}/$validate``
    * ``POST /fhir`` (transaction bundles)
    * ``GET /fhir/Patient/{id}/$summary``
"""

from typing import Any

from requests import Response
from stubs.responses import create_response, operation_outcome


class FhirDatastoreStub:
    """
    Minimal in-memory FHIR datastore.

    ``transactions`` records every bundle the datastore accepted; summaries are
    seeded per patient with :meth:`add_summary`.
    """

    def __init__(self) -> None:
        self.transactions: list[dict[str, Any]] = []
        self.validated: list[dict[str, Any]] = []
        self.summary_requests: list[tuple[str, dict[str, Any]]] = []
        self._summaries: dict[str, dict[str, Any]] = {}
        self._summary_failures: dict[str, tuple[int, Any]] = {}
        self._validation_failure: tuple[int, Any] | None = None
        self._transaction_failure: tuple[int, Any] | None = None

    # ---------------------------
    # Public API for tests
    # ---------------------------

    def add_summary(self, patient_id: str, bundle: dict[str, Any]) -> None:
        self._summaries[patient_id] = bundle

    def fail_summary(self, patient_id: str, status_code: int, body: Any) -> None:
        self._summary_failures[patient_id] = (status_code, body)

    def fail_validation(self, status_code: int, body: Any) -> None:
        self._validation_failure = (status_code, body)

    def fail_transactions(self, status_code: int, body: Any) -> None:
        self._transaction_failure = (status_code, body)

    # ---------------------------
    # Endpoints
    # ---------------------------

    def validate(self, resource_type: str, resource: dict[str, Any]) -> Response:
        self.validated.append(resource)
        if self._validation_failure is not None:
            return create_response(*self._validation_failure)

        if resource.get("resourceType") != resource_type:
            return create_response(
                400, operation_outcome("invalid", "resourceType does not match path")
            )

        return create_response(
            200,
            {
                "resourceType": "OperationOutcome",
                "issue": [
                    {"severity": "information", "code": "informational", "diagnostics": "No issues detected"}
                ],
            },
        )

    def transaction(self, bundle: dict[str, Any]) -> Response:
        if self._transaction_failure is not None:
            return create_response(*self._transaction_failure)

        self.transactions.append(bundle)
        return create_response(
            200,
            {
                "resourceType": "Bundle",
                "type": "transaction-response",
                "entry": [
                    {"response": {"status": "201 Created", "location": entry.get("request", {}).get("url", "")}}
                    for entry in bundle.get("entry") or []
                ],
            },
        )

    def get_summary(self, patient_id: str, params: dict[str, Any]) -> Response:
        self.summary_requests.append((patient_id, params))
        if patient_id in self._summary_failures:
            return create_response(*self._summary_failures[patient_id])

        if patient_id not in self._summaries:
            return create_response(
                404, operation_outcome("not-found", f"Patient/{patient_id} not found")
            )

        return create_response(200, self._summaries[patient_id])
