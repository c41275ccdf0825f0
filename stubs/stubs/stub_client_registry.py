"""
In-memory stub of the client registry's FHIR Patient endpoints.

Implements only:

    * ``POST /fhir/Patient``: registers a patient under a new id (201)
    * ``GET /fhir/Patient/{id}``: returns a registered patient (200) or 404

Every call must carry a bearer token, as the real registry requires.
"""

import uuid
from typing import Any

from requests import Response
from stubs.responses import create_response, operation_outcome


class ClientRegistryStub:
    """
    Minimal in-memory client registry.

    Tests can force the next responses with :meth:`fail_with`, and inspect what
    the registry received through ``created`` and ``lookups``.
    """

    def __init__(self) -> None:
        self._patients: dict[str, dict[str, Any]] = {}
        self._forced: tuple[int, Any] | None = None
        self.omit_ids = False
        self.created: list[dict[str, Any]] = []
        self.lookups: list[str] = []
        self.authorizations: list[str | None] = []

    # ---------------------------
    # Public API for tests
    # ---------------------------

    def upsert_patient(self, patient_id: str, patient: dict[str, Any] | None = None) -> None:
        record = dict(patient or {})
        record.setdefault("resourceType", "Patient")
        record["id"] = patient_id
        self._patients[patient_id] = record

    def fail_with(self, status_code: int, body: Any) -> None:
        """Answer every subsequent request with ``status_code`` and ``body``."""
        self._forced = (status_code, body)

    # ---------------------------
    # Endpoints
    # ---------------------------

    def _rejection(self, authorization: str | None) -> Response | None:
        self.authorizations.append(authorization)
        if not authorization or not authorization.startswith("Bearer "):
            return create_response(401, operation_outcome("login", "Unauthorized"))
        if self._forced is not None:
            return create_response(*self._forced)
        return None

    def create_patient(self, patient: dict[str, Any], authorization: str | None) -> Response:
        self.created.append(patient)
        error = self._rejection(authorization)
        if error is not None:
            return error

        patient_id = str(uuid.uuid4())
        self.upsert_patient(patient_id, patient)

        body = dict(self._patients[patient_id])
        if self.omit_ids:
            body.pop("id")
        return create_response(201, body)

    def get_patient(self, patient_id: str, authorization: str | None) -> Response:
        self.lookups.append(patient_id)
        error = self._rejection(authorization)
        if error is not None:
            return error

        if patient_id not in self._patients:
            return create_response(
                404, operation_outcome("not-found", f"Patient/{patient_id} not found")
            )

        body = dict(self._patients[patient_id])
        if self.omit_ids:
            body.pop("id")
        return create_response(200, body)
