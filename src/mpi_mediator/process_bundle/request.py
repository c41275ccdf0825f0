import json
from typing import Any

from fhir import error_outcome
from flask.wrappers import Request, Response

from mpi_mediator.common.common import FHIR_JSON
from mpi_mediator.common.outcome import TransactionOutcome
from mpi_mediator.openhim import OPENHIM_JSON, build_openhim_response


class RequestValidationError(Exception):
    """Exception raised for errors in the request validation."""


class ProcessBundleRequest:
    """
    A FHIR resource received by the mediator, and the response built for it.
    """

    def __init__(self, request: Request) -> None:
        self._http_request = request
        self._request_body: Any = request.get_json(force=True, silent=True)
        self._response_body: Any = None
        self._status_code: int | None = None
        self._mimetype = OPENHIM_JSON

        # Validate the body is a FHIR resource
        self._validate_body()

    @property
    def resource(self) -> dict[str, Any]:
        resource: dict[str, Any] = self._request_body
        return resource

    @property
    def resource_type(self) -> str:
        return str(self._request_body["resourceType"])

    def _validate_body(self) -> None:
        """Validate the body is a JSON object naming its resourceType.

        :raises RequestValidationError: If the body is not a FHIR resource.
        """
        if not isinstance(self._request_body, dict):
            raise RequestValidationError("Request body must be a JSON FHIR resource")

        resource_type = self._request_body.get("resourceType")
        if not isinstance(resource_type, str) or not resource_type.strip():
            raise RequestValidationError('Missing or empty required field "resourceType"')

    def build_response(self) -> Response:
        if self._response_body is None:
            return Response(status=self._status_code)

        return Response(
            response=json.dumps(self._response_body),
            status=self._status_code,
            mimetype=self._mimetype,
        )

    def set_negative_response(self, error: str, status_code: int = 500) -> None:
        self._status_code = status_code
        self._response_body = error_outcome(error)
        self._mimetype = FHIR_JSON

    def set_response_from_outcome(
        self, outcome: TransactionOutcome, mediator_urn: str
    ) -> None:
        """
        Report an outcome wrapped in the OpenHIM envelope.

        Outcomes without a body (an accepted asynchronous request) are returned
        as an empty response.
        """
        self._status_code = outcome.status_code
        if outcome.body is None:
            self._response_body = None
            return

        self._response_body = build_openhim_response(mediator_urn, outcome)
        self._mimetype = OPENHIM_JSON
