"""
Helpers shared by the in-memory upstream stubs.
"""

import json
from typing import Any

from requests import Response
from requests.structures import CaseInsensitiveDict

REASONS = {
    200: "OK",
    201: "Created",
    400: "Bad Request",
    401: "Unauthorized",
    404: "Not Found",
    412: "Precondition Failed",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def create_response(status_code: int, body: Any = None) -> Response:
    """
    Create a :class:`requests.Response` object for a stub.

    :param status_code: HTTP status code.
    :param body: JSON-serialisable body, or ``None`` for an empty body.
    :return: A :class:`requests.Response` instance.
    """
    response = Response()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict({"Content-Type": "application/fhir+json"})
    response._content = b"" if body is None else json.dumps(body).encode("utf-8")  # noqa: SLF001
    response.reason = REASONS.get(status_code, "")
    response.encoding = "utf-8"
    return response


def operation_outcome(code: str, diagnostics: str) -> dict[str, Any]:
    return {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": "error", "code": code, "diagnostics": diagnostics}],
    }
