"""
Shared lightweight types and helpers used across the MPI mediator.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

# Bodies are passed to and from upstream services as JSON strings.
# The alias is used to make intent clearer in function signatures.
json_str: TypeAlias = str

# Recursive JSON-like structure typing for decoded upstream bodies.
JsonBody: TypeAlias = (
    "str | int | float | bool | None | dict[str, JsonBody] | list[JsonBody]"
)

FHIR_JSON = "application/fhir+json"

# Query parameters forwarded upstream. Repeated parameters carry a list of values.
QueryParams: TypeAlias = Mapping[str, str | list[str]]


@dataclass(frozen=True)
class UpstreamResponse:
    """
    Status and decoded body of a call made to an upstream service.

    :param status_code: HTTP status code returned by the service, or 500 when the
        call never produced a response.
    :param body: Decoded JSON body. Empty dict when the service returned no content.
    """

    status_code: int
    body: Any


def is_http_status_ok(status_code: int) -> bool:
    """
    :param status_code: HTTP status code.
    :returns: ``True`` for any 2xx status.
    """
    return 200 <= status_code < 300


def trailing_id(reference: str) -> str:
    """
    Return the last path segment of a reference.

    ``"Patient/123"``, ``"http://mpi:3000/fhir/Patient/123"`` and ``"123"`` all
    yield ``"123"``. Trailing slashes are ignored.

    :param reference: A relative or absolute reference, or a bare id.
    :returns: The trailing id segment (may be empty).
    """
    return reference.rstrip("/").split("/")[-1]
