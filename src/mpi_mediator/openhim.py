"""
The OpenHIM mediator response envelope.

Results returned to the interoperability layer are wrapped in an object naming the
mediator, the transaction status and the upstream response.
"""

from datetime import datetime, timezone
from typing import Any, TypedDict

from mpi_mediator.common.outcome import TransactionOutcome

OPENHIM_JSON = "application/openhim+json"


class OpenHimResponse(TypedDict):
    status: int
    headers: dict[str, str]
    body: Any
    timestamp: str


OpenHimResponseObject = TypedDict(
    "OpenHimResponseObject",
    {"x-mediator-urn": str, "status": str, "response": OpenHimResponse},
)


def build_openhim_response(
    mediator_urn: str,
    outcome: TransactionOutcome,
    content_type: str = "application/json",
) -> OpenHimResponseObject:
    """
    Wrap a :class:`TransactionOutcome` for OpenHIM.

    :param mediator_urn: URN the mediator is registered under.
    :param outcome: The outcome to report.
    :param content_type: Content type recorded for the wrapped body.
    """
    return {
        "x-mediator-urn": mediator_urn,
        "status": str(outcome.status),
        "response": {
            "status": outcome.status_code,
            "headers": {"Content-Type": content_type},
            "body": outcome.body if outcome.body is not None else {},
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        },
    }
