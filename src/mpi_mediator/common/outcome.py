"""
Outcome and error types threaded through the mediator pipelines.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class TransactionStatus(StrEnum):
    SUCCESS = "Success"
    FAILED = "Failed"


class ErrorKind(StrEnum):
    """The step of a pipeline that detected a failure."""

    VALIDATION_FAILURE = "ValidationFailure"
    AUTH_FAILURE = "AuthFailure"
    REGISTRY_FAILURE = "RegistryFailure"
    DATA_CONSISTENCY_ERROR = "DataConsistencyError"
    STORE_WRITE_FAILURE = "StoreWriteFailure"
    BROKER_PUBLISH_FAILURE = "BrokerPublishFailure"
    SUMMARY_FETCH_FAILURE = "SummaryFetchFailure"


@dataclass(frozen=True)
class TransactionOutcome:
    """
    The single consolidated result of a pipeline invocation.

    :param status: ``Success`` or ``Failed``.
    :param status_code: HTTP-style status code to report to the caller.
    :param body: Response body (decoded JSON), or ``None`` for an empty body.
    """

    status: TransactionStatus
    status_code: int
    body: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status is TransactionStatus.SUCCESS

    @classmethod
    def success(cls, status_code: int, body: Any = None) -> "TransactionOutcome":
        return cls(status=TransactionStatus.SUCCESS, status_code=status_code, body=body)

    @classmethod
    def failed(cls, status_code: int, body: Any = None) -> "TransactionOutcome":
        return cls(status=TransactionStatus.FAILED, status_code=status_code, body=body)


@dataclass
class MediatorError(Exception):
    """
    Raised by a pipeline step when it detects a failure.

    Instances are caught at the controller entry points and converted into a
    failed :class:`TransactionOutcome`; they never cross a pipeline boundary.

    :param kind: Which kind of failure occurred.
    :param status_code: HTTP status code that should be reported.
    :param body: Upstream response body (or an error description).
    """

    kind: ErrorKind
    status_code: int
    body: Any

    def __str__(self) -> str:
        return f"{self.kind}: {self.status_code} {self.body}"

    def to_outcome(self) -> TransactionOutcome:
        return TransactionOutcome.failed(status_code=self.status_code, body=self.body)
