"""FHIR OperationOutcome resource."""

from typing import TypedDict


class OperationOutcomeIssue(TypedDict):
    severity: str
    code: str
    diagnostics: str


class OperationOutcome(TypedDict):
    resourceType: str
    issue: list[OperationOutcomeIssue]


def error_outcome(diagnostics: str, code: str = "exception") -> OperationOutcome:
    """Build a single-issue OperationOutcome with ``error`` severity."""
    return OperationOutcome(
        resourceType="OperationOutcome",
        issue=[
            OperationOutcomeIssue(severity="error", code=code, diagnostics=diagnostics)
        ],
    )
