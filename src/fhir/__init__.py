"""FHIR data types and resources."""

from fhir.bundle import Bundle, BundleEntry, BundleEntryRequest, BundleLink
from fhir.operation_outcome import (
    OperationOutcome,
    OperationOutcomeIssue,
    error_outcome,
)
from fhir.patient import Patient, PatientLink
from fhir.reference import Reference

__all__ = [
    "Bundle",
    "BundleEntry",
    "BundleEntryRequest",
    "BundleLink",
    "OperationOutcome",
    "OperationOutcomeIssue",
    "Patient",
    "PatientLink",
    "Reference",
    "error_outcome",
]
