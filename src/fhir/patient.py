"""FHIR Patient resource."""

from typing import Any, NotRequired, TypedDict

from fhir.reference import Reference


class PatientLink(TypedDict):
    other: Reference
    type: str


class Patient(TypedDict):
    resourceType: str
    id: NotRequired[str]
    link: NotRequired[list[PatientLink]]
    extension: NotRequired[list[dict[str, Any]]]
    managingOrganization: NotRequired[Reference]
