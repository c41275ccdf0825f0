"""FHIR Reference type."""

from typing import TypedDict


class Reference(TypedDict):
    reference: str
