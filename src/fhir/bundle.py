"""FHIR Bundle resource."""

from typing import Any, NotRequired, TypedDict

from fhir.patient import Patient


class BundleEntryRequest(TypedDict):
    method: str
    url: str


class BundleEntry(TypedDict):
    fullUrl: NotRequired[str]
    resource: NotRequired[Patient | dict[str, Any]]
    request: NotRequired[BundleEntryRequest]


class BundleLink(TypedDict):
    relation: str
    url: str


class Meta(TypedDict, total=False):
    lastUpdated: str


class Bundle(TypedDict):
    resourceType: str
    type: str
    id: NotRequired[str]
    meta: NotRequired[Meta]
    total: NotRequired[int]
    link: NotRequired[list[BundleLink]]
    entry: NotRequired[list[BundleEntry]]
