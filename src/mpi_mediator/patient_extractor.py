"""
Locate the patient a bundle is about.

A bundle either embeds the Patient resource (which must be registered with the
client registry) or only points at one through a ``Patient/<id>`` reference (which
must already exist in the registry). Most clinical bundles do neither.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from fhir.bundle import Bundle, BundleEntry

PATIENT_REFERENCE = re.compile(r"^Patient/(?P<id>[^/]+)$")


@dataclass(frozen=True)
class ExtractedPatient:
    """
    Result of :func:`extract`.

    :param entry: The first bundle entry holding a Patient resource, if any.
    :param reference_id: Id from the first ``Patient/<id>`` reference found in the
        other resources. Only set when no Patient resource is embedded.
    """

    entry: BundleEntry | None = None
    reference_id: str | None = None

    @property
    def found(self) -> bool:
        return self.entry is not None or self.reference_id is not None

    @property
    def resource(self) -> dict[str, Any] | None:
        if self.entry is None:
            return None
        return self.entry.get("resource")


def entry_key(entry: BundleEntry) -> str:
    """
    Key identifying a Patient entry within its bundle.

    The entry's ``fullUrl`` is used; entries without one fall back to
    ``Patient/<resource id>``.
    """
    full_url = entry.get("fullUrl")
    if full_url:
        return full_url
    return f"Patient/{entry.get('resource', {}).get('id', '')}"


def _is_patient(entry: BundleEntry) -> bool:
    resource = entry.get("resource")
    return isinstance(resource, dict) and resource.get("resourceType") == "Patient"


def iter_references(node: Any) -> Iterator[str]:
    """Yield every ``reference`` string found anywhere under ``node``, depth first."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "reference" and isinstance(value, str):
                yield value
            else:
                yield from iter_references(value)
    elif isinstance(node, list):
        for item in node:
            yield from iter_references(item)


def extract(bundle: Bundle) -> ExtractedPatient:
    """
    Find the patient a bundle refers to.

    The first embedded Patient resource wins. Otherwise the first ``Patient/<id>``
    reference held by any other resource is returned.

    :param bundle: The inbound bundle. Not modified.
    :returns: An :class:`ExtractedPatient`; both fields are ``None`` when the bundle
        involves no patient.
    """
    entries = bundle.get("entry") or []

    for entry in entries:
        if _is_patient(entry):
            return ExtractedPatient(entry=entry)

    for entry in entries:
        for reference in iter_references(entry.get("resource")):
            match = PATIENT_REFERENCE.match(reference)
            if match:
                return ExtractedPatient(reference_id=match.group("id"))

    return ExtractedPatient()
