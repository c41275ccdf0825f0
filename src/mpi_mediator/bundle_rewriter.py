"""
Pure transformations that prepare an inbound bundle for the FHIR datastore.

None of these functions perform I/O and none modify their input; each returns a new
bundle. :func:`rewrite` composes them in the order the datastore needs:

1. :func:`normalize_bundle_type` turns ``document`` bundles into ``transaction``
   bundles.
2. :func:`substitute_references` points every reference to the local patient at
   the canonical registry patient instead.
3. :func:`rewrite_entries` guts registered Patient resources down to a link to the
   registry and gives every entry an upsert request.
"""

import logging
from collections.abc import Mapping
from typing import Any, TypeAlias

from fhir.bundle import Bundle, BundleEntry, BundleEntryRequest
from fhir.patient import Patient, PatientLink
from fhir.reference import Reference
from mpi_mediator.client_registry import CanonicalIdentity
from mpi_mediator.patient_extractor import entry_key

logger = logging.getLogger(__name__)

IdentityMap: TypeAlias = Mapping[str, CanonicalIdentity]

UPSERT = "PUT"


def normalize_bundle_type(bundle: Bundle) -> Bundle:
    """Return a copy of ``bundle`` whose ``document`` type is now ``transaction``."""
    normalized: Bundle = {**bundle}
    if normalized.get("type") == "document":
        logger.info("Converting document bundle to transaction bundle")
        normalized["type"] = "transaction"
    return normalized


def _replace_references(node: Any, replacements: Mapping[str, str]) -> Any:
    if isinstance(node, dict):
        return {
            key: (
                replacements.get(value, value)
                if key == "reference" and isinstance(value, str)
                else _replace_references(value, replacements)
            )
            for key, value in node.items()
        }
    if isinstance(node, list):
        return [_replace_references(item, replacements) for item in node]
    return node


def substitute_references(bundle: Bundle, replacements: Mapping[str, str]) -> Bundle:
    """
    Replace ``reference`` values across every resource in the bundle.

    :param bundle: Bundle to transform. Not modified.
    :param replacements: Local reference (e.g. ``Patient/12`` or a patient entry's
        ``fullUrl``) to canonical reference.
    :returns: A new bundle.
    """
    if not replacements:
        return bundle

    substituted: Bundle = {**bundle}
    if bundle.get("entry"):
        substituted["entry"] = _replace_references(bundle["entry"], replacements)
    return substituted


def _patient_stub(entry: BundleEntry, identity: CanonicalIdentity) -> BundleEntry:
    patient_id, reference = identity.require_id()

    stub: BundleEntry = {
        "resource": Patient(
            resourceType="Patient",
            link=[PatientLink(other=Reference(reference=reference), type="refer")],
        ),
        "request": BundleEntryRequest(method=UPSERT, url=f"Patient/{patient_id}"),
    }
    if "fullUrl" in entry:
        stub = {"fullUrl": entry["fullUrl"], **stub}
    return stub


def _with_upsert_request(entry: BundleEntry) -> BundleEntry:
    resource = entry.get("resource", {})
    return {
        **entry,
        "request": BundleEntryRequest(
            method=UPSERT,
            url=f"{resource.get('resourceType')}/{resource.get('id')}",
        ),
    }


def rewrite_entries(bundle: Bundle, identity_map: IdentityMap) -> Bundle:
    """
    Rewrite each entry for an upsert into the datastore.

    * A Patient entry whose key is in ``identity_map`` is replaced by a
      reference-only Patient linking to the canonical patient, upserted as
      ``Patient/<registry id>``.
    * Any other entry without a ``request`` gets ``PUT <resourceType>/<id>``.
    * Entries that already carry a request are returned as they are.

    :raises MediatorError: ``DATA_CONSISTENCY_ERROR`` if a mapped identity has no
        registry id.
    """
    if not bundle.get("entry"):
        return bundle

    entries: list[BundleEntry] = []
    for entry in bundle["entry"]:
        resource = entry.get("resource") or {}
        if resource.get("resourceType") == "Patient":
            identity = identity_map.get(entry_key(entry))
            if identity is not None:
                entries.append(_patient_stub(entry, identity))
                continue

        if "request" not in entry:
            entries.append(_with_upsert_request(entry))
        else:
            entries.append(entry)

    return {**bundle, "entry": entries}


def rewrite(
    bundle: Bundle,
    identity_map: IdentityMap | None = None,
    replacements: Mapping[str, str] | None = None,
) -> Bundle:
    """
    Normalise the bundle type, substitute patient references, and rewrite entries.

    :param bundle: Inbound bundle. Not modified.
    :param identity_map: Patient entry key to canonical identity.
    :param replacements: Local patient reference to canonical reference.
    :returns: The rewritten bundle.
    """
    rewritten = normalize_bundle_type(bundle)
    rewritten = substitute_references(rewritten, replacements or {})
    return rewrite_entries(rewritten, identity_map or {})
