"""
Module: mpi_mediator.client_registry

Resolution of a bundle's patient to its canonical identity in the client registry
(the master patient index).

An embedded Patient resource is registered with ``POST /fhir/Patient``; a bare
``Patient/<id>`` reference is checked with ``GET /fhir/Patient/{id}``. Either way
the registry's Patient becomes the :class:`CanonicalIdentity` and its canonical
reference is what the rewritten bundle points at.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from mpi_mediator.auth import AuthTokenProvider, TokenRequestError
from mpi_mediator.common import transport
from mpi_mediator.common.common import FHIR_JSON, UpstreamResponse
from mpi_mediator.common.outcome import ErrorKind, MediatorError
from mpi_mediator.config import Config, ServiceLocation
from mpi_mediator.patient_extractor import ExtractedPatient

logger = logging.getLogger(__name__)

REGISTRY_SUCCESS_CODES = (200, 201)

# Properties the registry does not store; they are held back and restored
# onto the registry's copy of the patient.
NON_REGISTRY_PROPERTIES = ("extension", "managingOrganization")


def build_canonical_reference(
    patient_id: str, mpi: ServiceLocation, proxy_url: str | None = None
) -> str:
    """
    Build the externally dereferenceable URL of a registry patient.

    A configured public proxy URL takes precedence over the MPI coordinates.

    :param patient_id: Registry id of the patient.
    :param mpi: MPI protocol, host and port.
    :param proxy_url: Optional public proxy base URL.
    :returns: e.g. ``http://mpi:3000/fhir/Patient/abc``.
    """
    if proxy_url:
        return f"{proxy_url.rstrip('/')}/fhir/Patient/{patient_id}"
    return f"{mpi.base_url}/fhir/Patient/{patient_id}"


@dataclass(frozen=True)
class CanonicalIdentity:
    """
    The registry's identity for a patient.

    :param id: Registry id. ``None`` when the registry answered successfully but
        without an id.
    :param patient: Patient resource returned by the registry.
    :param reference: Canonical reference URL, ``None`` when ``id`` is missing.
    :param created: ``True`` when the patient was registered by this call rather
        than looked up.
    """

    id: str | None
    patient: dict[str, Any]
    reference: str | None
    created: bool = False

    def require_id(self) -> tuple[str, str]:
        """
        :returns: The registry id and canonical reference.
        :raises MediatorError: ``DATA_CONSISTENCY_ERROR`` if the registry omitted
            the id.
        """
        if not self.id or not self.reference:
            logger.error("ID in MPI response is missing")
            raise MediatorError(
                kind=ErrorKind.DATA_CONSISTENCY_ERROR,
                status_code=500,
                body={"error": "ID in MPI response is missing"},
            )
        return self.id, self.reference


@dataclass(frozen=True)
class RegistryPatient:
    """A Patient prepared for the registry plus the properties held back from it."""

    patient: dict[str, Any]
    held_back: dict[str, Any] = field(default_factory=dict)

    def restore(self, registry_patient: dict[str, Any]) -> dict[str, Any]:
        """Copy of ``registry_patient`` with the held back properties put back."""
        restored = dict(registry_patient)
        for key, value in self.held_back.items():
            if value:
                restored[key] = value
        return restored


def prepare_for_registry(patient: dict[str, Any]) -> RegistryPatient:
    """
    Strip the properties the registry rejects from a Patient resource.

    :param patient: Patient resource from the inbound bundle. Not modified.
    :returns: The stripped patient and what was removed.
    """
    stripped = json.loads(json.dumps(patient))
    held_back = {
        key: stripped.pop(key) for key in NON_REGISTRY_PROPERTIES if key in stripped
    }
    return RegistryPatient(patient=stripped, held_back=held_back)


class ClientRegistryClient:
    """
    Simple client for the client registry's FHIR Patient endpoints.

    Usage:

        registry = ClientRegistryClient(
            auth_token="YOUR_ACCESS_TOKEN",
            base_url="http://santempi:8080",
        )

        response = registry.get_patient("1234")
    """

    def __init__(self, auth_token: str, base_url: str, *, timeout: int = 10) -> None:
        """
        :param auth_token: OAuth2 bearer token (without 'Bearer ' prefix)
        :param base_url: Registry base URL, without the ``/fhir`` path.
        :param timeout: Timeout in seconds for HTTP calls
        """
        self.auth_token = auth_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.auth_token}",
            "Content-Type": FHIR_JSON,
            "Accept": FHIR_JSON,
            "X-Request-ID": str(uuid.uuid4()),
        }

    def create_patient(self, patient: dict[str, Any]) -> UpstreamResponse:
        """Register a patient with ``POST /fhir/Patient``."""
        return transport.post(
            f"{self.base_url}/fhir/Patient",
            headers=self._build_headers(),
            data=json.dumps(patient),
            timeout=self.timeout,
        )

    def get_patient(self, patient_id: str) -> UpstreamResponse:
        """Check a patient exists with ``GET /fhir/Patient/{id}``."""
        return transport.get(
            f"{self.base_url}/fhir/Patient/{patient_id}",
            headers=self._build_headers(),
            timeout=self.timeout,
        )


class IdentityResolver:
    """
    Resolves an :class:`ExtractedPatient` to a :class:`CanonicalIdentity`.
    """

    def __init__(self, config: Config, token_provider: AuthTokenProvider) -> None:
        self.config = config
        self.token_provider = token_provider

    def canonical_reference(self, patient_id: str) -> str:
        return build_canonical_reference(
            patient_id, self.config.mpi, self.config.mpi_proxy_url
        )

    def _client(self) -> ClientRegistryClient:
        try:
            auth_token = self.token_provider.get_token()
        except TokenRequestError as err:
            logger.error("Unable to obtain client registry token: %s", err)
            raise MediatorError(
                kind=ErrorKind.AUTH_FAILURE, status_code=500, body={"error": str(err)}
            ) from err

        return ClientRegistryClient(
            auth_token=auth_token,
            base_url=self.config.client_registry.base_url,
            timeout=self.config.request_timeout,
        )

    def resolve(self, extracted: ExtractedPatient) -> CanonicalIdentity:
        """
        Create or look up the patient in the client registry.

        :param extracted: Output of :func:`mpi_mediator.patient_extractor.extract`.
            Must have found a patient resource or reference.
        :returns: The canonical identity.
        :raises MediatorError: ``AUTH_FAILURE`` if no token could be obtained,
            ``REGISTRY_FAILURE`` carrying the registry's status and body for any
            response other than 200 or 201.
        """
        resource = extracted.resource
        if resource is None and extracted.reference_id is None:
            raise ValueError("No patient to resolve")

        client = self._client()
        prepared: RegistryPatient | None = None

        if resource is not None:
            prepared = prepare_for_registry(resource)
            response = client.create_patient(prepared.patient)
        else:
            response = client.get_patient(str(extracted.reference_id))

        if response.status_code not in REGISTRY_SUCCESS_CODES:
            if prepared is not None:
                logger.error(
                    "Patient resource creation in Client Registry failed: %s",
                    json.dumps(response.body),
                )
            else:
                logger.error(
                    "Checking of patient with id %s failed in Client Registry: %s",
                    extracted.reference_id,
                    json.dumps(response.body),
                )
            raise MediatorError(
                kind=ErrorKind.REGISTRY_FAILURE,
                status_code=response.status_code,
                body=response.body,
            )

        patient = response.body if isinstance(response.body, dict) else {}
        registry_id = str(patient["id"]) if patient.get("id") else None

        if prepared is not None:
            patient = prepared.restore(patient)

        logger.info(
            "Client Registry %s patient %s",
            "created" if prepared is not None else "confirmed",
            registry_id,
        )

        return CanonicalIdentity(
            id=registry_id,
            patient=patient,
            reference=self.canonical_reference(registry_id) if registry_id else None,
            created=prepared is not None,
        )
