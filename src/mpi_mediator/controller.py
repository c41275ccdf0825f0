"""
Controller layer for orchestrating calls to external services
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from functools import cache
from typing import TYPE_CHECKING

from mpi_mediator.auth import AuthTokenProvider, ClientCredentialsTokenProvider
from mpi_mediator.bundle_rewriter import rewrite
from mpi_mediator.client_registry import CanonicalIdentity, IdentityResolver
from mpi_mediator.common.common import QueryParams, is_http_status_ok
from mpi_mediator.common.outcome import ErrorKind, MediatorError, TransactionOutcome
from mpi_mediator.config import Config, get_config
from mpi_mediator.dual_write import DualWriteCoordinator
from mpi_mediator.fhir_datastore import FhirDatastoreClient
from mpi_mediator.kafka_publisher import BundlePublisher, get_publisher
from mpi_mediator.patient_extractor import ExtractedPatient, entry_key, extract
from mpi_mediator.summaries import SummaryAggregator, fetch_summary

if TYPE_CHECKING:
    from fhir.bundle import Bundle

logger = logging.getLogger(__name__)

ACCEPTED_CODE = 204


@cache
def default_token_provider() -> ClientCredentialsTokenProvider:
    """The process-wide registry token provider, so tokens are reused."""
    config = get_config()
    return ClientCredentialsTokenProvider(
        token_url=config.mpi_auth_token_url,
        client_id=config.mpi_client_id,
        client_secret=config.mpi_client_secret,
        private_key_path=config.mpi_private_key_path,
        timeout=config.request_timeout,
    )


def _reference_maps(
    extracted: ExtractedPatient, identity: CanonicalIdentity
) -> tuple[dict[str, CanonicalIdentity], dict[str, str]]:
    """
    Build the identity map and the local-to-canonical reference replacements.

    :raises MediatorError: ``DATA_CONSISTENCY_ERROR`` if the identity has no id.
    """
    _, canonical_reference = identity.require_id()
    identity_map: dict[str, CanonicalIdentity] = {}
    replacements: dict[str, str] = {}

    if extracted.entry is not None:
        key = entry_key(extracted.entry)
        identity_map[key] = identity
        replacements[key] = canonical_reference

        local_id = (extracted.resource or {}).get("id")
        if local_id:
            replacements[f"Patient/{local_id}"] = canonical_reference
    else:
        replacements[f"Patient/{extracted.reference_id}"] = canonical_reference

    return identity_map, replacements


class Controller:
    """
    Orchestrates validation -> client registry -> FHIR datastore -> Kafka.

    Entry points:
        - ``resolve_and_write(bundle) -> TransactionOutcome``
        - ``resolve_and_accept(bundle) -> TransactionOutcome``
        - ``validate(resource) -> TransactionOutcome``
        - ``fetch_summary(patient_ref, query_params) -> TransactionOutcome``
        - ``fetch_and_merge_summaries(patient_refs, query_params) -> Bundle``

    None of the ``TransactionOutcome`` entry points raise: every failure is
    returned as a ``Failed`` outcome.
    """

    def __init__(
        self,
        config: Config | None = None,
        token_provider: AuthTokenProvider | None = None,
        publisher: BundlePublisher | None = None,
    ) -> None:
        """
        Create a controller instance.

        :param config: Configuration; defaults to the process-wide configuration.
        :param token_provider: Source of registry bearer tokens; defaults to the
            process-wide OAuth2 client credentials provider.
        :param publisher: Kafka publisher; defaults to the process-wide publisher.
        """
        self.config = config or get_config()
        self.token_provider = token_provider or default_token_provider()
        self._publisher = publisher

    @property
    def publisher(self) -> BundlePublisher:
        if self._publisher is None:
            self._publisher = get_publisher()
        return self._publisher

    def _datastore(self) -> FhirDatastoreClient:
        return FhirDatastoreClient(
            self.config.fhir_datastore.base_url, timeout=self.config.request_timeout
        )

    def _dual_write(self) -> DualWriteCoordinator:
        return DualWriteCoordinator(
            datastore=self._datastore(),
            publisher=self.publisher,
            topic=self.config.kafka_bundle_topic,
        )

    def validate(self, resource: Mapping[str, object]) -> TransactionOutcome:
        """
        Validate a resource with the FHIR datastore.

        :returns: ``Success`` or ``Failed`` with the validator's status and body.
        """
        logger.info("Validating Fhir Resources")
        response = self._datastore().validate(resource)

        if not is_http_status_ok(response.status_code):
            logger.error("Error in validating: %s!", response.body)
            return MediatorError(
                kind=ErrorKind.VALIDATION_FAILURE,
                status_code=response.status_code,
                body=response.body,
            ).to_outcome()

        logger.info("Successfully validated bundle!")
        return TransactionOutcome.success(response.status_code, response.body)

    def resolve_and_write(self, bundle: Bundle) -> TransactionOutcome:
        """
        Controller entry point for synchronous processing of a bundle.

        Orchestration steps:
        1) Find the Patient resource or ``Patient/<id>`` reference in the bundle.
        2) Register (POST) or confirm (GET) the patient with the client registry.
        3) Rewrite the bundle to point at the registry's patient.
        4) Write the bundle to the FHIR datastore, then publish it to Kafka.

        :param bundle: The inbound bundle. Not modified.
        :returns: The full outcome, including registry, datastore and Kafka
            failures.
        """
        logger.info("Fhir bundle received for synchronous matching of the patient!")
        bundle = copy.deepcopy(bundle)

        try:
            extracted = extract(bundle)

            if not extracted.found:
                logger.info(
                    "No Patient resource or Patient reference was found in Fhir Bundle!"
                )
                return self._dual_write().write(rewrite(bundle))

            identity = IdentityResolver(self.config, self.token_provider).resolve(
                extracted
            )
            identity_map, replacements = _reference_maps(extracted, identity)
            rewritten = rewrite(bundle, identity_map, replacements)
        except MediatorError as err:
            return err.to_outcome()

        return self._dual_write().write(rewritten, identity)

    def resolve_and_accept(self, bundle: Bundle) -> TransactionOutcome:
        """
        Controller entry point for asynchronous processing of a bundle.

        The bundle is validated and then processed exactly as by
        :meth:`resolve_and_write`. Failures are returned as they are; success is
        reported as an empty 204 so the caller learns only that the bundle was
        accepted.
        """
        validation = self.validate(bundle)
        if not validation.succeeded:
            return validation

        outcome = self.resolve_and_write(bundle)
        if not outcome.succeeded:
            return outcome

        return TransactionOutcome.success(ACCEPTED_CODE)

    def fetch_summary(
        self, patient_ref: str, query_params: QueryParams | None = None
    ) -> TransactionOutcome:
        return fetch_summary(
            SummaryAggregator(self._datastore()), patient_ref, query_params
        )

    def fetch_and_merge_summaries(
        self,
        patient_refs: Iterable[str],
        query_params: QueryParams | None = None,
        bundle_type: str = "searchset",
    ) -> Bundle:
        """
        :raises MediatorError: ``SUMMARY_FETCH_FAILURE`` if any fetch failed with a
            status other than 404.
        """
        return SummaryAggregator(self._datastore()).aggregate(
            patient_refs, query_params, bundle_type
        )
