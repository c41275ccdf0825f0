"""
Fetching and merging of patient ``$summary`` bundles.

A patient known to the MPI may be linked to several patients in the FHIR datastore.
Their summaries are fetched concurrently and merged into a single bundle. A link
whose patient no longer exists (404) is skipped; any other failed fetch fails the
whole merge.
"""

import json
import logging
from collections.abc import Iterable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone

from fhir.bundle import Bundle, BundleLink
from mpi_mediator.common.common import (
    QueryParams,
    UpstreamResponse,
    is_http_status_ok,
    trailing_id,
)
from mpi_mediator.common.outcome import ErrorKind, MediatorError, TransactionOutcome
from mpi_mediator.fhir_datastore import FhirDatastoreClient

logger = logging.getLogger(__name__)

MAX_WORKERS = 8
NOT_FOUND = 404


def unique_patient_ids(patient_refs: Iterable[str]) -> list[str]:
    """
    Deduplicate references on their trailing id, keeping first-seen order.

    ``["Patient/1", "http://mpi/fhir/Patient/1", "2"]`` gives ``["1", "2"]``.
    """
    ids = (trailing_id(ref or "") for ref in patient_refs)
    return list(dict.fromkeys(patient_id for patient_id in ids if patient_id))


def merge_bundles(bundles: Iterable[Bundle], bundle_type: str = "searchset") -> Bundle:
    """
    Combine bundles into one.

    Entries are concatenated in the given order and counted into ``total``. Each
    source bundle's links are relabelled as ``subsection`` links.

    :param bundles: Source bundles. Not modified.
    :param bundle_type: ``type`` of the merged bundle.
    :returns: The merged bundle.
    """
    merged: Bundle = {
        "resourceType": "Bundle",
        "meta": {"lastUpdated": datetime.now(timezone.utc).isoformat()},
        "type": bundle_type,
        "total": 0,
        "link": [],
        "entry": [],
    }

    for bundle in bundles:
        entries = bundle.get("entry")
        if isinstance(entries, list):
            merged["entry"].extend(entries)
            merged["total"] += len(entries)

        links = bundle.get("link")
        if isinstance(links, list):
            merged["link"].extend(
                BundleLink(relation="subsection", url=link.get("url", ""))
                for link in links
            )

    return merged


class SummaryAggregator:
    """
    Fetches ``$summary`` bundles from the FHIR datastore and merges them.
    """

    def __init__(
        self, datastore: FhirDatastoreClient, *, max_workers: int = MAX_WORKERS
    ) -> None:
        self.datastore = datastore
        self.max_workers = max_workers

    def _fetch(
        self, patient_id: str, query_params: QueryParams | None
    ) -> UpstreamResponse:
        response = self.datastore.get_summary(patient_id, query_params)

        if not is_http_status_ok(response.status_code) and (
            response.status_code != NOT_FOUND
        ):
            raise MediatorError(
                kind=ErrorKind.SUMMARY_FETCH_FAILURE,
                status_code=response.status_code,
                body=response.body,
            )

        return response

    def aggregate(
        self,
        patient_refs: Iterable[str],
        query_params: QueryParams | None = None,
        bundle_type: str = "searchset",
    ) -> Bundle:
        """
        Fetch the summary of every distinct patient and merge them.

        Bundles are merged in the order their fetches complete.

        :param patient_refs: Patient references or ids; duplicates are dropped.
        :param query_params: Optional parameters passed to every ``$summary`` call.
        :param bundle_type: ``type`` of the merged bundle.
        :returns: The merged bundle.
        :raises MediatorError: ``SUMMARY_FETCH_FAILURE`` with the status and body of
            the first fetch that failed with anything other than 404.
        """
        patient_ids = unique_patient_ids(patient_refs)
        bundles: list[Bundle] = []

        if not patient_ids:
            return merge_bundles(bundles, bundle_type)

        workers = min(self.max_workers, len(patient_ids))
        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            pending: set[Future[UpstreamResponse]] = {
                executor.submit(self._fetch, patient_id, query_params)
                for patient_id in patient_ids
            }

            while pending:
                done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    # Re-raises the first non-404 failure, abandoning the rest.
                    response = future.result()
                    if is_http_status_ok(response.status_code) and isinstance(
                        response.body, dict
                    ):
                        bundles.append(response.body)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug(
            "Fetched %d patient summaries for %d patients",
            len(bundles),
            len(patient_ids),
        )

        return merge_bundles(bundles, bundle_type)


def fetch_summary(
    aggregator: SummaryAggregator,
    patient_ref: str,
    query_params: QueryParams | None = None,
) -> TransactionOutcome:
    """
    Fetch a single patient's summary as a ``document`` bundle.

    :returns: ``Success`` with status 200 and the bundle, or ``Failed`` with the
        failing fetch's status and body.
    """
    try:
        bundle = aggregator.aggregate([patient_ref], query_params, "document")
    except MediatorError as err:
        logger.error(
            "Unable to fetch patient resources for id %s: %s",
            patient_ref,
            json.dumps(err.body),
        )
        return TransactionOutcome.failed(err.status_code or 500, err.body or {})

    logger.info("Successfully fetched patient summary with id %s", patient_ref)
    return TransactionOutcome.success(200, bundle)
