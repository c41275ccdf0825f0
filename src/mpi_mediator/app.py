import json
import logging
import os
from typing import Any, TypedDict

from fhir import error_outcome
from flask import Flask, Response, request

from mpi_mediator.common.common import FHIR_JSON
from mpi_mediator.common.outcome import MediatorError
from mpi_mediator.config import get_config
from mpi_mediator.controller import Controller
from mpi_mediator.openhim import OPENHIM_JSON, build_openhim_response
from mpi_mediator.process_bundle import ProcessBundleRequest, RequestValidationError
from mpi_mediator.process_bundle.handler import ProcessBundleHandler

app = Flask(__name__)

logger = logging.getLogger(__name__)

# Query parameter naming the patients whose summaries are merged.
PATIENT_PARAM = "patient"


class HealthResponse(TypedDict):
    statusCode: int
    headers: dict[str, str]
    body: dict[str, Any]


def get_app_host() -> str:
    host = os.getenv("FLASK_HOST")
    if host is None:
        raise RuntimeError("FLASK_HOST environment variable is not set.")
    return host


def get_app_port() -> int:
    port = os.getenv("FLASK_PORT")
    if port is None:
        raise RuntimeError("FLASK_PORT environment variable is not set.")
    return int(port)


def configure_logging() -> None:
    logging.basicConfig(
        level=get_config().log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _json_response(body: Any, status: int, mimetype: str) -> Response:
    return Response(response=json.dumps(body), status=status, mimetype=mimetype)


def _process(handle: Any) -> Response:
    try:
        bundle_request = ProcessBundleRequest(request)
    except RequestValidationError as e:
        return _json_response(error_outcome(str(e), code="invalid"), 400, FHIR_JSON)

    handle(bundle_request)
    return bundle_request.build_response()


@app.route("/fhir", methods=["POST"])
def process_bundle() -> Response:
    """Validate a bundle, then match its patient and store it synchronously."""
    return _process(ProcessBundleHandler.handle_sync)


@app.route("/async/fhir", methods=["POST"])
def process_bundle_async() -> Response:
    """Validate and process a bundle, replying 204 once it has been accepted."""
    return _process(ProcessBundleHandler.handle_async)


@app.route("/fhir/validate", methods=["POST"])
def validate_resource() -> Response:
    return _process(ProcessBundleHandler.handle_validate)


@app.route("/fhir/Patient/<patient_id>/$summary", methods=["GET"])
def get_patient_summary(patient_id: str) -> Response:
    """Fetch one patient's summary, wrapped in the OpenHIM envelope."""
    controller = Controller()
    outcome = controller.fetch_summary(patient_id, request.args.to_dict(flat=False))
    return _json_response(
        build_openhim_response(controller.config.mediator_urn, outcome),
        outcome.status_code,
        OPENHIM_JSON,
    )


@app.route("/fhir/Patient/$summary", methods=["GET"])
def get_merged_patient_summaries() -> Response:
    """Fetch the summaries of every ``patient`` parameter as one merged bundle."""
    patient_refs = request.args.getlist(PATIENT_PARAM)
    if not patient_refs:
        return _json_response(
            error_outcome(f'Missing required query parameter "{PATIENT_PARAM}"'),
            400,
            FHIR_JSON,
        )

    query_params = {
        key: values
        for key, values in request.args.to_dict(flat=False).items()
        if key != PATIENT_PARAM
    }

    try:
        bundle = Controller().fetch_and_merge_summaries(patient_refs, query_params)
    except MediatorError as err:
        logger.error("Unable to fetch patient summaries: %s", err)
        return _json_response(err.body, err.status_code, FHIR_JSON)

    return _json_response(bundle, 200, FHIR_JSON)


@app.route("/health", methods=["GET"])
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        statusCode=200,
        headers={"Content-Type": "application/json"},
        body={"status": "healthy"},
    )


if __name__ == "__main__":
    configure_logging()
    app.run(host=get_app_host(), port=get_app_port())
