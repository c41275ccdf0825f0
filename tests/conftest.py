"""Pytest configuration and shared fixtures for MPI mediator tests."""

from __future__ import annotations

import json
from collections.abc import Generator
from typing import Any

import pytest
import requests
from flask import Flask
from flask.testing import FlaskClient
from stubs.stub_auth import StaticTokenProvider
from stubs.stub_kafka import RecordingPublisher
from stubs.stub_upstreams import StubUpstreams
from werkzeug.test import TestResponse

import mpi_mediator.controller as controller_module
from mpi_mediator.app import app as flask_app
from mpi_mediator.config import Config, ServiceLocation

FHIR_JSON = "application/fhir+json"


class Client:
    """A thin wrapper around the Flask test client for the mediator's routes."""

    def __init__(self, test_client: FlaskClient[Flask]) -> None:
        self._client = test_client

    def send_health_check(self) -> TestResponse:
        return self._client.get("/health")

    def send_bundle(self, payload: str) -> TestResponse:
        return self._client.post("/fhir", data=payload, content_type=FHIR_JSON)

    def send_bundle_async(self, payload: str) -> TestResponse:
        return self._client.post("/async/fhir", data=payload, content_type=FHIR_JSON)

    def send_for_validation(self, payload: str) -> TestResponse:
        return self._client.post("/fhir/validate", data=payload, content_type=FHIR_JSON)

    def get_patient_summary(
        self, patient_id: str, query_string: dict[str, Any] | None = None
    ) -> TestResponse:
        return self._client.get(
            f"/fhir/Patient/{patient_id}/$summary", query_string=query_string
        )

    def get_merged_summaries(self, *patient_refs: str) -> TestResponse:
        return self._client.get(
            "/fhir/Patient/$summary", query_string={"patient": list(patient_refs)}
        )


@pytest.fixture
def config() -> Config:
    return Config(
        fhir_datastore=ServiceLocation("http", "fhir-datastore", 8080),
        client_registry=ServiceLocation("http", "client-registry", 3000),
        mpi=ServiceLocation("http", "mpi", 3000),
        mpi_client_id="mediator",
        mpi_client_secret="secret",  # noqa: S106
        mpi_auth_token_url="http://mpi:3000/auth/oauth2_token",
        mediator_urn="urn:mediator:mpi-mediator",
    )


@pytest.fixture
def upstreams(monkeypatch: pytest.MonkeyPatch) -> StubUpstreams:
    stub = StubUpstreams()
    monkeypatch.setattr(requests, "get", stub.get)
    monkeypatch.setattr(requests, "post", stub.post)
    return stub


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def app(
    monkeypatch: pytest.MonkeyPatch,
    config: Config,
    publisher: RecordingPublisher,
    upstreams: StubUpstreams,  # noqa: ARG001 (fixture activates the stubs)
) -> Flask:
    """Configure the Flask application against the in-memory upstreams."""
    token_provider = StaticTokenProvider()
    monkeypatch.setattr(controller_module, "get_config", lambda: config)
    monkeypatch.setattr(controller_module, "get_publisher", lambda: publisher)
    monkeypatch.setattr(
        controller_module, "default_token_provider", lambda: token_provider
    )

    flask_app.config.update({"TESTING": True})
    return flask_app


@pytest.fixture
def client(app: Flask) -> Generator[Client, None, None]:
    with app.test_client() as test_client:
        yield Client(test_client)


@pytest.fixture
def document_bundle() -> dict[str, Any]:
    """A clinical document bundle carrying its patient."""
    return {
        "resourceType": "Bundle",
        "id": "document-1",
        "type": "document",
        "entry": [
            {
                "fullUrl": "urn:uuid:patient-1",
                "resource": {
                    "resourceType": "Patient",
                    "id": "patient-1",
                    "name": [{"family": "Banda", "given": ["Chipo"]}],
                    "gender": "female",
                    "birthDate": "1991-03-14",
                    "managingOrganization": {"reference": "Organization/clinic-1"},
                },
            },
            {
                "fullUrl": "urn:uuid:encounter-1",
                "resource": {
                    "resourceType": "Encounter",
                    "id": "encounter-1",
                    "status": "finished",
                    "subject": {"reference": "urn:uuid:patient-1"},
                },
            },
            {
                "fullUrl": "urn:uuid:observation-1",
                "resource": {
                    "resourceType": "Observation",
                    "id": "observation-1",
                    "status": "final",
                    "subject": {"reference": "Patient/patient-1"},
                    "encounter": {"reference": "urn:uuid:encounter-1"},
                },
            },
        ],
    }


@pytest.fixture
def document_payload(document_bundle: dict[str, Any]) -> str:
    return json.dumps(document_bundle)
