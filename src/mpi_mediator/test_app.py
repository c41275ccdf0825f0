"""Unit tests for the Flask app endpoints."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest
from flask import Flask
from flask.testing import FlaskClient
from stubs.stub_auth import StaticTokenProvider
from stubs.stub_kafka import RecordingPublisher
from stubs.stub_upstreams import StubUpstreams

import mpi_mediator.controller as controller_module
from mpi_mediator.app import app, get_app_host, get_app_port
from mpi_mediator.config import Config


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch,
    config: Config,
    publisher: RecordingPublisher,
    upstreams: StubUpstreams,  # noqa: ARG001 (fixture activates the stubs)
) -> Generator[FlaskClient[Flask], None, None]:
    token_provider = StaticTokenProvider()
    monkeypatch.setattr(controller_module, "get_config", lambda: config)
    monkeypatch.setattr(controller_module, "get_publisher", lambda: publisher)
    monkeypatch.setattr(
        controller_module, "default_token_provider", lambda: token_provider
    )

    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


class TestAppInitialization:
    def test_get_app_host_returns_set_host_name(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FLASK_HOST", "host_is_set")

        actual = get_app_host()
        assert actual == "host_is_set"

    def test_get_app_host_raises_runtime_error_if_host_name_not_set(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("FLASK_HOST", raising=False)

        with pytest.raises(RuntimeError):
            _ = get_app_host()

    def test_get_app_port_returns_set_port_number(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FLASK_PORT", "8080")

        actual = get_app_port()
        assert actual == 8080

    def test_get_app_port_raises_runtime_error_if_port_not_set(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("FLASK_PORT", raising=False)

        with pytest.raises(RuntimeError):
            _ = get_app_port()


class TestProcessBundle:
    def test_returns_openhim_envelope_with_datastore_response(
        self,
        client: FlaskClient[Flask],
        upstreams: StubUpstreams,
        bundle_with_patient_reference: dict[str, Any],
    ) -> None:
        upstreams.registry.upsert_patient("9")

        response = client.post("/fhir", json=bundle_with_patient_reference)

        assert response.status_code == 200
        assert response.mimetype == "application/openhim+json"
        data = response.get_json()
        assert data["x-mediator-urn"] == "urn:mediator:test"
        assert data["status"] == "Success"
        assert data["response"]["status"] == 200
        assert data["response"]["body"]["type"] == "transaction-response"

    def test_validation_failure_stops_processing(
        self,
        client: FlaskClient[Flask],
        upstreams: StubUpstreams,
        publisher: RecordingPublisher,
        bundle_without_patient: dict[str, Any],
    ) -> None:
        upstreams.datastore.fail_validation(
            400, {"resourceType": "OperationOutcome", "issue": []}
        )

        response = client.post("/fhir", json=bundle_without_patient)

        assert response.status_code == 400
        data = response.get_json()
        assert data["status"] == "Failed"
        assert data["response"]["body"]["resourceType"] == "OperationOutcome"
        assert upstreams.datastore.transactions == []
        assert publisher.published == []

    def test_returns_400_for_non_fhir_body(self, client: FlaskClient[Flask]) -> None:
        response = client.post(
            "/fhir", data="not json", content_type="application/fhir+json"
        )

        assert response.status_code == 400
        assert response.mimetype == "application/fhir+json"
        assert response.get_json()["issue"][0]["code"] == "invalid"

    def test_returns_500_when_controller_cannot_be_created(
        self,
        client: FlaskClient[Flask],
        monkeypatch: pytest.MonkeyPatch,
        bundle_without_patient: dict[str, Any],
    ) -> None:
        def broken_config() -> Config:
            raise RuntimeError("FHIR_DATASTORE_PORT must be an integer")

        monkeypatch.setattr(controller_module, "get_config", broken_config)

        response = client.post("/fhir", json=bundle_without_patient)

        assert response.status_code == 500
        diagnostics = response.get_json()["issue"][0]["diagnostics"]
        assert diagnostics == (
            "Failed to initialize controller: FHIR_DATASTORE_PORT must be an integer"
        )


class TestProcessBundleAsync:
    def test_accepted_bundle_returns_empty_204(
        self,
        client: FlaskClient[Flask],
        publisher: RecordingPublisher,
        bundle_with_patient: dict[str, Any],
    ) -> None:
        response = client.post("/async/fhir", json=bundle_with_patient)

        assert response.status_code == 204
        assert response.get_data() == b""
        assert len(publisher.published) == 1

    def test_failure_is_reported(
        self,
        client: FlaskClient[Flask],
        upstreams: StubUpstreams,
        bundle_with_patient: dict[str, Any],
    ) -> None:
        upstreams.registry.fail_with(500, {"error": "Internal Server"})

        response = client.post("/async/fhir", json=bundle_with_patient)

        assert response.status_code == 500
        assert response.get_json()["response"]["body"] == {"error": "Internal Server"}


class TestValidate:
    def test_validation_result_is_returned(
        self, client: FlaskClient[Flask], upstreams: StubUpstreams
    ) -> None:
        response = client.post(
            "/fhir/validate", json={"resourceType": "Patient", "id": "1"}
        )

        assert response.status_code == 200
        assert response.get_json()["response"]["body"]["resourceType"] == (
            "OperationOutcome"
        )
        assert upstreams.calls == [
            ("POST", "http://fhir-datastore:8080/fhir/Patient/$validate")
        ]


class TestPatientSummary:
    def test_single_summary_is_wrapped(
        self, client: FlaskClient[Flask], upstreams: StubUpstreams
    ) -> None:
        upstreams.datastore.add_summary(
            "1", {"resourceType": "Bundle", "entry": [{"resource": {"id": "a"}}]}
        )

        response = client.get("/fhir/Patient/1/$summary?_count=5")

        assert response.status_code == 200
        body = response.get_json()["response"]["body"]
        assert body["type"] == "document"
        assert body["total"] == 1
        assert upstreams.datastore.summary_requests == [("1", {"_count": ["5"]})]

    def test_merged_summaries(
        self, client: FlaskClient[Flask], upstreams: StubUpstreams
    ) -> None:
        upstreams.datastore.add_summary(
            "1", {"resourceType": "Bundle", "entry": [{"resource": {"id": "a"}}]}
        )
        upstreams.datastore.add_summary(
            "2", {"resourceType": "Bundle", "entry": [{"resource": {"id": "b"}}]}
        )

        response = client.get("/fhir/Patient/$summary?patient=Patient/1&patient=2")

        assert response.status_code == 200
        assert response.mimetype == "application/fhir+json"
        data = response.get_json()
        assert data["type"] == "searchset"
        assert data["total"] == 2

    def test_repeated_query_parameters_are_all_forwarded(
        self, client: FlaskClient[Flask], upstreams: StubUpstreams
    ) -> None:
        upstreams.datastore.add_summary("1", {"resourceType": "Bundle", "entry": []})

        client.get("/fhir/Patient/1/$summary?_type=Condition&_type=Observation")

        assert upstreams.datastore.summary_requests == [
            ("1", {"_type": ["Condition", "Observation"]})
        ]

    def test_merged_summaries_forward_every_value_except_patient(
        self, client: FlaskClient[Flask], upstreams: StubUpstreams
    ) -> None:
        upstreams.datastore.add_summary("1", {"resourceType": "Bundle", "entry": []})

        response = client.get(
            "/fhir/Patient/$summary?patient=1&_type=Condition&_type=Observation"
        )

        assert response.status_code == 200
        assert upstreams.datastore.summary_requests == [
            ("1", {"_type": ["Condition", "Observation"]})
        ]

    def test_merged_summaries_require_patient(self, client: FlaskClient[Flask]) -> None:
        response = client.get("/fhir/Patient/$summary")

        assert response.status_code == 400
        assert response.get_json()["resourceType"] == "OperationOutcome"

    def test_merged_summary_failure_is_returned(
        self, client: FlaskClient[Flask], upstreams: StubUpstreams
    ) -> None:
        upstreams.datastore.fail_summary("2", 503, {"error": "unavailable"})

        response = client.get("/fhir/Patient/$summary?patient=1&patient=2")

        assert response.status_code == 503
        assert response.get_json() == {"error": "unavailable"}


class TestHealthCheck:
    def test_health_check_returns_200_and_healthy_status(
        self, client: FlaskClient[Flask]
    ) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["body"]["status"] == "healthy"
