"""Pytest configuration and shared fixtures for MPI mediator tests."""

from typing import Any

import pytest
import requests
from fhir.bundle import Bundle
from stubs.stub_auth import StaticTokenProvider
from stubs.stub_kafka import RecordingPublisher
from stubs.stub_upstreams import StubUpstreams

from mpi_mediator.config import Config, ServiceLocation
from mpi_mediator.controller import Controller


@pytest.fixture
def config() -> Config:
    return Config(
        fhir_datastore=ServiceLocation("http", "fhir-datastore", 8080),
        client_registry=ServiceLocation("http", "client-registry", 3000),
        mpi=ServiceLocation("http", "mpi", 3000),
        mpi_auth_token_url="http://mpi:3000/auth/oauth2_token",
        kafka_bundle_topic="2xx",
        mediator_urn="urn:mediator:test",
    )


@pytest.fixture
def upstreams(monkeypatch: pytest.MonkeyPatch) -> StubUpstreams:
    """
    Route ``requests.get`` and ``requests.post`` into in-memory upstream stubs.
    """
    stub = StubUpstreams()
    monkeypatch.setattr(requests, "get", stub.get)
    monkeypatch.setattr(requests, "post", stub.post)
    return stub


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture
def controller(
    config: Config,
    token_provider: StaticTokenProvider,
    publisher: RecordingPublisher,
    upstreams: StubUpstreams,  # noqa: ARG001 (fixture activates the stubs)
) -> Controller:
    return Controller(config=config, token_provider=token_provider, publisher=publisher)


@pytest.fixture
def encounter_entry() -> dict[str, Any]:
    return {
        "fullUrl": "Encounter/1",
        "resource": {
            "resourceType": "Encounter",
            "id": "1",
            "subject": {"reference": "Patient/9"},
        },
    }


@pytest.fixture
def bundle_without_patient() -> Bundle:
    return {
        "resourceType": "Bundle",
        "id": "12",
        "type": "document",
        "entry": [
            {
                "fullUrl": "Encounter/1234",
                "resource": {"resourceType": "Encounter", "id": "1233"},
            }
        ],
    }


@pytest.fixture
def bundle_with_patient_reference(encounter_entry: dict[str, Any]) -> Bundle:
    return {"resourceType": "Bundle", "type": "document", "entry": [encounter_entry]}


@pytest.fixture
def bundle_with_patient() -> Bundle:
    return {
        "resourceType": "Bundle",
        "id": "12",
        "type": "document",
        "entry": [
            {
                "fullUrl": "Encounter/1233",
                "resource": {
                    "resourceType": "Encounter",
                    "id": "1233",
                    "subject": {"reference": "Patient/12333"},
                },
            },
            {
                "fullUrl": "Patient/12333",
                "resource": {
                    "resourceType": "Patient",
                    "id": "12333",
                    "name": [{"family": "Doe", "given": ["Jane"]}],
                    "managingOrganization": {"reference": "Organization/1"},
                    "extension": [
                        {"url": "http://example.org/ext", "valueString": "x"}
                    ],
                },
            },
        ],
    }
