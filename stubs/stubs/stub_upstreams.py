"""
Routes ``requests.get`` / ``requests.post`` calls into the in-memory stubs.

Tests monkeypatch :func:`requests.get` and :func:`requests.post` with
:meth:`StubUpstreams.get` and :meth:`StubUpstreams.post`.
"""

import json
import re
from typing import Any
from urllib.parse import urlsplit

from requests import Response
from stubs.responses import create_response
from stubs.stub_client_registry import ClientRegistryStub
from stubs.stub_fhir_datastore import FhirDatastoreStub

REGISTRY_URL = "http://client-registry:3000"
DATASTORE_URL = "http://fhir-datastore:8080"
TOKEN_URL = "http://mpi:3000/auth/oauth2_token"

_REGISTRY_PATIENT = re.compile(r"^/fhir/Patient/(?P<id>[^/]+)$")
_SUMMARY = re.compile(r"^/fhir/Patient/(?P<id>[^/]+)/\$summary$")
_VALIDATE = re.compile(r"^/fhir/(?P<type>[A-Za-z]+)/\$validate$")


class StubUpstreams:
    """
    A fake network holding one client registry, one datastore and a token endpoint.
    """

    def __init__(self) -> None:
        self.registry = ClientRegistryStub()
        self.datastore = FhirDatastoreStub()
        self.token_requests = 0
        self.calls: list[tuple[str, str]] = []

    @staticmethod
    def _split(url: str) -> tuple[str, str]:
        parts = urlsplit(url)
        return f"{parts.scheme}://{parts.netloc}", parts.path

    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: Any = None,
        timeout: Any = None,  # noqa: ARG002 (unused in stub)
    ) -> Response:
        self.calls.append(("GET", url))
        headers = headers or {}
        base, path = self._split(url)

        if base == REGISTRY_URL and (m := _REGISTRY_PATIENT.match(path)):
            return self.registry.get_patient(m.group("id"), headers.get("Authorization"))

        if base == DATASTORE_URL and (m := _SUMMARY.match(path)):
            return self.datastore.get_summary(m.group("id"), dict(params or {}))

        raise AssertionError(f"Unexpected GET {url}")

    def post(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        data: Any = None,
        timeout: Any = None,  # noqa: ARG002 (unused in stub)
    ) -> Response:
        self.calls.append(("POST", url))
        headers = headers or {}

        if url == TOKEN_URL:
            self.token_requests += 1
            return create_response(
                200, {"access_token": f"token-{self.token_requests}", "expires_in": 300}
            )

        base, path = self._split(url)
        body = json.loads(data)

        if base == REGISTRY_URL and path == "/fhir/Patient":
            return self.registry.create_patient(body, headers.get("Authorization"))

        if base == DATASTORE_URL and path == "/fhir":
            return self.datastore.transaction(body)

        if base == DATASTORE_URL and (m := _VALIDATE.match(path)):
            return self.datastore.validate(m.group("type"), body)

        raise AssertionError(f"Unexpected POST {url}")
