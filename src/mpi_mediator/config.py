"""
Environment driven configuration for the MPI mediator.

Configuration is read once into immutable values. Every upstream request is built
from these values at call time, so nothing mutable is shared between concurrent
invocations.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cache


@dataclass(frozen=True)
class ServiceLocation:
    """
    Coordinates of an upstream HTTP service.

    :param protocol: ``http`` or ``https``.
    :param host: Host name.
    :param port: TCP port.
    """

    protocol: str
    host: str
    port: int

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


@dataclass(frozen=True)
class Config:
    fhir_datastore: ServiceLocation
    client_registry: ServiceLocation
    mpi: ServiceLocation
    mpi_proxy_url: str | None = None
    mpi_client_id: str = ""
    mpi_client_secret: str = ""
    mpi_auth_token_url: str = ""
    mpi_private_key_path: str | None = None
    kafka_brokers: tuple[str, ...] = field(default=("localhost:9092",))
    kafka_bundle_topic: str = "2xx"
    kafka_client_id: str = "mpi-mediator"
    mediator_urn: str = "urn:mediator:mpi-mediator"
    request_timeout: int = 10
    kafka_send_timeout: int = 10
    log_level: str = "INFO"


def _location(env: Mapping[str, str], prefix: str, default_port: int) -> ServiceLocation:
    port = env.get(f"{prefix}_PORT", str(default_port))
    try:
        port_number = int(port)
    except ValueError as err:
        raise RuntimeError(f"{prefix}_PORT must be an integer, got {port!r}") from err

    return ServiceLocation(
        protocol=env.get(f"{prefix}_PROTOCOL", "http"),
        host=env.get(f"{prefix}_HOST", "localhost"),
        port=port_number,
    )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as err:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from err


def load_config(env: Mapping[str, str] | None = None) -> Config:
    """
    Build a :class:`Config` from environment variables.

    :param env: Mapping to read from. Defaults to ``os.environ``.
    :returns: The configuration.
    :raises RuntimeError: If a numeric variable cannot be parsed.
    """
    if env is None:
        env = os.environ

    mpi = _location(env, "MPI", 3000)
    brokers = tuple(
        broker.strip()
        for broker in env.get("KAFKA_BROKERS", "localhost:9092").split(",")
        if broker.strip()
    )

    return Config(
        fhir_datastore=_location(env, "FHIR_DATASTORE", 8080),
        client_registry=_location(env, "CLIENT_REGISTRY", 3000),
        mpi=mpi,
        mpi_proxy_url=env.get("MPI_PROXY_URL") or None,
        mpi_client_id=env.get("MPI_CLIENT_ID", ""),
        mpi_client_secret=env.get("MPI_CLIENT_SECRET", ""),
        mpi_auth_token_url=env.get(
            "MPI_AUTH_TOKEN_URL", f"{mpi.base_url}/auth/oauth2_token"
        ),
        mpi_private_key_path=env.get("MPI_PRIVATE_KEY_PATH") or None,
        kafka_brokers=brokers,
        kafka_bundle_topic=env.get("KAFKA_BUNDLE_TOPIC", "2xx"),
        kafka_client_id=env.get("MPI_KAFKA_CLIENT_ID", "mpi-mediator"),
        mediator_urn=env.get("MEDIATOR_URN", "urn:mediator:mpi-mediator"),
        request_timeout=_int(env, "REQUEST_TIMEOUT", 10),
        kafka_send_timeout=_int(env, "KAFKA_SEND_TIMEOUT", 10),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


@cache
def get_config() -> Config:
    """Process-wide configuration, read from ``os.environ`` on first use."""
    return load_config()
