"""
Thin wrapper around :mod:`requests` used for every upstream call.

Transport failures (connection refused, timeouts, ...) never escape from here: they
are normalised into a status 500 :class:`UpstreamResponse` whose body carries the
error message.
"""

import logging
from typing import Any

import requests

from mpi_mediator.common.common import QueryParams, UpstreamResponse, json_str

logger = logging.getLogger(__name__)


def _decode_body(response: requests.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"error": response.text}


def get(
    url: str,
    *,
    headers: dict[str, str],
    params: QueryParams | None = None,
    timeout: int,
) -> UpstreamResponse:
    """
    Issue a GET request.

    :param url: Fully qualified URL.
    :param headers: Request headers.
    :param params: Optional query parameters, URL-encoded by :mod:`requests`.
    :param timeout: Timeout in seconds.
    :returns: The upstream status and decoded body.
    """
    try:
        response = requests.get(url, headers=headers, params=params, timeout=timeout)
    except requests.RequestException as err:
        logger.error("GET %s failed: %s", url, err)
        return UpstreamResponse(status_code=500, body={"error": str(err)})

    return UpstreamResponse(
        status_code=response.status_code, body=_decode_body(response)
    )


def post(
    url: str,
    *,
    headers: dict[str, str],
    data: json_str,
    timeout: int,
) -> UpstreamResponse:
    """
    Issue a POST request with a pre-serialised JSON body.

    :param url: Fully qualified URL.
    :param headers: Request headers.
    :param data: JSON body as a string.
    :param timeout: Timeout in seconds.
    :returns: The upstream status and decoded body.
    """
    try:
        response = requests.post(url, headers=headers, data=data, timeout=timeout)
    except requests.RequestException as err:
        logger.error("POST %s failed: %s", url, err)
        return UpstreamResponse(status_code=500, body={"error": str(err)})

    return UpstreamResponse(
        status_code=response.status_code, body=_decode_body(response)
    )
