"""
Bearer tokens for calls to the client registry.

The registry is protected by an OAuth2 token endpoint using the client credentials
grant. The client authenticates either with a client secret or, when a private key
is configured, with a signed JWT client assertion.
"""

import logging
import threading
import uuid
from time import time
from typing import Protocol

import jwt
import requests

logger = logging.getLogger(__name__)

# Tokens are refreshed this many seconds before they actually expire.
EXPIRY_LEEWAY = 30
JWT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class AuthTokenProvider(Protocol):
    def get_token(self) -> str: ...


class TokenRequestError(Exception):
    """
    Raised when a bearer token cannot be obtained from the token endpoint.
    """


def get_key_id(path_to_private_key: str) -> str:
    """The key id is the private key's file name without the ``.pem`` suffix."""
    return path_to_private_key.split("/")[-1].split(".pem")[0]


def sign_jwt(client_id: str, path_to_private_key: str, token_url: str) -> str:
    """
    Build a short lived RS512 client assertion for the token endpoint.

    :param client_id: OAuth2 client id, used as issuer and subject.
    :param path_to_private_key: Path to a ``<key_id>.pem`` private key.
    :param token_url: Token endpoint URL, used as audience.
    :returns: The encoded JWT.
    """
    with open(path_to_private_key) as f:
        private_key = f.read()

    five_minutes = int(time()) + 300
    claims = {
        "sub": client_id,
        "iss": client_id,
        "jti": str(uuid.uuid4()),
        "aud": token_url,
        "exp": five_minutes,
    }

    return jwt.encode(
        claims,
        private_key,
        algorithm="RS512",
        headers={"kid": get_key_id(path_to_private_key)},
    )


class ClientCredentialsTokenProvider:
    """
    Obtains and caches an access token using the client credentials grant.

    Safe to share between threads: concurrent callers wait for a single refresh.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str = "",
        *,
        private_key_path: str | None = None,
        timeout: int = 10,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.private_key_path = private_key_path
        self.timeout = timeout

        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get_token(self) -> str:
        """
        :returns: A bearer token (without the ``Bearer`` prefix).
        :raises TokenRequestError: If the client assertion cannot be signed, or the
            token endpoint cannot be reached or rejects the request.
        """
        with self._lock:
            if self._token is None or time() >= self._expires_at:
                self._token, self._expires_at = self._request_token()
            return self._token

    def _build_form(self) -> dict[str, str]:
        data = {"grant_type": "client_credentials"}

        if self.private_key_path:
            data["client_assertion_type"] = JWT_ASSERTION_TYPE
            data["client_assertion"] = sign_jwt(
                self.client_id, self.private_key_path, self.token_url
            )
        else:
            data["client_id"] = self.client_id
            data["client_secret"] = self.client_secret

        return data

    def _request_token(self) -> tuple[str, float]:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        try:
            form = self._build_form()
        except (OSError, ValueError, jwt.PyJWTError) as err:
            raise TokenRequestError(
                f"Unable to sign client assertion with {self.private_key_path}: {err}"
            ) from err

        try:
            response = requests.post(
                self.token_url,
                headers=headers,
                data=form,
                timeout=self.timeout,
            )
            response.raise_for_status()
            token_response = response.json()
            token = str(token_response["access_token"])
            expires_in = float(token_response.get("expires_in") or 0)
        except requests.RequestException as err:
            raise TokenRequestError(f"Error obtaining auth token: {err}") from err
        except (ValueError, KeyError) as err:
            raise TokenRequestError(
                f"Token endpoint returned an unusable response: {err}"
            ) from err

        logger.debug("Obtained registry access token valid for %ss", expires_in)
        return token, time() + max(expires_in - EXPIRY_LEEWAY, 0)
