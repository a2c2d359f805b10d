"""Credential exchange and token renewal against the Szczk auth service."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

import httpx

from szczk_store._errors import AuthError, RefreshError
from szczk_store._http import json_object, raise_if_cancelled, response_text

if TYPE_CHECKING:
    from szczk_store._config import SzczkConfig
    from szczk_store._token import TokenState, TokenStore

log = logging.getLogger(__name__)


def _token_fields(data: dict[str, Any], *required: str) -> dict[str, Any]:
    """Validate token response fields, raising ``ValueError`` on a bad shape."""
    for key in required:
        if key not in data:
            raise ValueError(f"missing '{key}'")
    if not isinstance(data["access_token"], str) or not data["access_token"]:
        raise ValueError("'access_token' must be a non-empty string")
    expires_in = data["expires_in"]
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in < 0:
        raise ValueError("'expires_in' must be a non-negative number")
    return data


class Authenticator:
    """Exchanges the API key/secret for a fresh token pair.

    :param client: HTTP client used for the exchange.
    :param config: Adapter settings (credentials and ``auth_url``).
    :param tokens: Token cell replaced on success.
    :param lifecycle: Adapter-wide cancellation event.
    """

    def __init__(
        self,
        client: httpx.Client,
        config: SzczkConfig,
        tokens: TokenStore,
        lifecycle: threading.Event | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tokens = tokens
        self._lifecycle = lifecycle

    @property
    def url(self) -> str:
        return self._config.auth_url.rstrip("/") + "/authenticate"

    def authenticate(self, cancel: threading.Event | None = None) -> TokenState:
        """Perform the initial credential exchange.

        :raises AuthError: On transport failure, non-2xx status or malformed body.
        :raises Cancelled: If cancellation was requested before the call.
        """
        raise_if_cancelled(self._lifecycle, cancel, operation="authenticate")
        log.debug("Authenticating against %s", self._config.auth_url)
        try:
            response = self._client.get(
                self.url,
                params={"api_key": self._config.api_key, "api_secret": self._config.api_secret},
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"Authentication request failed: {exc}", operation="authenticate") from exc

        if not response.is_success:
            raise AuthError(
                f"Authentication failed with status {response.status_code}",
                status=response.status_code,
                body=response_text(response),
                operation="authenticate",
            )
        try:
            data = _token_fields(json_object(response), "access_token", "refresh_token", "expires_in")
        except ValueError as exc:
            raise AuthError(
                f"Failed to parse authentication response: {exc}",
                status=response.status_code,
                body=response_text(response),
                operation="authenticate",
            ) from exc

        state = self._tokens.replace(data["access_token"], str(data["refresh_token"]), data["expires_in"])
        log.info("Authenticated with Szczk Cloud; token expires at %s", state.expires_at.isoformat())
        return state


class Refresher:
    """Renews the access token using the refresh token.

    :param client: HTTP client used for the renewal.
    :param config: Adapter settings (``auth_url``).
    :param tokens: Token cell updated on success.
    :param lifecycle: Adapter-wide cancellation event.
    """

    def __init__(
        self,
        client: httpx.Client,
        config: SzczkConfig,
        tokens: TokenStore,
        lifecycle: threading.Event | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tokens = tokens
        self._lifecycle = lifecycle
        self._refresh_lock = threading.Lock()

    @property
    def url(self) -> str:
        return self._config.auth_url.rstrip("/") + "/refresh_token"

    def refresh(self, cancel: threading.Event | None = None) -> TokenState:
        """Renew the access token.

        The refresh token is kept unless the service returns a new one. Renewals
        are serialized, so a rotated refresh token is never sent twice.

        :raises RefreshError: On transport failure, non-2xx status or malformed body.
        :raises BackendUnavailable: If there is no token to renew.
        :raises Cancelled: If cancellation was requested before the call.
        """
        with self._refresh_lock:
            return self._refresh(cancel)

    def _refresh(self, cancel: threading.Event | None) -> TokenState:
        raise_if_cancelled(self._lifecycle, cancel, operation="refresh")
        current = self._tokens.snapshot()
        log.debug("Refreshing access token")
        try:
            response = self._client.post(
                self.url,
                headers={"Authorization": f"Bearer {current.access_token}"},
                json={"refresh_token": current.refresh_token},
            )
        except httpx.HTTPError as exc:
            raise RefreshError(f"Token refresh request failed: {exc}", operation="refresh") from exc

        if not response.is_success:
            raise RefreshError(
                f"Token refresh failed with status {response.status_code}",
                status=response.status_code,
                body=response_text(response),
                operation="refresh",
            )
        try:
            data = _token_fields(json_object(response), "access_token", "expires_in")
        except ValueError as exc:
            raise RefreshError(
                f"Failed to parse token refresh response: {exc}",
                status=response.status_code,
                body=response_text(response),
                operation="refresh",
            ) from exc

        new_refresh = data.get("refresh_token")
        state = self._tokens.update_access(
            data["access_token"],
            data["expires_in"],
            refresh_token=new_refresh if isinstance(new_refresh, str) and new_refresh else None,
        )
        log.debug("Access token refreshed; expires at %s", state.expires_at.isoformat())
        return state

    def refresh_if_stale(self, used_token: str, cancel: threading.Event | None = None) -> TokenState:
        """Refresh unless the token a failed request used has already been replaced.

        Concurrent callers rejected with the same token end up sharing one renewal.
        """
        with self._refresh_lock:
            current = self._tokens.snapshot()
            if current.access_token != used_token:
                log.debug("Access token already renewed by a concurrent caller")
                return current
            return self._refresh(cancel)
