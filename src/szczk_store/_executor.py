"""Authenticated request execution with a single refresh-and-retry on 401/403."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from szczk_store._errors import AuthFailure, InvalidResponse, RemoteError, TransportError
from szczk_store._http import json_object, raise_if_cancelled, response_text

if TYPE_CHECKING:
    from szczk_store._auth import Refresher
    from szczk_store._token import TokenStore

log = logging.getLogger(__name__)

_AUTH_STATUSES = frozenset({401, 403})


class _Rejected(Exception):
    """Internal signal: the service refused the bearer token."""

    def __init__(self, response: httpx.Response, token: str) -> None:
        super().__init__(response.status_code)
        self.response = response
        self.token = token


class RequestExecutor:
    """Issues bearer-authenticated calls against the file service.

    Transport failures and non-auth error statuses are raised immediately.
    A 401/403 triggers one refresh followed by one retry; a second rejection
    is raised as :class:`AuthFailure`. Re-authentication is never attempted
    here; that escalation belongs to initialization and the scheduler.

    :param client: HTTP client (its ``base_url`` is the file service).
    :param tokens: Token cell read for every attempt.
    :param refresher: Used to renew the token after a rejection.
    :param lifecycle: Adapter-wide cancellation event.
    """

    def __init__(
        self,
        client: httpx.Client,
        tokens: TokenStore,
        refresher: Refresher,
        lifecycle: threading.Event | None = None,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._refresher = refresher
        self._lifecycle = lifecycle

    def execute(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        operation: str | None = None,
        item_id: str | None = None,
        cancel: threading.Event | None = None,
    ) -> httpx.Response:
        """Send a request and return the 2xx response.

        :raises TransportError: If no response was received.
        :raises RemoteError: For non-2xx statuses other than 401/403.
        :raises AuthFailure: If the retried request is rejected again.
        :raises RefreshError: If the token could not be renewed after a rejection.
        :raises Cancelled: If cancellation was requested before an attempt.
        """

        def renew(retry_state: RetryCallState) -> None:
            rejected = retry_state.outcome.exception() if retry_state.outcome else None
            if not isinstance(rejected, _Rejected):
                return
            log.warning(
                "%s %s rejected with %d; refreshing token and retrying once",
                method,
                url,
                rejected.response.status_code,
            )
            self._refresher.refresh_if_stale(rejected.token, cancel)

        retrying = Retrying(
            retry=retry_if_exception_type(_Rejected),
            stop=stop_after_attempt(2),
            before_sleep=renew,
            reraise=True,
        )
        try:
            return retrying(
                self._send,
                method,
                url,
                params=params,
                json=json,
                operation=operation,
                item_id=item_id,
                cancel=cancel,
            )
        except _Rejected as exc:
            raise AuthFailure(
                f"{method} {url} still rejected after token refresh",
                status=exc.response.status_code,
                body=response_text(exc.response),
                operation=operation,
                item_id=item_id,
            ) from None

    def execute_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Like :meth:`execute`, decoding the response body as a JSON object.

        :raises InvalidResponse: If the body is not a JSON object.
        """
        response = self.execute(method, url, **kwargs)
        try:
            return json_object(response)
        except ValueError as exc:
            raise InvalidResponse(
                f"Malformed response from {url}: {exc}",
                status=response.status_code,
                body=response_text(response),
                operation=kwargs.get("operation"),
                item_id=kwargs.get("item_id"),
            ) from exc

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
        operation: str | None,
        item_id: str | None,
        cancel: threading.Event | None,
    ) -> httpx.Response:
        raise_if_cancelled(self._lifecycle, cancel, operation=operation)
        token = self._tokens.snapshot().access_token
        try:
            response = self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}", operation=operation, item_id=item_id) from exc

        if response.status_code in _AUTH_STATUSES:
            raise _Rejected(response, token)
        if not response.is_success:
            raise RemoteError(
                f"{method} {url} failed with status {response.status_code}",
                status=response.status_code,
                body=response_text(response),
                operation=operation,
                item_id=item_id,
            )
        return response
