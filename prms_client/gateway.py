"""Authenticated request gateway for the PRMS REST service.

Every network call made by the client goes through :class:`Gateway`, which
attaches the session credential, encodes JSON bodies and turns each reply
into either a parsed value or one of the failures in
:mod:`prms_client.errors`. A 401 from any endpoint clears the stored
credential and sends the shell back to the login screen before the caller
sees :class:`~prms_client.errors.UnauthorizedError`.
"""

from __future__ import annotations

import time
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

import httpx
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from prms_client.config import ClientSettings
from prms_client.credentials import CredentialStore
from prms_client.errors import (
    RequestFailedError,
    ResponseFormatError,
    TransportError,
    UnauthorizedError,
)
from prms_client.observability import REQUEST_FAILURES, REQUEST_LATENCY


logger = structlog.get_logger(__name__)

LOGIN_ROUTE = "/login"

Navigator = Callable[[str], None]


@lru_cache(maxsize=None)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


class Gateway:
    """Single chokepoint for HTTP exchanges with the service.

    Args:
        settings:    Base endpoint and timeout.
        credentials: Store holding the bearer token, read on every request.
        navigate:    Callback invoked with :data:`LOGIN_ROUTE` when the
                     service signals that the session has expired.
        transport:   Optional ``httpx`` transport, e.g. a ``MockTransport``.
    """

    def __init__(
        self,
        settings: ClientSettings,
        credentials: CredentialStore,
        *,
        navigate: Optional[Navigator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self._navigate = navigate
        self._http = httpx.AsyncClient(timeout=settings.timeout, transport=transport)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self.credentials.load()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        *,
        model: Any = None,
    ) -> Any:
        """Perform one exchange and return the parsed JSON reply.

        When ``model`` is given the reply is validated into that type (for
        example ``List[Patient]``) and a mismatch raises
        :class:`ResponseFormatError`.
        """

        method = method.upper()
        url = self.settings.url_for(endpoint)
        log = logger.bind(method=method, endpoint=endpoint)

        started = time.perf_counter()
        try:
            if body is None:
                response = await self._http.request(method, url, headers=self._headers())
            else:
                response = await self._http.request(
                    method, url, headers=self._headers(), json=body
                )
        except httpx.HTTPError as exc:
            REQUEST_FAILURES.labels(kind="transport").inc()
            log.warning("gateway_transport_error", error=str(exc))
            raise TransportError("Unable to reach the server") from exc
        finally:
            REQUEST_LATENCY.labels(method=method).observe(time.perf_counter() - started)

        status = response.status_code
        if status == 401:
            self.credentials.clear()
            REQUEST_FAILURES.labels(kind="unauthorized").inc()
            log.info("gateway_session_expired", status=status)
            if self._navigate is not None:
                self._navigate(LOGIN_ROUTE)
            raise UnauthorizedError()

        if status == 204:
            log.debug("gateway_response", status=status)
            return None

        try:
            data = response.json()
        except ValueError as exc:
            REQUEST_FAILURES.labels(kind="transport").inc()
            log.warning("gateway_unparseable_response", status=status)
            raise TransportError("Invalid response from server") from exc

        if not response.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            if not isinstance(message, str) or not message:
                message = "Request failed"
            REQUEST_FAILURES.labels(kind="request_failed").inc()
            log.info("gateway_request_failed", status=status, error=message)
            raise RequestFailedError(message, status_code=status)

        log.debug("gateway_response", status=status)
        if model is None:
            return data
        try:
            return _adapter(model).validate_python(data)
        except PydanticValidationError as exc:
            REQUEST_FAILURES.labels(kind="response_format").inc()
            log.warning("gateway_response_shape_mismatch", errors=exc.error_count())
            raise ResponseFormatError("Unexpected response from server") from exc

    async def get(self, endpoint: str, *, model: Any = None) -> Any:
        return await self.request(endpoint, "GET", model=model)

    async def post(self, endpoint: str, body: Any, *, model: Any = None) -> Any:
        return await self.request(endpoint, "POST", body, model=model)

    async def put(self, endpoint: str, body: Any, *, model: Any = None) -> Any:
        return await self.request(endpoint, "PUT", body, model=model)

    async def delete(self, endpoint: str) -> Any:
        return await self.request(endpoint, "DELETE")


__all__ = ["Gateway", "LOGIN_ROUTE", "Navigator"]
