"""Login state for the operator's session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from prms_client.credentials import CredentialStore
from prms_client.errors import ClientError
from prms_client.gateway import Gateway
from prms_client.models import LoginResponse
from prms_client.viewstate import ViewState


logger = structlog.get_logger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed. Please try again."


@dataclass(frozen=True)
class SessionState:
    authenticated: bool = False
    loading: bool = False
    error: Optional[str] = None


class AuthSession(ViewState):
    """Login/logout on top of the credential store.

    ``authenticated`` is derived from the store on every read, so a 401
    handled by the gateway flips it without any extra bookkeeping here.
    """

    def __init__(self, gateway: Gateway, credentials: CredentialStore) -> None:
        super().__init__()
        self.gateway = gateway
        self.credentials = credentials
        self.loading = False
        self.error: Optional[str] = None
        self._expired = False

    @property
    def authenticated(self) -> bool:
        return self.credentials.load() is not None

    @property
    def state(self) -> SessionState:
        return SessionState(authenticated=self.authenticated, loading=self.loading, error=self.error)

    async def login(self, username: str, password: str) -> bool:
        self._update(error=None)
        with self._loading():
            try:
                reply = await self.gateway.post(
                    "/login",
                    {"username": username, "password": password},
                    model=LoginResponse,
                )
            except ClientError as exc:
                logger.info("login_failed", username=username, error_kind=type(exc).__name__)
                self._update(error=str(exc))
                return False
            if not reply.access_token:
                logger.info("login_failed", username=username, error_kind="missing_token")
                self._update(error=LOGIN_FAILED_MESSAGE)
                return False
            self.credentials.save(reply.access_token)
            self._expired = False
            logger.info("login_succeeded", username=username)
            self._update(error=None)
            return True

    def session_expired(self) -> bool:
        """Republish after the gateway dropped the credential on a 401.

        Returns ``False`` when the session was already marked expired, so
        concurrent 401s from one fan-out count as a single transition.
        """

        if self._expired:
            return False
        self._expired = True
        logger.info("session_expired")
        self._update()
        return True

    def logout(self) -> None:
        self.credentials.clear()
        logger.info("logout")
        self._update(error=None)


__all__ = ["AuthSession", "SessionState", "LOGIN_FAILED_MESSAGE"]
