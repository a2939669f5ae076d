"""Composition root wiring settings, credential store, gateway and views.

Usage::

    async with PRMSClient(navigate=router.go) as client:
        await client.session.login("admin", "secret")
        patients = client.patients()
        await patients.load()
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from prms_client.config import ClientSettings, get_client_settings
from prms_client.controllers import (
    PatientsController,
    PrescriptionsController,
    ReportsController,
    VisitsController,
)
from prms_client.credentials import CredentialStore, FileCredentialStore
from prms_client.detail import PatientDetailAggregator
from prms_client.gateway import Gateway, Navigator
from prms_client.session import AuthSession


class PRMSClient:
    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        credentials: Optional[CredentialStore] = None,
        *,
        navigate: Optional[Navigator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_client_settings()
        self.credentials = credentials or FileCredentialStore(self.settings.resolved_token_path())
        self._navigate = navigate
        self.gateway = Gateway(
            self.settings, self.credentials, navigate=self._on_expired, transport=transport
        )
        self.session = AuthSession(self.gateway, self.credentials)

    def _on_expired(self, route: str) -> None:
        if self.session.session_expired() and self._navigate is not None:
            self._navigate(route)

    async def aclose(self) -> None:
        await self.gateway.aclose()

    async def __aenter__(self) -> "PRMSClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    def patients(self) -> PatientsController:
        return PatientsController(self.gateway)

    def visits(self) -> VisitsController:
        return VisitsController(self.gateway, default_doctor_id=self.settings.default_doctor_id)

    def prescriptions(self) -> PrescriptionsController:
        return PrescriptionsController(
            self.gateway, default_doctor_id=self.settings.default_doctor_id
        )

    def reports(self) -> ReportsController:
        return ReportsController(self.gateway)

    def detail(self) -> PatientDetailAggregator:
        return PatientDetailAggregator(self.gateway)


__all__ = ["PRMSClient"]
