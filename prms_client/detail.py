"""Patient detail view state: one patient plus its related collections.

:class:`PatientDetailAggregator` fetches the patient record together with
the patient's visits, prescriptions and reports and publishes them as a
single :class:`PatientDetail`. The bundle is all-or-nothing: when any of the
four fetches fails the previously published bundle stays in place and only
``error`` changes.

The aggregator also drives the edit mode of the detail view::

    VIEWING --begin_edit--> EDITING --cancel_edit/successful save--> VIEWING

A failed save stays in ``EDITING`` with the draft untouched.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import structlog

from prms_client.errors import ClientError, UnauthorizedError, ValidationError
from prms_client.gateway import Gateway
from prms_client.models import (
    Patient,
    PatientDraft,
    Prescription,
    Report,
    ReportDraft,
    ReportType,
    Visit,
    validate_draft,
)
from prms_client.viewstate import ViewState


logger = structlog.get_logger(__name__)

EDIT_REQUIRED_MESSAGE = "All fields are required"
REPORT_REQUIRED_MESSAGE = "Please fill in all required fields"


class EditMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"


@dataclass(frozen=True)
class PatientDetail:
    patient: Patient
    visits: Tuple[Visit, ...] = ()
    prescriptions: Tuple[Prescription, ...] = ()
    reports: Tuple[Report, ...] = ()


@dataclass(frozen=True)
class DetailState:
    bundle: Optional[PatientDetail] = None
    loading: bool = False
    error: Optional[str] = None
    mode: EditMode = EditMode.VIEWING
    draft: Dict[str, Any] = field(default_factory=dict)


class PatientDetailAggregator(ViewState):
    """Detail-view state for a single patient."""

    def __init__(self, gateway: Gateway) -> None:
        super().__init__()
        self.gateway = gateway
        self.bundle: Optional[PatientDetail] = None
        self.loading = False
        self.error: Optional[str] = None
        self.mode = EditMode.VIEWING
        self.draft: Dict[str, Any] = {}

    @property
    def state(self) -> DetailState:
        return DetailState(
            bundle=self.bundle,
            loading=self.loading,
            error=self.error,
            mode=self.mode,
            draft=dict(self.draft),
        )

    def _record_error(self, action: str, exc: ClientError, **changes: Any) -> None:
        logger.info(
            "patient_detail_action_failed",
            action=action,
            error_kind=type(exc).__name__,
            error=str(exc),
        )
        self._update(error=str(exc), **changes)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def _fetch_bundle(self, patient_id: int) -> PatientDetail:
        base = f"/patients/{patient_id}"
        results = await asyncio.gather(
            self.gateway.get(base, model=Patient),
            self.gateway.get(f"{base}/visits", model=List[Visit]),
            self.gateway.get(f"{base}/prescriptions", model=List[Prescription]),
            self.gateway.get(f"{base}/reports", model=List[Report]),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            # An expired session outranks whatever the sibling fetches reported.
            for failure in failures:
                if isinstance(failure, UnauthorizedError):
                    raise failure
            raise failures[0]
        patient, visits, prescriptions, reports = results
        return PatientDetail(
            patient=patient,
            visits=tuple(visits),
            prescriptions=tuple(prescriptions),
            reports=tuple(reports),
        )

    async def load_detail(self, patient_id: int) -> bool:
        """Fetch and publish the full bundle for ``patient_id``."""

        with self._loading():
            try:
                bundle = await self._fetch_bundle(patient_id)
            except ClientError as exc:
                self._record_error("load_detail", exc)
                return False
            self._update(bundle=bundle, error=None)
            return True

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def begin_edit(self) -> None:
        if self.bundle is None:
            return
        patient = self.bundle.patient
        self._update(
            mode=EditMode.EDITING,
            draft={"name": patient.name, "age": patient.age, "contact_info": patient.contact_info},
        )

    def update_draft(self, **fields: Any) -> None:
        self._update(draft={**self.draft, **fields})

    def cancel_edit(self) -> None:
        self._update(mode=EditMode.VIEWING, draft={}, error=None)

    async def save_edit(self) -> bool:
        if self.bundle is None:
            return False
        return await self.edit_patient(self.bundle.patient.id, self.draft)

    async def edit_patient(
        self, patient_id: int, fields: Union[PatientDraft, Mapping[str, Any]]
    ) -> bool:
        """Update the core patient fields and adopt the server's record."""

        kept = fields.model_dump() if isinstance(fields, PatientDraft) else dict(fields)
        try:
            draft = validate_draft(PatientDraft, fields, message=EDIT_REQUIRED_MESSAGE)
        except ValidationError as exc:
            self._record_error("edit_patient", exc, mode=EditMode.EDITING, draft=kept)
            return False

        action = f"edit_patient:{patient_id}"
        if not self._claim(action):
            return False
        try:
            updated = await self.gateway.put(
                f"/patients/{patient_id}", draft.to_payload(), model=Patient
            )
        except ClientError as exc:
            self._record_error("edit_patient", exc, mode=EditMode.EDITING, draft=kept)
            return False
        finally:
            self._release(action)

        bundle = self.bundle
        if bundle is not None and bundle.patient.id == updated.id:
            bundle = replace(bundle, patient=updated)
        self._update(bundle=bundle, mode=EditMode.VIEWING, draft={}, error=None)
        logger.info("patient_updated", patient_id=updated.id)
        return True

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    async def add_report(
        self,
        patient_id: int,
        report_type: Union[ReportType, str, None],
        report_data: Optional[str],
    ) -> bool:
        """Create a report for ``patient_id`` then reload the whole bundle."""

        try:
            draft = validate_draft(
                ReportDraft,
                {"patient_id": patient_id, "report_type": report_type, "report_data": report_data},
                message=REPORT_REQUIRED_MESSAGE,
            )
        except ValidationError as exc:
            self._record_error("add_report", exc)
            return False

        action = f"add_report:{patient_id}"
        if not self._claim(action):
            return False
        try:
            try:
                await self.gateway.post("/reports", draft.to_payload())
            except ClientError as exc:
                self._record_error("add_report", exc)
                return False
            return await self.load_detail(patient_id)
        finally:
            self._release(action)


__all__ = ["EditMode", "PatientDetail", "DetailState", "PatientDetailAggregator"]
