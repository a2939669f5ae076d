"""Collection controllers for patients, visits, prescriptions and reports.

Each controller holds a cached snapshot of one server collection. The
snapshot is only ever replaced wholesale by a fresh ``load()``; creates and
deletes are followed by a refetch so server-assigned ids and timestamps are
never guessed locally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Mapping, Optional, Tuple, Type, TypeVar, Union

import structlog

from prms_client.errors import ClientError, ValidationError
from prms_client.gateway import Gateway
from prms_client.models import (
    Patient,
    PatientDraft,
    Prescription,
    PrescriptionDraft,
    Report,
    ReportDraft,
    Visit,
    VisitDraft,
    validate_draft,
)
from prms_client.viewstate import ViewState


logger = structlog.get_logger(__name__)

EntityT = TypeVar("EntityT")
DraftT = TypeVar("DraftT")


@dataclass(frozen=True)
class CollectionState(Generic[EntityT]):
    items: Tuple[EntityT, ...] = ()
    loading: bool = False
    last_error: Optional[str] = None


@dataclass(frozen=True)
class PatientLinkedState(CollectionState[EntityT]):
    patient_options: Tuple[Patient, ...] = ()


class CollectionController(ViewState, Generic[EntityT, DraftT]):
    """Fetch/create/refresh lifecycle for one entity collection."""

    name: str = "collection"
    endpoint: str = ""
    entity: Type[Any]
    draft_model: Type[Any]

    def __init__(self, gateway: Gateway) -> None:
        super().__init__()
        self.gateway = gateway
        self.items: Tuple[EntityT, ...] = ()
        self.loading = False
        self.last_error: Optional[str] = None

    @property
    def state(self) -> CollectionState[EntityT]:
        return CollectionState(items=self.items, loading=self.loading, last_error=self.last_error)

    def _record_error(self, action: str, exc: ClientError) -> None:
        logger.info(
            "collection_action_failed",
            collection=self.name,
            action=action,
            error_kind=type(exc).__name__,
            error=str(exc),
        )
        self._update(last_error=str(exc))

    async def load(self) -> bool:
        """Replace :attr:`items` with the server's current list."""

        with self._loading():
            try:
                items = await self.gateway.get(self.endpoint, model=List[self.entity])
            except ClientError as exc:
                self._record_error("load", exc)
                return False
            self._update(items=tuple(items), last_error=None)
            logger.debug("collection_loaded", collection=self.name, count=len(items))
            return True

    def _prepare(self, draft: Union[DraftT, Mapping[str, Any]]) -> DraftT:
        return validate_draft(self.draft_model, draft)

    async def _mutate(self, action: str, call: Callable[[], Awaitable[Any]]) -> bool:
        if not self._claim(action):
            return False
        try:
            try:
                await call()
            except ClientError as exc:
                self._record_error(action, exc)
                return False
            return await self.load()
        finally:
            self._release(action)

    async def create(self, draft: Union[DraftT, Mapping[str, Any]]) -> bool:
        """Submit ``draft`` and resynchronise with a full reload on success."""

        try:
            prepared = self._prepare(draft)
        except ValidationError as exc:
            self._record_error("create", exc)
            return False
        payload = prepared.to_payload()  # type: ignore[attr-defined]
        return await self._mutate("create", lambda: self.gateway.post(self.endpoint, payload))


class PatientOptionsMixin:
    """Patient choices for the "add" forms of patient-linked collections."""

    gateway: Gateway
    patient_options: Tuple[Patient, ...] = ()

    @property
    def state(self) -> PatientLinkedState:
        return PatientLinkedState(
            items=self.items,  # type: ignore[attr-defined]
            loading=self.loading,  # type: ignore[attr-defined]
            last_error=self.last_error,  # type: ignore[attr-defined]
            patient_options=self.patient_options,
        )

    async def load_patient_options(self) -> bool:
        try:
            patients = await self.gateway.get("/patients", model=List[Patient])
        except ClientError as exc:
            self._record_error("load_patient_options", exc)  # type: ignore[attr-defined]
            return False
        self._update(patient_options=tuple(patients))  # type: ignore[attr-defined]
        return True


class PatientsController(CollectionController[Patient, PatientDraft]):
    name = "patients"
    endpoint = "/patients"
    entity = Patient
    draft_model = PatientDraft

    async def delete(self, patient_id: int) -> bool:
        """Delete one patient; the shell must have confirmed with the operator."""

        return await self._mutate(
            f"delete:{patient_id}",
            lambda: self.gateway.delete(f"/patients/{patient_id}"),
        )


class _DoctorDefaultMixin:
    default_doctor_id: int

    def _with_doctor(self, draft: Any) -> Any:
        if draft.doctor_id is None:
            return draft.model_copy(update={"doctor_id": self.default_doctor_id})
        return draft


class VisitsController(
    PatientOptionsMixin, _DoctorDefaultMixin, CollectionController[Visit, VisitDraft]
):
    name = "visits"
    endpoint = "/visits"
    entity = Visit
    draft_model = VisitDraft

    def __init__(self, gateway: Gateway, *, default_doctor_id: int) -> None:
        super().__init__(gateway)
        self.default_doctor_id = default_doctor_id

    def _prepare(self, draft: Union[VisitDraft, Mapping[str, Any]]) -> VisitDraft:
        return self._with_doctor(super()._prepare(draft))


class PrescriptionsController(
    PatientOptionsMixin,
    _DoctorDefaultMixin,
    CollectionController[Prescription, PrescriptionDraft],
):
    name = "prescriptions"
    endpoint = "/prescriptions"
    entity = Prescription
    draft_model = PrescriptionDraft

    def __init__(self, gateway: Gateway, *, default_doctor_id: int) -> None:
        super().__init__(gateway)
        self.default_doctor_id = default_doctor_id

    def _prepare(
        self, draft: Union[PrescriptionDraft, Mapping[str, Any]]
    ) -> PrescriptionDraft:
        return self._with_doctor(super()._prepare(draft))


class ReportsController(PatientOptionsMixin, CollectionController[Report, ReportDraft]):
    name = "reports"
    endpoint = "/reports"
    entity = Report
    draft_model = ReportDraft


__all__ = [
    "CollectionState",
    "PatientLinkedState",
    "CollectionController",
    "PatientsController",
    "VisitsController",
    "PrescriptionsController",
    "ReportsController",
]
