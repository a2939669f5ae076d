"""Entity shapes returned by the PRMS service and the drafts sent to it.

Replies are validated into these models at the gateway boundary so the
controllers never handle untyped payloads. Drafts carry only the "required
field present" rule; anything stricter is the service's responsibility.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from prms_client.errors import ValidationError
from prms_client.time_utils import format_local, parse_date, parse_timestamp


class ReportType(str, Enum):
    LAB_TEST = "Lab Test"
    RADIOLOGY = "Radiology"
    BLOOD_WORK = "Blood Work"
    PHYSICAL_EXAMINATION = "Physical Examination"
    OTHER = "Other"


class _Entity(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Patient(_Entity):
    id: int
    name: str
    age: int = Field(..., ge=0)
    contact_info: str


class Visit(_Entity):
    visit_id: int
    patient_id: int
    visit_date: Optional[date] = None
    diagnosis: str
    doctor: Optional[str] = None

    @field_validator("visit_date", mode="before")
    @classmethod
    def _parse_visit_date(cls, v: Any) -> Optional[date]:
        return parse_date(v)


class Prescription(_Entity):
    prescription_id: int
    patient_id: int
    drug_name: str
    dosage: str
    duration: str
    doctor: Optional[str] = None
    visit_date: Optional[date] = None

    @field_validator("visit_date", mode="before")
    @classmethod
    def _parse_visit_date(cls, v: Any) -> Optional[date]:
        return parse_date(v)


class Report(_Entity):
    report_id: int
    patient_id: int
    report_type: ReportType
    report_data: str
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @property
    def created_display(self) -> str:
        """Creation time in the local timezone, blank when the server sent none."""

        return format_local(self.created_at)


class LoginResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None


# ---------------------------------------------------------------------------
# Request drafts
# ---------------------------------------------------------------------------


class _Draft(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class PatientDraft(_Draft):
    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0)
    contact_info: str = Field(..., min_length=1)


class VisitDraft(_Draft):
    patient_id: int
    diagnosis: str = Field(..., min_length=1)
    doctor_id: Optional[int] = None


class PrescriptionDraft(_Draft):
    patient_id: int
    drug_name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    doctor_id: Optional[int] = None


class ReportDraft(_Draft):
    patient_id: int
    report_type: ReportType
    report_data: str = Field(..., min_length=1)


DraftT = TypeVar("DraftT", bound=_Draft)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def validate_draft(
    model: Type[DraftT],
    data: Union[DraftT, Mapping[str, Any]],
    *,
    message: Optional[str] = None,
) -> DraftT:
    """Return ``data`` as a ``model`` instance or raise :class:`ValidationError`.

    Blank strings count as missing so form widgets can hand over their raw
    values unchanged.
    """

    if isinstance(data, model):
        return data
    raw = {key: value for key, value in dict(data).items() if not _blank(value)}
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        if message:
            raise ValidationError(message) from exc
        fields: List[str] = []
        for error in exc.errors():
            loc = error.get("loc") or ()
            name = str(loc[0]) if loc else "value"
            if name not in fields:
                fields.append(name)
        raise ValidationError("Missing or invalid fields: " + ", ".join(fields)) from exc


__all__ = [
    "ReportType",
    "Patient",
    "Visit",
    "Prescription",
    "Report",
    "LoginResponse",
    "PatientDraft",
    "VisitDraft",
    "PrescriptionDraft",
    "ReportDraft",
    "validate_draft",
]
