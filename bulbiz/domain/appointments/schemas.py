"""Appointment domain schemas - Pydantic models for validation"""

import re
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_time(v: str) -> str:
    v = (v or "").strip()[:5]
    if not TIME_RE.match(v):
        raise ValueError("Heure invalide (HH:MM)")
    return v


class TimeRange(BaseModel):
    time_start: str
    time_end: str

    @field_validator("time_start", "time_end")
    @classmethod
    def validate_time(cls, v):
        return _check_time(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.time_end <= self.time_start:
            raise ValueError("L'heure de fin doit être après l'heure de début")
        return self


class SlotInput(TimeRange):
    slot_date: date


class ProposeSlotsRequest(BaseModel):
    slots: list[SlotInput] = Field(..., min_length=1, max_length=5)


class ManualRdvRequest(TimeRange):
    appointment_date: date
    source: Literal["manual", "phone", "email"] = "manual"
    notes: Optional[str] = Field(None, max_length=2000)


class SlotResponse(BaseModel):
    id: str
    slot_date: date
    time_start: str
    time_end: str
    selected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    dossier_id: str
    appointment_status: str
    appointment_date: Optional[date] = None
    appointment_time_start: Optional[str] = None
    appointment_time_end: Optional[str] = None
    appointment_source: Optional[str] = None
    appointment_confirmed_at: Optional[datetime] = None
    appointment_notes: Optional[str] = None
    slots: list[SlotResponse] = []
    notification: Optional[dict] = None
