"""Appointment router - RDV endpoints nested under a dossier"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import AppointmentResponse, ManualRdvRequest, ProposeSlotsRequest
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dossiers/{dossier_id}/appointment", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.get("", response_model=AppointmentResponse)
async def get_appointment(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(dossier_id, current_user)


@router.post("/request", response_model=AppointmentResponse)
async def request_appointment(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.request_appointment(dossier_id, current_user)


@router.post("/slots", response_model=AppointmentResponse)
async def propose_slots(
    dossier_id: str,
    data: ProposeSlotsRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Propose 1-5 slots; the client picks one from the client link"""
    return await service.propose_slots(dossier_id, data.slots, current_user)


@router.post("/confirm", response_model=AppointmentResponse)
async def confirm_selected_slot(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.confirm_selected_slot(dossier_id, current_user)


@router.post("/manual", response_model=AppointmentResponse)
async def set_manual_rdv(
    dossier_id: str,
    data: ManualRdvRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.set_manual_rdv(dossier_id, data, current_user)


@router.post("/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.cancel(dossier_id, current_user)


@router.post("/done", response_model=AppointmentResponse)
async def mark_done(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.mark_done(dossier_id, current_user)
