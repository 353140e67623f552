"""Dossier router - FastAPI endpoints for dossier operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    ClientLinkRequest,
    DashboardResponse,
    DossierCreate,
    DossierListResponse,
    DossierResponse,
    DossierUpdate,
    GeocodeRequest,
    HistoriqueResponse,
    MediaResponse,
    NoteCreate,
    ParseEmailRequest,
    RelanceSendRequest,
    RelanceToggleRequest,
    StatusChangeRequest,
    SummaryResponse,
)
from .service import DossierService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dossiers", tags=["Dossiers"])


def get_dossier_service(db: Session = Depends(get_db)) -> DossierService:
    """Dependency injection for DossierService"""
    return DossierService(db)


# ============================================================================
# LIST / DASHBOARD / INTAKE
# ============================================================================


@router.get("", response_model=DossierListResponse)
async def list_dossiers(
    status: Optional[str] = Query(None),
    appointment: Optional[str] = Query(None, description="Dashboard tile key"),
    source: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    urgency: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    """Dossiers of the current artisan, most urgent first"""
    return service.list_dossiers(
        current_user,
        page=page,
        page_size=page_size,
        status=status,
        appointment_tile=appointment,
        source=source,
        category=category,
        urgency=urgency,
        search=search,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.get_dashboard(current_user)


@router.post("/parse-email")
async def parse_email(
    data: ParseEmailRequest,
    current_user: User = Depends(get_current_user),
):
    """Extract client fields from a pasted email; nothing is saved"""
    return DossierService.parse_email(data.raw)


@router.post("/geocode")
async def geocode(
    data: GeocodeRequest,
    current_user: User = Depends(get_current_user),
):
    return await DossierService.geocode(data.address)


@router.post("", response_model=DossierResponse, status_code=201)
async def create_dossier(
    data: DossierCreate,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.create_dossier(data, current_user)


# ============================================================================
# SINGLE DOSSIER
# ============================================================================


@router.get("/{dossier_id}", response_model=DossierResponse)
async def get_dossier(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.get_dossier(dossier_id, current_user)


@router.patch("/{dossier_id}", response_model=DossierResponse)
async def update_dossier(
    dossier_id: str,
    data: DossierUpdate,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.update_dossier(dossier_id, data, current_user)


@router.delete("/{dossier_id}")
async def delete_dossier(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    service.delete_dossier(dossier_id, current_user)
    return {"message": "Dossier supprimé"}


@router.post("/{dossier_id}/status", response_model=DossierResponse)
async def change_status(
    dossier_id: str,
    data: StatusChangeRequest,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.change_status(dossier_id, data.status, current_user)


@router.post("/{dossier_id}/notes", response_model=HistoriqueResponse, status_code=201)
async def add_note(
    dossier_id: str,
    data: NoteCreate,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.add_note(dossier_id, data.note, current_user)


@router.get("/{dossier_id}/historique", response_model=list[HistoriqueResponse])
async def get_historique(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    """Audit trail, newest first"""
    return service.get_historique(dossier_id, current_user)


@router.get("/{dossier_id}/summary", response_model=SummaryResponse)
async def get_summary(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.get_summary(dossier_id, current_user)


@router.get("/{dossier_id}/appointment.ics")
async def download_ics(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    content = service.get_ics(dossier_id, current_user)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="rdv-{dossier_id[:8]}.ics"'},
    )


# ============================================================================
# MEDIA
# ============================================================================


@router.get("/{dossier_id}/medias", response_model=list[MediaResponse])
async def get_medias(
    dossier_id: str,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.get_medias(dossier_id, current_user)


@router.post("/{dossier_id}/medias", response_model=MediaResponse, status_code=201)
async def upload_media(
    dossier_id: str,
    file: UploadFile = File(...),
    media_category: Optional[str] = Form(None),
    note: Optional[str] = Form(None),
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return await service.upload_media(dossier_id, current_user, file, media_category, note)


# ============================================================================
# CLIENT LINK / RELANCES
# ============================================================================


@router.post("/{dossier_id}/client-token")
async def generate_client_token(
    dossier_id: str,
    data: Optional[ClientLinkRequest] = None,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    force = data.force_regenerate if data else False
    return service.generate_client_token(dossier_id, current_user, force_regenerate=force)


@router.post("/{dossier_id}/send-client-link")
async def send_client_link(
    dossier_id: str,
    data: Optional[ClientLinkRequest] = None,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    """Generate (or reuse) the client link and send it by email and SMS"""
    force = data.force_regenerate if data else False
    return await service.send_client_link(dossier_id, current_user, force_regenerate=force)


@router.post("/{dossier_id}/relance-toggle", response_model=DossierResponse)
async def toggle_relance(
    dossier_id: str,
    data: RelanceToggleRequest,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    return service.toggle_relance(dossier_id, data.active, current_user)


@router.post("/{dossier_id}/relances")
async def send_relance(
    dossier_id: str,
    data: RelanceSendRequest,
    current_user: User = Depends(get_current_user),
    service: DossierService = Depends(get_dossier_service),
):
    """Manual relance: counted even when delivery fails"""
    return await service.send_relance(dossier_id, data.type, current_user)
