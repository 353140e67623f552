"""Public router - client link endpoints (token in query or body, no auth)"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.orm import Session

from ...database import get_db
from ..dossiers.schemas import MediaResponse
from ..quotes.service import QuoteService
from .schemas import ClientFormSubmit, PublicLine, PublicSlot, QuoteDecision, SlotSelection
from .service import PublicService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["Public"])


def get_public_service(db: Session = Depends(get_db)) -> PublicService:
    """Dependency injection for PublicService"""
    return PublicService(db)


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


# ============================================================================
# CLIENT FORM
# ============================================================================


@router.get("/dossier")
async def get_client_dossier(
    token: str = Query(..., min_length=1),
    service: PublicService = Depends(get_public_service),
):
    return service.get_dossier_view(token)


@router.post("/dossier/submit")
async def submit_client_form(
    data: ClientFormSubmit,
    service: PublicService = Depends(get_public_service),
):
    return service.submit_form(data)


@router.post("/dossier/media", response_model=MediaResponse, status_code=201)
async def upload_client_media(
    token: str = Form(...),
    note: Optional[str] = Form(None),
    file: UploadFile = File(...),
    service: PublicService = Depends(get_public_service),
):
    return await service.upload_media(token, file, note)


# ============================================================================
# QUOTE / INVOICE
# ============================================================================


@router.get("/quote")
async def get_client_quote(
    token: str = Query(..., min_length=1),
    service: PublicService = Depends(get_public_service),
):
    view = service.get_quote_view(token)
    view["lines"] = [PublicLine.model_validate(line) for line in view["lines"]]
    return view


@router.post("/quote/validate")
async def validate_client_quote(
    data: QuoteDecision,
    request: Request,
    db: Session = Depends(get_db),
):
    """Accept or refuse a quote from the validation link"""
    return await QuoteService(db).validate_by_client(
        data.token,
        data.action,
        data.reason,
        _client_ip(request),
        request.headers.get("user-agent"),
    )


@router.get("/invoice")
async def get_client_invoice(
    token: str = Query(..., min_length=1),
    service: PublicService = Depends(get_public_service),
):
    view = service.get_invoice_view(token)
    view["lines"] = [PublicLine.model_validate(line) for line in view["lines"]]
    return view


# ============================================================================
# APPOINTMENT
# ============================================================================


@router.get("/appointment")
async def get_client_appointment(
    token: str = Query(..., min_length=1),
    service: PublicService = Depends(get_public_service),
):
    view = service.get_appointment_view(token)
    slots: List[PublicSlot] = [PublicSlot.model_validate(slot) for slot in view["slots"]]
    view["slots"] = slots
    return view


@router.post("/appointment/select")
async def select_client_slot(
    data: SlotSelection,
    service: PublicService = Depends(get_public_service),
):
    result = service.select_slot(data.token, data.slot_id)
    return {"success": result["success"], "slot": PublicSlot.model_validate(result["slot"])}
