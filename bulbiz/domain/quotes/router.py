"""Quote router - FastAPI endpoints for devis"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    LinesReplace,
    QuoteCreate,
    QuoteResponse,
    QuoteStatusRequest,
    QuoteTemplateResponse,
    QuoteUpdate,
)
from .service import QuoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotes", tags=["Quotes"])


def get_quote_service(db: Session = Depends(get_db)) -> QuoteService:
    """Dependency injection for QuoteService"""
    return QuoteService(db)


@router.get("/templates", response_model=list[QuoteTemplateResponse])
async def list_templates(current_user: User = Depends(get_current_user)):
    return QuoteService.list_templates()


@router.get("", response_model=list[QuoteResponse])
async def list_quotes(
    dossier_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return service.list_quotes(current_user, dossier_id)


@router.post("", response_model=QuoteResponse, status_code=201)
async def create_quote(
    data: QuoteCreate,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    """Create a draft devis, blank or from a template"""
    return service.create_quote(data, current_user)


@router.post("/import", response_model=QuoteResponse, status_code=201)
async def import_quote(
    dossier_id: str = Form(...),
    quote_number: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    """Attach a devis made elsewhere (PDF)"""
    return await service.import_pdf(dossier_id, file, current_user, quote_number)


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: str,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return service.get_quote(quote_id, current_user)


@router.patch("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: str,
    data: QuoteUpdate,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return service.update_quote(quote_id, data, current_user)


@router.put("/{quote_id}/lines", response_model=QuoteResponse)
async def replace_lines(
    quote_id: str,
    data: LinesReplace,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return service.replace_lines(quote_id, data.lines, current_user)


@router.post("/{quote_id}/status", response_model=QuoteResponse)
async def change_status(
    quote_id: str,
    data: QuoteStatusRequest,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return await service.change_status(quote_id, data.status, current_user)


@router.post("/{quote_id}/send")
async def send_quote(
    quote_id: str,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return await service.send_quote(quote_id, current_user)


@router.delete("/{quote_id}")
async def delete_quote(
    quote_id: str,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    service.delete_quote(quote_id, current_user)
    return {"message": "Devis supprimé"}
