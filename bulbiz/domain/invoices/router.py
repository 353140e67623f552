"""Invoice router - FastAPI endpoints for factures"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..quotes.schemas import LinesReplace
from .schemas import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceStatusRequest,
    InvoiceTokenResponse,
    InvoiceUpdate,
)
from .service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    dossier_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.list_invoices(current_user, dossier_id)


@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Create a facture (client and artisan details are snapshotted now)"""
    return service.create_invoice(data, current_user)


@router.post("/import", response_model=InvoiceResponse, status_code=201)
async def import_invoice(
    dossier_id: str = Form(...),
    invoice_number: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return await service.import_pdf(dossier_id, file, current_user, invoice_number)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.get_invoice(invoice_id, current_user)


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: str,
    data: InvoiceUpdate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.update_invoice(invoice_id, data, current_user)


@router.put("/{invoice_id}/lines", response_model=InvoiceResponse)
async def replace_lines(
    invoice_id: str,
    data: LinesReplace,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.replace_lines(invoice_id, data.lines, current_user)


@router.post("/{invoice_id}/token", response_model=InvoiceTokenResponse)
async def generate_token(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.generate_token(invoice_id, current_user)


@router.post("/{invoice_id}/status", response_model=InvoiceResponse)
async def change_status(
    invoice_id: str,
    data: InvoiceStatusRequest,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.change_status(invoice_id, data.status, current_user)


@router.post("/{invoice_id}/send")
async def send_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return await service.send_invoice(invoice_id, current_user)


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    service.delete_invoice(invoice_id, current_user)
    return {"message": "Facture supprimée"}
