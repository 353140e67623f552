"""
Integrations router - Google OAuth connections

Redirect URIs point to the frontend, which posts the authorization code back
to /integrations/{provider}/callback.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .service import GoogleProvider, IntegrationService

router = APIRouter(prefix="/integrations", tags=["Integrations"])


class OAuthCallback(BaseModel):
    code: str = Field(..., min_length=1)


def get_integration_service(db: Session = Depends(get_db)) -> IntegrationService:
    """Dependency injection for IntegrationService"""
    return IntegrationService(db)


def get_provider(provider: str) -> GoogleProvider:
    return IntegrationService.get_provider(provider)


@router.get("/{provider}/connect")
async def connect(
    provider: GoogleProvider = Depends(get_provider),
    current_user: User = Depends(get_current_user),
    service: IntegrationService = Depends(get_integration_service),
):
    return service.connect_url(provider, current_user)


@router.post("/{provider}/callback")
async def callback(
    data: OAuthCallback,
    provider: GoogleProvider = Depends(get_provider),
    current_user: User = Depends(get_current_user),
    service: IntegrationService = Depends(get_integration_service),
):
    return await service.handle_callback(provider, data.code, current_user)


@router.get("/{provider}/status")
async def status(
    provider: GoogleProvider = Depends(get_provider),
    current_user: User = Depends(get_current_user),
    service: IntegrationService = Depends(get_integration_service),
):
    return service.status(provider, current_user)


@router.post("/{provider}/disconnect")
async def disconnect(
    provider: GoogleProvider = Depends(get_provider),
    current_user: User = Depends(get_current_user),
    service: IntegrationService = Depends(get_integration_service),
):
    return await service.disconnect(provider, current_user)
