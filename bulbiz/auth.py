import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def verify_access_token(token: str) -> dict:
    """Verify the HS256 access token issued by the auth provider"""
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        payload = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.warning(f"⚠️ Invalid access token: {e}")
        raise HTTPException(status_code=401, detail="Non autorisé") from e

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Non autorisé")
    return payload


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the artisan for this request, creating the account on first login"""
    payload = verify_access_token(credentials.credentials)
    auth_uid = payload["sub"]

    user = db.query(User).filter(User.auth_uid == auth_uid).first()
    if user:
        return user

    email = payload.get("email")
    if not email:
        raise HTTPException(status_code=401, detail="Non autorisé")

    metadata = payload.get("user_metadata") or {}
    user = User(
        auth_uid=auth_uid,
        email=email,
        first_name=metadata.get("first_name"),
        last_name=metadata.get("last_name"),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"✅ Created account for {email}")
    return user
