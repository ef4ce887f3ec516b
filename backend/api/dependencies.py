from typing import Optional

from db.database import get_db
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from services import catalog
from services.auth import SessionTokenManager
from services.credential_store import CredentialStore
from services.errors import AuthFailureReason, UnauthorizedError
from sqlalchemy.ext.asyncio import AsyncSession

security = HTTPBearer(auto_error=False)


async def get_token_manager(db: AsyncSession = Depends(get_db)) -> SessionTokenManager:
    return SessionTokenManager(CredentialStore(db))


async def get_band_service(db: AsyncSession = Depends(get_db)) -> catalog.CatalogService:
    return catalog.bands(db)


async def get_album_service(db: AsyncSession = Depends(get_db)) -> catalog.CatalogService:
    return catalog.albums(db)


async def get_event_service(db: AsyncSession = Depends(get_db)) -> catalog.CatalogService:
    return catalog.events(db)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionTokenManager = Depends(get_token_manager),
) -> Optional[dict]:
    """Optional auth - returns the access token claims or None"""
    if credentials is None:
        return None
    try:
        return await manager.authenticate_access_token(credentials.credentials.strip())
    except UnauthorizedError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionTokenManager = Depends(get_token_manager),
) -> dict:
    """Required auth - returns the access token claims or raises UnauthorizedError"""
    if credentials is None:
        raise UnauthorizedError("Not authenticated", AuthFailureReason.MALFORMED)
    return await manager.authenticate_access_token(credentials.credentials.strip())
