import logging
from typing import Optional

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .config import IDENTITY_SERVICE_URL, IDENTITY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"


class CurrentUser(BaseModel):
    """Caller identity as reported by the identity collaborator"""

    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


async def fetch_identity(token: str) -> Optional[dict]:
    """
    Ask the identity collaborator who owns ``token``.
    Returns None when the token is rejected.
    """
    async with httpx.AsyncClient(timeout=IDENTITY_TIMEOUT_SECONDS) as client:
        response = await client.get(
            f"{IDENTITY_SERVICE_URL.rstrip('/')}/me",
            headers={"Authorization": f"Bearer {token}"},
        )

    if response.status_code in (401, 403):
        return None
    response.raise_for_status()
    return response.json()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Resolve the caller's id and role"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    if not IDENTITY_SERVICE_URL:
        logger.error("❌ IDENTITY_SERVICE_URL not configured")
        raise HTTPException(status_code=503, detail="Identity service not configured")

    try:
        identity = await fetch_identity(credentials.credentials)
    except httpx.HTTPError as e:
        logger.error(f"❌ Identity service unreachable: {e}")
        raise HTTPException(status_code=503, detail="Identity service unavailable")

    if not identity or not identity.get("id"):
        logger.warning("⚠️ Identity service rejected the presented token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return CurrentUser(id=str(identity["id"]), role=identity.get("role") or "user")
