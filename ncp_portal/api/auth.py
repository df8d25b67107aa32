"""Bearer-token identity: turns the identity provider's JWT into an Actor and checks roles."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ncp_portal.core.logging_config import get_logger
from ncp_portal.core.permissions import Actor, can_submit, is_super_admin
from ncp_portal.models import UserRole
from ncp_portal.services.auth_service import decode_token

router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


class UserInfo(BaseModel):
    id: int
    username: str
    role: str
    name: str = ""

    def actor(self) -> Actor:
        return Actor.of(self.id, self.username, self.role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserInfo]:
    has_header = credentials is not None and credentials.scheme.lower() == "bearer"
    if not has_header:
        return None
    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload:
        logger.warning("Bearer token rejected (invalid or expired)")
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        logger.warning("Bearer token rejected (non-numeric subject)")
        return None
    return UserInfo(
        id=user_id,
        username=payload.get("username", ""),
        role=payload.get("role", ""),
        name=payload.get("name", ""),
    )


def require_roles(allowed_roles: Optional[List[UserRole]] = None):
    """Dependency yielding the Actor; None means any known role."""
    async def _check(
        current_user: Optional[UserInfo] = Depends(get_current_user),
    ) -> Actor:
        if not current_user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        try:
            actor = current_user.actor()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role")
        if allowed_roles is not None and actor.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return actor
    return _check


RequireAnyAuth = require_roles()
RequireSuperAdmin = require_roles([UserRole.SUPER_ADMIN])


class MeResponse(BaseModel):
    id: int
    username: str
    role: str
    can_submit: bool
    is_super_admin: bool


@router.get("/me", response_model=MeResponse)
async def me(actor: Actor = Depends(RequireAnyAuth)):
    return MeResponse(
        id=actor.id,
        username=actor.username,
        role=actor.role.value,
        can_submit=can_submit(actor.role),
        is_super_admin=is_super_admin(actor.role),
    )
