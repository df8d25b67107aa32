from fastapi import APIRouter, Depends, HTTPException, Query

from ncp_portal.api.auth import RequireAnyAuth
from ncp_portal.api.deps import get_gateway
from ncp_portal.core.gateway import PersistenceGateway
from ncp_portal.core.permissions import Actor
from ncp_portal.models import UserRole
from ncp_portal.schemas.user import UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/by-role", response_model=list[UserResponse])
async def users_by_role(
    role: str = Query(..., description="qa_leader, team_leader, ..."),
    _actor: Actor = Depends(RequireAnyAuth),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Active users of a role, for assignee pickers."""
    try:
        role_enum = UserRole(role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
    rows = await gateway.query("users", {"role": role_enum.value, "is_active": True}, order_by="username")
    return [UserResponse(**{**r, "role": UserRole(r["role"]).value}) for r in rows]
