from typing import Optional

from fastapi import APIRouter, Depends, Query

from ncp_portal.api.auth import RequireAnyAuth, RequireSuperAdmin
from ncp_portal.api.deps import get_audit, get_notifications
from ncp_portal.config import settings
from ncp_portal.core.permissions import Actor
from ncp_portal.schemas.notification import (
    AuditLogResponse,
    NotificationResponse,
    SystemLogResponse,
    UnreadCount,
)
from ncp_portal.services.audit_service import AuditRecorder
from ncp_portal.services.notification_service import NotificationService

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=100),
    actor: Actor = Depends(RequireAnyAuth),
    notifications: NotificationService = Depends(get_notifications),
):
    rows = await notifications.list_for_user(actor.id, limit or settings.notification_list_limit)
    return [NotificationResponse(**r) for r in rows]


@router.get("/notifications/unread-count", response_model=UnreadCount)
async def unread_count(
    actor: Actor = Depends(RequireAnyAuth),
    notifications: NotificationService = Depends(get_notifications),
):
    return UnreadCount(unread=await notifications.unread_count(actor.id))


@router.post("/notifications/read-all")
async def mark_all_read(
    actor: Actor = Depends(RequireAnyAuth),
    notifications: NotificationService = Depends(get_notifications),
):
    updated = await notifications.mark_all_read(actor.id)
    return {"ok": True, "updated": updated}


@router.post("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: int,
    actor: Actor = Depends(RequireAnyAuth),
    notifications: NotificationService = Depends(get_notifications),
):
    await notifications.mark_read(notification_id, actor.id)
    return {"ok": True}


@router.get("/audit-log", response_model=list[AuditLogResponse])
async def audit_log(
    ncp_code: Optional[str] = None,
    _actor: Actor = Depends(RequireSuperAdmin),
    audit: AuditRecorder = Depends(get_audit),
):
    return [AuditLogResponse(**r) for r in await audit.list_entries(ncp_code)]


@router.get("/system-logs", response_model=list[SystemLogResponse])
async def system_logs(
    level: Optional[str] = None,
    _actor: Actor = Depends(RequireSuperAdmin),
    audit: AuditRecorder = Depends(get_audit),
):
    return [SystemLogResponse(**r) for r in await audit.list_system_logs(level)]
