from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    ncp_code: str
    title: str
    message: str
    type: str
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    unread: int


class AuditLogResponse(BaseModel):
    id: int
    ncp_code: str
    changed_by: str
    field_changed: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    description: str
    changed_at: Optional[datetime] = None


class SystemLogResponse(BaseModel):
    id: int
    level: str
    message: str
    details: Optional[dict] = None
    created_at: Optional[datetime] = None
