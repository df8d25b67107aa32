from ncp_portal.core.database import Base
from ncp_portal.models.audit_log import AuditLogEntry, SystemLog
from ncp_portal.models.ncp_report import NCPReport, NCPStatus
from ncp_portal.models.notification import Notification
from ncp_portal.models.user import User, UserRole

__all__ = [
    "Base",
    "AuditLogEntry",
    "NCPReport",
    "NCPStatus",
    "Notification",
    "SystemLog",
    "User",
    "UserRole",
]
