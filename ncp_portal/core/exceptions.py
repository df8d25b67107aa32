"""
Error taxonomy of the NCP workflow.

Caller-facing errors (ValidationError, InvalidTransition, Forbidden, NotFound,
PersistenceError) propagate to the HTTP layer, which maps them by ``status_code``.
NotificationDispatchFailure and AuditWriteFailure never leave the dispatcher
and recorder: they are logged and swallowed there.
"""
from typing import Any, Dict, Optional


class NCPPortalError(Exception):
    """Base exception for all portal errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "detail": self.message,
            "details": self.details,
        }


class ValidationError(NCPPortalError):
    """Required input missing or malformed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="VALIDATION_ERROR", details={"field": field} if field else None)
        self.field = field


class InvalidTransition(NCPPortalError):
    """Current status does not allow the requested transition"""

    status_code = 409

    def __init__(self, action: str, current_status: Optional[str], ncp_code: Optional[str] = None):
        label = ncp_code or "report"
        super().__init__(
            f"Cannot {action.replace('_', ' ')} NCP {label} in status {current_status}",
            code="INVALID_TRANSITION",
            details={"action": action, "current_status": current_status},
        )
        self.action = action
        self.current_status = current_status


class Forbidden(NCPPortalError):
    """Actor role or identity does not match the transition's assignee"""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="FORBIDDEN")


class NotFound(NCPPortalError):
    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} {identifier} not found", code="NOT_FOUND",
                         details={"resource": resource, "id": identifier})


class PersistenceError(NCPPortalError):
    """Underlying database failure; the caller may retry the whole operation"""

    status_code = 503

    def __init__(self, message: str, code: str = "PERSISTENCE_ERROR"):
        super().__init__(message, code=code)


class DuplicateKeyError(PersistenceError):
    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="DUPLICATE_KEY")


class NotificationDispatchFailure(NCPPortalError):
    def __init__(self, message: str):
        super().__init__(message, code="NOTIFICATION_FAILED")


class AuditWriteFailure(NCPPortalError):
    def __init__(self, message: str):
        super().__init__(message, code="AUDIT_WRITE_FAILED")
