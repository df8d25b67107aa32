"""Audit trail of super-admin changes and the system event log."""
from typing import Any, List, Optional

from ncp_portal.core.exceptions import AuditWriteFailure
from ncp_portal.core.gateway import PersistenceGateway, Row
from ncp_portal.core.logging_config import get_logger

logger = get_logger(__name__)

SYSTEM_LOG_LEVELS = ("info", "warn", "error")


def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):  # enums
        return str(value.value)
    return str(value)


class AuditRecorder:
    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def _append(self, table: str, fields: dict) -> Row:
        try:
            return await self._gateway.insert(table, fields)
        except Exception as e:
            raise AuditWriteFailure(f"{table}: {e}") from e

    async def record(
        self,
        ncp_code: str,
        changed_by: str,
        field: str,
        old_value: Any,
        new_value: Any,
        description: str = "",
    ) -> Optional[Row]:
        try:
            return await self._append(
                "ncp_audit_log",
                {
                    "ncp_code": ncp_code,
                    "changed_by": changed_by,
                    "field_changed": field,
                    "old_value": _stringify(old_value),
                    "new_value": _stringify(new_value),
                    "description": description,
                },
            )
        except AuditWriteFailure as e:
            logger.warning("Audit entry for NCP %s field %s lost: %s", ncp_code, field, e)
            return None

    async def log_system_event(self, level: str, message: str, details: Optional[dict] = None) -> Optional[Row]:
        if level not in SYSTEM_LOG_LEVELS:
            level = "info"
        try:
            return await self._append("system_logs", {"level": level, "message": message, "details": details})
        except AuditWriteFailure as e:
            logger.warning("System event %r lost: %s", message, e)
            return None

    async def list_entries(self, ncp_code: Optional[str] = None, limit: int = 200) -> List[Row]:
        filters = {"ncp_code": ncp_code} if ncp_code else None
        return await self._gateway.query("ncp_audit_log", filters, order_by="changed_at", descending=True, limit=limit)

    async def list_system_logs(self, level: Optional[str] = None, limit: int = 200) -> List[Row]:
        filters = {"level": level} if level else None
        return await self._gateway.query("system_logs", filters, order_by="created_at", descending=True, limit=limit)
