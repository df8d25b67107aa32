"""
In-app notifications for the NCP workflow.

Writes are best-effort: a notification that cannot be stored is logged and
dropped, and the transition that asked for it still succeeds. Fan-out to a
role keeps going past individual failures.
"""
from typing import List, Optional, Union

from ncp_portal.core.exceptions import NotFound, NotificationDispatchFailure
from ncp_portal.core.gateway import PersistenceGateway, Row
from ncp_portal.core.logging_config import get_logger
from ncp_portal.models import UserRole

logger = get_logger(__name__)


class NotificationService:
    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def _write(self, user_id: int, ncp_code: str, title: str, message: str, type: str) -> Row:
        try:
            return await self._gateway.insert(
                "notifications",
                {
                    "user_id": user_id,
                    "ncp_code": ncp_code,
                    "title": title,
                    "message": message,
                    "type": type,
                    "is_read": False,
                },
            )
        except Exception as e:
            raise NotificationDispatchFailure(f"user_id={user_id} ncp={ncp_code}: {e}") from e

    async def notify_user(
        self, user_id: int, ncp_code: str, title: str, message: str, type: str = "info"
    ) -> Optional[Row]:
        try:
            return await self._write(user_id, ncp_code, title, message, type)
        except NotificationDispatchFailure as e:
            logger.warning("Notification not written: %s", e)
            return None

    async def notify_username(
        self, username: str, ncp_code: str, title: str, message: str, type: str = "info"
    ) -> Optional[Row]:
        try:
            users = await self._gateway.query("users", {"username": username, "is_active": True}, limit=1)
        except Exception as e:
            logger.warning("Recipient lookup for %s failed, notification dropped: %s", username, e)
            return None
        if not users:
            logger.warning("No active user %s, notification for NCP %s dropped", username, ncp_code)
            return None
        return await self.notify_user(users[0]["id"], ncp_code, title, message, type)

    async def notify_role(
        self, role: Union[str, UserRole], ncp_code: str, title: str, message: str, type: str = "info"
    ) -> int:
        """Notify every active user holding ``role``; returns how many notifications were stored."""
        try:
            role = UserRole(role)
        except ValueError:
            logger.warning("Unknown role %r, notifications for NCP %s dropped", role, ncp_code)
            return 0
        try:
            users = await self._gateway.query("users", {"role": role.value, "is_active": True}, order_by="id")
        except Exception as e:
            logger.warning("Recipient lookup for role %s failed, notifications dropped: %s", role.value, e)
            return 0
        if not users:
            logger.info("No active %s users to notify about NCP %s", role.value, ncp_code)
            return 0
        sent = 0
        for user in users:
            if await self.notify_user(user["id"], ncp_code, title, message, type) is not None:
                sent += 1
        return sent

    async def list_for_user(self, user_id: int, limit: int = 10) -> List[Row]:
        return await self._gateway.query(
            "notifications", {"user_id": user_id}, order_by="created_at", descending=True, limit=limit
        )

    async def unread_count(self, user_id: int) -> int:
        return await self._gateway.count("notifications", {"user_id": user_id, "is_read": False})

    async def mark_read(self, notification_id: int, user_id: int) -> None:
        affected = await self._gateway.update_where(
            "notifications", {"id": notification_id, "user_id": user_id}, {"is_read": True}
        )
        if affected == 0:
            raise NotFound("Notification", notification_id)

    async def mark_all_read(self, user_id: int) -> int:
        return await self._gateway.update_where(
            "notifications", {"user_id": user_id, "is_read": False}, {"is_read": True}
        )
