"""Applies the side effects a committed transition emitted. Failures stay here."""
from typing import Iterable

from ncp_portal.core.logging_config import get_logger
from ncp_portal.services.audit_service import AuditRecorder
from ncp_portal.services.ncp_status import Effect, LogSystemEvent, NotifyRole, NotifyUsername, RecordAudit
from ncp_portal.services.notification_service import NotificationService

logger = get_logger(__name__)


class EffectDispatcher:
    def __init__(self, notifications: NotificationService, audit: AuditRecorder):
        self.notifications = notifications
        self.audit = audit

    async def apply(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            try:
                await self._apply_one(effect)
            except Exception as e:
                logger.warning("Side effect %s failed: %s", type(effect).__name__, e, exc_info=True)

    async def _apply_one(self, effect: Effect) -> None:
        if isinstance(effect, NotifyUsername):
            await self.notifications.notify_username(
                effect.username, effect.ncp_code, effect.title, effect.message, effect.type
            )
        elif isinstance(effect, NotifyRole):
            await self.notifications.notify_role(
                effect.role, effect.ncp_code, effect.title, effect.message, effect.type
            )
        elif isinstance(effect, RecordAudit):
            await self.audit.record(
                effect.ncp_code, effect.changed_by, effect.field,
                effect.old_value, effect.new_value, effect.description,
            )
        elif isinstance(effect, LogSystemEvent):
            await self.audit.log_system_event(effect.level, effect.message, effect.details)
        else:
            raise TypeError(f"Unknown effect: {effect!r}")
