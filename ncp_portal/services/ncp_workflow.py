"""
NCP workflow engine.

One coroutine per transition, each taking (actor, report_id, payload). The
engine reads the report, asks ncp_status for a plan, writes it with an update
guarded on the status it read, and only after that write has committed hands
the plan's effects to the dispatcher. A guarded update that matches no row
means someone else moved the report first: InvalidTransition.
"""
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from ncp_portal.config import settings
from ncp_portal.core.exceptions import DuplicateKeyError, InvalidTransition, NotFound, PersistenceError, ValidationError
from ncp_portal.core.gateway import PersistenceGateway, Row
from ncp_portal.core.logging_config import get_logger
from ncp_portal.core.permissions import Actor
from ncp_portal.models import NCPStatus, UserRole
from ncp_portal.services.audit_service import AuditRecorder
from ncp_portal.services.effect_dispatcher import EffectDispatcher
from ncp_portal.services.ncp_code import NCPCodeGenerator
from ncp_portal.services.notification_service import NotificationService
from ncp_portal.services.ncp_status import (
    Action,
    TransitionPlan,
    WorkflowRules,
    assignee_requirements,
    check_role,
    plan_deletion,
    plan_submission,
    plan_transition,
)

logger = get_logger(__name__)

NCP_TABLE = "ncp_reports"


class NCPWorkflowEngine:
    def __init__(
        self,
        gateway: PersistenceGateway,
        dispatcher: EffectDispatcher,
        rules: Optional[WorkflowRules] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        max_code_attempts: Optional[int] = None,
    ):
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._codes = NCPCodeGenerator(gateway)
        self._rules = rules or WorkflowRules(enforce_quantity_balance=settings.enforce_quantity_balance)
        self._clock = clock
        self._max_code_attempts = max_code_attempts or settings.ncp_code_max_attempts

    async def _load(self, report_id: int) -> Row:
        report = await self._gateway.get(NCP_TABLE, report_id)
        if report is None:
            raise NotFound("NCP report", report_id)
        return report

    async def _require_assignees(self, plan: TransitionPlan) -> None:
        for username, role in assignee_requirements(plan):
            found = await self._gateway.count(
                "users", {"username": username, "role": role.value, "is_active": True}
            )
            if not found:
                raise ValidationError(
                    f"{username} is not an active {role.value.replace('_', ' ')}",
                    field="qa_leader" if role == UserRole.QA_LEADER else "assigned_team_leader",
                )

    async def submit(self, actor: Actor, payload: Mapping[str, Any]) -> Row:
        check_role(Action.SUBMIT, actor)
        for attempt in range(1, self._max_code_attempts + 1):
            now = self._clock()
            code = await self._codes.generate(now.date())
            plan = plan_submission(actor, payload, code, now)
            if attempt == 1:
                await self._require_assignees(plan)
            try:
                report = await self._gateway.insert(NCP_TABLE, plan.changes)
            except DuplicateKeyError:
                logger.warning("NCP code %s taken concurrently, retrying (attempt %s)", code, attempt)
                continue
            logger.info("NCP %s submitted by %s", code, actor.username)
            await self._dispatcher.apply(plan.effects)
            return report
        raise PersistenceError(f"Could not allocate a unique NCP code after {self._max_code_attempts} attempts")

    async def _advance(self, action: Action, actor: Actor, report_id: int, payload: Optional[Mapping[str, Any]]) -> Row:
        check_role(action, actor)
        report = await self._load(report_id)
        plan = plan_transition(action, report, actor, payload, now=self._clock(), rules=self._rules)
        if not plan.changes:
            return report
        await self._require_assignees(plan)
        affected = await self._gateway.update_where(
            NCP_TABLE,
            {"id": report_id, "status": plan.expected_status.value},
            plan.changes,
        )
        if affected == 0:
            current = await self._load(report_id)
            raise InvalidTransition(action.value, NCPStatus(current["status"]).value, current["ncp_code"])
        updated = await self._load(report_id)
        logger.info(
            "NCP %s: %s %s -> %s by %s",
            updated["ncp_code"], action.value, plan.expected_status.value,
            NCPStatus(updated["status"]).value, actor.username,
        )
        await self._dispatcher.apply(plan.effects)
        return updated

    async def qa_approve(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.QA_APPROVE, actor, report_id, payload)

    async def qa_reject(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.QA_REJECT, actor, report_id, payload)

    async def tl_process(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.TL_PROCESS, actor, report_id, payload)

    async def process_approve(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.PROCESS_APPROVE, actor, report_id, payload)

    async def process_reject(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.PROCESS_REJECT, actor, report_id, payload)

    async def manager_approve(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.MANAGER_APPROVE, actor, report_id, payload)

    async def manager_reject(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.MANAGER_REJECT, actor, report_id, payload)

    async def revert_status(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.REVERT_STATUS, actor, report_id, payload)

    async def reassign(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.REASSIGN, actor, report_id, payload)

    async def edit(self, actor: Actor, report_id: int, payload: Mapping[str, Any]) -> Row:
        return await self._advance(Action.EDIT, actor, report_id, payload)

    async def delete(self, actor: Actor, report_id: int, payload: Optional[Mapping[str, Any]] = None) -> Row:
        """Hard delete. Returns the row as it was; audit entries keep the code."""
        check_role(Action.DELETE, actor)
        report = await self._load(report_id)
        plan = plan_deletion(report, actor)
        affected = await self._gateway.delete(NCP_TABLE, {"id": report_id})
        if affected == 0:
            raise NotFound("NCP report", report_id)
        logger.warning("NCP %s deleted by %s", report["ncp_code"], actor.username)
        await self._dispatcher.apply(plan.effects)
        return report


def build_engine(gateway: PersistenceGateway, **kwargs) -> NCPWorkflowEngine:
    dispatcher = EffectDispatcher(NotificationService(gateway), AuditRecorder(gateway))
    return NCPWorkflowEngine(gateway, dispatcher, **kwargs)
