"""
NCP workflow state machine.

TRANSITIONS declares every forward step once: who may take it, the status it
starts from, the status it lands in and whether the actor must be the
report's named assignee. plan_transition() turns (report, actor, payload) into
a TransitionPlan without touching the database; the engine applies the plan
with a status-guarded update and hands plan.effects to the dispatcher.
"""
import enum
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ncp_portal.core.exceptions import Forbidden, InvalidTransition, ValidationError
from ncp_portal.core.permissions import ASSIGNEE_COLUMNS, Actor
from ncp_portal.models import NCPStatus, UserRole


class Action(str, enum.Enum):
    SUBMIT = "submit"
    QA_APPROVE = "qa_approve"
    QA_REJECT = "qa_reject"
    TL_PROCESS = "tl_process"
    PROCESS_APPROVE = "process_approve"
    PROCESS_REJECT = "process_reject"
    MANAGER_APPROVE = "manager_approve"
    MANAGER_REJECT = "manager_reject"
    REVERT_STATUS = "revert_status"
    REASSIGN = "reassign"
    EDIT = "edit"
    DELETE = "delete"


@dataclass(frozen=True)
class Transition:
    roles: frozenset
    source: Optional[NCPStatus]
    target: Optional[NCPStatus]
    assignee_column: Optional[str] = None


_SUPER = frozenset({UserRole.SUPER_ADMIN})

TRANSITIONS: Dict[Action, Transition] = {
    Action.SUBMIT: Transition(
        frozenset({UserRole.USER, UserRole.QA_LEADER, UserRole.ADMIN}), None, NCPStatus.PENDING
    ),
    Action.QA_APPROVE: Transition(
        frozenset({UserRole.QA_LEADER}), NCPStatus.PENDING, NCPStatus.QA_APPROVED, "qa_leader"
    ),
    Action.QA_REJECT: Transition(
        frozenset({UserRole.QA_LEADER}), NCPStatus.PENDING, NCPStatus.QA_REJECTED, "qa_leader"
    ),
    Action.TL_PROCESS: Transition(
        frozenset({UserRole.TEAM_LEADER}), NCPStatus.QA_APPROVED, NCPStatus.TL_PROCESSED, "assigned_team_leader"
    ),
    Action.PROCESS_APPROVE: Transition(
        frozenset({UserRole.PROCESS_LEAD}), NCPStatus.TL_PROCESSED, NCPStatus.PROCESS_APPROVED
    ),
    Action.PROCESS_REJECT: Transition(
        frozenset({UserRole.PROCESS_LEAD}), NCPStatus.TL_PROCESSED, NCPStatus.QA_APPROVED
    ),
    Action.MANAGER_APPROVE: Transition(
        frozenset({UserRole.QA_MANAGER}), NCPStatus.PROCESS_APPROVED, NCPStatus.MANAGER_APPROVED
    ),
    Action.MANAGER_REJECT: Transition(
        frozenset({UserRole.QA_MANAGER}), NCPStatus.PROCESS_APPROVED, NCPStatus.QA_APPROVED
    ),
    # Super-admin recovery: any source status, target decided by the payload
    Action.REVERT_STATUS: Transition(_SUPER, None, None),
    Action.REASSIGN: Transition(_SUPER, None, None),
    Action.EDIT: Transition(_SUPER, None, None),
    Action.DELETE: Transition(_SUPER, None, None),
}

TERMINAL_STATUSES = frozenset({NCPStatus.MANAGER_APPROVED})

# Position on the approval line; rejected states sit with the stage that produced them
STAGE_RANK = {
    NCPStatus.PENDING: 0,
    NCPStatus.QA_REJECTED: 1,
    NCPStatus.QA_APPROVED: 1,
    NCPStatus.PROCESS_REJECTED: 1,
    NCPStatus.MANAGER_REJECTED: 1,
    NCPStatus.TL_PROCESSED: 2,
    NCPStatus.PROCESS_APPROVED: 3,
    NCPStatus.MANAGER_APPROVED: 4,
}
REVERT_TARGETS = (
    NCPStatus.PENDING,
    NCPStatus.QA_APPROVED,
    NCPStatus.TL_PROCESSED,
    NCPStatus.PROCESS_APPROVED,
)

DESCRIPTIVE_FIELDS = (
    "sku_code",
    "machine_code",
    "incident_date",
    "incident_time",
    "hold_quantity",
    "hold_quantity_uom",
    "problem_description",
)
INT_FIELDS = frozenset({"hold_quantity", "sorted_qty", "released_qty", "rejected_qty"})
EDITABLE_FIELDS = frozenset(DESCRIPTIVE_FIELDS) | INT_FIELDS | {
    "photo_attachment",
    "disposition",
    "qa_rejection_reason",
    "root_cause_analysis",
    "corrective_action",
    "preventive_action",
    "process_comment",
    "process_rejection_reason",
    "manager_comment",
    "manager_rejection_reason",
}
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")


def can_transition(current: NCPStatus, new: NCPStatus) -> bool:
    return any(
        t.source == current and t.target == new
        for t in TRANSITIONS.values()
        if t.source is not None
    )


# ---------- effects ----------

@dataclass(frozen=True)
class NotifyUsername:
    username: str
    ncp_code: str
    title: str
    message: str
    type: str = "info"


@dataclass(frozen=True)
class NotifyRole:
    role: UserRole
    ncp_code: str
    title: str
    message: str
    type: str = "info"


@dataclass(frozen=True)
class RecordAudit:
    ncp_code: str
    changed_by: str
    field: str
    old_value: Any
    new_value: Any
    description: str


@dataclass(frozen=True)
class LogSystemEvent:
    level: str
    message: str
    details: Dict[str, Any]


Effect = Union[NotifyUsername, NotifyRole, RecordAudit, LogSystemEvent]


@dataclass
class TransitionPlan:
    action: Action
    expected_status: Optional[NCPStatus]
    changes: Dict[str, Any] = field(default_factory=dict)
    effects: List[Effect] = field(default_factory=list)

    @property
    def target_status(self) -> Optional[NCPStatus]:
        status = self.changes.get("status")
        return NCPStatus(status) if status is not None else self.expected_status


@dataclass(frozen=True)
class WorkflowRules:
    enforce_quantity_balance: bool = True


# ---------- input validation ----------

def _text(payload: Mapping[str, Any], name: str, label: Optional[str] = None) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label or name.replace('_', ' ').capitalize()} is required", field=name)
    return value.strip()


def _optional_text(payload: Mapping[str, Any], name: str) -> Optional[str]:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be text", field=name)
    return value.strip() or None


def _quantity(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a whole number", field=name)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f"{name} must be a whole number", field=name)
    if value < 0:
        raise ValidationError(f"{name} cannot be negative", field=name)
    return value


def _incident_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError("Incident date must be an ISO date (YYYY-MM-DD)", field="incident_date")


def _incident_time(value: Any) -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
        raise ValidationError("Incident time must be HH:MM", field="incident_time")
    return value.strip()


def _coerce_field(name: str, value: Any) -> Any:
    """Normalize a single editable field, refusing blanks for required columns."""
    if name in INT_FIELDS:
        if value is None and name != "hold_quantity":
            return None
        return _quantity(value, name)
    if name == "incident_date":
        return _incident_date(value)
    if name == "incident_time":
        return _incident_time(value)
    if name in DESCRIPTIVE_FIELDS:
        return _text({name: value}, name)
    return _optional_text({name: value}, name)


# ---------- gates ----------

def check_role(action: Action, actor: Actor) -> Transition:
    transition = TRANSITIONS[action]
    if actor.role not in transition.roles:
        raise Forbidden(f"Role {actor.role.value} cannot {action.value.replace('_', ' ')} NCP reports")
    return transition


def _check_source(action: Action, transition: Transition, report: Mapping[str, Any]) -> NCPStatus:
    current = NCPStatus(report["status"])
    if current != transition.source:
        raise InvalidTransition(action.value, current.value, report.get("ncp_code"))
    return current


def _check_assignee(transition: Transition, report: Mapping[str, Any], actor: Actor) -> None:
    column = transition.assignee_column
    if column and report.get(column) != actor.username:
        raise Forbidden(f"NCP {report.get('ncp_code')} is assigned to another {actor.role.value.replace('_', ' ')}")


# ---------- planners ----------

def plan_submission(actor: Actor, payload: Mapping[str, Any], ncp_code: str, now: datetime) -> TransitionPlan:
    check_role(Action.SUBMIT, actor)
    fields = {
        "sku_code": _text(payload, "sku_code", "SKU code"),
        "machine_code": _text(payload, "machine_code"),
        "incident_date": _incident_date(payload.get("incident_date")),
        "incident_time": _incident_time(payload.get("incident_time")),
        "hold_quantity": _quantity(payload.get("hold_quantity"), "hold_quantity"),
        "hold_quantity_uom": _text(payload, "hold_quantity_uom", "Hold quantity unit"),
        "problem_description": _text(payload, "problem_description"),
        "photo_attachment": _optional_text(payload, "photo_attachment"),
        "qa_leader": _text(payload, "qa_leader", "QA leader"),
    }
    fields.update(
        ncp_code=ncp_code,
        status=NCPStatus.PENDING.value,
        submitted_by=actor.username,
        submitted_at=now,
    )
    return TransitionPlan(
        action=Action.SUBMIT,
        expected_status=None,
        changes=fields,
        effects=[
            NotifyUsername(
                fields["qa_leader"], ncp_code, "New NCP Submitted", f"NCP {ncp_code} requires your approval"
            ),
        ],
    )


def _plan_qa_approve(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.QA_APPROVE]
    _check_source(Action.QA_APPROVE, transition, report)
    _check_assignee(transition, report, actor)
    disposition = _text(payload, "disposition")
    sorted_qty = _quantity(payload.get("sorted_qty", 0), "sorted_qty")
    released_qty = _quantity(payload.get("released_qty", 0), "released_qty")
    rejected_qty = _quantity(payload.get("rejected_qty", 0), "rejected_qty")
    team_leader = _text(payload, "assigned_team_leader", "Assigned team leader")
    if rules.enforce_quantity_balance:
        total = sorted_qty + released_qty + rejected_qty
        if total != report["hold_quantity"]:
            raise ValidationError(
                f"Sorted + released + rejected ({total}) must equal the hold quantity ({report['hold_quantity']})",
                field="sorted_qty",
            )
    code = report["ncp_code"]
    return TransitionPlan(
        action=Action.QA_APPROVE,
        expected_status=transition.source,
        changes={
            "status": transition.target.value,
            "qa_approved_by": actor.username,
            "qa_approved_at": now,
            "disposition": disposition,
            "sorted_qty": sorted_qty,
            "released_qty": released_qty,
            "rejected_qty": rejected_qty,
            "assigned_team_leader": team_leader,
        },
        effects=[
            NotifyUsername(
                team_leader,
                code,
                "NCP Assigned to You",
                f"NCP {code} has been approved by QA Leader and assigned to you for RCA analysis",
            ),
        ],
    )


def _plan_qa_reject(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.QA_REJECT]
    _check_source(Action.QA_REJECT, transition, report)
    _check_assignee(transition, report, actor)
    reason = _text(payload, "rejection_reason")
    return TransitionPlan(
        action=Action.QA_REJECT,
        expected_status=transition.source,
        changes={
            "status": transition.target.value,
            "qa_approved_by": actor.username,
            "qa_approved_at": now,
            "qa_rejection_reason": reason,
        },
    )


def _plan_tl_process(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.TL_PROCESS]
    _check_source(Action.TL_PROCESS, transition, report)
    _check_assignee(transition, report, actor)
    changes = {
        "status": transition.target.value,
        "tl_processed_by": actor.username,
        "tl_processed_at": now,
        "root_cause_analysis": _text(payload, "root_cause_analysis"),
        "corrective_action": _text(payload, "corrective_action"),
        "preventive_action": _text(payload, "preventive_action"),
    }
    code = report["ncp_code"]
    return TransitionPlan(
        action=Action.TL_PROCESS,
        expected_status=transition.source,
        changes=changes,
        effects=[
            NotifyRole(
                UserRole.PROCESS_LEAD,
                code,
                "NCP Ready for Process Review",
                f"NCP {code} has been processed by Team Leader and requires process review",
            ),
        ],
    )


def _plan_process_approve(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.PROCESS_APPROVE]
    _check_source(Action.PROCESS_APPROVE, transition, report)
    comment = _text(payload, "comment", "Approval comment")
    code = report["ncp_code"]
    return TransitionPlan(
        action=Action.PROCESS_APPROVE,
        expected_status=transition.source,
        changes={
            "status": transition.target.value,
            "process_approved_by": actor.username,
            "process_approved_at": now,
            "process_comment": comment,
        },
        effects=[
            NotifyRole(
                UserRole.QA_MANAGER,
                code,
                "NCP Ready for Final Approval",
                f"NCP {code} has been approved by Process Lead and requires final QA Manager approval",
            ),
        ],
    )


def _returned_to_team_leader(report, who: str, reason: str) -> List[Effect]:
    team_leader = report.get("assigned_team_leader")
    if not team_leader:
        return []
    code = report["ncp_code"]
    return [
        NotifyUsername(
            team_leader,
            code,
            f"NCP Rejected by {who}",
            f"NCP {code} has been rejected by {who} and returned for reprocessing. Reason: {reason}",
            type="warning",
        ),
    ]


def _plan_process_reject(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.PROCESS_REJECT]
    _check_source(Action.PROCESS_REJECT, transition, report)
    reason = _text(payload, "rejection_reason")
    return TransitionPlan(
        action=Action.PROCESS_REJECT,
        expected_status=transition.source,
        changes={
            "status": transition.target.value,
            "process_approved_by": None,
            "process_approved_at": None,
            "process_comment": None,
            "process_rejection_reason": reason,
        },
        effects=_returned_to_team_leader(report, "Process Lead", reason),
    )


def _plan_manager_approve(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.MANAGER_APPROVE]
    _check_source(Action.MANAGER_APPROVE, transition, report)
    comment = _text(payload, "comment", "Final approval comment")
    code = report["ncp_code"]
    effects: List[Effect] = [
        NotifyUsername(
            report["submitted_by"],
            code,
            "NCP Workflow Completed",
            f"NCP {code} has been fully approved and archived. The workflow is now complete.",
            type="success",
        ),
    ]
    qa_approver = report.get("qa_approved_by")
    if qa_approver and qa_approver != report["submitted_by"]:
        effects.append(
            NotifyUsername(
                qa_approver,
                code,
                "NCP Workflow Completed",
                f"NCP {code} has been fully approved by QA Manager and archived.",
                type="success",
            )
        )
    return TransitionPlan(
        action=Action.MANAGER_APPROVE,
        expected_status=transition.source,
        changes={
            "status": transition.target.value,
            "manager_approved_by": actor.username,
            "manager_approved_at": now,
            "manager_comment": comment,
            "archived_at": now,
        },
        effects=effects,
    )


def _plan_manager_reject(report, actor, payload, now, rules) -> TransitionPlan:
    transition = TRANSITIONS[Action.MANAGER_REJECT]
    _check_source(Action.MANAGER_REJECT, transition, report)
    reason = _text(payload, "rejection_reason")
    return TransitionPlan(
        action=Action.MANAGER_REJECT,
        expected_status=transition.source,
        changes={
            "status": transition.target.value,
            "manager_approved_by": None,
            "manager_approved_at": None,
            "manager_comment": None,
            "manager_rejection_reason": reason,
        },
        effects=_returned_to_team_leader(report, "QA Manager", reason),
    )


# ---------- super-admin recovery ----------

def _plan_revert_status(report, actor, payload, now, rules) -> TransitionPlan:
    current = NCPStatus(report["status"])
    raw = _text(payload, "target_status", "Target status")
    try:
        target = NCPStatus(raw)
    except ValueError:
        raise ValidationError(f"Unknown status: {raw}", field="target_status") from None
    if target not in REVERT_TARGETS:
        raise ValidationError(f"Cannot revert to {target.value}", field="target_status")
    if STAGE_RANK[target] >= STAGE_RANK[current]:
        raise InvalidTransition(f"revert to {target.value}", current.value, report["ncp_code"])
    code = report["ncp_code"]
    return TransitionPlan(
        action=Action.REVERT_STATUS,
        expected_status=current,
        changes={"status": target.value},
        effects=[
            RecordAudit(code, actor.username, "status", current.value, target.value,
                        f"Status reverted to {target.value} by super_admin"),
            LogSystemEvent("info", "NCP Status Reverted by Super Admin",
                           {"ncp_code": code, "old_status": current.value,
                            "new_status": target.value, "reverted_by": actor.username}),
        ],
    )


def _plan_reassign(report, actor, payload, now, rules) -> TransitionPlan:
    current = NCPStatus(report["status"])
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(Action.REASSIGN.value, current.value, report["ncp_code"])
    raw_role = _text(payload, "role")
    try:
        role = UserRole(raw_role)
    except ValueError:
        role = None
    column = ASSIGNEE_COLUMNS.get(role)
    if column is None:
        raise ValidationError("Role must be qa_leader or team_leader", field="role")
    assignee = _text(payload, "new_assignee", "New assignee")
    code = report["ncp_code"]
    old = report.get(column)
    if old == assignee:
        return TransitionPlan(action=Action.REASSIGN, expected_status=current)
    return TransitionPlan(
        action=Action.REASSIGN,
        expected_status=current,
        changes={column: assignee},
        effects=[
            RecordAudit(code, actor.username, column, old, assignee, f"Reassigned to {assignee} by super_admin"),
            NotifyUsername(assignee, code, "NCP Reassigned to You",
                           f"NCP {code} has been reassigned to you by super admin"),
            LogSystemEvent("info", "NCP Report Reassigned by Super Admin",
                           {"ncp_code": code, "new_assignee": assignee,
                            "role": role.value, "reassigned_by": actor.username}),
        ],
    )


def _plan_edit(report, actor, payload, now, rules) -> TransitionPlan:
    unknown = sorted(set(payload) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(unknown)}", field=unknown[0])
    if not payload:
        raise ValidationError("No fields to update")
    code = report["ncp_code"]
    changes: Dict[str, Any] = {}
    effects: List[Effect] = []
    for name in sorted(payload):
        value = _coerce_field(name, payload[name])
        if report.get(name) == value:
            continue
        changes[name] = value
        effects.append(
            RecordAudit(code, actor.username, name, report.get(name), value,
                        f"Field {name} updated by super_admin")
        )
    if changes:
        effects.append(
            LogSystemEvent("info", "NCP Edited by Super Admin",
                           {"ncp_code": code, "fields": sorted(changes), "edited_by": actor.username})
        )
    return TransitionPlan(
        action=Action.EDIT,
        expected_status=NCPStatus(report["status"]),
        changes=changes,
        effects=effects,
    )


def plan_deletion(report: Mapping[str, Any], actor: Actor) -> TransitionPlan:
    check_role(Action.DELETE, actor)
    code = report["ncp_code"]
    status = NCPStatus(report["status"])
    return TransitionPlan(
        action=Action.DELETE,
        expected_status=status,
        effects=[
            RecordAudit(code, actor.username, "record", status.value, None, "NCP deleted by super_admin"),
            LogSystemEvent("warn", "NCP Deleted by Super Admin",
                           {"ncp_code": code, "status": status.value, "deleted_by": actor.username}),
        ],
    )


Planner = Callable[[Mapping[str, Any], Actor, Mapping[str, Any], datetime, WorkflowRules], TransitionPlan]

_PLANNERS: Dict[Action, Planner] = {
    Action.QA_APPROVE: _plan_qa_approve,
    Action.QA_REJECT: _plan_qa_reject,
    Action.TL_PROCESS: _plan_tl_process,
    Action.PROCESS_APPROVE: _plan_process_approve,
    Action.PROCESS_REJECT: _plan_process_reject,
    Action.MANAGER_APPROVE: _plan_manager_approve,
    Action.MANAGER_REJECT: _plan_manager_reject,
    Action.REVERT_STATUS: _plan_revert_status,
    Action.REASSIGN: _plan_reassign,
    Action.EDIT: _plan_edit,
}


def plan_transition(
    action: Action,
    report: Mapping[str, Any],
    actor: Actor,
    payload: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
    rules: WorkflowRules = WorkflowRules(),
) -> TransitionPlan:
    """Validate an update-type transition and describe its write and side effects.

    Raises Forbidden, InvalidTransition or ValidationError; never touches storage.
    """
    planner = _PLANNERS.get(action)
    if planner is None:
        raise ValueError(f"{action.value} is not an update transition")
    check_role(action, actor)
    return planner(report, actor, payload or {}, now or datetime.utcnow(), rules)


def assignee_requirements(plan: TransitionPlan) -> List[Tuple[str, UserRole]]:
    """(username, role) pairs the plan names as new assignees; the engine checks they exist."""
    required = []
    if plan.action == Action.SUBMIT:
        required.append((plan.changes["qa_leader"], UserRole.QA_LEADER))
    elif plan.action == Action.QA_APPROVE:
        required.append((plan.changes["assigned_team_leader"], UserRole.TEAM_LEADER))
    elif plan.action == Action.REASSIGN:
        for role, column in ASSIGNEE_COLUMNS.items():
            if column in plan.changes:
                required.append((plan.changes[column], role))
    return required
