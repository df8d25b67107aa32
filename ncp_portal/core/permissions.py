"""
RBAC for the NCP workflow: who acts at which stage and what each role sees.
Transition-level gates (status precondition, assignee match) live in the
transition table in services/ncp_status.py; this module covers the rest.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ncp_portal.models import NCPStatus, UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity provider."""
    id: int
    username: str
    role: UserRole

    @classmethod
    def of(cls, id: int, username: str, role: Union[str, UserRole]) -> "Actor":
        return cls(id=id, username=username, role=UserRole(role))


SUBMITTER_ROLES = frozenset({UserRole.USER, UserRole.QA_LEADER, UserRole.ADMIN})

# Roles whose members can be named as an assignee on a report, by assignment column
ASSIGNEE_COLUMNS = {
    UserRole.QA_LEADER: "qa_leader",
    UserRole.TEAM_LEADER: "assigned_team_leader",
}

PROCESS_LEAD_VISIBLE = [
    NCPStatus.TL_PROCESSED,
    NCPStatus.PROCESS_APPROVED,
    NCPStatus.PROCESS_REJECTED,
]

# Pending queue per role: status filter, whether it is narrowed to the actor's
# assignment, and the column the queue is ordered by (oldest first).
PENDING_QUEUES = {
    UserRole.QA_LEADER: (NCPStatus.PENDING, "qa_leader", "submitted_at"),
    UserRole.TEAM_LEADER: (NCPStatus.QA_APPROVED, "assigned_team_leader", "qa_approved_at"),
    UserRole.PROCESS_LEAD: (NCPStatus.TL_PROCESSED, None, "tl_processed_at"),
    UserRole.QA_MANAGER: (NCPStatus.PROCESS_APPROVED, None, "process_approved_at"),
}


def _parse_role(role: Union[str, UserRole]) -> Optional[UserRole]:
    try:
        return UserRole(role)
    except ValueError:
        return None


def can_submit(role: Union[str, UserRole]) -> bool:
    return _parse_role(role) in SUBMITTER_ROLES


def is_super_admin(role: Union[str, UserRole]) -> bool:
    return _parse_role(role) == UserRole.SUPER_ADMIN


def report_filters(actor: Actor) -> Dict[str, Any]:
    """Filter limiting the report list to what the actor's role may see."""
    if actor.role == UserRole.USER:
        return {"submitted_by": actor.username}
    if actor.role == UserRole.TEAM_LEADER:
        return {"assigned_team_leader": actor.username}
    if actor.role == UserRole.PROCESS_LEAD:
        return {"status__in": [s.value for s in PROCESS_LEAD_VISIBLE]}
    return {}


def pending_queue(actor: Actor) -> Optional[tuple]:
    """(filters, order column) for the actor's work queue, or None when the role has none."""
    queue = PENDING_QUEUES.get(actor.role)
    if queue is None:
        return None
    status, assignee_column, order_by = queue
    filters: Dict[str, Any] = {"status": status.value}
    if assignee_column:
        filters[assignee_column] = actor.username
    return filters, order_by
