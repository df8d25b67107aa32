"""Transition planning without a database."""
from datetime import date, datetime

import pytest

from ncp_portal.core.exceptions import Forbidden, InvalidTransition, ValidationError
from ncp_portal.core.permissions import Actor
from ncp_portal.models import NCPStatus
from ncp_portal.services.ncp_status import (
    Action,
    LogSystemEvent,
    NotifyRole,
    NotifyUsername,
    RecordAudit,
    WorkflowRules,
    assignee_requirements,
    can_transition,
    plan_deletion,
    plan_submission,
    plan_transition,
)

from conftest import TL_PROCESSING, qa_approval, submission

NOW = datetime(2024, 3, 15, 9, 30)

REPORTER = Actor.of(1, "reporter", "user")
QA_ALICE = Actor.of(2, "qa_alice", "qa_leader")
QA_BOB = Actor.of(3, "qa_bob", "qa_leader")
TL_JANE = Actor.of(4, "tl_jane", "team_leader")
TL_OMAR = Actor.of(5, "tl_omar", "team_leader")
PROC_KIM = Actor.of(6, "proc_kim", "process_lead")
MGR_ANA = Actor.of(7, "mgr_ana", "qa_manager")
ROOT = Actor.of(8, "root", "super_admin")


def report(status=NCPStatus.PENDING, **fields):
    row = {
        "id": 1,
        "ncp_code": "2403-0001",
        "status": status,
        "sku_code": "SKU-100",
        "machine_code": "M-07",
        "incident_date": date(2024, 3, 15),
        "incident_time": "08:45",
        "hold_quantity": 100,
        "hold_quantity_uom": "pcs",
        "problem_description": "Seal misaligned on lid",
        "photo_attachment": None,
        "submitted_by": "reporter",
        "qa_leader": "qa_alice",
        "qa_approved_by": None,
        "assigned_team_leader": None,
    }
    row.update(fields)
    return row


def test_transition_table_shape():
    assert can_transition(NCPStatus.PENDING, NCPStatus.QA_APPROVED)
    assert can_transition(NCPStatus.PENDING, NCPStatus.QA_REJECTED)
    assert can_transition(NCPStatus.TL_PROCESSED, NCPStatus.QA_APPROVED)
    assert can_transition(NCPStatus.PROCESS_APPROVED, NCPStatus.QA_APPROVED)
    assert not can_transition(NCPStatus.PENDING, NCPStatus.TL_PROCESSED)
    assert not can_transition(NCPStatus.MANAGER_APPROVED, NCPStatus.QA_APPROVED)
    assert not can_transition(NCPStatus.QA_REJECTED, NCPStatus.QA_APPROVED)


def test_submission_plan_sets_pending_and_notifies_qa_leader():
    plan = plan_submission(REPORTER, submission(), "2403-0001", NOW)
    assert plan.changes["status"] == "pending"
    assert plan.changes["submitted_by"] == "reporter"
    assert plan.changes["incident_date"] == date(2024, 3, 15)
    assert plan.changes["hold_quantity"] == 100
    assert plan.effects == [
        NotifyUsername("qa_alice", "2403-0001", "New NCP Submitted", "NCP 2403-0001 requires your approval")
    ]
    assert assignee_requirements(plan) == [("qa_alice", QA_ALICE.role)]


@pytest.mark.parametrize(
    "field,value",
    [
        ("sku_code", ""),
        ("machine_code", "   "),
        ("hold_quantity", -1),
        ("hold_quantity", "ten"),
        ("incident_date", "15/03/2024"),
        ("incident_time", "25:00"),
        ("qa_leader", None),
    ],
)
def test_submission_rejects_bad_input(field, value):
    with pytest.raises(ValidationError) as exc:
        plan_submission(REPORTER, submission(**{field: value}), "2403-0001", NOW)
    assert exc.value.field == field


def test_team_leader_cannot_submit():
    with pytest.raises(Forbidden):
        plan_submission(TL_JANE, submission(), "2403-0001", NOW)


def test_qa_approve_by_assigned_leader():
    plan = plan_transition(Action.QA_APPROVE, report(), QA_ALICE, qa_approval(), NOW)
    assert plan.expected_status == NCPStatus.PENDING
    assert plan.target_status == NCPStatus.QA_APPROVED
    assert plan.changes["qa_approved_by"] == "qa_alice"
    assert plan.changes["assigned_team_leader"] == "tl_jane"
    assert isinstance(plan.effects[0], NotifyUsername)
    assert plan.effects[0].username == "tl_jane"


def test_qa_approve_by_other_leader_is_forbidden():
    with pytest.raises(Forbidden):
        plan_transition(Action.QA_APPROVE, report(), QA_BOB, qa_approval(), NOW)


def test_wrong_role_is_rejected_before_status_check():
    with pytest.raises(Forbidden):
        plan_transition(Action.QA_APPROVE, report(NCPStatus.MANAGER_APPROVED), TL_JANE, qa_approval(), NOW)


def test_status_is_checked_before_assignee():
    with pytest.raises(InvalidTransition):
        plan_transition(Action.QA_APPROVE, report(NCPStatus.QA_APPROVED), QA_BOB, qa_approval(), NOW)


def test_quantity_balance():
    with pytest.raises(ValidationError):
        plan_transition(Action.QA_APPROVE, report(), QA_ALICE, qa_approval(rejected_qty=5), NOW)
    relaxed = WorkflowRules(enforce_quantity_balance=False)
    plan = plan_transition(Action.QA_APPROVE, report(), QA_ALICE, qa_approval(rejected_qty=5), NOW, relaxed)
    assert plan.changes["rejected_qty"] == 5


def test_qa_reject_requires_reason():
    with pytest.raises(ValidationError):
        plan_transition(Action.QA_REJECT, report(), QA_ALICE, {"rejection_reason": " "}, NOW)
    plan = plan_transition(Action.QA_REJECT, report(), QA_ALICE, {"rejection_reason": "Not a defect"}, NOW)
    assert plan.target_status == NCPStatus.QA_REJECTED
    assert plan.effects == []


def test_tl_process_only_by_assigned_team_leader():
    row = report(NCPStatus.QA_APPROVED, assigned_team_leader="tl_jane")
    with pytest.raises(Forbidden):
        plan_transition(Action.TL_PROCESS, row, TL_OMAR, TL_PROCESSING, NOW)
    plan = plan_transition(Action.TL_PROCESS, row, TL_JANE, TL_PROCESSING, NOW)
    assert plan.target_status == NCPStatus.TL_PROCESSED
    assert plan.effects[0] == NotifyRole(
        PROC_KIM.role,
        "2403-0001",
        "NCP Ready for Process Review",
        "NCP 2403-0001 has been processed by Team Leader and requires process review",
    )


def test_process_reject_clears_approval_and_warns_team_leader():
    row = report(NCPStatus.TL_PROCESSED, assigned_team_leader="tl_jane")
    plan = plan_transition(Action.PROCESS_REJECT, row, PROC_KIM, {"rejection_reason": "RCA too shallow"}, NOW)
    assert plan.target_status == NCPStatus.QA_APPROVED
    assert plan.changes["process_approved_by"] is None
    assert plan.changes["process_rejection_reason"] == "RCA too shallow"
    assert plan.effects[0].username == "tl_jane"
    assert plan.effects[0].type == "warning"


def test_manager_approve_archives_and_notifies_submitter_and_qa():
    row = report(NCPStatus.PROCESS_APPROVED, qa_approved_by="qa_alice")
    plan = plan_transition(Action.MANAGER_APPROVE, row, MGR_ANA, {"comment": "Closed"}, NOW)
    assert plan.changes["archived_at"] == NOW
    assert [e.username for e in plan.effects] == ["reporter", "qa_alice"]
    assert all(e.type == "success" for e in plan.effects)


def test_manager_approve_notifies_once_when_qa_leader_submitted():
    row = report(NCPStatus.PROCESS_APPROVED, submitted_by="qa_alice", qa_approved_by="qa_alice")
    plan = plan_transition(Action.MANAGER_APPROVE, row, MGR_ANA, {"comment": "Closed"}, NOW)
    assert [e.username for e in plan.effects] == ["qa_alice"]


def test_terminal_status_accepts_no_workflow_action():
    row = report(NCPStatus.MANAGER_APPROVED)
    with pytest.raises(InvalidTransition):
        plan_transition(Action.MANAGER_APPROVE, row, MGR_ANA, {"comment": "again"}, NOW)
    with pytest.raises(InvalidTransition):
        plan_transition(Action.MANAGER_REJECT, row, MGR_ANA, {"rejection_reason": "late"}, NOW)


def test_revert_moves_backwards_only():
    row = report(NCPStatus.PROCESS_APPROVED)
    plan = plan_transition(Action.REVERT_STATUS, row, ROOT, {"target_status": "qa_approved"}, NOW)
    assert plan.changes == {"status": "qa_approved"}
    assert isinstance(plan.effects[0], RecordAudit)
    assert isinstance(plan.effects[1], LogSystemEvent)

    with pytest.raises(InvalidTransition):
        plan_transition(Action.REVERT_STATUS, report(NCPStatus.PENDING), ROOT, {"target_status": "pending"}, NOW)
    with pytest.raises(ValidationError):
        plan_transition(Action.REVERT_STATUS, row, ROOT, {"target_status": "qa_rejected"}, NOW)
    with pytest.raises(ValidationError):
        plan_transition(Action.REVERT_STATUS, row, ROOT, {"target_status": "archived"}, NOW)


def test_super_admin_actions_need_super_admin():
    for action in (Action.REVERT_STATUS, Action.REASSIGN, Action.EDIT):
        with pytest.raises(Forbidden):
            plan_transition(action, report(), MGR_ANA, {}, NOW)
    with pytest.raises(Forbidden):
        plan_deletion(report(), MGR_ANA)


def test_reassign_to_same_person_is_a_no_op():
    plan = plan_transition(Action.REASSIGN, report(), ROOT, {"new_assignee": "qa_alice", "role": "qa_leader"}, NOW)
    assert plan.changes == {}
    assert plan.effects == []


def test_reassign_rejects_other_roles():
    with pytest.raises(ValidationError):
        plan_transition(Action.REASSIGN, report(), ROOT, {"new_assignee": "proc_kim", "role": "process_lead"}, NOW)


def test_closed_report_cannot_be_reassigned():
    row = report(NCPStatus.MANAGER_APPROVED, assigned_team_leader="tl_jane")
    with pytest.raises(InvalidTransition):
        plan_transition(Action.REASSIGN, row, ROOT, {"new_assignee": "tl_omar", "role": "team_leader"}, NOW)


def test_edit_audits_each_changed_field():
    plan = plan_transition(
        Action.EDIT, report(), ROOT, {"sku_code": "SKU-200", "machine_code": "M-07", "hold_quantity": "120"}, NOW
    )
    assert plan.changes == {"sku_code": "SKU-200", "hold_quantity": 120}
    audited = [e.field for e in plan.effects if isinstance(e, RecordAudit)]
    assert audited == ["hold_quantity", "sku_code"]


def test_edit_rejects_workflow_columns():
    with pytest.raises(ValidationError):
        plan_transition(Action.EDIT, report(), ROOT, {"status": "manager_approved"}, NOW)
    with pytest.raises(ValidationError):
        plan_transition(Action.EDIT, report(), ROOT, {"qa_leader": "qa_bob"}, NOW)
