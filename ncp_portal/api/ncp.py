from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ncp_portal.api.auth import RequireAnyAuth, RequireSuperAdmin
from ncp_portal.api.deps import get_queries, get_workflow
from ncp_portal.core.permissions import Actor
from ncp_portal.models import NCPStatus
from ncp_portal.schemas.ncp import (
    Approval,
    NCPResponse,
    NCPSubmit,
    QAApproval,
    Reassignment,
    Rejection,
    StatusRevert,
    TLProcessing,
)
from ncp_portal.services.ncp_queries import NCPQueryService
from ncp_portal.services.ncp_workflow import NCPWorkflowEngine

router = APIRouter(prefix="/ncp", tags=["ncp"])


def _to_response(row: Dict[str, Any]) -> NCPResponse:
    return NCPResponse(**{**row, "status": NCPStatus(row["status"]).value})


@router.post("", response_model=NCPResponse)
async def submit_ncp(
    data: NCPSubmit,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    report = await workflow.submit(actor, data.model_dump())
    return _to_response(report)


@router.get("", response_model=list[NCPResponse])
async def list_ncps(
    actor: Actor = Depends(RequireAnyAuth),
    queries: NCPQueryService = Depends(get_queries),
):
    return [_to_response(r) for r in await queries.list_for_actor(actor)]


@router.get("/pending", response_model=list[NCPResponse])
async def pending_ncps(
    actor: Actor = Depends(RequireAnyAuth),
    queries: NCPQueryService = Depends(get_queries),
):
    """Work queue of the current user's role."""
    return [_to_response(r) for r in await queries.pending_for_actor(actor)]


@router.get("/stats")
async def ncp_stats(
    actor: Actor = Depends(RequireAnyAuth),
    queries: NCPQueryService = Depends(get_queries),
):
    return await queries.statistics(actor)


@router.get("/{report_id}", response_model=NCPResponse)
async def get_ncp(
    report_id: int,
    _actor: Actor = Depends(RequireAnyAuth),
    queries: NCPQueryService = Depends(get_queries),
):
    return _to_response(await queries.get(report_id))


@router.post("/{report_id}/qa-approve", response_model=NCPResponse)
async def qa_approve(
    report_id: int,
    body: QAApproval,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.qa_approve(actor, report_id, body.model_dump()))


@router.post("/{report_id}/qa-reject", response_model=NCPResponse)
async def qa_reject(
    report_id: int,
    body: Rejection,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.qa_reject(actor, report_id, body.model_dump()))


@router.post("/{report_id}/tl-process", response_model=NCPResponse)
async def tl_process(
    report_id: int,
    body: TLProcessing,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.tl_process(actor, report_id, body.model_dump()))


@router.post("/{report_id}/process-approve", response_model=NCPResponse)
async def process_approve(
    report_id: int,
    body: Approval,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.process_approve(actor, report_id, body.model_dump()))


@router.post("/{report_id}/process-reject", response_model=NCPResponse)
async def process_reject(
    report_id: int,
    body: Rejection,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.process_reject(actor, report_id, body.model_dump()))


@router.post("/{report_id}/manager-approve", response_model=NCPResponse)
async def manager_approve(
    report_id: int,
    body: Approval,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.manager_approve(actor, report_id, body.model_dump()))


@router.post("/{report_id}/manager-reject", response_model=NCPResponse)
async def manager_reject(
    report_id: int,
    body: Rejection,
    actor: Actor = Depends(RequireAnyAuth),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.manager_reject(actor, report_id, body.model_dump()))


# ---------- super admin ----------

@router.put("/{report_id}/revert-status", response_model=NCPResponse)
async def revert_status(
    report_id: int,
    body: StatusRevert,
    actor: Actor = Depends(RequireSuperAdmin),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.revert_status(actor, report_id, body.model_dump()))


@router.put("/{report_id}/reassign", response_model=NCPResponse)
async def reassign(
    report_id: int,
    body: Reassignment,
    actor: Actor = Depends(RequireSuperAdmin),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    return _to_response(await workflow.reassign(actor, report_id, body.model_dump()))


@router.patch("/{report_id}", response_model=NCPResponse)
async def edit_ncp(
    report_id: int,
    fields: Dict[str, Any] = Body(...),
    actor: Actor = Depends(RequireSuperAdmin),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    """Edit arbitrary report fields; each changed field gets its own audit entry."""
    return _to_response(await workflow.edit(actor, report_id, fields))


@router.delete("/{report_id}")
async def delete_ncp(
    report_id: int,
    actor: Actor = Depends(RequireSuperAdmin),
    workflow: NCPWorkflowEngine = Depends(get_workflow),
):
    report = await workflow.delete(actor, report_id)
    return {"ok": True, "ncp_code": report["ncp_code"]}
