from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel


class NCPSubmit(BaseModel):
    """Submission form. Required fields are checked by the workflow so blanks get a 400 with the field name."""
    sku_code: Optional[str] = None
    machine_code: Optional[str] = None
    incident_date: Optional[str] = None
    incident_time: Optional[str] = None
    hold_quantity: Optional[Union[int, str]] = None
    hold_quantity_uom: Optional[str] = None
    problem_description: Optional[str] = None
    photo_attachment: Optional[str] = None
    qa_leader: Optional[str] = None


class QAApproval(BaseModel):
    disposition: Optional[str] = None
    sorted_qty: Optional[Union[int, str]] = 0
    released_qty: Optional[Union[int, str]] = 0
    rejected_qty: Optional[Union[int, str]] = 0
    assigned_team_leader: Optional[str] = None


class Rejection(BaseModel):
    rejection_reason: Optional[str] = None


class TLProcessing(BaseModel):
    root_cause_analysis: Optional[str] = None
    corrective_action: Optional[str] = None
    preventive_action: Optional[str] = None


class Approval(BaseModel):
    comment: Optional[str] = None


class StatusRevert(BaseModel):
    target_status: Optional[str] = None


class Reassignment(BaseModel):
    new_assignee: Optional[str] = None
    role: Optional[str] = None


class NCPResponse(BaseModel):
    id: int
    ncp_code: str
    status: str
    sku_code: str
    machine_code: str
    incident_date: date
    incident_time: str
    hold_quantity: int
    hold_quantity_uom: str
    problem_description: str
    photo_attachment: Optional[str] = None
    submitted_by: str
    submitted_at: datetime
    qa_leader: str
    qa_approved_by: Optional[str] = None
    qa_approved_at: Optional[datetime] = None
    disposition: Optional[str] = None
    sorted_qty: Optional[int] = None
    released_qty: Optional[int] = None
    rejected_qty: Optional[int] = None
    assigned_team_leader: Optional[str] = None
    qa_rejection_reason: Optional[str] = None
    tl_processed_by: Optional[str] = None
    tl_processed_at: Optional[datetime] = None
    root_cause_analysis: Optional[str] = None
    corrective_action: Optional[str] = None
    preventive_action: Optional[str] = None
    process_approved_by: Optional[str] = None
    process_approved_at: Optional[datetime] = None
    process_comment: Optional[str] = None
    process_rejection_reason: Optional[str] = None
    manager_approved_by: Optional[str] = None
    manager_approved_at: Optional[datetime] = None
    manager_comment: Optional[str] = None
    manager_rejection_reason: Optional[str] = None
    archived_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
