from typing import Dict, List, Optional

from pydantic import BaseModel


class MonthlyCount(BaseModel):
    month: str  # YYMM, as in the NCP code
    count: int


class SubmitterCount(BaseModel):
    submitted_by: str
    count: int


class ApprovalTime(BaseModel):
    """Mean submission-to-final-approval time over approved reports."""

    average_hours: Optional[float] = None


class AnalyticsOverview(BaseModel):
    status_distribution: Dict[str, int]
    monthly_reports: List[MonthlyCount]
    top_submitters: List[SubmitterCount]
    average_approval_hours: Optional[float] = None
