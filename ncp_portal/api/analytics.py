from typing import Dict

from fastapi import APIRouter, Depends, Query

from ncp_portal.api.auth import RequireSuperAdmin
from ncp_portal.api.deps import get_queries
from ncp_portal.core.permissions import Actor
from ncp_portal.schemas.analytics import AnalyticsOverview, ApprovalTime, MonthlyCount, SubmitterCount
from ncp_portal.services.ncp_queries import NCPQueryService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsOverview)
async def analytics_overview(
    limit: int = Query(5, ge=1, le=50, description="Number of top submitters"),
    actor: Actor = Depends(RequireSuperAdmin),
    queries: NCPQueryService = Depends(get_queries),
):
    """All dashboard blocks in one response."""
    return AnalyticsOverview(
        status_distribution=await queries.statistics(actor),
        monthly_reports=await queries.monthly_counts(),
        top_submitters=await queries.top_submitters(limit),
        average_approval_hours=await queries.average_approval_hours(),
    )


@router.get("/monthly-reports", response_model=list[MonthlyCount])
async def monthly_reports(
    _actor: Actor = Depends(RequireSuperAdmin),
    queries: NCPQueryService = Depends(get_queries),
):
    return await queries.monthly_counts()


@router.get("/status-distribution", response_model=Dict[str, int])
async def status_distribution(
    actor: Actor = Depends(RequireSuperAdmin),
    queries: NCPQueryService = Depends(get_queries),
):
    return await queries.statistics(actor)


@router.get("/top-submitters", response_model=list[SubmitterCount])
async def top_submitters(
    limit: int = Query(5, ge=1, le=50),
    _actor: Actor = Depends(RequireSuperAdmin),
    queries: NCPQueryService = Depends(get_queries),
):
    return await queries.top_submitters(limit)


@router.get("/approval-time", response_model=ApprovalTime)
async def approval_time(
    _actor: Actor = Depends(RequireSuperAdmin),
    queries: NCPQueryService = Depends(get_queries),
):
    return ApprovalTime(average_hours=await queries.average_approval_hours())
