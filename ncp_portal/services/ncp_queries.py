from typing import Any, Dict, List, Optional

from ncp_portal.core.exceptions import NotFound
from ncp_portal.core.gateway import PersistenceGateway, Row
from ncp_portal.core.permissions import Actor, pending_queue, report_filters
from ncp_portal.models import NCPStatus

NCP_TABLE = "ncp_reports"
MONTH_PREFIX_LENGTH = 4


class NCPQueryService:
    """Read side of the portal: role-scoped lists, work queues and counters."""

    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def get(self, report_id: int) -> Row:
        report = await self._gateway.get(NCP_TABLE, report_id)
        if report is None:
            raise NotFound("NCP report", report_id)
        return report

    async def list_for_actor(self, actor: Actor, limit: int = 500) -> List[Row]:
        return await self._gateway.query(
            NCP_TABLE, report_filters(actor), order_by="submitted_at", descending=True, limit=limit
        )

    async def pending_for_actor(self, actor: Actor) -> List[Row]:
        queue = pending_queue(actor)
        if queue is None:
            return []
        filters, order_by = queue
        return await self._gateway.query(NCP_TABLE, filters, order_by=order_by)

    async def statistics(self, actor: Actor) -> Dict[str, int]:
        counts = await self._gateway.count_by(NCP_TABLE, "status", report_filters(actor))
        stats = {status.value: 0 for status in NCPStatus}
        for status, n in counts.items():
            stats[NCPStatus(status).value] = n
        stats["total"] = sum(counts.values())
        return stats

    # ---------- analytics ----------

    async def monthly_counts(self) -> List[Dict[str, Any]]:
        """Reports per YYMM code prefix, oldest month first."""
        counts = await self._gateway.count_by(NCP_TABLE, "ncp_code", prefix_length=MONTH_PREFIX_LENGTH)
        return [{"month": month, "count": n} for month, n in sorted(counts.items())]

    async def average_approval_hours(self) -> Optional[float]:
        """Mean hours from submission to final approval; None until something is approved."""
        approved = await self._gateway.query(NCP_TABLE, {"status": NCPStatus.MANAGER_APPROVED.value})
        durations = [
            (r["manager_approved_at"] - r["submitted_at"]).total_seconds() / 3600
            for r in approved
            if r["manager_approved_at"] and r["submitted_at"]
        ]
        if not durations:
            return None
        return round(sum(durations) / len(durations), 2)

    async def top_submitters(self, limit: int = 5) -> List[Dict[str, Any]]:
        counts = await self._gateway.count_by(NCP_TABLE, "submitted_by")
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"submitted_by": name, "count": n} for name, n in ranked[:limit]]
