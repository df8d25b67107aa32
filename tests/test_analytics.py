"""Analytics: reports per month, approval time, top submitters."""
from datetime import datetime

from ncp_portal.services.ncp_queries import NCPQueryService
from ncp_portal.services.ncp_workflow import build_engine

from conftest import TL_PROCESSING, auth_header, qa_approval, submission


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


async def _approve_all_the_way(workflow, users, rid):
    await workflow.qa_approve(users["qa_alice"], rid, qa_approval())
    await workflow.tl_process(users["tl_jane"], rid, TL_PROCESSING)
    await workflow.process_approve(users["proc_kim"], rid, {"comment": "ok"})
    await workflow.manager_approve(users["mgr_ana"], rid, {"comment": "closed"})


async def test_monthly_counts_and_top_submitters(gateway, users):
    clock = Clock(datetime(2024, 2, 20, 10, 0))
    workflow = build_engine(gateway, clock=clock)
    await workflow.submit(users["reporter"], submission())
    clock.now = datetime(2024, 3, 5, 10, 0)
    await workflow.submit(users["reporter"], submission())
    await workflow.submit(users["qa_bob"], submission(qa_leader="qa_bob"))

    queries = NCPQueryService(gateway)
    assert await queries.monthly_counts() == [
        {"month": "2402", "count": 1},
        {"month": "2403", "count": 2},
    ]
    assert await queries.top_submitters() == [
        {"submitted_by": "reporter", "count": 2},
        {"submitted_by": "qa_bob", "count": 1},
    ]
    assert await queries.top_submitters(limit=1) == [{"submitted_by": "reporter", "count": 2}]


async def test_average_approval_hours(gateway, users):
    queries = NCPQueryService(gateway)
    assert await queries.average_approval_hours() is None

    clock = Clock(datetime(2024, 3, 1, 8, 0))
    workflow = build_engine(gateway, clock=clock)
    first = await workflow.submit(users["reporter"], submission())
    second = await workflow.submit(users["reporter"], submission())
    still_open = await workflow.submit(users["reporter"], submission())

    clock.now = datetime(2024, 3, 2, 8, 0)
    await _approve_all_the_way(workflow, users, first["id"])
    clock.now = datetime(2024, 3, 3, 8, 0)
    await _approve_all_the_way(workflow, users, second["id"])

    assert still_open["status"] == "pending"
    # 24h and 48h; the open report does not count
    assert await queries.average_approval_hours() == 36.0


def test_analytics_routes_are_super_admin_only(api):
    client, actors = api
    client.post("/ncp", json=submission(), headers=auth_header(actors["reporter"]))

    assert client.get("/analytics", headers=auth_header(actors["mgr_ana"])).status_code == 403

    root = auth_header(actors["root"])
    overview = client.get("/analytics", headers=root).json()
    assert overview["status_distribution"]["pending"] == 1
    assert overview["top_submitters"] == [{"submitted_by": "reporter", "count": 1}]
    assert overview["average_approval_hours"] is None
    assert len(overview["monthly_reports"]) == 1

    assert client.get("/analytics/monthly-reports", headers=root).json()[0]["count"] == 1
    assert client.get("/analytics/status-distribution", headers=root).json()["total"] == 1
    assert client.get("/analytics/top-submitters", params={"limit": 1}, headers=root).status_code == 200
    assert client.get("/analytics/approval-time", headers=root).json() == {"average_hours": None}
