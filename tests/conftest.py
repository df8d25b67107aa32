"""Fixtures: a throwaway SQLite database per test, seeded users, engine and API client."""
import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from ncp_portal.core.database import create_engine_for, create_session_maker, init_db
from ncp_portal.core.gateway import PersistenceGateway
from ncp_portal.core.permissions import Actor
from ncp_portal.services.auth_service import create_access_token
from ncp_portal.services.ncp_workflow import NCPWorkflowEngine, build_engine

# username, role, active
SEED_USERS = [
    ("reporter", "user", True),
    ("qa_alice", "qa_leader", True),
    ("qa_bob", "qa_leader", True),
    ("tl_jane", "team_leader", True),
    ("tl_omar", "team_leader", True),
    ("tl_retired", "team_leader", False),
    ("proc_kim", "process_lead", True),
    ("proc_lee", "process_lead", True),
    ("mgr_ana", "qa_manager", True),
    ("root", "super_admin", True),
]

FIXED_NOW = datetime(2024, 3, 15, 9, 30)


def submission(**overrides):
    data = {
        "sku_code": "SKU-100",
        "machine_code": "M-07",
        "incident_date": "2024-03-15",
        "incident_time": "08:45",
        "hold_quantity": 100,
        "hold_quantity_uom": "pcs",
        "problem_description": "Seal misaligned on lid",
        "qa_leader": "qa_alice",
    }
    data.update(overrides)
    return data


def qa_approval(**overrides):
    data = {
        "disposition": "Sort and rework",
        "sorted_qty": 60,
        "released_qty": 30,
        "rejected_qty": 10,
        "assigned_team_leader": "tl_jane",
    }
    data.update(overrides)
    return data


TL_PROCESSING = {
    "root_cause_analysis": "Worn guide rail",
    "corrective_action": "Replaced rail",
    "preventive_action": "Weekly rail inspection",
}


async def seed_users(gateway: PersistenceGateway) -> dict:
    actors = {}
    for username, role, active in SEED_USERS:
        row = await gateway.insert(
            "users", {"username": username, "role": role, "full_name": username.title(), "is_active": active}
        )
        actors[username] = Actor.of(row["id"], username, role)
    return actors


def auth_header(actor: Actor) -> dict:
    token = create_access_token(actor.id, actor.username, actor.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'ncp_test.db'}"


@pytest.fixture
async def db_engine(db_url):
    engine = create_engine_for(db_url, poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def gateway(db_engine):
    return PersistenceGateway(create_session_maker(db_engine))


@pytest.fixture
async def users(gateway):
    return await seed_users(gateway)


@pytest.fixture
def workflow(gateway, users) -> NCPWorkflowEngine:
    return build_engine(gateway, clock=lambda: FIXED_NOW)


@pytest.fixture
def api(db_url):
    """Test client with its own database; yields (client, actors by username)."""
    from ncp_portal.main import create_app

    engine = create_engine_for(db_url, poolclass=NullPool)
    session_maker = create_session_maker(engine)

    async def prepare():
        await init_db(engine)
        return await seed_users(PersistenceGateway(session_maker))

    actors = asyncio.run(prepare())
    app = create_app(session_maker=session_maker, bind=engine)
    with TestClient(app) as client:
        yield client, actors
