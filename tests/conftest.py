"""
Shared pytest fixtures.

Every test gets its own file-backed SQLite database seeded with two tenants:

    org 10 (Acme Builders)
        location 6   -> projects 47, 48
        location 7   -> project 50
        users 19, 21, 90 (org administrator), 99 (super admin), 23 (inactive)
    org 20 (Other Co)
        location 8   -> project 60
        user 30

Roles: system roles ``pm`` and ``foreman`` and ``org_admin``; custom roles
``acme-inspector`` (org 10) and ``other-inspector`` (org 20).
"""
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from access_control.core.database.engine import Database
from access_control.features.access.evaluator import AccessEvaluator
from access_control.features.assignments.lifecycle import AssignmentLifecycleManager
from access_control.features.assignments.models import Assignment
from access_control.features.assignments.queries import AssignmentQueries
from access_control.features.assignments.schemas import AssignmentCreate
from access_control.features.hierarchy.types import ContextType
from access_control.features.organizations.models import Location, Organization, Project
from access_control.features.roles.models import Role, RoleType
from access_control.features.users.models import User
from helpers import ADMIN_ID, TODAY


def _seed_rows() -> list[Any]:
    return [
        Organization(id="10", name="Acme Builders", org_type="general_contractor"),
        Organization(id="20", name="Other Co", org_type="owner"),
        Location(id="6", org_id="10", name="Main Office"),
        Location(id="7", org_id="10", name="North Yard", location_type="yard"),
        Location(id="8", org_id="20", name="Other HQ"),
        Project(id="47", org_id="10", location_id="6", name="Riverside Tower"),
        Project(id="48", org_id="10", location_id="6", name="Harbor Bridge"),
        Project(id="50", org_id="10", location_id="7", name="North Depot"),
        Project(id="60", org_id="20", location_id="8", name="Other Plant"),
        User(id="19", org_id="10", email="ana@acme.test", name="Ana"),
        User(id="21", org_id="10", email="ben@acme.test", name="Ben"),
        User(id=ADMIN_ID, org_id="10", email="admin@acme.test", name="Acme Admin"),
        User(id="99", org_id="10", email="root@platform.test", name="Root", is_super_admin=True),
        User(id="23", org_id="10", email="dee@acme.test", name="Dee", is_active=False),
        User(id="30", org_id="20", email="cy@other.test", name="Cy"),
        Role(id="pm", name="project_manager", role_type=RoleType.SYSTEM),
        Role(id="foreman", name="foreman", role_type=RoleType.SYSTEM),
        Role(id="org_admin", name="org_admin", role_type=RoleType.SYSTEM),
        Role(id="acme-inspector", name="inspector", role_type=RoleType.CUSTOM, org_id="10"),
        Role(id="other-inspector", name="inspector", role_type=RoleType.CUSTOM, org_id="20"),
    ]


@pytest_asyncio.fixture()
async def database(tmp_path) -> AsyncIterator[Database]:
    """Seeded database in a temporary file."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'access.sqlite'}")
    await db.create_all()
    async with db.transaction() as session:
        session.add_all(_seed_rows())
    yield db
    await db.dispose()


@pytest.fixture()
def lifecycle(database: Database) -> AssignmentLifecycleManager:
    return AssignmentLifecycleManager(database, clock=lambda: TODAY)


@pytest.fixture()
def evaluator(database: Database) -> AccessEvaluator:
    return AccessEvaluator(database, clock=lambda: TODAY)


@pytest.fixture()
def queries(database: Database) -> AssignmentQueries:
    return AssignmentQueries(database, clock=lambda: TODAY)


@pytest.fixture()
def grant(lifecycle: AssignmentLifecycleManager) -> Callable[..., Awaitable[Assignment]]:
    """Create an assignment in org 10 as the org administrator."""

    async def _grant(
        user_id: str = "19",
        context_type: ContextType = ContextType.PROJECT,
        context_id: str = "47",
        role_id: str = "pm",
        org_id: str = "10",
        **extra: Any,
    ) -> Assignment:
        data = AssignmentCreate(
            user_id=user_id,
            role_id=role_id,
            context_type=context_type,
            context_id=context_id,
            **extra,
        )
        return await lifecycle.create_assignment(data, org_id, ADMIN_ID)

    return _grant


@pytest_asyncio.fixture()
async def async_client(database: Database, grant) -> AsyncIterator[AsyncClient]:
    """HTTPX client bound to the app, with user 90 administering org 10."""
    from access_control.main import app

    await grant(user_id=ADMIN_ID, context_type=ContextType.ORGANIZATION, context_id="10", role_id="org_admin")
    app.state.database = database
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
