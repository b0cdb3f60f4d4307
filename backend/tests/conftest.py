from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from team_access.api.deps.permissions import require_team_permissions
from team_access.api.deps.team import get_current_team_member
from team_access.auth.permissions import TeamPermission, default_permissions_for
from team_access.core.regional_access import default_regional_access_for
from team_access.core.roles import TeamRole, access_level_for
from team_access.core.team_policy import AdmissionPrecondition
from team_access.main import create_application
from team_access.schemas.organizer import Organizer, OrganizerTeamPolicy, SubscriptionPlan
from team_access.schemas.team_member import TeamMember
from team_access.services.organizer_directory import InMemoryOrganizerDirectory
from team_access.services.team_service import TeamService

ORG_ID = "org_main"
OTHER_ORG_ID = "org_other"


def make_member(
    role: TeamRole = TeamRole.STAFF,
    *,
    organizer_id: str = ORG_ID,
    is_active: bool = True,
    email: str | None = None,
    **overrides,
) -> TeamMember:
    """Member with the role's default permissions and grid."""
    uid = uuid.uuid4().hex[:8]
    data = dict(
        id=f"tm_{uid}",
        organizer_id=organizer_id,
        user_id=f"user_{uid}",
        email=email or f"{role.value}.{uid}@example.com",
        role=role,
        permissions=set(default_permissions_for(role)),
        regional_access=default_regional_access_for(role),
        access_level=access_level_for(role),
        is_active=is_active,
    )
    data.update(overrides)
    return TeamMember(**data)


def commit(precondition: AdmissionPrecondition, members: list[TeamMember], member: TeamMember) -> bool:
    """Stand-in for a conditional write: admit only if the seat check still holds."""
    active = sum(1 for m in members if m.organizer_id == precondition.organizer_id and m.is_active and m.id != precondition.member_id)
    if not precondition.is_satisfied_by(active):
        return False
    if member not in members:
        members.append(member)
    return True


# ---------------------------------------------------------
# Time
# ---------------------------------------------------------
@pytest.fixture()
def now() -> datetime:
    return datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------
# Organizers + service
# ---------------------------------------------------------
@pytest.fixture()
def organizer() -> Organizer:
    return Organizer(
        id=ORG_ID,
        name="Harbour Events",
        country="DE",
        region="Berlin",
        timezone="Europe/Berlin",
        locale="de-DE",
        subscription=SubscriptionPlan.STARTER,
        team_policy=OrganizerTeamPolicy(allow_team_collaboration=True, max_team_members=5),
    )


@pytest.fixture()
def directory(organizer: Organizer) -> InMemoryOrganizerDirectory:
    return InMemoryOrganizerDirectory(
        [
            organizer,
            Organizer(
                id=OTHER_ORG_ID,
                name="Other Org",
                team_policy=OrganizerTeamPolicy(allow_team_collaboration=True, max_team_members=-1),
            ),
        ]
    )


@pytest.fixture()
def service(directory: InMemoryOrganizerDirectory) -> TeamService:
    return TeamService(directory)


@pytest.fixture()
def owner() -> TeamMember:
    return make_member(TeamRole.OWNER, email="owner@example.com")


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def acting_member() -> dict:
    """Mutable slot the overridden dependency reads from."""
    return {"member": make_member(TeamRole.MANAGER)}


@pytest.fixture()
def app(acting_member: dict):
    fastapi_app = create_application()

    @fastapi_app.get("/attendees")
    async def list_attendees(
        member: TeamMember = Depends(require_team_permissions(TeamPermission.VIEW_ATTENDEES)),
    ):
        return {"ok": True, "member_id": member.id}

    @fastapi_app.post("/attendees/manage")
    async def manage_attendees(
        member: TeamMember = Depends(require_team_permissions(TeamPermission.MANAGE_ATTENDEES)),
    ):
        return {"ok": True}

    @fastapi_app.get("/reports")
    async def reports(
        member: TeamMember = Depends(
            require_team_permissions(
                [TeamPermission.EXPORT_REPORTS, TeamPermission.EXPORT_FINANCIAL_REPORTS],
                any_of=True,
            )
        ),
    ):
        return {"ok": True}

    async def _override_member() -> TeamMember:
        return acting_member["member"]

    fastapi_app.dependency_overrides[get_current_team_member] = _override_member
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac
