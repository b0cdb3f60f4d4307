from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import ORG_ID, OTHER_ORG_ID, make_member
from team_access.auth.decisions import is_authorized
from team_access.auth.permissions import AccessArea, TeamPermission, default_permissions_for
from team_access.core.errors import (
    ConflictError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from team_access.core.regional_access import AccessToggleSet, default_regional_access_for
from team_access.core.roles import TeamRole
from team_access.crud.team_membership import count_active_members
from team_access.schemas.team_member import TeamMemberCreate, TeamMemberSearchFilters, TeamMemberUpdate

P = TeamPermission


# ---------------------------------------------------------
# Owner bootstrap + direct creation
# ---------------------------------------------------------
def test_bootstrap_owner(service, now):
    owner = service.bootstrap_owner(ORG_ID, user_id="user_founder", email="Founder@Example.com", now=now)

    assert owner.role is TeamRole.OWNER
    assert owner.permissions == default_permissions_for(TeamRole.OWNER)
    assert owner.access_level == "owner"
    assert owner.email == "founder@example.com"
    assert owner.country == "DE"
    assert owner.is_verified

    with pytest.raises(ConflictError):
        service.bootstrap_owner(ORG_ID, user_id="user_2", email="two@example.com", members=[owner], now=now)


def test_create_team_member_directly(service, owner, now):
    admission = service.create_team_member(
        TeamMemberCreate(organizer_id=ORG_ID, email="desk@example.com", role="staff", user_id="user_desk"),
        actor=owner,
        members=[owner],
        now=now,
    )
    member = admission.member

    assert member.role is TeamRole.STAFF
    assert member.permissions == default_permissions_for(TeamRole.STAFF)
    assert member.regional_access == default_regional_access_for(TeamRole.STAFF)
    assert member.country == "DE"
    assert member.language_preferences == ["en"]
    assert admission.precondition.max_team_members == 5


def test_create_team_member_respects_limits(service, owner, now):
    members = [owner] + [make_member() for _ in range(4)]
    with pytest.raises(ValidationError):
        service.create_team_member(
            TeamMemberCreate(organizer_id=ORG_ID, email="over@example.com", role="staff"),
            actor=owner,
            members=members,
            now=now,
        )


def test_create_team_member_rejects_bad_input(service, owner, now):
    with pytest.raises(ValidationError):
        service.create_team_member(
            TeamMemberCreate(organizer_id=ORG_ID, email="x@example.com", role="janitor"), actor=owner, now=now
        )
    with pytest.raises(ValidationError):
        service.create_team_member(
            TeamMemberCreate(organizer_id=ORG_ID, email="x@example.com", role="staff", permissions=["nope"]),
            actor=owner,
            now=now,
        )


# ---------------------------------------------------------
# Updates
# ---------------------------------------------------------
def test_profile_update_keeps_customised_access(service, owner, now):
    member = make_member(TeamRole.STAFF)
    member.permissions = member.permissions | {P.SEND_EMAILS}
    member.regional_access = {"FR": AccessToggleSet.no_access(), "*": AccessToggleSet.all_granted()}

    service.update_team_member(
        member, ORG_ID, TeamMemberUpdate(first_name="Ana", timezone="Europe/Paris"), actor=owner, now=now
    )

    assert member.first_name == "Ana"
    assert member.timezone == "Europe/Paris"
    assert P.SEND_EMAILS in member.permissions
    assert set(member.regional_access) == {"FR", "*"}
    assert member.updated_at == now
    assert member.version == 2


def test_role_change_re_resolves_access(service, owner, now):
    member = make_member(TeamRole.STAFF)
    member.permissions = member.permissions | {P.SEND_EMAILS}
    member.regional_access = {"FR": AccessToggleSet.no_access()}

    service.change_role(member, ORG_ID, TeamRole.MANAGER, actor=owner, now=now)

    assert member.role is TeamRole.MANAGER
    assert member.access_level == "edit"
    assert member.permissions == default_permissions_for(TeamRole.MANAGER)
    assert member.regional_access == default_regional_access_for(TeamRole.MANAGER)


def test_role_change_with_explicit_permissions(service, owner, now):
    member = make_member(TeamRole.STAFF)
    service.update_team_member(
        member,
        ORG_ID,
        TeamMemberUpdate(role=TeamRole.VIEWER, permissions=[P.VIEW_ANALYTICS]),
        actor=owner,
        now=now,
    )
    assert member.permissions == {P.VIEW_ANALYTICS}
    assert member.regional_access == default_regional_access_for(TeamRole.VIEWER)


def test_owner_role_is_fixed(service, owner, now):
    with pytest.raises(ValidationError):
        service.change_role(owner, ORG_ID, TeamRole.ADMIN, now=now)
    with pytest.raises(ValidationError):
        service.update_team_member(owner, ORG_ID, TeamMemberUpdate(is_active=False), now=now)
    assert owner.is_active


def test_rejected_owner_update_changes_nothing(service, owner, now):
    first_name, version = owner.first_name, owner.version

    with pytest.raises(ValidationError):
        service.update_team_member(
            owner, ORG_ID, TeamMemberUpdate(first_name="Mallory", is_active=False), now=now
        )

    assert owner.first_name == first_name
    assert owner.version == version
    assert owner.is_active


def test_cannot_promote_to_owner(service, owner, now):
    with pytest.raises(ValidationError):
        service.change_role(make_member(TeamRole.ADMIN), ORG_ID, TeamRole.OWNER, actor=owner, now=now)


def test_admin_cannot_manage_the_owner_or_promote_above_itself(service, owner, now):
    admin = make_member(TeamRole.ADMIN)
    with pytest.raises(PermissionDeniedError):
        service.update_team_member(owner, ORG_ID, TeamMemberUpdate(notes="hi"), actor=admin, now=now)

    staff = make_member(TeamRole.STAFF)
    service.change_role(staff, ORG_ID, TeamRole.ADMIN, actor=admin, now=now)
    assert staff.role is TeamRole.ADMIN


def test_access_changes_require_manage_roles(service, now):
    manager = make_member(TeamRole.MANAGER)
    staff = make_member(TeamRole.STAFF)
    with pytest.raises(PermissionDeniedError):
        service.change_role(staff, ORG_ID, TeamRole.VIEWER, actor=manager, now=now)


def test_self_profile_edit_without_team_permissions(service, now):
    staff = make_member(TeamRole.STAFF)
    service.update_team_member(staff, ORG_ID, TeamMemberUpdate(phone="+49 30 1234"), actor=staff, now=now)
    assert staff.phone == "+49 30 1234"

    service.update_team_member(staff, ORG_ID, TeamMemberUpdate(phone=None), actor=staff, now=now)
    assert staff.phone is None

    with pytest.raises(PermissionDeniedError):
        service.update_team_member(
            make_member(TeamRole.STAFF), ORG_ID, TeamMemberUpdate(first_name="X"), actor=staff, now=now
        )


def test_update_across_organizers(service, owner, now):
    foreign = make_member(organizer_id=OTHER_ORG_ID)
    with pytest.raises(UnauthorizedError):
        service.update_team_member(foreign, ORG_ID, TeamMemberUpdate(first_name="X"), actor=owner, now=now)


def test_inactive_member_is_not_reactivated_by_update(service, owner, now):
    gone = make_member(is_active=False)
    with pytest.raises(ValidationError):
        service.update_team_member(gone, ORG_ID, TeamMemberUpdate(is_active=True), actor=owner, now=now)


# ---------------------------------------------------------
# Permissions + regional access
# ---------------------------------------------------------
def test_grant_and_revoke(service, owner, now):
    member = make_member(TeamRole.VIEWER)

    service.grant_permissions(member, ORG_ID, ["export_reports"], actor=owner, now=now)
    assert P.EXPORT_REPORTS in member.permissions

    service.revoke_permissions(member, ORG_ID, [P.VIEW_ATTENDEES], actor=owner, now=now)
    assert P.VIEW_ATTENDEES not in member.permissions
    # revoked stays revoked even though the role implies it
    assert not is_authorized(member, P.VIEW_ATTENDEES)
    assert member.version == 3


def test_set_and_clear_regional_override(service, owner, now):
    member = make_member(TeamRole.MANAGER)

    service.set_regional_access(
        member, ORG_ID, "de", AccessToggleSet.granting(AccessArea.EVENTS), actor=owner, now=now
    )
    assert not is_authorized(member, P.MANAGE_ATTENDEES, "DE")
    assert is_authorized(member, P.MANAGE_ATTENDEES, "US")

    service.set_regional_access(member, ORG_ID, "DE", None, actor=owner, now=now)
    assert set(member.regional_access) == {"*"}
    assert is_authorized(member, P.MANAGE_ATTENDEES, "DE")


# ---------------------------------------------------------
# Removal
# ---------------------------------------------------------
def test_remove_is_logical(service, owner, now):
    staff = make_member()
    members = [owner, staff]

    service.remove_team_member(staff, ORG_ID, actor=owner, now=now)

    assert staff in members
    assert not staff.is_active
    assert staff.removed_at == now
    assert count_active_members(members, ORG_ID) == 1


def test_removing_an_inactive_member_changes_nothing(service, owner, now):
    staff = make_member()
    members = [owner, staff]
    service.remove_team_member(staff, ORG_ID, actor=owner, now=now)
    version = staff.version

    service.remove_team_member(staff, ORG_ID, actor=owner, now=now + timedelta(hours=1))
    assert count_active_members(members, ORG_ID) == 1
    assert staff.removed_at == now
    assert staff.version == version


def test_owner_cannot_be_removed(service, owner, now):
    with pytest.raises(ValidationError):
        service.remove_team_member(owner, ORG_ID, now=now)


def test_removal_permissions(service, now):
    admin = make_member(TeamRole.ADMIN)
    viewer = make_member(TeamRole.VIEWER)
    staff = make_member()

    with pytest.raises(PermissionDeniedError):
        service.remove_team_member(staff, ORG_ID, actor=viewer, now=now)

    # MANAGE_ROLES is enough
    service.remove_team_member(staff, ORG_ID, actor=admin, now=now)
    assert not staff.is_active


# ---------------------------------------------------------
# Activity + search
# ---------------------------------------------------------
def test_record_activity(service, now):
    member = make_member()
    entry = service.record_activity(
        member, "check_in", resource="event", resource_id="evt_1", ip_address="10.0.0.7", now=now
    )
    service.record_activity(member, "event_update", events_managed=1, now=now + timedelta(minutes=1))

    assert entry.action == "check_in"
    assert entry.resource == "event"
    assert entry.resource_id == "evt_1"
    assert entry.member_id == member.id
    assert entry.organizer_id == ORG_ID
    assert entry.timestamp == now
    assert entry.ip_address == "10.0.0.7"
    assert entry.details == {}

    assert member.actions_performed == 2
    assert member.events_managed == 1
    assert member.last_action_at == now + timedelta(minutes=1)
    assert member.version == 1


def test_search_filters_and_paginates(service, now):
    members = [
        make_member(TeamRole.STAFF, first_name="Ada", country="DE", joined_at=now - timedelta(days=3)),
        make_member(TeamRole.STAFF, first_name="Bo", country="de", joined_at=now - timedelta(days=1)),
        make_member(TeamRole.VIEWER, first_name="Cy", country="US", joined_at=now),
        make_member(TeamRole.STAFF, first_name="Di", country="DE", is_active=False),
        make_member(TeamRole.STAFF, organizer_id=OTHER_ORG_ID, country="DE"),
    ]

    page = service.search_team_members(
        members,
        TeamMemberSearchFilters(organizer_id=ORG_ID, role=TeamRole.STAFF, country="DE", is_active=True, page_size=1),
    )
    assert page.total_count == 2
    assert [m.first_name for m in page.members] == ["Bo"]
    assert page.has_next_page and not page.has_previous_page

    hits = service.search_team_members(members, TeamMemberSearchFilters(organizer_id=ORG_ID, search_term="cy"))
    assert [m.first_name for m in hits.members] == ["Cy"]
