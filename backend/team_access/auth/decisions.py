from __future__ import annotations

from typing import Mapping, Optional, Union

from team_access.auth.permissions import TeamPermission, area_for, ensure_permission
from team_access.core.errors import PermissionDeniedError, UnauthorizedError
from team_access.core.regional_access import (
    AccessToggleSet,
    normalize_region,
    resolve_regional_access,
)
from team_access.schemas.team_member import TeamMember


def has_permission(member: TeamMember, permission: TeamPermission) -> bool:
    """
    The member's permission set is authoritative. No role fallback:
    a default the role would imply but that was revoked stays revoked.
    """
    return ensure_permission(permission) in member.permissions


def regional_access(
    member_or_grid: Union[TeamMember, Mapping[str, AccessToggleSet]],
    region: Optional[str],
) -> AccessToggleSet:
    grid = member_or_grid.regional_access if isinstance(member_or_grid, TeamMember) else member_or_grid
    return resolve_regional_access(grid, region)


def _denial_reason(member: TeamMember, permission: TeamPermission, region: Optional[str]) -> Optional[str]:
    if not member.is_active:
        return "member_inactive"
    if not has_permission(member, permission):
        return "permission_missing"
    if not regional_access(member, region).allows(area_for(permission)):
        return "region_gated"
    return None


def is_authorized(member: TeamMember, permission: TeamPermission, region: Optional[str] = None) -> bool:
    """
    Conjunctive check: the organisation-wide permission AND the regional
    toggle of the permission's area. Inactive members are never authorized.
    """
    return _denial_reason(member, permission, region) is None


def require_access(member: TeamMember, permission: TeamPermission, region: Optional[str] = None) -> None:
    reason = _denial_reason(member, permission, region)
    if reason is None:
        return

    raise PermissionDeniedError(
        "You do not have permission to perform this action.",
        details={
            "permission": permission.value,
            "area": area_for(permission).value,
            "region": normalize_region(region),
            "reason": reason,
            "role": member.role.value,
        },
    )


def ensure_same_organizer(member: TeamMember, organizer_id: str) -> None:
    """Mutations on a member must come from that member's own organizer."""
    if member.organizer_id != organizer_id:
        raise UnauthorizedError(
            "Access denied",
            details={"member_id": member.id, "organizer_id": organizer_id},
        )


def check_user_permission(member: Optional[TeamMember], organizer_id: str, permission: TeamPermission) -> bool:
    """Scoped permission lookup: members of another organizer have none."""
    if member is None or member.organizer_id != organizer_id:
        return False
    return has_permission(member, permission)


def get_user_regional_access(member: Optional[TeamMember], organizer_id: str, region: Optional[str]) -> AccessToggleSet:
    if member is None or member.organizer_id != organizer_id:
        return AccessToggleSet.no_access()
    return regional_access(member, region)
