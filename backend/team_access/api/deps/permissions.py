from __future__ import annotations

from typing import Callable, Sequence

from fastapi import Depends, HTTPException, status

from team_access.api.deps.team import get_current_team_member, get_request_region
from team_access.auth.decisions import has_permission, is_authorized
from team_access.auth.permissions import TeamPermission, ensure_permission
from team_access.schemas.team_member import TeamMember


def require_team_permissions(
    required: TeamPermission | Sequence[TeamPermission],
    *,
    any_of: bool = False,
) -> Callable:
    """
    Enforce team RBAC using:
      - get_current_team_member()
      - TeamMember.permissions (authoritative, no role bypass)
      - TeamMember.regional_access for the request region

    Args:
      required: permission OR list of permissions
      any_of: True => any required perm passes; False => all required perms required
    """
    required_list = [required] if isinstance(required, TeamPermission) else list(required)
    for p in required_list:
        ensure_permission(p)

    async def _checker(
        member: TeamMember = Depends(get_current_team_member),
        region: str = Depends(get_request_region),
    ) -> TeamMember:
        if not member.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "rbac_member_inactive", "message": "Team membership is inactive."},
            )

        checks = [is_authorized(member, p, region) for p in required_list]
        allowed = any(checks) if any_of else all(checks)

        if not allowed:
            missing = [p.value for p, ok in zip(required_list, checks) if not ok]
            region_gated = [p.value for p, ok in zip(required_list, checks) if not ok and has_permission(member, p)]
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "rbac_forbidden",
                    "message": "You do not have permission to perform this action.",
                    "required": [p.value for p in required_list],
                    "missing": missing,
                    "region_gated": region_gated,
                    "region": region,
                    "role": member.role.value,
                },
            )

        return member

    return _checker
