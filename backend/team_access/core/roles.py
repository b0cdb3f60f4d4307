# backend/team_access/core/roles.py

from __future__ import annotations

import enum
from typing import Any, Mapping

from team_access.core.errors import UnknownRoleError, ValidationError


class TeamRole(str, enum.Enum):
    OWNER = "owner"      # creator / ultimate authority
    ADMIN = "admin"      # everything in the organizer, explicitly enumerated
    MANAGER = "manager"
    EDITOR = "editor"
    VIEWER = "viewer"    # sibling of EDITOR, neither outranks the other
    STAFF = "staff"      # on-site: check-in + support


# Editor and viewer share a rank: equal rank means incomparable, not equal.
ROLE_RANKS: Mapping[TeamRole, int] = {
    TeamRole.OWNER: 5,
    TeamRole.ADMIN: 4,
    TeamRole.MANAGER: 3,
    TeamRole.EDITOR: 2,
    TeamRole.VIEWER: 2,
    TeamRole.STAFF: 1,
}

ROLE_ACCESS_LEVELS: Mapping[TeamRole, str] = {
    TeamRole.OWNER: "owner",
    TeamRole.ADMIN: "admin",
    TeamRole.MANAGER: "edit",
    TeamRole.EDITOR: "edit",
    TeamRole.VIEWER: "view",
    TeamRole.STAFF: "view",
}


def ensure_role(role: Any) -> TeamRole:
    """
    Fail fast on anything that is not a TeamRole member.
    Used by the resolvers; user input goes through parse_role() instead.
    """
    if not isinstance(role, TeamRole):
        raise UnknownRoleError(role)
    return role


def parse_role(value: TeamRole | str | None) -> TeamRole:
    """
    Boundary coercion for request payloads (case-insensitive).
    Missing or unrecognised roles are user errors here, not drift.
    """
    if isinstance(value, TeamRole):
        return value
    raw = (value or "").strip().lower()
    if not raw:
        raise ValidationError("Role is required", details={"field": "role"})
    try:
        return TeamRole(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid role. Allowed: {', '.join(r.value for r in TeamRole)}",
            details={"field": "role", "value": value},
        )


def role_rank(role: TeamRole) -> int:
    return ROLE_RANKS[ensure_role(role)]


def outranks(role: TeamRole, other: TeamRole) -> bool:
    """True iff `role` is strictly more privileged than `other`."""
    return role_rank(role) > role_rank(other)


def is_at_least(role: TeamRole, other: TeamRole) -> bool:
    """Equal or strictly more privileged. EDITOR/VIEWER are not at least each other."""
    return ensure_role(role) is ensure_role(other) or outranks(role, other)


def access_level_for(role: TeamRole) -> str:
    return ROLE_ACCESS_LEVELS[ensure_role(role)]
