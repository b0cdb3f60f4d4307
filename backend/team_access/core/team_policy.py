# backend/team_access/core/team_policy.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from team_access.core.errors import UnauthorizedError, ValidationError
from team_access.schemas.organizer import UNLIMITED_TEAM_MEMBERS, OrganizerTeamPolicy

TEAM_LIMIT_REACHED = "TEAM_LIMIT_REACHED"


def can_invite(policy: OrganizerTeamPolicy) -> bool:
    return bool(policy.allow_team_collaboration)


def ensure_can_invite(policy: OrganizerTeamPolicy) -> None:
    if not can_invite(policy):
        raise UnauthorizedError(
            "Team collaboration is disabled for this organizer",
            details={"allow_team_collaboration": False},
        )


def check_team_size_limit(current_active_count: int, max_team_members: int) -> bool:
    """
    True when one more member still fits.
    `current_active_count` must only count members with is_active=True.
    """
    if current_active_count < 0:
        raise ValueError("current_active_count must not be negative")
    if max_team_members == UNLIMITED_TEAM_MEMBERS:
        return True
    return current_active_count < max_team_members


def ensure_team_capacity(current_active_count: int, max_team_members: int) -> None:
    if not check_team_size_limit(current_active_count, max_team_members):
        raise ValidationError(
            "Team member limit reached",
            code=TEAM_LIMIT_REACHED,
            details={
                "limit": max_team_members,
                "active_members": current_active_count,
            },
        )


@dataclass(frozen=True)
class AdmissionPrecondition:
    """
    Compare-and-swap contract handed to storage with every admission.

    Commit the new/reactivated member for `organizer_id` only if the active
    count observed inside the write transaction still leaves room, e.g. a
    conditional write on the organizer's active-member counter. Both counts
    leave out `member_id`, the membership being admitted.
    """

    organizer_id: str
    max_team_members: int
    observed_active_count: int
    member_id: Optional[str] = None

    def is_satisfied_by(self, active_count_at_commit: int) -> bool:
        return check_team_size_limit(active_count_at_commit, self.max_team_members)


def admission_precondition(
    organizer_id: str,
    policy: OrganizerTeamPolicy,
    observed_active_count: int,
    *,
    member_id: Optional[str] = None,
) -> AdmissionPrecondition:
    """Validate policy + capacity now and describe the check storage must repeat."""
    ensure_can_invite(policy)
    ensure_team_capacity(observed_active_count, policy.max_team_members)
    return AdmissionPrecondition(
        organizer_id=organizer_id,
        max_team_members=policy.max_team_members,
        observed_active_count=observed_active_count,
        member_id=member_id,
    )
