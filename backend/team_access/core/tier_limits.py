# ============================
# FILE: team_access/core/tier_limits.py
# Canonical team limits per subscription plan
# ============================
from __future__ import annotations

from dataclasses import dataclass

from team_access.schemas.organizer import (
    UNLIMITED_TEAM_MEMBERS,
    OrganizerTeamPolicy,
    SubscriptionPlan,
)


@dataclass(frozen=True)
class PlanTeamLimit:
    max_team_members: int


# Seat model (all roles count, owner included):
# - free: 1 (just the owner)
# - starter: 3
# - professional: 10
# - premium: 25
# - enterprise: unlimited
PLAN_TEAM_LIMITS: dict[SubscriptionPlan, PlanTeamLimit] = {
    SubscriptionPlan.FREE: PlanTeamLimit(max_team_members=1),
    SubscriptionPlan.STARTER: PlanTeamLimit(max_team_members=3),
    SubscriptionPlan.PROFESSIONAL: PlanTeamLimit(max_team_members=10),
    SubscriptionPlan.PREMIUM: PlanTeamLimit(max_team_members=25),
    SubscriptionPlan.ENTERPRISE: PlanTeamLimit(max_team_members=UNLIMITED_TEAM_MEMBERS),
}


def normalize_plan(value: SubscriptionPlan | str | None) -> SubscriptionPlan:
    """
    Supports Enum members or plain strings.
    Defaults to free if empty or unknown.
    """
    if isinstance(value, SubscriptionPlan):
        return value
    v = (value or "").strip().lower()
    try:
        return SubscriptionPlan(v)
    except ValueError:
        return SubscriptionPlan.FREE


def get_team_limit_for_plan(plan: SubscriptionPlan | str | None) -> int:
    """
    Returns the max number of ACTIVE team members for the given plan,
    or UNLIMITED_TEAM_MEMBERS.
    """
    return PLAN_TEAM_LIMITS[normalize_plan(plan)].max_team_members


def policy_for_plan(
    plan: SubscriptionPlan | str | None,
    *,
    allow_team_collaboration: bool | None = None,
) -> OrganizerTeamPolicy:
    """
    Team policy an organizer gets on `plan`.
    Collaboration defaults to on for every paid plan, off on free.
    """
    p = normalize_plan(plan)
    if allow_team_collaboration is None:
        allow_team_collaboration = p is not SubscriptionPlan.FREE
    return OrganizerTeamPolicy(
        allow_team_collaboration=allow_team_collaboration,
        max_team_members=get_team_limit_for_plan(p),
    )
