# backend/team_access/core/regional_access.py

from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from team_access.auth.permissions import AccessArea
from team_access.core.roles import TeamRole, ensure_role

WILDCARD_REGION = "*"


class AccessToggleSet(BaseModel):
    """Region-scoped gate: one flag per AccessArea."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    events: bool = False
    finances: bool = False
    attendees: bool = False
    marketing: bool = False
    team: bool = False
    analytics: bool = False
    settings: bool = False
    support: bool = False

    @classmethod
    def no_access(cls) -> "AccessToggleSet":
        return cls()

    @classmethod
    def all_granted(cls) -> "AccessToggleSet":
        return cls(**{area.value: True for area in AccessArea})

    @classmethod
    def granting(cls, *areas: AccessArea) -> "AccessToggleSet":
        return cls(**{area.value: True for area in areas})

    def allows(self, area: AccessArea) -> bool:
        return bool(getattr(self, AccessArea(area).value))

    def granted_areas(self) -> FrozenSet[AccessArea]:
        return frozenset(area for area in AccessArea if self.allows(area))


RegionalAccessGrid = Dict[str, AccessToggleSet]


_A = AccessArea

ROLE_DEFAULT_AREAS: Mapping[TeamRole, FrozenSet[AccessArea]] = {
    TeamRole.OWNER: frozenset(AccessArea),
    TeamRole.ADMIN: frozenset(AccessArea),
    # MANAGER and EDITOR share a grid; only their permission lists differ.
    TeamRole.MANAGER: frozenset({_A.EVENTS, _A.ATTENDEES, _A.MARKETING, _A.ANALYTICS, _A.SUPPORT}),
    TeamRole.EDITOR: frozenset({_A.EVENTS, _A.ATTENDEES, _A.MARKETING, _A.ANALYTICS, _A.SUPPORT}),
    TeamRole.VIEWER: frozenset({_A.ATTENDEES, _A.ANALYTICS, _A.SUPPORT}),
    TeamRole.STAFF: frozenset({_A.ATTENDEES, _A.SUPPORT}),
}


def normalize_region(region: Optional[str]) -> str:
    """ISO country codes are stored upper-case; blank means the wildcard."""
    r = (region or "").strip().upper()
    return r or WILDCARD_REGION


def default_regional_access_for(role: TeamRole) -> RegionalAccessGrid:
    """
    Default grid for a new member holding `role`.
    Always a single wildcard entry; per-country restrictions come later.
    """
    areas = ROLE_DEFAULT_AREAS[ensure_role(role)]
    return {WILDCARD_REGION: AccessToggleSet.granting(*areas)}


def resolve_regional_access(grid: Optional[Mapping[str, AccessToggleSet]], region: Optional[str]) -> AccessToggleSet:
    """
    Two-step lookup: exact region key, then the wildcard key.
    Never returns None; a miss on both is the all-false toggle set.
    """
    if not grid:
        return AccessToggleSet.no_access()

    key = normalize_region(region)

    exact = grid.get(key)
    if exact is not None:
        return exact

    wildcard = grid.get(WILDCARD_REGION)
    if wildcard is not None:
        return wildcard

    return AccessToggleSet.no_access()


def normalize_grid(grid: Optional[Mapping[str, AccessToggleSet]]) -> RegionalAccessGrid:
    """Copy with normalised region keys. Later duplicates win."""
    if not grid:
        return {}
    return {normalize_region(region): toggles for region, toggles in grid.items()}
