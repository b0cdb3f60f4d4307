from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNLIMITED_TEAM_MEMBERS = -1


class SubscriptionPlan(str, enum.Enum):
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class OrganizerTeamPolicy(BaseModel):
    """Read-only team policy derived from the organizer's subscription."""

    model_config = ConfigDict(frozen=True)

    allow_team_collaboration: bool = False
    # Positive ceiling, or UNLIMITED_TEAM_MEMBERS
    max_team_members: int = 1

    @field_validator("max_team_members")
    @classmethod
    def _check_ceiling(cls, v: int) -> int:
        if v == UNLIMITED_TEAM_MEMBERS or v > 0:
            return v
        raise ValueError("max_team_members must be a positive integer or -1 (unlimited)")

    @property
    def is_unlimited(self) -> bool:
        return self.max_team_members == UNLIMITED_TEAM_MEMBERS


class Organizer(BaseModel):
    """The slice of the organizer record the team rules read."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = ""
    country: str = "US"
    region: str = ""
    timezone: str = "UTC"
    locale: str = "en-US"
    subscription: SubscriptionPlan = SubscriptionPlan.FREE
    # filled in from `subscription` by the directory unless set explicitly
    team_policy: OrganizerTeamPolicy = Field(default_factory=OrganizerTeamPolicy)
    is_active: bool = True
