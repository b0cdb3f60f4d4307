from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from team_access.auth.permissions import TeamPermission
from team_access.core.regional_access import AccessToggleSet, normalize_grid
from team_access.core.roles import TeamRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TeamMember(BaseModel):
    """
    A principal's membership in one organizer's team.

    `permissions` is authoritative: it starts from the role defaults and may be
    customised afterwards. Removal is logical (is_active=False, removed_at set).
    """

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: str
    organizer_id: str
    user_id: Optional[str] = None

    first_name: str = ""
    last_name: str = ""
    email: str
    phone: Optional[str] = None

    country: str = ""
    region: str = ""
    timezone: str = "UTC"
    locale: str = "en-US"

    role: TeamRole
    permissions: Set[TeamPermission] = Field(default_factory=set)
    regional_access: Dict[str, AccessToggleSet] = Field(default_factory=dict)
    # owner | admin | edit | view
    access_level: str = "view"

    language_preferences: List[str] = Field(default_factory=lambda: ["en"])
    currency_preferences: List[str] = Field(default_factory=lambda: ["USD"])

    is_active: bool = True
    is_verified: bool = False
    joined_at: datetime = Field(default_factory=_utcnow)
    last_active: datetime = Field(default_factory=_utcnow)
    removed_at: Optional[datetime] = None

    events_managed: int = 0
    actions_performed: int = 0
    last_action_at: Optional[datetime] = None

    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    @field_validator("regional_access")
    @classmethod
    def _normalize_regions(cls, v: Dict[str, AccessToggleSet]) -> Dict[str, AccessToggleSet]:
        return normalize_grid(v)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TeamMemberCreate(BaseModel):
    """Direct admission of a member (no invitation round-trip)."""

    model_config = ConfigDict(extra="forbid")

    organizer_id: str
    user_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    email: str
    phone: Optional[str] = None
    role: Optional[str] = None
    # None => role defaults
    permissions: Optional[List[str]] = None
    regional_access: Optional[Dict[str, AccessToggleSet]] = None
    country: str = ""
    region: str = ""
    timezone: str = "UTC"
    locale: str = "en-US"
    language_preferences: Optional[List[str]] = None
    currency_preferences: Optional[List[str]] = None
    notes: Optional[str] = None


class TeamMemberUpdate(BaseModel):
    """
    Every mutable field, explicitly. Unset fields are left alone.

    Setting `role` without `permissions` / `regional_access` re-resolves
    those to the new role's defaults.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[TeamRole] = None
    permissions: Optional[List[TeamPermission]] = None
    regional_access: Optional[Dict[str, AccessToggleSet]] = None
    country: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None
    language_preferences: Optional[List[str]] = None
    currency_preferences: Optional[List[str]] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class TeamMemberSearchFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    organizer_id: str
    role: Optional[TeamRole] = None
    country: Optional[str] = None
    region: Optional[str] = None
    is_active: Optional[bool] = None
    search_term: Optional[str] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


class TeamMemberListResponse(BaseModel):
    members: List[TeamMember]
    total_count: int
    page: int
    page_size: int
    has_next_page: bool
    has_previous_page: bool


class TeamActivityLog(BaseModel):
    """One action a member performed; the caller decides where to persist it."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organizer_id: str
    member_id: str
    action: str
    resource: str = ""
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    # {"country": ..., "region": ..., "city": ...}
    location: Optional[Dict[str, str]] = None
