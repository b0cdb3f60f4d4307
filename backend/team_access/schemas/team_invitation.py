from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from team_access.auth.permissions import TeamPermission
from team_access.core.regional_access import AccessToggleSet, normalize_grid
from team_access.core.roles import TeamRole


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


TERMINAL_INVITATION_STATUSES = frozenset(
    {InvitationStatus.ACCEPTED, InvitationStatus.EXPIRED, InvitationStatus.REVOKED}
)


class TeamMemberInvitation(BaseModel):
    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: str
    organizer_id: str

    email: str
    first_name: str = ""
    last_name: str = ""
    role: TeamRole
    permissions: Set[TeamPermission] = Field(default_factory=set)
    regional_access: Dict[str, AccessToggleSet] = Field(default_factory=dict)

    invited_by: str
    token: str
    invited_at: datetime
    expires_at: datetime
    status: InvitationStatus = InvitationStatus.PENDING

    # copied from the organizer at creation time
    default_country: str = ""
    default_region: str = ""
    default_timezone: str = "UTC"
    default_locale: str = "en-US"

    custom_message: Optional[str] = None

    accepted_at: Optional[datetime] = None
    accepted_by_user_id: Optional[str] = None
    revoked_at: Optional[datetime] = None

    @field_validator("regional_access")
    @classmethod
    def _normalize_regions(cls, v: Dict[str, AccessToggleSet]) -> Dict[str, AccessToggleSet]:
        return normalize_grid(v)

    @field_validator("invited_at", "expires_at", "accepted_at", "revoked_at")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # naive timestamps are stored as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_INVITATION_STATUSES


class TeamInviteCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    # plain strings: validated by the service into ValidationError
    role: Optional[str] = Field(default=None, description="admin, manager, editor, viewer or staff")
    permissions: Optional[List[str]] = None
    regional_access: Optional[Dict[str, AccessToggleSet]] = None
    first_name: str = ""
    last_name: str = ""
    custom_message: Optional[str] = None


class AcceptTeamInvite(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str = Field(..., description="Invitation token")
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
