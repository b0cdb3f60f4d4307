from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status

from team_access.core.config import settings
from team_access.core.regional_access import normalize_region
from team_access.schemas.team_member import TeamMember


async def get_current_team_member() -> TeamMember:
    """
    Resolve the acting member for this request.

    The host application owns authentication and storage, so it provides
    this via `app.dependency_overrides[get_current_team_member]`.
    """
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "team_member_unresolved", "message": "No team member context for this request."},
    )


async def get_request_region(request: Request) -> str:
    """
    Region (ISO country) the request acts in, from the configured header.
    Missing header => wildcard.
    """
    raw: Optional[str] = request.headers.get(settings.REGION_HEADER)
    region = normalize_region(raw)
    if region != "*" and (len(region) != 2 or not region.isalpha()):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{settings.REGION_HEADER} must be an ISO 3166-1 alpha-2 country code",
        )
    return region
