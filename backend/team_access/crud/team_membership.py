# team_access/crud/team_membership.py
from __future__ import annotations

from typing import Iterable, Optional

from team_access.core.regional_access import normalize_region
from team_access.schemas.team_member import (
    TeamMember,
    TeamMemberListResponse,
    TeamMemberSearchFilters,
)


def count_active_members(members: Iterable[TeamMember], organizer_id: str) -> int:
    """
    Counts ACTIVE memberships for an organizer.
    Removed/deactivated members never count against the ceiling.
    """
    return sum(1 for m in members if m.organizer_id == organizer_id and m.is_active)


def count_active_members_excluding(
    members: Iterable[TeamMember],
    organizer_id: str,
    *,
    exclude_member_id: Optional[str] = None,
    exclude_user_id: Optional[str] = None,
) -> int:
    """
    Same as count_active_members but excludes one member (by id or user_id).
    Prevents blocking re-accept/reactivation of an already-counted active member.
    """
    count = 0
    for m in members:
        if m.organizer_id != organizer_id or not m.is_active:
            continue
        if exclude_member_id is not None and m.id == exclude_member_id:
            continue
        if exclude_user_id is not None and m.user_id == exclude_user_id:
            continue
        count += 1
    return count


def find_active_member(
    members: Iterable[TeamMember],
    organizer_id: str,
    *,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[TeamMember]:
    """Active membership held by `user_id` or registered under `email`."""
    target = (email or "").strip().lower()
    for m in members:
        if m.organizer_id != organizer_id or not m.is_active:
            continue
        if user_id and m.user_id == user_id:
            return m
        if target and m.email.strip().lower() == target:
            return m
    return None


def _matches(member: TeamMember, filters: TeamMemberSearchFilters) -> bool:
    if member.organizer_id != filters.organizer_id:
        return False
    if filters.role is not None and member.role is not filters.role:
        return False
    if filters.country and normalize_region(member.country) != normalize_region(filters.country):
        return False
    if filters.region and member.region.strip().lower() != filters.region.strip().lower():
        return False
    if filters.is_active is not None and member.is_active != filters.is_active:
        return False

    term = (filters.search_term or "").strip().lower()
    if term:
        haystack = " ".join([member.first_name, member.last_name, member.email]).lower()
        if term not in haystack:
            return False
    return True


def search_team_members(members: Iterable[TeamMember], filters: TeamMemberSearchFilters) -> TeamMemberListResponse:
    """Filter, order by join date (newest first) and paginate."""
    matched = [m for m in members if _matches(m, filters)]
    matched.sort(key=lambda m: m.joined_at, reverse=True)

    start = (filters.page - 1) * filters.page_size
    end = start + filters.page_size

    return TeamMemberListResponse(
        members=matched[start:end],
        total_count=len(matched),
        page=filters.page,
        page_size=filters.page_size,
        has_next_page=end < len(matched),
        has_previous_page=filters.page > 1,
    )
