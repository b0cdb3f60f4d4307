from __future__ import annotations

import enum
from typing import Any, FrozenSet, Iterable, Mapping

from team_access.core.errors import UnknownPermissionError, ValidationError
from team_access.core.roles import TeamRole, ensure_role


class TeamPermission(str, enum.Enum):
    # events.*
    CREATE_EVENTS = "create_events"
    EDIT_EVENTS = "edit_events"
    DELETE_EVENTS = "delete_events"
    PUBLISH_EVENTS = "publish_events"
    DUPLICATE_EVENTS = "duplicate_events"

    # attendees.*
    VIEW_ATTENDEES = "view_attendees"
    MANAGE_ATTENDEES = "manage_attendees"
    CHECK_IN_ATTENDEES = "check_in_attendees"
    EXPORT_ATTENDEE_DATA = "export_attendee_data"

    # finances.*
    VIEW_FINANCIALS = "view_financials"
    PROCESS_REFUNDS = "process_refunds"
    EXPORT_FINANCIAL_REPORTS = "export_financial_reports"
    MANAGE_PAYOUTS = "manage_payouts"

    # marketing.*
    SEND_EMAILS = "send_emails"
    MANAGE_CAMPAIGNS = "manage_campaigns"
    CREATE_EMAIL_TEMPLATES = "create_email_templates"
    MANAGE_AUDIENCE_SEGMENTS = "manage_audience_segments"

    # team.*
    INVITE_TEAM_MEMBERS = "invite_team_members"
    MANAGE_ROLES = "manage_roles"
    REMOVE_TEAM_MEMBERS = "remove_team_members"
    VIEW_TEAM_ACTIVITY = "view_team_activity"

    # analytics.*
    VIEW_ANALYTICS = "view_analytics"
    EXPORT_REPORTS = "export_reports"
    VIEW_PERFORMANCE_METRICS = "view_performance_metrics"

    # settings.*
    MANAGE_ORGANIZER_SETTINGS = "manage_organizer_settings"
    MANAGE_INTEGRATIONS = "manage_integrations"
    MANAGE_BILLING = "manage_billing"
    MANAGE_SUBSCRIPTION = "manage_subscription"

    # support.*
    VIEW_SUPPORT_MESSAGES = "view_support_messages"
    REPLY_TO_SUPPORT = "reply_to_support"
    MANAGE_AUTO_REPLIES = "manage_auto_replies"
    RESOLVE_SUPPORT_TICKETS = "resolve_support_tickets"


class AccessArea(str, enum.Enum):
    """Coarse capability areas; one boolean each in an AccessToggleSet."""

    EVENTS = "events"
    FINANCES = "finances"
    ATTENDEES = "attendees"
    MARKETING = "marketing"
    TEAM = "team"
    ANALYTICS = "analytics"
    SETTINGS = "settings"
    SUPPORT = "support"


P = TeamPermission

PERMISSION_AREAS: Mapping[TeamPermission, AccessArea] = {
    P.CREATE_EVENTS: AccessArea.EVENTS,
    P.EDIT_EVENTS: AccessArea.EVENTS,
    P.DELETE_EVENTS: AccessArea.EVENTS,
    P.PUBLISH_EVENTS: AccessArea.EVENTS,
    P.DUPLICATE_EVENTS: AccessArea.EVENTS,
    P.VIEW_ATTENDEES: AccessArea.ATTENDEES,
    P.MANAGE_ATTENDEES: AccessArea.ATTENDEES,
    P.CHECK_IN_ATTENDEES: AccessArea.ATTENDEES,
    P.EXPORT_ATTENDEE_DATA: AccessArea.ATTENDEES,
    P.VIEW_FINANCIALS: AccessArea.FINANCES,
    P.PROCESS_REFUNDS: AccessArea.FINANCES,
    P.EXPORT_FINANCIAL_REPORTS: AccessArea.FINANCES,
    P.MANAGE_PAYOUTS: AccessArea.FINANCES,
    P.SEND_EMAILS: AccessArea.MARKETING,
    P.MANAGE_CAMPAIGNS: AccessArea.MARKETING,
    P.CREATE_EMAIL_TEMPLATES: AccessArea.MARKETING,
    P.MANAGE_AUDIENCE_SEGMENTS: AccessArea.MARKETING,
    P.INVITE_TEAM_MEMBERS: AccessArea.TEAM,
    P.MANAGE_ROLES: AccessArea.TEAM,
    P.REMOVE_TEAM_MEMBERS: AccessArea.TEAM,
    P.VIEW_TEAM_ACTIVITY: AccessArea.TEAM,
    P.VIEW_ANALYTICS: AccessArea.ANALYTICS,
    P.EXPORT_REPORTS: AccessArea.ANALYTICS,
    P.VIEW_PERFORMANCE_METRICS: AccessArea.ANALYTICS,
    P.MANAGE_ORGANIZER_SETTINGS: AccessArea.SETTINGS,
    P.MANAGE_INTEGRATIONS: AccessArea.SETTINGS,
    P.MANAGE_BILLING: AccessArea.SETTINGS,
    P.MANAGE_SUBSCRIPTION: AccessArea.SETTINGS,
    P.VIEW_SUPPORT_MESSAGES: AccessArea.SUPPORT,
    P.REPLY_TO_SUPPORT: AccessArea.SUPPORT,
    P.MANAGE_AUTO_REPLIES: AccessArea.SUPPORT,
    P.RESOLVE_SUPPORT_TICKETS: AccessArea.SUPPORT,
}

ALL_PERMISSIONS: FrozenSet[TeamPermission] = frozenset(TeamPermission)

WRITE_EVENT_PERMISSIONS: FrozenSet[TeamPermission] = frozenset(
    {P.CREATE_EVENTS, P.EDIT_EVENTS, P.DELETE_EVENTS}
)

# OWNER alone derives from the enum; every other role is an explicit list.
ROLE_DEFAULT_PERMISSIONS: Mapping[TeamRole, FrozenSet[TeamPermission]] = {
    TeamRole.OWNER: ALL_PERMISSIONS,
    TeamRole.ADMIN: frozenset(
        {
            P.CREATE_EVENTS,
            P.EDIT_EVENTS,
            P.DELETE_EVENTS,
            P.PUBLISH_EVENTS,
            P.VIEW_ATTENDEES,
            P.MANAGE_ATTENDEES,
            P.VIEW_FINANCIALS,
            P.SEND_EMAILS,
            P.MANAGE_CAMPAIGNS,
            P.INVITE_TEAM_MEMBERS,
            P.MANAGE_ROLES,
            P.VIEW_ANALYTICS,
            P.EXPORT_REPORTS,
            P.MANAGE_ORGANIZER_SETTINGS,
            P.VIEW_SUPPORT_MESSAGES,
            P.REPLY_TO_SUPPORT,
        }
    ),
    TeamRole.MANAGER: frozenset(
        {
            P.CREATE_EVENTS,
            P.EDIT_EVENTS,
            P.PUBLISH_EVENTS,
            P.VIEW_ATTENDEES,
            P.MANAGE_ATTENDEES,
            P.VIEW_FINANCIALS,
            P.SEND_EMAILS,
            P.MANAGE_CAMPAIGNS,
            P.VIEW_ANALYTICS,
            P.EXPORT_REPORTS,
            P.VIEW_SUPPORT_MESSAGES,
            P.REPLY_TO_SUPPORT,
        }
    ),
    TeamRole.EDITOR: frozenset(
        {
            P.EDIT_EVENTS,
            P.VIEW_ATTENDEES,
            P.MANAGE_ATTENDEES,
            P.SEND_EMAILS,
            P.VIEW_ANALYTICS,
            P.VIEW_SUPPORT_MESSAGES,
            P.REPLY_TO_SUPPORT,
        }
    ),
    TeamRole.VIEWER: frozenset(
        {
            P.VIEW_ATTENDEES,
            P.VIEW_ANALYTICS,
            P.VIEW_SUPPORT_MESSAGES,
        }
    ),
    TeamRole.STAFF: frozenset(
        {
            P.VIEW_ATTENDEES,
            P.CHECK_IN_ATTENDEES,
            P.VIEW_SUPPORT_MESSAGES,
            P.REPLY_TO_SUPPORT,
        }
    ),
}


def default_permissions_for(role: TeamRole) -> FrozenSet[TeamPermission]:
    """
    Default permission set granted with `role`.
    Raises UnknownRoleError for anything that is not a TeamRole.
    """
    return ROLE_DEFAULT_PERMISSIONS[ensure_role(role)]


def ensure_permission(permission: Any) -> TeamPermission:
    if not isinstance(permission, TeamPermission):
        raise UnknownPermissionError(permission)
    return permission


def area_for(permission: TeamPermission) -> AccessArea:
    area = PERMISSION_AREAS.get(ensure_permission(permission))
    if area is None:
        raise UnknownPermissionError(permission)
    return area


def parse_permissions(values: Iterable[TeamPermission | str] | None) -> FrozenSet[TeamPermission]:
    """
    Boundary coercion for request payloads.
    Blank entries are dropped; unknown names are a ValidationError.
    """
    if not values:
        return frozenset()

    parsed: set[TeamPermission] = set()
    unknown: list[str] = []
    for value in values:
        if isinstance(value, TeamPermission):
            parsed.add(value)
            continue
        raw = (value or "").strip().lower() if isinstance(value, str) else ""
        if not raw:
            continue
        try:
            parsed.add(TeamPermission(raw))
        except ValueError:
            unknown.append(str(value))

    if unknown:
        raise ValidationError(
            f"Unknown permissions: {sorted(unknown)}",
            details={"field": "permissions", "unknown": sorted(unknown)},
        )
    return frozenset(parsed)
