"""
Team membership service: invitations, admissions and member mutations.

Everything here is synchronous and works on records handed in by the caller;
reads and writes against storage, and sending the invitation email, belong to
the caller. Every admission comes back with an AdmissionPrecondition that
storage must re-check at commit time.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Sequence

from team_access.auth.decisions import (
    ensure_same_organizer,
    is_authorized,
    require_access,
)
from team_access.auth.permissions import (
    TeamPermission,
    default_permissions_for,
    parse_permissions,
)
from team_access.core.config import settings
from team_access.core.errors import (
    ConflictError,
    DomainError,
    InvitationExpiredError,
    InvitationStateError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from team_access.core.regional_access import (
    AccessToggleSet,
    default_regional_access_for,
    normalize_grid,
    normalize_region,
)
from team_access.core.roles import TeamRole, access_level_for, outranks, parse_role
from team_access.core.team_policy import AdmissionPrecondition, admission_precondition
from team_access.crud.team_membership import (
    count_active_members,
    count_active_members_excluding,
    find_active_member,
    search_team_members,
)
from team_access.schemas.organizer import Organizer
from team_access.schemas.team_invitation import (
    InvitationStatus,
    TeamInviteCreate,
    TeamMemberInvitation,
)
from team_access.schemas.team_member import (
    TeamActivityLog,
    TeamMember,
    TeamMemberCreate,
    TeamMemberListResponse,
    TeamMemberSearchFilters,
    TeamMemberUpdate,
)
from team_access.services.organizer_directory import OrganizerDirectory

logger = logging.getLogger(__name__)

INVITE_EXPIRY_DAYS = 7
INVITABLE_ROLES = frozenset(r for r in TeamRole if r is not TeamRole.OWNER)

MANAGE_MEMBER_PERMISSIONS = (TeamPermission.MANAGE_ROLES,)
REMOVE_MEMBER_PERMISSIONS = (TeamPermission.REMOVE_TEAM_MEMBERS, TeamPermission.MANAGE_ROLES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _generate_token() -> str:
    return secrets.token_urlsafe(settings.INVITE_TOKEN_BYTES)


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(8)}"


def _validated_email(email: str | None) -> str:
    e = _normalize_email(email)
    if not e:
        raise ValidationError("Email is required", details={"field": "email"})
    if "@" not in e:
        raise ValidationError("Invalid email", details={"field": "email"})
    return e


def refresh_invitation_status(invitation: TeamMemberInvitation, now: Optional[datetime] = None) -> InvitationStatus:
    """
    Lazy expiry: a pending invitation read after expires_at becomes expired.
    Terminal statuses never change here.
    """
    now = _as_utc(now or _utcnow())
    if invitation.status is InvitationStatus.PENDING and now > _as_utc(invitation.expires_at):
        invitation.status = InvitationStatus.EXPIRED
        logger.info(f"Invitation {invitation.id} expired at {invitation.expires_at.isoformat()}")
    return invitation.status


@dataclass(frozen=True)
class Admission:
    """A member ready to be written, plus the check storage must repeat."""

    member: TeamMember
    precondition: AdmissionPrecondition
    reactivated: bool = False


class TeamService:
    def __init__(self, organizers: OrganizerDirectory):
        self.organizers = organizers

    # ---------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------
    def _get_organizer(self, organizer_id: str) -> Organizer:
        organizer = self.organizers.get_organizer(organizer_id)
        if organizer is None:
            raise NotFoundError("Organizer", organizer_id)
        return organizer

    def _authorize_actor(
        self,
        actor: Optional[TeamMember],
        organizer_id: str,
        required: Sequence[TeamPermission],
        target: Optional[TeamMember] = None,
    ) -> None:
        """
        Actor must belong to the organizer, hold any of `required` (with the
        team area open) and not be outranked by the member it acts on.
        actor=None means the call comes from a trusted system context.
        """
        if actor is None:
            return

        ensure_same_organizer(actor, organizer_id)
        if not any(is_authorized(actor, p) for p in required):
            require_access(actor, required[0])

        if target is not None and outranks(target.role, actor.role):
            raise PermissionDeniedError(
                "You cannot manage a member with a higher role.",
                details={"actor_role": actor.role.value, "target_role": target.role.value},
            )

    def _check_assignable_role(self, role: TeamRole, actor: Optional[TeamMember]) -> None:
        if role not in INVITABLE_ROLES:
            raise ValidationError(
                f"Role {role.value} cannot be assigned",
                details={"field": "role", "allowed": sorted(r.value for r in INVITABLE_ROLES)},
            )
        if actor is not None and outranks(role, actor.role):
            raise PermissionDeniedError(
                "You cannot grant a role higher than your own.",
                details={"actor_role": actor.role.value, "requested_role": role.value},
            )

    @staticmethod
    def _check_reactivation(member: TeamMember, organizer_id: str, user_id: str, email: str) -> None:
        """Only the invitee's own removed, non-owner membership may be reactivated."""
        ensure_same_organizer(member, organizer_id)
        if member.user_id != user_id and _normalize_email(member.email) != email:
            raise ValidationError(
                "Membership belongs to another user",
                details={"member_id": member.id, "user_id": user_id},
            )
        if member.role is TeamRole.OWNER:
            raise ValidationError("The organizer owner cannot be reactivated", details={"member_id": member.id})
        if member.is_active:
            raise ConflictError("User is already a member of this team", details={"member_id": member.id})

    @staticmethod
    def _touch(member: TeamMember, now: datetime) -> None:
        member.updated_at = now
        member.version = member.version + 1

    # ---------------------------------------------------------
    # Owner bootstrap
    # ---------------------------------------------------------
    def bootstrap_owner(
        self,
        organizer_id: str,
        *,
        user_id: str,
        email: str,
        first_name: str = "",
        last_name: str = "",
        members: Iterable[TeamMember] = (),
        now: Optional[datetime] = None,
    ) -> TeamMember:
        """
        Create the organizer's OWNER membership at sign-up.
        Not subject to the collaboration flag or seat limit; refuses if an
        active owner already exists.
        """
        now = now or _utcnow()
        organizer = self._get_organizer(organizer_id)

        if any(m.organizer_id == organizer_id and m.is_active and m.role is TeamRole.OWNER for m in members):
            raise ConflictError("Organizer already has an owner", details={"organizer_id": organizer_id})

        owner = TeamMember(
            id=_generate_id("tm"),
            organizer_id=organizer_id,
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            email=_validated_email(email),
            country=organizer.country,
            region=organizer.region,
            timezone=organizer.timezone,
            locale=organizer.locale,
            role=TeamRole.OWNER,
            permissions=set(default_permissions_for(TeamRole.OWNER)),
            regional_access=default_regional_access_for(TeamRole.OWNER),
            access_level=access_level_for(TeamRole.OWNER),
            language_preferences=[settings.DEFAULT_LANGUAGE],
            currency_preferences=[settings.DEFAULT_CURRENCY],
            is_verified=True,
            joined_at=now,
            last_active=now,
            created_at=now,
            updated_at=now,
        )
        logger.info(f"Owner membership {owner.id} created for organizer {organizer_id}")
        return owner

    # =========================================================
    # INVITATIONS
    # =========================================================
    def create_invitation(
        self,
        organizer_id: str,
        payload: TeamInviteCreate,
        inviter: TeamMember,
        *,
        members: Iterable[TeamMember] = (),
        pending_invitations: Iterable[TeamMemberInvitation] = (),
        now: Optional[datetime] = None,
    ) -> TeamMemberInvitation:
        """
        Create a pending invitation (7-day window).

        `members` are the organizer's current memberships (any state; only
        active ones count). Seat usage is checked here and again at accept.
        """
        now = now or _utcnow()
        try:
            organizer = self._get_organizer(organizer_id)

            ensure_same_organizer(inviter, organizer_id)
            require_access(inviter, TeamPermission.INVITE_TEAM_MEMBERS)

            policy = organizer.team_policy
            email = _validated_email(payload.email)
            role = parse_role(payload.role)
            self._check_assignable_role(role, inviter)

            if payload.permissions is not None:
                permissions = parse_permissions(payload.permissions)
            else:
                permissions = default_permissions_for(role)

            if payload.regional_access is not None:
                grid = normalize_grid(payload.regional_access)
            else:
                grid = default_regional_access_for(role)

            members = list(members)
            if find_active_member(members, organizer_id, email=email) is not None:
                raise ConflictError("User is already a member of this team", details={"email": email})

            for inv in pending_invitations:
                if inv.organizer_id != organizer_id or _normalize_email(inv.email) != email:
                    continue
                if refresh_invitation_status(inv, now) is InvitationStatus.PENDING:
                    raise ConflictError(
                        "A pending invitation already exists for this email",
                        details={"email": email, "invitation_id": inv.id},
                    )

            admission_precondition(organizer_id, policy, count_active_members(members, organizer_id))

            invitation = TeamMemberInvitation(
                id=_generate_id("inv"),
                organizer_id=organizer_id,
                email=email,
                first_name=payload.first_name,
                last_name=payload.last_name,
                role=role,
                permissions=set(permissions),
                regional_access=grid,
                invited_by=inviter.user_id or inviter.id,
                token=_generate_token(),
                invited_at=now,
                expires_at=now + timedelta(days=INVITE_EXPIRY_DAYS),
                status=InvitationStatus.PENDING,
                default_country=organizer.country,
                default_region=organizer.region,
                default_timezone=organizer.timezone,
                default_locale=organizer.locale,
                custom_message=payload.custom_message,
            )
        except DomainError as exc:
            logger.warning(f"Invitation for organizer {organizer_id} rejected: {exc.code} {exc.message}")
            raise

        logger.info(f"Team invitation {invitation.id} created for organizer {organizer_id} (role={role.value})")
        return invitation

    def accept_invitation(
        self,
        invitation: TeamMemberInvitation,
        user_id: str,
        *,
        members: Iterable[TeamMember] = (),
        existing_member: Optional[TeamMember] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Admission:
        """
        Accept a pending invitation for `user_id`.

        Collaboration flag and seat limit are re-validated here: the team
        may have changed since the invitation was issued. `existing_member`
        is the user's previous, removed membership, reactivated instead of
        duplicated. A user or email already active in the team is a conflict.
        """
        now = now or _utcnow()
        try:
            status = refresh_invitation_status(invitation, now)
            if status is InvitationStatus.EXPIRED:
                raise InvitationExpiredError(invitation.id, invitation.expires_at)
            if status is not InvitationStatus.PENDING:
                raise InvitationStateError(invitation.id, status.value)

            user_id = (user_id or "").strip()
            if not user_id:
                raise ValidationError("user_id is required", details={"field": "user_id"})

            organizer_id = invitation.organizer_id
            organizer = self._get_organizer(organizer_id)
            members = list(members)
            email = _normalize_email(invitation.email)

            if existing_member is not None:
                self._check_reactivation(existing_member, organizer_id, user_id, email)
            current = find_active_member(members, organizer_id, user_id=user_id, email=email)
            if current is not None:
                raise ConflictError(
                    "User is already a member of this team",
                    details={"member_id": current.id, "user_id": user_id},
                )
            member_id = existing_member.id if existing_member is not None else _generate_id("tm")

            observed = count_active_members_excluding(members, organizer_id, exclude_member_id=member_id)
            precondition = admission_precondition(
                organizer_id, organizer.team_policy, observed, member_id=member_id
            )
        except DomainError as exc:
            logger.warning(f"Acceptance of invitation {invitation.id} rejected: {exc.code} {exc.message}")
            raise

        role = invitation.role
        if existing_member is not None:
            member = existing_member
            member.user_id = user_id
            member.role = role
            member.permissions = set(invitation.permissions)
            member.regional_access = dict(invitation.regional_access)
            member.access_level = access_level_for(role)
            member.is_active = True
            member.removed_at = None
            member.last_active = now
            self._touch(member, now)
            reactivated = True
        else:
            member = TeamMember(
                id=member_id,
                organizer_id=organizer_id,
                user_id=user_id,
                first_name=first_name if first_name is not None else invitation.first_name,
                last_name=last_name if last_name is not None else invitation.last_name,
                email=invitation.email,
                phone=phone,
                country=invitation.default_country,
                region=invitation.default_region,
                timezone=invitation.default_timezone,
                locale=invitation.default_locale,
                role=role,
                permissions=set(invitation.permissions),
                regional_access=dict(invitation.regional_access),
                access_level=access_level_for(role),
                language_preferences=[settings.DEFAULT_LANGUAGE],
                currency_preferences=[settings.DEFAULT_CURRENCY],
                joined_at=now,
                last_active=now,
                created_at=now,
                updated_at=now,
            )
            reactivated = False

        invitation.status = InvitationStatus.ACCEPTED
        invitation.accepted_at = now
        invitation.accepted_by_user_id = user_id

        logger.info(
            f"Invitation {invitation.id} accepted by user {user_id}; member {member.id} "
            f"{'reactivated' if reactivated else 'created'} (role={role.value})"
        )
        return Admission(member=member, precondition=precondition, reactivated=reactivated)

    def revoke_invitation(
        self,
        invitation: TeamMemberInvitation,
        organizer_id: str,
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMemberInvitation:
        now = now or _utcnow()
        if invitation.organizer_id != organizer_id:
            raise UnauthorizedError(
                "Access denied",
                details={"invitation_id": invitation.id, "organizer_id": organizer_id},
            )
        self._authorize_actor(actor, organizer_id, (TeamPermission.INVITE_TEAM_MEMBERS,))

        status = refresh_invitation_status(invitation, now)
        if status is not InvitationStatus.PENDING:
            raise InvitationStateError(invitation.id, status.value)

        invitation.status = InvitationStatus.REVOKED
        invitation.revoked_at = now
        logger.info(f"Invitation {invitation.id} revoked for organizer {organizer_id}")
        return invitation

    # =========================================================
    # MEMBERS
    # =========================================================
    def create_team_member(
        self,
        payload: TeamMemberCreate,
        *,
        actor: Optional[TeamMember] = None,
        members: Iterable[TeamMember] = (),
        now: Optional[datetime] = None,
    ) -> Admission:
        """Direct admission, same policy as invitations."""
        now = now or _utcnow()
        organizer_id = payload.organizer_id
        try:
            organizer = self._get_organizer(organizer_id)
            self._authorize_actor(actor, organizer_id, (TeamPermission.INVITE_TEAM_MEMBERS,))

            email = _validated_email(payload.email)
            role = parse_role(payload.role)
            self._check_assignable_role(role, actor)

            members = list(members)
            if find_active_member(members, organizer_id, user_id=payload.user_id, email=email) is not None:
                raise ConflictError("User is already a member of this team", details={"email": email})

            member_id = _generate_id("tm")
            precondition = admission_precondition(
                organizer_id, organizer.team_policy, count_active_members(members, organizer_id), member_id=member_id
            )

            if payload.permissions is not None:
                permissions = parse_permissions(payload.permissions)
            else:
                permissions = default_permissions_for(role)
        except DomainError as exc:
            logger.warning(f"Team member creation for organizer {organizer_id} rejected: {exc.code} {exc.message}")
            raise

        member = TeamMember(
            id=member_id,
            organizer_id=organizer_id,
            user_id=payload.user_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=email,
            phone=payload.phone,
            country=payload.country or organizer.country,
            region=payload.region or organizer.region,
            timezone=payload.timezone,
            locale=payload.locale,
            role=role,
            permissions=set(permissions),
            regional_access=(
                payload.regional_access if payload.regional_access is not None else default_regional_access_for(role)
            ),
            access_level=access_level_for(role),
            language_preferences=payload.language_preferences or [settings.DEFAULT_LANGUAGE],
            currency_preferences=payload.currency_preferences or [settings.DEFAULT_CURRENCY],
            notes=payload.notes,
            joined_at=now,
            last_active=now,
            created_at=now,
            updated_at=now,
        )

        logger.info(f"Team member {member.id} created for organizer {organizer_id} (role={role.value})")
        return Admission(member=member, precondition=precondition)

    def update_team_member(
        self,
        member: TeamMember,
        organizer_id: str,
        request: TeamMemberUpdate,
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMember:
        """
        Apply the fields set on `request`.

        A role change re-resolves permissions and the regional grid to the
        new role's defaults unless the same request carries them. Without a
        role change, customised permissions and grids are left untouched.
        """
        now = now or _utcnow()
        ensure_same_organizer(member, organizer_id)

        data = request.model_dump(exclude_unset=True)
        touches_access = any(data.get(k) is not None for k in ("role", "permissions", "regional_access"))
        if touches_access:
            self._authorize_actor(actor, organizer_id, MANAGE_MEMBER_PERMISSIONS, target=member)
        elif actor is not None and actor.id != member.id:
            # profile edits: self, or anyone who may manage the team
            self._authorize_actor(
                actor,
                organizer_id,
                MANAGE_MEMBER_PERMISSIONS + (TeamPermission.INVITE_TEAM_MEMBERS,),
                target=member,
            )

        if data.get("is_active") is True and not member.is_active:
            raise ValidationError(
                "Inactive members are readmitted through an invitation",
                details={"member_id": member.id},
            )

        deactivate = data.get("is_active") is False and member.is_active
        if deactivate and member.role is TeamRole.OWNER:
            raise ValidationError("The organizer owner cannot be deactivated", details={"member_id": member.id})

        new_role = request.role if data.get("role") is not None else None
        if new_role is member.role:
            new_role = None
        if new_role is not None:
            if member.role is TeamRole.OWNER:
                raise ValidationError("The owner's role cannot be changed", details={"member_id": member.id})
            self._check_assignable_role(new_role, actor)

        # checks done; apply
        if new_role is not None:
            member.role = new_role
            member.access_level = access_level_for(new_role)
            if request.permissions is None:
                member.permissions = set(default_permissions_for(new_role))
            if request.regional_access is None:
                member.regional_access = default_regional_access_for(new_role)

        if request.permissions is not None:
            member.permissions = set(request.permissions)
        if request.regional_access is not None:
            member.regional_access = dict(request.regional_access)

        for field in (
            "first_name",
            "last_name",
            "country",
            "region",
            "timezone",
            "locale",
            "language_preferences",
            "currency_preferences",
        ):
            if data.get(field) is not None:
                setattr(member, field, data[field])

        # phone / notes may be cleared explicitly
        if "phone" in data:
            member.phone = data["phone"]
        if "notes" in data:
            member.notes = data["notes"]

        if deactivate:
            member.is_active = False
            member.removed_at = now

        self._touch(member, now)
        logger.info(f"Team member {member.id} updated: {sorted(data)}")
        return member

    def change_role(
        self,
        member: TeamMember,
        organizer_id: str,
        role: TeamRole,
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMember:
        return self.update_team_member(member, organizer_id, TeamMemberUpdate(role=role), actor=actor, now=now)

    def grant_permissions(
        self,
        member: TeamMember,
        organizer_id: str,
        permissions: Iterable[TeamPermission | str],
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMember:
        now = now or _utcnow()
        ensure_same_organizer(member, organizer_id)
        self._authorize_actor(actor, organizer_id, MANAGE_MEMBER_PERMISSIONS, target=member)

        granted = parse_permissions(permissions)
        member.permissions = set(member.permissions) | set(granted)
        self._touch(member, now)
        logger.info(f"Granted {sorted(p.value for p in granted)} to team member {member.id}")
        return member

    def revoke_permissions(
        self,
        member: TeamMember,
        organizer_id: str,
        permissions: Iterable[TeamPermission | str],
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMember:
        now = now or _utcnow()
        ensure_same_organizer(member, organizer_id)
        self._authorize_actor(actor, organizer_id, MANAGE_MEMBER_PERMISSIONS, target=member)

        revoked = parse_permissions(permissions)
        member.permissions = set(member.permissions) - set(revoked)
        self._touch(member, now)
        logger.info(f"Revoked {sorted(p.value for p in revoked)} from team member {member.id}")
        return member

    def set_regional_access(
        self,
        member: TeamMember,
        organizer_id: str,
        region: str,
        toggles: Optional[AccessToggleSet],
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMember:
        """
        Per-region override. `toggles=None` drops the region's entry so the
        wildcard applies again.
        """
        now = now or _utcnow()
        ensure_same_organizer(member, organizer_id)
        self._authorize_actor(actor, organizer_id, MANAGE_MEMBER_PERMISSIONS, target=member)

        key = normalize_region(region)
        grid = dict(member.regional_access)
        if toggles is None:
            grid.pop(key, None)
        else:
            grid[key] = toggles
        member.regional_access = grid

        self._touch(member, now)
        logger.info(f"Regional access for team member {member.id} set for region {key}")
        return member

    def remove_team_member(
        self,
        member: TeamMember,
        organizer_id: str,
        *,
        actor: Optional[TeamMember] = None,
        now: Optional[datetime] = None,
    ) -> TeamMember:
        """Logical delete: the record stays, is_active goes False."""
        now = now or _utcnow()
        ensure_same_organizer(member, organizer_id)
        self._authorize_actor(actor, organizer_id, REMOVE_MEMBER_PERMISSIONS, target=member)

        if member.role is TeamRole.OWNER:
            raise ValidationError("The organizer owner cannot be removed", details={"member_id": member.id})

        if member.is_active or member.removed_at is None:
            member.is_active = False
            member.removed_at = now
            self._touch(member, now)

        logger.info(f"Team member {member.id} removed from organizer {organizer_id}")
        return member

    def record_activity(
        self,
        member: TeamMember,
        action: str,
        *,
        resource: str = "",
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        location: Optional[Dict[str, str]] = None,
        events_managed: int = 0,
        now: Optional[datetime] = None,
    ) -> TeamActivityLog:
        """
        Bump the member's activity counters and return the activity entry
        for the caller to store. Does not bump `version`.
        """
        now = now or _utcnow()
        member.actions_performed = member.actions_performed + 1
        member.events_managed = member.events_managed + max(events_managed, 0)
        member.last_action_at = now
        member.last_active = now

        entry = TeamActivityLog(
            id=_generate_id("act"),
            organizer_id=member.organizer_id,
            member_id=member.id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=details or {},
            timestamp=now,
            ip_address=ip_address,
            user_agent=user_agent,
            location=location,
        )
        logger.info(f"Team member {member.id} activity: {action} {resource} {resource_id or ''}".rstrip())
        return entry

    def search_team_members(self, members: Iterable[TeamMember], filters: TeamMemberSearchFilters) -> TeamMemberListResponse:
        return search_team_members(members, filters)
