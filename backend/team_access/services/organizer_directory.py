from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol

from team_access.core.tier_limits import policy_for_plan
from team_access.schemas.organizer import Organizer


class OrganizerDirectory(Protocol):
    """Read-only view of organizers, supplied by the host system."""

    def get_organizer(self, organizer_id: str) -> Optional[Organizer]:
        ...


def with_plan_policy(organizer: Organizer) -> Organizer:
    """
    Fill in the team policy from the subscription plan.
    An explicitly set team_policy (e.g. a negotiated seat count) is kept.
    """
    if "team_policy" in organizer.model_fields_set:
        return organizer
    return organizer.model_copy(update={"team_policy": policy_for_plan(organizer.subscription)})


class InMemoryOrganizerDirectory:
    """Dict-backed directory for scripts, local runs and tests."""

    def __init__(self, organizers: Iterable[Organizer] = ()):
        self._organizers: Dict[str, Organizer] = {}
        for organizer in organizers:
            self.add(organizer)

    def add(self, organizer: Organizer) -> Organizer:
        organizer = with_plan_policy(organizer)
        self._organizers[organizer.id] = organizer
        return organizer

    def get_organizer(self, organizer_id: str) -> Optional[Organizer]:
        return self._organizers.get(organizer_id)
