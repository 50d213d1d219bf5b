"""
Team Resolver

Maps the QA testing team's sub-teams to their tech leads and resolves which
sub-team a tester belongs to.

The sub-team -> tech lead roster is configuration data loaded once at
startup. Lead names must match employee names (trimmed, case-insensitive).
"""
from typing import Dict, List, Optional

from ...errors import NotAMember
from ...models.domain import TeamMembership, same_name
from ..store import RecordStore


class TeamResolver:
    """Roster lookups, cross-checked against live team membership."""

    def __init__(self, store: RecordStore, roster: Dict[int, str], team_id: int = 6):
        self.store = store
        self.roster = dict(roster)
        self.team_id = team_id

    def lead_for(self, sub_team: int) -> Optional[str]:
        """Tech lead name owning a sub-team, or None."""
        return self.roster.get(sub_team)

    def sub_team_led_by(self, lead_name: str) -> Optional[int]:
        """Sub-team owned by a tech lead, or None when the name is not a lead."""
        for sub_team, name in self.roster.items():
            if same_name(name, lead_name):
                return sub_team
        return None

    def is_tech_lead(self, name: str) -> bool:
        return self.sub_team_led_by(name) is not None

    def sub_team_of(self, tester_name: str) -> Optional[int]:
        """
        Sub-team of an active QA team member.

        Returns None when the employee has no active membership in the QA
        team or their sub-team is not one of the rostered sub-teams.
        """
        if not tester_name or not tester_name.strip():
            return None
        membership = self.store.find_team_membership(self.team_id, tester_name)
        if membership is None or membership.sub_team not in self.roster:
            return None
        return membership.sub_team

    def require_sub_team(self, tester_name: str) -> int:
        """Like sub_team_of(), but a non-member is denied."""
        sub_team = self.sub_team_of(tester_name)
        if sub_team is None:
            raise NotAMember()
        return sub_team

    def testers_for_lead(self, lead_name: str) -> List[TeamMembership]:
        """Active testers in the sub-team a tech lead owns; empty for non-leads."""
        sub_team = self.sub_team_led_by(lead_name)
        if sub_team is None:
            return []
        return self.store.team_members(self.team_id, sub_team)

    def active_leads(self) -> List[str]:
        """Leads whose sub-team currently has at least one active member, sorted."""
        sub_teams = {m.sub_team for m in self.store.team_members(self.team_id)}
        return sorted(self.roster[s] for s in sub_teams if s in self.roster)
