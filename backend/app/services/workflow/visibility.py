"""
Visibility Rules

Which verification records a caller may see.

Tester rule:    caller appears in the record's tester list, or the list is
                empty (unassigned records are visible to every tester).
Tech lead rule: caller matches the record's stored tech lead name.
Team rule:      used by the team-scoped release listing. In the default
                (loose) mode every record is visible once the caller is a
                QA team member; strict mode keeps only records whose testers
                include the caller or someone from the caller's sub-team.

Name matching is always trimmed and case-insensitive.
"""
from typing import Iterable, List, Optional

from ...models.domain import VerificationRecord, same_name


def _normalized(names: Iterable[str]) -> set:
    return {n.strip().upper() for n in names if n and n.strip()}


def is_listed_tester(record: VerificationRecord, caller_name: str) -> bool:
    return any(same_name(t, caller_name) for t in record.testers)


def tester_can_see(record: VerificationRecord, caller_name: str) -> bool:
    if not record.testers:
        return True
    return is_listed_tester(record, caller_name)


def tech_lead_can_see(record: VerificationRecord, caller_name: str) -> bool:
    return same_name(record.techlead_name, caller_name)


def team_scope_can_see(
    record: VerificationRecord,
    caller_name: str,
    sub_team_testers: Optional[Iterable[str]] = None,
    strict: bool = False,
) -> bool:
    if not record.testers or is_listed_tester(record, caller_name):
        return True
    if not strict:
        return True
    team = _normalized(sub_team_testers or [])
    return any(t.strip().upper() in team for t in record.testers)


def visible_to_tester(records: Iterable[VerificationRecord], caller_name: str) -> List[VerificationRecord]:
    return [r for r in records if tester_can_see(r, caller_name)]


def visible_to_tech_lead(
    records: Iterable[VerificationRecord],
    caller_name: str,
    tester_name: Optional[str] = None,
) -> List[VerificationRecord]:
    """Tech lead's records, optionally narrowed to one listed tester."""
    visible = [r for r in records if tech_lead_can_see(r, caller_name)]
    if tester_name and tester_name.strip():
        visible = [r for r in visible if is_listed_tester(r, tester_name)]
    return visible


def visible_to_team_member(
    records: Iterable[VerificationRecord],
    caller_name: str,
    sub_team_testers: Optional[Iterable[str]] = None,
    strict: bool = False,
) -> List[VerificationRecord]:
    testers = list(sub_team_testers or [])
    return [r for r in records if team_scope_can_see(r, caller_name, testers, strict)]
