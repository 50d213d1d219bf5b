"""
Dashboard Aggregator

Per-user counters for the portal landing page. Every count is distinct on
(CRF id, release date) so several request/tester rows against one release
event are counted once. The counting itself runs as record store queries.
"""
from dataclasses import dataclass, asdict
from typing import Dict

from ...models.db_models import VerifyStatus
from ...models.domain import Identity
from ..store import RecordStore
from .state_machine import TL_PENDING_STATUSES
from .team_resolver import TeamResolver


@dataclass(frozen=True)
class DashboardCounts:
    is_tech_lead: bool = False
    tester_pending_count: int = 0
    tl_pending_count: int = 0
    tl_verified_count: int = 0
    team_pending_count: int = 0
    team_completed_count: int = 0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class DashboardAggregator:
    """Composes record store counts into the five dashboard counters."""

    def __init__(self, store: RecordStore, resolver: TeamResolver):
        self.store = store
        self.resolver = resolver

    def counts_for(self, caller: Identity) -> DashboardCounts:
        tester_pending = self.store.count_tester_pending(caller.name)

        if not self.resolver.is_tech_lead(caller.name):
            return DashboardCounts(tester_pending_count=tester_pending)

        tl_pending = self.store.count_releases(TL_PENDING_STATUSES, techlead_name=caller.name)
        tl_verified = self.store.count_releases({VerifyStatus.APPROVED}, techlead_name=caller.name)

        return DashboardCounts(
            is_tech_lead=True,
            tester_pending_count=tester_pending,
            tl_pending_count=tl_pending,
            tl_verified_count=tl_verified,
            team_pending_count=tl_pending,
            team_completed_count=tl_verified,
        )
