"""
QA Release Tracker - Service Dependencies
Per-request service wiring for FastAPI routes
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .services.access import AccessGate, get_credential_verifier
from .services.store import RecordStore
from .services.workflow import DashboardAggregator, TeamResolver, VerificationWorkflow


def get_record_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_team_resolver(
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> TeamResolver:
    return TeamResolver(store, settings.team_roster, team_id=settings.qa_team_id)


def get_access_gate(
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> AccessGate:
    return AccessGate(
        store,
        module_code=settings.qa_module_code,
        verifier=get_credential_verifier(settings.credential_strategy),
    )


def get_workflow(
    store: RecordStore = Depends(get_record_store),
    resolver: TeamResolver = Depends(get_team_resolver),
    settings: Settings = Depends(get_settings),
) -> VerificationWorkflow:
    return VerificationWorkflow(store, resolver, strict_team_filter=settings.strict_team_filter)


def get_dashboard(
    store: RecordStore = Depends(get_record_store),
    resolver: TeamResolver = Depends(get_team_resolver),
) -> DashboardAggregator:
    return DashboardAggregator(store, resolver)
