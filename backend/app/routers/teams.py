"""
QA Release Tracker - Teams API Router
Tech lead and tester dropdown data for the portal.
"""
from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_current_identity
from ..dependencies import get_team_resolver
from ..models.domain import Identity
from ..services.workflow import TeamResolver


router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("/leads", response_model=List[dict])
async def list_tech_leads(
    identity: Identity = Depends(get_current_identity),
    resolver: TeamResolver = Depends(get_team_resolver),
):
    """Tech leads with at least one active tester."""
    return [{"text": name, "value": name} for name in resolver.active_leads()]


@router.get("/{lead_name}/testers", response_model=List[dict])
async def list_testers_for_lead(
    lead_name: str,
    identity: Identity = Depends(get_current_identity),
    resolver: TeamResolver = Depends(get_team_resolver),
):
    """Testers reporting to a lead; the value is the employee code."""
    return [{"text": m.name, "value": m.emp_code} for m in resolver.testers_for_lead(lead_name)]
