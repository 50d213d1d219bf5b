"""
QA Release Tracker - Release Verification API Router

Team-scoped release listing for QA team members, and SAVE against an
explicit release date.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from ..auth import get_current_identity
from ..dependencies import get_workflow
from ..models.domain import Identity
from ..services.workflow import VerificationWorkflow
from .verification import (
    MessageResponse, TesterSaveItem, parse_date_param, record_to_dict, to_submission,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/release-verification", tags=["release-verification"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class ReleaseSaveItem(TesterSaveItem):
    """Tester payload pinned to one release event."""
    release_date: str = Field(..., alias="releaseDate")


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("", response_model=List[dict])
async def get_team_releases(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    release_type: Optional[str] = Query(None, alias="releaseType"),
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """
    Releases visible to a QA team member.

    Callers outside the QA team get 403. Dates are optional here; an
    open range lists every release.
    """
    records = workflow.team_release_records(
        identity,
        parse_date_param(from_date, "fromDate"),
        parse_date_param(to_date, "toDate"),
        release_type or None,
    )
    return [record_to_dict(r) for r in records]


@router.post("/save", response_model=MessageResponse)
async def save_release_verification(
    items: List[ReleaseSaveItem],
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    submissions = [
        to_submission(item, parse_date_param(item.release_date, "releaseDate", required=True))
        for item in items
    ]
    saved = workflow.save_tester_batch(identity, submissions)
    logger.info("Release verification saved by %s: %d record(s)", identity.name, saved)
    return MessageResponse(message=f"{saved} record(s) saved successfully")
