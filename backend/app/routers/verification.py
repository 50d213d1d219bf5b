"""
QA Release Tracker - Verification API Router

Tester submissions, tech lead review, completed list, attachments,
dashboard counters and per-record history.
"""
import base64
import binascii
import html
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from ..auth import get_current_identity
from ..dependencies import get_dashboard, get_workflow
from ..errors import ValidationError
from ..models.domain import (
    HistoryEntry, Identity, TesterSubmission, TLDecision, VerificationRecord,
    format_release_date, parse_release_date,
)
from ..services.workflow import DashboardAggregator, VerificationWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verification", tags=["verification"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TesterSaveItem(_CamelModel):
    """One record in a tester SAVE batch."""
    crf_id: str = Field(..., alias="crfId")
    request_id: str = Field(..., alias="requestId")
    working_status: int = Field(..., alias="workingStatus")
    remarks: Optional[str] = ""
    release_date: Optional[str] = Field(None, alias="releaseDate")
    attachment_name: Optional[str] = Field(None, alias="attachmentName")
    attachment_base64: Optional[str] = Field(None, alias="attachmentBase64")
    attachment_mime: Optional[str] = Field(None, alias="attachmentMime")


class TLViewRequest(_CamelModel):
    from_date: Optional[str] = Field(None, alias="fromDate")
    to_date: Optional[str] = Field(None, alias="toDate")
    release_type: Optional[str] = Field(None, alias="releaseType")
    tester_name: Optional[str] = Field(None, alias="testerName")


class CompletedRequest(_CamelModel):
    from_date: Optional[str] = Field(None, alias="fromDate")
    to_date: Optional[str] = Field(None, alias="toDate")
    release_type: Optional[str] = Field(None, alias="releaseType")


class TLSaveItem(_CamelModel):
    """One tech lead decision (CONFIRM / RETURN)."""
    verify_id: int = Field(..., alias="verifyId")
    crf_id: Optional[str] = Field("", alias="crfId")
    release_date: Optional[str] = Field(None, alias="releaseDate")
    action: str
    tl_remarks: Optional[str] = Field("", alias="tlRemarks")


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# HELPERS
# =============================================================================

def parse_date_param(value: Optional[str], name: str, required: bool = False) -> Optional[date]:
    """Parse a request date, mapping bad input to a 400."""
    try:
        parsed = parse_release_date(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value}")
    if parsed is None and required:
        raise ValidationError(f"{name} is required")
    return parsed


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def record_to_dict(record: VerificationRecord) -> Dict[str, Any]:
    """Serialize a verification record for the portal grid."""
    return {
        "verifyId": record.verify_id,
        "crfId": record.crf_id,
        "requestId": record.request_id,
        "crfName": record.crf_name,
        "releaseDate": format_release_date(record.release_date),
        "releaseType": record.release_type,
        "techleadName": record.techlead_name,
        "developerName": record.developer_name,
        "testerTLName": record.tester_tl_name,
        "testerName": record.tester_name,
        "workingStatus": record.working_status,
        "remarks": record.remarks,
        "tlRemarks": record.tl_remarks,
        "attachmentName": record.attachment_name,
        "hasAttachment": bool(record.attachment_name),
        "status": record.status,
        "verifiedBy": record.verified_by,
        "verifiedOn": _iso(record.verified_on),
        "approvedBy": record.approved_by,
        "approvedOn": _iso(record.approved_on),
        "releaseStatus": record.release_status,
    }


def history_to_dict(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "verifyId": entry.verify_id,
        "crfId": entry.crf_id,
        "requestId": entry.request_id,
        "action": entry.action,
        "fromStatus": entry.from_status,
        "toStatus": entry.to_status,
        "workingStatus": entry.working_status,
        "remarks": entry.remarks,
        "actor": entry.actor,
        "createdAt": _iso(entry.created_at),
    }


def decode_attachment(item: TesterSaveItem) -> Optional[bytes]:
    if not item.attachment_base64:
        return None
    payload = item.attachment_base64
    # Data URLs from the browser file reader carry a prefix
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"Invalid attachment encoding for CRF {item.crf_id}")


def to_submission(item: TesterSaveItem, release_date: Optional[date] = None) -> TesterSubmission:
    content = decode_attachment(item)
    if release_date is None:
        release_date = parse_date_param(item.release_date, "releaseDate")
    return TesterSubmission(
        crf_id=item.crf_id.strip(),
        request_id=item.request_id.strip(),
        working_status=item.working_status,
        remarks=item.remarks or "",
        release_date=release_date,
        attachment_name=(item.attachment_name or "attachment") if content else None,
        attachment_mime=(item.attachment_mime or "application/octet-stream") if content else None,
        attachment_content=content,
    )


# =============================================================================
# TESTER
# =============================================================================

@router.get("/tester", response_model=List[dict])
async def get_tester_records(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    release_type: Optional[str] = Query(None, alias="releaseType"),
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """
    Releases in range assigned to the caller.

    Records without any tester assigned are listed for every tester.
    """
    records = workflow.tester_records(
        identity,
        parse_date_param(from_date, "fromDate", required=True),
        parse_date_param(to_date, "toDate", required=True),
        release_type or None,
    )
    return [record_to_dict(r) for r in records]


@router.post("/testersave", response_model=MessageResponse)
async def save_tester_records(
    items: List[TesterSaveItem],
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """Tester SAVE for a batch of records."""
    submissions = [to_submission(item) for item in items]
    saved = workflow.save_tester_batch(identity, submissions)
    return MessageResponse(message=f"{saved} record(s) saved successfully")


# =============================================================================
# TECH LEAD
# =============================================================================

@router.post("/tlview", response_model=List[dict])
async def get_tl_records(
    request: TLViewRequest,
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """Submissions awaiting the caller's review, optionally narrowed to one tester."""
    records = workflow.tl_records(
        identity,
        parse_date_param(request.from_date, "fromDate", required=True),
        parse_date_param(request.to_date, "toDate", required=True),
        request.release_type or None,
        tester_name=request.tester_name or None,
    )
    return [record_to_dict(r) for r in records]


@router.post("/tlsave", response_model=MessageResponse)
async def save_tl_decisions(
    items: List[TLSaveItem],
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """
    CONFIRM or RETURN a batch of submissions.

    The whole batch is applied or none of it is.
    """
    decisions = [
        TLDecision(
            verify_id=item.verify_id,
            action=item.action,
            tl_remarks=item.tl_remarks or "",
            crf_id=(item.crf_id or "").strip(),
            release_date=parse_date_param(item.release_date, "releaseDate"),
        )
        for item in items
    ]
    applied = workflow.apply_tl_batch(identity, decisions)
    return MessageResponse(message=f"{applied} record(s) updated successfully")


@router.post("/completed", response_model=List[dict])
async def get_completed_records(
    request: CompletedRequest,
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """Approved verifications in range."""
    records = workflow.completed_records(
        parse_date_param(request.from_date, "fromDate", required=True),
        parse_date_param(request.to_date, "toDate", required=True),
        request.release_type or None,
    )
    return [record_to_dict(r) for r in records]


# =============================================================================
# ATTACHMENTS, DASHBOARD, HISTORY
# =============================================================================

@router.get("/Attachment/{crf_id}/{release_date}")
async def get_attachment(
    crf_id: str,
    release_date: str,
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """
    Stream the stored attachment.

    An existing record with no file gets an HTML placeholder instead of a 404.
    """
    found = workflow.attachment(crf_id, parse_date_param(release_date, "releaseDate", required=True))
    if found.is_empty:
        placeholder = (
            "<div style='padding:40px;text-align:center;'>"
            "<h3>No Attachment Found</h3>"
            f"<p>CRF ID: {html.escape(crf_id)}, Release Date: {html.escape(release_date)}</p></div>"
        )
        return Response(content=placeholder, media_type="text/html")

    filename = (found.filename or "attachment").replace('"', "")
    return Response(
        content=found.content,
        media_type=found.mimetype or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/dashboardcounts", response_model=dict)
async def get_dashboard_counts(
    identity: Identity = Depends(get_current_identity),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    counts = dashboard.counts_for(identity)
    return {
        "isTechLead": counts.is_tech_lead,
        "testerPendingCount": counts.tester_pending_count,
        "tlPendingCount": counts.tl_pending_count,
        "tlVerifiedCount": counts.tl_verified_count,
        "teamPendingCount": counts.team_pending_count,
        "teamCompletedCount": counts.team_completed_count,
    }


@router.get("/history", response_model=List[dict])
async def get_history(
    crf_id: Optional[str] = Query(None, alias="crfId"),
    request_id: Optional[str] = Query(None, alias="requestId"),
    identity: Identity = Depends(get_current_identity),
    workflow: VerificationWorkflow = Depends(get_workflow),
):
    """Status transitions recorded for one (CRF, request), oldest first."""
    return [history_to_dict(e) for e in workflow.history(crf_id or "", request_id or "")]
