"""
Verification Workflow

Orchestrates the tester / tech lead verification loop over the record store:
listing under the visibility rules, tester SAVE batches, tech lead
CONFIRM/RETURN batches, completed list, attachments and history.

Every batch is one unit of work. A tech lead decision moves the
verification status and the downstream release status together; if any
record in the batch fails, nothing in the batch is written.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Sequence

from ...errors import NotFound, NotTechLead, ValidationError
from ...models.db_models import VerifyStatus
from ...models.domain import (
    Attachment, HistoryEntry, Identity, TesterSubmission, TLDecision, VerificationRecord,
)
from ..store import RecordStore
from .state_machine import VerificationStateMachine, TL_PENDING_STATUSES
from .team_resolver import TeamResolver
from . import visibility

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _check_range(from_date: Optional[date], to_date: Optional[date]) -> None:
    if from_date and to_date and from_date > to_date:
        raise ValidationError("fromDate must not be after toDate")


class VerificationWorkflow:
    """Workflow engine for CRF release verification."""

    def __init__(
        self,
        store: RecordStore,
        resolver: TeamResolver,
        strict_team_filter: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.resolver = resolver
        self.strict_team_filter = strict_team_filter
        self.machine = VerificationStateMachine()
        self._clock = clock

    # =========================================================================
    # TESTER
    # =========================================================================

    def tester_records(
        self,
        caller: Identity,
        from_date: Optional[date],
        to_date: Optional[date],
        release_type: Optional[str] = None,
    ) -> List[VerificationRecord]:
        """Records in range assigned to the caller, plus unassigned ones."""
        _check_range(from_date, to_date)
        records = self.store.list_records(from_date, to_date, release_type)
        return visibility.visible_to_tester(records, caller.name)

    def save_tester_batch(self, caller: Identity, submissions: Sequence[TesterSubmission]) -> int:
        """
        Tester SAVE for one or more records.

        Re-saving the same (CRF, request) overwrites the earlier payload.
        Returns the number of records written.
        """
        if not submissions:
            raise ValidationError("No data to save")

        now = self._clock()
        logger.info("Tester save by %s: %d record(s)", caller.name, len(submissions))

        with self.store.unit_of_work("tester_save"):
            for submission in submissions:
                if not submission.crf_id or not submission.request_id:
                    raise ValidationError("crfId and requestId are required")
                record = self.store.find_release(
                    submission.crf_id, submission.request_id, submission.release_date
                )
                if record is None:
                    raise ValidationError(
                        f"No release found for CRF {submission.crf_id} / request {submission.request_id}"
                    )
                new_status = self.machine.tester_save_target(record.status)
                self.store.write_tester_payload(record, submission, new_status, caller.name, now)
        return len(submissions)

    # =========================================================================
    # TECH LEAD
    # =========================================================================

    def tl_records(
        self,
        caller: Identity,
        from_date: Optional[date],
        to_date: Optional[date],
        release_type: Optional[str] = None,
        tester_name: Optional[str] = None,
    ) -> List[VerificationRecord]:
        """Submissions awaiting the caller's review."""
        _check_range(from_date, to_date)
        records = self.store.list_records(from_date, to_date, release_type, statuses=TL_PENDING_STATUSES)
        return visibility.visible_to_tech_lead(records, caller.name, tester_name)

    def apply_tl_batch(self, caller: Identity, decisions: Sequence[TLDecision]) -> int:
        """
        CONFIRM / RETURN a batch of submissions.

        CONFIRM -> status 2, release status 16
        RETURN  -> status 3, release status 4

        Only the tech lead named on a record may decide it.
        """
        if not decisions:
            raise ValidationError("No data to save")

        now = self._clock()
        logger.info("TL action by %s: %d record(s)", caller.name, len(decisions))

        with self.store.unit_of_work("tl_save"):
            for decision in decisions:
                record = self.store.get_by_verify_id(decision.verify_id)
                if record is None:
                    raise ValidationError(f"Unknown verifyId {decision.verify_id}")
                if decision.crf_id and decision.crf_id.strip().upper() != record.crf_id.strip().upper():
                    raise ValidationError(
                        f"verifyId {decision.verify_id} does not belong to CRF {decision.crf_id}"
                    )
                if decision.release_date and decision.release_date != record.release_date:
                    raise ValidationError(
                        f"verifyId {decision.verify_id} does not belong to release date {decision.release_date}"
                    )
                if not visibility.tech_lead_can_see(record, caller.name):
                    logger.warning(
                        "TL action by %s refused: CRF %s belongs to %s", caller.name, record.crf_id, record.techlead_name
                    )
                    raise NotTechLead()
                outcome = self.machine.tl_outcome(record.status, decision.action)
                self.store.write_tl_decision(
                    verify_id=decision.verify_id,
                    action=decision.action.strip().upper(),
                    new_status=outcome.status,
                    release_status=outcome.release_status,
                    tl_remarks=decision.tl_remarks,
                    actor=caller.name,
                    at=now,
                )
        return len(decisions)

    # =========================================================================
    # TEAM-SCOPED RELEASE LISTING
    # =========================================================================

    def team_release_records(
        self,
        caller: Identity,
        from_date: Optional[date],
        to_date: Optional[date],
        release_type: Optional[str] = None,
    ) -> List[VerificationRecord]:
        """
        Release listing for QA team members.

        Non-members are refused (NotAMember). Members see records under the
        team rule; strict mode narrows it to their own sub-team's testers.
        """
        _check_range(from_date, to_date)
        sub_team = self.resolver.require_sub_team(caller.name)
        records = self.store.list_records(from_date, to_date, release_type)

        sub_team_testers: List[str] = []
        if self.strict_team_filter:
            sub_team_testers = [m.name for m in self.store.team_members(self.resolver.team_id, sub_team)]

        visible = visibility.visible_to_team_member(
            records, caller.name, sub_team_testers, strict=self.strict_team_filter
        )
        logger.debug("Release listing for %s (sub-team %s): %d of %d", caller.name, sub_team, len(visible), len(records))
        return visible

    # =========================================================================
    # COMPLETED, ATTACHMENTS, HISTORY
    # =========================================================================

    def completed_records(
        self,
        from_date: Optional[date],
        to_date: Optional[date],
        release_type: Optional[str] = None,
    ) -> List[VerificationRecord]:
        _check_range(from_date, to_date)
        return self.store.list_records(from_date, to_date, release_type, statuses={VerifyStatus.APPROVED})

    def attachment(self, crf_id: str, release_date: date) -> Attachment:
        """Stored attachment; may be empty. NotFound when no record exists."""
        if not crf_id or not crf_id.strip() or release_date is None:
            raise ValidationError("Invalid parameters")
        found = self.store.get_attachment(crf_id, release_date)
        if found is None:
            raise NotFound("Attachment not found")
        return found

    def history(self, crf_id: str, request_id: str) -> List[HistoryEntry]:
        if not crf_id or not request_id:
            raise ValidationError("crfId and requestId are required")
        return self.store.history(crf_id, request_id)
