"""
Tests for VerificationWorkflow over a real (in-memory SQLite) record store.

Key tests:
1. Tester listing honours the tester rule and date range
2. SAVE creates status 1 and is idempotent by overwrite
3. CONFIRM -> 2 / release 16, RETURN -> 3 / release 4, re-SAVE -> 4
4. A failing item rolls back the whole batch (tester and TL)
5. SAVE against an approved record is refused
6. Team-scoped listing, completed list, attachments and history
7. TL decisions touch only their own release date and owning tech lead
"""
import pytest
from datetime import date, datetime

from app.errors import InvalidTransition, NotAMember, NotFound, NotTechLead, ValidationError
from app.models.db_models import DailyReleaseDB, VerificationDB
from app.models.domain import Identity, TesterSubmission, TLDecision
from app.services.store import RecordStore
from app.services.workflow import TeamResolver, VerificationWorkflow

RELEASE_DAY = date(2026, 1, 9)
NEXT_DAY = date(2026, 1, 10)
LATER_DAY = date(2026, 1, 12)

ROSTER = {1: "JIJIN E H", 2: "MURUGESAN P"}
NOW = datetime(2026, 1, 9, 14, 0, 0)

ALICE = Identity(emp_code="1001", name="ALICE")
CAROL = Identity(emp_code="1003", name="CAROL")
DAVE = Identity(emp_code="1004", name="DAVE")
LEAD = Identity(emp_code="1101", name="JIJIN E H")


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def store(db_session):
    return RecordStore(db_session)


@pytest.fixture
def workflow(store):
    resolver = TeamResolver(store, ROSTER, team_id=6)
    return VerificationWorkflow(store, resolver, clock=lambda: NOW)


def _submission(crf_id="CRF100", request_id="REQ1", working_status=1, remarks="ok", **kwargs):
    return TesterSubmission(
        crf_id=crf_id,
        request_id=request_id,
        working_status=working_status,
        remarks=remarks,
        **kwargs,
    )


def _verify_row(db_session, crf_id="CRF100"):
    db_session.expire_all()
    return db_session.query(VerificationDB).filter(VerificationDB.crf_id == crf_id).all()


def _release_status(db_session, crf_id="CRF100"):
    db_session.expire_all()
    return db_session.query(DailyReleaseDB).filter(DailyReleaseDB.crf_id == crf_id).one().status


def _release_status_by_date(db_session, crf_id="CRF100"):
    db_session.expire_all()
    rows = db_session.query(DailyReleaseDB).filter(DailyReleaseDB.crf_id == crf_id).all()
    return {r.release_date: r.status for r in rows}


def _saved_verify_id(workflow, db_session, crf_id="CRF100", request_id="REQ1"):
    workflow.save_tester_batch(ALICE, [_submission(crf_id, request_id)])
    return _verify_row(db_session, crf_id)[0].verify_id


# =============================================================================
# TESTER
# =============================================================================

class TestTesterListing:

    def test_listed_and_unassigned_records(self, workflow):
        records = workflow.tester_records(ALICE, RELEASE_DAY, NEXT_DAY)
        assert sorted(r.crf_id for r in records) == ["CRF100", "CRF300"]

    def test_date_range_and_release_type(self, workflow):
        assert [r.crf_id for r in workflow.tester_records(ALICE, NEXT_DAY, NEXT_DAY)] == ["CRF300"]
        assert [r.crf_id for r in workflow.tester_records(CAROL, RELEASE_DAY, NEXT_DAY, "hotfix")] == ["CRF200"]

    def test_inverted_range(self, workflow):
        with pytest.raises(ValidationError):
            workflow.tester_records(ALICE, NEXT_DAY, RELEASE_DAY)


class TestTesterSave:

    def test_first_save_submits(self, workflow, db_session):
        assert workflow.save_tester_batch(ALICE, [_submission()]) == 1

        rows = _verify_row(db_session)
        assert len(rows) == 1
        assert rows[0].status == 1
        assert rows[0].verified_by == "ALICE"
        assert rows[0].verified_on == NOW
        assert rows[0].release_dt == RELEASE_DAY

    def test_resave_overwrites(self, workflow, db_session):
        workflow.save_tester_batch(ALICE, [_submission(remarks="first")])
        workflow.save_tester_batch(ALICE, [_submission(working_status=2, remarks="second")])

        rows = _verify_row(db_session)
        assert len(rows) == 1
        assert rows[0].status == 1
        assert rows[0].remarks == "second"
        assert rows[0].working_status == 2

    def test_resave_keeps_attachment_when_none_supplied(self, workflow, db_session):
        workflow.save_tester_batch(ALICE, [_submission(
            attachment_name="log.txt", attachment_mime="text/plain", attachment_content=b"evidence",
        )])
        workflow.save_tester_batch(ALICE, [_submission(remarks="again")])

        assert _verify_row(db_session)[0].attachment == b"evidence"

    def test_empty_batch(self, workflow):
        with pytest.raises(ValidationError):
            workflow.save_tester_batch(ALICE, [])

    def test_failing_item_rolls_back_batch(self, workflow, db_session):
        with pytest.raises(ValidationError):
            workflow.save_tester_batch(ALICE, [_submission(), _submission("CRF999", "REQ9")])

        assert _verify_row(db_session) == []

    def test_save_on_approved_is_refused(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)
        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="CONFIRM")])

        with pytest.raises(InvalidTransition):
            workflow.save_tester_batch(ALICE, [_submission()])
        assert _verify_row(db_session)[0].status == 2


# =============================================================================
# TECH LEAD
# =============================================================================

class TestTechLead:

    def test_tl_listing_shows_pending_submissions_only(self, workflow, db_session):
        _saved_verify_id(workflow, db_session)

        records = workflow.tl_records(LEAD, RELEASE_DAY, NEXT_DAY)
        assert [r.crf_id for r in records] == ["CRF100"]
        assert workflow.tl_records(LEAD, RELEASE_DAY, NEXT_DAY, tester_name="CAROL") == []

    def test_confirm(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)

        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="CONFIRM", tl_remarks="fine", crf_id="crf100")])

        row = _verify_row(db_session)[0]
        assert row.status == 2
        assert row.approved_by == "JIJIN E H"
        assert row.tl_remarks == "fine"
        assert _release_status(db_session) == 16
        assert workflow.tl_records(LEAD, RELEASE_DAY, NEXT_DAY) == []

    def test_return_then_resubmit(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)

        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="RETURN", tl_remarks="redo")])
        assert _verify_row(db_session)[0].status == 3
        assert _release_status(db_session) == 4

        workflow.save_tester_batch(ALICE, [_submission(remarks="fixed")])
        assert _verify_row(db_session)[0].status == 4
        assert [r.status for r in workflow.tl_records(LEAD, RELEASE_DAY, NEXT_DAY)] == [4]

    def test_failing_decision_rolls_back_batch(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)

        with pytest.raises(ValidationError):
            workflow.apply_tl_batch(LEAD, [
                TLDecision(verify_id=verify_id, action="CONFIRM"),
                TLDecision(verify_id=9999, action="CONFIRM"),
            ])

        assert _verify_row(db_session)[0].status == 1
        assert _release_status(db_session) is None

    def test_crf_mismatch(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)
        with pytest.raises(ValidationError):
            workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="CONFIRM", crf_id="CRF200")])

    def test_confirm_twice_is_refused(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)
        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="CONFIRM")])

        with pytest.raises(InvalidTransition):
            workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="RETURN")])

    def test_confirm_moves_only_its_own_release_date(self, workflow, db_session):
        """A later release of the same CRF/request keeps its own status."""
        db_session.add(DailyReleaseDB(
            crf_id="CRF100", request_id="REQ1", release_date=LATER_DAY,
            techlead_name="JIJIN E H", tester_name="Alice, Bob",
        ))
        db_session.commit()
        workflow.save_tester_batch(ALICE, [_submission(release_date=RELEASE_DAY)])
        verify_id = _verify_row(db_session)[0].verify_id

        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="CONFIRM")])

        assert _release_status_by_date(db_session) == {RELEASE_DAY: 16, LATER_DAY: None}

    def test_release_date_mismatch(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)

        with pytest.raises(ValidationError):
            workflow.apply_tl_batch(LEAD, [
                TLDecision(verify_id=verify_id, action="CONFIRM", release_date=NEXT_DAY),
            ])
        assert _release_status(db_session) is None

    def test_other_employee_cannot_decide(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)

        for caller in (ALICE, CAROL):
            with pytest.raises(NotTechLead):
                workflow.apply_tl_batch(caller, [TLDecision(verify_id=verify_id, action="CONFIRM")])

        assert _verify_row(db_session)[0].status == 1
        assert _release_status(db_session) is None

    def test_foreign_record_rolls_back_batch(self, workflow, db_session):
        own = _saved_verify_id(workflow, db_session)
        workflow.save_tester_batch(CAROL, [_submission("CRF200", "REQ2")])
        foreign = _verify_row(db_session, "CRF200")[0].verify_id

        with pytest.raises(NotTechLead):
            workflow.apply_tl_batch(LEAD, [
                TLDecision(verify_id=own, action="CONFIRM"),
                TLDecision(verify_id=foreign, action="CONFIRM"),
            ])

        assert _verify_row(db_session)[0].status == 1
        assert _release_status(db_session) is None
        assert _release_status(db_session, "CRF200") is None


# =============================================================================
# TEAM LISTING, COMPLETED, ATTACHMENTS, HISTORY
# =============================================================================

class TestTeamListing:

    def test_non_member_refused(self, workflow):
        with pytest.raises(NotAMember):
            workflow.team_release_records(DAVE, None, None)

    def test_loose_mode_lists_everything(self, workflow):
        assert len(workflow.team_release_records(ALICE, None, None)) == 3

    def test_strict_mode_limits_to_sub_team(self, store):
        strict = VerificationWorkflow(store, TeamResolver(store, ROSTER), strict_team_filter=True)
        records = strict.team_release_records(ALICE, None, None)
        assert sorted(r.crf_id for r in records) == ["CRF100", "CRF300"]


class TestCompletedAndHistory:

    def test_completed(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)
        assert workflow.completed_records(RELEASE_DAY, NEXT_DAY) == []

        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="CONFIRM")])

        completed = workflow.completed_records(RELEASE_DAY, NEXT_DAY)
        assert [(r.crf_id, r.status, r.release_status) for r in completed] == [("CRF100", 2, 16)]

    def test_history(self, workflow, db_session):
        verify_id = _saved_verify_id(workflow, db_session)
        workflow.apply_tl_batch(LEAD, [TLDecision(verify_id=verify_id, action="RETURN")])
        workflow.save_tester_batch(ALICE, [_submission()])

        history = workflow.history("CRF100", "REQ1")
        assert [(h.action, h.from_status, h.to_status) for h in history] == [
            ("SAVE", None, 1),
            ("RETURN", 1, 3),
            ("SAVE", 3, 4),
        ]
        assert history[1].actor == "JIJIN E H"


class TestAttachments:

    def test_stored_attachment(self, workflow):
        workflow.save_tester_batch(ALICE, [_submission(
            attachment_name="shot.png", attachment_mime="image/png", attachment_content=b"\x89PNG",
        )])

        found = workflow.attachment(" crf100 ", RELEASE_DAY)
        assert found.filename == "shot.png"
        assert found.content == b"\x89PNG"
        assert not found.is_empty

    def test_record_without_attachment_is_empty(self, workflow):
        workflow.save_tester_batch(ALICE, [_submission()])
        assert workflow.attachment("CRF100", RELEASE_DAY).is_empty

    def test_missing_record(self, workflow):
        with pytest.raises(NotFound):
            workflow.attachment("CRF100", date(2025, 1, 1))
