"""
Record Store

The only component that touches the database. Everything it returns is a
typed domain record (Employee, VerificationRecord, ...); ORM rows and raw
driver errors never leave this module.

Driver failures surface as StoreError carrying the driver's error code
when one is available.
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from ...database import transaction
from ...errors import StoreError
from ...models.db_models import (
    EmployeeDB, ModuleAccessDB, TeamMemberDB, DailyReleaseDB, VerificationDB,
    VerificationHistoryDB, EmployeeStatus, VerifyStatus, DENIED_ACCESS_CODE,
)
from ...models.domain import (
    Employee, TeamMembership, VerificationRecord, Attachment, TesterSubmission,
    HistoryEntry, same_name, split_names,
)

logger = logging.getLogger(__name__)


def _driver_error_code(exc: SQLAlchemyError) -> Optional[str]:
    """Best-effort extraction of the database's own error code."""
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode:
        return str(pgcode)
    if orig is not None and orig.args and isinstance(orig.args[0], int):
        return str(orig.args[0])
    return getattr(exc, "code", None)


def _normalize(name: str) -> str:
    return (name or "").strip().upper()


# =============================================================================
# ROW DECODING
# =============================================================================

def _to_employee(row: EmployeeDB) -> Employee:
    return Employee(
        emp_code=row.emp_code,
        name=(row.emp_name or "").strip(),
        active=row.status_id == EmployeeStatus.ACTIVE,
        department_id=row.department_id,
        password=row.password,
    )


def _to_record(release: DailyReleaseDB, verify: Optional[VerificationDB]) -> VerificationRecord:
    record = VerificationRecord(
        crf_id=release.crf_id or "",
        request_id=release.request_id or "",
        release_date=release.release_date,
        crf_name=release.crf_name or "",
        release_type=release.release_type or "",
        techlead_name=release.techlead_name or "",
        developer_name=release.developer_name or "",
        tester_tl_name=release.tester_tl_name or "",
        tester_name=release.tester_name or "",
        release_status=release.status,
    )
    if verify is not None:
        record.verify_id = verify.verify_id
        record.working_status = verify.working_status
        record.remarks = verify.remarks or ""
        record.tl_remarks = verify.tl_remarks or ""
        record.attachment_name = verify.attachment_filename or ""
        record.status = verify.status
        record.verified_by = verify.verified_by or ""
        record.verified_on = verify.verified_on
        record.approved_by = verify.approved_by or ""
        record.approved_on = verify.approved_on
    return record


def _to_history(row: VerificationHistoryDB) -> HistoryEntry:
    return HistoryEntry(
        verify_id=row.verify_id,
        crf_id=row.crf_id,
        request_id=row.request_id,
        action=row.action,
        from_status=row.from_status,
        to_status=row.to_status,
        working_status=row.working_status,
        remarks=row.remarks or "",
        actor=row.actor,
        created_at=row.created_at,
    )


# =============================================================================
# RECORD STORE
# =============================================================================

class RecordStore:
    """SQLAlchemy-backed record store."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    @contextmanager
    def _store_call(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            code = _driver_error_code(exc)
            logger.error("Record store failure during %s (code=%s): %s", operation, code, exc)
            raise StoreError("Database error occurred", code=code, details=str(exc)) from exc

    @contextmanager
    def unit_of_work(self, operation: str = "write"):
        """Commit everything done in the block together, or nothing."""
        with self._store_call(operation):
            with transaction(self.db):
                yield self

    # =========================================================================
    # EMPLOYEES AND ENTITLEMENTS
    # =========================================================================

    def get_employee(self, emp_code: int) -> Optional[Employee]:
        """Look up an employee regardless of status."""
        with self._store_call("get_employee"):
            row = self.db.query(EmployeeDB).filter(EmployeeDB.emp_code == emp_code).first()
        return _to_employee(row) if row else None

    def get_active_employee(self, emp_code: int) -> Optional[Employee]:
        with self._store_call("get_active_employee"):
            row = (
                self.db.query(EmployeeDB)
                .filter(EmployeeDB.emp_code == emp_code, EmployeeDB.status_id == EmployeeStatus.ACTIVE)
                .first()
            )
        return _to_employee(row) if row else None

    def module_access_code(self, emp_code: int, module_code: str) -> str:
        """Raw access code for a module; "000" when no rule exists."""
        with self._store_call("module_access_code"):
            row = (
                self.db.query(ModuleAccessDB)
                .filter(ModuleAccessDB.emp_code == emp_code, ModuleAccessDB.module_code == module_code)
                .first()
            )
        return (row.access_code or DENIED_ACCESS_CODE) if row else DENIED_ACCESS_CODE

    # =========================================================================
    # TEAMS
    # =========================================================================

    def _membership_query(self, team_id: int):
        return (
            self.db.query(TeamMemberDB, EmployeeDB)
            .join(EmployeeDB, TeamMemberDB.member_id == EmployeeDB.emp_code)
            .filter(TeamMemberDB.team_id == team_id, EmployeeDB.status_id == EmployeeStatus.ACTIVE)
        )

    def find_team_membership(self, team_id: int, name: str) -> Optional[TeamMembership]:
        """Active membership of the named employee in a team."""
        with self._store_call("find_team_membership"):
            row = (
                self._membership_query(team_id)
                .filter(func.upper(func.trim(EmployeeDB.emp_name)) == _normalize(name))
                .first()
            )
        if row is None:
            return None
        member, employee = row
        return TeamMembership(
            emp_code=employee.emp_code,
            name=(employee.emp_name or "").strip(),
            team_id=member.team_id,
            sub_team=member.sub_team,
        )

    def team_members(self, team_id: int, sub_team: Optional[int] = None) -> List[TeamMembership]:
        """Active members of a team (optionally one sub-team), ordered by name."""
        with self._store_call("team_members"):
            query = self._membership_query(team_id)
            if sub_team is not None:
                query = query.filter(TeamMemberDB.sub_team == sub_team)
            rows = query.order_by(EmployeeDB.emp_name).all()

        members = []
        seen = set()
        for member, employee in rows:
            key = (employee.emp_code, member.sub_team)
            if key in seen:
                continue
            seen.add(key)
            members.append(TeamMembership(
                emp_code=employee.emp_code,
                name=(employee.emp_name or "").strip(),
                team_id=member.team_id,
                sub_team=member.sub_team,
            ))
        return members

    # =========================================================================
    # VERIFICATION RECORDS
    # =========================================================================

    def _record_query(self):
        return (
            self.db.query(DailyReleaseDB, VerificationDB)
            .outerjoin(
                VerificationDB,
                and_(
                    VerificationDB.crf_id == DailyReleaseDB.crf_id,
                    VerificationDB.request_id == DailyReleaseDB.request_id,
                    VerificationDB.release_dt == DailyReleaseDB.release_date,
                ),
            )
        )

    @staticmethod
    def _latest_per_release(rows) -> List[VerificationRecord]:
        # Several release rows may exist per (crf, request, date); the highest seq wins
        records = []
        seen = set()
        for release, verify in rows:
            key = (release.crf_id, release.request_id, release.release_date)
            if key in seen:
                continue
            seen.add(key)
            records.append(_to_record(release, verify))
        return records

    def list_records(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        release_type: Optional[str] = None,
        statuses: Optional[Iterable[int]] = None,
    ) -> List[VerificationRecord]:
        """
        Release events in a date range joined with their verification rows.

        `statuses` restricts to records whose verification status is in the
        set; unsubmitted records never match a status filter.
        """
        with self._store_call("list_records"):
            query = self._record_query()
            if from_date is not None:
                query = query.filter(DailyReleaseDB.release_date >= from_date)
            if to_date is not None:
                query = query.filter(DailyReleaseDB.release_date <= to_date)
            if release_type:
                query = query.filter(func.upper(func.trim(DailyReleaseDB.release_type)) == _normalize(release_type))
            if statuses is not None:
                query = query.filter(VerificationDB.status.in_(list(statuses)))
            rows = query.order_by(
                DailyReleaseDB.release_date.desc(),
                DailyReleaseDB.crf_id,
                DailyReleaseDB.seq_rr.desc(),
            ).all()
        return self._latest_per_release(rows)

    def find_release(
        self,
        crf_id: str,
        request_id: str,
        release_date: Optional[date] = None,
    ) -> Optional[VerificationRecord]:
        """Latest release event for a (CRF, request), optionally on a given date."""
        with self._store_call("find_release"):
            query = self._record_query().filter(
                DailyReleaseDB.crf_id == crf_id.strip(),
                DailyReleaseDB.request_id == request_id.strip(),
            )
            if release_date is not None:
                query = query.filter(DailyReleaseDB.release_date == release_date)
            row = query.order_by(DailyReleaseDB.release_date.desc(), DailyReleaseDB.seq_rr.desc()).first()
        return _to_record(*row) if row else None

    def get_by_verify_id(self, verify_id: int) -> Optional[VerificationRecord]:
        with self._store_call("get_by_verify_id"):
            row = (
                self._record_query()
                .filter(VerificationDB.verify_id == verify_id)
                .order_by(DailyReleaseDB.seq_rr.desc())
                .first()
            )
        return _to_record(*row) if row else None

    def get_attachment(self, crf_id: str, release_date: date) -> Optional[Attachment]:
        """Attachment by (CRF id, release date); None when no verification row exists."""
        with self._store_call("get_attachment"):
            row = (
                self.db.query(VerificationDB)
                .filter(
                    func.upper(func.trim(VerificationDB.crf_id)) == _normalize(crf_id),
                    VerificationDB.release_dt == release_date,
                )
                .order_by(VerificationDB.verify_id.desc())
                .first()
            )
        if row is None:
            return None
        return Attachment(
            filename=row.attachment_filename or "attachment",
            mimetype=row.attachment_mimetype or "application/octet-stream",
            content=row.attachment,
        )

    def history(self, crf_id: str, request_id: str) -> List[HistoryEntry]:
        with self._store_call("history"):
            rows = (
                self.db.query(VerificationHistoryDB)
                .filter(
                    VerificationHistoryDB.crf_id == crf_id.strip(),
                    VerificationHistoryDB.request_id == request_id.strip(),
                )
                .order_by(VerificationHistoryDB.created_at, VerificationHistoryDB.id)
                .all()
            )
        return [_to_history(r) for r in rows]

    # =========================================================================
    # COUNTS (distinct per release event: CRF id + release date)
    # =========================================================================

    def count_releases(self, statuses: Iterable[int], techlead_name: Optional[str] = None) -> int:
        """Release events with a verification in one of `statuses`, optionally for one tech lead."""
        with self._store_call("count_releases"):
            query = self._record_query().filter(VerificationDB.status.in_(list(statuses)))
            if techlead_name is not None:
                query = query.filter(func.upper(func.trim(DailyReleaseDB.techlead_name)) == _normalize(techlead_name))
            return (
                query.with_entities(func.upper(func.trim(DailyReleaseDB.crf_id)), DailyReleaseDB.release_date)
                .distinct()
                .count()
            )

    def count_tester_pending(self, tester_name: str) -> int:
        """
        Release events listing the tester that are not yet approved.

        An event counts as approved once any of its requests is. The name
        prefilter runs in SQL; the exact list match is done here because
        tester names are stored as one comma-separated column.
        """
        approved = aliased(VerificationDB)
        already_approved = (
            self.db.query(approved.verify_id)
            .filter(
                approved.status == VerifyStatus.APPROVED,
                func.upper(func.trim(approved.crf_id)) == func.upper(func.trim(DailyReleaseDB.crf_id)),
                approved.release_dt == DailyReleaseDB.release_date,
            )
            .exists()
        )
        with self._store_call("count_tester_pending"):
            rows = (
                self.db.query(DailyReleaseDB.crf_id, DailyReleaseDB.release_date, DailyReleaseDB.tester_name)
                .filter(
                    func.upper(DailyReleaseDB.tester_name).contains(_normalize(tester_name), autoescape=True),
                    ~already_approved,
                )
                .all()
            )
        return len({
            (crf_id.strip().upper(), release_date)
            for crf_id, release_date, testers in rows
            if any(same_name(t, tester_name) for t in split_names(testers))
        })

    # =========================================================================
    # WRITES (call inside unit_of_work)
    # =========================================================================

    def write_tester_payload(
        self,
        record: VerificationRecord,
        submission: TesterSubmission,
        new_status: int,
        actor: str,
        at: datetime,
    ) -> int:
        """
        Upsert the tester payload for a release event.

        Overwrites working status and remarks; the attachment is replaced
        only when the submission carries one. Returns the verify id.
        """
        verify = None
        if record.verify_id is not None:
            verify = self.db.get(VerificationDB, record.verify_id)
        if verify is None:
            verify = VerificationDB(
                crf_id=record.crf_id,
                request_id=record.request_id,
                release_dt=record.release_date,
            )
            self.db.add(verify)

        previous = verify.status
        verify.working_status = submission.working_status
        verify.remarks = submission.remarks
        if submission.attachment_content is not None:
            verify.attachment = submission.attachment_content
            verify.attachment_filename = submission.attachment_name
            verify.attachment_mimetype = submission.attachment_mime
        verify.status = new_status
        verify.verified_by = actor
        verify.verified_on = at
        self.db.flush()

        self._append_history(verify, "SAVE", previous, new_status, submission.remarks, actor, at)
        return verify.verify_id

    def write_tl_decision(
        self,
        verify_id: int,
        action: str,
        new_status: int,
        release_status: int,
        tl_remarks: str,
        actor: str,
        at: datetime,
    ) -> None:
        """
        Apply a tech lead decision: verification status and the latest
        release row for the same release date move together.
        """
        verify = self.db.get(VerificationDB, verify_id)
        if verify is None:
            raise StoreError(f"Verification {verify_id} disappeared during update")

        previous = verify.status
        verify.status = new_status
        verify.tl_remarks = tl_remarks
        if action == "CONFIRM":
            verify.approved_by = actor
            verify.approved_on = at

        release = (
            self.db.query(DailyReleaseDB)
            .filter(
                DailyReleaseDB.crf_id == verify.crf_id,
                DailyReleaseDB.request_id == verify.request_id,
                DailyReleaseDB.release_date == verify.release_dt,
            )
            .order_by(DailyReleaseDB.seq_rr.desc())
            .first()
        )
        if release is None:
            raise StoreError(
                f"No release row for CRF {verify.crf_id} / request {verify.request_id} on {verify.release_dt}"
            )
        release.status = release_status
        release.updated_on = at
        self.db.flush()

        self._append_history(verify, action, previous, new_status, tl_remarks, actor, at)

    def _append_history(self, verify, action, from_status, to_status, remarks, actor, at):
        self.db.add(VerificationHistoryDB(
            verify_id=verify.verify_id,
            crf_id=verify.crf_id,
            request_id=verify.request_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            working_status=verify.working_status,
            remarks=remarks,
            actor=actor,
            created_at=at,
        ))
        self.db.flush()
