"""
QA Release Tracker - SQLAlchemy ORM Models
Tables behind the bundled RecordStore implementation
"""
from datetime import datetime
from enum import Enum, IntEnum
from sqlalchemy import (
    Column, String, Integer, DateTime, Date, Text, LargeBinary, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS FOR THE VERIFICATION WORKFLOW
# =============================================================================

class VerifyStatus(IntEnum):
    """Workflow state codes stored on daily_release_verify.status."""
    SUBMITTED = 1
    APPROVED = 2
    RETURNED = 3
    RESUBMITTED = 4


class TLAction(str, Enum):
    """Tech lead review actions."""
    CONFIRM = "CONFIRM"
    RETURN = "RETURN"


class ReleaseStatus(IntEnum):
    """Downstream release-status codes on daily_release.status."""
    RETURNED_TO_DEVELOPMENT = 4
    QA_VERIFIED = 16


class EmployeeStatus(IntEnum):
    ACTIVE = 1
    INACTIVE = 0


GRANTED_ACCESS_CODE = "111"
DENIED_ACCESS_CODE = "000"


# =============================================================================
# EMPLOYEE DIRECTORY
# =============================================================================

class EmployeeDB(Base):
    """Employee master record."""
    __tablename__ = "employee_master"

    emp_code = Column(Integer, primary_key=True, autoincrement=False)
    emp_name = Column(String(150), nullable=False, index=True)
    password = Column(String(255), nullable=False)  # plaintext or bcrypt hash, see CREDENTIAL_STRATEGY
    status_id = Column(Integer, nullable=False, default=EmployeeStatus.ACTIVE)
    department_id = Column(Integer, nullable=True)

    memberships = relationship("TeamMemberDB", back_populates="employee")


class ModuleAccessDB(Base):
    """Per-employee module access code ("111" = granted)."""
    __tablename__ = "module_access"

    emp_code = Column(Integer, ForeignKey("employee_master.emp_code"), primary_key=True)
    module_code = Column(String(20), primary_key=True)
    access_code = Column(String(3), nullable=False, default=DENIED_ACCESS_CODE)


class TeamMemberDB(Base):
    """IT team membership; team 6 is the QA testing team split into sub-teams."""
    __tablename__ = "it_team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, nullable=False, index=True)
    sub_team = Column(Integer, nullable=True)
    member_id = Column(Integer, ForeignKey("employee_master.emp_code"), nullable=False)

    employee = relationship("EmployeeDB", back_populates="memberships")


# =============================================================================
# RELEASES AND VERIFICATION
# =============================================================================

class DailyReleaseDB(Base):
    """
    Upstream release event for a CRF.

    Rows are written by the release-management process; the tracker only
    reads them and moves `status` when a tech lead confirms or returns.
    """
    __tablename__ = "daily_release"

    seq_rr = Column(Integer, primary_key=True, autoincrement=True)
    crf_id = Column(String(50), nullable=False)
    request_id = Column(String(50), nullable=False)
    crf_name = Column(String(500), nullable=True)
    release_date = Column(Date, nullable=False)
    release_type = Column(String(100), nullable=True)
    techlead_name = Column(String(150), nullable=True)
    developer_name = Column(String(150), nullable=True)
    tester_tl_name = Column(String(150), nullable=True)
    tester_name = Column(String(500), nullable=True)  # comma-separated
    status = Column(Integer, nullable=True)
    updated_on = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_daily_release_crf_request", "crf_id", "request_id"),
    )


class VerificationDB(Base):
    """Tester submission and TL review for one release event."""
    __tablename__ = "daily_release_verify"

    verify_id = Column(Integer, primary_key=True, autoincrement=True)
    crf_id = Column(String(50), nullable=False)
    request_id = Column(String(50), nullable=False)
    release_dt = Column(Date, nullable=False)

    working_status = Column(Integer, nullable=True)
    remarks = Column(Text, nullable=True)
    tl_remarks = Column(Text, nullable=True)

    attachment = Column(LargeBinary, nullable=True)
    attachment_filename = Column(String(255), nullable=True)
    attachment_mimetype = Column(String(100), nullable=True)

    status = Column(Integer, nullable=True)
    verified_by = Column(String(150), nullable=True)
    verified_on = Column(DateTime, nullable=True)
    approved_by = Column(String(150), nullable=True)
    approved_on = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("crf_id", "request_id", "release_dt", name="uq_verify_crf_request_release"),
    )


class VerificationHistoryDB(Base):
    """Append-only trail of workflow transitions."""
    __tablename__ = "verification_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    verify_id = Column(Integer, ForeignKey("daily_release_verify.verify_id"), nullable=False, index=True)
    crf_id = Column(String(50), nullable=False)
    request_id = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)  # SAVE, CONFIRM, RETURN
    from_status = Column(Integer, nullable=True)
    to_status = Column(Integer, nullable=False)
    working_status = Column(Integer, nullable=True)
    remarks = Column(Text, nullable=True)
    actor = Column(String(150), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
