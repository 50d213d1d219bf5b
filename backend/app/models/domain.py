"""
QA Release Tracker - Domain Records

Typed records decoded at the RecordStore boundary. Workflow, access and
dashboard code only ever see these, never ORM rows.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from dateutil import parser as date_parser


RELEASE_DATE_FORMAT = "%d-%b-%Y"


def format_release_date(value: Optional[date]) -> str:
    """Render a date the way the release process writes it: 09-JAN-2026."""
    if value is None:
        return ""
    return value.strftime(RELEASE_DATE_FORMAT).upper()


def parse_release_date(value) -> Optional[date]:
    """
    Parse the date strings the portal sends (09-JAN-2026, 09-01-2026,
    2026-01-09, ...). Day-first unless the string is ISO formatted.
    Returns None for blank input; raises ValueError for garbage.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    iso_like = len(text) >= 10 and text[4] == "-" and text[:4].isdigit()
    try:
        return date_parser.parse(text, dayfirst=not iso_like).date()
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Unrecognised date: {value!r}") from exc


def split_names(names: Optional[str]) -> List[str]:
    """Split a comma-separated name list, trimming blanks away."""
    if not names:
        return []
    return [n.strip() for n in names.split(",") if n.strip()]


def same_name(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive, trimmed name equality."""
    if a is None or b is None:
        return False
    return a.strip().upper() == b.strip().upper()


@dataclass(frozen=True)
class Employee:
    emp_code: int
    name: str
    active: bool
    department_id: Optional[int] = None
    password: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as carried in the session token."""
    emp_code: str
    name: str
    token_id: Optional[str] = None


@dataclass(frozen=True)
class TeamMembership:
    emp_code: int
    name: str
    team_id: int
    sub_team: Optional[int]


@dataclass
class VerificationRecord:
    """
    One CRF release event joined with its verification row (if any).

    `status` is None while the record is Unsubmitted.
    """
    crf_id: str
    request_id: str
    release_date: date
    crf_name: str = ""
    release_type: str = ""
    techlead_name: str = ""
    developer_name: str = ""
    tester_tl_name: str = ""
    tester_name: str = ""
    verify_id: Optional[int] = None
    working_status: Optional[int] = None
    remarks: str = ""
    tl_remarks: str = ""
    attachment_name: str = ""
    status: Optional[int] = None
    verified_by: str = ""
    verified_on: Optional[datetime] = None
    approved_by: str = ""
    approved_on: Optional[datetime] = None
    release_status: Optional[int] = None

    @property
    def testers(self) -> List[str]:
        return split_names(self.tester_name)

    @property
    def release_key(self) -> tuple:
        """Distinct key for a release event: (CRF id, release date)."""
        return (self.crf_id.strip().upper(), self.release_date)


@dataclass(frozen=True)
class Attachment:
    filename: str
    mimetype: str
    content: Optional[bytes]

    @property
    def is_empty(self) -> bool:
        return not self.content


@dataclass(frozen=True)
class TesterSubmission:
    """Tester payload for one record in a SAVE batch."""
    crf_id: str
    request_id: str
    working_status: int
    remarks: str = ""
    release_date: Optional[date] = None
    attachment_name: Optional[str] = None
    attachment_mime: Optional[str] = None
    attachment_content: Optional[bytes] = None


@dataclass(frozen=True)
class TLDecision:
    """Tech lead action for one record in a review batch."""
    verify_id: int
    action: str
    tl_remarks: str = ""
    crf_id: str = ""
    release_date: Optional[date] = None


@dataclass(frozen=True)
class HistoryEntry:
    verify_id: int
    crf_id: str
    request_id: str
    action: str
    from_status: Optional[int]
    to_status: int
    working_status: Optional[int]
    remarks: str
    actor: str
    created_at: datetime
