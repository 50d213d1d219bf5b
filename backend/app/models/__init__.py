"""QA Release Tracker - Data Models"""
from .domain import (
    Employee, Identity, TeamMembership, VerificationRecord, Attachment,
    TesterSubmission, TLDecision, HistoryEntry,
    format_release_date, parse_release_date, split_names, same_name,
)

__all__ = [
    "Employee", "Identity", "TeamMembership", "VerificationRecord", "Attachment",
    "TesterSubmission", "TLDecision", "HistoryEntry",
    "format_release_date", "parse_release_date", "split_names", "same_name",
]
