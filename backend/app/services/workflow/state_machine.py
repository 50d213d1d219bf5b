"""
Verification State Machine

Unsubmitted --SAVE--> TesterSubmitted(1)
TesterSubmitted(1|4) --SAVE--> TesterSubmitted (payload overwritten, code kept)
TesterSubmitted(1|4) --CONFIRM--> TLApproved(2)   [terminal]
TesterSubmitted(1|4) --RETURN--> TLReturned(3)
TLReturned(3) --SAVE--> TesterSubmitted(4)

CONFIRM and RETURN also move the downstream release status (16 and 4).
Status codes only change through this module.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ...errors import InvalidTransition, ValidationError
from ...models.db_models import VerifyStatus, ReleaseStatus, TLAction


class WorkflowState(str, Enum):
    UNSUBMITTED = "UNSUBMITTED"
    TESTER_SUBMITTED = "TESTER_SUBMITTED"
    TL_APPROVED = "TL_APPROVED"
    TL_RETURNED = "TL_RETURNED"


SAVE = "SAVE"


# =============================================================================
# STATE CONFIGURATION
# =============================================================================

STATE_CONFIG = {
    WorkflowState.UNSUBMITTED: {
        "description": "Release scheduled, no tester action yet",
        "allowed_actions": [SAVE],
        "terminal": False,
    },
    WorkflowState.TESTER_SUBMITTED: {
        "description": "Tester submitted, awaiting tech lead review",
        "allowed_actions": [SAVE, TLAction.CONFIRM.value, TLAction.RETURN.value],
        "terminal": False,
    },
    WorkflowState.TL_RETURNED: {
        "description": "Returned by tech lead for rework",
        "allowed_actions": [SAVE],
        "terminal": False,
    },
    WorkflowState.TL_APPROVED: {
        "description": "Approved by tech lead",
        "allowed_actions": [],  # Terminal state
        "terminal": True,
    },
}

TL_OUTCOMES = {
    TLAction.CONFIRM.value: (VerifyStatus.APPROVED, ReleaseStatus.QA_VERIFIED),
    TLAction.RETURN.value: (VerifyStatus.RETURNED, ReleaseStatus.RETURNED_TO_DEVELOPMENT),
}

TL_PENDING_STATUSES = frozenset({VerifyStatus.SUBMITTED, VerifyStatus.RESUBMITTED})


@dataclass(frozen=True)
class TLOutcome:
    status: int
    release_status: int


def state_of(status: Optional[int]) -> WorkflowState:
    """Map a stored status code onto a workflow state."""
    if status in (None, 0):
        return WorkflowState.UNSUBMITTED
    if status in TL_PENDING_STATUSES:
        return WorkflowState.TESTER_SUBMITTED
    if status == VerifyStatus.APPROVED:
        return WorkflowState.TL_APPROVED
    if status == VerifyStatus.RETURNED:
        return WorkflowState.TL_RETURNED
    raise InvalidTransition(f"Unknown verification status code {status}")


class VerificationStateMachine:
    """Pure transition rules; persistence is the caller's job."""

    def get_state_config(self, state: WorkflowState) -> Dict[str, Any]:
        return STATE_CONFIG.get(state, {})

    def can_apply(self, status: Optional[int], action: str) -> bool:
        try:
            state = state_of(status)
        except InvalidTransition:
            return False
        return action in self.get_state_config(state).get("allowed_actions", [])

    def _require(self, status: Optional[int], action: str) -> WorkflowState:
        state = state_of(status)
        if action not in self.get_state_config(state).get("allowed_actions", []):
            raise InvalidTransition(
                f"{action} is not allowed while verification is {state.value} (status {status})"
            )
        return state

    def tester_save_target(self, status: Optional[int]) -> int:
        """Status after a tester SAVE from the given status."""
        self._require(status, SAVE)
        if status in (VerifyStatus.RETURNED, VerifyStatus.RESUBMITTED):
            return int(VerifyStatus.RESUBMITTED)
        return int(VerifyStatus.SUBMITTED)

    def tl_outcome(self, status: Optional[int], action: str) -> TLOutcome:
        """Status and downstream release status after a tech lead action."""
        action = (action or "").strip().upper()
        if action not in TL_OUTCOMES:
            raise ValidationError(f"Unknown action '{action}'. Expected CONFIRM or RETURN")
        self._require(status, action)
        verify_status, release_status = TL_OUTCOMES[action]
        return TLOutcome(status=int(verify_status), release_status=int(release_status))
