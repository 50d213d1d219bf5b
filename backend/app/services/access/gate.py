"""
Access Gate

Two-step login check:
1. Credentials - active employee with a matching password
2. Entitlement - the employee holds QA module access ("111")

Only the conjunction authorizes a session. A failed entitlement check is
reported as NOT_ENTITLED, never as bad credentials: the password was right,
the authorization was not.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ...errors import InvalidCredentials, NotEntitled
from ...models.db_models import GRANTED_ACCESS_CODE
from ...models.domain import Identity
from ..store import RecordStore
from .credentials import CredentialVerifier, PlaintextCredentialVerifier

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    NOT_ENTITLED = "NOT_ENTITLED"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of authenticate(): either an identity or a denial reason."""
    identity: Optional[Identity] = None
    reason: Optional[DenialReason] = None

    @property
    def authorized(self) -> bool:
        return self.identity is not None

    @classmethod
    def allow(cls, identity: Identity) -> "AuthResult":
        return cls(identity=identity)

    @classmethod
    def deny(cls, reason: DenialReason) -> "AuthResult":
        return cls(reason=reason)

    def raise_for_denial(self) -> Identity:
        """Return the identity, or raise the error matching the denial reason."""
        if self.reason == DenialReason.NOT_ENTITLED:
            raise NotEntitled()
        if self.reason == DenialReason.INVALID_CREDENTIALS or self.identity is None:
            raise InvalidCredentials()
        return self.identity


def parse_emp_code(emp_code) -> Optional[int]:
    """Employee codes are numeric; anything else cannot match an employee."""
    try:
        return int(str(emp_code).strip())
    except (TypeError, ValueError):
        return None


class AccessGate:
    """Credential + module entitlement gate in front of token issuance."""

    def __init__(
        self,
        store: RecordStore,
        module_code: str = "QA",
        verifier: Optional[CredentialVerifier] = None,
    ):
        self.store = store
        self.module_code = module_code
        self.verifier = verifier or PlaintextCredentialVerifier()

    def authenticate(self, emp_code, password: str) -> AuthResult:
        code = parse_emp_code(emp_code)
        if code is None:
            return AuthResult.deny(DenialReason.INVALID_CREDENTIALS)

        # Step 1: credentials
        employee = self.store.get_active_employee(code)
        if employee is None or not self.verifier.verify(password, employee.password):
            return AuthResult.deny(DenialReason.INVALID_CREDENTIALS)

        # Step 2: module entitlement
        if not self.is_entitled(code):
            return AuthResult.deny(DenialReason.NOT_ENTITLED)

        return AuthResult.allow(Identity(emp_code=str(employee.emp_code), name=employee.name))

    def is_entitled(self, emp_code: int) -> bool:
        return self.store.module_access_code(emp_code, self.module_code) == GRANTED_ACCESS_CODE

    def access_snapshot(self, emp_code) -> Dict[str, Any]:
        """
        Diagnostic view of an employee's access: raw entitlement code plus
        directory snapshot. Operator use only.
        """
        code = parse_emp_code(emp_code)
        if code is None:
            return {"moduleAccessResult": None, "isQAMember": False, "employeeInfo": {"found": False}}

        access_code = self.store.module_access_code(code, self.module_code)
        employee = self.store.get_employee(code)
        info: Dict[str, Any] = {"found": False}
        if employee is not None:
            info = {
                "found": True,
                "empCode": employee.emp_code,
                "empName": employee.name,
                "departmentId": employee.department_id,
                "active": employee.active,
            }
        return {
            "moduleAccessResult": access_code,
            "isQAMember": access_code == GRANTED_ACCESS_CODE,
            "employeeInfo": info,
        }
