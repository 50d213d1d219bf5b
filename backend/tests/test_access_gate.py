"""
Tests for the AccessGate and credential strategies.

Key tests:
1. Correct credentials + "111" entitlement authorize
2. Correct credentials without entitlement -> NOT_ENTITLED
3. Bad password / unknown / inactive / non-numeric code -> INVALID_CREDENTIALS
4. Denial reasons raise the matching 401 errors
5. bcrypt strategy
"""
import pytest
from unittest.mock import MagicMock

from app.errors import InvalidCredentials, NotEntitled
from app.models.domain import Employee
from app.services.access import (
    AccessGate,
    BcryptCredentialVerifier,
    DenialReason,
    PlaintextCredentialVerifier,
    get_credential_verifier,
    hash_password,
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def mock_store():
    """Record store with one active employee 1001 / pw1."""
    store = MagicMock()
    employee = Employee(emp_code=1001, name="ALICE", active=True, password="pw1")
    store.get_active_employee.side_effect = lambda code: employee if code == 1001 else None
    store.get_employee.side_effect = lambda code: employee if code == 1001 else None
    store.module_access_code.return_value = "111"
    return store


@pytest.fixture
def gate(mock_store):
    return AccessGate(mock_store, module_code="QA")


# =============================================================================
# AUTHENTICATE
# =============================================================================

class TestAuthenticate:

    def test_valid_credentials_and_entitlement_authorize(self, gate, mock_store):
        result = gate.authenticate("1001", "pw1")

        assert result.authorized
        assert result.identity.emp_code == "1001"
        assert result.identity.name == "ALICE"
        mock_store.module_access_code.assert_called_once_with(1001, "QA")

    def test_numeric_emp_code_accepted(self, gate):
        assert gate.authenticate(1001, "pw1").authorized

    def test_missing_entitlement_is_not_entitled(self, gate, mock_store):
        mock_store.module_access_code.return_value = "000"

        result = gate.authenticate("1001", "pw1")

        assert not result.authorized
        assert result.reason == DenialReason.NOT_ENTITLED

    def test_partial_access_code_is_not_entitled(self, gate, mock_store):
        mock_store.module_access_code.return_value = "110"
        assert gate.authenticate("1001", "pw1").reason == DenialReason.NOT_ENTITLED

    def test_wrong_password_is_invalid_credentials(self, gate, mock_store):
        result = gate.authenticate("1001", "wrong")

        assert result.reason == DenialReason.INVALID_CREDENTIALS
        mock_store.module_access_code.assert_not_called()

    def test_unknown_or_inactive_employee_is_invalid_credentials(self, gate):
        assert gate.authenticate("9999", "pw1").reason == DenialReason.INVALID_CREDENTIALS

    def test_non_numeric_code_is_invalid_credentials(self, gate, mock_store):
        assert gate.authenticate("abc", "pw1").reason == DenialReason.INVALID_CREDENTIALS
        mock_store.get_active_employee.assert_not_called()

    def test_password_compare_is_exact(self, gate):
        assert not gate.authenticate("1001", "PW1").authorized
        assert not gate.authenticate("1001", "pw1 ").authorized


class TestRaiseForDenial:

    def test_not_entitled_raises_not_entitled(self, gate, mock_store):
        mock_store.module_access_code.return_value = "000"
        with pytest.raises(NotEntitled) as exc_info:
            gate.authenticate("1001", "pw1").raise_for_denial()
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "You are not authorized to access the QA Portal."

    def test_bad_credentials_raise_invalid_credentials(self, gate):
        with pytest.raises(InvalidCredentials) as exc_info:
            gate.authenticate("1001", "nope").raise_for_denial()
        assert exc_info.value.message == "Invalid EmpCode or Password."

    def test_authorized_returns_identity(self, gate):
        identity = gate.authenticate("1001", "pw1").raise_for_denial()
        assert identity.name == "ALICE"


class TestAccessSnapshot:

    def test_snapshot_for_known_employee(self, gate):
        snapshot = gate.access_snapshot("1001")

        assert snapshot["moduleAccessResult"] == "111"
        assert snapshot["isQAMember"] is True
        assert snapshot["employeeInfo"]["found"] is True
        assert snapshot["employeeInfo"]["empName"] == "ALICE"

    def test_snapshot_for_unknown_employee(self, gate, mock_store):
        mock_store.module_access_code.return_value = "000"
        snapshot = gate.access_snapshot("4242")

        assert snapshot["isQAMember"] is False
        assert snapshot["employeeInfo"] == {"found": False}


# =============================================================================
# CREDENTIAL STRATEGIES
# =============================================================================

class TestCredentialStrategies:

    def test_plaintext_verifier(self):
        verifier = PlaintextCredentialVerifier()
        assert verifier.verify("pw1", "pw1")
        assert not verifier.verify("pw1", None)

    def test_bcrypt_verifier(self):
        verifier = BcryptCredentialVerifier()
        hashed = hash_password("pw1")

        assert hashed != "pw1"
        assert verifier.verify("pw1", hashed)
        assert not verifier.verify("pw2", hashed)

    def test_bcrypt_verifier_rejects_non_hash(self):
        assert not BcryptCredentialVerifier().verify("pw1", "pw1")

    def test_gate_with_bcrypt_strategy(self, mock_store):
        employee = Employee(emp_code=1001, name="ALICE", active=True, password=hash_password("pw1"))
        mock_store.get_active_employee.side_effect = lambda code: employee

        gate = AccessGate(mock_store, verifier=get_credential_verifier("bcrypt"))

        assert gate.authenticate("1001", "pw1").authorized
        assert gate.authenticate("1001", "pw2").reason == DenialReason.INVALID_CREDENTIALS

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            get_credential_verifier("md5")
