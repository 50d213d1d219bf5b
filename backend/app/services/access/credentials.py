"""
Credential Verification Strategies

AccessGate delegates the password comparison to one of these so a hashed
strategy can replace the plaintext one without touching the gate.
"""
from typing import Protocol

import bcrypt


class CredentialVerifier(Protocol):
    def verify(self, supplied: str, stored: str) -> bool:
        ...


class PlaintextCredentialVerifier:
    """Plain equality against the stored value (current directory behaviour)."""

    name = "plaintext"

    def verify(self, supplied: str, stored: str) -> bool:
        if stored is None:
            return False
        return supplied == stored


class BcryptCredentialVerifier:
    """Stored value is a bcrypt hash."""

    name = "bcrypt"

    def verify(self, supplied: str, stored: str) -> bool:
        if not stored:
            return False
        try:
            return bcrypt.checkpw(supplied.encode('utf-8'), stored.encode('utf-8'))
        except ValueError:
            # Stored value is not a bcrypt hash
            return False


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


_STRATEGIES = {
    "plaintext": PlaintextCredentialVerifier,
    "bcrypt": BcryptCredentialVerifier,
}


def get_credential_verifier(strategy: str) -> CredentialVerifier:
    try:
        return _STRATEGIES[strategy]()
    except KeyError:
        raise ValueError(f"Unknown credential strategy: {strategy}") from None
