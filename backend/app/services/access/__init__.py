"""
Access Services

Credential verification strategies and the two-step login gate.
"""

from .credentials import (
    CredentialVerifier,
    PlaintextCredentialVerifier,
    BcryptCredentialVerifier,
    get_credential_verifier,
    hash_password,
)
from .gate import AccessGate, AuthResult, DenialReason

__all__ = [
    'CredentialVerifier',
    'PlaintextCredentialVerifier',
    'BcryptCredentialVerifier',
    'get_credential_verifier',
    'hash_password',
    'AccessGate',
    'AuthResult',
    'DenialReason',
]
