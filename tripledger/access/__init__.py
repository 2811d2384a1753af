"""Password hashing and access checks."""

from tripledger.access.passwords import hash_password, verify_password
from tripledger.access.gate import AccessGate, AdminAuthenticator

__all__ = [
    "hash_password",
    "verify_password",
    "AccessGate",
    "AdminAuthenticator",
]
