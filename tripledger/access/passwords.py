"""
Project and admin password hashing.

Digests are unsalted SHA-256 hex so that hashes already stored on
existing projects keep verifying.
"""

import hashlib
import hmac


def hash_password(cleartext: str) -> str:
    """SHA-256 of the UTF-8 encoded password, as 64 lowercase hex chars."""
    return hashlib.sha256(cleartext.encode("utf-8")).hexdigest()


def verify_password(cleartext: str, stored_digest: str) -> bool:
    """Check a password against a stored digest in constant time."""
    # Stored digests come from an untyped store and may hold any text
    return hmac.compare_digest(
        hash_password(cleartext).encode("ascii"),
        str(stored_digest).lower().encode("utf-8"),
    )
