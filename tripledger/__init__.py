"""
Trip Ledger - Source Package

A multi-tenant expense and activity tracker for group trips. Each
project keeps its own password-protected books of income, expenses and
daily reports; an admin surface spans every owner.

DESIGN PRINCIPLES:
1. Records are scoped under their owner identity
2. A project's data is visible only after its password is checked
3. Failures never crash the session, but partial deletes are always surfaced
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Trip Ledger Team"
