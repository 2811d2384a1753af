"""Cross-tenant admin surface."""

from tripledger.admin.export import (
    export_filename,
    receipts_to_csv,
    write_receipts_csv,
)
from tripledger.admin.view import AdminView, format_amount

__all__ = [
    "export_filename",
    "receipts_to_csv",
    "write_receipts_csv",
    "AdminView",
    "format_amount",
]
