"""Receipts CSV export."""

import csv
import datetime as dt
import io
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from tripledger.models import RECEIPT_EXPORT_COLUMNS, ReceiptExportRow


logger = structlog.get_logger(__name__)


def export_filename(day: Optional[dt.date] = None) -> str:
    """receipts_export_<YYYY-MM-DD>.csv for the given day (default today)."""
    day = day or dt.date.today()
    return f"receipts_export_{day.isoformat()}.csv"


def receipts_to_csv(rows: Iterable[ReceiptExportRow]) -> str:
    """Render rows as CSV with a header line and every value quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(RECEIPT_EXPORT_COLUMNS)
    for row in rows:
        writer.writerow(row.as_values())
    return buffer.getvalue()


def write_receipts_csv(
    rows: list[ReceiptExportRow],
    directory: Union[str, Path],
    day: Optional[dt.date] = None,
) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(day)
    path.write_text(receipts_to_csv(rows), encoding="utf-8")
    logger.info("receipts_exported", path=str(path), rows=len(rows))
    return path
