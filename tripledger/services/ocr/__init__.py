"""Receipt OCR services package."""

from tripledger.services.ocr.gemini_receipts import (
    RECEIPT_PROMPT,
    GeminiReceiptScanner,
)

__all__ = [
    "RECEIPT_PROMPT",
    "GeminiReceiptScanner",
]
