"""
Receipt Scanning with Gemini

DESIGN DECISION: The multimodal model reads the receipt image directly
and answers in JSON. There is no separate OCR pass.

CRITICAL: The result is only a SUGGESTION. It fills fields of a draft
that the user still reviews and submits. A failed scan leaves the draft
exactly as it was.
"""

import json
from typing import Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from tripledger.audit import AuditLogger
from tripledger.config import AppSettings, GeminiSettings, get_settings
from tripledger.models import ReceiptGuess, TransactionDraft, categories_for


logger = structlog.get_logger(__name__)

RECEIPT_PROMPT = """Analyze this receipt image and extract the following information \
as a JSON object:
{
  "date": "YYYY-MM-DD",
  "amount": number,
  "description": "string (the main item or service)",
  "category": "string (one of: %s)"
}
Only return the JSON object, do not include any other text."""


class GeminiReceiptScanner:
    """
    Extracts date, amount, description and category from a receipt image.

    BOUNDARIES:
    - NEVER persists data
    - NEVER raises on a failed scan (returns None instead)
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        limits: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._audit = audit_logger or AuditLogger()
        self._limits = limits or get_settings().app
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        response = await self._model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": image_bytes}]
        )
        return response.text

    def _parse(self, text: str) -> ReceiptGuess:
        text = (text or "").strip()
        # The model sometimes wraps the object in prose or code fences
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise ValueError("No JSON object in model response")
        data = json.loads(text[start:end])
        if not isinstance(data, dict):
            raise ValueError("Model response is not a JSON object")
        return ReceiptGuess.model_validate(
            {k: v for k, v in data.items() if v not in (None, "")}
        )

    async def scan(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> Optional[ReceiptGuess]:
        """
        Ask the model what the receipt says.

        Returns None if the call fails or the answer can't be parsed.
        """
        if mime_type.lower() not in self._limits.supported_types_list:
            logger.warning("receipt_type_unsupported", mime_type=mime_type)
            await self._audit.log_receipt_scan(False, f"Unsupported image type: {mime_type}")
            return None
        if len(image_bytes) > self._limits.max_upload_size_bytes:
            logger.warning("receipt_too_large", size=len(image_bytes))
            await self._audit.log_receipt_scan(False, "Image exceeds the upload size limit")
            return None

        categories = sorted(set(categories_for("income")) | set(categories_for("expense")))
        prompt = RECEIPT_PROMPT % ", ".join(categories)
        try:
            text = await self._generate(prompt, image_bytes, mime_type)
            guess = self._parse(text)
        except (ValueError, ValidationError) as e:
            logger.warning("receipt_scan_unparseable", error=str(e))
            await self._audit.log_receipt_scan(False, str(e))
            return None
        except Exception as e:
            logger.error("receipt_scan_failed", error=str(e))
            await self._audit.log_receipt_scan(False, str(e))
            return None

        logger.info(
            "receipt_scanned",
            has_date=guess.date is not None,
            has_amount=guess.amount is not None,
            category=guess.category,
        )
        await self._audit.log_receipt_scan(True)
        return guess

    async def scan_into(self, draft: TransactionDraft) -> TransactionDraft:
        """
        Scan the draft's staged image and fill in what was recognised.

        The input draft is never mutated. Without a staged image, or when
        the scan fails, it is returned as is.
        """
        if not draft.has_staged_image:
            return draft

        guess = await self.scan(draft.staged_image, draft.staged_image_type)
        if guess is None:
            return draft

        updates = {}
        if guess.date:
            updates["date"] = guess.date
        if guess.amount:
            updates["amount"] = guess.amount
        if guess.description:
            updates["description"] = guess.description
        if guess.category:
            if guess.category in categories_for(draft.type):
                updates["category"] = guess.category
            else:
                logger.info(
                    "receipt_category_ignored",
                    category=guess.category,
                    transaction_type=draft.type.value,
                )
        return draft.model_copy(update=updates)
