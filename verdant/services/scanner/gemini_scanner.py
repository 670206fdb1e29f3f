"""
Receipt Scanner using Gemini

DESIGN DECISION: One multimodal model call per upload, no OCR stage:
1. Gemini reads photos and PDFs directly
2. The prompt asks for the exact JSON shape we parse
3. Nothing is persisted here; results are guesses for a form

Flows:
- scan_receipt:  one image -> one ScannedReceipt (amount, date, category, vendor)
- scan_document: image or PDF -> list of ScannedLineItem

CRITICAL: Output is untrusted. It goes through verdant.validation before
the user sees it, and only a user-confirmed draft becomes an Expense.
Uploads are checked for type, size and (for images) decodability BEFORE
any API call.
"""

import base64
import binascii
import json
from io import BytesIO
from typing import Any, Optional

import google.generativeai as genai
import structlog
from PIL import Image, UnidentifiedImageError
from tenacity import retry, stop_after_attempt, wait_exponential

from verdant.config import get_settings
from verdant.config.settings import GeminiSettings, ScannerSettings
from verdant.models.scan import ScannedLineItem, ScannedReceipt


logger = structlog.get_logger(__name__)


PDF_MIME_TYPE = "application/pdf"


class ScanError(Exception):
    """Base exception for scanning errors."""
    pass


class UnsupportedDocumentError(ScanError):
    """Upload rejected before scanning (type, size or unreadable image)."""
    pass


class ScanFailedError(ScanError):
    """The model call failed or returned nothing usable."""
    pass


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """
    Split a "data:<mime>;base64,<payload>" URI into (bytes, mime type).

    Raises:
        UnsupportedDocumentError: If the URI is not a base64 data URI
    """
    if not uri.startswith("data:") or "," not in uri:
        raise UnsupportedDocumentError("Expected a data URI (data:<mimetype>;base64,<data>)")
    header, payload = uri[5:].split(",", 1)
    parts = header.split(";")
    if "base64" not in parts[1:]:
        raise UnsupportedDocumentError("Data URI must be base64 encoded")
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedDocumentError(f"Data URI payload is not valid base64: {e}") from e
    return content, parts[0].lower()


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Find the outermost JSON object in a model reply (which may be fenced)."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


RECEIPT_PROMPT = """You extract expense details from a receipt image for a personal expense tracker.

Extract:
- amount: the total amount paid (usually labeled "Total", "Grand Total" or "Amount Due"), as a number
- date: the date of the purchase as YYYY-MM-DD, or null if not visible
- category: a likely category from this list: {categories}. If unsure, use "Other"
- vendor: the name of the store or merchant, or null

Respond with ONLY a JSON object in this exact format:
{{"amount": 123.45, "date": "2024-01-31", "category": "Groceries", "vendor": "Store name"}}

Never guess an amount you cannot read; use null instead."""


DOCUMENT_PROMPT = """You extract every individual expense entry from a document (receipt, statement or expense report).

For each entry extract:
- title: the item or service description
- amount: its cost, as a number
- date: the transaction date as YYYY-MM-DD, or null if not shown
- category: a likely category from this list: {categories}. If unsure, use "Other"
- paymentMode: one of "Cash", "Card", "Online", "Other". If not shown, use "Other"

Respond with ONLY a JSON object in this exact format:
{{"expenses": [{{"title": "...", "amount": 12.5, "date": "2024-01-31", "category": "Dining", "paymentMode": "Card"}}]}}

If the document has no expenses, respond with {{"expenses": []}}."""


class ReceiptScanner:
    """
    AI-assisted receipt and document scanner.

    BOUNDARIES:
    - NEVER persists data
    - NEVER fills in values the model did not return
    - REJECTS unsupported uploads loudly, before calling the model
    """

    def __init__(
        self,
        model: Any = None,
        gemini_settings: Optional[GeminiSettings] = None,
        scanner_settings: Optional[ScannerSettings] = None,
    ):
        """
        Initialize scanner.

        Args:
            model: Object with an async generate_content_async(contents).
                   If None, a Gemini model is configured from settings.
        """
        self._scanner_settings = scanner_settings or get_settings().scanner
        if model is None:
            model = self._configure_genai(gemini_settings or get_settings().gemini)
        self._model = model

    @staticmethod
    def _configure_genai(settings: GeminiSettings):
        """Configure Google Generative AI."""
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            },
        )

    def check_upload(self, content: bytes, mime_type: str, allow_pdf: bool = True) -> None:
        """
        Reject uploads we will not send to the model.

        Raises:
            UnsupportedDocumentError: On empty, oversized, unsupported or
                undecodable uploads
        """
        mime_type = mime_type.lower()
        supported = self._scanner_settings.supported_formats_list
        if not allow_pdf:
            supported = [fmt for fmt in supported if fmt != PDF_MIME_TYPE]
        if mime_type not in supported:
            raise UnsupportedDocumentError(
                f"Unsupported file type {mime_type}. Supported: {', '.join(supported)}"
            )

        if not content:
            raise UnsupportedDocumentError("The uploaded file is empty")

        if len(content) > self._scanner_settings.max_upload_size_bytes:
            raise UnsupportedDocumentError(
                f"File too large ({len(content)} bytes). "
                f"Maximum is {self._scanner_settings.max_upload_size_mb} MB"
            )

        if mime_type.startswith("image/"):
            try:
                with Image.open(BytesIO(content)) as img:
                    img.verify()
            except (UnidentifiedImageError, OSError, SyntaxError) as e:
                raise UnsupportedDocumentError(
                    "Could not read the image. Please upload a clear photo."
                ) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, prompt: str, content: bytes, mime_type: str) -> str:
        response = await self._model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": content}]
        )
        return response.text

    async def _ask(self, prompt: str, content: bytes, mime_type: str) -> dict[str, Any]:
        try:
            text = await self._generate(prompt, content, mime_type)
        except Exception as e:
            logger.error("scan_model_call_failed", mime_type=mime_type, error=str(e))
            raise ScanFailedError(f"Scanning failed: {e}") from e

        data = extract_json_object(text or "")
        if data is None:
            logger.warning("scan_unparseable_response", mime_type=mime_type)
            raise ScanFailedError("The scanner returned no readable result. Please try again.")
        return data

    async def scan_receipt(
        self,
        content: bytes,
        mime_type: str,
        category_names: Optional[list[str]] = None,
    ) -> ScannedReceipt:
        """
        Extract a single expense guess from a receipt photo.

        Raises:
            UnsupportedDocumentError: If the upload is rejected
            ScanFailedError: If the model call fails or the reply is unusable
        """
        self.check_upload(content, mime_type, allow_pdf=False)
        prompt = RECEIPT_PROMPT.format(categories=", ".join(category_names or ["Other"]))
        data = await self._ask(prompt, content, mime_type.lower())

        scanned = ScannedReceipt.model_validate(data)
        logger.info("receipt_scanned", scan_id=str(scanned.scan_id))
        return scanned

    async def scan_document(
        self,
        content: bytes,
        mime_type: str,
        category_names: Optional[list[str]] = None,
    ) -> list[ScannedLineItem]:
        """
        Extract every expense entry from an image or PDF.

        Malformed entries are skipped. An empty list means the model found
        no expenses.
        """
        self.check_upload(content, mime_type)
        prompt = DOCUMENT_PROMPT.format(categories=", ".join(category_names or ["Other"]))
        data = await self._ask(prompt, content, mime_type.lower())

        entries = data.get("expenses") or []
        if not isinstance(entries, list):
            raise ScanFailedError("The scanner returned an unexpected result shape")

        items = [
            ScannedLineItem.model_validate(entry)
            for entry in entries
            if isinstance(entry, dict)
        ]
        logger.info("document_scanned", entries=len(entries), items=len(items))
        return items
