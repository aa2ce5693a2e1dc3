"""
Gemini Receipt Extraction Service

Turns a base64-encoded receipt photo into a ReceiptDetails guess.

CRITICAL BOUNDARIES:
- CAN: Read merchant, total, date, time, category and line items
- CANNOT: Persist anything. The result only prefills a draft
- CANNOT: Be trusted. Every field is advisory and may be null

The model is asked for JSON; the reply is still parsed leniently because
models occasionally wrap it in markdown fences or return odd types.
"""

import base64
import binascii
import json
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import google.generativeai as genai
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from fintra.config import GeminiSettings, get_settings
from fintra.models.finance import EXPENSE_CATEGORIES
from fintra.models.receipt import ReceiptDetails, ReceiptItem


logger = structlog.get_logger(__name__)

FENCE_PATTERN = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)")

# Goal and EMI categories are booked by the server, never read off a receipt.
RECEIPT_CATEGORIES = [c for c in EXPENSE_CATEGORIES if c not in ("EMI", "Financial Goals")]

EXTRACTION_PROMPT = f"""You are an expert expense tracker. Analyze the provided receipt image and extract the following details:
- title: Combine the merchant's name and a short summary, formatted as "Merchant Name - Summary" (e.g. "Walmart - Weekly Groceries"). If no merchant name is found, just provide the summary.
- amount: The total amount paid as a number, with decimals.
- category: Choose the most appropriate category from this list: {', '.join(RECEIPT_CATEGORIES)}. If none fits, return what you think it is.
- date: The date of the transaction in YYYY-MM-DD format.
- time: The time of the transaction in HH:MM format (24-hour), or null.
- description: Any other relevant information such as store location, or null.
- items: A list of purchased items, each with "name" (string), "price" (number) and "quantity" (number, 1 if not shown). Empty array if no items are listed.

If you cannot determine a value, set it to null (items must still be an array).
Respond with ONLY a JSON object of this shape, with no markdown fences:
{{"title": string | null, "amount": number | null, "category": string | null, "date": string | null, "time": string | null, "description": string | null, "items": [{{"name": string, "price": number, "quantity": number | null}}]}}
"""


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _number(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _date(value: Any) -> Optional[str]:
    text = _text(value)
    if text is None:
        return None
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def _time(value: Any) -> Optional[str]:
    text = _text(value)
    if text is None:
        return None
    match = TIME_PATTERN.match(text)
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def _items(value: Any) -> list[ReceiptItem]:
    if not isinstance(value, list):
        return []
    items = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        item = ReceiptItem(
            name=_text(raw.get("name")),
            price=_number(raw.get("price")),
            quantity=_number(raw.get("quantity")),
        )
        if item.name is None and item.price is None:
            continue
        items.append(item)
    return items


def strip_markdown_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = text.strip()
    match = FENCE_PATTERN.match(text)
    if match and match.group(2):
        return match.group(2).strip()
    return text


def parse_receipt_response(text: str) -> ReceiptDetails:
    """
    Parse a model reply into ReceiptDetails.

    Each field is read independently: a value of the wrong type or format
    becomes None instead of failing the whole result.

    Raises:
        ReceiptExtractionError: If the reply is not a JSON object at all
    """
    try:
        data = json.loads(strip_markdown_fences(text))
    except json.JSONDecodeError as e:
        raise ReceiptExtractionError(f"Failed to parse receipt details: {e}") from e

    if not isinstance(data, dict):
        raise ReceiptExtractionError(
            "Failed to parse receipt details: expected a JSON object"
        )

    return ReceiptDetails(
        title=_text(data.get("title")),
        amount=_number(data.get("amount")),
        category=_text(data.get("category")),
        date=_date(data.get("date")),
        time=_time(data.get("time")),
        description=_text(data.get("description")),
        items=_items(data.get("items")),
    )


class GeminiReceiptExtractor:
    """
    Receipt reader backed by Google Gemini.

    A model instance may be injected; otherwise one is configured from
    GeminiSettings on first use.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
    ):
        self._settings = settings
        self._model = model

    def _get_model(self):
        if self._model is None:
            settings = self._settings or get_settings().gemini
            genai.configure(api_key=settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=settings.model_name,
                generation_config={
                    "temperature": settings.temperature,
                    "response_mime_type": "application/json",
                },
            )
        return self._model

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, image_bytes: bytes, mime_type: str) -> str:
        response = await self._get_model().generate_content_async(
            [{"mime_type": mime_type, "data": image_bytes}, EXTRACTION_PROMPT]
        )
        return response.text

    async def extract(
        self,
        base64_image: str,
        mime_type: str = "image/jpeg",
    ) -> ReceiptDetails:
        """
        Read a receipt photo.

        Args:
            base64_image: The image, base64 encoded
            mime_type: Image MIME type

        Returns:
            Advisory ReceiptDetails; any field may be None

        Raises:
            ImageRejectedError: If the payload is not valid base64
            ReceiptExtractionError: If the model call or parsing fails
        """
        try:
            image_bytes = base64.b64decode(base64_image, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageRejectedError("Image data is not valid base64") from e
        if not image_bytes:
            raise ImageRejectedError("Image is empty")

        try:
            text = await self._generate(image_bytes, mime_type)
        except Exception as e:
            logger.error("gemini_request_failed", error=str(e))
            raise ReceiptExtractionError(f"Failed to parse receipt details: {e}") from e

        return parse_receipt_response(text)


class ReceiptExtractionError(Exception):
    """Receipt could not be read."""
    pass


class ImageRejectedError(ReceiptExtractionError):
    """Upload is not an image we accept."""
    pass
