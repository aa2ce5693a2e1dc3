"""Receipt extraction package."""

from fintra.services.receipt.gemini_service import (
    EXTRACTION_PROMPT,
    GeminiReceiptExtractor,
    ImageRejectedError,
    ReceiptExtractionError,
    parse_receipt_response,
    strip_markdown_fences,
)

__all__ = [
    "EXTRACTION_PROMPT",
    "GeminiReceiptExtractor",
    "ImageRejectedError",
    "ReceiptExtractionError",
    "parse_receipt_response",
    "strip_markdown_fences",
]
