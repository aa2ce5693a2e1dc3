"""Services package."""

from fintra.services.exchange_rates import ExchangeRateService
from fintra.services.receipt import (
    GeminiReceiptExtractor,
    ImageRejectedError,
    ReceiptExtractionError,
    parse_receipt_response,
)
from fintra.services.remote import (
    NotFoundError,
    PermissionDeniedError,
    RemoteConnectionError,
    RemoteDataService,
    RemoteServiceError,
    RemoteTimeoutError,
    SupabaseClient,
    SupabaseDataService,
)

__all__ = [
    # Remote data service
    "RemoteDataService",
    "SupabaseClient",
    "SupabaseDataService",
    "NotFoundError",
    "PermissionDeniedError",
    "RemoteConnectionError",
    "RemoteServiceError",
    "RemoteTimeoutError",
    # Receipt extraction
    "GeminiReceiptExtractor",
    "ImageRejectedError",
    "ReceiptExtractionError",
    "parse_receipt_response",
    # Exchange rates
    "ExchangeRateService",
]
