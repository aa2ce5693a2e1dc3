"""
Tests for the receipt extractor and the exchange-rate service.

No real API calls: Gemini is replaced by a fake model object and the
exchange-rate endpoint by an httpx.MockTransport.
"""

import base64
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest

from fintra.config import ExchangeRateSettings
from fintra.services.exchange_rates import ExchangeRateService
from fintra.services.receipt import (
    EXTRACTION_PROMPT,
    GeminiReceiptExtractor,
    ImageRejectedError,
    ReceiptExtractionError,
    parse_receipt_response,
    strip_markdown_fences,
)


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text):
        self.text = text
        self.calls = []

    async def generate_content_async(self, parts):
        self.calls.append(parts)
        return SimpleNamespace(text=self.text)


class TestParseReceiptResponse:
    """Tests for lenient parsing of model replies."""

    def test_full_reply(self):
        """Test a well-formed reply."""
        details = parse_receipt_response(
            '{"title": "Walmart - Weekly Groceries", "amount": 42.1, "category": "Groceries",'
            ' "date": "2024-05-03", "time": "9:05", "description": null,'
            ' "items": [{"name": "Milk", "price": 3.5, "quantity": 2}]}'
        )
        assert details.title == "Walmart - Weekly Groceries"
        assert details.amount == Decimal("42.1")
        assert details.date == "2024-05-03"
        assert details.time == "09:05"
        assert details.description is None
        assert details.items[0].quantity == Decimal("2")

    def test_fenced_reply(self):
        """Test that a markdown code fence is removed."""
        assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert parse_receipt_response('```json\n{"title": "Cafe"}\n```').title == "Cafe"

    def test_bad_fields_become_none(self):
        """Test that wrongly typed values do not fail the whole result."""
        details = parse_receipt_response(
            '{"title": 5, "amount": "1,234.50", "date": "yesterday", "time": "late",'
            ' "items": [{"name": "Bag"}, "junk", {"quantity": 2}]}'
        )
        assert details.title is None
        assert details.amount == Decimal("1234.50")
        assert details.date is None
        assert details.time is None
        assert [i.name for i in details.items] == ["Bag"]

    def test_not_json(self):
        """Test that a non-JSON reply is an extraction error."""
        with pytest.raises(ReceiptExtractionError, match="Failed to parse receipt details"):
            parse_receipt_response("I could not read this receipt.")

    def test_not_an_object(self):
        """Test that a JSON array is rejected."""
        with pytest.raises(ReceiptExtractionError):
            parse_receipt_response("[1, 2]")


class TestGeminiReceiptExtractor:
    """Tests for GeminiReceiptExtractor."""

    @pytest.mark.asyncio
    async def test_sends_image_and_prompt(self):
        """Test that the decoded image and the prompt are sent together."""
        model = FakeModel('{"title": "Cafe", "amount": 4}')
        extractor = GeminiReceiptExtractor(model=model)

        details = await extractor.extract(base64.b64encode(b"jpeg-bytes").decode(), "image/png")

        image_part, prompt = model.calls[0]
        assert image_part == {"mime_type": "image/png", "data": b"jpeg-bytes"}
        assert prompt == EXTRACTION_PROMPT
        assert details.amount == Decimal("4")

    @pytest.mark.asyncio
    async def test_invalid_base64(self):
        """Test that a corrupt upload is rejected before any model call."""
        model = FakeModel("{}")
        extractor = GeminiReceiptExtractor(model=model)

        with pytest.raises(ImageRejectedError):
            await extractor.extract("not base64!!")
        assert model.calls == []

    def test_prompt_excludes_server_booked_categories(self):
        """Test that EMI and goal categories are never suggested."""
        assert "Financial Goals" not in EXTRACTION_PROMPT
        assert "Groceries" in EXTRACTION_PROMPT


class TestExchangeRateService:
    """Tests for ExchangeRateService."""

    def make_service(self, handler):
        settings = ExchangeRateSettings(api_url="https://rates.test/latest/")
        return ExchangeRateService(settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_rate_lookup(self):
        """Test a successful lookup."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"base": "USD", "rates": {"EUR": 0.92}})

        service = self.make_service(handler)

        assert await service.get_rate("usd", "eur") == Decimal("0.92")
        assert seen == ["https://rates.test/latest/USD"]

    @pytest.mark.asyncio
    async def test_same_currency(self):
        """Test that no request is made for identical currencies."""

        def handler(request):
            raise AssertionError("unexpected request")

        assert await self.make_service(handler).get_rate("INR", "inr") == Decimal("1")

    @pytest.mark.asyncio
    async def test_missing_rate(self):
        """Test that an unknown target yields None."""
        service = self.make_service(lambda request: httpx.Response(200, json={"rates": {}}))
        assert await service.get_rate("USD", "XYZ") is None

    @pytest.mark.asyncio
    async def test_http_error_yields_none(self):
        """Test that a server error is not raised to the caller."""
        service = self.make_service(lambda request: httpx.Response(500))
        assert await service.get_rate("USD", "EUR") is None
