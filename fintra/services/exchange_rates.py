"""
Exchange Rate Service

Looks up conversion rates from the public exchangerate-api endpoint
(`<api_url><BASE>` returns `{"base": ..., "rates": {...}}`).

A missing rate is not an error for the caller: the UI simply shows the
secondary currency as unavailable, so every failure yields None.
"""

from decimal import Decimal
from typing import Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintra.config import ExchangeRateSettings, get_settings


logger = structlog.get_logger(__name__)


class ExchangeRateService:
    """Currency conversion rates over HTTP."""

    def __init__(
        self,
        settings: Optional[ExchangeRateSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().exchange_rates
        self._transport = transport

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _fetch_rates(self, base: str) -> dict:
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.get(f"{self._settings.api_url}{base}")
            response.raise_for_status()
            return response.json()

    async def get_rate(self, base: str, target: str) -> Optional[Decimal]:
        """
        Rate to multiply an amount in `base` by to get `target`.

        Returns:
            1 for identical currencies, the rate, or None if unavailable
        """
        base = base.upper()
        target = target.upper()
        if base == target:
            return Decimal("1")

        try:
            data = await self._fetch_rates(base)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "exchange_rate_fetch_failed",
                base=base,
                target=target,
                error=str(e),
            )
            return None

        rates = data.get("rates") if isinstance(data, dict) else None
        rate = rates.get(target) if isinstance(rates, dict) else None
        if not rate:
            return None
        return Decimal(str(rate))
