from dataclasses import dataclass, field
from typing import Dict, Protocol

import httpx
from loguru import logger

from app.core.config import settings


class RateProviderError(Exception):
    pass


@dataclass
class ExchangeRates:
    base: str
    date: str
    rates: Dict[str, float] = field(default_factory=dict)


class RateProvider(Protocol):
    async def fetch(self, base: str) -> ExchangeRates:
        ...


class FrankfurterRateProvider:
    """Latest rates from the Frankfurter API (ECB reference rates)"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.currency_api_url).rstrip("/")
        self.timeout = timeout or settings.rates_request_timeout
        self.transport = transport

    async def fetch(self, base: str) -> ExchangeRates:
        url = f"{self.base_url}/latest"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params={"from": base})
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching exchange rates for {base}: {e}")
            raise RateProviderError(str(e)) from e

        return ExchangeRates(
            base=payload.get("base", base),
            date=payload.get("date", ""),
            rates=payload.get("rates", {}),
        )
