"""
Price feed for call settlement (DexScreener pairs API).

A single best-effort request. Failures never raise: `quote` returns a Stale
result carrying the fallback price and the reason, `fetch_price` returns the
bare number.
"""
import math
from dataclasses import dataclass
from typing import Optional, Union

import requests
import structlog

from config.settings import settings

logger = structlog.get_logger()

FALLBACK_PRICE = 1.0


@dataclass(frozen=True)
class Fresh:
    value: float
    fresh = True


@dataclass(frozen=True)
class Stale:
    value: float
    reason: str
    fresh = False


PriceQuote = Union[Fresh, Stale]


class PriceFeed:
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 fallback: float = FALLBACK_PRICE):
        self.base_url = (base_url or settings.PRICE_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.fallback = fallback

    def quote(self, token_address: str, pair_id: str) -> PriceQuote:
        logger.info("Fetching price", token=token_address, pair=pair_id)
        try:
            r = requests.get(f"{self.base_url}/{pair_id}", timeout=self.timeout)
            if not 200 <= r.status_code < 300:
                return self._stale(f"HTTP {r.status_code}")
            data = r.json()
            raw = ((data or {}).get("pair") or {}).get("priceUsd")
            if raw is None:
                return self._stale("missing priceUsd")
            price = float(raw)
            if not math.isfinite(price) or price < 0:
                return self._stale("invalid priceUsd")
        except (requests.RequestException, ValueError, TypeError, AttributeError) as e:
            logger.warning("Price fetch failed", pair=pair_id, error=str(e))
            return self._stale(str(e))

        logger.info("Price fetched", pair=pair_id, price=price)
        return Fresh(price)

    def fetch_price(self, token_address: str, pair_id: str) -> float:
        return self.quote(token_address, pair_id).value

    def _stale(self, reason: str) -> Stale:
        logger.warning("Using fallback price", fallback=self.fallback, reason=reason)
        return Stale(self.fallback, reason)
