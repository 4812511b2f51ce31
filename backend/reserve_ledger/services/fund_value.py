"""HTTP clients for the external valuation router, USD wrapper and price feeds.

All three sources answer JSON. Amounts are integers in base units and may be
sent either as JSON numbers or as decimal strings (values above 2**53 do not
survive a float round trip).
"""

import logging
from typing import Any

import httpx

from reserve_ledger.config import (
    FUND_VALUE_API_URL,
    PRICE_FEED_API_URL,
    HTTP_TIMEOUT,
    PRICE_FEED_CACHE_TTL,
)
from reserve_ledger.errors import CalculationFailure
from reserve_ledger.services.cache import CacheService

logger = logging.getLogger(__name__)


def _to_int(raw: Any) -> int:
    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"not an integer amount: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        return int(raw, 0) if raw.startswith("0x") else int(raw)
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    raise ValueError(f"not an integer amount: {raw!r}")


def _get_json(url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
    resp = httpx.get(url, params=params, timeout=HTTP_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


class FundValueClient:
    """Queries the fund value calculator router and its USD wrapper."""

    def __init__(self, base_url: str = FUND_VALUE_API_URL):
        self.base_url = base_url.rstrip("/")

    def _value(self, path: str, params: dict[str, str] | None = None) -> int:
        url = f"{self.base_url}/{path}"
        try:
            data = _get_json(url, params)
            return _to_int(data["value"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to fetch fund value from {url}: {e}")
            raise CalculationFailure(f"fund value source unavailable: {e}") from e

    def calc_gav(self, router: str, vault: str) -> int:
        """Gross asset value of ``vault`` in its denomination asset."""
        return self._value(f"{router}/vaults/{vault}/gav")

    def calc_net_value_for_shares_holder_in_asset(
        self, router: str, vault: str, holder: str, asset: str
    ) -> int:
        return self._value(
            f"{router}/vaults/{vault}/net-value",
            {"holder": holder, "asset": asset},
        )

    def calc_net_value_for_shares_holder(
        self, usd_wrapper: str, vault: str, holder: str
    ) -> int:
        """Net value of ``holder``'s shares in ``vault``, in USD."""
        return self._value(
            f"{usd_wrapper}/vaults/{vault}/net-value", {"holder": holder}
        )


class PriceFeedClient:
    """Reads latest answers from price feeds, cached for a short TTL."""

    def __init__(
        self,
        base_url: str = PRICE_FEED_API_URL,
        cache: CacheService | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else CacheService(
            default_ttl=PRICE_FEED_CACHE_TTL
        )

    def _fetch(self, feed: str) -> tuple[int, int]:
        url = f"{self.base_url}/feeds/{feed}/latest"
        try:
            data = _get_json(url)
            answer = _to_int(data["answer"])
            decimals = _to_int(data.get("decimals", 8))
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to fetch price feed {feed}: {e}")
            raise CalculationFailure(f"price feed unavailable: {e}") from e
        if answer <= 0:
            logger.error(f"Price feed {feed} returned non-positive answer {answer}")
            raise CalculationFailure(f"price feed {feed} returned {answer}")
        return answer, decimals

    def latest_answer(self, feed: str) -> tuple[int, int]:
        """Return ``(answer, decimals)`` for ``feed``."""
        return self.cache.get_or_load(("feed", feed), lambda: self._fetch(feed))


# Global instances
fund_value_client = FundValueClient()
price_feed_client = PriceFeedClient()
