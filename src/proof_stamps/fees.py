"""EAS attestation fee conversion from USD to wei."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import httpx

from proof_stamps.cache import TimeBoundedCache
from proof_stamps.errors import ConfigurationError, PriceLookupError
from proof_stamps.settings import ProofStampsSettings, get_settings

__all__ = ["EthPriceFetcher", "eth_price_cache", "get_eas_fee_amount"]

LOGGER = logging.getLogger(__name__)

WEI_PER_ETH = Decimal(10) ** 18
_ETH_DECIMALS = Decimal(1).scaleb(-18)


class EthPriceFetcher:
    """Fetch the current USD price of ETH from a JSON price endpoint.

    The endpoint must answer with an object carrying ``usdPrice``.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        settings: ProofStampsSettings | None = None,
    ) -> None:
        settings_obj = settings or get_settings()
        resolved = url or settings_obj.eth_price_url
        if not resolved:
            raise ConfigurationError("No ETH price URL configured")
        self._url = resolved
        self._api_key = api_key or settings_obj.eth_price_api_key
        self._timeout = timeout_seconds or settings_obj.http_timeout
        self._client = client

    async def __call__(self) -> float:
        """Return the USD price of one ETH.

        Raises:
            PriceLookupError: If the endpoint fails or returns no usable price.
        """

        headers = {"X-API-Key": self._api_key} if self._api_key else {}
        try:
            if self._client is not None:
                payload = await self._request(self._client, headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    payload = await self._request(client, headers)
        except httpx.HTTPStatusError as exc:
            LOGGER.warning(
                "ETH price HTTP error",
                extra={"status_code": exc.response.status_code, "url": self._url},
            )
            raise PriceLookupError(
                f"Failed to get ETH price, {type(exc).__name__}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "ETH price transport error", extra={"url": self._url}, exc_info=exc
            )
            raise PriceLookupError(
                f"Failed to get ETH price, {type(exc).__name__}: {exc}"
            ) from exc
        except ValueError as exc:
            raise PriceLookupError(
                f"Failed to get ETH price, {type(exc).__name__}: {exc}"
            ) from exc

        raw = payload.get("usdPrice") if isinstance(payload, Mapping) else None
        try:
            price = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise PriceLookupError(
                f"Failed to get ETH price, non-numeric usdPrice {raw!r}"
            ) from exc
        if price <= 0:
            raise PriceLookupError(f"Failed to get ETH price, non-positive {price}")
        return price

    async def _request(
        self, client: httpx.AsyncClient, headers: Mapping[str, str]
    ) -> Any:
        response = await client.get(self._url, headers=dict(headers))
        response.raise_for_status()
        return response.json()


def eth_price_cache(
    fetcher: EthPriceFetcher | None = None,
    *,
    settings: ProofStampsSettings | None = None,
) -> TimeBoundedCache[float]:
    """Build a price cache refreshed every ``ETH_PRICE_CACHE_SECONDS``."""

    settings_obj = settings or get_settings()
    return TimeBoundedCache(
        fetcher or EthPriceFetcher(settings=settings_obj),
        settings_obj.eth_price_cache_seconds,
        name="eth_price",
    )


async def get_eas_fee_amount(
    usd_fee_amount: float | Decimal, price_cache: TimeBoundedCache[float]
) -> int:
    """Convert a USD fee into wei at the cached ETH price.

    The ETH amount is fixed to 18 decimals before scaling, so the result is
    exact in wei.
    """

    eth_price = Decimal(str(await price_cache.get()))
    try:
        eth_amount = (Decimal(str(usd_fee_amount)) / eth_price).quantize(
            _ETH_DECIMALS, rounding=ROUND_HALF_UP
        )
    except InvalidOperation as exc:
        raise PriceLookupError(f"Invalid ETH price {eth_price}") from exc
    return int(eth_amount * WEI_PER_ETH)
