"""Price endpoint client — one GET per fetch, no retries.

Supports two response envelopes:
- "prices" (the index server): {"prices": {"bitcoin": 64000.1, ...}}
- "simple" (CoinGecko simple/price): {"bitcoin": {"usd": 64000.1}, ...}
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import httpx

from basket_index.exceptions import DataShapeError, FetchError
from basket_index.logging import get_logger

log = get_logger(__name__)


class PriceClient:
    """Async client for a simple-price style HTTP JSON endpoint."""

    def __init__(
        self,
        base_url: str = "https://robertindexserver-production.up.railway.app",
        prices_path: str = "/api/prices",
        response_shape: str = "prices",
        api_key: str | None = None,
        api_key_header: str = "x-cg-demo-api-key",
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if response_shape not in ("prices", "simple"):
            raise ValueError(f"unknown response shape: {response_shape}")
        self.base_url = base_url.rstrip("/")
        self.prices_path = "/" + prices_path.lstrip("/")
        self.response_shape = response_shape
        self._api_key = api_key
        self._api_key_header = api_key_header
        self._timeout_s = timeout_s
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, provider, **kwargs) -> PriceClient:
        """Build a client from a ``ProviderConfig``."""
        return cls(
            base_url=provider.base_url,
            prices_path=provider.prices_path,
            response_shape=provider.response_shape,
            api_key=provider.api_key,
            api_key_header=provider.api_key_header,
            timeout_s=provider.timeout_s,
            **kwargs,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.prices_path}"

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            headers = {"accept": "application/json"}
            if self._api_key:
                headers[self._api_key_header] = self._api_key
            self._http = httpx.AsyncClient(
                timeout=self._timeout_s,
                headers=headers,
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def fetch_prices(self, ids: Sequence[str], vs_currency: str) -> dict[str, float]:
        """Fetch the current price of every id, in *vs_currency* units.

        Raises:
            FetchError: transport failure or non-success status.
            DataShapeError: body is not the expected JSON, or an id is
                missing / not a finite non-negative number.
        """
        if not ids:
            raise ValueError("ids must not be empty")

        http = await self._get_http()
        params = {"ids": ",".join(ids), "vs_currencies": vs_currency}
        try:
            resp = await http.get(self.url, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(None, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise FetchError(resp.status_code, resp.text)

        try:
            body = resp.json()
        except ValueError as exc:
            raise DataShapeError("Price response is not valid JSON.") from exc

        log.debug("prices_fetched", ids=len(ids), status=resp.status_code)
        return self.parse_prices(body, ids, vs_currency, self.response_shape)

    @staticmethod
    def parse_prices(
        body: Any,
        ids: Sequence[str],
        vs_currency: str,
        response_shape: str = "prices",
    ) -> dict[str, float]:
        """Extract ``{id: price}`` for exactly the requested ids."""
        if not isinstance(body, dict):
            raise DataShapeError("Price response is not a JSON object.")

        if response_shape == "prices":
            table = body.get("prices")
            if not isinstance(table, dict):
                raise DataShapeError("Price response has no 'prices' object.")
        else:
            table = body

        out: dict[str, float] = {}
        for asset_id in ids:
            raw = table.get(asset_id)
            if response_shape == "simple" and isinstance(raw, dict):
                raw = raw.get(vs_currency)
            if not _is_price(raw):
                raise DataShapeError(f"Missing price for {asset_id} in response.")
            out[asset_id] = float(raw)
        return out


def _is_price(raw: Any) -> bool:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return False
    return math.isfinite(raw) and raw >= 0
