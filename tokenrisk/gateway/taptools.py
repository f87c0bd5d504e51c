"""
TapTools Market API Client
==========================
Market data: top-volume and market-cap lists, top holders (aggregated by
stake address), liquidity pools, market cap, social links, wallet trades
and portfolio positions.

Methods return the raw JSON payload (or None). Normalization into the
canonical types happens in DataGateway.
"""
from typing import Optional

import httpx

from tokenrisk.core.config import (
    TAPTOOLS_API_KEY,
    TAPTOOLS_BASE_URL,
    TAPTOOLS_TIMEOUT,
    TAPTOOLS_RATE_PER_SECOND,
)
from tokenrisk.gateway.base import UpstreamClient
from tokenrisk.gateway.ledger import CallLedger


class TapToolsClient(UpstreamClient):
    name = "taptools"

    def __init__(
        self,
        api_key: str = TAPTOOLS_API_KEY,
        base_url: str = TAPTOOLS_BASE_URL,
        timeout: float = TAPTOOLS_TIMEOUT,
        rate_per_second: float = TAPTOOLS_RATE_PER_SECOND,
        ledger: Optional[CallLedger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            headers={"x-api-key": api_key, "Accept": "application/json"},
            timeout=timeout,
            rate_per_second=rate_per_second,
            ledger=ledger,
            transport=transport,
        )

    async def top_volume(self, timeframe: str, per_page: int):
        return await self.get("/token/top/volume", {"timeframe": timeframe, "perPage": per_page})

    async def top_mcap(self, page: int, per_page: int):
        return await self.get("/token/top/mcap", {"page": page, "perPage": per_page})

    async def top_holders(self, unit: str, page: int, per_page: int):
        return await self.get("/token/holders/top", {"unit": unit, "page": page, "perPage": per_page})

    async def pools(self, unit: str):
        return await self.get("/token/pools", {"unit": unit, "adaOnly": 1})

    async def market_cap(self, unit: str):
        return await self.get("/token/mcap", {"unit": unit})

    async def links(self, unit: str):
        return await self.get("/token/links", {"unit": unit})

    async def wallet_trades(self, address: str, unit: str, page: int, per_page: int):
        return await self.get(
            "/wallet/trades/tokens",
            {"address": address, "unit": unit, "page": page, "perPage": per_page},
        )

    async def wallet_portfolio(self, address: str):
        return await self.get("/wallet/portfolio/positions", {"address": address})
