"""
Blockfrost Indexer Client
=========================
Stake account -> payment addresses, and per-address asset balances.
"""
from typing import Optional

import httpx

from tokenrisk.core.config import (
    BLOCKFROST_API_KEY,
    BLOCKFROST_BASE_URL,
    BLOCKFROST_TIMEOUT,
    BLOCKFROST_RATE_PER_SECOND,
)
from tokenrisk.gateway.base import UpstreamClient
from tokenrisk.gateway.ledger import CallLedger


class BlockfrostClient(UpstreamClient):
    name = "blockfrost"

    def __init__(
        self,
        project_id: str = BLOCKFROST_API_KEY,
        base_url: str = BLOCKFROST_BASE_URL,
        timeout: float = BLOCKFROST_TIMEOUT,
        rate_per_second: float = BLOCKFROST_RATE_PER_SECOND,
        ledger: Optional[CallLedger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            headers={"project_id": project_id},
            timeout=timeout,
            rate_per_second=rate_per_second,
            ledger=ledger,
            transport=transport,
        )

    async def account_addresses(self, stake_address: str, count: int = 100):
        return await self.get(f"/accounts/{stake_address}/addresses", {"count": count})

    async def address(self, address: str):
        return await self.get(f"/addresses/{address}")
