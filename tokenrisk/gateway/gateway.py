"""
External Data Gateway
=====================
Single entry point for every upstream read. Owns the per-resource TTL
caches, the per-API token buckets (via its clients) and the call ledger.

Every upstream payload is normalized here into the canonical types in
`gateway.models`; no raw upstream field name (`amount` vs `quantity`,
`address` vs `stake_address`) leaves this module.

Failure contract: every method resolves to None / [] / {} on upstream
error, timeout or malformed payload. Nothing is retried and nothing raises.
"""
import time
from typing import Any, Callable, Dict, List, Optional

from tokenrisk.core.cache import ResourceCache
from tokenrisk.core.constants import (
    CACHE_TTL,
    HANDLE_POLICY_ID,
    LOVELACE,
    SOCIAL_LINK_FIELDS,
    TOP_HOLDERS_PER_PAGE,
)
from tokenrisk.core.logger import get_logger
from tokenrisk.gateway.blockfrost import BlockfrostClient
from tokenrisk.gateway.ledger import CallLedger
from tokenrisk.gateway.models import (
    AddressAsset,
    CandidateToken,
    HolderRecord,
    LiquidityPool,
    MarketCapSummary,
    WalletPortfolio,
    WalletTrade,
)
from tokenrisk.gateway.taptools import TapToolsClient

logger = get_logger("gateway")

# CIP-68 user token label (000de140) prefixes newer handle asset names
CIP68_USER_LABEL = "000de140"


# ==============================================================================
# NORMALIZATION
# ==============================================================================

def _num(value, default=None) -> Optional[float]:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _rows(payload) -> List[Dict[str, Any]]:
    """Upstream list payloads are either a bare list or wrapped in {data: [...]}."""
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        return []
    return [row for row in payload if isinstance(row, dict)]


def normalize_holders(payload) -> List[HolderRecord]:
    holders = []
    for row in _rows(payload):
        stake = row.get("stake_address") or row.get("stakeAddress") or row.get("address") or row.get("stake")
        quantity = _num(row.get("amount"), None)
        if quantity is None:
            quantity = _num(row.get("quantity"), None)
        if not stake or quantity is None:
            continue
        holders.append(HolderRecord(stake_identity=stake, quantity=quantity))
    return holders


def normalize_candidates(payload, source: str) -> List[CandidateToken]:
    candidates = []
    for row in _rows(payload):
        unit = row.get("unit")
        if not unit:
            continue
        candidates.append(CandidateToken(
            unit=unit,
            ticker=row.get("ticker"),
            name=row.get("name") or row.get("ticker"),
            price=_num(row.get("price")),
            volume=_num(row.get("volume")),
            market_cap=_num(row.get("mcap")),
            source=source,
        ))
    return candidates


def normalize_pools(payload) -> List[LiquidityPool]:
    pools = []
    for row in _rows(payload):
        pools.append(LiquidityPool(
            exchange=row.get("exchange") or "unknown",
            pool_id=row.get("onchainID") or row.get("poolId"),
            token_a_ticker=row.get("tokenATicker"),
            token_a_locked=_num(row.get("tokenALocked"), 0.0),
            token_b_ticker=row.get("tokenBTicker"),
            token_b_locked=_num(row.get("tokenBLocked"), 0.0),
        ))
    return pools


def normalize_market_cap(payload) -> Optional[MarketCapSummary]:
    if not isinstance(payload, dict) or not payload:
        return None
    return MarketCapSummary(
        ticker=payload.get("ticker"),
        price=_num(payload.get("price")),
        circulating_supply=_num(payload.get("circSupply")),
        total_supply=_num(payload.get("totalSupply")),
        market_cap=_num(payload.get("mcap")),
        fdv=_num(payload.get("fdv")),
    )


def normalize_links(payload) -> Dict[str, str]:
    if not isinstance(payload, dict):
        return {}
    return {
        key: value
        for key, value in payload.items()
        if key in SOCIAL_LINK_FIELDS and isinstance(value, str) and value.strip()
    }


def normalize_trades(payload) -> List[WalletTrade]:
    trades = []
    for row in _rows(payload):
        trades.append(WalletTrade(
            action=row.get("action") or "",
            token_a=row.get("tokenA"),
            token_b=row.get("tokenB"),
            token_a_amount=_num(row.get("tokenAAmount"), 0.0),
            token_b_amount=_num(row.get("tokenBAmount"), 0.0),
            time=row.get("time"),
        ))
    return trades


def normalize_portfolio(payload) -> Optional[WalletPortfolio]:
    if not isinstance(payload, dict) or not payload:
        return None
    return WalletPortfolio(
        ada_balance=_num(payload.get("adaBalance"), 0.0),
        liquid_value=_num(payload.get("liquidValue"), 0.0),
        num_fts=int(_num(payload.get("numFTs"), 0)),
        num_nfts=int(_num(payload.get("numNFTs"), 0)),
    )


def decode_handle(unit: str) -> Optional[str]:
    """
    Handle asset unit -> "$name". The asset name hex is decoded as UTF-8
    and reduced to printable ASCII.
    """
    if not unit.startswith(HANDLE_POLICY_ID):
        return None
    name_hex = unit[len(HANDLE_POLICY_ID):]
    if name_hex.startswith(CIP68_USER_LABEL):
        name_hex = name_hex[len(CIP68_USER_LABEL):]
    try:
        raw = bytes.fromhex(name_hex).decode("utf-8", errors="ignore")
    except ValueError:
        return None
    name = "".join(ch for ch in raw if "\x20" <= ch <= "\x7e")
    return f"${name}" if name else None


# ==============================================================================
# GATEWAY
# ==============================================================================

class DataGateway:
    """
    One instance per process, injected into the orchestrator and scheduler.
    """

    def __init__(
        self,
        taptools: Optional[TapToolsClient] = None,
        blockfrost: Optional[BlockfrostClient] = None,
        ledger: Optional[CallLedger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ledger = ledger or CallLedger()
        self.taptools = taptools or TapToolsClient(ledger=self.ledger)
        self.blockfrost = blockfrost or BlockfrostClient(ledger=self.ledger)
        # Clients built elsewhere still report into this gateway's ledger
        self.taptools.ledger = self.ledger
        self.blockfrost.ledger = self.ledger

        self.caches: Dict[str, ResourceCache] = {
            resource: ResourceCache(resource, ttl, clock=clock)
            for resource, ttl in CACHE_TTL.items()
        }

        # resource -> (loader, normalizer)
        self._resources = {
            "top_volume": (self.taptools.top_volume, lambda p: normalize_candidates(p, "volume")),
            "top_mcap": (self.taptools.top_mcap, lambda p: normalize_candidates(p, "mcap")),
            "holders": (self.taptools.top_holders, normalize_holders),
            "liquidity": (self.taptools.pools, normalize_pools),
            "market_cap": (self.taptools.market_cap, normalize_market_cap),
            "links": (self.taptools.links, normalize_links),
            "wallet_trades": (self.taptools.wallet_trades, normalize_trades),
            "wallet_portfolio": (self.taptools.wallet_portfolio, normalize_portfolio),
            "stake_addresses": (self.blockfrost.account_addresses, self._normalize_addresses),
            "address_assets": (self.blockfrost.address, self._normalize_assets),
        }

    @staticmethod
    def _normalize_addresses(payload) -> List[str]:
        if not isinstance(payload, list):
            return []
        out = []
        for row in payload:
            if isinstance(row, dict) and row.get("address"):
                out.append(row["address"])
            elif isinstance(row, str):
                out.append(row)
        return out

    @staticmethod
    def _normalize_assets(payload) -> List[AddressAsset]:
        if not isinstance(payload, dict):
            return []
        return [
            AddressAsset(unit=a["unit"], quantity=str(a.get("quantity", "0")))
            for a in payload.get("amount") or []
            if isinstance(a, dict) and a.get("unit")
        ]

    async def fetch(self, resource: str, key: str, params: Optional[Dict[str, Any]] = None):
        """
        Cached-or-live read of one upstream resource, normalized.

        `key` identifies the subject (unit, address, timeframe); together with
        `params` it forms the cache signature. Returns None when the resource
        is unknown or the upstream yields nothing usable.
        """
        if resource not in self._resources:
            logger.error(f"Unknown gateway resource: {resource}")
            return None

        params = params or {}
        loader, normalize = self._resources[resource]

        async def load():
            try:
                payload = await loader(**params)
                if payload is None:
                    return None
                return normalize(payload)
            except Exception as e:
                logger.error(f"Gateway {resource} failed for {key}: {e}")
                return None

        cache = self.caches.get(resource)
        if cache is None:
            return await load()
        signature = (key, tuple(sorted(params.items())))
        return await cache.get_or_compute(signature, load)

    # --------------------------------------------------------------------------
    # Typed helpers
    # --------------------------------------------------------------------------

    async def top_volume_tokens(self, timeframe: str = "1h", limit: int = 100) -> List[CandidateToken]:
        return await self.fetch(
            "top_volume", timeframe, {"timeframe": timeframe, "per_page": limit}
        ) or []

    async def top_mcap_tokens(self, page: int, per_page: int = 20) -> List[CandidateToken]:
        return await self.fetch(
            "top_mcap", f"page:{page}", {"page": page, "per_page": per_page}
        ) or []

    async def top_holders(self, unit: str, page: int = 1, per_page: int = TOP_HOLDERS_PER_PAGE) -> List[HolderRecord]:
        return await self.fetch(
            "holders", unit, {"unit": unit, "page": page, "per_page": per_page}
        ) or []

    async def liquidity_pools(self, unit: str) -> List[LiquidityPool]:
        return await self.fetch("liquidity", unit, {"unit": unit}) or []

    async def market_cap(self, unit: str) -> Optional[MarketCapSummary]:
        return await self.fetch("market_cap", unit, {"unit": unit})

    async def token_links(self, unit: str) -> Dict[str, str]:
        return await self.fetch("links", unit, {"unit": unit}) or {}

    async def stake_addresses(self, stake_address: str) -> List[str]:
        return await self.fetch(
            "stake_addresses", stake_address, {"stake_address": stake_address}
        ) or []

    async def address_assets(self, address: str) -> List[AddressAsset]:
        return await self.fetch("address_assets", address, {"address": address}) or []

    async def wallet_trades(self, address: str, unit: str, page: int = 1, per_page: int = 50) -> Optional[List[WalletTrade]]:
        """None when the history could not be read, [] when the wallet never traded."""
        return await self.fetch(
            "wallet_trades", address,
            {"address": address, "unit": unit, "page": page, "per_page": per_page},
        )

    async def wallet_portfolio(self, address: str) -> Optional[WalletPortfolio]:
        return await self.fetch("wallet_portfolio", address, {"address": address})

    async def resolve_handles(self, address: str) -> List[str]:
        """ADA Handles held by one payment address, as "$name"."""
        handles = []
        for asset in await self.address_assets(address):
            if asset.unit == LOVELACE:
                continue
            handle = decode_handle(asset.unit)
            if handle and handle not in handles:
                handles.append(handle)
        return handles

    # --------------------------------------------------------------------------
    # Telemetry
    # --------------------------------------------------------------------------

    def get_call_stats(self) -> Dict[str, Any]:
        stats = self.ledger.stats()
        stats["cache"] = {
            name: {"entries": len(c), "hits": c.hits, "misses": c.misses}
            for name, c in self.caches.items()
        }
        return stats

    def reset_call_stats(self):
        self.ledger.reset()

    async def close(self):
        await self.taptools.aclose()
        await self.blockfrost.aclose()
