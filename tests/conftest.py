"""
Shared in-memory fakes for the gateway, store and dispatcher.
"""
from tokenrisk.core.errors import PersistenceError
from tokenrisk.gateway.models import (
    CandidateToken,
    HolderRecord,
    LiquidityPool,
)

POLICY = "ab" * 28


def make_unit(name: str) -> str:
    return POLICY + name.encode().hex()


def holders(*quantities, prefix="stake1u"):
    return [HolderRecord(stake_identity=f"{prefix}{i:04d}", quantity=q) for i, q in enumerate(quantities)]


class FakeGateway:
    """
    Typed-helper surface of DataGateway backed by dicts. Methods listed in
    `failing` raise instead of returning data.
    """

    def __init__(self, **data):
        self.volume = data.get("volume", [])
        self.mcap_pages = data.get("mcap_pages", {})
        self.holders = data.get("holders", {})
        self.pools = data.get("pools", {})
        self.mcap = data.get("mcap", {})
        self.links = data.get("links", {})
        self.stakes = data.get("stakes", {})
        self.assets = data.get("assets", {})
        self.handles = data.get("handles", {})
        self.trades = data.get("trades", {})
        self.portfolios = data.get("portfolios", {})
        self.failing = set(data.get("failing", ()))
        self.calls = []
        self.resets = 0

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    async def top_volume_tokens(self, timeframe="1h", limit=100):
        self._call("top_volume_tokens", timeframe, limit)
        return list(self.volume)

    async def top_mcap_tokens(self, page, per_page=20):
        self._call("top_mcap_tokens", page)
        return list(self.mcap_pages.get(page, []))

    async def top_holders(self, unit, page=1, per_page=100):
        self._call("top_holders", unit)
        return list(self.holders.get(unit, []))

    async def liquidity_pools(self, unit):
        self._call("liquidity_pools", unit)
        return list(self.pools.get(unit, []))

    async def market_cap(self, unit):
        self._call("market_cap", unit)
        return self.mcap.get(unit)

    async def token_links(self, unit):
        self._call("token_links", unit)
        return dict(self.links.get(unit, {}))

    async def stake_addresses(self, stake):
        self._call("stake_addresses", stake)
        return list(self.stakes.get(stake, []))

    async def address_assets(self, address):
        self._call("address_assets", address)
        return list(self.assets.get(address, []))

    async def resolve_handles(self, address):
        self._call("resolve_handles", address)
        return list(self.handles.get(address, []))

    async def wallet_trades(self, address, unit, page=1, per_page=50):
        self._call("wallet_trades", address, unit)
        history = self.trades.get(address, [])
        return None if history is None else list(history)

    async def wallet_portfolio(self, address):
        self._call("wallet_portfolio", address)
        return self.portfolios.get(address)

    def get_call_stats(self):
        return {"total_calls": len(self.calls)}

    def reset_call_stats(self):
        self.resets += 1
        self.calls = []


class FakeStore:
    def __init__(self, fail_writes=False):
        self.tokens = {}
        self.holders = {}
        self.mappings = {}
        self.history = []
        self.fail_writes = fail_writes

    def _check(self):
        if self.fail_writes:
            raise PersistenceError("database unavailable")

    async def upsert_token(self, token):
        self._check()
        self.tokens[token.unit] = token

    async def find_token_by_unit(self, unit):
        return self.tokens.get(unit)

    async def find_token_by_ticker(self, ticker):
        unit = self.mappings.get(ticker.upper())
        if unit:
            return self.tokens.get(unit)
        for token in self.tokens.values():
            if token.ticker and token.ticker.upper() == ticker.upper():
                return token
        return None

    async def list_known_units(self):
        return set(self.tokens)

    async def existing_units(self, units):
        return {u for u in units if u in self.tokens}

    async def save_ticker_mapping(self, ticker, unit, confidence=1.0, source="analysis"):
        self._check()
        self.mappings[ticker.upper()] = unit

    async def save_holders(self, unit, holders):
        self._check()
        self.holders[unit] = list(holders)

    async def save_analysis(self, unit, risk_score, verdict, top_holder_percentage, holder_count, analysis_data):
        self._check()
        self.history.append({
            "unit": unit,
            "riskScore": risk_score,
            "verdict": verdict,
            "topHolderPercentage": top_holder_percentage,
            "holderCount": holder_count,
        })

    async def analysis_history(self, unit, limit=20):
        return [h for h in reversed(self.history) if h["unit"] == unit][:limit]


class FakeDispatcher:
    def __init__(self):
        self.payloads = []

    async def send_suspicious_tokens(self, alerts):
        self.payloads.append({"type": "suspicious_tokens", "alerts": alerts})
        return True

    async def send_cycle_summary(self, summary):
        self.payloads.append({"type": "cycle_summary", "summary": summary})
        return True

    async def forward_analysis(self, ticker, analysis, source, gold=False):
        self.payloads.append({"type": "gold_analysis" if gold else "analysis", "ticker": ticker, "source": source})
        return True

    def of_type(self, kind):
        return [p for p in self.payloads if p["type"] == kind]


def candidate(name, volume=5000.0, source="volume", market_cap=None):
    return CandidateToken(
        unit=make_unit(name), ticker=name, name=name, price=0.01,
        volume=volume, market_cap=market_cap, source=source,
    )


def ada_pool(ada_locked, exchange="Minswap"):
    return LiquidityPool(
        exchange=exchange, pool_id="pool1", token_a_ticker="TOKEN",
        token_a_locked=1_000_000, token_b_ticker="ADA", token_b_locked=ada_locked,
    )

