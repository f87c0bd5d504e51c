"""
Liquidity summary over a token's ADA-paired pools.

ADA locked counts only the ADA side of each pool. The pool risk level
(LOW >= 1M ADA, MEDIUM >= LOW_LIQUIDITY_ADA, else HIGH) feeds the scorer;
the 0-10 liquidity score is informational.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from tokenrisk.core.constants import DEEP_LIQUIDITY_ADA, LIQUIDITY_SCORE_BANDS, LOW_LIQUIDITY_ADA
from tokenrisk.gateway.models import LiquidityPool

ADA_TICKERS = {"ADA", "lovelace"}


@dataclass
class LiquiditySummary:
    has_liquidity: bool = False
    total_ada_locked: float = 0.0
    pool_count: int = 0
    exchanges: List[str] = field(default_factory=list)
    risk_level: str = "EXTREME"
    liquidity_score: int = 0
    pools: List[LiquidityPool] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasLiquidity": self.has_liquidity,
            "totalAdaLocked": self.total_ada_locked,
            "poolCount": self.pool_count,
            "exchanges": self.exchanges,
            "riskLevel": self.risk_level,
            "liquidityScore": self.liquidity_score,
        }


def ada_side(pool: LiquidityPool) -> float:
    if pool.token_a_ticker in ADA_TICKERS:
        return pool.token_a_locked
    if pool.token_b_ticker in ADA_TICKERS:
        return pool.token_b_locked
    return 0.0


def liquidity_score(total_ada_locked: float) -> int:
    for floor, score in LIQUIDITY_SCORE_BANDS:
        if total_ada_locked >= floor:
            return score
    return 0


def liquidity_risk_level(total_ada_locked: float) -> str:
    if total_ada_locked >= DEEP_LIQUIDITY_ADA:
        return "LOW"
    if total_ada_locked >= LOW_LIQUIDITY_ADA:
        return "MEDIUM"
    return "HIGH"


def summarize_liquidity(pools: Optional[List[LiquidityPool]]) -> LiquiditySummary:
    if not pools:
        return LiquiditySummary()

    total = sum(ada_side(p) for p in pools)
    exchanges = sorted({p.exchange for p in pools})
    return LiquiditySummary(
        has_liquidity=True,
        total_ada_locked=total,
        pool_count=len(pools),
        exchanges=exchanges,
        risk_level=liquidity_risk_level(total),
        liquidity_score=liquidity_score(total),
        pools=list(pools),
    )
