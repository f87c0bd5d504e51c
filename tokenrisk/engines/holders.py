"""
Holder & Concentration Analyzer

Pure-function module. No I/O.
Takes canonical HolderRecords, returns a HolderAnalysis with per-holder
percentages, pool exclusion and concentration aggregates.

Supply basis:
  - circulating supply when supplied and positive (authoritative)
  - otherwise the observed total of the holder list
  - a circulating supply smaller than the observed total is ignored, so
    percentages over the holder set never exceed 100

Pool filter:
  - any single holder above POOL_THRESHOLD_PCT is presumed to be a DEX
    pool or contract and excluded from concentration math
  - when every holder would be excluded, none is (nothing left to measure)
"""
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Dict, Any

from tokenrisk.core.constants import (
    POOL_THRESHOLD_PCT,
    WHALE_THRESHOLD_PCT,
    MAJOR_HOLDER_THRESHOLD_PCT,
)
from tokenrisk.gateway.models import HolderRecord

logger = logging.getLogger("engines.holders")


@dataclass
class HolderAnalysis:
    holders: List[HolderRecord] = field(default_factory=list)
    excluded_pools_detail: List[HolderRecord] = field(default_factory=list)
    supply_used: float = 0.0
    holder_count: int = 0
    original_holder_count: int = 0
    excluded_pools: int = 0
    whale_count: int = 0
    major_holder_count: int = 0
    top_holder_percentage: float = 0.0
    top5_percentage: float = 0.0
    top10_percentage: float = 0.0

    def to_dict(self, include_holders: bool = True) -> Dict[str, Any]:
        data = {
            "supplyUsed": self.supply_used,
            "holderCount": self.holder_count,
            "originalHolderCount": self.original_holder_count,
            "excludedPools": self.excluded_pools,
            "whaleCount": self.whale_count,
            "majorHolderCount": self.major_holder_count,
            "topHolderPercentage": round(self.top_holder_percentage, 4),
            "top5Percentage": round(self.top5_percentage, 4),
            "top10Percentage": round(self.top10_percentage, 4),
        }
        if include_holders:
            data["holders"] = [h.to_dict() for h in self.holders]
            data["excludedPoolsDetail"] = [h.to_dict() for h in self.excluded_pools_detail]
        return data


def _pct(quantity: float, supply: float) -> float:
    if supply <= 0:
        return 0.0
    return quantity / supply * 100


def analyze_holders(
    holders: List[HolderRecord],
    circulating_supply: Optional[float] = None,
) -> HolderAnalysis:
    if not holders:
        return HolderAnalysis()

    observed_total = sum(max(h.quantity, 0.0) for h in holders)
    supply = observed_total
    if circulating_supply and circulating_supply > 0:
        if circulating_supply >= observed_total:
            supply = circulating_supply
        else:
            logger.warning(
                f"Circulating supply {circulating_supply} below observed holder total "
                f"{observed_total}; using observed total"
            )

    ordered = sorted(holders, key=lambda h: h.quantity, reverse=True)
    scored = [replace(h, percentage=_pct(h.quantity, supply)) for h in ordered]

    pools = [h for h in scored if h.percentage > POOL_THRESHOLD_PCT]
    if pools and len(pools) < len(scored):
        kept = [h for h in scored if h.percentage <= POOL_THRESHOLD_PCT]
        excluded = [replace(h, is_pool=True) for h in pools]
        for h in excluded:
            logger.info(f"Excluding likely liquidity pool {h.stake_identity[:16]}... ({h.percentage:.2f}%)")
    else:
        kept = scored
        excluded = []

    kept = [
        replace(
            h,
            rank=i + 1,
            is_whale=h.percentage > WHALE_THRESHOLD_PCT,
            is_major_holder=h.percentage > MAJOR_HOLDER_THRESHOLD_PCT,
        )
        for i, h in enumerate(kept)
    ]

    return HolderAnalysis(
        holders=kept,
        excluded_pools_detail=excluded,
        supply_used=supply,
        holder_count=len(kept),
        original_holder_count=len(holders),
        excluded_pools=len(excluded),
        whale_count=sum(1 for h in kept if h.is_whale),
        major_holder_count=sum(1 for h in kept if h.is_major_holder),
        top_holder_percentage=kept[0].percentage if kept else 0.0,
        top5_percentage=sum(h.percentage for h in kept[:5]),
        top10_percentage=sum(h.percentage for h in kept[:10]),
    )
