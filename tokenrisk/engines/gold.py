"""
Gold-standard enrichments

Extra phases layered on top of the deep pipeline:
  - FREE_RECIPIENTS: top holders that never bought the token
  - ACQUISITION_METHODS: buyer / receiver / trader classification
  - INSIDER_NETWORKS: free recipients sharing a stake-address prefix

Trade histories are read once per holder (top FREE_RECIPIENT_SCAN_LIMIT)
and shared by the free-recipient and acquisition phases.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Any

from tokenrisk.core.constants import (
    ACQUISITION_SCAN_LIMIT,
    FREE_RECIPIENT_SCAN_LIMIT,
    FREE_RECIPIENT_TRADES_PER_PAGE,
    HIGH_FREE_ALLOCATION_RATIO,
    INSIDER_STAKE_PREFIX_LEN,
    LOVELACE,
    MASSIVE_FREE_DISTRIBUTION_PCT,
)
from tokenrisk.gateway.models import HolderRecord, WalletTrade

logger = logging.getLogger("engines.gold")


@dataclass
class FreeRecipientAnalysis:
    recipients: List[Dict[str, Any]] = field(default_factory=list)
    holders_analyzed: int = 0
    total_free_quantity: float = 0.0
    free_percentage: float = 0.0
    patterns: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "freeRecipients": self.recipients,
            "totalFreeRecipients": len(self.recipients),
            "totalFreeTokens": self.total_free_quantity,
            "freeTokenPercentage": round(self.free_percentage, 4),
            "suspiciousPatterns": self.patterns,
            "holdersAnalyzed": self.holders_analyzed,
        }


@dataclass
class AcquisitionAnalysis:
    profiles: List[Dict[str, Any]] = field(default_factory=list)

    def count(self, kind: str) -> int:
        return sum(1 for p in self.profiles if p["type"] == kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profiles": self.profiles,
            "summary": {
                "totalAnalyzed": len(self.profiles),
                "pureBuyers": self.count("PURE_BUYER"),
                "pureReceivers": self.count("PURE_RECEIVER"),
                "traders": self.count("TRADER"),
                "unknown": self.count("UNKNOWN"),
            },
        }


@dataclass
class InsiderNetworkAnalysis:
    networks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "insiderNetworks": self.networks,
            "totalNetworks": len(self.networks),
            "totalInsiders": sum(n["totalMembers"] for n in self.networks),
        }


# ---------------------------------------------------------------------------
# Trade classification
# ---------------------------------------------------------------------------

def _involves(trade: WalletTrade, unit: str) -> bool:
    # trades are requested per unit; rows without token ids are taken as matching
    if not trade.token_a and not trade.token_b:
        return True
    return unit in (trade.token_a, trade.token_b)


def is_buy(trade: WalletTrade, unit: str) -> bool:
    if not _involves(trade, unit):
        return False
    if trade.token_a == LOVELACE and trade.token_b == unit:
        return True
    return trade.action.lower() == "buy"


def is_sell(trade: WalletTrade, unit: str) -> bool:
    if not _involves(trade, unit):
        return False
    if trade.token_a == unit and trade.token_b == LOVELACE:
        return True
    return trade.action.lower() == "sell"


def suspicion_level(percentage: float) -> str:
    if percentage > 10:
        return "EXTREME"
    if percentage > 5:
        return "HIGH"
    if percentage > 2:
        return "MEDIUM"
    return "LOW"


def network_level(percentage: float) -> str:
    if percentage > 15:
        return "EXTREME"
    if percentage > 10:
        return "HIGH"
    return "MEDIUM"


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

async def collect_trades(
    holders: List[HolderRecord],
    unit: str,
    gateway,
    limit: int = FREE_RECIPIENT_SCAN_LIMIT,
) -> Dict[str, List[WalletTrade]]:
    """Histories keyed by stake; holders whose history is unavailable are left out."""
    trades = {}
    for holder in holders[:limit]:
        try:
            history = await gateway.wallet_trades(
                holder.stake_identity, unit, 1, FREE_RECIPIENT_TRADES_PER_PAGE
            )
        except Exception as e:
            logger.error(f"Trade history failed for {holder.stake_identity[:16]}...: {e}")
            continue
        if history is None:
            logger.warning(f"Trade history unavailable for {holder.stake_identity[:16]}...")
            continue
        trades[holder.stake_identity] = history
    return trades


def find_free_recipients(
    holders: List[HolderRecord],
    trades: Dict[str, List[WalletTrade]],
    unit: str,
    limit: int = FREE_RECIPIENT_SCAN_LIMIT,
) -> FreeRecipientAnalysis:
    scanned = [h for h in holders[:limit] if h.stake_identity in trades]
    recipients = []
    for holder in scanned:
        if any(is_buy(t, unit) for t in trades[holder.stake_identity]):
            continue
        recipients.append({
            "rank": holder.rank,
            "stakeAddress": holder.stake_identity,
            "handle": holder.handle,
            "amount": holder.quantity,
            "percentage": round(holder.percentage, 4),
            "acquisitionMethod": "FREE_RECEIPT",
            "suspiciousLevel": suspicion_level(holder.percentage),
        })
    recipients.sort(key=lambda r: r["percentage"], reverse=True)

    free_quantity = sum(r["amount"] for r in recipients)
    free_pct = sum(r["percentage"] for r in recipients)

    patterns = []
    if holders and len(recipients) > len(holders) * HIGH_FREE_ALLOCATION_RATIO:
        patterns.append({
            "type": "HIGH_FREE_ALLOCATION",
            "description": f"{len(recipients)} holders received tokens without buying",
            "riskLevel": "HIGH",
        })
    if free_pct > MASSIVE_FREE_DISTRIBUTION_PCT:
        patterns.append({
            "type": "MASSIVE_FREE_DISTRIBUTION",
            "description": f"{free_pct:.1f}% of supply given away for free",
            "riskLevel": "EXTREME",
        })

    return FreeRecipientAnalysis(
        recipients=recipients,
        holders_analyzed=len(scanned),
        total_free_quantity=free_quantity,
        free_percentage=free_pct,
        patterns=patterns,
    )


def classify_acquisition(
    holders: List[HolderRecord],
    trades: Dict[str, List[WalletTrade]],
    unit: str,
    limit: int = ACQUISITION_SCAN_LIMIT,
) -> AcquisitionAnalysis:
    profiles = []
    for holder in holders[:limit]:
        history = trades.get(holder.stake_identity)
        if history is None:
            kind, buys, sells = "UNKNOWN", 0, 0
        else:
            buys = sum(1 for t in history if is_buy(t, unit))
            sells = sum(1 for t in history if is_sell(t, unit))
            if buys and not sells:
                kind = "PURE_BUYER"
            elif not buys and not sells:
                kind = "PURE_RECEIVER"
            elif buys and sells:
                kind = "TRADER"
            else:
                kind = "UNKNOWN"
        profiles.append({
            "rank": holder.rank,
            "stakeAddress": holder.stake_identity,
            "amount": holder.quantity,
            "buyTrades": buys,
            "sellTrades": sells,
            "type": kind,
        })
    return AcquisitionAnalysis(profiles=profiles)


def detect_insider_networks(free: FreeRecipientAnalysis) -> InsiderNetworkAnalysis:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for recipient in free.recipients:
        prefix = recipient["stakeAddress"][:INSIDER_STAKE_PREFIX_LEN]
        groups.setdefault(prefix, []).append(recipient)

    networks = []
    for prefix, members in groups.items():
        if len(members) < 2:
            continue
        total_pct = sum(m["percentage"] for m in members)
        networks.append({
            "type": "CONNECTED_FREE_RECIPIENTS",
            "groupId": prefix,
            "members": members,
            "totalMembers": len(members),
            "totalAmount": sum(m["amount"] for m in members),
            "totalPercentage": round(total_pct, 4),
            "suspicionLevel": network_level(total_pct),
        })
    return InsiderNetworkAnalysis(networks=networks)
