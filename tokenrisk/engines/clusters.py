"""
Stake Cluster Analyzer

Precondition: holder entries are already stake-level identities. The
holder provider aggregates balances per stake key, so one stake address is
one economic actor. A provider that returns raw payment addresses (addr1...)
breaks this contract; such entries are reported as a warning, since grouping
would then silently under-count concentration.

group_clusters() is pure. deep_dive() reads from the gateway.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from tokenrisk.core.constants import (
    SUSPICIOUS_SINGLE_MEMBER_PCT,
    DEEP_DIVE_CLUSTER_LIMIT,
    DEEP_DIVE_TRADES_PER_PAGE,
    MANY_CONNECTED_WALLETS,
    DOMINANT_STAKE_PCT,
    HIGH_TRADE_COUNT,
    LOW_TOKEN_DIVERSITY,
    HIGH_RISK_MIN_FLAGS,
)
from tokenrisk.gateway.models import HolderRecord

logger = logging.getLogger("engines.clusters")

PAYMENT_ADDRESS_PREFIXES = ("addr1", "addr_test1")


@dataclass
class StakeCluster:
    stake_identity: str
    members: List[HolderRecord] = field(default_factory=list)
    combined_quantity: float = 0.0
    combined_percentage: float = 0.0
    is_suspicious: bool = False
    connected_addresses: List[str] = field(default_factory=list)
    trade_count: int = 0
    token_diversity: Optional[int] = None
    flags: List[str] = field(default_factory=list)
    is_high_risk: bool = False
    error: Optional[str] = None

    @property
    def member_count(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stakeAddress": self.stake_identity,
            "memberCount": self.member_count,
            "combinedQuantity": self.combined_quantity,
            "combinedPercentage": round(self.combined_percentage, 4),
            "isSuspicious": self.is_suspicious,
            "connectedWallets": len(self.connected_addresses),
            "recentTrades": self.trade_count,
            "tokenDiversity": self.token_diversity,
            "flags": list(self.flags),
            "isHighRisk": self.is_high_risk,
            "error": self.error,
        }


@dataclass
class ClusterAnalysis:
    clusters: List[StakeCluster] = field(default_factory=list)
    total_clusters: int = 0
    suspicious_clusters: int = 0
    top_cluster_percentage: float = 0.0
    clusters_over_3: int = 0
    clusters_over_5: int = 0
    clusters_over_10: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalClusters": self.total_clusters,
            "suspiciousClusters": self.suspicious_clusters,
            "topClusterPercentage": round(self.top_cluster_percentage, 4),
            "clustersOver3Percent": self.clusters_over_3,
            "clustersOver5Percent": self.clusters_over_5,
            "clustersOver10Percent": self.clusters_over_10,
            "clusters": [c.to_dict() for c in self.clusters],
        }


@dataclass
class DeepDiveAnalysis:
    clusters: List[StakeCluster] = field(default_factory=list)
    total_flags: int = 0
    high_risk_clusters: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detailedClusters": [c.to_dict() for c in self.clusters],
            "totalSuspiciousFlags": self.total_flags,
            "highRiskClusters": self.high_risk_clusters,
        }


def check_stake_identities(holders: List[HolderRecord]) -> int:
    """Count entries that look like payment addresses; logs a warning if any."""
    violations = sum(1 for h in holders if h.stake_identity.startswith(PAYMENT_ADDRESS_PREFIXES))
    if violations:
        logger.warning(
            f"{violations} holder entries are payment addresses, not stake identities; "
            "cluster grouping will under-count concentration"
        )
    return violations


def group_clusters(holders: List[HolderRecord]) -> ClusterAnalysis:
    if not holders:
        return ClusterAnalysis()

    check_stake_identities(holders)

    groups: Dict[str, StakeCluster] = {}
    for holder in holders:
        cluster = groups.get(holder.stake_identity)
        if cluster is None:
            cluster = groups[holder.stake_identity] = StakeCluster(stake_identity=holder.stake_identity)
        cluster.members.append(holder)
        cluster.combined_quantity += holder.quantity
        cluster.combined_percentage += holder.percentage

    clusters = list(groups.values())
    for c in clusters:
        c.is_suspicious = c.member_count > 1 or c.members[0].percentage > SUSPICIOUS_SINGLE_MEMBER_PCT
    clusters.sort(key=lambda c: c.combined_percentage, reverse=True)

    return ClusterAnalysis(
        clusters=clusters,
        total_clusters=len(clusters),
        suspicious_clusters=sum(1 for c in clusters if c.is_suspicious),
        top_cluster_percentage=clusters[0].combined_percentage,
        clusters_over_3=sum(1 for c in clusters if c.combined_percentage > 3),
        clusters_over_5=sum(1 for c in clusters if c.combined_percentage > 5),
        clusters_over_10=sum(1 for c in clusters if c.combined_percentage > 10),
    )


def flag_cluster(cluster: StakeCluster) -> List[str]:
    flags = []
    if len(cluster.connected_addresses) > MANY_CONNECTED_WALLETS:
        flags.append("MANY_CONNECTED_WALLETS")
    if cluster.combined_percentage > DOMINANT_STAKE_PCT:
        flags.append("DOMINANT_STAKE")
    if cluster.trade_count > HIGH_TRADE_COUNT:
        flags.append("HIGH_TRADING_ACTIVITY")
    if cluster.token_diversity is not None and cluster.token_diversity <= LOW_TOKEN_DIVERSITY:
        flags.append("LIMITED_TOKEN_DIVERSITY")
    return flags


async def deep_dive(
    clusters: List[StakeCluster],
    unit: str,
    gateway,
    limit: int = DEEP_DIVE_CLUSTER_LIMIT,
) -> DeepDiveAnalysis:
    """
    Per-cluster investigation of the top `limit` clusters: connected payment
    addresses (indexer), portfolio diversity and trade count (market API).
    A cluster carrying HIGH_RISK_MIN_FLAGS or more flags is high-risk.
    """
    detailed = []
    for cluster in clusters[:limit]:
        try:
            cluster.connected_addresses = await gateway.stake_addresses(cluster.stake_identity)
            portfolio, trades = await asyncio.gather(
                gateway.wallet_portfolio(cluster.stake_identity),
                gateway.wallet_trades(cluster.stake_identity, unit, 1, DEEP_DIVE_TRADES_PER_PAGE),
            )
            cluster.trade_count = len(trades or [])
            cluster.token_diversity = portfolio.num_fts if portfolio else None
            cluster.flags = flag_cluster(cluster)
            cluster.is_high_risk = len(cluster.flags) >= HIGH_RISK_MIN_FLAGS
        except Exception as e:
            logger.error(f"Deep dive failed for stake {cluster.stake_identity[:16]}...: {e}")
            cluster.error = str(e)
        detailed.append(cluster)

    return DeepDiveAnalysis(
        clusters=detailed,
        total_flags=sum(len(c.flags) for c in detailed),
        high_risk_clusters=sum(1 for c in detailed if c.is_high_risk),
    )
