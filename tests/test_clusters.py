"""
Stake cluster tests.

Tests:
1. Every holder lands in exactly one cluster keyed by stake identity
2. Clusters sort by combined percentage and bucket counts are monotone
3. Payment-address holders are counted as contract violations
4. Deep dive flags connected wallets, dominance, trading and low diversity
5. A failing deep-dive lookup marks only that cluster
"""
import asyncio

from tokenrisk.engines.clusters import check_stake_identities, deep_dive, group_clusters
from tokenrisk.engines.holders import analyze_holders
from tokenrisk.gateway.models import HolderRecord, WalletPortfolio, WalletTrade

from conftest import FakeGateway, holders, make_unit

UNIT = make_unit("SNEK")


def test_clusters_partition_holders():
    records = [
        HolderRecord("stake1a", 40, percentage=4.0),
        HolderRecord("stake1b", 20, percentage=2.0),
        HolderRecord("stake1a", 10, percentage=1.0),
        HolderRecord("stake1c", 5, percentage=0.5),
    ]
    result = group_clusters(records)

    assert result.total_clusters == 3
    assert sum(c.member_count for c in result.clusters) == len(records)
    members = [m for c in result.clusters for m in c.members]
    assert sorted(map(id, members)) == sorted(map(id, records))
    assert all(m.stake_identity == c.stake_identity for c in result.clusters for m in c.members)
    assert len({c.stake_identity for c in result.clusters}) == result.total_clusters
    assert {c.stake_identity for c in result.clusters} == {r.stake_identity for r in records}
    top = result.clusters[0]
    assert top.stake_identity == "stake1a"
    assert top.combined_percentage == 5.0
    assert top.is_suspicious
    assert result.suspicious_clusters == 1


def test_cluster_buckets_monotone():
    analysis = analyze_holders(holders(9, 8, 6, 4, 2, 71), circulating_supply=100)
    result = group_clusters(analysis.holders)

    percentages = [c.combined_percentage for c in result.clusters]
    assert percentages == sorted(percentages, reverse=True)
    assert result.clusters_over_3 >= result.clusters_over_5 >= result.clusters_over_10
    assert result.clusters_over_3 == 4
    assert result.clusters_over_5 == 3


def test_payment_addresses_reported():
    records = [HolderRecord("addr1qxyz", 10), HolderRecord("stake1a", 10)]
    assert check_stake_identities(records) == 1


def test_empty_clusters():
    result = group_clusters([])
    assert result.total_clusters == 0
    assert result.clusters == []


def test_deep_dive_flags():
    records = [HolderRecord("stake1whale", 300, percentage=30.0), HolderRecord("stake1small", 10, percentage=1.0)]
    clusters = group_clusters(records).clusters
    gateway = FakeGateway(
        stakes={"stake1whale": [f"addr1w{i}" for i in range(12)]},
        portfolios={
            "stake1whale": WalletPortfolio(num_fts=2),
            "stake1small": WalletPortfolio(num_fts=40),
        },
        trades={"stake1whale": [WalletTrade(action="Buy")] * 25},
    )

    result = asyncio.run(deep_dive(clusters, UNIT, gateway))

    whale, small = result.clusters
    assert whale.flags == [
        "MANY_CONNECTED_WALLETS", "DOMINANT_STAKE", "HIGH_TRADING_ACTIVITY", "LIMITED_TOKEN_DIVERSITY",
    ]
    assert whale.is_high_risk
    assert small.flags == []
    assert not small.is_high_risk
    assert result.high_risk_clusters == 1
    assert result.total_flags == 4


def test_deep_dive_error_isolated():
    records = [HolderRecord("stake1a", 10, percentage=5.0), HolderRecord("stake1b", 5, percentage=2.0)]
    clusters = group_clusters(records).clusters
    gateway = FakeGateway(failing={"wallet_portfolio"})

    result = asyncio.run(deep_dive(clusters, UNIT, gateway))

    assert len(result.clusters) == 2
    assert all(c.error for c in result.clusters)
    assert result.high_risk_clusters == 0


def test_deep_dive_respects_limit():
    records = [HolderRecord(f"stake1{i}", 10, percentage=1.0) for i in range(5)]
    clusters = group_clusters(records).clusters
    gateway = FakeGateway()

    result = asyncio.run(deep_dive(clusters, UNIT, gateway, limit=2))

    assert len(result.clusters) == 2
    assert sum(1 for call in gateway.calls if call[0] == "stake_addresses") == 2
