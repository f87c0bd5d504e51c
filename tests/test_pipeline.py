"""
Analysis orchestrator tests.

Tests:
1. An all-empty upstream still yields a full report scored 4
2. A throwing liquidity read is isolated and scores as no liquidity; the
   report carries a title and summary block
3. Tickers resolve through the store, then the top-volume list
4. An unknown ticker raises UnresolvableTokenError
5. Persistence failures are recorded, the report is still returned
6. A successful run persists token, ticker mapping, holders and history
7. Handles found on connected addresses are attached to holders
8. Quick mode skips per-holder calls and reports the coarse verdict
9. Gold mode adds free-recipient, acquisition and insider-network phases
10. Holders whose trade history is unavailable are not counted as free recipients
"""
import asyncio

import pytest

from tokenrisk.core.errors import UnresolvableTokenError
from tokenrisk.engines.pipeline import DEEP_PHASES, GOLD_PHASES, AnalysisOrchestrator
from tokenrisk.gateway.models import HolderRecord, MarketCapSummary, Token, WalletTrade

from conftest import FakeGateway, FakeStore, ada_pool, candidate, holders, make_unit

UNIT = make_unit("SNEK")


def test_empty_upstream_scores_four():
    orchestrator = AnalysisOrchestrator(FakeGateway())

    report = asyncio.run(orchestrator.analyze(unit=UNIT))

    assert report.risk.score == 4
    assert report.risk.risk_factors == ["NO_LIQUIDITY", "NO_SOCIAL_PRESENCE"]
    assert report.phase_errors["HOLDER_ANALYSIS"] == "no data"
    assert report.phase_errors["LIQUIDITY_ANALYSIS"] == "no data"
    assert report.holders.holder_count == 0
    assert "RISK_ASSESSMENT" in report.phases_completed
    assert report.finished_at is not None


def test_liquidity_failure_isolated():
    gateway = FakeGateway(
        holders={UNIT: holders(600, 200, 200)},
        links={UNIT: {"twitter": "https://x.com/snek"}},
        failing={"liquidity_pools"},
    )
    report = asyncio.run(AnalysisOrchestrator(gateway).analyze(unit=UNIT))

    assert "liquidity_pools unavailable" in report.phase_errors["LIQUIDITY_ANALYSIS"]
    assert not report.liquidity.has_liquidity
    assert "NO_LIQUIDITY" in report.risk.risk_factors
    assert report.holders.top_holder_percentage == pytest.approx(60.0)
    assert report.risk.score == 9
    assert "SUSPICIOUS_CLUSTERS" in report.risk.risk_factors
    assert "HOLDER_ANALYSIS" in report.phases_completed

    data = report.to_dict()
    assert data["title"] == f"Deep Risk Analysis: {UNIT}"
    summary = data["summary"]
    assert summary["riskScore"] == 9
    assert summary["verdict"] == "EXTREME_RISK"
    assert summary["recommendation"] == "AVOID"
    assert summary["topHolderPercentage"] == pytest.approx(60.0)
    assert summary["clusterCount"] == 3
    assert summary["suspiciousClusters"] >= 1
    assert summary["liquidityRisk"] == "EXTREME"


def test_resolve_unit_through_store_then_volume():
    store = FakeStore()
    stored = make_unit("HOSKY")
    store.tokens[stored] = Token(unit=stored, ticker="HOSKY")
    gateway = FakeGateway(volume=[candidate("SNEK")])
    orchestrator = AnalysisOrchestrator(gateway, store)

    assert asyncio.run(orchestrator.resolve_unit(None, "hosky")) == stored
    assert asyncio.run(orchestrator.resolve_unit(None, "snek")) == UNIT
    assert asyncio.run(orchestrator.resolve_unit(UNIT, "ignored")) == UNIT


def test_unresolvable_ticker():
    orchestrator = AnalysisOrchestrator(FakeGateway(), FakeStore())

    with pytest.raises(UnresolvableTokenError):
        asyncio.run(orchestrator.analyze(ticker="NOPE"))


def test_persistence_failure_still_returns_report():
    gateway = FakeGateway(holders={UNIT: holders(50, 30, 20)})
    orchestrator = AnalysisOrchestrator(gateway, FakeStore(fail_writes=True))

    report = asyncio.run(orchestrator.analyze(unit=UNIT, ticker="SNEK"))

    assert report.risk is not None
    for key in ("PERSIST_TOKEN", "PERSIST_TICKER_MAPPING", "PERSIST_HOLDERS", "PERSIST_ANALYSIS"):
        assert key in report.phase_errors


def test_successful_run_persists():
    gateway = FakeGateway(
        holders={UNIT: holders(150, *([85] * 10))},
        mcap={UNIT: MarketCapSummary(ticker="SNEK", price=0.002, circulating_supply=1000)},
        pools={UNIT: [ada_pool(250_000)]},
        links={UNIT: {"website": "https://snek.com"}},
    )
    store = FakeStore()

    report = asyncio.run(AnalysisOrchestrator(gateway, store).analyze(unit=UNIT))

    assert report.ticker == "SNEK"
    assert report.token.market_cap == pytest.approx(2.0)
    assert report.phases_completed == DEEP_PHASES
    assert store.tokens[UNIT].risk_score == report.risk.score
    assert store.mappings["SNEK"] == UNIT
    assert len(store.holders[UNIT]) == 11
    assert store.history[0]["verdict"] == report.risk.verdict.value
    assert report.to_dict()["liquidityAnalysis"]["riskLevel"] == "MEDIUM"


def test_handles_attached_to_holders():
    records = [HolderRecord("stake1alice", 60), HolderRecord("stake1bob", 40)]
    gateway = FakeGateway(
        holders={UNIT: records},
        stakes={"stake1alice": ["addr1alice"]},
        handles={"addr1alice": ["$alice"]},
    )

    report = asyncio.run(AnalysisOrchestrator(gateway).analyze(unit=UNIT))

    by_stake = {h.stake_identity: h.handle for h in report.holders.holders}
    assert by_stake == {"stake1alice": "$alice", "stake1bob": None}
    assert report.handles.resolved_handles == 1
    # deep-dive addresses are reused rather than fetched twice
    assert sum(1 for c in gateway.calls if c == ("stake_addresses", "stake1alice")) == 1


def test_quick_assess():
    gateway = FakeGateway(holders={UNIT: holders(600, 200, 200)})

    report = asyncio.run(AnalysisOrchestrator(gateway).quick_assess(unit=UNIT))

    assert report.mode == "quick"
    assert report.headline_verdict == report.risk.coarse_verdict.value == "AVOID"
    assert "STAKE_DEEP_DIVE" not in report.phases_completed
    assert not any(c[0] in ("stake_addresses", "wallet_trades") for c in gateway.calls)
    assert "stakeAnalysis" not in report.to_dict()


def test_gold_phases():
    records = [
        HolderRecord("stake1uinsider000000a", 10),
        HolderRecord("stake1uinsider000000b", 10),
        HolderRecord("stake1ubuyer", 10),
        HolderRecord("stake1utrader", 10),
    ] + [HolderRecord(f"stake1uother{i}", 10) for i in range(6)]
    gateway = FakeGateway(
        holders={UNIT: records},
        trades={
            "stake1ubuyer": [WalletTrade(action="Buy")],
            "stake1utrader": [WalletTrade(action="Buy"), WalletTrade(action="Sell")],
        },
    )

    report = asyncio.run(AnalysisOrchestrator(gateway).analyze(unit=UNIT, gold=True))

    assert report.mode == "gold"
    assert all(phase in report.phases_completed for phase in GOLD_PHASES)
    assert len(report.free_recipients.recipients) == 8
    assert [p["type"] for p in report.free_recipients.patterns] == [
        "HIGH_FREE_ALLOCATION", "MASSIVE_FREE_DISTRIBUTION",
    ]
    assert report.acquisition.count("PURE_BUYER") == 1
    assert report.acquisition.count("TRADER") == 1
    assert report.acquisition.count("PURE_RECEIVER") == 8
    networks = report.insider_networks.networks
    assert len(networks) == 1
    assert networks[0]["totalMembers"] == 2
    assert networks[0]["suspicionLevel"] == "EXTREME"
    assert report.to_dict()["insiderNetworkAnalysis"]["totalNetworks"] == 1


def test_gold_skips_unavailable_trade_histories():
    records = [HolderRecord("stake1ubuyer", 10)] + [HolderRecord(f"stake1uother{i}", 10) for i in range(9)]
    trades = {f"stake1uother{i}": None for i in range(9)}
    trades["stake1ubuyer"] = [WalletTrade(action="Buy")]
    gateway = FakeGateway(holders={UNIT: records}, trades=trades)

    report = asyncio.run(AnalysisOrchestrator(gateway).analyze(unit=UNIT, gold=True))

    assert report.free_recipients.recipients == []
    assert report.free_recipients.patterns == []
    assert report.free_recipients.holders_analyzed == 1
    assert report.acquisition.count("UNKNOWN") == 9
    assert report.acquisition.count("PURE_BUYER") == 1
    assert report.insider_networks.networks == []
