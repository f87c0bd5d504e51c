"""
Monitoring scheduler tests.

Tests:
1. A second cycle over an unchanged candidate list finds zero new tokens
2. Volume provenance wins when a unit is in both lists; out-of-band mcap rows drop
3. Denylisted tokens are skipped before the per-cycle cap is applied
4. High-risk analyses raise alerts and reach the dispatcher
5. Gold analysis only above the volume threshold
6. Overlapping cycles are skipped
7. A failing store lookup falls back to the in-memory known set
8. Every cycle emits a summary and resets call stats
9. The analysis budget resets each cycle and bounds the analyses started
10. Partitioning the same candidates twice yields the same new set
"""
import asyncio

from tokenrisk.engines.pipeline import AnalysisOrchestrator
from tokenrisk.gateway.models import Token
from tokenrisk.workers.monitor import MonitoringScheduler, exclusion_reason

from conftest import FakeDispatcher, FakeGateway, FakeStore, candidate, holders, make_unit


def build(gateway, store=None, cap=3):
    store = store or FakeStore()
    dispatcher = FakeDispatcher()
    scheduler = MonitoringScheduler(
        gateway,
        store,
        orchestrator=AnalysisOrchestrator(gateway, store),
        dispatcher=dispatcher,
        inter_token_delay=0,
        new_token_cap=cap,
    )
    return scheduler, store, dispatcher


def test_second_cycle_finds_nothing_new():
    gateway = FakeGateway(volume=[candidate("ALPHA"), candidate("BETA")])
    scheduler, store, _ = build(gateway)

    async def run():
        return await scheduler.run_cycle(), await scheduler.run_cycle()

    first, second = asyncio.run(run())

    assert first.new_tokens == 2
    assert len(first.analyzed) == 2
    assert second.new_tokens == 0
    assert second.existing_tokens == 2
    assert second.analyzed == []
    assert set(store.tokens) == {make_unit("ALPHA"), make_unit("BETA")}


def test_volume_provenance_wins_in_merge():
    shared = candidate("SHARED", source="volume")
    gateway = FakeGateway(
        volume=[shared],
        mcap_pages={
            7: [
                candidate("SHARED", source="mcap", market_cap=50_000),
                candidate("MIDCAP", source="mcap", market_cap=100_000),
                candidate("BIGCAP", source="mcap", market_cap=5_000_000),
            ],
        },
    )
    scheduler, _, _ = build(gateway)

    volume, mcap, merged = asyncio.run(scheduler.collect_candidates())

    assert [t.ticker for t in mcap] == ["SHARED", "MIDCAP"]
    assert {t.ticker: t.source for t in merged} == {"SHARED": "volume", "MIDCAP": "mcap"}

    summary = asyncio.run(scheduler.run_cycle())
    assert [a["ticker"] for a in summary.analyzed] == ["SHARED"]
    assert summary.saved == 2


def test_denylist_applied_before_cap():
    gateway = FakeGateway(volume=[
        candidate("USDM"), candidate("iusd"), candidate("ONE"), candidate("TWO"), candidate("THREE"), candidate("FOUR"),
    ])
    scheduler, _, _ = build(gateway, cap=3)

    summary = asyncio.run(scheduler.run_cycle())

    assert [a["ticker"] for a in summary.analyzed] == ["ONE", "TWO", "THREE"]
    assert [s["reason"] for s in summary.skipped] == ["Stablecoin", "Stablecoin"]


def test_exclusion_reason():
    assert exclusion_reason("snek", None) == "Known Safe Token"
    assert exclusion_reason("XYZ", "WBTC") == "Bridge Token"
    assert exclusion_reason("NEW", "New Token") is None
    assert exclusion_reason("NEW", None, extra={"NEW"}) == "Operator Excluded"
    assert exclusion_reason(None, "  ") is None


def test_high_risk_token_alerts():
    risky = candidate("RUG")
    gateway = FakeGateway(volume=[risky], holders={risky.unit: holders(600, 200, 200)})
    scheduler, _, dispatcher = build(gateway)

    summary = asyncio.run(scheduler.run_cycle())

    assert len(summary.alerts) == 1
    alert = summary.alerts[0]
    assert alert["ticker"] == "RUG"
    assert alert["riskScore"] >= 7
    assert any(r.startswith("High Concentration") for r in alert["alertReasons"])
    assert dispatcher.of_type("suspicious_tokens")[0]["alerts"] == summary.alerts
    assert scheduler.suspicious_tokens(limit=5) == summary.alerts
    assert scheduler.suspicious_tokens(limit=0) == []
    assert scheduler.history(hours=1)["suspiciousTokens"] == summary.alerts
    assert scheduler.status()["alertsTriggered"] == 1


def test_gold_only_above_volume_threshold():
    gateway = FakeGateway(volume=[candidate("HOT", volume=25_000), candidate("COLD", volume=10)])
    scheduler, _, _ = build(gateway)

    summary = asyncio.run(scheduler.run_cycle())

    assert {a["ticker"]: a["mode"] for a in summary.analyzed} == {"HOT": "gold", "COLD": "deep"}


def test_overlapping_cycle_skipped():
    scheduler, _, _ = build(FakeGateway(volume=[candidate("ALPHA")]))

    async def run():
        async with scheduler._cycle_lock:
            return await scheduler.run_cycle()

    assert asyncio.run(run()) is None
    assert scheduler.state.cycle_count == 0


class BrokenLookupStore(FakeStore):
    async def existing_units(self, units):
        raise RuntimeError("connection refused")


def test_partition_falls_back_to_known_set():
    gateway = FakeGateway(volume=[candidate("ALPHA"), candidate("BETA")])
    scheduler, _, _ = build(gateway, store=BrokenLookupStore())
    scheduler.state.known_units.add(make_unit("ALPHA"))

    new, existing = asyncio.run(scheduler.partition([candidate("ALPHA"), candidate("BETA")]))

    assert [t.ticker for t in new] == ["BETA"]
    assert [t.ticker for t in existing] == ["ALPHA"]


def test_cycle_summary_always_sent():
    gateway = FakeGateway()
    scheduler, _, dispatcher = build(gateway)

    summary = asyncio.run(scheduler.run_cycle())

    assert summary.candidates == 0
    assert gateway.resets == 1
    sent = dispatcher.of_type("cycle_summary")
    assert len(sent) == 1
    assert sent[0]["summary"]["cycle"] == 1
    status = scheduler.status()
    assert status["cycleCount"] == 1
    assert status["lastCheck"] != "Never"
    assert status["nextCheck"] == "Not scheduled"


class BudgetSpyOrchestrator(AnalysisOrchestrator):
    def __init__(self, gateway, store):
        super().__init__(gateway, store)
        self.scheduler = None
        self.seen = []

    async def analyze(self, unit=None, ticker=None, gold=False):
        self.seen.append(self.scheduler.state.budget_used)
        return await super().analyze(unit=unit, ticker=ticker, gold=gold)


def test_budget_resets_each_cycle():
    gateway = FakeGateway(volume=[candidate("ONE"), candidate("TWO"), candidate("THREE")])
    store = FakeStore()
    spy = BudgetSpyOrchestrator(gateway, store)
    scheduler = MonitoringScheduler(
        gateway, store, orchestrator=spy, dispatcher=FakeDispatcher(), inter_token_delay=0, new_token_cap=2,
    )
    spy.scheduler = scheduler

    first = asyncio.run(scheduler.run_cycle())
    assert [a["ticker"] for a in first.analyzed] == ["ONE", "TWO"]
    assert scheduler.state.budget_used == 2

    gateway.volume = [candidate("FOUR")]
    asyncio.run(scheduler.run_cycle())

    assert spy.seen == [1, 2, 1]
    status = scheduler.status()
    assert status["budgetUsed"] == 1
    assert status["apiCallsLastCycle"] == len(gateway.calls)


def test_partition_is_idempotent():
    store = FakeStore()
    known = make_unit("ALPHA")
    store.tokens[known] = Token(unit=known, ticker="ALPHA")
    scheduler, _, _ = build(FakeGateway(), store=store)
    candidates = [candidate("ALPHA"), candidate("BETA"), candidate("GAMMA")]

    async def run():
        return await scheduler.partition(candidates), await scheduler.partition(candidates)

    (new_1, existing_1), (new_2, existing_2) = asyncio.run(run())

    assert [t.unit for t in new_1] == [t.unit for t in new_2] == [make_unit("BETA"), make_unit("GAMMA")]
    assert [t.unit for t in existing_1] == [t.unit for t in existing_2] == [known]
