"""
Holder concentration tests.

Tests:
1. Three holders of 600/200/200 on a 1000 supply: top holder 60%, no pool exclusion
2. A single holder above 10% is excluded as a presumed pool
3. Kept plus excluded holders account for every input holder
4. Empty input yields zeroed aggregates
5. Non-positive or too-small circulating supply falls back to the observed total
6. Whale and major-holder flags follow percentage thresholds
7. A zero supply basis yields zero percentages
8. Percentages never sum past 100 whatever the circulating supply
"""
import pytest

from tokenrisk.engines.holders import analyze_holders

from conftest import holders


def test_top_holder_sixty_percent():
    result = analyze_holders(holders(600, 200, 200), circulating_supply=1000)

    assert result.top_holder_percentage == pytest.approx(60.0)
    assert result.excluded_pools == 0
    assert result.holder_count == 3
    assert [h.rank for h in result.holders] == [1, 2, 3]


def test_single_large_holder_excluded_as_pool():
    result = analyze_holders(holders(150, *([85] * 10)), circulating_supply=1000)

    assert result.excluded_pools == 1
    assert result.excluded_pools_detail[0].percentage == pytest.approx(15.0)
    assert result.excluded_pools_detail[0].is_pool
    assert result.holder_count == 10
    assert result.top_holder_percentage == pytest.approx(8.5)
    assert result.top5_percentage == pytest.approx(42.5)
    assert result.top10_percentage == pytest.approx(85.0)


def test_holder_conservation():
    source = holders(500, 40, 30, 20, 10, 5, 5)
    result = analyze_holders(source, circulating_supply=1000)

    assert result.holder_count + result.excluded_pools == result.original_holder_count == len(source)
    kept = {h.stake_identity for h in result.holders}
    excluded = {h.stake_identity for h in result.excluded_pools_detail}
    assert kept.isdisjoint(excluded)
    assert kept | excluded == {h.stake_identity for h in source}


def test_empty_holders():
    result = analyze_holders([])

    assert result.holder_count == 0
    assert result.top_holder_percentage == 0.0
    assert result.holders == []


def test_supply_fallbacks():
    zero = analyze_holders(holders(50, 50), circulating_supply=0)
    assert zero.supply_used == 100
    assert zero.top_holder_percentage == pytest.approx(50.0)

    small = analyze_holders(holders(50, 50), circulating_supply=10)
    assert small.supply_used == 100

    missing = analyze_holders(holders(30, 10))
    assert missing.supply_used == 40


def test_whale_and_major_flags():
    result = analyze_holders(holders(50, 20, 5), circulating_supply=1000)

    flags = [(h.is_whale, h.is_major_holder) for h in result.holders]
    assert flags == [(True, True), (False, True), (False, False)]
    assert result.whale_count == 1
    assert result.major_holder_count == 2


def test_zero_supply_gives_zero_percentages():
    result = analyze_holders(holders(0, 0))

    assert result.supply_used == 0
    assert [h.percentage for h in result.holders] == [0.0, 0.0]
    assert result.top_holder_percentage == 0.0


@pytest.mark.parametrize("supply", [None, 100, 1000, 10_000_000])
def test_percentages_conserved(supply):
    source = holders(300, 250, 200, 150, 100)
    result = analyze_holders(source, circulating_supply=supply)

    kept = sum(h.percentage for h in result.holders)
    excluded = sum(h.percentage for h in result.excluded_pools_detail)
    assert kept + excluded <= 100.5
    assert kept <= 100.5
