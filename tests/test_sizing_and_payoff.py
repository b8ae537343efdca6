"""
Testes do Sizer, do PayoffSimulator e do Scorer.

Cenário: BTC a $100.000, YES "acima de $100K" a 0.40, call ATM a $1.500.
"""

from decimal import Decimal

from hedge_arb.engine import (
    BinaryPositionGenerator,
    Combo,
    OptionPositionGenerator,
    PayoffSimulator,
    Sizer,
    Sizing,
    find_breakevens,
    price_grid,
    rank_strategies,
    score_strategy,
)
from hedge_arb.models import (
    LegDirection,
    PayoffPoint,
    Strategy,
    MAX_TOTAL_COST,
    MIN_TOTAL_COST,
)

from tests.factories import SPOT, create_mock_binary, create_mock_option


def create_mock_combo(binary_name, option_name, binary=None, option=None) -> Combo:
    binaries = {p.name: p for p in BinaryPositionGenerator().generate(binary or create_mock_binary())}
    options = {p.name: p for p in OptionPositionGenerator().generate([option or create_mock_option()])}
    return Combo(binaries[binary_name], options[option_name])


def create_mock_strategy(profits) -> Strategy:
    payoff = [PayoffPoint(Decimal(i), Decimal(p)) for i, p in enumerate(profits)]
    return Strategy(
        name="mock",
        description="mock",
        legs=[],
        payoff=payoff,
        leg_payoffs=[],
        total_cost=Decimal("0"),
        max_profit=max(p.profit for p in payoff),
        max_loss=min(p.profit for p in payoff),
        breakevens=[],
    )


# ==================== SIZER ====================

def test_sizer_short_yes_long_call():
    combo = create_mock_combo("Short YES above $100K", "Long Call @$100K")
    sizing = Sizer().size(combo)

    assert sizing.is_tradeable
    assert sizing.option_qty == Decimal("1.0")
    assert sizing.binary_qty == 3750
    assert sizing.total_abs_cost == 3000


def test_sizer_long_yes_short_call():
    combo = create_mock_combo("Long YES above $100K", "Short Call @$100K")
    sizing = Sizer().size(combo)

    assert sizing.option_qty == Decimal("1.2")
    assert sizing.binary_qty == 3000
    assert sizing.total_abs_cost == 3000


def test_sizer_out_of_band_returns_zeros():
    expensive = create_mock_option(mid=Decimal("100000"))
    combo = create_mock_combo("Short YES above $100K", "Long Call @$100K", option=expensive)
    sizing = Sizer().size(combo)

    assert not sizing.is_tradeable
    assert sizing.binary_qty == 0
    assert sizing.option_qty == 0
    assert sizing.rejection.code == "OUT_OF_BAND"


def test_sizer_degenerate_denominator():
    binary = create_mock_binary(yes_price=Decimal("0.9995"))
    combo = create_mock_combo("Long YES above $100K", "Short Call @$100K", binary=binary)
    sizing = Sizer().size(combo)

    assert not sizing.is_tradeable
    assert sizing.rejection.code == "DEGENERATE_DENOMINATOR"


def test_sizer_rejects_zero_premium_short():
    binary = create_mock_binary(yes_price=Decimal("0"))
    combo = create_mock_combo("Short YES above $100K", "Long Call @$100K", binary=binary)
    sizing = Sizer().size(combo)

    assert not sizing.is_tradeable
    assert sizing.rejection.code == "DEGENERATE_DENOMINATOR"


def test_sizer_result_is_in_band_or_zero():
    binaries = BinaryPositionGenerator().generate(create_mock_binary())
    for mid in ("20", "300", "1500", "9000", "40000"):
        options = OptionPositionGenerator().generate([create_mock_option(mid=Decimal(mid), half_spread=Decimal("5"))])
        for binary in binaries:
            for option in options:
                if binary.bias == option.bias:
                    continue
                sizing = Sizer().size(Combo(binary, option))
                if sizing.is_tradeable:
                    assert MIN_TOTAL_COST <= sizing.total_abs_cost <= MAX_TOTAL_COST
                    assert sizing.option_qty >= Decimal("0.1")
                else:
                    assert sizing.binary_qty == 0 and sizing.option_qty == 0


# ==================== GRID E BREAKEVENS ====================

def test_price_grid():
    grid = price_grid(SPOT)

    assert len(grid) == 301
    assert grid[0] == 50000
    assert grid[-1] == 150000
    assert grid[150] == 100000
    assert grid == sorted(grid)


def test_breakeven_midpoint():
    payoff = [
        PayoffPoint(Decimal("90000"), Decimal("-10")),
        PayoffPoint(Decimal("91000"), Decimal("10")),
    ]
    assert find_breakevens(payoff) == [Decimal("90500")]


def test_breakeven_both_directions():
    payoff = [
        PayoffPoint(Decimal("1000"), Decimal("-30")),
        PayoffPoint(Decimal("2000"), Decimal("10")),
        PayoffPoint(Decimal("3000"), Decimal("10")),
        PayoffPoint(Decimal("4000"), Decimal("-10")),
    ]
    assert find_breakevens(payoff) == [Decimal("1750"), Decimal("3500")]


def test_no_breakeven_when_always_positive():
    payoff = [PayoffPoint(Decimal(p), Decimal("5")) for p in ("1", "2", "3")]
    assert find_breakevens(payoff) == []


# ==================== SIMULAÇÃO ====================

def test_simulate_short_yes_long_call():
    combo = create_mock_combo("Short YES above $100K", "Long Call @$100K")
    sizing = Sizer().size(combo)
    strategy = PayoffSimulator().simulate(combo, sizing, price_grid(SPOT))

    assert strategy.name == "Short YES above $100K + Long Call @$100K"
    assert strategy.description == "Short YES above $100K (×3,750) + Long Call @$100K (×1.0)"
    assert len(strategy.payoff) == 301

    # Abaixo do strike as pernas se anulam
    assert strategy.payoff[0].profit == 0
    # No strike: -0.60 × 3750 - 1500
    assert strategy.max_loss == Decimal("-3750")
    # Em 150000: -2250 + 48500
    assert strategy.max_profit == Decimal("46250")
    assert strategy.total_cost == 0

    binary_leg, option_leg = strategy.legs
    assert binary_leg.direction == LegDirection.SHORT
    assert binary_leg.unit_price == Decimal("0.40")
    assert binary_leg.total_cost == Decimal("-1500")
    assert option_leg.direction == LegDirection.LONG
    assert option_leg.total_cost == Decimal("1500")


def test_simulate_zero_premium_short_leg():
    binary = create_mock_binary(yes_price=Decimal("0"))
    combo = create_mock_combo("Short YES above $100K", "Long Call @$100K", binary=binary)
    sizing = Sizing(binary_qty=100, option_qty=Decimal("1.0"), total_abs_cost=Decimal("1500"))
    strategy = PayoffSimulator().simulate(combo, sizing, price_grid(SPOT))

    binary_leg = strategy.legs[0]
    assert binary_leg.direction == LegDirection.SHORT
    assert binary_leg.unit_price == 0
    # Em 150000: -100 + 48500
    assert strategy.payoff[-1].profit == Decimal("48400")


def test_leg_payoffs_sum_to_combined():
    combo = create_mock_combo("Long YES above $100K", "Short Call @$100K")
    strategy = PayoffSimulator().simulate(combo, Sizer().size(combo), price_grid(SPOT))

    for total, binary, option in zip(strategy.payoff, *strategy.leg_payoffs):
        assert total.profit == binary.profit + option.profit

    assert strategy.max_profit == Decimal("3600")
    assert strategy.max_loss == Decimal("-56400")


# ==================== SCORER ====================

def test_arbitrage_score_above_floor():
    arbitrage = create_mock_strategy(["50", "60", "70"])
    assert score_strategy(arbitrage) == Decimal("1000050")


def test_non_arbitrage_score_below_floor():
    mixed = create_mock_strategy(["-100", "0", "300", "500"])
    flat = create_mock_strategy(["0", "0", "10"])

    # 2/4 positivos -> 50 + min(100, 500/100)
    assert score_strategy(mixed) == Decimal("55")
    # min == 0 -> razão limitada a 100
    assert score_strategy(flat) < Decimal("1000000")


def test_rank_strategies_orders_by_score():
    strategies = [
        create_mock_strategy(["-100", "100"]),
        create_mock_strategy(["1", "2"]),
        create_mock_strategy(["-10", "10", "20"]),
    ]
    ranked = rank_strategies(strategies)

    assert ranked[0].score == Decimal("1000001")
    assert [s.score for s in ranked] == sorted((s.score for s in ranked), reverse=True)
    assert ranked[0].is_guaranteed_profit


def test_guaranteed_profit_beats_high_ratio():
    guaranteed = create_mock_strategy(["50", "80"])
    risky = create_mock_strategy(["-10", "1000", "1000"])

    ranked = rank_strategies([risky, guaranteed])

    assert ranked[0] is guaranteed
    assert guaranteed.score == Decimal("1000050")
    assert risky.score < Decimal("1000000")
