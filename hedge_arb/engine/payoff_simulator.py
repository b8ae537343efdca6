"""
Payoff Simulator
================

Avalia o P/L de uma estratégia dimensionada no vencimento, sobre um
grid de preços do subjacente de ±50% em torno do spot.

Sem aleatoriedade: as mesmas entradas produzem sempre as mesmas curvas.
"""

import logging
from decimal import Decimal

from ..models.core import (
    GRID_POINTS,
    LegDirection,
    PayoffPoint,
    Strategy,
    StrategyLeg,
    round_units,
)
from .combo_finder import Combo
from .position_generator import AtomicPosition
from .sizer import Sizing

logger = logging.getLogger(__name__)


def price_grid(spot: Decimal, num_points: int = GRID_POINTS) -> list[Decimal]:
    """
    Grid de num_points + 1 preços em [0.5 × spot, 1.5 × spot].

    Cada preço é arredondado para unidade inteira (half-up).
    """
    lo = spot * Decimal("0.5")
    hi = spot * Decimal("1.5")
    step = (hi - lo) / num_points
    return [round_units(lo + step * i) for i in range(num_points + 1)]


def find_breakevens(payoff: list[PayoffPoint]) -> list[Decimal]:
    """
    Preços onde o P/L cruza zero, por interpolação linear.

    Tocar zero conta como cruzamento. Resultado em ordem crescente
    porque o grid já é crescente.
    """
    breakevens = []
    for prev, curr in zip(payoff, payoff[1:]):
        p, c = prev.profit, curr.profit
        if (p <= 0 and c > 0) or (p >= 0 and c < 0):
            frac = abs(p) / (abs(p) + abs(c))
            breakevens.append(round_units(prev.price + frac * (curr.price - prev.price)))
    return breakevens


class PayoffSimulator:
    """Constrói Strategy a partir de um combo dimensionado."""

    def simulate(self, combo: Combo, sizing: Sizing, prices: list[Decimal]) -> Strategy:
        binary, option = combo.binary_leg, combo.option_leg
        binary_qty = Decimal(sizing.binary_qty)
        option_qty = sizing.option_qty

        binary_payoff = []
        option_payoff = []
        payoff = []
        for price in prices:
            binary_pl = binary_qty * binary.pl_per_unit(price)
            option_pl = option_qty * option.pl_per_unit(price)
            binary_payoff.append(PayoffPoint(price, binary_pl))
            option_payoff.append(PayoffPoint(price, option_pl))
            payoff.append(PayoffPoint(price, binary_pl + option_pl))

        profits = [p.profit for p in payoff]
        legs = [
            self._leg(binary, binary_qty),
            self._leg(option, option_qty),
        ]

        return Strategy(
            name=combo.name,
            description=(
                f"{binary.name} (×{sizing.binary_qty:,}) + "
                f"{option.name} (×{option_qty:.1f})"
            ),
            legs=legs,
            payoff=payoff,
            leg_payoffs=[binary_payoff, option_payoff],
            total_cost=legs[0].total_cost + legs[1].total_cost,
            max_profit=max(profits),
            max_loss=min(profits),
            breakevens=find_breakevens(payoff),
        )

    @staticmethod
    def _leg(position: AtomicPosition, quantity: Decimal) -> StrategyLeg:
        return StrategyLeg(
            instrument=position.instrument,
            platform=position.platform,
            direction=LegDirection.LONG if position.is_long else LegDirection.SHORT,
            quantity=quantity,
            unit_price=abs(position.cost_per_unit),
            total_cost=quantity * position.cost_per_unit,
            instrument_refs=position.instrument_refs,
            outcome=position.outcome,
        )
