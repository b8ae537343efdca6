"""
Position Generators
===================

Expande os instrumentos de cada plataforma em posições atômicas:

- BinaryPositionGenerator: 4 posições por contrato binário
  (long/short de YES e de NO)
- OptionPositionGenerator: long/short de cada opção + spreads verticais

Cada posição sabe seu viés (BULL/BEAR), seu custo por unidade
(positivo = paga para entrar, negativo = recebe prêmio) e seu payout
máximo por unidade (None = ilimitado, caso da call comprada a seco).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..models.core import (
    Bias,
    BinaryContract,
    Direction,
    ListedOption,
    OptionKind,
    Platform,
    Side,
    MAX_SPREAD_WIDTH,
    MIN_SPREAD_WIDTH,
    round_units,
)
from .payoffs import (
    IndicatorPayoff,
    Payoff,
    VanillaPayoff,
    VerticalSpreadPayoff,
    evaluate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AtomicPosition:
    """
    Posição de uma perna, por unidade.

    P/L por unidade = sinal × payout(preço) − custo, onde o sinal
    é +1 para posição comprada e −1 para vendida.

    A direção é explícita: um short com prêmio zero tem custo
    Decimal("-0"), que não distingue do long pelo sinal.
    """
    platform: Platform
    name: str
    instrument: str
    bias: Bias
    is_long: bool
    cost_per_unit: Decimal
    max_payout: Optional[Decimal]  # None = ilimitado
    payoff: Payoff
    is_spread: bool = False
    instrument_refs: tuple[str, ...] = ()
    outcome: Optional[Side] = None

    @property
    def is_bounded(self) -> bool:
        return self.max_payout is not None

    def pl_per_unit(self, price: Decimal) -> Decimal:
        """Lucro por unidade no vencimento."""
        payout = evaluate(self.payoff, price)
        if self.is_long:
            return payout - self.cost_per_unit
        return -payout - self.cost_per_unit


def _k(strike: Decimal) -> str:
    """100000 -> 100"""
    return str(round_units(strike / 1000))


class BinaryPositionGenerator:
    """Gera as 4 posições atômicas de um contrato binário."""

    def generate(self, contract: BinaryContract) -> list[AtomicPosition]:
        """
        Gera Long YES, Short YES, Long NO e Short NO.

        Para direção ABOVE, YES lucra com alta (BULL); para BELOW, YES
        lucra com queda (BEAR). NO é sempre o complemento, então o
        resultado tem sempre 2 BULL e 2 BEAR.
        """
        label = contract.strike_label
        direction = contract.direction
        opposite = Direction.BELOW if direction == Direction.ABOVE else Direction.ABOVE
        yes_bias = Bias.BULL if direction == Direction.ABOVE else Bias.BEAR

        yes_payoff = IndicatorPayoff(contract.strike, direction)
        no_payoff = IndicatorPayoff(contract.strike, opposite)

        positions = []
        for side, price, payoff, long_bias in (
            (Side.YES, contract.yes_price, yes_payoff, yes_bias),
            (Side.NO, contract.no_price, no_payoff, yes_bias.opposite()),
        ):
            instrument = f"Poly {side.name} {direction.value} {label}"
            ref = (contract.token_for(side),)
            positions.append(AtomicPosition(
                platform=Platform.POLYMARKET,
                name=f"Long {side.name} {direction.value} {label}",
                instrument=instrument,
                bias=long_bias,
                is_long=True,
                cost_per_unit=price,
                max_payout=Decimal("1"),
                payoff=payoff,
                instrument_refs=ref,
                outcome=side,
            ))
            positions.append(AtomicPosition(
                platform=Platform.POLYMARKET,
                name=f"Short {side.name} {direction.value} {label}",
                instrument=instrument,
                bias=long_bias.opposite(),
                is_long=False,
                cost_per_unit=-price,
                max_payout=price,
                payoff=payoff,
                instrument_refs=ref,
                outcome=side,
            ))

        return positions


class OptionPositionGenerator:
    """
    Gera posições atômicas a partir de uma cadeia de opções.

    Vanillas usam o preço médio. Spreads usam bid/ask para uma
    entrada realista e só consideram pernas com bid e ask > 0.
    """

    def __init__(
        self,
        min_spread_width: Decimal = MIN_SPREAD_WIDTH,
        max_spread_width: Decimal = MAX_SPREAD_WIDTH,
    ):
        self.min_spread_width = min_spread_width
        self.max_spread_width = max_spread_width

    def generate(self, options: list[ListedOption]) -> list[AtomicPosition]:
        positions = []
        for option in options:
            positions.extend(self._vanilla_positions(option))

        for kind in (OptionKind.CALL, OptionKind.PUT):
            liquid = sorted(
                (o for o in options if o.kind == kind and o.is_liquid),
                key=lambda o: o.strike,
            )
            positions.extend(self._spread_positions(liquid, kind))

        logger.debug(f"{len(positions)} posições de opções geradas a partir de {len(options)} opções")
        return positions

    def _vanilla_positions(self, option: ListedOption) -> list[AtomicPosition]:
        """Long e short de uma opção ao preço médio."""
        is_call = option.kind == OptionKind.CALL
        label = f"{'Call' if is_call else 'Put'} @{option.strike_label}"
        payoff = VanillaPayoff(option.strike, option.kind)
        mid = option.mid_price
        long_bias = Bias.BULL if is_call else Bias.BEAR
        refs = (option.instrument_name,)

        return [
            AtomicPosition(
                platform=Platform.DERIBIT,
                name=f"Long {label}",
                instrument=option.instrument_name,
                bias=long_bias,
                is_long=True,
                cost_per_unit=mid,
                # Put comprada: preço não fica negativo, payout <= strike
                max_payout=None if is_call else option.strike,
                payoff=payoff,
                instrument_refs=refs,
            ),
            AtomicPosition(
                platform=Platform.DERIBIT,
                name=f"Short {label}",
                instrument=option.instrument_name,
                bias=long_bias.opposite(),
                is_long=False,
                cost_per_unit=-mid,
                max_payout=mid,
                payoff=payoff,
                instrument_refs=refs,
            ),
        ]

    def _spread_positions(
        self,
        options: list[ListedOption],
        kind: OptionKind,
    ) -> list[AtomicPosition]:
        """
        Spreads verticais para todos os pares (lo, hi) com largura válida.

        Call: comprar lo no ask / vender hi no bid (long, BULL).
        Put: comprar hi no ask / vender lo no bid (long, BEAR).
        O short é o espelho, recebendo crédito.
        """
        positions = []
        is_call = kind == OptionKind.CALL
        name = "Call Spread" if is_call else "Put Spread"

        for i, lo in enumerate(options):
            for hi in options[i + 1:]:
                width = hi.strike - lo.strike
                if width < self.min_spread_width or width > self.max_spread_width:
                    continue

                # Perna comprada do spread comprado vem primeiro nas refs
                bought, sold = (lo, hi) if is_call else (hi, lo)
                refs = (bought.instrument_name, sold.instrument_name)
                instrument = f"{bought.instrument_name} / {sold.instrument_name}"
                label = f"{name} {_k(lo.strike)}K/{_k(hi.strike)}K"
                payoff = VerticalSpreadPayoff(lo.strike, hi.strike, kind)
                long_bias = Bias.BULL if is_call else Bias.BEAR

                long_cost = bought.ask_price - sold.bid_price
                if self._is_valid_entry(long_cost, width):
                    positions.append(AtomicPosition(
                        platform=Platform.DERIBIT,
                        name=f"Long {label}",
                        instrument=instrument,
                        bias=long_bias,
                        is_long=True,
                        cost_per_unit=long_cost,
                        max_payout=width,
                        payoff=payoff,
                        is_spread=True,
                        instrument_refs=refs,
                    ))

                short_credit = bought.bid_price - sold.ask_price
                if self._is_valid_entry(short_credit, width):
                    positions.append(AtomicPosition(
                        platform=Platform.DERIBIT,
                        name=f"Short {label}",
                        instrument=instrument,
                        bias=long_bias.opposite(),
                        is_long=False,
                        cost_per_unit=-short_credit,
                        max_payout=short_credit,
                        payoff=payoff,
                        is_spread=True,
                        instrument_refs=refs,
                    ))

        return positions

    @staticmethod
    def _is_valid_entry(amount: Decimal, width: Decimal) -> bool:
        """Custo/crédito precisa ser positivo, finito e menor que a largura."""
        return amount.is_finite() and Decimal("0") < amount < width
