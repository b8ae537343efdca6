"""
Payoff Variants
===============

Payoff por unidade de cada instrumento, no vencimento.

Em vez de guardar uma função opaca em cada posição, o payoff é um
valor pequeno e imutável (um por tipo de instrumento). Assim ele pode
ser comparado, serializado e testado isoladamente.

- IndicatorPayoff: binário, paga 1 se a condição vale, senão 0
- VanillaPayoff: call/put vanilla
- VerticalSpreadPayoff: diferença de duas vanillas do mesmo tipo
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from ..models.core import Direction, OptionKind

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass(frozen=True)
class IndicatorPayoff:
    """1 se price >= strike (ABOVE) ou price < strike (BELOW)."""
    strike: Decimal
    direction: Direction

    def payout(self, price: Decimal) -> Decimal:
        if self.direction == Direction.ABOVE:
            return ONE if price >= self.strike else ZERO
        return ONE if price < self.strike else ZERO


@dataclass(frozen=True)
class VanillaPayoff:
    strike: Decimal
    kind: OptionKind

    def payout(self, price: Decimal) -> Decimal:
        if self.kind == OptionKind.CALL:
            return max(price - self.strike, ZERO)
        return max(self.strike - price, ZERO)


@dataclass(frozen=True)
class VerticalSpreadPayoff:
    """
    Spread vertical comprado: payout entre 0 e a largura (hi - lo).

    Call spread: long lo / short hi. Put spread: long hi / short lo.
    """
    lo_strike: Decimal
    hi_strike: Decimal
    kind: OptionKind

    @property
    def width(self) -> Decimal:
        return self.hi_strike - self.lo_strike

    def payout(self, price: Decimal) -> Decimal:
        lo = VanillaPayoff(self.lo_strike, self.kind).payout(price)
        hi = VanillaPayoff(self.hi_strike, self.kind).payout(price)
        if self.kind == OptionKind.CALL:
            return lo - hi
        return hi - lo


Payoff = Union[IndicatorPayoff, VanillaPayoff, VerticalSpreadPayoff]


def evaluate(payoff: Payoff, price: Decimal) -> Decimal:
    """Payout bruto por unidade no preço de vencimento."""
    if isinstance(payoff, (IndicatorPayoff, VanillaPayoff, VerticalSpreadPayoff)):
        return payoff.payout(price)
    raise TypeError(f"Payoff desconhecido: {payoff!r}")
