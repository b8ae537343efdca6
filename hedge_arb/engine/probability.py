"""
Implied Probability
===================

Probabilidade implícita de cada plataforma para o mesmo evento.

- Polymarket: o preço do YES já é a probabilidade
- Deribit: |delta| da call mais próxima; sem delta, cai para
  Black-Scholes N(d2) com taxa zero usando a IV de mercado
"""

import math
from datetime import datetime, timezone
from decimal import Decimal
from statistics import NormalDist
from typing import Optional

from ..models.core import BinaryContract, Direction, ListedOption

SECONDS_PER_YEAR = 365.25 * 24 * 60 * 60
NEUTRAL_PROBABILITY = Decimal("0.5")


def years_to_expiry(expiration: datetime, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    return (expiration - now).total_seconds() / SECONDS_PER_YEAR


def black_scholes_prob_above(spot: float, strike: float, iv: float, t: float) -> float:
    """
    P(S_T > K) = N(d2) com r = 0.

    Args:
        spot: Preço atual
        strike: Strike
        iv: Volatilidade implícita anual em decimal (0.60 = 60%)
        t: Tempo até o vencimento em anos
    """
    if t <= 0 or iv <= 0:
        return 1.0 if spot > strike else 0.0
    d2 = (math.log(spot / strike) - 0.5 * iv * iv * t) / (iv * math.sqrt(t))
    return NormalDist().cdf(d2)


def binary_implied_probability(contract: BinaryContract) -> Decimal:
    """Probabilidade de o preço terminar acima do strike, segundo a Polymarket."""
    if contract.direction == Direction.ABOVE:
        return contract.yes_price
    return Decimal("1") - contract.yes_price


def options_implied_probability(
    best_call: Optional[ListedOption],
    spot: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """Probabilidade de terminar acima do strike, segundo a Deribit."""
    if best_call is None:
        return NEUTRAL_PROBABILITY
    if best_call.delta is not None:
        return abs(best_call.delta)
    if spot and best_call.mark_iv > 0:
        # Deribit publica IV em percentual
        prob = black_scholes_prob_above(
            float(spot),
            float(best_call.strike),
            float(best_call.mark_iv) / 100,
            years_to_expiry(best_call.expiration, now),
        )
        return Decimal(str(round(prob, 6)))
    return NEUTRAL_PROBABILITY
