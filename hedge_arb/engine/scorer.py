"""
Strategy Scorer
===============

Ranqueia estratégias.

1. Arbitragem verdadeira (lucro > 0 em todo o grid) fica sempre acima
   de qualquer outra: score = 1_000_000 + lucro mínimo garantido
2. Demais: 100 × fração de pontos lucrativos + min(100, max / |min|)
"""

from decimal import Decimal

from ..models.core import ARBITRAGE_SCORE_FLOOR, Strategy

MAX_LOSS_RATIO = Decimal("100")


def score_strategy(strategy: Strategy) -> Decimal:
    profits = [p.profit for p in strategy.payoff]
    min_pl = min(profits)
    max_pl = max(profits)

    if min_pl > 0:
        return ARBITRAGE_SCORE_FLOOR + min_pl

    positive_ratio = Decimal(sum(1 for p in profits if p > 0)) / len(profits)
    # min_pl == 0: razão infinita, limitada a 100
    loss_ratio = max_pl / abs(min_pl) if min_pl < 0 else MAX_LOSS_RATIO
    return positive_ratio * 100 + min(loss_ratio, MAX_LOSS_RATIO)


def rank_strategies(strategies: list[Strategy]) -> list[Strategy]:
    """Atribui score e ordena do maior para o menor (ordenação estável)."""
    for strategy in strategies:
        strategy.score = score_strategy(strategy)
    return sorted(strategies, key=lambda s: s.score, reverse=True)
