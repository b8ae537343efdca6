"""
Strategy Analyzer
=================

Executa o pipeline completo para um par (binário, cadeia de opções):

    posições -> combos -> dimensionamento -> simulação -> score

Nada aqui levanta exceção por combo inválido. Combos que não podem
ser montados a um tamanho razoável são descartados e contados no
rejections_summary.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..models.core import MarketPair, OpportunityAnalysis, Strategy
from .combo_finder import find_combos
from .payoff_simulator import PayoffSimulator, price_grid
from .position_generator import BinaryPositionGenerator, OptionPositionGenerator
from .probability import binary_implied_probability, options_implied_probability
from .scorer import rank_strategies
from .sizer import Sizer

logger = logging.getLogger(__name__)


class StrategyAnalyzer:
    """
    Gera e ranqueia estratégias de hedge para um par.

    Determinístico: mesmas entradas, mesma lista ranqueada.
    """

    def __init__(
        self,
        sizer: Optional[Sizer] = None,
        option_generator: Optional[OptionPositionGenerator] = None,
        max_loss_limit: Optional[Decimal] = None,
    ):
        """
        Args:
            sizer: Dimensionador (usa default se None)
            option_generator: Gerador de posições de opções (usa default se None)
            max_loss_limit: Se definido, descarta estratégias cuja perda
                            máxima no grid excede este valor (USD, positivo)
        """
        self.sizer = sizer or Sizer()
        self.binary_generator = BinaryPositionGenerator()
        self.option_generator = option_generator or OptionPositionGenerator()
        self.simulator = PayoffSimulator()
        self.max_loss_limit = max_loss_limit

    def analyze(self, pair: MarketPair, spot: Decimal) -> OpportunityAnalysis:
        binary = pair.binary
        prices = price_grid(spot)

        binary_positions = self.binary_generator.generate(binary)
        option_positions = self.option_generator.generate(pair.options)
        combos = find_combos(binary_positions, option_positions)

        strategies: list[Strategy] = []
        rejections: dict[str, int] = {}

        for combo in combos:
            sizing = self.sizer.size(combo)
            if not sizing.is_tradeable:
                code = sizing.rejection.code if sizing.rejection else "NO_TRADE"
                rejections[code] = rejections.get(code, 0) + 1
                continue

            strategy = self.simulator.simulate(combo, sizing, prices)
            if self.max_loss_limit is not None and strategy.max_loss < -self.max_loss_limit:
                rejections["LOSS_LIMIT"] = rejections.get("LOSS_LIMIT", 0) + 1
                continue

            strategies.append(strategy)

        ranked = rank_strategies(strategies)

        prob_binary = binary_implied_probability(binary)
        prob_options = options_implied_probability(pair.best_call, spot)

        logger.info(
            f"{binary.title or binary.strike_label}: {len(combos)} combos, "
            f"{len(ranked)} estratégias, rejeições={rejections}"
        )

        return OpportunityAnalysis(
            pair=pair,
            strategies=ranked,
            implied_prob_binary=prob_binary,
            implied_prob_options=prob_options,
            probability_gap=abs(prob_binary - prob_options),
            rejections_summary=rejections,
        )
