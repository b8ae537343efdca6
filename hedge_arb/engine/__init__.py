"""Engine module - Strategy generation, sizing, simulation and execution."""

from .payoffs import (
    IndicatorPayoff,
    VanillaPayoff,
    VerticalSpreadPayoff,
    Payoff,
    evaluate,
)
from .position_generator import AtomicPosition, BinaryPositionGenerator, OptionPositionGenerator
from .combo_finder import Combo, find_combos
from .sizer import Sizer, Sizing, RejectionReason
from .payoff_simulator import PayoffSimulator, price_grid, find_breakevens
from .scorer import score_strategy, rank_strategies
from .probability import binary_implied_probability, options_implied_probability
from .market_matcher import MarketMatcher, group_by_expiration, nearest_strike
from .strategy_analyzer import StrategyAnalyzer
from .execution_simulator import ExecutionSimulator
from .execution_enricher import ExecutionEnricher, shift_payoff

__all__ = [
    "IndicatorPayoff",
    "VanillaPayoff",
    "VerticalSpreadPayoff",
    "Payoff",
    "evaluate",
    "AtomicPosition",
    "BinaryPositionGenerator",
    "OptionPositionGenerator",
    "Combo",
    "find_combos",
    "Sizer",
    "Sizing",
    "RejectionReason",
    "PayoffSimulator",
    "price_grid",
    "find_breakevens",
    "score_strategy",
    "rank_strategies",
    "binary_implied_probability",
    "options_implied_probability",
    "MarketMatcher",
    "group_by_expiration",
    "nearest_strike",
    "StrategyAnalyzer",
    "ExecutionSimulator",
    "ExecutionEnricher",
    "shift_payoff",
]
