"""Models module - Core data structures for the hedge engine."""

from .core import (
    Platform,
    Side,
    Direction,
    OptionKind,
    Bias,
    LegDirection,
    BinaryContract,
    ListedOption,
    PriceLevel,
    OrderBook,
    ExecutionSimulation,
    MarketPair,
    PayoffPoint,
    StrategyLeg,
    Strategy,
    OpportunityAnalysis,
    round_units,
    TARGET_TOTAL_COST,
    MIN_TOTAL_COST,
    MAX_TOTAL_COST,
    OPTION_MIN_QTY,
    OPTION_MAX_QTY,
    MAX_SLIPPAGE_PCT,
    MIN_FILL_PCT,
    MIN_SPREAD_WIDTH,
    MAX_SPREAD_WIDTH,
    STRIKE_BAND,
    MAX_EXPIRY_GAP,
    GRID_POINTS,
    ARBITRAGE_SCORE_FLOOR,
)

__all__ = [
    "Platform",
    "Side",
    "Direction",
    "OptionKind",
    "Bias",
    "LegDirection",
    "BinaryContract",
    "ListedOption",
    "PriceLevel",
    "OrderBook",
    "ExecutionSimulation",
    "MarketPair",
    "PayoffPoint",
    "StrategyLeg",
    "Strategy",
    "OpportunityAnalysis",
    "round_units",
    "TARGET_TOTAL_COST",
    "MIN_TOTAL_COST",
    "MAX_TOTAL_COST",
    "OPTION_MIN_QTY",
    "OPTION_MAX_QTY",
    "MAX_SLIPPAGE_PCT",
    "MIN_FILL_PCT",
    "MIN_SPREAD_WIDTH",
    "MAX_SPREAD_WIDTH",
    "STRIKE_BAND",
    "MAX_EXPIRY_GAP",
    "GRID_POINTS",
    "ARBITRAGE_SCORE_FLOOR",
]
