"""Collectors module - Data collection from Polymarket and Deribit."""

from .deribit import DeribitCollector
from .polymarket import PolymarketCollector

__all__ = [
    "DeribitCollector",
    "PolymarketCollector",
]
