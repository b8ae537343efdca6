"""
Polymarket-Deribit Hedge Engine
===============================

Combina binários de preço do BTC com opções listadas para montar
posições que se protegem mutuamente.
"""

from .main import HedgeScanner, ScanResult

__all__ = [
    "HedgeScanner",
    "ScanResult",
]
