"""
Execution Simulator
===================

Simula execução de ordens no livro de ordens.

PRINCÍPIO FUNDAMENTAL:
Nunca tome decisões baseadas apenas em top of book.
Sempre simule a execução caminhando pelo livro nível a nível.

Este módulo:
1. Calcula VWAP real para uma quantidade Q
2. Determina se há liquidez suficiente (fill %)
3. Conta quantos níveis seriam consumidos
4. Calcula a quantidade máxima executável dentro de um limite de slippage
"""

import logging
from decimal import Decimal

from ..models.core import ExecutionSimulation, OrderBook, PriceLevel

logger = logging.getLogger(__name__)


class ExecutionSimulator:
    """
    Transforma "preço exibido" em "preço executável".

    Funciona igual para Polymarket (preço 0-1) e Deribit (USD):
    os níveis já chegam normalizados, melhor preço primeiro.
    """

    def simulate(
        self,
        orderbook: OrderBook,
        quantity: Decimal,
        direction: str,
    ) -> ExecutionSimulation:
        """
        Simula uma ordem de `quantity` unidades.

        Para comprar, consumimos os ASKS; para vender, os BIDS.

        Args:
            orderbook: Livro de ordens
            quantity: Quantidade a executar
            direction: "buy" ou "sell"
        """
        if direction not in ("buy", "sell"):
            raise ValueError(f"Direção inválida: {direction}")
        return self.walk(
            levels=orderbook.levels_for(direction),
            quantity=quantity,
            instrument=orderbook.instrument,
            direction=direction,
        )

    def simulate_buy(self, orderbook: OrderBook, quantity: Decimal) -> ExecutionSimulation:
        return self.simulate(orderbook, quantity, "buy")

    def simulate_sell(self, orderbook: OrderBook, quantity: Decimal) -> ExecutionSimulation:
        return self.simulate(orderbook, quantity, "sell")

    def walk(
        self,
        levels: list[PriceLevel],
        quantity: Decimal,
        instrument: str = "",
        direction: str = "buy",
    ) -> ExecutionSimulation:
        """
        Caminha pelos níveis até preencher `quantity` ou esgotar o livro.

        Os níveis devem vir ordenados do melhor para o pior preço.
        """
        if not levels or quantity <= 0:
            return ExecutionSimulation.empty(instrument, direction, quantity)

        remaining = quantity
        filled = Decimal("0")
        total_cost = Decimal("0")
        levels_consumed = 0

        for level in levels:
            if remaining <= 0:
                break
            take = min(level.size, remaining)
            if take <= 0:
                continue
            filled += take
            total_cost += take * level.price
            remaining -= take
            levels_consumed += 1

        vwap = total_cost / filled if filled > 0 else Decimal("0")
        unfilled = max(remaining, Decimal("0"))

        return ExecutionSimulation(
            instrument=instrument,
            direction=direction,
            requested_size=quantity,
            filled_size=filled,
            vwap=vwap,
            total_cost=total_cost,
            levels_consumed=levels_consumed,
            is_complete=unfilled == 0,
            unfilled_size=unfilled,
        )

    def max_fill_within_slippage(
        self,
        orderbook: OrderBook,
        mid_price: Decimal,
        max_slippage_pct: Decimal,
        direction: str,
    ) -> ExecutionSimulation:
        """
        Quantidade máxima executável sem que o preço marginal passe de
        mid × (1 ± max_slippage_pct).

        Args:
            orderbook: Livro de ordens
            mid_price: Preço de referência
            max_slippage_pct: Tolerância (0.05 = 5%)
            direction: "buy" ou "sell"
        """
        if mid_price <= 0:
            return ExecutionSimulation.empty(orderbook.instrument, direction, Decimal("0"))

        if direction == "buy":
            limit = mid_price * (1 + max_slippage_pct)
            eligible = [lvl for lvl in orderbook.asks if lvl.price <= limit]
        else:
            limit = mid_price * (1 - max_slippage_pct)
            eligible = [lvl for lvl in orderbook.bids if lvl.price >= limit]

        depth = sum((lvl.size for lvl in eligible), Decimal("0"))
        return self.walk(eligible, depth, orderbook.instrument, direction)
