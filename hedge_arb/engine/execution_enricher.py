"""
Execution Enricher
==================

Reprecifica as melhores estratégias contra o livro de ordens real.

Para cada perna:
- Binária: caminha no livro do token do resultado (YES ou NO)
- Opção simples: caminha no livro do instrumento, medindo fill %
- Spread: caminha nas duas pernas (compra uma, vende a outra);
  o fill % do spread é o pior das duas pernas

Slippage por unidade é positivo quando adverso. O slippage em dólares
desloca a curva de P/L de forma plana (não depende do preço).

Falha de rede, timeout ou livro vazio = preenchimento zero. A estratégia
simplesmente fica sem os campos book_* (executabilidade desconhecida).

Fontes de livro (collaborators) precisam expor:
    async fetch_book_vwap(instrument_ref, quantity, side) -> ExecutionSimulation
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

import httpx

from ..models.core import (
    BinaryContract,
    ExecutionSimulation,
    PayoffPoint,
    Strategy,
    StrategyLeg,
    MAX_SLIPPAGE_PCT,
    MIN_FILL_PCT,
)

logger = logging.getLogger(__name__)


def shift_payoff(payoff: list[PayoffPoint], amount: Decimal) -> list[PayoffPoint]:
    """Subtrai um custo fixo de todos os pontos da curva."""
    return [PayoffPoint(p.price, p.profit - amount) for p in payoff]


class ExecutionEnricher:
    """
    Anexa dados de livro a estratégias já ranqueadas.

    Só deve ser usado no top-N: cada estratégia custa 2-3 requisições.
    """

    def __init__(
        self,
        binary_books,
        option_books,
        fetch_timeout: float = 10.0,
        max_slippage_pct: Decimal = MAX_SLIPPAGE_PCT,
        min_fill_pct: Decimal = MIN_FILL_PCT,
        max_concurrent: int = 5,
    ):
        """
        Args:
            binary_books: Fonte de livros da Polymarket (ex: PolymarketCollector)
            option_books: Fonte de livros da Deribit (ex: DeribitCollector)
            fetch_timeout: Timeout por busca de livro, em segundos
            max_slippage_pct: Slippage máximo por perna para ser executável
            min_fill_pct: Fill % mínimo da perna de opção para ser executável
            max_concurrent: Estratégias enriquecidas em paralelo
        """
        self.binary_books = binary_books
        self.option_books = option_books
        self.fetch_timeout = fetch_timeout
        self.max_slippage_pct = max_slippage_pct
        self.min_fill_pct = min_fill_pct
        self.max_concurrent = max_concurrent

    async def enrich_top(
        self,
        strategies: list[Strategy],
        binary: BinaryContract,
        spot: Decimal,
        top_n: int = 3,
    ) -> list[Strategy]:
        """Enriquece as top_n primeiras estratégias, em paralelo."""
        semaphore = asyncio.Semaphore(self.max_concurrent)
        selected = strategies[:top_n]

        async def _bounded(strategy: Strategy):
            async with semaphore:
                await self.enrich(strategy, binary, spot)

        await asyncio.gather(*(_bounded(s) for s in selected))
        return selected

    async def enrich(self, strategy: Strategy, binary: BinaryContract, spot: Decimal) -> None:
        """Anexa VWAP, fill %, slippage e veredito de executabilidade."""
        binary_slippage, option_slippage = await asyncio.gather(
            self._enrich_binary_leg(strategy, binary),
            self._enrich_option_leg(strategy, spot),
        )

        total_slippage = binary_slippage + option_slippage
        if total_slippage != 0:
            strategy.book_combined_payoff = shift_payoff(strategy.payoff, total_slippage)

        binary_leg, option_leg = strategy.binary_leg, strategy.option_leg
        binary_price = strategy.book_binary_vwap if strategy.book_binary_vwap is not None else binary_leg.unit_price
        option_price = strategy.book_option_vwap if strategy.book_option_vwap is not None else option_leg.unit_price
        strategy.book_total_cost = binary_leg.quantity * binary_price + option_leg.quantity * option_price

        strategy.executable = self._verdict(strategy)

        logger.debug(
            f"{strategy.name}: slippage=${total_slippage:.2f} "
            f"fill={strategy.book_option_fill_pct} executável={strategy.executable}"
        )

    async def _enrich_binary_leg(self, strategy: Strategy, binary: BinaryContract) -> Decimal:
        """Retorna o slippage em dólares da perna binária (0 se sem dados)."""
        leg = strategy.binary_leg
        token_id = binary.token_for(leg.outcome) if leg.outcome else ""
        if not token_id or leg.quantity <= 0:
            return Decimal("0")

        sim = await self._fetch(self.binary_books, token_id, leg.quantity, _side(leg))
        if not sim.has_fill:
            return Decimal("0")

        strategy.book_binary_vwap = sim.vwap
        slip_per_unit = _adverse_slippage(leg, sim.vwap)
        strategy.binary_slippage_pct = _slippage_pct(slip_per_unit, leg.unit_price)
        slippage = leg.quantity * slip_per_unit
        strategy.book_binary_payoff = shift_payoff(strategy.leg_payoffs[0], slippage)
        return slippage

    async def _enrich_option_leg(self, strategy: Strategy, spot: Decimal) -> Decimal:
        """Retorna o slippage em dólares da perna de opção (0 se sem dados)."""
        leg = strategy.option_leg
        refs = leg.instrument_refs
        qty = leg.quantity
        if qty <= 0 or not refs:
            return Decimal("0")

        if len(refs) == 1:
            sim = await self._fetch(self.option_books, refs[0], qty, _side(leg), index_price=spot)
            if not sim.has_fill:
                return Decimal("0")
            book_price = sim.vwap
            fill_pct = sim.fill_pct
        else:
            # Spread: refs[0] é comprada no spread comprado, refs[1] vendida
            first_side, second_side = ("buy", "sell") if leg.is_long else ("sell", "buy")
            first, second = await asyncio.gather(
                self._fetch(self.option_books, refs[0], qty, first_side, index_price=spot),
                self._fetch(self.option_books, refs[1], qty, second_side, index_price=spot),
            )
            fill_pct = min(first.fill_pct, second.fill_pct)
            if fill_pct <= 0:
                return Decimal("0")
            # Custo (long) ou crédito (short) realizado por unidade
            book_price = first.vwap - second.vwap

        strategy.book_option_vwap = abs(book_price)
        strategy.book_option_fill_pct = fill_pct
        slip_per_unit = _adverse_slippage(leg, book_price)
        strategy.option_slippage_pct = _slippage_pct(slip_per_unit, leg.unit_price)
        slippage = qty * slip_per_unit
        strategy.book_option_payoff = shift_payoff(strategy.leg_payoffs[1], slippage)
        return slippage

    async def _fetch(
        self,
        source,
        instrument_ref: str,
        quantity: Decimal,
        side: str,
        **kwargs,
    ) -> ExecutionSimulation:
        """Busca com timeout próprio; qualquer falha vira preenchimento zero."""
        try:
            return await asyncio.wait_for(
                source.fetch_book_vwap(instrument_ref, quantity, side, **kwargs),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout buscando livro de {instrument_ref}")
        except httpx.HTTPError as e:
            logger.warning(f"Erro buscando livro de {instrument_ref}: {e}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Livro malformado para {instrument_ref}: {e!r}")
        return ExecutionSimulation.empty(instrument_ref, side, quantity)

    def _verdict(self, strategy: Strategy) -> Optional[bool]:
        """Executável se as duas pernas têm slippage <= limite e a opção enche >= 90%."""
        if strategy.binary_slippage_pct is None or strategy.option_slippage_pct is None:
            return None
        return (
            strategy.binary_slippage_pct <= self.max_slippage_pct
            and strategy.option_slippage_pct <= self.max_slippage_pct
            and strategy.book_option_fill_pct >= self.min_fill_pct
        )


def _side(leg: StrategyLeg) -> str:
    return "buy" if leg.is_long else "sell"


def _adverse_slippage(leg: StrategyLeg, book_price: Decimal) -> Decimal:
    """Positivo quando o livro é pior que o preço médio."""
    if leg.is_long:
        return book_price - leg.unit_price
    return leg.unit_price - book_price


def _slippage_pct(slip_per_unit: Decimal, mid: Decimal) -> Decimal:
    if mid <= 0:
        return Decimal("0")
    return abs(slip_per_unit / mid)
