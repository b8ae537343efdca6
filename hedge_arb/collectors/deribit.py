"""
Deribit Data Collector
======================

Coleta opções de BTC, index price e orderbooks da Deribit.

API pública: https://www.deribit.com/api/v2/public

IMPORTANTE: a Deribit cota opções em BTC. Todos os preços são
convertidos para USD multiplicando pelo index price (btc_usd).

Instrumentos: BTC-28MAR25-100000-C
- 28MAR25: vencimento (08:00 UTC)
- 100000: strike em USD
- C/P: call ou put
"""

import asyncio
import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from ..engine.execution_simulator import ExecutionSimulator
from ..models.core import (
    ExecutionSimulation,
    ListedOption,
    OptionKind,
    OrderBook,
    PriceLevel,
)

logger = logging.getLogger(__name__)

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
EXPIRY_HOUR_UTC = 8

_INSTRUMENT_PATTERN = re.compile(r"^BTC-(\d{1,2})([A-Z]{3})(\d{2})-(\d+)-([CP])$")


def parse_instrument(name: str) -> Optional[tuple[datetime, Decimal, OptionKind]]:
    """
    Decompõe o nome do instrumento em (vencimento, strike, tipo).

    Retorna None para nomes que não são opções de BTC.
    """
    match = _INSTRUMENT_PATTERN.match(name)
    if not match:
        return None
    day, month, year, strike, kind = match.groups()
    if month not in MONTHS:
        return None
    try:
        expiration = datetime(2000 + int(year), MONTHS[month], int(day), EXPIRY_HOUR_UTC, tzinfo=timezone.utc)
    except ValueError:
        return None
    return expiration, Decimal(strike), OptionKind.CALL if kind == "C" else OptionKind.PUT


def parse_expiration(name: str) -> Optional[datetime]:
    parsed = parse_instrument(name)
    return parsed[0] if parsed else None


def _btc(value) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def parse_book_summary(data: dict, index_price: Decimal, now: Optional[datetime] = None) -> Optional[ListedOption]:
    """
    Converte um item de get_book_summary_by_currency em ListedOption.

    Mid = (bid + ask) / 2 quando há os dois lados, senão mark price.
    O summary não traz greeks; o delta vem de apply_ticker.
    """
    parsed = parse_instrument(data.get("instrument_name", ""))
    if parsed is None:
        return None
    expiration, strike, kind = parsed
    if now is not None and expiration < now:
        return None

    bid_btc = _btc(data.get("bid_price"))
    ask_btc = _btc(data.get("ask_price"))
    if bid_btc > 0 and ask_btc > 0:
        mid_btc = (bid_btc + ask_btc) / 2
    else:
        mid_btc = _btc(data.get("mark_price"))

    index = index_price or _btc(data.get("underlying_price"))

    return ListedOption(
        instrument_name=data["instrument_name"],
        strike=strike,
        kind=kind,
        expiration=expiration,
        bid_price=bid_btc * index,
        ask_price=ask_btc * index,
        mid_price=mid_btc * index,
        bid_price_btc=bid_btc,
        ask_price_btc=ask_btc,
        mid_price_btc=mid_btc,
        index_price=index,
        mark_iv=_btc(data.get("mark_iv")),
    )


def apply_ticker(option: ListedOption, ticker: dict) -> ListedOption:
    """
    Copia greeks.delta e mark_iv do ticker para a opção.

    Campos ausentes no ticker mantêm o valor que veio do book summary.
    """
    delta = (ticker.get("greeks") or {}).get("delta")
    mark_iv = ticker.get("mark_iv")
    return replace(
        option,
        delta=_btc(delta) if delta is not None else option.delta,
        mark_iv=_btc(mark_iv) if mark_iv is not None else option.mark_iv,
    )


def parse_deribit_orderbook(data: dict, instrument: str, index_price: Decimal) -> OrderBook:
    """
    Converte get_order_book para OrderBook em USD.

    A Deribit retorna níveis como [preço_btc, quantidade].
    """
    def parse_levels(levels_raw: list) -> list[PriceLevel]:
        levels = []
        for level in levels_raw or []:
            try:
                price, size = Decimal(str(level[0])), Decimal(str(level[1]))
            except (IndexError, InvalidOperation, ValueError, TypeError):
                logger.warning(f"Nível de preço inválido: {level}")
                continue
            if size > 0:
                levels.append(PriceLevel(price=price * index_price, size=size))
        return levels

    bids = sorted(parse_levels(data.get("bids")), key=lambda x: x.price, reverse=True)
    asks = sorted(parse_levels(data.get("asks")), key=lambda x: x.price)
    return OrderBook(instrument=instrument, bids=bids, asks=asks)


class DeribitCollector:
    """
    Coletor de dados da Deribit (API pública, sem autenticação).
    """

    BASE_URL = "https://www.deribit.com/api/v2/public"

    def __init__(
        self,
        timeout: float = 10.0,
        book_depth: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Timeout para requests HTTP em segundos
            book_depth: Níveis pedidos por lado do livro
            transport: Transporte httpx alternativo (testes)
        """
        self.timeout = timeout
        self.book_depth = book_depth
        self.transport = transport
        self.simulator = ExecutionSimulator()
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Context manager entry."""
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=self.timeout,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("DeribitCollector deve ser usado como context manager")
        return self._client

    async def _get(self, path: str, params: dict):
        """GET e desembrulha o campo "result" do JSON-RPC."""
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Deribit API error ({path}): {e}")
            raise
        data = response.json()
        if "result" not in data:
            raise ValueError(f"Resposta Deribit sem result: {data.get('error')}")
        return data["result"]

    async def get_index_price(self) -> Decimal:
        """Index price BTC/USD."""
        result = await self._get("/get_index_price", {"index_name": "btc_usd"})
        return Decimal(str(result["index_price"]))

    async def get_options(self, now: Optional[datetime] = None) -> tuple[list[ListedOption], Decimal]:
        """
        Busca todas as opções de BTC ativas.

        Returns:
            (opções em USD ordenadas por vencimento/strike, index price)
        """
        now = now or datetime.now(timezone.utc)
        spot = await self.get_index_price()
        summaries = await self._get(
            "/get_book_summary_by_currency",
            {"currency": "BTC", "kind": "option"},
        )

        options = []
        for item in summaries:
            option = parse_book_summary(item, spot, now)
            if option:
                options.append(option)

        options.sort(key=lambda o: (o.expiration, o.strike, o.kind.value))
        logger.info(f"Deribit: {len(options)} opções de BTC, index=${spot:,.0f}")
        return options, spot

    async def get_ticker(self, instrument: str) -> dict:
        """Ticker completo (greeks, mark_iv, best bid/ask)."""
        return await self._get("/ticker", {"instrument_name": instrument})

    async def enrich_with_tickers(
        self,
        options: list[ListedOption],
        instruments: Optional[set[str]] = None,
        max_concurrent: int = 20,
    ) -> list[ListedOption]:
        """
        Preenche delta e mark_iv das opções a partir do ticker.

        O book summary não traz greeks, então o delta só existe depois
        deste passo. Consulta apenas `instruments` (todas quando None).
        Ticker com erro mantém a opção como veio.
        """
        targets = [o for o in options if instruments is None or o.instrument_name in instruments]
        semaphore = asyncio.Semaphore(max_concurrent)

        async def fetch(option: ListedOption) -> ListedOption:
            async with semaphore:
                try:
                    ticker = await self.get_ticker(option.instrument_name)
                    return apply_ticker(option, ticker)
                except (httpx.HTTPError, ValueError, KeyError, AttributeError) as e:
                    logger.warning(f"Sem ticker para {option.instrument_name}: {e}")
                    return option

        enriched = {o.instrument_name: o for o in await asyncio.gather(*(fetch(o) for o in targets))}
        with_delta = sum(1 for o in enriched.values() if o.delta is not None)
        logger.info(f"Deribit: delta de {with_delta}/{len(targets)} opções via ticker")
        return [enriched.get(o.instrument_name, o) for o in options]

    async def get_orderbook(
        self,
        instrument: str,
        index_price: Optional[Decimal] = None,
    ) -> Optional[OrderBook]:
        """
        Orderbook do instrumento, em USD.

        Usa o index_price do próprio livro quando não informado.
        """
        try:
            result = await self._get(
                "/get_order_book",
                {"instrument_name": instrument, "depth": self.book_depth},
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 404):
                logger.warning(f"Deribit orderbook not found: {instrument}")
                return None
            raise

        index = index_price or _btc(result.get("index_price"))
        if index <= 0:
            raise ValueError(f"Sem index price para converter {instrument}")
        return parse_deribit_orderbook(result, instrument, index)

    async def fetch_book_vwap(
        self,
        instrument: str,
        quantity: Decimal,
        side: str,
        index_price: Optional[Decimal] = None,
    ) -> ExecutionSimulation:
        """
        VWAP em USD para executar `quantity` contratos.

        Nunca levanta exceção: erro ou livro vazio = filled_size 0.
        """
        if not instrument or quantity <= 0:
            return ExecutionSimulation.empty(instrument, side, quantity)
        try:
            book = await self.get_orderbook(instrument, index_price)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sem livro para {instrument}: {e}")
            return ExecutionSimulation.empty(instrument, side, quantity)
        if book is None:
            return ExecutionSimulation.empty(instrument, side, quantity)
        return self.simulator.simulate(book, quantity, side)

    async def max_fill_within_slippage(
        self,
        instrument: str,
        mid_price: Decimal,
        max_slippage_pct: Decimal,
        side: str,
        index_price: Optional[Decimal] = None,
    ) -> ExecutionSimulation:
        """Quantidade máxima executável sem passar de mid ± slippage."""
        try:
            book = await self.get_orderbook(instrument, index_price)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sem livro para {instrument}: {e}")
            book = None
        if book is None:
            return ExecutionSimulation.empty(instrument, side, Decimal("0"))
        return self.simulator.max_fill_within_slippage(book, mid_price, max_slippage_pct, side)
