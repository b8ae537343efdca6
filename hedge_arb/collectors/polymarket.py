"""
Polymarket Data Collector
=========================

Coleta contratos binários de preço do BTC e orderbooks da Polymarket.

APIs:
- Gamma API: https://gamma-api.polymarket.com (eventos e mercados)
- CLOB API: https://clob.polymarket.com (orderbooks)

Identificadores Polymarket:
- condition_id: ID único do mercado
- clobTokenIds: tokens YES/NO (cada um tem seu próprio livro)

Títulos suportados:
- "Will the price of Bitcoin be above $70,000 on February 15?" (binário)
- "Will Bitcoin reach $150k in 2026?" (barreira)
"""

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from ..engine.execution_simulator import ExecutionSimulator
from ..models.core import (
    BinaryContract,
    Direction,
    ExecutionSimulation,
    OrderBook,
    PriceLevel,
)

logger = logging.getLogger(__name__)

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
MAX_BID_ASK_SPREAD = Decimal("0.20")

_K_PATTERN = re.compile(r"\$([0-9]+(?:\.[0-9]+)?)\s*[kK]")
_FULL_PATTERN = re.compile(r"\$([0-9]{1,3}(?:,?[0-9]{3})+)")
_M_PATTERN = re.compile(r"\$([0-9]+(?:\.[0-9]+)?)\s*[mM]")

_ABOVE_PATTERN = re.compile(r"\b(above|over)\b")
_BELOW_PATTERN = re.compile(r"\b(below|under)\b")
_BARRIER_PATTERN = re.compile(r"\b(hit|reach|touch)(es|s)?\b")


def extract_strike(title: str) -> Optional[Decimal]:
    """Extrai o strike do título: $150k, $70,000, $1m."""
    match = _K_PATTERN.search(title)
    if match:
        return Decimal(match.group(1)) * 1000
    match = _FULL_PATTERN.search(title)
    if match:
        return Decimal(match.group(1).replace(",", ""))
    match = _M_PATTERN.search(title)
    if match:
        return Decimal(match.group(1)) * 1_000_000
    return None


def classify_market(title: str) -> Optional[tuple[Direction, bool]]:
    """
    Retorna (direção, is_barrier) ou None se o título não é suportado.

    "above/over" e "below/under" são binários europeus. "hit/reach/touch"
    são barreiras (tratadas como ABOVE).
    """
    lower = title.lower()
    if _ABOVE_PATTERN.search(lower):
        return Direction.ABOVE, False
    if _BELOW_PATTERN.search(lower):
        return Direction.BELOW, False
    if _BARRIER_PATTERN.search(lower):
        return Direction.ABOVE, True
    return None


def is_btc_price_market(title: str) -> bool:
    lower = title.lower()
    if "bitcoin" not in lower and "btc" not in lower:
        return False
    if "all-time" in lower:
        return False
    return extract_strike(title) is not None and classify_market(title) is not None


def generate_event_slugs(now: Optional[datetime] = None, days: int = 90) -> list[str]:
    """Slugs "bitcoin-above-on-<mês>-<dia>" para os próximos `days` dias."""
    now = now or datetime.now(timezone.utc)
    slugs = []
    for offset in range(days):
        day = now + timedelta(days=offset)
        slug = f"bitcoin-above-on-{MONTHS[day.month - 1]}-{day.day}"
        if slug not in slugs:
            slugs.append(slug)
    return slugs


def _parse_time(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def parse_gamma_market(
    data: dict,
    event_slug: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[BinaryContract]:
    """
    Converte um mercado da Gamma API em BinaryContract.

    Descarta mercados fechados, vencidos, sem preços ou com spread
    bid/ask maior que 0.20 (ilíquidos).
    """
    now = now or datetime.now(timezone.utc)
    title = data.get("question") or data.get("title") or ""
    if not is_btc_price_market(title) or data.get("closed"):
        return None

    expiration = _parse_time(data.get("endDateIso") or data.get("endDate"))
    if expiration is None or expiration < now:
        return None

    strike = extract_strike(title)
    direction, is_barrier = classify_market(title)

    try:
        prices = json.loads(data.get("outcomePrices") or "[]")
        yes_price = Decimal(str(prices[0]))
        no_price = Decimal(str(prices[1]))
    except (ValueError, IndexError, TypeError, InvalidOperation):
        return None

    yes_bid = _decimal(data.get("bestBid"))
    yes_ask = _decimal(data.get("bestAsk"))
    yes_bid = yes_price if yes_bid is None else yes_bid
    yes_ask = yes_price if yes_ask is None else yes_ask
    if yes_bid > 0 and yes_ask > 0:
        yes_price = (yes_bid + yes_ask) / 2
        no_price = 1 - yes_price

    if yes_ask - yes_bid > MAX_BID_ASK_SPREAD:
        return None

    yes_token_id, no_token_id = "", ""
    try:
        tokens = json.loads(data.get("clobTokenIds") or "[]")
        if len(tokens) >= 1:
            yes_token_id = str(tokens[0] or "")
        if len(tokens) >= 2:
            no_token_id = str(tokens[1] or "")
    except (ValueError, TypeError):
        logger.debug(f"clobTokenIds inválido para {title}")

    return BinaryContract(
        market_id=str(data.get("id", "")),
        condition_id=data.get("conditionId") or data.get("condition_id") or "",
        title=title,
        strike=strike,
        direction=direction,
        expiration=expiration,
        yes_price=yes_price,
        no_price=no_price,
        yes_bid=yes_bid,
        yes_ask=yes_ask,
        yes_token_id=yes_token_id,
        no_token_id=no_token_id,
        is_barrier=is_barrier,
        event_slug=event_slug,
    )


def parse_clob_orderbook(data: dict, token_id: str) -> OrderBook:
    """
    Converte orderbook do CLOB para formato normalizado.

    O CLOB retorna:
    {
        "bids": [{"price": "0.55", "size": "100"}, ...],
        "asks": [{"price": "0.56", "size": "50"}, ...]
    }
    """
    def parse_levels(levels_raw: list) -> list[PriceLevel]:
        levels = []
        for level in levels_raw or []:
            price = _decimal(level.get("price"))
            size = _decimal(level.get("size"))
            if price is None or size is None:
                logger.warning(f"Nível de preço inválido: {level}")
                continue
            if size > 0:
                levels.append(PriceLevel(price=price, size=size))
        return levels

    bids = sorted(parse_levels(data.get("bids")), key=lambda x: x.price, reverse=True)
    asks = sorted(parse_levels(data.get("asks")), key=lambda x: x.price)
    return OrderBook(instrument=token_id, bids=bids, asks=asks)


class PolymarketCollector:
    """
    Coletor de dados da Polymarket.

    Usa duas APIs:
    1. Gamma API - eventos e mercados
    2. CLOB API - orderbooks em tempo real
    """

    GAMMA_URL = "https://gamma-api.polymarket.com"
    CLOB_URL = "https://clob.polymarket.com"

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Timeout para requests HTTP em segundos
            transport: Transporte httpx alternativo (testes)
        """
        self.timeout = timeout
        self.transport = transport
        self.simulator = ExecutionSimulator()
        self._gamma_client: Optional[httpx.AsyncClient] = None
        self._clob_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Context manager entry."""
        self._gamma_client = httpx.AsyncClient(
            base_url=self.GAMMA_URL,
            timeout=self.timeout,
            transport=self.transport,
        )
        self._clob_client = httpx.AsyncClient(
            base_url=self.CLOB_URL,
            timeout=self.timeout,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if self._gamma_client:
            await self._gamma_client.aclose()
            self._gamma_client = None
        if self._clob_client:
            await self._clob_client.aclose()
            self._clob_client = None

    @property
    def gamma_client(self) -> httpx.AsyncClient:
        if self._gamma_client is None:
            raise RuntimeError("PolymarketCollector deve ser usado como context manager")
        return self._gamma_client

    @property
    def clob_client(self) -> httpx.AsyncClient:
        if self._clob_client is None:
            raise RuntimeError("PolymarketCollector deve ser usado como context manager")
        return self._clob_client

    async def get_events(self, slug: str) -> list[dict]:
        """Eventos da Gamma API por slug. Slug inexistente retorna lista vazia."""
        try:
            response = await self.gamma_client.get("/events", params={"slug": slug})
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return []
            raise
        data = response.json()
        return data if isinstance(data, list) else []

    async def search_btc_events(self, max_pages: int = 5, page_size: int = 100) -> list[dict]:
        """Varre eventos ativos paginados e mantém os de BTC."""
        events = []
        for page in range(max_pages):
            response = await self.gamma_client.get(
                "/events",
                params={"limit": page_size, "offset": page * page_size, "active": "true", "closed": "false"},
            )
            response.raise_for_status()
            data = response.json()
            for event in data:
                title = (event.get("title") or "").lower()
                if ("bitcoin" in title or "btc" in title) and event.get("markets"):
                    events.append(event)
            if len(data) < page_size:
                break
        return events

    async def get_binaries(self, now: Optional[datetime] = None) -> list[BinaryContract]:
        """
        Busca todos os contratos binários de preço do BTC.

        1. Eventos "bitcoin-above-on-<data>" dos próximos 90 dias
        2. Busca geral por eventos de BTC

        Erro HTTP em uma consulta é logado e pulado; as demais seguem.

        Returns:
            Lista ordenada por vencimento e strike, sem duplicatas
        """
        now = now or datetime.now(timezone.utc)
        events = []
        failed = 0
        for slug in generate_event_slugs(now):
            try:
                events.extend(await self.get_events(slug))
            except httpx.HTTPError as e:
                failed += 1
                logger.warning(f"Polymarket Gamma API error ({slug}): {e}")
        try:
            events.extend(await self.search_btc_events())
        except httpx.HTTPError as e:
            failed += 1
            logger.warning(f"Polymarket Gamma API error (busca BTC): {e}")
        if failed:
            logger.error(f"Polymarket: {failed} consultas à Gamma API falharam")

        seen = set()
        binaries = []
        for event in events:
            for market in event.get("markets") or []:
                contract = parse_gamma_market(market, event.get("slug"), now)
                if contract and contract.market_id not in seen:
                    seen.add(contract.market_id)
                    binaries.append(contract)

        binaries.sort(key=lambda b: (b.expiration, b.strike))
        logger.info(f"Polymarket: {len(binaries)} binários de BTC")
        return binaries

    async def get_orderbook(self, token_id: str) -> Optional[OrderBook]:
        """
        Busca orderbook de um token via CLOB API.

        Cada token_id representa um lado (YES ou NO).
        """
        try:
            response = await self.clob_client.get("/book", params={"token_id": token_id})
            response.raise_for_status()
            return parse_clob_orderbook(response.json(), token_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.warning(f"Polymarket orderbook not found for token: {token_id}")
                return None
            raise
        except httpx.HTTPError as e:
            logger.error(f"Polymarket CLOB API error: {e}")
            raise

    async def fetch_book_vwap(
        self,
        token_id: str,
        quantity: Decimal,
        side: str,
    ) -> ExecutionSimulation:
        """
        VWAP para executar `quantity` contratos no livro do token.

        Nunca levanta exceção: token desconhecido, livro vazio ou erro
        de rede retornam execução com filled_size = 0.
        """
        if not token_id or quantity <= 0:
            return ExecutionSimulation.empty(token_id, side, quantity)
        try:
            book = await self.get_orderbook(token_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sem livro para {token_id}: {e}")
            return ExecutionSimulation.empty(token_id, side, quantity)
        if book is None:
            return ExecutionSimulation.empty(token_id, side, quantity)
        return self.simulator.simulate(book, quantity, side)
