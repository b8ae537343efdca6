"""
Testes dos coletores com httpx.MockTransport (sem rede).
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from hedge_arb.collectors import DeribitCollector, PolymarketCollector
from hedge_arb.collectors.deribit import parse_expiration, parse_instrument
from hedge_arb.collectors.polymarket import (
    classify_market,
    extract_strike,
    generate_event_slugs,
    is_btc_price_market,
    parse_gamma_market,
)
from hedge_arb.models import Direction, OptionKind

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)


def create_mock_gamma_market(**overrides) -> dict:
    market = {
        "id": "555",
        "conditionId": "0xc1",
        "question": "Will the price of Bitcoin be above $100,000 on March 27?",
        "endDate": "2026-03-27T16:00:00Z",
        "closed": False,
        "outcomePrices": json.dumps(["0.41", "0.59"]),
        "bestBid": 0.40,
        "bestAsk": 0.42,
        "clobTokenIds": json.dumps(["tok-yes", "tok-no"]),
    }
    market.update(overrides)
    return market


# ==================== POLYMARKET PARSING ====================

def test_extract_strike_formats():
    assert extract_strike("Will Bitcoin be above $70,000 on May 1?") == Decimal("70000")
    assert extract_strike("Will Bitcoin reach $150k in 2026?") == Decimal("150000")
    assert extract_strike("Will Bitcoin hit $1m?") == Decimal("1000000")
    assert extract_strike("Will Bitcoin go up?") is None


def test_classify_market():
    assert classify_market("Bitcoin above $100k on June 1?") == (Direction.ABOVE, False)
    assert classify_market("Bitcoin below $80k on June 1?") == (Direction.BELOW, False)
    assert classify_market("Will Bitcoin reach $150k?") == (Direction.ABOVE, True)
    assert classify_market("Bitcoin ETF approved?") is None


def test_classify_market_matches_whole_words():
    assert classify_market("Will Bitcoin recover to $100k by June?") is None
    assert classify_market("Will Bitcoin discover a new high of $120k?") is None
    assert classify_market("Is Bitcoin undervalued at $60k?") is None
    assert classify_market("Will Bitcoin go over $110k?") == (Direction.ABOVE, False)
    assert classify_market("Bitcoin touches $150k in 2026?") == (Direction.ABOVE, True)
    assert not is_btc_price_market("Will Bitcoin recover to $100k by June?")


def test_event_slugs():
    slugs = generate_event_slugs(NOW, days=3)
    assert slugs == [
        "bitcoin-above-on-march-20",
        "bitcoin-above-on-march-21",
        "bitcoin-above-on-march-22",
    ]


def test_parse_gamma_market():
    contract = parse_gamma_market(create_mock_gamma_market(), "bitcoin-above-on-march-27", NOW)

    assert contract.strike == Decimal("100000")
    assert contract.direction == Direction.ABOVE
    assert contract.yes_price == Decimal("0.41")
    assert contract.no_price == Decimal("0.59")
    assert contract.yes_token_id == "tok-yes"
    assert contract.no_token_id == "tok-no"
    assert contract.expiration == datetime(2026, 3, 27, 16, 0, tzinfo=timezone.utc)
    assert not contract.is_barrier


def test_parse_gamma_market_filters():
    assert parse_gamma_market(create_mock_gamma_market(closed=True), now=NOW) is None
    assert parse_gamma_market(create_mock_gamma_market(endDate="2026-03-01T00:00:00Z"), now=NOW) is None
    assert parse_gamma_market(create_mock_gamma_market(bestBid=0.20, bestAsk=0.50), now=NOW) is None
    assert parse_gamma_market(create_mock_gamma_market(question="Will ETH flip BTC?"), now=NOW) is None
    assert parse_gamma_market(create_mock_gamma_market(outcomePrices="not json"), now=NOW) is None


# ==================== POLYMARKET HTTP ====================

def polymarket_handler(request: httpx.Request) -> httpx.Response:
    event = {
        "slug": "bitcoin-above-on-march-27",
        "title": "Bitcoin above ___ on March 27?",
        "markets": [
            create_mock_gamma_market(),
            create_mock_gamma_market(id="556", question="Will the price of Bitcoin be above $90,000 on March 27?"),
            create_mock_gamma_market(id="557", closed=True),
        ],
    }
    if request.url.host == "gamma-api.polymarket.com":
        slug = request.url.params.get("slug")
        if slug == "bitcoin-above-on-march-27":
            return httpx.Response(200, json=[event])
        if slug is None:
            # Busca geral retorna o mesmo evento (deve ser deduplicado)
            return httpx.Response(200, json=[event])
        return httpx.Response(200, json=[])

    token_id = request.url.params.get("token_id")
    if token_id == "tok-yes":
        return httpx.Response(200, json={
            "bids": [{"price": "0.40", "size": "100"}],
            "asks": [{"price": "0.44", "size": "100"}, {"price": "0.42", "size": "50"}],
        })
    if token_id == "broken":
        return httpx.Response(500, json={"error": "boom"})
    return httpx.Response(404, json={"error": "not found"})


@pytest.mark.asyncio
async def test_polymarket_get_binaries():
    async with PolymarketCollector(transport=httpx.MockTransport(polymarket_handler)) as collector:
        binaries = await collector.get_binaries(now=NOW)

    assert [b.market_id for b in binaries] == ["556", "555"]
    assert binaries[0].strike == Decimal("90000")
    assert binaries[1].event_slug == "bitcoin-above-on-march-27"


@pytest.mark.asyncio
async def test_polymarket_failing_slug_is_skipped():
    def flaky_handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("slug") == "bitcoin-above-on-march-21":
            return httpx.Response(502, json={"error": "bad gateway"})
        return polymarket_handler(request)

    async with PolymarketCollector(transport=httpx.MockTransport(flaky_handler)) as collector:
        binaries = await collector.get_binaries(now=NOW)

    assert [b.market_id for b in binaries] == ["556", "555"]


@pytest.mark.asyncio
async def test_polymarket_orderbook_sorted():
    async with PolymarketCollector(transport=httpx.MockTransport(polymarket_handler)) as collector:
        book = await collector.get_orderbook("tok-yes")
        missing = await collector.get_orderbook("unknown")

    assert book.best_ask.price == Decimal("0.42")
    assert book.best_bid.price == Decimal("0.40")
    assert missing is None


@pytest.mark.asyncio
async def test_polymarket_fetch_book_vwap():
    async with PolymarketCollector(transport=httpx.MockTransport(polymarket_handler)) as collector:
        result = await collector.fetch_book_vwap("tok-yes", Decimal("100"), "buy")
        missing = await collector.fetch_book_vwap("unknown", Decimal("100"), "buy")
        broken = await collector.fetch_book_vwap("broken", Decimal("100"), "buy")

    assert result.vwap == Decimal("0.43")
    assert result.is_complete
    assert missing.filled_size == 0
    assert broken.filled_size == 0


@pytest.mark.asyncio
async def test_polymarket_requires_context_manager():
    collector = PolymarketCollector()
    with pytest.raises(RuntimeError):
        await collector.get_orderbook("tok-yes")


# ==================== DERIBIT ====================

def test_parse_instrument():
    expiration, strike, kind = parse_instrument("BTC-28MAR25-100000-C")

    assert expiration == datetime(2025, 3, 28, 8, 0, tzinfo=timezone.utc)
    assert strike == Decimal("100000")
    assert kind == OptionKind.CALL
    assert parse_instrument("BTC-5APR26-80000-P")[2] == OptionKind.PUT
    assert parse_instrument("BTC-PERPETUAL") is None
    assert parse_instrument("BTC-31FEB26-100000-C") is None
    assert parse_expiration("ETH-28MAR25-3000-C") is None


def deribit_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/get_index_price"):
        return httpx.Response(200, json={"result": {"index_price": 100000}})
    if path.endswith("/get_book_summary_by_currency"):
        return httpx.Response(200, json={"result": [
            {
                "instrument_name": "BTC-27MAR26-100000-C",
                "bid_price": 0.0145, "ask_price": 0.0155, "mark_price": 0.015,
                "mark_iv": 55.0, "underlying_price": 100100,
            },
            {
                "instrument_name": "BTC-27MAR26-90000-P",
                "bid_price": None, "ask_price": 0.003, "mark_price": 0.002,
                "mark_iv": 60.0, "underlying_price": 100100,
            },
            {"instrument_name": "BTC-1JAN26-90000-P", "bid_price": 0.001, "ask_price": 0.002},
            {"instrument_name": "BTC-PERPETUAL", "bid_price": 1, "ask_price": 1},
        ]})
    if path.endswith("/ticker"):
        if request.url.params.get("instrument_name") != "BTC-27MAR26-100000-C":
            return httpx.Response(400, json={"error": {"message": "instrument_not_found"}})
        return httpx.Response(200, json={"result": {
            "instrument_name": "BTC-27MAR26-100000-C",
            "mark_iv": 54.5,
            "greeks": {"delta": 0.52, "gamma": 0.00002},
        }})
    if path.endswith("/get_order_book"):
        if request.url.params.get("instrument_name") != "BTC-27MAR26-100000-C":
            return httpx.Response(400, json={"error": {"message": "instrument_not_found"}})
        return httpx.Response(200, json={"result": {
            "bids": [[0.0145, 2.0]],
            "asks": [[0.016, 2.0], [0.015, 1.0]],
            "index_price": 100000,
        }})
    return httpx.Response(404)


@pytest.mark.asyncio
async def test_deribit_get_options_converts_to_usd():
    async with DeribitCollector(transport=httpx.MockTransport(deribit_handler)) as collector:
        options, spot = await collector.get_options(now=NOW)

    assert spot == Decimal("100000")
    assert [o.instrument_name for o in options] == ["BTC-27MAR26-90000-P", "BTC-27MAR26-100000-C"]

    put, call = options
    assert call.bid_price == Decimal("1450")
    assert call.ask_price == Decimal("1550")
    assert call.mid_price == Decimal("1500")
    assert call.mid_price_btc == Decimal("0.015")
    assert call.mark_iv == Decimal("55.0")
    assert call.is_liquid
    # Sem bid: mid vem do mark price
    assert put.mid_price == Decimal("200")
    assert not put.is_liquid


@pytest.mark.asyncio
async def test_deribit_ticker_fills_delta():
    async with DeribitCollector(transport=httpx.MockTransport(deribit_handler)) as collector:
        options, _ = await collector.get_options(now=NOW)
        enriched = await collector.enrich_with_tickers(options)
        only_call = await collector.enrich_with_tickers(options, {"BTC-27MAR26-100000-C"})

    put, call = enriched
    assert all(o.delta is None for o in options)
    assert call.delta == Decimal("0.52")
    assert call.mark_iv == Decimal("54.5")
    # Ticker com erro: opção fica como veio do book summary
    assert put.delta is None
    assert put.mark_iv == Decimal("60.0")
    assert [o.delta for o in only_call] == [None, Decimal("0.52")]


@pytest.mark.asyncio
async def test_deribit_fetch_book_vwap():
    async with DeribitCollector(transport=httpx.MockTransport(deribit_handler)) as collector:
        result = await collector.fetch_book_vwap("BTC-27MAR26-100000-C", Decimal("2"), "buy")
        priced = await collector.fetch_book_vwap(
            "BTC-27MAR26-100000-C", Decimal("1"), "sell", index_price=Decimal("90000"),
        )
        missing = await collector.fetch_book_vwap("BTC-27MAR26-1-C", Decimal("1"), "buy")

    assert result.vwap == Decimal("1550")
    assert result.levels_consumed == 2
    assert priced.vwap == Decimal("1305")
    assert missing.filled_size == 0


@pytest.mark.asyncio
async def test_deribit_max_fill_within_slippage():
    async with DeribitCollector(transport=httpx.MockTransport(deribit_handler)) as collector:
        result = await collector.max_fill_within_slippage(
            "BTC-27MAR26-100000-C", Decimal("1500"), Decimal("0.05"), "buy",
        )

    assert result.filled_size == 1
    assert result.vwap == Decimal("1500")


@pytest.mark.asyncio
async def test_deribit_index_error_propagates():
    def failing(request):
        return httpx.Response(503)

    async with DeribitCollector(transport=httpx.MockTransport(failing)) as collector:
        with pytest.raises(httpx.HTTPStatusError):
            await collector.get_index_price()
