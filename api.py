"""
Hedge Engine API
================

API REST para o scanner de hedges Polymarket x Deribit.

Endpoints:
- GET /health - Status do sistema
- POST /scan - Scan completo (coleta + análise + livro)
- GET /scan/last - Resultado do último scan
- GET /scan/status - Status do scan
- POST /analyze - Analisa um binário + cadeia de opções enviados (sem rede)
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from hedge_arb.engine import MarketMatcher, StrategyAnalyzer
from hedge_arb.main import HedgeScanner, ScanResult
from hedge_arb.models import (
    BinaryContract,
    Direction,
    ListedOption,
    OptionKind,
    Strategy,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Polymarket-Deribit Hedge API",
    description="Combinações binário + opção que se protegem mutuamente",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Cache do último scan
last_scan_result: Optional[ScanResult] = None
scan_in_progress = False


# ==================== MODELS ====================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"


class BinaryInput(BaseModel):
    market_id: str = "manual"
    title: str = ""
    strike: float = Field(..., gt=0, description="Strike em USD")
    direction: str = Field(default="above", pattern="^(above|below)$")
    expiration: datetime
    yes_price: float = Field(..., gt=0, lt=1, description="Preço médio do YES")
    yes_token_id: str = ""
    no_token_id: str = ""


class OptionInput(BaseModel):
    instrument_name: str
    strike: float = Field(..., gt=0)
    kind: str = Field(..., pattern="^(call|put)$")
    expiration: datetime
    bid_price: float = Field(..., ge=0, description="Bid em USD")
    ask_price: float = Field(..., ge=0, description="Ask em USD")
    mid_price: Optional[float] = Field(default=None, ge=0, description="Mid em USD (default: média bid/ask)")
    mark_iv: float = 0.0
    delta: Optional[float] = None


class AnalyzeRequest(BaseModel):
    binary: BinaryInput
    options: List[OptionInput]
    spot: float = Field(..., gt=0, description="Index BTC/USD")
    include_payoff: bool = Field(default=False, description="Incluir curva de P/L")
    max_loss_limit: Optional[float] = Field(default=None, gt=0)


class PayoffPointResponse(BaseModel):
    price: float
    profit: float


class StrategyResponse(BaseModel):
    name: str
    description: str
    score: float
    total_cost: float
    max_profit: float
    max_loss: float
    breakevens: List[float]
    guaranteed_profit: bool
    binary_qty: float
    option_qty: float
    option_instrument: str
    payoff: Optional[List[PayoffPointResponse]] = None


class AnalyzeResponse(BaseModel):
    implied_prob_binary: float
    implied_prob_options: float
    probability_gap: float
    nearby_options: int
    strategies: List[StrategyResponse]
    rejections_summary: dict


class ScanConfig(BaseModel):
    top_n: int = Field(default=3, ge=1, le=20)
    fetch_timeout: float = Field(default=10.0, gt=0, le=60)


class ScanResponse(BaseModel):
    status: str
    timestamp: str
    spot: float
    binaries_scanned: int
    options_scanned: int
    pairs_analyzed: int
    strategies_found: int
    opportunities: List[dict]
    rejections_summary: dict
    scan_duration_seconds: float


class ScanStatusResponse(BaseModel):
    scan_in_progress: bool
    last_scan_timestamp: Optional[str] = None
    last_scan_strategies: int = 0


# ==================== HELPERS ====================

def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def to_binary(data: BinaryInput) -> BinaryContract:
    yes_price = _dec(data.yes_price)
    return BinaryContract(
        market_id=data.market_id,
        condition_id=data.market_id,
        title=data.title,
        strike=_dec(data.strike),
        direction=Direction(data.direction),
        expiration=_utc(data.expiration),
        yes_price=yes_price,
        no_price=1 - yes_price,
        yes_bid=yes_price,
        yes_ask=yes_price,
        yes_token_id=data.yes_token_id,
        no_token_id=data.no_token_id,
    )


def to_option(data: OptionInput, spot: Decimal) -> ListedOption:
    bid, ask = _dec(data.bid_price), _dec(data.ask_price)
    mid = _dec(data.mid_price) if data.mid_price is not None else (bid + ask) / 2
    return ListedOption(
        instrument_name=data.instrument_name,
        strike=_dec(data.strike),
        kind=OptionKind(data.kind),
        expiration=_utc(data.expiration),
        bid_price=bid,
        ask_price=ask,
        mid_price=mid,
        index_price=spot,
        mark_iv=_dec(data.mark_iv),
        delta=_dec(data.delta) if data.delta is not None else None,
    )


def to_strategy_response(strategy: Strategy, include_payoff: bool) -> StrategyResponse:
    payoff = None
    if include_payoff:
        payoff = [PayoffPointResponse(price=float(p.price), profit=float(p.profit)) for p in strategy.payoff]
    return StrategyResponse(
        name=strategy.name,
        description=strategy.description,
        score=float(strategy.score),
        total_cost=float(strategy.total_cost),
        max_profit=float(strategy.max_profit),
        max_loss=float(strategy.max_loss),
        breakevens=[float(b) for b in strategy.breakevens],
        guaranteed_profit=strategy.is_guaranteed_profit,
        binary_qty=float(strategy.binary_leg.quantity),
        option_qty=float(strategy.option_leg.quantity),
        option_instrument=strategy.option_leg.instrument,
        payoff=payoff,
    )


def to_scan_response(result: ScanResult) -> ScanResponse:
    return ScanResponse(
        status="completed",
        timestamp=result.timestamp.isoformat(),
        spot=float(result.spot),
        binaries_scanned=result.binaries_scanned,
        options_scanned=result.options_scanned,
        pairs_analyzed=result.pairs_analyzed,
        strategies_found=result.strategies_found,
        opportunities=result.opportunities,
        rejections_summary=result.rejections_summary,
        scan_duration_seconds=result.scan_duration_seconds,
    )


# ==================== ENDPOINTS ====================

@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest):
    """
    Analisa um binário contra a cadeia de opções enviada.

    Não acessa a rede: usa só os preços médios recebidos.
    """
    spot = _dec(request.spot)
    binary = to_binary(request.binary)
    options = [to_option(o, spot) for o in request.options]

    pairs = MarketMatcher().match([binary], options)
    if not pairs:
        raise HTTPException(status_code=422, detail="Nenhuma opção com vencimento compatível (<= 24h)")

    limit = _dec(request.max_loss_limit) if request.max_loss_limit is not None else None
    analysis = StrategyAnalyzer(max_loss_limit=limit).analyze(pairs[0], spot)

    return AnalyzeResponse(
        implied_prob_binary=float(analysis.implied_prob_binary),
        implied_prob_options=float(analysis.implied_prob_options),
        probability_gap=float(analysis.probability_gap),
        nearby_options=len(pairs[0].options),
        strategies=[to_strategy_response(s, request.include_payoff) for s in analysis.strategies],
        rejections_summary=analysis.rejections_summary,
    )


@app.get("/scan/status", response_model=ScanStatusResponse)
async def get_scan_status():
    """Retorna status do scan."""
    global last_scan_result, scan_in_progress

    return ScanStatusResponse(
        scan_in_progress=scan_in_progress,
        last_scan_timestamp=last_scan_result.timestamp.isoformat() if last_scan_result else None,
        last_scan_strategies=last_scan_result.strategies_found if last_scan_result else 0,
    )


@app.get("/scan/last", response_model=Optional[ScanResponse])
async def get_last_scan():
    """Retorna resultado do último scan."""
    global last_scan_result

    if not last_scan_result:
        return None
    return to_scan_response(last_scan_result)


@app.post("/scan", response_model=ScanResponse)
async def run_scan(config: Optional[ScanConfig] = None):
    """
    Executa um scan completo.

    1. Coleta binários da Polymarket e opções da Deribit
    2. Pareia por vencimento e strike
    3. Gera e ranqueia estratégias
    4. Reprecifica as top N de cada par contra o livro
    """
    global last_scan_result, scan_in_progress

    if scan_in_progress:
        raise HTTPException(status_code=429, detail="Scan já em andamento")

    scan_in_progress = True

    try:
        config = config or ScanConfig()
        scanner = HedgeScanner(top_n=config.top_n, fetch_timeout=config.fetch_timeout)
        result = await scanner.scan()
        last_scan_result = result
        return to_scan_response(result)
    finally:
        scan_in_progress = False


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
