"""
Core Data Models for the Hedge Engine
=====================================

Entidades fundamentais do sistema:
- BinaryContract: contrato binário da Polymarket ("BTC acima de K na data T")
- ListedOption: opção listada na Deribit (call/put)
- OrderBook: livro de ordens normalizado (melhor preço primeiro)
- ExecutionSimulation: resultado de caminhar pelo livro
- Strategy: combinação dimensionada com curva de P/L

PRINCÍPIO CENTRAL: preço médio é só referência.
O preço executável vem sempre do livro real (ver ExecutionEnricher).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional


class Platform(Enum):
    """Plataformas suportadas pelo sistema."""
    POLYMARKET = "polymarket"
    DERIBIT = "deribit"


class Side(Enum):
    """
    Lado de um contrato binário.

    Em mercados binários: YES + NO = 1.00
    """
    YES = "yes"
    NO = "no"


class Direction(Enum):
    """Condição do contrato binário em relação ao strike."""
    ABOVE = "above"
    BELOW = "below"


class OptionKind(Enum):
    """Tipo de opção vanilla."""
    CALL = "call"
    PUT = "put"


class Bias(Enum):
    """
    Viés direcional de uma posição.

    BULL: lucra se o preço sobe. BEAR: lucra se o preço cai.
    """
    BULL = "bull"
    BEAR = "bear"

    def opposite(self) -> "Bias":
        return Bias.BEAR if self == Bias.BULL else Bias.BULL


class LegDirection(Enum):
    """Direção de uma perna: comprada ou vendida."""
    LONG = "long"
    SHORT = "short"


def round_units(value: Decimal) -> Decimal:
    """Arredonda para unidade inteira de moeda (half-up)."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BinaryContract:
    """
    Contrato binário da Polymarket.

    Imutável depois de coletado. Preços YES/NO são midpoints (0-1)
    e sempre satisfazem no_price = 1 - yes_price.
    """
    market_id: str
    condition_id: str
    title: str
    strike: Decimal
    direction: Direction
    expiration: datetime
    yes_price: Decimal
    no_price: Decimal
    yes_bid: Decimal
    yes_ask: Decimal
    yes_token_id: str = ""
    no_token_id: str = ""
    is_barrier: bool = False  # "hit/reach" em vez de "above on"
    event_slug: Optional[str] = None

    def token_for(self, side: Side) -> str:
        """Token CLOB do resultado pedido."""
        return self.yes_token_id if side == Side.YES else self.no_token_id

    @property
    def strike_label(self) -> str:
        """Ex: $100K"""
        return f"${round_units(self.strike / 1000)}K"


@dataclass(frozen=True)
class ListedOption:
    """
    Opção listada na Deribit.

    Preços em USD (convertidos de BTC pelo index price).
    O delta é usado como proxy de probabilidade.
    """
    instrument_name: str
    strike: Decimal
    kind: OptionKind
    expiration: datetime
    bid_price: Decimal
    ask_price: Decimal
    mid_price: Decimal
    bid_price_btc: Decimal = Decimal("0")
    ask_price_btc: Decimal = Decimal("0")
    mid_price_btc: Decimal = Decimal("0")
    index_price: Decimal = Decimal("0")
    mark_iv: Decimal = Decimal("0")
    delta: Optional[Decimal] = None

    @property
    def is_liquid(self) -> bool:
        """Tem bid e ask (dá para operar os dois lados)."""
        return self.bid_price > 0 and self.ask_price > 0

    @property
    def strike_label(self) -> str:
        return f"${round_units(self.strike / 1000)}K"


@dataclass
class PriceLevel:
    """
    Um nível de preço no livro de ordens.

    - price: preço por unidade (0-1 na Polymarket, USD na Deribit)
    - size: quantidade disponível
    """
    price: Decimal
    size: Decimal

    def __post_init__(self):
        """Validação básica."""
        if self.price < 0:
            raise ValueError(f"Preço não pode ser negativo: {self.price}")
        if self.size < 0:
            raise ValueError(f"Size não pode ser negativo: {self.size}")


@dataclass
class OrderBook:
    """
    Livro de ordens normalizado para um instrumento.

    Bids: ofertas de compra (do maior para o menor preço)
    Asks: ofertas de venda (do menor para o maior preço)
    """
    instrument: str
    bids: list[PriceLevel] = field(default_factory=list)
    asks: list[PriceLevel] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        """Melhor preço de compra (maior bid)."""
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        """Melhor preço de venda (menor ask)."""
        return self.asks[0] if self.asks else None

    def levels_for(self, direction: str) -> list[PriceLevel]:
        """Níveis consumidos por uma ordem: asks para compra, bids para venda."""
        return self.asks if direction == "buy" else self.bids


@dataclass
class ExecutionSimulation:
    """
    Resultado de uma simulação de execução no livro.

    Representa o custo real de executar uma ordem de tamanho Q.
    filled_size == 0 significa "sem dados" (livro vazio, erro de rede).
    """
    instrument: str
    direction: str  # "buy" ou "sell"
    requested_size: Decimal
    filled_size: Decimal
    vwap: Decimal  # Volume Weighted Average Price
    total_cost: Decimal
    levels_consumed: int
    is_complete: bool
    unfilled_size: Decimal = Decimal("0")

    @property
    def fill_pct(self) -> Decimal:
        """Percentual preenchido (0-100)."""
        if self.requested_size <= 0:
            return Decimal("0")
        return self.filled_size / self.requested_size * 100

    @property
    def has_fill(self) -> bool:
        return self.filled_size > 0 and self.vwap > 0

    @classmethod
    def empty(cls, instrument: str, direction: str, requested_size: Decimal) -> "ExecutionSimulation":
        """Execução nula: nada preenchido."""
        return cls(
            instrument=instrument,
            direction=direction,
            requested_size=requested_size,
            filled_size=Decimal("0"),
            vwap=Decimal("0"),
            total_cost=Decimal("0"),
            levels_consumed=0,
            is_complete=False,
            unfilled_size=requested_size,
        )


@dataclass
class MarketPair:
    """Contrato binário pareado com a cadeia de opções de mesma expiração."""
    binary: BinaryContract
    options: list[ListedOption]  # opções dentro da banda de strike
    best_call: Optional[ListedOption]
    best_put: Optional[ListedOption]
    expiration: datetime


@dataclass(frozen=True)
class PayoffPoint:
    """Um ponto da curva de P/L: (preço do BTC, lucro em USD)."""
    price: Decimal
    profit: Decimal


@dataclass
class StrategyLeg:
    """
    Uma perna de uma estratégia concreta.

    total_cost = quantity × unit_price, negativo quando vendido.
    instrument_refs guarda as referências de livro (2 para spreads).
    """
    instrument: str
    platform: Platform
    direction: LegDirection
    quantity: Decimal
    unit_price: Decimal
    total_cost: Decimal
    instrument_refs: tuple[str, ...] = ()
    outcome: Optional[Side] = None

    @property
    def is_long(self) -> bool:
        return self.direction == LegDirection.LONG


@dataclass
class Strategy:
    """
    Estratégia nomeada com curva de payoff em USD.

    Os campos book_* só existem depois do ExecutionEnricher.
    None significa "não avaliado" (ou sem dados de livro).
    """
    name: str
    description: str
    legs: list[StrategyLeg]
    payoff: list[PayoffPoint]
    leg_payoffs: list[list[PayoffPoint]]
    total_cost: Decimal
    max_profit: Decimal
    max_loss: Decimal
    breakevens: list[Decimal]
    score: Decimal = Decimal("0")

    # Dados de livro (preenchidos pelo ExecutionEnricher)
    book_binary_vwap: Optional[Decimal] = None
    book_binary_payoff: Optional[list[PayoffPoint]] = None
    binary_slippage_pct: Optional[Decimal] = None
    book_option_vwap: Optional[Decimal] = None
    book_option_fill_pct: Optional[Decimal] = None
    book_option_payoff: Optional[list[PayoffPoint]] = None
    option_slippage_pct: Optional[Decimal] = None
    book_combined_payoff: Optional[list[PayoffPoint]] = None
    book_total_cost: Optional[Decimal] = None
    executable: Optional[bool] = None

    @property
    def binary_leg(self) -> StrategyLeg:
        return self.legs[0]

    @property
    def option_leg(self) -> StrategyLeg:
        return self.legs[1]

    @property
    def is_guaranteed_profit(self) -> bool:
        """Arbitragem verdadeira: lucro em todo o grid."""
        return self.max_loss > 0

    @property
    def is_enriched(self) -> bool:
        return self.book_total_cost is not None


@dataclass
class OpportunityAnalysis:
    """Resultado da análise de um par: estratégias ranqueadas + probabilidades."""
    pair: MarketPair
    strategies: list[Strategy]
    implied_prob_binary: Decimal
    implied_prob_options: Decimal
    probability_gap: Decimal
    rejections_summary: dict = field(default_factory=dict)

    @property
    def best(self) -> Optional[Strategy]:
        return self.strategies[0] if self.strategies else None


# Constantes do sistema
TARGET_TOTAL_COST = Decimal("3000")  # Notional alvo somando as duas pernas
MIN_TOTAL_COST = Decimal("500")
MAX_TOTAL_COST = Decimal("8000")
OPTION_MIN_QTY = Decimal("0.1")  # Lote mínimo da Deribit
OPTION_MAX_QTY = Decimal("50")
MAX_SLIPPAGE_PCT = Decimal("0.05")  # 5% de slippage máximo para "executável"
MIN_FILL_PCT = Decimal("90")
MIN_SPREAD_WIDTH = Decimal("2000")
MAX_SPREAD_WIDTH = Decimal("30000")
STRIKE_BAND = Decimal("0.15")  # ±15% do strike do binário
MAX_EXPIRY_GAP = timedelta(hours=24)  # Mesmo dia, sem fallback
GRID_POINTS = 300
ARBITRAGE_SCORE_FLOOR = Decimal("1000000")
