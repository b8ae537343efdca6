"""
Position Sizer
==============

Calcula quantidades das duas pernas de um combo para atingir um
notional alvo (soma dos custos absolutos).

REGRAS:
1. A perna de opção anda em lotes da Deribit (0.1) e fica em [min, max]
2. A perna binária é em contratos inteiros, sempre arredondada para baixo
3. Se o notional realizado sai da banda, NÃO operar (quantidades zero)

Falha de dimensionamento não é erro: é um resultado "sem trade" com o
motivo anexado, e o combo é simplesmente descartado.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from ..models.core import (
    MAX_TOTAL_COST,
    MIN_TOTAL_COST,
    OPTION_MAX_QTY,
    OPTION_MIN_QTY,
    TARGET_TOTAL_COST,
)
from .combo_finder import Combo

logger = logging.getLogger(__name__)

MIN_DENOMINATOR = Decimal("0.001")


@dataclass
class RejectionReason:
    """Razão detalhada para descartar um combo."""
    code: str
    message: str
    details: dict = None

    def __str__(self):
        return f"[{self.code}] {self.message}"


@dataclass
class Sizing:
    """
    Quantidades de um combo.

    binary_qty == option_qty == 0 significa "sem trade"; nesse caso
    rejection explica o motivo.
    """
    binary_qty: int
    option_qty: Decimal
    total_abs_cost: Decimal = Decimal("0")
    rejection: Optional[RejectionReason] = None

    @property
    def is_tradeable(self) -> bool:
        return self.binary_qty > 0 and self.option_qty > 0

    @classmethod
    def no_trade(cls, code: str, message: str, **details) -> "Sizing":
        return cls(
            binary_qty=0,
            option_qty=Decimal("0"),
            rejection=RejectionReason(code=code, message=message, details=details or None),
        )


class Sizer:
    """
    Dimensiona combos para um notional alvo.

    Para spreads, casa o payout máximo das duas pernas. Para vanillas,
    casa o custo da opção com o ganho potencial por contrato binário.
    """

    def __init__(
        self,
        target_total_cost: Decimal = TARGET_TOTAL_COST,
        min_total_cost: Decimal = MIN_TOTAL_COST,
        max_total_cost: Decimal = MAX_TOTAL_COST,
        lot_size: Decimal = OPTION_MIN_QTY,
        max_option_qty: Decimal = OPTION_MAX_QTY,
    ):
        """
        Args:
            target_total_cost: Notional alvo (USD)
            min_total_cost: Piso da banda de tolerância
            max_total_cost: Teto da banda de tolerância
            lot_size: Incremento mínimo da perna de opção (também o mínimo)
            max_option_qty: Quantidade máxima da perna de opção
        """
        self.target_total_cost = target_total_cost
        self.min_total_cost = min_total_cost
        self.max_total_cost = max_total_cost
        self.lot_size = lot_size
        self.max_option_qty = max_option_qty

    def size(self, combo: Combo) -> Sizing:
        binary, option = combo.binary_leg, combo.option_leg
        abs_option_cost = abs(option.cost_per_unit)
        abs_binary_cost = abs(binary.cost_per_unit)

        if abs_option_cost <= 0:
            return Sizing.no_trade("ZERO_OPTION_COST", f"Custo zero em {option.name}")

        # Contratos binários por unidade de opção
        if option.is_spread:
            if not binary.max_payout or binary.max_payout <= 0:
                return Sizing.no_trade(
                    "DEGENERATE_DENOMINATOR",
                    f"Payout máximo nulo em {binary.name}",
                )
            binary_per_option_unit = option.max_payout / binary.max_payout
        else:
            denominator = (Decimal("1") - abs_binary_cost) if binary.is_long else abs_binary_cost
            if denominator <= MIN_DENOMINATOR:
                return Sizing.no_trade(
                    "DEGENERATE_DENOMINATOR",
                    f"Denominador {denominator} <= {MIN_DENOMINATOR} em {binary.name}",
                    denominator=float(denominator),
                )
            binary_per_option_unit = abs_option_cost / denominator

        cost_per_unit = abs_option_cost + binary_per_option_unit * abs_binary_cost
        if cost_per_unit <= 0:
            return Sizing.no_trade("ZERO_UNIT_COST", f"Custo por unidade nulo em {combo.name}")

        option_qty = self._round_to_lot(self.target_total_cost / cost_per_unit)
        option_qty = max(self.lot_size, min(self.max_option_qty, option_qty))

        binary_qty = int((option_qty * binary_per_option_unit).to_integral_value(rounding=ROUND_FLOOR))

        total_abs_cost = option_qty * abs_option_cost + binary_qty * abs_binary_cost
        if total_abs_cost < self.min_total_cost or total_abs_cost > self.max_total_cost:
            return Sizing.no_trade(
                "OUT_OF_BAND",
                f"Notional ${total_abs_cost:.2f} fora de "
                f"[{self.min_total_cost}, {self.max_total_cost}]",
                total_abs_cost=float(total_abs_cost),
            )

        if binary_qty <= 0:
            return Sizing.no_trade("ZERO_BINARY_QTY", f"Zero contratos binários em {combo.name}")

        return Sizing(
            binary_qty=binary_qty,
            option_qty=option_qty,
            total_abs_cost=total_abs_cost,
        )

    def _round_to_lot(self, quantity: Decimal) -> Decimal:
        """Arredonda para o lote mais próximo (half-up)."""
        lots = (quantity / self.lot_size).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return lots * self.lot_size
