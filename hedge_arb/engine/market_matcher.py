"""
Market Matcher
==============

Pareia cada contrato binário da Polymarket com a cadeia de opções da
Deribit de vencimento mais próximo.

REGRAS:
1. Opções agrupadas por data de vencimento (UTC)
2. Só aceita o grupo se a diferença de vencimento for <= 24h
   (mesmo dia; sem fallback para mesma semana)
3. Dentro do grupo, mantém opções com strike a menos de 15% do strike
   do binário
4. Registra a call e a put mais próximas do strike, independente da banda

Sem match não é erro: o binário apenas não gera estratégias.
"""

import logging
from datetime import date, timedelta, timezone
from decimal import Decimal
from typing import Optional

from ..models.core import (
    BinaryContract,
    ListedOption,
    MarketPair,
    OptionKind,
    MAX_EXPIRY_GAP,
    STRIKE_BAND,
)

logger = logging.getLogger(__name__)


def group_by_expiration(options: list[ListedOption]) -> dict[date, list[ListedOption]]:
    """Agrupa opções pela data (UTC) de vencimento, preservando a ordem."""
    groups: dict[date, list[ListedOption]] = {}
    for option in options:
        key = option.expiration.astimezone(timezone.utc).date()
        groups.setdefault(key, []).append(option)
    return groups


def nearest_strike(
    options: list[ListedOption],
    strike: Decimal,
    kind: OptionKind,
) -> Optional[ListedOption]:
    """Opção do tipo pedido com strike mais próximo (primeira em caso de empate)."""
    best = None
    for option in options:
        if option.kind != kind:
            continue
        if best is None or abs(option.strike - strike) < abs(best.strike - strike):
            best = option
    return best


class MarketMatcher:
    """
    Encontra a cadeia de opções equivalente para cada contrato binário.
    """

    def __init__(
        self,
        max_expiry_gap: timedelta = MAX_EXPIRY_GAP,
        strike_band: Decimal = STRIKE_BAND,
    ):
        """
        Args:
            max_expiry_gap: Distância máxima entre vencimentos
            strike_band: Distância relativa máxima de strike (0.15 = 15%)
        """
        self.max_expiry_gap = max_expiry_gap
        self.strike_band = strike_band

    def match(
        self,
        binaries: list[BinaryContract],
        options: list[ListedOption],
    ) -> list[MarketPair]:
        """
        Args:
            binaries: Contratos binários da Polymarket
            options: Opções listadas na Deribit

        Returns:
            Lista de MarketPair, na ordem dos binários
        """
        groups = group_by_expiration(options)
        pairs = []

        for binary in binaries:
            pair = self._match_one(binary, groups)
            if pair:
                pairs.append(pair)

        logger.info(f"Matching: {len(pairs)} pares de {len(binaries)} binários x {len(groups)} vencimentos")
        return pairs

    def _match_one(
        self,
        binary: BinaryContract,
        groups: dict[date, list[ListedOption]],
    ) -> Optional[MarketPair]:
        best_group: Optional[list[ListedOption]] = None
        best_gap: Optional[timedelta] = None

        for group in groups.values():
            gap = abs(group[0].expiration - binary.expiration)
            if best_gap is None or gap < best_gap:
                best_gap = gap
                best_group = group

        if best_group is None or best_gap > self.max_expiry_gap:
            logger.debug(f"Sem vencimento compatível para {binary.title or binary.market_id}")
            return None

        nearby = [
            option for option in best_group
            if abs(option.strike - binary.strike) / binary.strike < self.strike_band
        ]

        return MarketPair(
            binary=binary,
            options=nearby,
            best_call=nearest_strike(best_group, binary.strike, OptionKind.CALL),
            best_put=nearest_strike(best_group, binary.strike, OptionKind.PUT),
            expiration=binary.expiration,
        )
