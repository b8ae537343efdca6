"""
Combo Finder
============

Cruza posições binárias com posições de opções.

Um combo é um hedge: uma perna lucra se o preço sobe e a outra
lucra se o preço cai. Pares com o mesmo viés são descartados.
Não há deduplicação além desse filtro.
"""

import logging
from dataclasses import dataclass

from .position_generator import AtomicPosition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Combo:
    """Par (perna binária, perna de opção) com vieses opostos."""
    binary_leg: AtomicPosition
    option_leg: AtomicPosition

    def __post_init__(self):
        if self.binary_leg.bias == self.option_leg.bias:
            raise ValueError(
                f"Combo sem hedge: {self.binary_leg.name} e {self.option_leg.name} "
                f"têm o mesmo viés ({self.binary_leg.bias.value})"
            )

    @property
    def name(self) -> str:
        return f"{self.binary_leg.name} + {self.option_leg.name}"


def find_combos(
    binary_positions: list[AtomicPosition],
    option_positions: list[AtomicPosition],
) -> list[Combo]:
    """Produto cartesiano filtrado por viés oposto."""
    combos = [
        Combo(binary_leg=binary, option_leg=option)
        for binary in binary_positions
        for option in option_positions
        if binary.bias != option.bias
    ]
    logger.debug(
        f"{len(combos)} combos de {len(binary_positions)} x {len(option_positions)} posições"
    )
    return combos
