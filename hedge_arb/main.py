"""
Binary/Options Hedge Scanner
============================

Procura combinações de um contrato binário da Polymarket com uma opção
(ou spread) da Deribit que se protegem mutuamente.

Ciclo:
    Coleta -> Matching -> Análise (posições, combos, sizing, P/L, score)
           -> Enriquecimento com livro real (top N por par)

PRINCÍPIO:
Preço médio serve para gerar e ranquear. Só o livro diz se dá para
executar.

USO:
    python -m hedge_arb.main
    python -m hedge_arb.main --loop --interval 30

    Ou como módulo:
    from hedge_arb.main import HedgeScanner
    result = await HedgeScanner().scan()
"""

import argparse
import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import httpx

from .collectors import DeribitCollector, PolymarketCollector
from .engine import ExecutionEnricher, MarketMatcher, StrategyAnalyzer
from .models import (
    ListedOption,
    MarketPair,
    OpportunityAnalysis,
    Strategy,
    MAX_TOTAL_COST,
)

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Resultado de um scan completo."""
    timestamp: datetime
    spot: Decimal
    binaries_scanned: int
    options_scanned: int
    pairs_analyzed: int
    strategies_found: int
    opportunities: list[dict]
    rejections_summary: dict
    scan_duration_seconds: float
    analyses: list[OpportunityAnalysis] = field(default_factory=list)


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def refresh_pairs(pairs: list[MarketPair], options: list[ListedOption]) -> list[MarketPair]:
    """Troca as opções dos pares pelas versões atualizadas (mesmo instrumento)."""
    by_name = {o.instrument_name: o for o in options}

    def fresh(option: Optional[ListedOption]) -> Optional[ListedOption]:
        return by_name.get(option.instrument_name, option) if option else None

    return [
        replace(
            pair,
            options=[fresh(o) for o in pair.options],
            best_call=fresh(pair.best_call),
            best_put=fresh(pair.best_put),
        )
        for pair in pairs
    ]


def strategy_to_dict(strategy: Strategy, analysis: OpportunityAnalysis) -> dict:
    """Resumo serializável de uma estratégia (sem a curva de P/L)."""
    binary = analysis.pair.binary
    return {
        "binary_title": binary.title,
        "binary_market_id": binary.market_id,
        "strike": float(binary.strike),
        "expiration": binary.expiration.isoformat(),
        "name": strategy.name,
        "description": strategy.description,
        "score": float(strategy.score),
        "total_cost": float(strategy.total_cost),
        "max_profit": float(strategy.max_profit),
        "max_loss": float(strategy.max_loss),
        "breakevens": [float(b) for b in strategy.breakevens],
        "guaranteed_profit": strategy.is_guaranteed_profit,
        "binary_qty": float(strategy.binary_leg.quantity),
        "option_qty": float(strategy.option_leg.quantity),
        "option_instrument": strategy.option_leg.instrument,
        "implied_prob_binary": float(analysis.implied_prob_binary),
        "implied_prob_options": float(analysis.implied_prob_options),
        "book_total_cost": _num(strategy.book_total_cost),
        "binary_slippage_pct": _num(strategy.binary_slippage_pct),
        "option_slippage_pct": _num(strategy.option_slippage_pct),
        "option_fill_pct": _num(strategy.book_option_fill_pct),
        "executable": strategy.executable,
    }


class HedgeScanner:
    """
    Scanner principal.

    Coordena:
    1. Coleta de binários (Polymarket) e opções (Deribit)
    2. Matching por vencimento e strike, com delta do ticker
    3. Geração e ranking de estratégias por par
    4. Reprecificação das melhores contra o livro
    """

    def __init__(
        self,
        top_n: int = 3,
        fetch_timeout: float = 10.0,
        max_loss_limit: Decimal = MAX_TOTAL_COST * 2,
    ):
        """
        Args:
            top_n: Estratégias enriquecidas com livro por par
            fetch_timeout: Timeout por busca de livro (segundos)
            max_loss_limit: Perda máxima aceitável no grid (USD)
        """
        self.top_n = top_n
        self.fetch_timeout = fetch_timeout
        self.matcher = MarketMatcher()
        self.analyzer = StrategyAnalyzer(max_loss_limit=max_loss_limit)

    async def scan(self) -> ScanResult:
        """
        Executa um scan completo.

        Erro HTTP na coleta gera um scan vazio (logado), não exceção.
        """
        start_time = datetime.now(timezone.utc)
        logger.info("Iniciando scan de hedges...")

        analyses: list[OpportunityAnalysis] = []
        binaries, options, spot = [], [], Decimal("0")

        async with PolymarketCollector() as polymarket, DeribitCollector() as deribit:
            try:
                binaries = await polymarket.get_binaries()
                options, spot = await deribit.get_options()
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Erro na coleta: {e}")
                return self._result(start_time, spot, binaries, options, [])

            pairs = self.matcher.match(binaries, options)

            # Delta da call mais próxima vem do ticker
            nearest = {p.best_call.instrument_name for p in pairs if p.best_call}
            if nearest:
                options = await deribit.enrich_with_tickers(options, nearest)
                pairs = refresh_pairs(pairs, options)

            enricher = ExecutionEnricher(polymarket, deribit, fetch_timeout=self.fetch_timeout)

            for pair in pairs:
                analysis = self.analyzer.analyze(pair, spot)
                if analysis.strategies:
                    await enricher.enrich_top(analysis.strategies, pair.binary, spot, self.top_n)
                analyses.append(analysis)

        return self._result(start_time, spot, binaries, options, analyses)

    def _result(self, start_time, spot, binaries, options, analyses) -> ScanResult:
        opportunities = []
        rejections: dict[str, int] = {}
        strategies_found = 0

        for analysis in analyses:
            strategies_found += len(analysis.strategies)
            for code, count in analysis.rejections_summary.items():
                rejections[code] = rejections.get(code, 0) + count
            for strategy in analysis.strategies[:self.top_n]:
                opportunities.append(strategy_to_dict(strategy, analysis))

        opportunities.sort(key=lambda x: x["score"], reverse=True)

        end_time = datetime.now(timezone.utc)
        duration = (end_time - start_time).total_seconds()
        logger.info(
            f"Scan completo em {duration:.1f}s | pares={len(analyses)} "
            f"estratégias={strategies_found} rejeições={rejections}"
        )

        return ScanResult(
            timestamp=end_time,
            spot=spot,
            binaries_scanned=len(binaries),
            options_scanned=len(options),
            pairs_analyzed=len(analyses),
            strategies_found=strategies_found,
            opportunities=opportunities,
            rejections_summary=rejections,
            scan_duration_seconds=duration,
            analyses=analyses,
        )


def print_scan(result: ScanResult, limit: int = 10):
    print(f"\n{'='*60}")
    print(f"SCAN COMPLETO - {result.timestamp.isoformat()}")
    print(f"{'='*60}")
    print(f"BTC index: ${result.spot:,.0f}")
    print(f"Binários: {result.binaries_scanned} | Opções: {result.options_scanned}")
    print(f"Pares analisados: {result.pairs_analyzed}")
    print(f"Estratégias: {result.strategies_found}")
    print(f"Duração: {result.scan_duration_seconds:.1f}s")

    if result.opportunities:
        print("\nTOP ESTRATÉGIAS:")
        for i, opp in enumerate(result.opportunities[:limit], 1):
            flag = {True: "OK", False: "NO", None: "?"}[opp["executable"]]
            print(
                f"  {i}. [{flag}] {opp['description']} | "
                f"max=${opp['max_profit']:,.0f} min=${opp['max_loss']:,.0f} | "
                f"{opp['binary_title']}"
            )

    if result.rejections_summary:
        print(f"\nRejeições: {result.rejections_summary}")


async def run_continuous_scanner(interval_seconds: int = 30, top_n: int = 3):
    """Executa o scanner em loop até interrupção."""
    scanner = HedgeScanner(top_n=top_n)
    while True:
        result = await scanner.scan()
        print_scan(result)
        await asyncio.sleep(interval_seconds)


async def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Scanner de hedges Polymarket x Deribit")
    parser.add_argument("--loop", action="store_true", help="Repete o scan continuamente")
    parser.add_argument("--interval", type=int, default=30, help="Segundos entre scans")
    parser.add_argument("--top", type=int, default=3, help="Estratégias enriquecidas por par")
    args = parser.parse_args(argv)

    if args.loop:
        await run_continuous_scanner(args.interval, args.top)
    else:
        print_scan(await HedgeScanner(top_n=args.top).scan())


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )
    asyncio.run(main())
