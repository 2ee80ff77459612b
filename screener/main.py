"""CLI entry point for the Buffett criteria screener."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from screener.analyzer import SecurityAnalyzer
from screener.cache import ResultCache
from screener.config import ScreenerConfig
from screener.data.catalog import MARKETS, CsvMarketCatalog, FMPMarketCatalog, MarketCatalog
from screener.data.fmp import FMPClient
from screener.errors import ConfigurationError, ScreenerError
from screener.export import export_csv
from screener.scheduler import FetchScheduler
from screener.screening import rank_results, screen_market

logger = logging.getLogger(__name__)

API_KEY_ENV = "FMP_API_KEY"


def _api_key() -> str:
    """FMP API key from the environment.

    Raises:
        ConfigurationError: If the variable is unset or empty.
    """
    key = os.environ.get(API_KEY_ENV, "").strip()
    if not key:
        raise ConfigurationError(f"{API_KEY_ENV} environment variable is not set")
    return key


def _add_verbose(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_cache_path(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-path",
        type=Path,
        default=None,
        help="Result cache database (default: from config)",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="screener",
        description="Buffett criteria equity screener",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # screen command
    screen_parser = subparsers.add_parser(
        "screen", help="Screen a market and export CSV"
    )
    screen_parser.add_argument(
        "--market",
        required=True,
        help=f"Market to screen ({', '.join(MARKETS)})",
    )
    screen_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Screen only the first N securities (default: all)",
    )
    screen_parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Tickers per rate window (default: 100)",
    )
    screen_parser.add_argument(
        "--rate-window",
        type=float,
        default=None,
        help="Seconds per rate window (default: 60)",
    )
    screen_parser.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Cache freshness in hours (default: 24)",
    )
    screen_parser.add_argument(
        "--refresh",
        action="store_true",
        help="Ignore cached results",
    )
    screen_parser.add_argument(
        "--seed-file",
        type=Path,
        default=None,
        help="CSV of securities to use instead of the FMP listing",
    )
    screen_parser.add_argument(
        "--output",
        type=Path,
        default=Path("output/screening.csv"),
        help="Output CSV path (default: output/screening.csv)",
    )
    _add_cache_path(screen_parser)
    _add_verbose(screen_parser)

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze", help="Analyze specific tickers without the cache"
    )
    analyze_parser.add_argument(
        "tickers",
        nargs="+",
        help="Ticker symbols to analyze",
    )
    analyze_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Optional output CSV path",
    )
    _add_verbose(analyze_parser)

    # cache-stats command
    stats_parser = subparsers.add_parser(
        "cache-stats", help="Show cache freshness for one market or all markets"
    )
    stats_parser.add_argument(
        "--market", default=None, help="Market identifier (default: all markets)"
    )
    stats_parser.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Cache freshness in hours (default: 24)",
    )
    _add_cache_path(stats_parser)
    _add_verbose(stats_parser)

    # cache-clear command
    clear_parser = subparsers.add_parser(
        "cache-clear", help="Delete cached results for a market"
    )
    clear_parser.add_argument("--market", required=True, help="Market identifier")
    _add_cache_path(clear_parser)
    _add_verbose(clear_parser)

    # markets command
    markets_parser = subparsers.add_parser(
        "markets", help="List supported markets"
    )
    _add_verbose(markets_parser)

    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> ScreenerConfig:
    """Apply CLI overrides to the default configuration."""
    overrides = {}
    if getattr(args, "batch_size", None) is not None:
        overrides["batch_size"] = args.batch_size
    if getattr(args, "rate_window", None) is not None:
        overrides["rate_window_seconds"] = args.rate_window
    if getattr(args, "max_age_hours", None) is not None:
        overrides["max_age_hours"] = args.max_age_hours
    if getattr(args, "cache_path", None) is not None:
        overrides["cache_path"] = args.cache_path
    return ScreenerConfig(**overrides)


def run_screen(args: argparse.Namespace) -> None:
    """Execute the screen command.

    Args:
        args: Parsed CLI arguments.
    """
    config = _build_config(args)
    client = FMPClient(_api_key(), config)

    catalog: MarketCatalog
    if args.seed_file is not None:
        catalog = CsvMarketCatalog({args.market: args.seed_file})
    else:
        catalog = FMPMarketCatalog(client)

    analyzer = SecurityAnalyzer(client, statement_limit=config.statement_limit)
    scheduler = FetchScheduler(
        analyzer.analyze,
        batch_size=config.batch_size,
        rate_window=config.rate_window_seconds,
        ticker_retries=config.ticker_retries,
        max_rate_limit_deferrals=config.max_rate_limit_deferrals,
    )
    cache = ResultCache(config.cache_path)

    run = screen_market(
        args.market,
        catalog,
        scheduler,
        cache,
        max_age=config.max_age,
        limit=args.limit,
        force_refresh=args.refresh,
        on_progress=lambda pct, msg: logger.info("[%3.0f%%] %s", pct, msg),
    )
    export_csv(run.results, args.output)

    logger.info(
        "Results: %d scored (%d cached, %d fetched, %d stale, %d failed), written to %s",
        len(run.results),
        run.cache_hits,
        run.fetched,
        run.stale_served,
        len(run.summary.failed),
        args.output,
    )


def run_analyze(args: argparse.Namespace) -> None:
    """Execute the analyze command.

    Args:
        args: Parsed CLI arguments (tickers, output).
    """
    config = ScreenerConfig()
    analyzer = SecurityAnalyzer(
        FMPClient(_api_key(), config), statement_limit=config.statement_limit
    )
    scheduler = FetchScheduler(
        analyzer.analyze,
        batch_size=config.batch_size,
        rate_window=config.rate_window_seconds,
        ticker_retries=config.ticker_retries,
        max_rate_limit_deferrals=config.max_rate_limit_deferrals,
    )
    summary = scheduler.run([t.upper() for t in args.tickers])

    for result in rank_results(summary.succeeded):
        print(
            f"{result.security_id:<8} {result.raw_score:>2}/{len(result.criteria)}  "
            f"weighted {result.weighted_score:5.1f}  {result.name}"
        )
        for c in result.criteria:
            value = "n/a" if c.value is None else f"{c.value:.2f}"
            mark = "PASS" if c.passed else "fail"
            print(f"    {mark}  {c.name:<24} {value:>10}  ({c.threshold})")
    for ticker, error in summary.failed.items():
        logger.warning("%s: %s", ticker, error)

    if args.output is not None:
        export_csv(rank_results(summary.succeeded), args.output)


def run_cache_stats(args: argparse.Namespace) -> None:
    """Execute the cache-stats command."""
    config = _build_config(args)
    stats = ResultCache(config.cache_path).stats(args.market, config.max_age)
    label = args.market or "all markets"
    print(
        f"{label}: {stats.total} cached, {stats.fresh} fresh, "
        f"{stats.stale} stale, hit rate {stats.hit_rate:.0%}"
    )
    if args.market is None:
        for market, count in stats.by_market.items():
            print(f"  {market:<10} {count:>6}")


def run_cache_clear(args: argparse.Namespace) -> None:
    """Execute the cache-clear command."""
    config = _build_config(args)
    removed = ResultCache(config.cache_path).clear(args.market)
    print(f"{args.market}: removed {removed} cached results")


def run_markets(args: argparse.Namespace) -> None:
    """Execute the markets command."""
    for option in MARKETS.values():
        print(f"{option.id:<10} {option.kind:<9} {option.name}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).
    """
    args = _parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    commands = {
        "screen": run_screen,
        "analyze": run_analyze,
        "cache-stats": run_cache_stats,
        "cache-clear": run_cache_clear,
        "markets": run_markets,
    }
    try:
        commands[args.command](args)
    except ScreenerError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
