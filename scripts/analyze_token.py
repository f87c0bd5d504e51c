#!/usr/bin/env python3
"""
One-off token analysis.

Usage:
    python scripts/analyze_token.py --ticker SNEK [--mode quick|deep|gold] [--persist]
    python scripts/analyze_token.py --unit <policy_id + asset_name_hex>

Prints the JSON report. Without --persist nothing touches the database,
so tickers can only be resolved through the live top-volume list.
"""
import argparse
import asyncio
import json
import sys

from tokenrisk.core.db import init_db, close_db
from tokenrisk.core.errors import UnresolvableTokenError
from tokenrisk.core.logger import configure_logging, get_logger
from tokenrisk.engines.pipeline import AnalysisOrchestrator
from tokenrisk.gateway.gateway import DataGateway
from tokenrisk.storage.tokens import TokenStore

logger = get_logger("scripts.analyze_token")


async def run(args) -> int:
    gateway = DataGateway()
    store = None
    if args.persist:
        await init_db()
        store = TokenStore()

    orchestrator = AnalysisOrchestrator(gateway, store)
    try:
        if args.mode == "quick":
            report = await orchestrator.quick_assess(unit=args.unit, ticker=args.ticker)
        else:
            report = await orchestrator.analyze(unit=args.unit, ticker=args.ticker, gold=args.mode == "gold")
    except UnresolvableTokenError as e:
        logger.error(str(e))
        return 2
    finally:
        await gateway.close()
        if args.persist:
            await close_db()

    print(json.dumps(report.to_dict(include_holders=args.holders), indent=2, default=str))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a token risk analysis")
    parser.add_argument("--ticker")
    parser.add_argument("--unit")
    parser.add_argument("--mode", choices=["quick", "deep", "gold"], default="deep")
    parser.add_argument("--persist", action="store_true", help="save results to DATABASE_URL")
    parser.add_argument("--holders", action="store_true", help="include per-holder rows in the output")
    args = parser.parse_args(argv)

    if not args.ticker and not args.unit:
        parser.error("one of --ticker or --unit is required")

    configure_logging()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
