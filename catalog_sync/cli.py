"""
Command-line entry point for the Fal.ai catalog sync

Usage:
    catalog-sync sync
    catalog-sync refresh-parameters
    catalog-sync counts
    catalog-sync estimate fal-ai/flux/dev --calls 10
"""

import argparse
import logging
import sys

from catalog_sync.config import Config
from catalog_sync.config.logging_config import configure_logging
from catalog_sync.db.catalog_db import CatalogStore, get_catalog_counts
from catalog_sync.services.fal_sync import (
    estimate_generation_cost,
    refresh_fal_parameters,
    sync_fal_models,
)
from catalog_sync.utils.exceptions import CatalogSyncError

logger = logging.getLogger(__name__)


def _run_sync(args: argparse.Namespace) -> int:
    Config.validate()
    result = sync_fal_models()

    print("\n📊 Sync Summary:")
    print(f"   Models added: {result.models_added}")
    print(f"   Models updated: {result.models_updated}")
    print(f"   Parameters added: {result.parameters_added}")
    print(f"   Pricing updated: {result.pricing_updated}")
    print(f"   Errors: {len(result.errors)}")
    print(f"   Duration: {result.duration:.2f}s")
    if result.errors:
        print("\n⚠️  Errors:")
        for error in result.errors:
            print(f"   - {error.model}: {error.error}")
    return 0


def _run_refresh(args: argparse.Namespace) -> int:
    Config.validate()
    result = refresh_fal_parameters()
    print(
        f"\n✅ Updated: {result.updated}  ⚠️ Skipped: {result.skipped}  "
        f"❌ Failed: {result.failed}  Total: {result.total}"
    )
    return 0


def _run_counts(args: argparse.Namespace) -> int:
    counts = get_catalog_counts(CatalogStore())
    print("\n📊 Catalog Counts:")
    for table, count in counts.items():
        print(f"   {table}: {count}")
    return 0


def _run_estimate(args: argparse.Namespace) -> int:
    cost = estimate_generation_cost(args.model_id, args.calls)
    print(f"💰 {args.model_id}: ${cost:.4f} per call")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-sync",
        description="Synchronize the Fal.ai model catalog into the database",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Override LOG_LEVEL for this run",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("sync", help="Run one full catalog sync").set_defaults(func=_run_sync)
    subparsers.add_parser(
        "refresh-parameters", help="Re-derive parameters of every catalog model"
    ).set_defaults(func=_run_refresh)
    subparsers.add_parser("counts", help="Show catalog table row counts").set_defaults(
        func=_run_counts
    )

    estimate = subparsers.add_parser("estimate", help="Estimate the per-call cost of a model")
    estimate.add_argument("model_id", help="Fal.ai endpoint id, e.g. fal-ai/flux/dev")
    estimate.add_argument("--calls", type=int, default=1, help="Expected call quantity")
    estimate.set_defaults(func=_run_estimate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.func(args)
    except CatalogSyncError as e:
        logger.error(f"❌ {args.command} failed: {e}")
        return 1
    except (RuntimeError, ValueError) as e:
        # Missing credentials or an unreachable database
        logger.error(f"❌ {args.command} could not start: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
