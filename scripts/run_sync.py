"""Manual sync runner.

Runs one product sync against the configured database and prints the
summary, the same way the API and the scheduler do.

Usage:
    python scripts/run_sync.py --source syscom
    python scripts/run_sync.py --source syscom --categories 22 37
    python scripts/run_sync.py --source both --min-price 100 --max-price 5000
"""

import argparse
import asyncio
import os
import sys
from decimal import Decimal

# Add backend to path so we can import storefront modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from storefront.db.session import async_session_factory, engine
from storefront.models import Base
from storefront.services.sync_service import (
    CategorySelection,
    SyncFilters,
    SyncOrchestrator,
    SyncRun,
    SyncStatus,
)
from storefront.suppliers.register_adapters import register_all_adapters


async def run_sync(
    source: str,
    categories: list[str],
    filters: SyncFilters,
    create_tables: bool = False,
) -> SyncRun:
    """Run a sync and display the summary.

    Args:
        source: 'syscom', 'tecnosinergia' or 'both'
        categories: Category ids, ['all'], or empty for the stored selection
        filters: Stock and price filters
        create_tables: Create missing tables first
    """
    register_all_adapters()

    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    print(f"\n{'='*70}")
    print(f"  Syncing {source.upper()}")
    print(f"{'='*70}")
    print(f"  Categories: {', '.join(categories) if categories else 'stored selection'}")
    print(f"  Filters: {filters.to_dict()}")
    print(f"{'='*70}\n")

    try:
        async with async_session_factory() as db:
            orchestrator = SyncOrchestrator(db)
            run = await orchestrator.run_sync(
                source,
                selection=CategorySelection.from_request(categories),
                filters=filters,
            )
    finally:
        await engine.dispose()

    _print_run(run)
    return run


def _print_run(run: SyncRun, indent: str = "  ") -> None:
    print(f"{indent}Source: {run.source}")
    print(f"{indent}Status: {run.status.value}")
    print(f"{indent}Collected: {run.products_collected}")
    print(f"{indent}With stock: {run.products_with_stock}")
    print(f"{indent}Synced: {run.products_synced}")
    print(f"{indent}Duration: {run.duration_seconds}s")

    if run.errors:
        print(f"{indent}Errors ({len(run.errors)}):")
        for error in run.errors[:20]:
            context = ", ".join(f"{k}={v}" for k, v in error.context.items())
            print(f"{indent}  - [{context}] {error.message}")
        if len(run.errors) > 20:
            print(f"{indent}  ... {len(run.errors) - 20} more")

    for sub_run in run.per_source.values():
        print()
        _print_run(sub_run, indent=indent + "  ")
    print()


def main():
    """Parse arguments and run the sync."""
    parser = argparse.ArgumentParser(
        description="Run a supplier product sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_sync.py --source syscom
  python scripts/run_sync.py --source syscom --categories all
  python scripts/run_sync.py --source both --include-out-of-stock
        """,
    )

    parser.add_argument(
        "--source",
        default="both",
        choices=["syscom", "tecnosinergia", "both"],
        help="Supplier to sync (default: both)",
    )
    parser.add_argument(
        "--categories",
        nargs="*",
        default=[],
        help="Category ids to sync, or 'all' (default: stored selection)",
    )
    parser.add_argument(
        "--min-stock",
        type=int,
        default=1,
        help="Minimum stock a product needs to be synced (default: 1)",
    )
    parser.add_argument(
        "--include-out-of-stock",
        action="store_true",
        help="Do not ask the supplier for in-stock products only",
    )
    parser.add_argument("--min-price", type=Decimal, help="Minimum base price")
    parser.add_argument("--max-price", type=Decimal, help="Maximum base price")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing database tables before syncing",
    )

    args = parser.parse_args()

    filters = SyncFilters(
        only_with_stock=not args.include_out_of_stock,
        min_stock=args.min_stock,
        min_price=args.min_price,
        max_price=args.max_price,
    )
    run = asyncio.run(run_sync(args.source, args.categories, filters, args.create_tables))
    sys.exit(0 if run.status == SyncStatus.SUCCESS else 1)


if __name__ == "__main__":
    main()
