#!/usr/bin/env python3
"""Phone Fleet Inventory Sync CLI.

This module provides a command-line interface for reconciling the local
PostgreSQL tables against a workbook export of the inventory spreadsheet.
Each entity kind (SIMs, stock devices, enrolled devices, tickets) has its
own worksheet and its own sync run.

Architecture:
    - WorkbookSnapshotProvider reads one worksheet per entity kind
    - SheetFieldMapper validates rows into typed records
    - BulkReconciler converges one table per kind (upsert + deactivation)
    - Runs are sequential; each prints its summary

Environment Variables Required:
    - DATABASE_URL: PostgreSQL connection string
    - SNAPSHOT_WORKBOOK: Path of the workbook export (or pass --workbook)

Example Usage:
    $ python main.py                              # Sync every entity kind
    $ python main.py --sims --stock               # Sync SIMs and stock only
    $ python main.py --workbook export.xlsx       # Read a specific export
    $ python main.py --json-summary summary.json  # Also save the summaries
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.phonefleet.api.database import close_pool, create_pool
from src.phonefleet.api.dependencies import env_int
from src.phonefleet.api.exceptions import FleetError
from src.phonefleet.sync.adapters import (
    PostgresDistributorRepository,
    PostgresPhoneModelRepository,
    PostgresReconcileRepository,
    SheetFieldMapper,
    WorkbookSnapshotProvider,
)
from src.phonefleet.sync.domain.entities import EntityKind
from src.phonefleet.sync.use_cases import (
    BulkReconciler,
    SyncEnrolledDevicesUseCase,
    SyncSimsUseCase,
    SyncStockUseCase,
    SyncTicketsUseCase,
)
from src.phonefleet.sync.use_cases.reconcile import (
    NOT_IN_THRESHOLD,
    REACTIVATE_CHUNK_SIZE,
    UPSERT_CHUNK_SIZE,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def build_use_case(kind: EntityKind, pool, provider: WorkbookSnapshotProvider):
    """Wire the orchestrator for one entity kind."""
    reconciler = BulkReconciler(
        PostgresReconcileRepository(pool),
        chunk_size=env_int("UPSERT_CHUNK_SIZE", UPSERT_CHUNK_SIZE),
        not_in_threshold=env_int("NOT_IN_THRESHOLD", NOT_IN_THRESHOLD),
        reactivate_chunk_size=env_int("REACTIVATE_CHUNK_SIZE", REACTIVATE_CHUNK_SIZE),
    )
    parser = SheetFieldMapper()

    if kind == EntityKind.SIM:
        return SyncSimsUseCase(
            reconciler, parser, PostgresDistributorRepository(pool), provider
        )
    if kind == EntityKind.STOCK:
        return SyncStockUseCase(
            reconciler,
            parser,
            PostgresDistributorRepository(pool),
            PostgresPhoneModelRepository(pool),
            provider,
        )
    if kind == EntityKind.ENROLLED:
        return SyncEnrolledDevicesUseCase(reconciler, parser, provider)
    return SyncTicketsUseCase(reconciler, parser, provider)


def selected_kinds(args: argparse.Namespace) -> list[EntityKind]:
    """Kinds requested on the command line; all of them when none is."""
    flags = [
        (args.sims, EntityKind.SIM),
        (args.stock, EntityKind.STOCK),
        (args.enrolled, EntityKind.ENROLLED),
        (args.tickets, EntityKind.TICKET),
    ]
    kinds = [kind for flag, kind in flags if flag]
    return kinds or [kind for _, kind in flags]


async def run_sync(args: argparse.Namespace) -> int:
    """Main sync orchestration function.

    Args:
        args: Parsed command-line arguments

    Returns:
        Process exit code (0 when every run succeeded)
    """
    start_time = datetime.now(timezone.utc)
    print(f"[Main] Starting at {start_time.isoformat()}")

    workbook = args.workbook or os.getenv("SNAPSHOT_WORKBOOK")
    if not workbook:
        print("[Main] Configuration error: pass --workbook or set SNAPSHOT_WORKBOOK")
        return 1

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("[Main] Configuration error: DATABASE_URL is required")
        return 1

    try:
        pool = await create_pool(database_url, min_size=1, max_size=5)
    except FleetError as e:
        print(f"[Main] Database connection failed: {e.message}")
        return 1

    provider = WorkbookSnapshotProvider(workbook)
    results = {}

    try:
        for kind in selected_kinds(args):
            print("\n" + "=" * 60)
            print(f"SYNCING {kind.value.upper()}")
            print("=" * 60)
            result = await build_use_case(kind, pool, provider).execute()
            results[kind.value] = result.to_dict()
            print(f"  status {result.http_status}: {result.to_dict()}")
    finally:
        await close_pool(pool)

    print("\n" + "=" * 60)
    print("SYNC COMPLETE")
    print("=" * 60)
    for kind, summary in results.items():
        print(
            f"{kind:<10} processed={summary['processed']} created={summary['created']} "
            f"updated={summary['updated']} deactivated={summary['deactivated']} "
            f"errors={summary['errors']}"
        )

    if args.json_summary:
        with open(args.json_summary, "w") as f:
            json.dump(results, f, indent=2, default=str)
        print(f"[Main] Summary saved to {args.json_summary}")

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    print(f"\n[Main] Completed in {duration:.1f} seconds")
    return 0 if all(summary["success"] for summary in results.values()) else 2


def main():
    parser = argparse.ArgumentParser(
        description="Reconcile the phone fleet tables against a workbook export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                          # Sync every entity kind
  python main.py --sims                   # Sync SIM cards only
  python main.py --stock --tickets        # Sync stock and tickets
  python main.py --workbook export.xlsx   # Read a specific workbook
        """
    )

    # Entity selection
    kind_group = parser.add_argument_group("Entity Selection")
    kind_group.add_argument("--sims", action="store_true", help="Sync SIM cards")
    kind_group.add_argument("--stock", action="store_true", help="Sync stock devices")
    kind_group.add_argument(
        "--enrolled", action="store_true", help="Sync monitoring-agent enrollments"
    )
    kind_group.add_argument("--tickets", action="store_true", help="Sync support tickets")

    # Input/output options
    io_group = parser.add_argument_group("Input/Output Options")
    io_group.add_argument(
        "--workbook",
        type=str,
        metavar="FILE",
        help="Workbook export to read (default: $SNAPSHOT_WORKBOOK)"
    )
    io_group.add_argument(
        "--json-summary",
        type=str,
        metavar="FILE",
        help="Save the per-kind summaries as JSON to FILE"
    )

    args = parser.parse_args()

    # Run the async sync
    sys.exit(asyncio.run(run_sync(args)))


if __name__ == "__main__":
    main()
