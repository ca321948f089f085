#!/usr/bin/env python3
"""
NEAR Social DB Migrator — Entry Point.

This is the main script that operators run to copy the social DB from a
frozen source contract into a freshly deployed destination contract. It
reads configuration from a .env file, runs the migration pipeline, and
saves the run results as JSON.

The pipeline (managed by MigrationOrchestrator) performs 7 steps:
  1. Check the source is ReadOnly and the destination is in Genesis
  2. Fetch every node from the source (concurrent pages)
  3. Fetch every account from the source (concurrent pages)
  4. Report counts and the total storage balance
  5. Initialize the destination's node count
  6. Commit nodes to the destination (sequential batches)
  7. Commit accounts to the destination (sequential batches)

Writes are signed by the NEAR CLI using the key of SIGNER_ACCOUNT_ID from
its key store (~/.near-credentials).

Usage:
    python run.py               # Run the migration
    python run.py --dry-run     # Fetch and report only, no writes
    python run.py --debug       # Verbose output
    python run.py --version     # Show version
    python run.py --env /path   # Use alternate .env file
"""

import sys
import argparse
import logging
from pathlib import Path

from config import ConfigError, load_config
from core import MigrationOrchestrator

# Read version from the repo-root VERSION file (e.g., "0.1.0").
VERSION_FILE = Path(__file__).resolve().parent / "VERSION"
VERSION = VERSION_FILE.read_text().strip() if VERSION_FILE.exists() else "unknown"


def main():
    """Parse CLI arguments and run the migration pipeline."""
    parser = argparse.ArgumentParser(
        description="NEAR Social DB Migrator - Copy nodes and accounts between social DB contracts"
    )
    parser.add_argument("--env", "-e", default="./.env", help="Path to .env file")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and report only (no writes)")
    parser.add_argument("--version", "-v", action="store_true", help="Show version and exit")

    args = parser.parse_args()

    if args.version:
        print(f"near-social-db-migrator {VERSION}")
        sys.exit(0)

    try:
        config = load_config(args.env)
    except ConfigError as e:
        print(f"\nConfiguration Error: {e}")
        sys.exit(1)

    # Apply CLI overrides on top of .env values
    if args.debug:
        config.debug = True
    if args.dry_run:
        config.dry_run = True

    if config.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    # Print header
    print(f"\n{'='*60}")
    print(f"NEAR SOCIAL DB MIGRATOR v{VERSION}")
    print("="*60)
    print(f"Mode: {'DRY RUN' if config.dry_run else 'LIVE MIGRATION'}")
    print(f"Network: {config.network_id} ({config.rpc_url})")
    print(f"Source: {config.source_account_id}")
    print(f"Destination: {config.destination_account_id}")
    print(f"Signer: {config.signer_account_id}")

    # Validate required configuration before proceeding
    errors = config.validate()
    if errors:
        print("\nConfiguration Errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)

    orchestrator = MigrationOrchestrator(config)

    # Cleanup old output folders based on retention policy
    if orchestrator.output_manager.retention_days > 0:
        deleted = orchestrator.output_manager.cleanup_old_folders(config.debug)
        if deleted > 0:
            print(f"Cleaned up {deleted} old output folder(s)")

    results = orchestrator.run()
    orchestrator.print_summary(results)

    if not results.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
