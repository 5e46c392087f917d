#!/usr/bin/env python3
"""
Migration script to copy the itineraries collection into Postgres.

This script:
1. Reads itinerary documents from Firestore in document-id order, in batches
2. Maps each document to an itineraries row (derived day bounds, JSON userInfo)
3. Upserts rows one by one so a bad document does not stop the run
4. Records the last migrated id so an interrupted run can resume

Usage:
    python scripts/migrate_itineraries_to_postgres.py [--database DATABASE_NAME]
        [--resume-from DOC_ID] [--dry-run]

Arguments:
    --database: Firestore database name (default: FIRESTORE_DATABASE_NAME or "(default)")
    --resume-from: Document id to resume after (default: value in the progress file)
    --dry-run: Show what would be migrated without writing rows
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add src to path (before package imports)
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

# noqa: E402 (module level imports after sys.path modification)
from travalpass.logging_config import setup_logging  # noqa: E402
from travalpass.main import load_config  # noqa: E402
from travalpass.migration import ItineraryMigrator  # noqa: E402
from travalpass.storage.firestore_client import FirestoreClient  # noqa: E402
from travalpass.storage.postgres import create_db_engine, create_schema  # noqa: E402

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Migrate Firestore itineraries to Postgres")
    parser.add_argument(
        "--database",
        default=None,
        help="Firestore database name (default: from config)",
    )
    parser.add_argument(
        "--resume-from",
        default=None,
        help="Document id to resume after (default: progress file)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be migrated without making changes",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/config.yaml"),
        help="Path to configuration file",
    )

    args = parser.parse_args()

    setup_logging()
    config = load_config(args.config)
    firestore_config = config.get("firestore", {})
    postgres_config = config.get("postgres", {})

    database_name = args.database or firestore_config.get("database_name", "(default)")

    try:
        db = FirestoreClient.get_client(database_name)
        engine = create_db_engine(postgres_config.get("url"))
        if not args.dry_run:
            create_schema(engine)

        migrator = ItineraryMigrator(
            db,
            engine,
            collection=firestore_config.get("collection", "itineraries"),
            batch_size=postgres_config.get("batch_size", 200),
            progress_file=postgres_config.get("progress_file", "data/migrate-progress.json"),
        )
        stats = migrator.migrate(resume_from=args.resume_from, dry_run=args.dry_run)

        logger.info("STATISTICS:")
        logger.info(f"  Migrated: {stats['migrated']}")
        logger.info(f"  Inserted: {stats['inserted']}")
        logger.info(f"  Updated: {stats['updated']}")
        logger.info(f"  Failed: {stats['failed']}")
        logger.info(f"  Last id: {stats['last_id']}")

        if args.dry_run:
            logger.info(f"DRY RUN - {stats['dry_run']} documents checked, no changes were made")

        # Exit with error code if there were failures
        if stats["failed"] > 0:
            sys.exit(1)

    except Exception as e:
        logger.error(f"Migration failed: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
