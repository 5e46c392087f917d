"""Main entry point for itinerary match searches."""

import argparse
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from travalpass.logging_config import format_id_list, get_logger, get_structured_logger, setup_logging
from travalpass.matching import InvalidSearchRequest, Itinerary, SearchCriteria
from travalpass.storage import ItinerariesManager, ItineraryNotFoundError
from travalpass.storage import postgres

logger = get_logger(__name__)
slogger = get_structured_logger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "firestore": {"database_name": "(default)", "collection": "itineraries"},
    "search": {"page_size": 50, "max_page_size": 100, "overfetch_factor": 3},
    "postgres": {"url": None, "batch_size": 200},
}


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file, filling in defaults.

    Environment variables FIRESTORE_DATABASE_NAME and DATABASE_URL override
    the file.
    """
    config: Dict[str, Any] = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}

    if Path(config_path).exists():
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        for section, values in loaded.items():
            if isinstance(values, dict):
                config.setdefault(section, {}).update(values)
            else:
                config[section] = values
    else:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    if os.getenv("FIRESTORE_DATABASE_NAME"):
        config["firestore"]["database_name"] = os.getenv("FIRESTORE_DATABASE_NAME")
    if os.getenv("DATABASE_URL"):
        config["postgres"]["url"] = os.getenv("DATABASE_URL")

    return config


def create_manager(config: Dict[str, Any]) -> ItinerariesManager:
    """Create an ItinerariesManager from configuration."""
    firestore_config = config.get("firestore", {})
    search_config = config.get("search", {})
    return ItinerariesManager(
        database_name=firestore_config.get("database_name", "(default)"),
        collection=firestore_config.get("collection", "itineraries"),
        page_size=search_config.get("page_size", 50),
        max_page_size=search_config.get("max_page_size", 100),
        overfetch_factor=search_config.get("overfetch_factor", 3),
    )


def load_criteria_file(path: str) -> SearchCriteria:
    """
    Load search criteria from a YAML (or JSON) file with camelCase keys.

    Raises:
        InvalidSearchRequest: If the file does not describe valid criteria
    """
    with open(path, "r") as f:
        payload = yaml.safe_load(f) or {}
    if not isinstance(payload, dict):
        raise InvalidSearchRequest(f"Criteria file must contain a mapping: {path}")
    return SearchCriteria.from_request(payload)


def run_search(
    config: Dict[str, Any],
    criteria: SearchCriteria,
    source: str = "firestore",
    page_size: Optional[int] = None,
    manager: Optional[ItinerariesManager] = None,
) -> List[Itinerary]:
    """
    Run one search against the configured data source.

    Args:
        config: Application configuration
        criteria: Validated search criteria
        source: "firestore" or "postgres"
        page_size: Requested result count
        manager: Existing Firestore manager to reuse

    Returns:
        Matching itineraries, newest first
    """
    slogger.search_activity(
        criteria.destination,
        "started",
        {
            "source": source,
            "window": f"{criteria.start_date}..{criteria.end_date}",
            "excluded": format_id_list(criteria.excluded_ids) or "none",
        },
    )

    if source == "firestore":
        manager = manager or create_manager(config)
        results = manager.search_itineraries(criteria, page_size=page_size)
    elif source == "postgres":
        search_config = config.get("search", {})
        limit = min(
            search_config.get("max_page_size", 100),
            page_size or search_config.get("page_size", 50),
        )
        engine = postgres.create_db_engine(config.get("postgres", {}).get("url"))
        with engine.connect() as connection:
            results = postgres.search_itineraries(connection, criteria, limit=limit)
    else:
        raise ValueError(f"Unknown search source: {source}. Use 'firestore' or 'postgres'")

    slogger.search_activity(criteria.destination, "completed", {"results": len(results)})
    return results


def print_results(results: List[Itinerary]) -> None:
    """Print a summary table of search results."""
    print("\n" + "=" * 70)
    print("MATCHING ITINERARIES")
    print("=" * 70)
    if not results:
        print("No matching itineraries found.")
    for i, itinerary in enumerate(results, 1):
        created = itinerary.created_at.isoformat() if itinerary.created_at else "unknown"
        print(f"{i:>3}. {itinerary.id}")
        print(
            f"     {itinerary.destination} | {itinerary.start_date} to {itinerary.end_date} | "
            f"age={itinerary.age} gender={itinerary.gender} status={itinerary.status} "
            f"orientation={itinerary.sexual_orientation}"
        )
        print(f"     created: {created}")
    print("=" * 70)
    print(f"Total: {len(results)}")
    print("=" * 70 + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="TravalPass - itinerary companion matching")
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Find itineraries matching a search")
    criteria_source = search.add_mutually_exclusive_group(required=True)
    criteria_source.add_argument("--criteria", metavar="PATH", help="YAML file with search criteria")
    criteria_source.add_argument(
        "--itinerary-id", help="Build criteria from the searcher's own itinerary"
    )
    search.add_argument(
        "--source", choices=["firestore", "postgres"], default="firestore", help="Data source"
    )
    search.add_argument("--page-size", type=int, help="Number of results to return")
    search.add_argument(
        "--exclude", action="append", default=[], metavar="ID", help="Itinerary id already viewed"
    )
    search.add_argument("--user-id", help="Searcher user id (excludes own itineraries)")
    search.add_argument(
        "--blocked", action="append", default=[], metavar="UID", help="User id the searcher blocked"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    load_dotenv()
    setup_logging()

    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    if args.criteria:
        try:
            criteria = load_criteria_file(args.criteria)
        except OSError as e:
            logger.error(f"Could not read criteria file: {e}")
            return 2
        except InvalidSearchRequest as e:
            logger.error(f"Invalid search criteria: {e}")
            return 2
        if args.exclude or args.user_id or args.blocked:
            criteria = criteria.model_copy(
                update={
                    "excluded_ids": criteria.excluded_ids | frozenset(args.exclude),
                    "current_user_id": args.user_id or criteria.current_user_id,
                    "blocked_user_ids": criteria.blocked_user_ids | frozenset(args.blocked),
                }
            )

    manager: Optional[ItinerariesManager] = None
    if args.itinerary_id or args.source == "firestore":
        try:
            manager = create_manager(config)
        except (ValueError, OSError, RuntimeError) as e:
            # Missing or unreadable service account credentials
            logger.error(f"Could not connect to Firestore: {e}")
            return 3

    if args.itinerary_id:
        try:
            criteria = SearchCriteria.from_itinerary(
                manager.get_itinerary(args.itinerary_id),
                excluded_ids=args.exclude,
                current_user_id=args.user_id,
                blocked_user_ids=args.blocked,
            )
        except ItineraryNotFoundError as e:
            logger.error(str(e))
            return 1
        except ValueError as e:
            logger.error(f"Itinerary {args.itinerary_id} cannot be used as search criteria: {e}")
            return 2

    try:
        results = run_search(config, criteria, args.source, args.page_size, manager=manager)
    except SQLAlchemyError as e:
        logger.error(f"Postgres search failed ({type(e).__name__}): {e}")
        return 1
    print_results(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
