"""Logging configuration with optional Google Cloud Logging integration."""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import yaml


# Global configuration cache
_logging_config: Optional[Dict] = None


def _load_logging_config() -> Dict:
    """
    Load logging configuration from config/logging.yaml.

    Returns:
        Dict with logging configuration, or default config if file not found.
    """
    global _logging_config

    if _logging_config is not None:
        return _logging_config

    config_path = Path(__file__).parent.parent.parent / "config" / "logging.yaml"

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                _logging_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            print(f"⚠️  Failed to load logging config from {config_path}: {e}", file=sys.stderr)
            _logging_config = {}
    else:
        _logging_config = {}

    if "console" not in _logging_config:
        _logging_config["console"] = {}

    _logging_config["console"].setdefault("max_destination_length", 40)
    _logging_config["console"].setdefault("max_id_list_length", 5)

    return _logging_config


def format_destination(destination: str, max_length: Optional[int] = None) -> Tuple[str, str]:
    """
    Format a destination for logging with both full and display versions.

    Args:
        destination: The full destination string (e.g., "Miami, FL, USA").
        max_length: Maximum length for display version. If None, uses config value.

    Returns:
        Tuple of (full_destination, display_destination), the display version
        truncated with an ellipsis when it exceeds max_length.

    Example:
        >>> format_destination("Santa Margherita Ligure, Liguria, Italy", max_length=20)
        ('Santa Margherita Ligure, Liguria, Italy', 'Santa Margherita ...')
    """
    if not destination:
        return "", ""

    full = destination.strip()

    if max_length is None:
        config = _load_logging_config()
        max_length = config["console"]["max_destination_length"]

    if max_length <= 0 or len(full) <= max_length:
        return full, full

    # Reserve 3 characters for "..."
    if max_length <= 3:
        return full, full[:max_length]
    return full, full[: max_length - 3] + "..."


def format_id_list(ids: Iterable[str], max_items: Optional[int] = None) -> str:
    """Render an id list for console logs, eliding the tail of long lists."""
    ids = sorted(ids)
    if max_items is None:
        max_items = _load_logging_config()["console"]["max_id_list_length"]
    if max_items <= 0 or len(ids) <= max_items:
        return ", ".join(ids)
    return ", ".join(ids[:max_items]) + f" (+{len(ids) - max_items} more)"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_cloud_logging: bool = False,
) -> None:
    """
    Configure logging with optional Google Cloud Logging integration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, uses logs/travalpass.log.
        enable_cloud_logging: Enable Google Cloud Logging integration.

    Environment Variables:
        ENABLE_CLOUD_LOGGING: Set to 'true' to enable Cloud Logging.
        LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        LOG_FILE: Override log file path.
        ENVIRONMENT: Environment name (staging, production, development) - added to Cloud Logging labels.
        GOOGLE_APPLICATION_CREDENTIALS: Path to service account JSON (required for Cloud Logging).
    """
    if os.getenv("ENABLE_CLOUD_LOGGING", "").lower() == "true":
        enable_cloud_logging = True

    log_level = os.getenv("LOG_LEVEL", log_level).upper()
    log_file = os.getenv("LOG_FILE", log_file or "logs/travalpass.log")
    environment = os.getenv("ENVIRONMENT", "development")

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file),
    ]

    labels = {
        "environment": environment,
        "service": "travalpass-matching",
        "version": "1.0.0",
    }

    if enable_cloud_logging:
        try:
            import google.cloud.logging
            from google.cloud.logging.handlers import CloudLoggingHandler

            client = google.cloud.logging.Client()
            cloud_handler = CloudLoggingHandler(
                client,
                name="travalpass-matching",
                labels=labels,
            )
            cloud_handler.setLevel(getattr(logging, log_level))
            handlers.append(cloud_handler)

            print("✅ Google Cloud Logging enabled")
            print(f"   Project: {client.project}")
            print(f"   Environment: {environment}")
            print(f"   Log level: {log_level}")

        except ImportError:
            print(
                "⚠️  google-cloud-logging not installed. Install with: pip install google-cloud-logging",
                file=sys.stderr,
            )
            print("   Falling back to file and console logging only.", file=sys.stderr)
            enable_cloud_logging = False

        except Exception as e:
            print(
                f"⚠️  Failed to initialize Google Cloud Logging: {e}",
                file=sys.stderr,
            )
            print("   Falling back to file and console logging only.", file=sys.stderr)
            enable_cloud_logging = False

    log_format = f"[{environment.upper()}] %(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, log_level),
        format=log_format,
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: environment={environment}, level={log_level}, file={log_file}"
    )
    if enable_cloud_logging:
        logger.info(f"Google Cloud Logging enabled with labels: {labels}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


def _with_details(message: str, details: Optional[Dict]) -> str:
    if details:
        detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
        message += f" | {detail_str}"
    return message


class StructuredLogger:
    """
    Helper class for structured logging with consistent formatting.

    Provides methods for logging common operations with context.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize structured logger.

        Args:
            logger: Base logger instance
        """
        self.logger = logger
        self.environment = os.getenv("ENVIRONMENT", "development")

    def search_activity(
        self, destination: str, action: str, details: Optional[Dict] = None
    ) -> None:
        """
        Log an itinerary search step.

        Args:
            destination: Searched destination (truncated for display)
            action: Action being performed (started, completed, failed)
            details: Optional additional details (counts, source, page size)
        """
        _, display = format_destination(destination)
        message = _with_details(f"[SEARCH] {action.upper()} - {display}", details)
        if action.lower() in ["failed", "error"]:
            self.logger.error(message)
        else:
            self.logger.info(message)

    def filter_decision(self, itinerary_id: str, passed: bool, summary: str) -> None:
        """
        Log the match filter's decision for one itinerary at DEBUG level.

        Args:
            itinerary_id: Candidate itinerary ID
            passed: Whether the itinerary passed
            summary: Rejection summary (ignored when passed)
        """
        if passed:
            self.logger.debug(f"[FILTER] PASS - ID:{itinerary_id}")
        else:
            self.logger.debug(f"[FILTER] REJECT - ID:{itinerary_id} | {summary}")

    def database_activity(
        self, operation: str, collection: str, status: str, details: Optional[Dict] = None
    ) -> None:
        """
        Log database operations.

        Args:
            operation: Database operation (create, update, delete, query)
            collection: Firestore collection or table name
            status: Operation status
            details: Optional additional details
        """
        message = _with_details(f"[DB:{operation.upper()}] {collection} - {status}", details)
        self.logger.info(message)

    def migration_progress(
        self, batch_number: int, batch_size: int, details: Optional[Dict] = None
    ) -> None:
        """
        Log migration batch progress.

        Args:
            batch_number: 1-based batch counter
            batch_size: Documents in this batch
            details: Optional running totals
        """
        message = _with_details(f"[MIGRATE] BATCH {batch_number} - {batch_size} docs", details)
        self.logger.info(message)


def get_structured_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.
    """
    base_logger = logging.getLogger(name)
    return StructuredLogger(base_logger)
