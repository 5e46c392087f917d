"""
Copy itineraries from Firestore into the relational store.

Documents are read in document-id order, in batches, and upserted one by one.
The last migrated id is written to a progress file after every batch so an
interrupted run can resume where it stopped.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from google.cloud import firestore as gcloud_firestore
from google.cloud.firestore_v1.field_path import FieldPath
from sqlalchemy.engine import Engine

from travalpass.logging_config import get_structured_logger
from travalpass.storage.postgres import upsert_itinerary
from travalpass.storage.serialization import normalize_to_datetime
from travalpass.utils.dates import calculate_age, parse_date, to_day_timestamp

logger = logging.getLogger(__name__)
slogger = get_structured_logger(__name__)

DEFAULT_BATCH_SIZE = 200
DEFAULT_PROGRESS_FILE = "data/migrate-progress.json"


def _first(data: Dict[str, Any], *keys: str) -> Any:
    """Return the first non-None value among keys (camelCase or snake_case sources)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def transform_document(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a Firestore itinerary document to an itineraries row.

    Args:
        doc_id: Firestore document ID
        data: Document data

    Returns:
        Row values keyed by column name
    """
    start_date = parse_date(_first(data, "startDate", "start_date"))
    end_date = parse_date(_first(data, "endDate", "end_date"))

    start_day = _safe_int(_first(data, "startDay", "start_day"))
    if start_day is None and start_date is not None:
        start_day = to_day_timestamp(start_date)
    end_day = _safe_int(_first(data, "endDay", "end_day"))
    if end_day is None and end_date is not None:
        end_day = to_day_timestamp(end_date)

    user_info = _first(data, "userInfo", "user_info")
    if user_info is not None:
        user_info = json.loads(json.dumps(user_info, default=str))

    age = _safe_int(data.get("age"))
    if age is None and isinstance(user_info, dict):
        age = calculate_age(user_info.get("dob"))

    return {
        "id": doc_id,
        "user_id": _first(data, "userId", "uid"),
        "destination": data.get("destination"),
        "title": data.get("title"),
        "description": data.get("description"),
        "start_date": start_date,
        "end_date": end_date,
        "start_day": start_day,
        "end_day": end_day,
        "age": age,
        "gender": data.get("gender"),
        "status": data.get("status"),
        "sexual_orientation": data.get("sexualOrientation"),
        "lower_range": _safe_int(_first(data, "lowerRange", "lower_range")),
        "upper_range": _safe_int(_first(data, "upperRange", "upper_range")),
        "user_info": user_info,
        "ai_status": data.get("ai_status"),
        "created_at": normalize_to_datetime(_first(data, "createdAt", "created_at")),
        "updated_at": normalize_to_datetime(_first(data, "updatedAt", "updated_at")),
    }


class ItineraryMigrator:
    """Migrates the itineraries collection to Postgres."""

    def __init__(
        self,
        db: gcloud_firestore.Client,
        engine: Engine,
        collection: str = "itineraries",
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_file: str = DEFAULT_PROGRESS_FILE,
        batch_delay_seconds: float = 0.1,
    ):
        """
        Initialize migrator.

        Args:
            db: Firestore client
            engine: SQLAlchemy engine for the target database
            collection: Source collection name
            batch_size: Documents read per Firestore page
            progress_file: JSON file recording the last migrated document id
            batch_delay_seconds: Pause between batches
        """
        self.db = db
        self.engine = engine
        self.collection_name = collection
        self.batch_size = batch_size
        self.progress_file = Path(progress_file)
        self.batch_delay_seconds = batch_delay_seconds

        self.stats = {"migrated": 0, "inserted": 0, "updated": 0, "failed": 0, "dry_run": 0}

    def load_progress(self) -> Dict[str, Any]:
        """Read the progress file; missing or corrupt files mean a fresh start."""
        if not self.progress_file.exists():
            return {}
        try:
            with open(self.progress_file, "r") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable progress file {self.progress_file}: {e}")
            return {}

    def save_progress(self, last_id: Optional[str]) -> None:
        self.progress_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.progress_file, "w") as f:
            json.dump({"lastId": last_id}, f, indent=2)

    def _fetch_batch(self, last_id: Optional[str]):
        query = (
            self.db.collection(self.collection_name)
            .order_by(FieldPath.document_id())
            .limit(self.batch_size)
        )
        if last_id:
            query = query.start_after({FieldPath.document_id(): last_id})
        return list(query.stream())

    def migrate(self, resume_from: Optional[str] = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Run the migration.

        Args:
            resume_from: Document id to resume after (default: progress file)
            dry_run: Transform documents without writing rows or progress

        Returns:
            Statistics dictionary including the last processed id
        """
        last_id = resume_from or self.load_progress().get("lastId")
        logger.info(
            f"Starting itinerary migration (resume_from={last_id}, dry_run={dry_run}, "
            f"batch_size={self.batch_size})"
        )

        batch_number = 0
        while True:
            docs = self._fetch_batch(last_id)
            if not docs:
                break
            batch_number += 1

            for doc in docs:
                row = transform_document(doc.id, doc.to_dict() or {})
                if dry_run:
                    logger.info(f"DRY RUN: would migrate {row['id']}")
                    self.stats["dry_run"] += 1
                    last_id = doc.id
                    continue

                try:
                    with self.engine.begin() as connection:
                        inserted = upsert_itinerary(connection, row)
                    self.stats["inserted" if inserted else "updated"] += 1
                    self.stats["migrated"] += 1
                except Exception as e:
                    # One bad document must not stop the run
                    logger.error(
                        f"Upsert failed for {doc.id} ({type(e).__name__}): {str(e)}",
                        exc_info=True,
                    )
                    self.stats["failed"] += 1
                last_id = doc.id

            if not dry_run:
                self.save_progress(last_id)
            slogger.migration_progress(
                batch_number,
                len(docs),
                {"migrated": self.stats["migrated"], "failed": self.stats["failed"]},
            )

            if len(docs) < self.batch_size:
                break
            if self.batch_delay_seconds:
                time.sleep(self.batch_delay_seconds)

        logger.info(f"Migration complete: {self.stats} (last_id={last_id})")
        return {**self.stats, "last_id": last_id}
