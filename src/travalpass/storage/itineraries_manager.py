"""Manage itinerary documents in Firestore."""

import logging
import time
from typing import Any, Dict, List, Optional

from google.cloud import firestore as gcloud_firestore
from pydantic import ValidationError

from travalpass.logging_config import get_structured_logger
from travalpass.matching import ItineraryMatchFilter, Itinerary, SearchCriteria
from travalpass.matching.queries import apply_firestore_filters
from travalpass.storage.firestore_client import FirestoreClient
from travalpass.storage.serialization import (
    normalize_itinerary_payload,
    normalize_to_datetime,
    sanitize_value,
)

logger = logging.getLogger(__name__)
slogger = get_structured_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
OVERFETCH_FACTOR = 3


class ItineraryNotFoundError(LookupError):
    """Raised when an itinerary document does not exist."""


class ItinerariesManager:
    """Create, update, list and search itineraries stored in Firestore."""

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        database_name: str = "(default)",
        collection: str = "itineraries",
        page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        overfetch_factor: int = OVERFETCH_FACTOR,
    ):
        """
        Initialize Firestore itineraries manager.

        Args:
            credentials_path: Path to Firebase service account JSON.
            database_name: Firestore database name (default: "(default)").
            collection: Itineraries collection name.
            page_size: Default number of search results returned.
            max_page_size: Upper bound on any requested page size.
            overfetch_factor: Documents fetched per result slot, to leave room
                for post-processing filters.
        """
        self.database_name = database_name
        self.collection_name = collection
        self.page_size = page_size
        self.max_page_size = max_page_size
        self.overfetch_factor = overfetch_factor
        self.db = FirestoreClient.get_client(database_name, credentials_path)

    def _collection(self):
        return self.db.collection(self.collection_name)

    def _get_owned_document(self, itinerary_id: str, user_id: str):
        """Fetch a document and verify it belongs to user_id."""
        doc_ref = self._collection().document(itinerary_id)
        snapshot = doc_ref.get()
        if not snapshot.exists:
            raise ItineraryNotFoundError(f"Itinerary not found: {itinerary_id}")

        owner_id = (snapshot.to_dict() or {}).get("userId")
        if owner_id and owner_id != user_id:
            raise PermissionError(f"Itinerary {itinerary_id} does not belong to {user_id}")
        return doc_ref

    @staticmethod
    def _to_response(snapshot) -> Dict[str, Any]:
        return sanitize_value({"id": snapshot.id, **(snapshot.to_dict() or {})})

    def create_itinerary(self, data: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        """
        Create an itinerary, or upsert it when the payload carries an id.

        Args:
            data: Itinerary payload (camelCase field names)
            user_id: Authenticated user creating the itinerary

        Returns:
            Saved itinerary as a JSON-safe dictionary
        """
        if not self.db:
            raise RuntimeError("Firestore not initialized")

        payload = normalize_itinerary_payload(data)
        payload["userId"] = data.get("userId") or user_id
        payload["updatedAt"] = gcloud_firestore.SERVER_TIMESTAMP

        try:
            itinerary_id = data.get("id")
            if itinerary_id:
                doc_ref = self._collection().document(itinerary_id)
                if doc_ref.get().exists:
                    doc_ref.update(payload)
                    slogger.database_activity(
                        "update", self.collection_name, "upserted", {"id": itinerary_id}
                    )
                else:
                    payload["createdAt"] = gcloud_firestore.SERVER_TIMESTAMP
                    doc_ref.set(payload)
                    slogger.database_activity(
                        "create", self.collection_name, "created", {"id": itinerary_id}
                    )
            else:
                payload["createdAt"] = gcloud_firestore.SERVER_TIMESTAMP
                _, doc_ref = self._collection().add(payload)
                slogger.database_activity(
                    "create",
                    self.collection_name,
                    "created",
                    {"id": doc_ref.id, "destination": payload.get("destination")},
                )

            return self._to_response(doc_ref.get())

        except (RuntimeError, ValueError, AttributeError) as e:
            logger.error(f"Error creating itinerary (database/validation): {str(e)}")
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error creating itinerary ({type(e).__name__}): {str(e)}",
                exc_info=True,
            )
            raise

    def update_itinerary(
        self, itinerary_id: str, updates: Dict[str, Any], user_id: str
    ) -> Dict[str, Any]:
        """
        Update an itinerary owned by user_id.

        Args:
            itinerary_id: Itinerary document ID
            updates: Fields to update (camelCase field names)
            user_id: Authenticated user

        Returns:
            Updated itinerary as a JSON-safe dictionary
        """
        if not self.db:
            raise RuntimeError("Firestore not initialized")
        if not itinerary_id:
            raise ValueError("itinerary id required")

        payload = normalize_itinerary_payload(updates)
        payload["updatedAt"] = gcloud_firestore.SERVER_TIMESTAMP

        try:
            doc_ref = self._get_owned_document(itinerary_id, user_id)
            doc_ref.update(payload)
            slogger.database_activity(
                "update", self.collection_name, "updated", {"id": itinerary_id}
            )
            return self._to_response(doc_ref.get())

        except (ItineraryNotFoundError, PermissionError):
            raise
        except (RuntimeError, ValueError) as e:
            logger.error(f"Error updating itinerary (database): {str(e)}")
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error updating itinerary ({type(e).__name__}): {str(e)}",
                exc_info=True,
            )
            raise

    def delete_itinerary(self, itinerary_id: str, user_id: str) -> None:
        """Delete an itinerary owned by user_id."""
        if not self.db:
            raise RuntimeError("Firestore not initialized")
        if not itinerary_id:
            raise ValueError("itinerary id required")

        try:
            doc_ref = self._get_owned_document(itinerary_id, user_id)
            doc_ref.delete()
            slogger.database_activity(
                "delete", self.collection_name, "deleted", {"id": itinerary_id}
            )

        except (ItineraryNotFoundError, PermissionError):
            raise
        except (RuntimeError, ValueError) as e:
            logger.error(f"Error deleting itinerary (database): {str(e)}")
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error deleting itinerary ({type(e).__name__}): {str(e)}",
                exc_info=True,
            )
            raise

    def get_itinerary(self, itinerary_id: str) -> Itinerary:
        """
        Load a single itinerary.

        Raises:
            ItineraryNotFoundError: If the document does not exist
        """
        if not self.db:
            raise RuntimeError("Firestore not initialized")

        snapshot = self._collection().document(itinerary_id).get()
        if not snapshot.exists:
            raise ItineraryNotFoundError(f"Itinerary not found: {itinerary_id}")
        return Itinerary.from_document(snapshot.id, snapshot.to_dict() or {})

    def list_itineraries_for_user(
        self, user_id: str, ai_status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        List a user's itineraries that have not ended yet.

        Args:
            user_id: Owner user ID
            ai_status: Optional AI generation status filter

        Returns:
            Itineraries ordered by createdAt descending
        """
        if not self.db:
            raise RuntimeError("Firestore not initialized")

        now_ms = int(time.time() * 1000)

        try:
            query = self._collection().where("userId", "==", user_id)
            query = query.where("endDay", ">=", now_ms)
            if ai_status:
                query = query.where("ai_status", "==", ai_status)
            # Firestore orders by the inequality field first; re-sorted below
            query = query.order_by("endDay", direction=gcloud_firestore.Query.ASCENDING)

            items = []
            for doc in query.stream():
                data = doc.to_dict() or {}
                data["id"] = doc.id
                items.append(data)

        except (RuntimeError, ValueError, AttributeError) as e:
            logger.error(f"Error listing itineraries (database): {str(e)}")
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error listing itineraries ({type(e).__name__}): {str(e)}",
                exc_info=True,
            )
            raise

        items.sort(key=lambda item: _created_at_ms(item.get("createdAt")), reverse=True)
        logger.info(f"Retrieved {len(items)} active itineraries for user {user_id}")
        return [sanitize_value(item) for item in items]

    def search_itineraries(
        self, criteria: SearchCriteria, page_size: Optional[int] = None
    ) -> List[Itinerary]:
        """
        Search for itineraries matching criteria.

        Firestore applies the equality and date-range constraints; the match
        filter then applies age, exclusion and blocking filters and orders
        the page newest first.

        Args:
            criteria: Validated search criteria
            page_size: Requested page size (capped at max_page_size)

        Returns:
            Up to page_size matching itineraries
        """
        if not self.db:
            raise RuntimeError("Firestore not initialized")

        take = min(self.max_page_size, int(page_size or self.page_size))
        fetch_limit = take * self.overfetch_factor

        try:
            query = apply_firestore_filters(self._collection(), criteria, limit=fetch_limit)
            candidates = []
            for doc in query.stream():
                try:
                    candidates.append(Itinerary.from_document(doc.id, doc.to_dict() or {}))
                except ValidationError as e:
                    # One legacy document must not fail the whole page
                    logger.warning(
                        f"Skipping malformed itinerary {doc.id}: {e.error_count()} errors"
                    )

        except (RuntimeError, ValueError, AttributeError) as e:
            logger.error(f"Error searching itineraries (database): {str(e)}")
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error searching itineraries ({type(e).__name__}): {str(e)}",
                exc_info=True,
            )
            raise

        results = ItineraryMatchFilter(criteria).filter_itineraries(candidates, limit=take)
        logger.info(
            f"Search for '{criteria.destination}' fetched {len(candidates)} candidates, "
            f"returning {len(results)}"
        )
        return results


def _created_at_ms(value: Any) -> float:
    """Sort key for raw createdAt values (timestamps, ISO strings, epoch ms)."""
    parsed = normalize_to_datetime(value)
    return parsed.timestamp() * 1000 if parsed else 0.0
