"""Tests for the Firestore itineraries manager."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from google.cloud import firestore as gcloud_firestore

from travalpass.storage.itineraries_manager import ItinerariesManager, ItineraryNotFoundError


@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client."""
    with patch("travalpass.storage.itineraries_manager.FirestoreClient") as mock_client:
        yield mock_client


@pytest.fixture
def manager(mock_firestore_client):
    """Create itineraries manager with mocked Firestore."""
    mock_db = MagicMock()
    mock_firestore_client.get_client.return_value = mock_db
    return ItinerariesManager(database_name="test-db")


def _snapshot(doc_id, data, exists=True):
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = exists
    snapshot.to_dict.return_value = data
    return snapshot


def _chainable_query(docs):
    """Query mock whose where/order_by/limit return itself."""
    query = MagicMock()
    query.where.return_value = query
    query.order_by.return_value = query
    query.limit.return_value = query
    query.stream.return_value = docs
    return query


def _miami_doc(doc_id, created_at, **overrides):
    data = {
        "destination": "Miami, FL, USA",
        "startDay": 1763208000000,  # 2025-11-15
        "endDay": 1763640000000,  # 2025-11-20
        "age": 40,
        "gender": "Female",
        "status": "couple",
        "sexualOrientation": "Gay",
        "createdAt": created_at,
        "userId": f"owner-{doc_id}",
    }
    data.update(overrides)
    return _snapshot(doc_id, data)


def test_uses_configured_database(mock_firestore_client, manager):
    mock_firestore_client.get_client.assert_called_once_with("test-db", None)
    assert manager.collection_name == "itineraries"


class TestCreateItinerary:
    def test_create_without_id_adds_document(self, manager):
        doc_ref = MagicMock(id="new-id")
        doc_ref.get.return_value = _snapshot("new-id", {"destination": "Miami, FL, USA"})
        manager.db.collection.return_value.add.return_value = (None, doc_ref)

        saved = manager.create_itinerary(
            {"destination": "Miami, FL, USA", "startDate": "2025-11-15", "age": "40"}, "user-1"
        )

        manager.db.collection.assert_called_with("itineraries")
        payload = manager.db.collection.return_value.add.call_args[0][0]
        assert payload["userId"] == "user-1"
        assert payload["age"] == 40
        assert payload["startDay"] == 1763208000000
        assert payload["createdAt"] is gcloud_firestore.SERVER_TIMESTAMP
        assert saved == {"id": "new-id", "destination": "Miami, FL, USA"}

    def test_create_with_existing_id_updates(self, manager):
        doc_ref = MagicMock()
        doc_ref.get.return_value = _snapshot("it-1", {"destination": "Miami, FL, USA"})
        manager.db.collection.return_value.document.return_value = doc_ref

        manager.create_itinerary({"id": "it-1", "destination": "Miami, FL, USA"}, "user-1")

        doc_ref.update.assert_called_once()
        doc_ref.set.assert_not_called()
        assert "id" not in doc_ref.update.call_args[0][0]
        assert "createdAt" not in doc_ref.update.call_args[0][0]

    def test_create_with_new_id_sets(self, manager):
        doc_ref = MagicMock()
        doc_ref.get.side_effect = [
            _snapshot("it-2", {}, exists=False),
            _snapshot("it-2", {"destination": "Miami, FL, USA"}),
        ]
        manager.db.collection.return_value.document.return_value = doc_ref

        manager.create_itinerary({"id": "it-2", "destination": "Miami, FL, USA"}, "user-1")

        doc_ref.set.assert_called_once()
        assert doc_ref.set.call_args[0][0]["createdAt"] is gcloud_firestore.SERVER_TIMESTAMP

    def test_create_propagates_database_errors(self, manager):
        manager.db.collection.return_value.add.side_effect = RuntimeError("unavailable")

        with pytest.raises(RuntimeError, match="unavailable"):
            manager.create_itinerary({"destination": "Miami, FL, USA"}, "user-1")


class TestUpdateAndDelete:
    def test_update_owned_itinerary(self, manager):
        doc_ref = MagicMock()
        doc_ref.get.return_value = _snapshot("it-1", {"userId": "user-1"})
        manager.db.collection.return_value.document.return_value = doc_ref

        manager.update_itinerary("it-1", {"age": "33"}, "user-1")

        payload = doc_ref.update.call_args[0][0]
        assert payload["age"] == 33
        assert payload["updatedAt"] is gcloud_firestore.SERVER_TIMESTAMP

    def test_update_missing_itinerary(self, manager):
        doc_ref = MagicMock()
        doc_ref.get.return_value = _snapshot("it-1", {}, exists=False)
        manager.db.collection.return_value.document.return_value = doc_ref

        with pytest.raises(ItineraryNotFoundError):
            manager.update_itinerary("it-1", {"age": 33}, "user-1")

    def test_update_requires_id(self, manager):
        with pytest.raises(ValueError):
            manager.update_itinerary("", {"age": 33}, "user-1")

    def test_delete_other_users_itinerary_refused(self, manager):
        doc_ref = MagicMock()
        doc_ref.get.return_value = _snapshot("it-1", {"userId": "someone-else"})
        manager.db.collection.return_value.document.return_value = doc_ref

        with pytest.raises(PermissionError):
            manager.delete_itinerary("it-1", "user-1")
        doc_ref.delete.assert_not_called()

    def test_delete_owned_itinerary(self, manager):
        doc_ref = MagicMock()
        doc_ref.get.return_value = _snapshot("it-1", {"userId": "user-1"})
        manager.db.collection.return_value.document.return_value = doc_ref

        manager.delete_itinerary("it-1", "user-1")

        doc_ref.delete.assert_called_once()


class TestReads:
    def test_get_itinerary(self, manager):
        manager.db.collection.return_value.document.return_value.get.return_value = _miami_doc(
            "it-1", None
        )

        itinerary = manager.get_itinerary("it-1")

        assert itinerary.id == "it-1"
        assert itinerary.destination == "Miami, FL, USA"

    def test_get_missing_itinerary(self, manager):
        manager.db.collection.return_value.document.return_value.get.return_value = _snapshot(
            "nope", None, exists=False
        )

        with pytest.raises(ItineraryNotFoundError):
            manager.get_itinerary("nope")

    def test_list_for_user_sorted_newest_first(self, manager):
        older = _snapshot("a", {"createdAt": datetime(2025, 1, 1, tzinfo=timezone.utc)})
        newer = _snapshot("b", {"createdAt": "2025-06-01T00:00:00Z"})
        undated = _snapshot("c", {})
        query = _chainable_query([older, undated, newer])
        manager.db.collection.return_value = query

        items = manager.list_itineraries_for_user("user-1", ai_status="completed")

        assert [item["id"] for item in items] == ["b", "a", "c"]
        assert items[1]["createdAt"] == "2025-01-01T00:00:00+00:00"
        query.where.assert_any_call("userId", "==", "user-1")
        query.where.assert_any_call("ai_status", "==", "completed")


class TestSearch:
    def test_search_overfetches_and_filters(self, manager, miami_criteria):
        docs = [
            _miami_doc("old", datetime(2025, 1, 1, tzinfo=timezone.utc)),
            _miami_doc("v1", datetime(2025, 3, 1, tzinfo=timezone.utc)),
            _miami_doc("young", datetime(2025, 4, 1, tzinfo=timezone.utc), age=16),
            _miami_doc("new", datetime(2025, 2, 1, tzinfo=timezone.utc)),
        ]
        query = _chainable_query(docs)
        manager.db.collection.return_value = query

        results = manager.search_itineraries(miami_criteria, page_size=10)

        assert [i.id for i in results] == ["new", "old"]
        query.limit.assert_called_once_with(30)

    def test_page_size_capped(self, manager, miami_criteria):
        query = _chainable_query([])
        manager.db.collection.return_value = query

        manager.search_itineraries(miami_criteria, page_size=500)

        query.limit.assert_called_once_with(300)

    def test_default_page_size(self, manager, miami_criteria):
        docs = [
            _miami_doc(f"d{n}", datetime(2025, 1, 1 + n, tzinfo=timezone.utc)) for n in range(5)
        ]
        manager.page_size = 2
        manager.db.collection.return_value = _chainable_query(docs)

        results = manager.search_itineraries(miami_criteria)

        assert [i.id for i in results] == ["d4", "d3"]

    def test_search_propagates_query_errors(self, manager, miami_criteria):
        query = _chainable_query([])
        query.stream.side_effect = RuntimeError("index missing")
        manager.db.collection.return_value = query

        with pytest.raises(RuntimeError, match="index missing"):
            manager.search_itineraries(miami_criteria)

    def test_malformed_document_skipped(self, manager, miami_criteria, caplog):
        docs = [
            _miami_doc("legacy", datetime(2025, 3, 1, tzinfo=timezone.utc), userInfo="owner-x"),
            _miami_doc("good", datetime(2025, 2, 1, tzinfo=timezone.utc)),
        ]
        manager.db.collection.return_value = _chainable_query(docs)

        with caplog.at_level("WARNING"):
            results = manager.search_itineraries(miami_criteria)

        assert [i.id for i in results] == ["good"]
        assert "Skipping malformed itinerary legacy" in caplog.text

    def test_age_derived_from_owner_dob(self, manager, miami_criteria):
        docs = [
            _miami_doc(
                "dob-only",
                datetime(2025, 2, 1, tzinfo=timezone.utc),
                age=None,
                userInfo={"uid": "owner-dob-only", "dob": "1985-03-02"},
            )
        ]
        manager.db.collection.return_value = _chainable_query(docs)

        results = manager.search_itineraries(miami_criteria)

        assert [i.id for i in results] == ["dob-only"]
        assert results[0].age >= 40
