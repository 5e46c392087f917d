"""Tests for the shared Firestore client cache."""

from unittest.mock import MagicMock, patch

import pytest

from travalpass.storage.firestore_client import FirestoreClient


@pytest.fixture(autouse=True)
def clean_cache():
    """Every test starts and ends with no cached clients."""
    FirestoreClient.reset()
    yield
    FirestoreClient.reset()


@pytest.fixture
def creds_file(tmp_path):
    path = tmp_path / "service-account.json"
    path.write_text("{}")
    return str(path)


@pytest.fixture
def firebase():
    """Patch Firebase credential loading and client construction."""
    with patch("travalpass.storage.firestore_client.credentials") as mock_credentials, patch(
        "travalpass.storage.firestore_client.firebase_admin"
    ) as mock_admin, patch("travalpass.storage.firestore_client.gcloud_firestore") as mock_firestore:
        mock_credentials.Certificate.return_value = MagicMock(project_id="travalpass-test")
        mock_firestore.Client.side_effect = lambda **kwargs: MagicMock(kwargs=kwargs)
        yield mock_admin, mock_firestore


class TestGetClient:
    def test_missing_credentials_raise_value_error(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)

        with pytest.raises(ValueError, match="GOOGLE_APPLICATION_CREDENTIALS"):
            FirestoreClient.get_client()

    def test_missing_credentials_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FirestoreClient.get_client(credentials_path=str(tmp_path / "nope.json"))

    def test_client_cached_per_database(self, firebase, creds_file):
        _, mock_firestore = firebase

        first = FirestoreClient.get_client("(default)", creds_file)
        second = FirestoreClient.get_client("(default)")

        assert first is second
        mock_firestore.Client.assert_called_once_with(project="travalpass-test")

    def test_named_database(self, firebase, creds_file):
        _, mock_firestore = firebase

        client = FirestoreClient.get_client("staging", creds_file)

        assert client.kwargs == {"project": "travalpass-test", "database": "staging"}
        assert FirestoreClient.get_client("(default)", creds_file) is not client

    def test_existing_firebase_app_reused(self, firebase, creds_file):
        mock_admin, _ = firebase

        FirestoreClient.get_client("(default)", creds_file)

        mock_admin.initialize_app.assert_not_called()

    def test_new_firebase_app_initialized(self, firebase, creds_file):
        mock_admin, _ = firebase
        mock_admin.get_app.side_effect = ValueError("no app")

        FirestoreClient.get_client("(default)", creds_file)

        mock_admin.initialize_app.assert_called_once()

    def test_initialization_failure_wrapped(self, firebase, creds_file):
        _, mock_firestore = firebase
        mock_firestore.Client.side_effect = Exception("bad project")

        with pytest.raises(RuntimeError, match="Failed to initialize Firestore"):
            FirestoreClient.get_client("(default)", creds_file)

    def test_reset_drops_cached_clients(self, firebase, creds_file):
        _, mock_firestore = firebase

        first = FirestoreClient.get_client("(default)", creds_file)
        FirestoreClient.reset()
        second = FirestoreClient.get_client("(default)", creds_file)

        assert first is not second
        assert mock_firestore.Client.call_count == 2
