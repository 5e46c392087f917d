"""Shared Firestore client initialization."""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import firebase_admin
from firebase_admin import credentials
from google.cloud import firestore as gcloud_firestore

logger = logging.getLogger(__name__)


class FirestoreClient:
    """
    Caches one Firestore client per database.

    Managers call get_client() instead of initializing Firebase themselves so
    the Firebase app is created once per process.
    """

    _clients: Dict[str, gcloud_firestore.Client] = {}

    @classmethod
    def get_client(
        cls, database_name: str = "(default)", credentials_path: Optional[str] = None
    ) -> gcloud_firestore.Client:
        """
        Get (or create) a Firestore client for a database.

        Args:
            database_name: Firestore database name ("(default)" for the default database)
            credentials_path: Path to Firebase service account JSON.
                            Defaults to GOOGLE_APPLICATION_CREDENTIALS env var.

        Returns:
            Firestore client

        Raises:
            ValueError: If no credentials path is configured
            FileNotFoundError: If the credentials file does not exist
            RuntimeError: If Firestore cannot be initialized
        """
        if database_name in cls._clients:
            return cls._clients[database_name]

        creds_path = credentials_path or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        if not creds_path:
            raise ValueError(
                "Firebase credentials not found. Set GOOGLE_APPLICATION_CREDENTIALS "
                "environment variable or pass credentials_path parameter."
            )

        if not Path(creds_path).exists():
            raise FileNotFoundError(f"Credentials file not found: {creds_path}")

        try:
            cred = credentials.Certificate(creds_path)

            try:
                firebase_admin.get_app()
                logger.info("Using existing Firebase app")
            except ValueError:
                firebase_admin.initialize_app(cred)
                logger.info("Initialized new Firebase app")

            project_id = cred.project_id
            if database_name == "(default)":
                client = gcloud_firestore.Client(project=project_id)
            else:
                client = gcloud_firestore.Client(project=project_id, database=database_name)

            logger.info(f"Connected to Firestore database: {database_name} in project {project_id}")

        except Exception as e:
            raise RuntimeError(f"Failed to initialize Firestore: {str(e)}") from e

        cls._clients[database_name] = client
        return client

    @classmethod
    def reset(cls) -> None:
        """Drop cached clients (used by tests and long-running scripts)."""
        cls._clients.clear()
