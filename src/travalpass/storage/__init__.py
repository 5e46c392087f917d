"""Itinerary storage modules."""

from travalpass.storage.firestore_client import FirestoreClient
from travalpass.storage.itineraries_manager import ItinerariesManager, ItineraryNotFoundError

__all__ = ["FirestoreClient", "ItinerariesManager", "ItineraryNotFoundError"]
