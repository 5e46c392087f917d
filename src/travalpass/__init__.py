"""TravalPass itinerary matching."""

__version__ = "1.0.0"
