"""Itinerary matching."""

from travalpass.matching.match_filter import ItineraryMatchFilter, filter_itineraries
from travalpass.matching.models import FilterRejection, FilterResult, FilterStage
from travalpass.matching.schema import (
    NO_PREFERENCE,
    InvalidSearchRequest,
    Itinerary,
    SearchCriteria,
    UserInfo,
)

__all__ = [
    "ItineraryMatchFilter",
    "filter_itineraries",
    "FilterResult",
    "FilterRejection",
    "FilterStage",
    "Itinerary",
    "SearchCriteria",
    "UserInfo",
    "InvalidSearchRequest",
    "NO_PREFERENCE",
]
