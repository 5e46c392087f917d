"""Shared fixtures for itinerary matching tests."""

from datetime import datetime, timezone

import pytest

from travalpass.matching import Itinerary, SearchCriteria


def make_itinerary(**overrides) -> Itinerary:
    """Build a candidate that matches the Miami criteria fixture by default."""
    data = {
        "id": "cand-1",
        "destination": "Miami, FL, USA",
        "startDate": "2025-11-15",
        "endDate": "2025-11-20",
        "age": 40,
        "gender": "Female",
        "status": "couple",
        "sexualOrientation": "Gay",
        "createdAt": datetime(2025, 9, 1, tzinfo=timezone.utc),
        "userId": "owner-1",
    }
    data.update(overrides)
    return Itinerary.model_validate(data)


@pytest.fixture
def itinerary_factory():
    """Factory for candidate itineraries."""
    return make_itinerary


@pytest.fixture
def miami_criteria():
    """Criteria for a couples trip to Miami in late November."""
    return SearchCriteria(
        destination="Miami, FL, USA",
        start_date="2025-11-11",
        end_date="2025-11-30",
        gender="Female",
        status="couple",
        sexual_orientation="No Preference",
        lower_range=18,
        upper_range=100,
        excluded_ids=["v1"],
    )
