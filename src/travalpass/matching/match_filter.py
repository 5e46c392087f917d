"""
Itinerary match filter.

Decides whether a candidate itinerary satisfies a searcher's criteria and
produces the ordered candidate list. The filter is pure: it reads its inputs,
holds no shared state and performs no I/O, so it runs the same way after a
Firestore scan, a Postgres query or against in-memory fixtures.
"""

import logging
from typing import Iterable, List, Optional

from travalpass.logging_config import get_structured_logger
from travalpass.matching.models import FilterResult, FilterStage
from travalpass.matching.schema import Itinerary, SearchCriteria

logger = logging.getLogger(__name__)
slogger = get_structured_logger(__name__)


def _created_at_sort_key(itinerary: Itinerary):
    """Newest first; itineraries without createdAt sort last."""
    created_at = itinerary.created_at
    return (created_at is not None, created_at.timestamp() if created_at else 0.0)


class ItineraryMatchFilter:
    """
    Filter engine that evaluates itineraries against one SearchCriteria.

    Applies filter stages in order:
    1. Trip filters (destination, date overlap)
    2. Preference filters (gender, status, sexual orientation, age range)
    3. Exclusion filters (own itineraries, blocked users, already-viewed ids)

    Exclusions run last so they always win over any other match.
    """

    def __init__(self, criteria: SearchCriteria):
        """
        Initialize match filter.

        Args:
            criteria: Validated search criteria
        """
        self.criteria = criteria
        self.window_start_day = criteria.start_day
        self.window_end_day = criteria.end_day

    def evaluate_itinerary(self, itinerary: Itinerary) -> FilterResult:
        """
        Evaluate one itinerary against all filters.

        Args:
            itinerary: Candidate itinerary

        Returns:
            FilterResult with pass/fail and detailed rejection reasons
        """
        result = FilterResult(itinerary_id=itinerary.id)

        self._check_destination(itinerary, result)
        self._check_date_overlap(itinerary, result)
        self._check_gender(itinerary, result)
        self._check_status(itinerary, result)
        self._check_sexual_orientation(itinerary, result)
        self._check_age_range(itinerary, result)
        self._check_own_itinerary(itinerary, result)
        self._check_blocked(itinerary, result)
        self._check_excluded_ids(itinerary, result)

        slogger.filter_decision(itinerary.id, result.passed, result.summary())

        return result

    def matches(self, itinerary: Itinerary) -> bool:
        """Return True if the itinerary passes every active filter."""
        return self.evaluate_itinerary(itinerary).passed

    def filter_itineraries(
        self, candidates: Iterable[Itinerary], limit: Optional[int] = None
    ) -> List[Itinerary]:
        """
        Return the matching candidates, newest createdAt first.

        Args:
            candidates: Candidate itineraries from any data source
            limit: Optional result cap applied after ordering

        Returns:
            Ordered list of matching itineraries
        """
        total = 0
        matched: List[Itinerary] = []
        for itinerary in candidates:
            total += 1
            if self.matches(itinerary):
                matched.append(itinerary)

        matched.sort(key=_created_at_sort_key, reverse=True)
        if limit is not None:
            matched = matched[: max(limit, 0)]

        logger.info(
            f"Match filter kept {len(matched)} of {total} itineraries "
            f"for '{self.criteria.destination}'"
        )
        return matched

    def _check_destination(self, itinerary: Itinerary, result: FilterResult) -> None:
        """Destinations compare exactly; no case folding or geocoding."""
        if itinerary.destination != self.criteria.destination:
            result.reject(
                FilterStage.TRIP,
                "destination",
                "Destination mismatch",
                (
                    f"Destination '{itinerary.destination}' != "
                    f"'{self.criteria.destination}'"
                ),
            )

    def _check_date_overlap(self, itinerary: Itinerary, result: FilterResult) -> None:
        """Inclusive overlap: candidate starts before the window ends and ends after it starts."""
        if itinerary.start_day is None or itinerary.end_day is None:
            result.reject(
                FilterStage.TRIP,
                "date_overlap",
                "Missing travel dates",
                "Itinerary has no startDay/endDay",
            )
            return

        if itinerary.start_day > self.window_end_day or itinerary.end_day < self.window_start_day:
            result.reject(
                FilterStage.TRIP,
                "date_overlap",
                "Dates do not overlap",
                (
                    f"Itinerary days {itinerary.start_day}-{itinerary.end_day} outside "
                    f"window {self.window_start_day}-{self.window_end_day}"
                ),
            )

    def _check_gender(self, itinerary: Itinerary, result: FilterResult) -> None:
        if self.criteria.gender is None:
            return
        if itinerary.gender != self.criteria.gender:
            result.reject(
                FilterStage.PREFERENCES,
                "gender",
                "Gender mismatch",
                f"Gender '{itinerary.gender}' != '{self.criteria.gender}'",
            )

    def _check_status(self, itinerary: Itinerary, result: FilterResult) -> None:
        if self.criteria.status is None:
            return
        if itinerary.status != self.criteria.status:
            result.reject(
                FilterStage.PREFERENCES,
                "status",
                "Status mismatch",
                f"Status '{itinerary.status}' != '{self.criteria.status}'",
            )

    def _check_sexual_orientation(self, itinerary: Itinerary, result: FilterResult) -> None:
        # "No Preference" was normalized to None when the criteria were built
        if self.criteria.sexual_orientation is None:
            return
        if itinerary.sexual_orientation != self.criteria.sexual_orientation:
            result.reject(
                FilterStage.PREFERENCES,
                "sexual_orientation",
                "Sexual orientation mismatch",
                (
                    f"Orientation '{itinerary.sexual_orientation}' != "
                    f"'{self.criteria.sexual_orientation}'"
                ),
            )

    def _check_age_range(self, itinerary: Itinerary, result: FilterResult) -> None:
        """An active age filter rejects candidates with no age."""
        if not self.criteria.has_age_filter:
            return

        lower = self.criteria.lower_range
        upper = self.criteria.upper_range
        if itinerary.age is None:
            result.reject(
                FilterStage.PREFERENCES,
                "age_range",
                "Missing age",
                f"Itinerary has no age, required {lower}-{upper}",
            )
        elif itinerary.age < lower or itinerary.age > upper:
            result.reject(
                FilterStage.PREFERENCES,
                "age_range",
                "Age out of range",
                f"Age {itinerary.age} outside {lower}-{upper}",
            )

    def _check_own_itinerary(self, itinerary: Itinerary, result: FilterResult) -> None:
        current_user_id = self.criteria.current_user_id
        if not current_user_id:
            return
        if current_user_id in (itinerary.user_id, itinerary.owner_id):
            result.reject(
                FilterStage.EXCLUSIONS,
                "own_itinerary",
                "Own itinerary",
                f"Itinerary belongs to searcher {current_user_id}",
            )

    def _check_blocked(self, itinerary: Itinerary, result: FilterResult) -> None:
        """Blocking applies in both directions."""
        owner_id = itinerary.owner_id
        if owner_id and owner_id in self.criteria.blocked_user_ids:
            result.reject(
                FilterStage.EXCLUSIONS,
                "blocked_user",
                "Blocked user",
                f"Searcher blocked owner {owner_id}",
            )
            return

        current_user_id = self.criteria.current_user_id
        if current_user_id and current_user_id in itinerary.blocked_user_ids:
            result.reject(
                FilterStage.EXCLUSIONS,
                "blocked_user",
                "Blocked by owner",
                f"Owner {owner_id} blocked searcher {current_user_id}",
            )

    def _check_excluded_ids(self, itinerary: Itinerary, result: FilterResult) -> None:
        if itinerary.id in self.criteria.excluded_ids:
            result.reject(
                FilterStage.EXCLUSIONS,
                "excluded_id",
                "Already viewed",
                f"Itinerary {itinerary.id} is in the excluded list",
            )


def filter_itineraries(
    criteria: SearchCriteria, candidates: Iterable[Itinerary], limit: Optional[int] = None
) -> List[Itinerary]:
    """
    Filter candidates against criteria and order them newest first.

    Args:
        criteria: Validated search criteria
        candidates: Candidate itineraries
        limit: Optional result cap

    Returns:
        Matching itineraries ordered by createdAt descending
    """
    return ItineraryMatchFilter(criteria).filter_itineraries(candidates, limit=limit)
