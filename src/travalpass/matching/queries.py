"""Translate SearchCriteria into Firestore query constraints."""

import logging
from typing import Any, List, Optional, Tuple

from google.cloud import firestore as gcloud_firestore

from travalpass.matching.schema import SearchCriteria

logger = logging.getLogger(__name__)

# (field, operator, value)
Constraint = Tuple[str, str, Any]


def firestore_constraints(criteria: SearchCriteria) -> List[Constraint]:
    """
    Build the where-constraints a Firestore search applies natively.

    Equality filters are added only when specified. Both range filters are
    always present so every search uses the same composite indexes
    (endDay + startDay). Age, exclusion and blocking filters are left to
    post-processing.

    Args:
        criteria: Validated search criteria

    Returns:
        List of (field, operator, value) tuples
    """
    constraints: List[Constraint] = [("destination", "==", criteria.destination)]

    if criteria.gender is not None:
        constraints.append(("gender", "==", criteria.gender))
    if criteria.status is not None:
        constraints.append(("status", "==", criteria.status))
    if criteria.sexual_orientation is not None:
        constraints.append(("sexualOrientation", "==", criteria.sexual_orientation))

    # Candidate ends after the window starts, and starts before it ends
    constraints.append(("endDay", ">=", criteria.start_day))
    constraints.append(("startDay", "<=", criteria.end_day))
    return constraints


def apply_firestore_filters(query: Any, criteria: SearchCriteria, limit: Optional[int] = None):
    """
    Apply search constraints to a Firestore collection or query.

    Firestore requires the first orderBy to match the first inequality field,
    so results are ordered by endDay here and re-sorted by the match filter.

    Args:
        query: Firestore CollectionReference or Query
        criteria: Validated search criteria
        limit: Maximum documents to fetch

    Returns:
        Firestore Query
    """
    for field_path, op, value in firestore_constraints(criteria):
        query = query.where(field_path, op, value)

    query = query.order_by("endDay", direction=gcloud_firestore.Query.ASCENDING)
    if limit:
        query = query.limit(limit)

    logger.debug(f"Firestore search constraints for '{criteria.destination}' (limit={limit})")
    return query
