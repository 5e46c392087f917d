"""
Pydantic models for itinerary matching.

Itinerary documents are stored with camelCase field names (the web client and
Cloud Functions write them); the models accept either the stored alias or the
Python field name.
"""

from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from travalpass.utils.dates import (
    calculate_age,
    ensure_utc,
    parse_date,
    to_day_timestamp,
)

# Sentinel the client sends for "any value"; never matched literally.
NO_PREFERENCE = "No Preference"


class InvalidSearchRequest(ValueError):
    """Raised when a raw search payload cannot be turned into SearchCriteria."""


def _optional_preference(value: Any) -> Optional[str]:
    """Map unset, empty and "No Preference" values to None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == NO_PREFERENCE:
        return None
    return text


class UserInfo(BaseModel):
    """Owner snapshot embedded in an itinerary document."""

    uid: Optional[str] = None
    username: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[date] = None
    blocked: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("dob", mode="before")
    @classmethod
    def _dob_date(cls, value: Any) -> Optional[date]:
        return parse_date(value)

    @field_validator("blocked", mode="before")
    @classmethod
    def _blocked_list(cls, value: Any) -> List[str]:
        if not isinstance(value, (list, tuple, set)):
            return []
        return [str(v) for v in value if v]


class Itinerary(BaseModel):
    """
    Candidate itinerary record.

    Itineraries are owned by the submission flow and are read-only inputs to
    the match filter. start_day/end_day are epoch-millisecond day bounds.
    """

    id: str
    destination: str = ""
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    start_day: Optional[int] = Field(default=None, alias="startDay")
    end_day: Optional[int] = Field(default=None, alias="endDay")
    age: Optional[int] = None
    gender: Optional[str] = None
    status: Optional[str] = None
    sexual_orientation: Optional[str] = Field(default=None, alias="sexualOrientation")
    lower_range: Optional[int] = Field(default=None, alias="lowerRange")
    upper_range: Optional[int] = Field(default=None, alias="upperRange")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_info: Optional[UserInfo] = Field(default=None, alias="userInfo")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("destination", mode="before")
    @classmethod
    def _destination_text(cls, value: Any) -> str:
        return "" if value is None else value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Optional[date]:
        return parse_date(value)

    @field_validator("start_day", "end_day", "age", "lower_range", "upper_range", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> Optional[int]:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            # Hand-edited documents sometimes carry text here; treat as absent
            return None

    @field_validator("created_at", mode="after")
    @classmethod
    def _utc_created_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _derive_day_bounds(self) -> "Itinerary":
        if self.start_day is None and self.start_date is not None:
            self.start_day = to_day_timestamp(self.start_date)
        if self.end_day is None and self.end_date is not None:
            self.end_day = to_day_timestamp(self.end_date)
        return self

    @property
    def owner_id(self) -> Optional[str]:
        """Owner uid, preferring the embedded user snapshot."""
        if self.user_info and self.user_info.uid:
            return self.user_info.uid
        return self.user_id

    @property
    def blocked_user_ids(self) -> List[str]:
        """Users the owner has blocked."""
        return self.user_info.blocked if self.user_info else []

    @classmethod
    def from_document(
        cls, doc_id: str, data: Dict[str, Any], today: Optional[date] = None
    ) -> "Itinerary":
        """
        Build an Itinerary from a stored document.

        When the document carries no age, it is derived from userInfo.dob.

        Args:
            doc_id: Document ID
            data: Document data (camelCase field names)
            today: Reference date for age derivation

        Returns:
            Itinerary instance
        """
        itinerary = cls.model_validate({**data, "id": doc_id})
        if itinerary.age is None and itinerary.user_info and itinerary.user_info.dob:
            itinerary.age = calculate_age(itinerary.user_info.dob, today)
        return itinerary


class SearchCriteria(BaseModel):
    """
    A searcher's matching criteria.

    Optional filters use None for "not specified"; the "No Preference" sentinel
    and empty strings are normalized to None on construction. Required fields
    are validated here so the match filter itself never has to raise.
    """

    destination: str = Field(min_length=1)
    start_date: date
    end_date: date
    gender: Optional[str] = None
    status: Optional[str] = None
    sexual_orientation: Optional[str] = None
    lower_range: Optional[int] = None
    upper_range: Optional[int] = None
    excluded_ids: FrozenSet[str] = frozenset()
    current_user_id: Optional[str] = None
    blocked_user_ids: FrozenSet[str] = frozenset()

    model_config = ConfigDict(frozen=True)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        parsed = parse_date(value)
        return parsed if parsed is not None else value

    @field_validator("gender", "status", "sexual_orientation", mode="before")
    @classmethod
    def _normalize_preference(cls, value: Any) -> Optional[str]:
        return _optional_preference(value)

    @field_validator("excluded_ids", "blocked_user_ids", mode="before")
    @classmethod
    def _id_set(cls, value: Any) -> FrozenSet[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset([value])
        return frozenset(str(v) for v in value if v)

    @model_validator(mode="after")
    def _check_ranges(self) -> "SearchCriteria":
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be earlier than start_date")
        if self.has_age_filter and self.lower_range > self.upper_range:
            raise ValueError("lower_range cannot be greater than upper_range")
        return self

    @property
    def start_day(self) -> int:
        """Window start as a day timestamp (epoch ms)."""
        return to_day_timestamp(self.start_date)

    @property
    def end_day(self) -> int:
        """Window end as a day timestamp (epoch ms)."""
        return to_day_timestamp(self.end_date)

    @property
    def has_age_filter(self) -> bool:
        return self.lower_range is not None and self.upper_range is not None

    @classmethod
    def from_itinerary(
        cls,
        itinerary: Itinerary,
        excluded_ids: Iterable[str] = (),
        current_user_id: Optional[str] = None,
        blocked_user_ids: Iterable[str] = (),
    ) -> "SearchCriteria":
        """
        Build criteria from the searcher's own itinerary.

        The searcher's itinerary carries the preferences (gender, status,
        orientation, age range) used to find companions for that trip.
        """
        start_date = itinerary.start_date
        end_date = itinerary.end_date
        if start_date is None and itinerary.start_day is not None:
            start_date = parse_date(itinerary.start_day)
        if end_date is None and itinerary.end_day is not None:
            end_date = parse_date(itinerary.end_day)

        return cls(
            destination=itinerary.destination,
            start_date=start_date,
            end_date=end_date,
            gender=itinerary.gender,
            status=itinerary.status,
            sexual_orientation=itinerary.sexual_orientation,
            lower_range=itinerary.lower_range,
            upper_range=itinerary.upper_range,
            excluded_ids=excluded_ids,
            current_user_id=current_user_id or itinerary.owner_id,
            blocked_user_ids=blocked_user_ids,
        )

    @classmethod
    def from_request(cls, payload: Dict[str, Any]) -> "SearchCriteria":
        """
        Build criteria from a camelCase request payload.

        Raises:
            InvalidSearchRequest: If required fields are missing or invalid
        """
        try:
            return cls(
                destination=payload.get("destination") or "",
                start_date=payload.get("startDate") or payload.get("minStartDay"),
                end_date=payload.get("endDate") or payload.get("maxEndDay"),
                gender=payload.get("gender"),
                status=payload.get("status"),
                sexual_orientation=payload.get("sexualOrientation"),
                lower_range=payload.get("lowerRange"),
                upper_range=payload.get("upperRange"),
                excluded_ids=payload.get("excludedIds") or (),
                current_user_id=payload.get("currentUserId"),
                blocked_user_ids=payload.get("blockedUserIds") or (),
            )
        except ValidationError as e:
            fields = ", ".join(
                ".".join(str(p) for p in err["loc"]) or "criteria" for err in e.errors()
            )
            raise InvalidSearchRequest(f"Invalid search criteria ({fields}): {e}") from e
