"""
Match filter results.

A FilterResult records, per candidate itinerary, which filter stages rejected
it and why. Stages run in a fixed order (trip, preferences, exclusions), and
results group their rejections by stage so logs read in evaluation order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class FilterStage(str, Enum):
    """Filter stages, in evaluation order."""

    TRIP = "trip"
    PREFERENCES = "preferences"
    EXCLUSIONS = "exclusions"


@dataclass(frozen=True)
class FilterRejection:
    """One failed filter: the stage it belongs to, the filter and the reason."""

    stage: FilterStage
    filter_name: str
    reason: str
    detail: str = ""


@dataclass
class FilterResult:
    """
    Outcome of matching one itinerary.

    An itinerary passes when no filter rejected it; there is no separate flag
    to keep in sync with the rejection list.
    """

    itinerary_id: str
    rejections: List[FilterRejection] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.rejections

    def reject(self, stage: FilterStage, filter_name: str, reason: str, detail: str = "") -> None:
        self.rejections.append(FilterRejection(stage, filter_name, reason, detail))

    @property
    def rejected_by(self) -> List[str]:
        """Names of the filters that rejected the itinerary."""
        return [r.filter_name for r in self.rejections]

    def reasons_by_stage(self) -> Dict[FilterStage, List[str]]:
        """Rejection reasons grouped by stage, stages in evaluation order."""
        grouped: Dict[FilterStage, List[str]] = {}
        for stage in FilterStage:
            reasons = [r.reason for r in self.rejections if r.stage is stage]
            if reasons:
                grouped[stage] = reasons
        return grouped

    def summary(self) -> str:
        """
        One-line description for logs.

        Returns:
            "match", or e.g. "trip: Destination mismatch; exclusions: Already viewed"
        """
        if self.passed:
            return "match"
        return "; ".join(
            f"{stage.value}: {', '.join(reasons)}"
            for stage, reasons in self.reasons_by_stage().items()
        )

    def to_dict(self) -> dict:
        return {
            "itinerary_id": self.itinerary_id,
            "passed": self.passed,
            "rejections": {
                stage.value: [
                    {"filter": r.filter_name, "reason": r.reason, "detail": r.detail}
                    for r in self.rejections
                    if r.stage is stage
                ]
                for stage in self.reasons_by_stage()
            },
            "summary": self.summary(),
        }
