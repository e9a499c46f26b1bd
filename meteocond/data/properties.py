"""
Processing Properties
=====================
What an algorithm needs around a point, so the buffer can be sized.
"""

from dataclasses import dataclass
from enum import Enum


class ProcessingStage(Enum):
    """When a filter runs relative to resampling."""
    FIRST = "first"    # on raw data, before resampling
    SECOND = "second"  # on resampled data
    BOTH = "both"

    def runs_in(self, second_pass: bool) -> bool:
        if self is ProcessingStage.BOTH:
            return True
        return (self is ProcessingStage.SECOND) == second_pass


@dataclass
class ProcessingProperties:
    """Minimum support before/after a point. Times in seconds."""
    points_before: int = 0
    points_after: int = 0
    time_before: float = 0.0
    time_after: float = 0.0
    stage: ProcessingStage = ProcessingStage.FIRST

    def merge(self, other: "ProcessingProperties") -> "ProcessingProperties":
        """Field-wise maximum of both requirements (stage kept from self)."""
        return ProcessingProperties(
            points_before=max(self.points_before, other.points_before),
            points_after=max(self.points_after, other.points_after),
            time_before=max(self.time_before, other.time_before),
            time_after=max(self.time_after, other.time_after),
            stage=self.stage,
        )

    def __str__(self) -> str:
        parts = []
        if self.time_before > 0 or self.time_after > 0:
            parts.append(f"-{self.time_before / 3600.0:g} +{self.time_after / 3600.0:g} h")
        if self.points_before > 0 or self.points_after > 0:
            parts.append(f"-{self.points_before} +{self.points_after} pts")
        parts.append(f"stage={self.stage.value}")
        return "{" + "; ".join(parts) + "}"
