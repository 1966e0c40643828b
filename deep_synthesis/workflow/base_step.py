"""Step descriptor for the brief workflow."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from deep_synthesis.database.models import Brief

BriefPredicate = Callable[[Brief], bool]


class StepStatus(Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Step:
    """One stage of the brief workflow.

    Completion is always derived from the brief, never stored.
    """
    id: str
    title: str
    is_complete: BriefPredicate
    description: str = ""
    # Absent means the step always applies.
    should_render: Optional[BriefPredicate] = None

    def applies_to(self, brief: Optional[Brief]) -> bool:
        if self.should_render is None or brief is None:
            return True
        return bool(self.should_render(brief))
