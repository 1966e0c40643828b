"""Ordered, gated state machine over the brief workflow steps.

The engine holds no per-brief state: which steps are complete is derived
from the brief each time it is asked.
"""

from dataclasses import dataclass
from typing import Collection, Iterable, Iterator, List, Optional, Sequence

from deep_synthesis.core.exceptions import NavigationError, ValidationError
from deep_synthesis.database.models import Brief
from deep_synthesis.utils.logging import get_logger
from deep_synthesis.workflow.base_step import Step, StepStatus
from deep_synthesis.workflow.steps import DEFAULT_STEPS

LOGGER = get_logger(__name__)

INVALID_STEP = "Invalid step"
STEP_NOT_AVAILABLE = "This step is not yet available. Please complete the previous steps first."
FINISH_CURRENT_STEP = "Please complete the current step before moving to later steps."


@dataclass(frozen=True)
class NavigationResult:
    is_valid: bool
    error_message: Optional[str] = None


class StepWorkflowEngine:
    def __init__(self, steps: Iterable[Step] = DEFAULT_STEPS):
        self._steps: List[Step] = []
        for step in steps:
            self.register(step)

    def register(self, step: Step, position: Optional[int] = None) -> None:
        """Insert ``step`` at ``position`` (appended when out of range).

        Raises:
            ValidationError: If a step with the same id is already registered
        """
        if self.get_step(step.id) is not None:
            raise ValidationError(f"Step with id {step.id} is already registered")

        if position is not None and 0 <= position <= len(self._steps):
            self._steps.insert(position, step)
        else:
            self._steps.append(step)
        LOGGER.debug(f"Registered workflow step {step.id}", extra={"position": position})

    def get_step(self, step_id: str) -> Optional[Step]:
        return next((step for step in self._steps if step.id == step_id), None)

    def all_steps(self) -> List[Step]:
        return list(self._steps)

    def reorder(self, step_ids: Sequence[str]) -> None:
        """Put the named steps first, in the given order; unnamed steps keep their relative order.

        Raises:
            ValidationError: If an id is unknown
        """
        unknown = [step_id for step_id in step_ids if self.get_step(step_id) is None]
        if unknown:
            raise ValidationError(f"Unknown step ids: {', '.join(unknown)}")

        named = [self.get_step(step_id) for step_id in dict.fromkeys(step_ids)]
        rest = [step for step in self._steps if step.id not in set(step_ids)]
        self._steps = named + rest

    def applicable_steps(self, brief: Optional[Brief]) -> Iterator[Step]:
        """Lazily yield the steps that apply to ``brief``."""
        return (step for step in self._steps if step.applies_to(brief))

    @staticmethod
    def completed_step_ids(brief: Optional[Brief], steps: Iterable[Step]) -> List[str]:
        if brief is None:
            return []
        return [step.id for step in steps if step.is_complete(brief)]

    @staticmethod
    def are_previous_steps_complete(
        steps: Sequence[Step], index: int, completed_ids: Collection[str]
    ) -> bool:
        return all(step.id in completed_ids for step in steps[:index])

    def is_step_available(
        self,
        steps: Sequence[Step],
        index: int,
        completed_ids: Collection[str],
        brief: Optional[Brief] = None,
    ) -> bool:
        """True when every earlier step is complete and the step applies to ``brief``."""
        if not 0 <= index < len(steps):
            return False
        return self.are_previous_steps_complete(steps, index, completed_ids) and steps[index].applies_to(
            brief
        )

    def step_status(
        self,
        steps: Sequence[Step],
        index: int,
        completed_ids: Collection[str],
        brief: Optional[Brief] = None,
    ) -> StepStatus:
        if 0 <= index < len(steps) and steps[index].id in completed_ids:
            return StepStatus.COMPLETED
        if self.is_step_available(steps, index, completed_ids, brief):
            return StepStatus.AVAILABLE
        return StepStatus.LOCKED

    def validate_navigation(
        self,
        steps: Sequence[Step],
        from_index: int,
        to_index: int,
        completed_ids: Collection[str],
        brief: Optional[Brief] = None,
    ) -> NavigationResult:
        """Allow moving to a completed step, to the first incomplete step, or backwards."""
        if not 0 <= to_index < len(steps):
            return NavigationResult(False, INVALID_STEP)

        target = steps[to_index]
        is_completed = bool(brief is not None and target.is_complete(brief))
        first_incomplete = next(
            (i for i, step in enumerate(steps) if step.id not in completed_ids), -1
        )

        if is_completed or to_index == first_incomplete or to_index < from_index:
            return NavigationResult(True)

        if not self.is_step_available(steps, to_index, completed_ids, brief):
            return NavigationResult(False, STEP_NOT_AVAILABLE)
        return NavigationResult(False, FINISH_CURRENT_STEP)

    def navigate(self, brief: Brief, from_index: int, to_index: int) -> Step:
        """Validate a move between applicable steps of ``brief`` and return the target.

        Raises:
            NavigationError: If the move is not allowed
        """
        steps = list(self.applicable_steps(brief))
        completed = self.completed_step_ids(brief, steps)
        result = self.validate_navigation(steps, from_index, to_index, completed, brief)
        if not result.is_valid:
            LOGGER.info(
                f"Navigation denied: {result.error_message}",
                extra={"from_index": from_index, "to_index": to_index},
            )
            raise NavigationError(result.error_message)
        return steps[to_index]
