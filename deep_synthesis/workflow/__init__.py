from deep_synthesis.workflow.base_step import Step, StepStatus
from deep_synthesis.workflow.engine import NavigationResult, StepWorkflowEngine
from deep_synthesis.workflow.steps import (
    BRIEF_GENERATION_STEP,
    DEFAULT_STEPS,
    PAPER_SEARCH_STEP,
    QUERY_STEP,
    REFINEMENT_COMPLETE_MARKER,
    REFINEMENT_STEP,
)

__all__ = [
    "BRIEF_GENERATION_STEP",
    "DEFAULT_STEPS",
    "NavigationResult",
    "PAPER_SEARCH_STEP",
    "QUERY_STEP",
    "REFINEMENT_COMPLETE_MARKER",
    "REFINEMENT_STEP",
    "Step",
    "StepStatus",
    "StepWorkflowEngine",
]
