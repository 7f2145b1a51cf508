"""Workflow step definitions and state model for the creation workflow.

Defines the fixed, ordered five-step sequence a user walks through to
create an avatar video, plus the per-session state the coordinator mutates.
"""

from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from avatarflow.errors import UnknownStepError


class WorkflowStep(BaseModel):
    """One stage of the creation workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str
    guidance_message: str


# Workflow steps in execution order
WORKFLOW_STEPS: tuple[WorkflowStep, ...] = (
    WorkflowStep(
        id="voices",
        label="Select Voice",
        description="Choose a voice for your video from our library.",
        guidance_message="Select a voice to continue",
    ),
    WorkflowStep(
        id="avatars",
        label="Choose Avatar",
        description="Pick an avatar that will speak your script.",
        guidance_message="Choose an avatar to continue",
    ),
    WorkflowStep(
        id="script",
        label="Write Script",
        description="Enter the text you want your avatar to speak.",
        guidance_message="Write your script to continue",
    ),
    WorkflowStep(
        id="summary",
        label="Review Summary",
        description="Check your voice, avatar and script before generating.",
        guidance_message="Review your selections to continue",
    ),
    WorkflowStep(
        id="videos",
        label="Generate Video",
        description="Generate your video and follow its progress.",
        guidance_message="Click Generate Video to start",
    ),
)

STEP_INDEX: Mapping[str, int] = MappingProxyType(
    {step.id: index for index, step in enumerate(WORKFLOW_STEPS)}
)

# Steps whose payload feeds the generation request
GENERATION_INPUT_STEPS = ("voices", "avatars", "script")

# Scripts must be longer than this (after stripping) to complete the step
MIN_SCRIPT_LENGTH = 10


def step_index(step_id: str) -> int:
    """Return the position of step_id, raising UnknownStepError if absent."""
    try:
        return STEP_INDEX[step_id]
    except KeyError:
        raise UnknownStepError(step_id) from None


class WorkflowState(BaseModel):
    """Mutable per-session workflow state.

    Only the coordinator mutates this model; callers receive deep copies
    through WorkflowCoordinator.snapshot().
    """

    active_step_index: int = 0
    completed: dict[str, bool] = Field(
        default_factory=lambda: {step.id: False for step in WORKFLOW_STEPS}
    )
    payload: dict[str, dict[str, Any]] = Field(default_factory=dict)


class StepStatus(BaseModel):
    """A workflow step annotated with its completion flag."""

    model_config = ConfigDict(frozen=True)

    step: WorkflowStep
    index: int
    completed: bool
    active: bool
