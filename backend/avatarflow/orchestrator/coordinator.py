"""Session-scoped workflow coordinator.

Owns a single WorkflowState and is the only thing allowed to mutate it.
Forward movement through the "Next" action is gated on completion of the
current step; direct navigation to any step is always allowed, and moving
backward never discards completion flags or payload.
"""

import enum
import logging
from typing import Any, Optional

from avatarflow.errors import IncompleteWorkflowError
from avatarflow.orchestrator.state import (
    GENERATION_INPUT_STEPS,
    MIN_SCRIPT_LENGTH,
    WORKFLOW_STEPS,
    StepStatus,
    WorkflowState,
    WorkflowStep,
    step_index,
)
from avatarflow.schemas.heygen import Avatar, Voice
from avatarflow.schemas.jobs import AvatarSettings, GenerationOptions, VoiceSettings

logger = logging.getLogger(__name__)


class AdvanceResult(str, enum.Enum):
    """Outcome of WorkflowCoordinator.advance()."""

    ADVANCED = "advanced"
    BLOCKED = "blocked"
    AT_END = "at_end"


class WorkflowCoordinator:
    """Gate navigation on step completion and record per-step payload.

    One instance is created per user session and handed explicitly to
    whatever needs it.
    """

    def __init__(self, steps: tuple[WorkflowStep, ...] = WORKFLOW_STEPS):
        self.steps = steps
        self._state = WorkflowState()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def active_step_index(self) -> int:
        return self._state.active_step_index

    @property
    def active_step(self) -> WorkflowStep:
        return self.steps[self._state.active_step_index]

    def is_completed(self, step_id: str) -> bool:
        step_index(step_id)
        return self._state.completed.get(step_id, False)

    def payload_for(self, step_id: str) -> dict[str, Any]:
        """Return a copy of the payload recorded for step_id."""
        step_index(step_id)
        return dict(self._state.payload.get(step_id, {}))

    def snapshot(self) -> WorkflowState:
        """Return a deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def steps_with_status(self) -> list[StepStatus]:
        return [
            StepStatus(
                step=step,
                index=i,
                completed=self._state.completed.get(step.id, False),
                active=i == self._state.active_step_index,
            )
            for i, step in enumerate(self.steps)
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def complete_step(
        self, step_id: str, payload_patch: Optional[dict[str, Any]] = None
    ) -> None:
        """Mark step_id completed and merge payload_patch into its payload.

        Does not move the active step.

        Raises:
            UnknownStepError: If step_id is not a workflow step.
        """
        step_index(step_id)
        self._state.completed[step_id] = True
        if payload_patch:
            self._state.payload.setdefault(step_id, {}).update(payload_patch)
        logger.info(f"Completed step {step_id}")

    def navigate_to(self, step_id: str) -> None:
        """Jump to step_id regardless of completion state.

        Raises:
            UnknownStepError: If step_id is not a workflow step.
        """
        index = step_index(step_id)
        logger.info(f"Navigating {self.active_step.id} -> {step_id}")
        self._state.active_step_index = index

    def advance(self) -> AdvanceResult:
        """Move to the next step if the current one is completed."""
        current = self.active_step
        next_index = self._state.active_step_index + 1
        if next_index >= len(self.steps):
            return AdvanceResult.AT_END
        if not self._state.completed.get(current.id, False):
            logger.warning(f"Cannot proceed: {current.id} step is not completed")
            return AdvanceResult.BLOCKED
        self._state.active_step_index = next_index
        logger.info(f"Advanced {current.id} -> {self.active_step.id}")
        return AdvanceResult.ADVANCED

    def retreat(self) -> None:
        """Move to the previous step; a no-op on the first step."""
        self._state.active_step_index = max(0, self._state.active_step_index - 1)

    # ------------------------------------------------------------------
    # Selection helpers
    # ------------------------------------------------------------------

    def select_voice(
        self, voice: Voice, voice_settings: Optional[VoiceSettings] = None
    ) -> None:
        self.complete_step(
            "voices",
            {
                "voice_id": voice.voice_id,
                "voice": voice,
                "voice_settings": voice_settings or VoiceSettings(),
            },
        )

    def select_avatar(
        self, avatar: Avatar, avatar_settings: Optional[AvatarSettings] = None
    ) -> None:
        self.complete_step(
            "avatars",
            {
                "avatar_id": avatar.avatar_id,
                "avatar": avatar,
                "avatar_settings": avatar_settings or AvatarSettings(),
            },
        )

    def update_script(self, content: str) -> bool:
        """Record the script once it is long enough to speak.

        Returns:
            True if the script step was completed, False if the text is
            still too short (state is left untouched).
        """
        if not content or len(content.strip()) <= MIN_SCRIPT_LENGTH:
            return False
        self.complete_step("script", {"script": content})
        return True

    def confirm_summary(self) -> None:
        self.complete_step("summary")

    # ------------------------------------------------------------------
    # Generation inputs
    # ------------------------------------------------------------------

    def ready_for_generation(self) -> bool:
        return all(
            self._state.completed.get(step_id, False)
            for step_id in GENERATION_INPUT_STEPS
        )

    def generation_inputs(self) -> tuple[str, str, str]:
        """Return (voice_id, avatar_id, script_text) for the generation request.

        Raises:
            IncompleteWorkflowError: If voice, avatar or script is missing.
        """
        payload = self._state.payload
        voice_id = payload.get("voices", {}).get("voice_id")
        avatar_id = payload.get("avatars", {}).get("avatar_id")
        script = payload.get("script", {}).get("script")

        missing = [
            name
            for name, value, step_id in (
                ("voice", voice_id, "voices"),
                ("avatar", avatar_id, "avatars"),
                ("script", script, "script"),
            )
            if not value or not self._state.completed.get(step_id, False)
        ]
        if missing:
            raise IncompleteWorkflowError(missing)
        return voice_id, avatar_id, script

    def generation_options(self) -> GenerationOptions:
        """Voice and avatar settings recorded with the selections.

        Steps completed without settings fall back to the defaults.
        """
        payload = self._state.payload
        return GenerationOptions(
            voice=payload.get("voices", {}).get("voice_settings") or VoiceSettings(),
            avatar=payload.get("avatars", {}).get("avatar_settings") or AvatarSettings(),
        )
