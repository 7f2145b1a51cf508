"""Unit tests for the workflow coordinator state machine."""

import itertools

import pytest
from pydantic import ValidationError

from avatarflow.errors import IncompleteWorkflowError, UnknownStepError
from avatarflow.orchestrator.coordinator import AdvanceResult, WorkflowCoordinator
from avatarflow.orchestrator.state import STEP_INDEX, WORKFLOW_STEPS
from avatarflow.schemas.heygen import Avatar, Voice
from avatarflow.schemas.jobs import AvatarSettings, GenerationOptions, VoiceSettings

STEP_IDS = [step.id for step in WORKFLOW_STEPS]


def test_initial_state():
    coordinator = WorkflowCoordinator()
    state = coordinator.snapshot()

    assert STEP_IDS == ["voices", "avatars", "script", "summary", "videos"]
    assert state.active_step_index == 0
    assert coordinator.active_step.id == "voices"
    assert state.completed == {step_id: False for step_id in STEP_IDS}
    assert state.payload == {}


def test_complete_then_advance_scenario():
    coordinator = WorkflowCoordinator()

    coordinator.complete_step("voices", {"voice": "X"})
    assert coordinator.active_step_index == 0  # completing never moves

    assert coordinator.advance() is AdvanceResult.ADVANCED
    assert coordinator.active_step_index == 1
    assert coordinator.active_step.id == "avatars"

    # avatars not completed
    assert coordinator.advance() is AdvanceResult.BLOCKED
    assert coordinator.active_step_index == 1


def test_navigate_to_is_ungated():
    coordinator = WorkflowCoordinator()

    coordinator.navigate_to("script")

    assert coordinator.active_step_index == 2
    assert not any(coordinator.snapshot().completed.values())


@pytest.mark.parametrize("start", STEP_IDS)
@pytest.mark.parametrize("target", STEP_IDS)
def test_navigate_to_lands_on_target(start, target):
    coordinator = WorkflowCoordinator()
    coordinator.navigate_to(start)

    coordinator.navigate_to(target)

    assert coordinator.active_step_index == STEP_INDEX[target]


def test_advance_at_last_step_is_noop():
    coordinator = WorkflowCoordinator()
    coordinator.navigate_to("videos")
    coordinator.complete_step("videos")

    assert coordinator.advance() is AdvanceResult.AT_END
    assert coordinator.active_step_index == len(WORKFLOW_STEPS) - 1


def test_advance_only_moves_past_completed_steps():
    """Walk every subset of completed steps from every position."""
    for completed in itertools.product([False, True], repeat=len(STEP_IDS)):
        for start in STEP_IDS:
            coordinator = WorkflowCoordinator()
            for step_id, done in zip(STEP_IDS, completed):
                if done:
                    coordinator.complete_step(step_id)
            coordinator.navigate_to(start)
            before = coordinator.active_step_index

            result = coordinator.advance()

            if result is AdvanceResult.ADVANCED:
                assert completed[before]
                assert coordinator.active_step_index == before + 1
            else:
                assert coordinator.active_step_index == before


def test_retreat_clamps_at_first_step():
    coordinator = WorkflowCoordinator()

    coordinator.retreat()
    assert coordinator.active_step_index == 0

    coordinator.navigate_to("summary")
    coordinator.retreat()
    assert coordinator.active_step.id == "script"


def test_complete_step_is_idempotent():
    once = WorkflowCoordinator()
    once.complete_step("avatars", {"avatar_id": "a1"})

    twice = WorkflowCoordinator()
    twice.complete_step("avatars", {"avatar_id": "a1"})
    twice.complete_step("avatars", {"avatar_id": "a1"})

    assert once.snapshot() == twice.snapshot()


def test_complete_step_merges_payload():
    coordinator = WorkflowCoordinator()
    coordinator.complete_step("voices", {"voice_id": "v1"})
    coordinator.complete_step("voices", {"speed": 1.2})

    assert coordinator.payload_for("voices") == {"voice_id": "v1", "speed": 1.2}


def test_backward_navigation_keeps_completion_and_payload():
    coordinator = WorkflowCoordinator()
    coordinator.complete_step("voices", {"voice_id": "v1"})
    coordinator.advance()
    coordinator.complete_step("avatars", {"avatar_id": "a1"})
    coordinator.advance()
    before = coordinator.snapshot()

    coordinator.retreat()
    coordinator.navigate_to("voices")
    after = coordinator.snapshot()

    assert after.completed == before.completed
    assert after.payload == before.payload
    assert after.active_step_index == 0


def test_unknown_step_ids_raise():
    coordinator = WorkflowCoordinator()

    with pytest.raises(UnknownStepError):
        coordinator.complete_step("home")
    with pytest.raises(UnknownStepError):
        coordinator.navigate_to("generation")
    with pytest.raises(KeyError):
        coordinator.is_completed("nope")

    assert coordinator.snapshot().completed == {step_id: False for step_id in STEP_IDS}


def test_snapshot_is_detached():
    coordinator = WorkflowCoordinator()
    coordinator.complete_step("voices", {"voice_id": "v1"})

    snapshot = coordinator.snapshot()
    snapshot.payload["voices"]["voice_id"] = "changed"
    snapshot.completed["voices"] = False

    assert coordinator.payload_for("voices")["voice_id"] == "v1"
    assert coordinator.is_completed("voices")


def test_steps_with_status():
    coordinator = WorkflowCoordinator()
    coordinator.complete_step("voices")
    coordinator.navigate_to("avatars")

    statuses = coordinator.steps_with_status()

    assert [s.step.id for s in statuses] == STEP_IDS
    assert [s.completed for s in statuses] == [True, False, False, False, False]
    assert [s.active for s in statuses] == [False, True, False, False, False]


def test_update_script_requires_more_than_ten_characters():
    coordinator = WorkflowCoordinator()

    assert coordinator.update_script("  short    ") is False
    assert not coordinator.is_completed("script")
    assert coordinator.payload_for("script") == {}

    assert coordinator.update_script("Welcome to the evening news.") is True
    assert coordinator.is_completed("script")
    assert coordinator.payload_for("script") == {"script": "Welcome to the evening news."}


def test_generation_inputs_from_selections():
    coordinator = WorkflowCoordinator()
    assert not coordinator.ready_for_generation()

    coordinator.select_voice(Voice(voice_id="v1", name="Anna"))
    coordinator.select_avatar(Avatar(avatar_id="a1", avatar_name="Josh"))
    coordinator.update_script("Hello from the newsroom today.")

    assert coordinator.ready_for_generation()
    assert coordinator.generation_inputs() == ("v1", "a1", "Hello from the newsroom today.")
    assert coordinator.payload_for("voices")["voice"].name == "Anna"


def test_generation_inputs_report_missing_selections():
    coordinator = WorkflowCoordinator()
    coordinator.select_voice(Voice(voice_id="v1"))

    with pytest.raises(IncompleteWorkflowError) as exc_info:
        coordinator.generation_inputs()

    assert exc_info.value.missing == ["avatar", "script"]


def test_generation_options_default_without_settings():
    coordinator = WorkflowCoordinator()
    coordinator.complete_step("voices", {"voice_id": "v1"})

    options = coordinator.generation_options()

    assert options == GenerationOptions()
    assert options.voice.speed == 1.0
    assert options.avatar.style == "normal"


def test_generation_options_follow_selections():
    coordinator = WorkflowCoordinator()
    coordinator.select_voice(Voice(voice_id="v1"), VoiceSettings(speed=1.2, pitch=-10))
    coordinator.select_avatar(
        Avatar(avatar_id="a1"),
        AvatarSettings(style="closeUp", scale=1.5, offset_x=0.3, offset_y=-0.2),
    )

    options = coordinator.generation_options()

    assert options.voice == VoiceSettings(speed=1.2, pitch=-10)
    assert options.avatar.style == "closeUp"
    assert options.avatar.offset_x == 0.3

    # reselecting without settings restores defaults
    coordinator.select_voice(Voice(voice_id="v2"))
    assert coordinator.generation_options().voice == VoiceSettings()


@pytest.mark.parametrize("kwargs", [
    {"speed": 0.4},
    {"speed": 1.6},
    {"pitch": 51},
    {"pitch": -51},
])
def test_voice_settings_ranges(kwargs):
    with pytest.raises(ValidationError):
        VoiceSettings(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {"style": "fullBody"},
    {"scale": 2.5},
    {"offset_x": 3},
    {"offset_y": -2.1},
])
def test_avatar_settings_ranges(kwargs):
    with pytest.raises(ValidationError):
        AvatarSettings(**kwargs)
