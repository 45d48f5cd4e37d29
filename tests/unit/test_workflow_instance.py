"""Tests for step gating, locking and navigation on a workflow instance."""

import pytest

from roomflow.contracts import CategoryRequirement, DataKind, StepDefinition
from roomflow.errors import Invalid, InvalidTransition, Locked, OutOfOrder, StepNotFound
from roomflow.pipeline import PipelineStatus
from roomflow.workflow import WorkflowInstance


def _instance(stages=("review",)):
    definitions = [
        StepDefinition(index=0, name="appointment", data_kind=DataKind.SINGLE, required_fields=["appointment_time"]),
        StepDefinition(index=1, name="check_in", data_kind=DataKind.SINGLE, required_fields=["check_in_time"]),
        StepDefinition(
            index=2,
            name="installation",
            data_kind=DataKind.PER_SUB_UNIT,
            sub_units=["101"],
            categories=[CategoryRequirement(name="A")],
        ),
    ]
    return WorkflowInstance.create("store-1", "installation", definitions, list(stages))


def _fill(instance):
    instance.update_step_payload(0, "09:00")
    instance.update_step_payload(1, "10:00")
    instance.update_step_payload(2, {"101": {"A": ["a.jpg"]}})


def test_create_requires_contiguous_indices():
    definitions = [StepDefinition(index=1, name="x", data_kind=DataKind.SINGLE)]
    with pytest.raises(ValueError):
        WorkflowInstance.create("u", "inspection", definitions, ["review"])


def test_steps_complete_in_order():
    instance = _instance()
    _fill(instance)

    with pytest.raises(OutOfOrder):
        instance.complete_step(1, "ann")
    assert not instance.steps[1].completed

    instance.complete_step(0, "ann")
    state = instance.complete_step(1, "ann")
    assert state.completed
    assert state.operator == "ann"
    assert state.completed_at is not None


def test_invalid_step_carries_gaps():
    instance = _instance()
    instance.update_step_payload(0, "09:00")
    instance.complete_step(0, "ann")
    instance.update_step_payload(1, "10:00")
    instance.complete_step(1, "ann")

    with pytest.raises(Invalid) as excinfo:
        instance.complete_step(2, "ann")
    assert excinfo.value.gaps[0].category == "A"
    assert not instance.steps[2].completed


def test_completed_step_is_locked():
    instance = _instance()
    _fill(instance)
    instance.complete_step(0, "ann")

    with pytest.raises(Locked):
        instance.update_step_payload(0, "11:00")
    assert instance.steps[0].payload.values["appointment_time"] == "09:00"
    with pytest.raises(Locked):
        instance.complete_step(0, "ann")


def test_unknown_step_index():
    instance = _instance()
    with pytest.raises(StepNotFound):
        instance.complete_step(7, "ann")
    with pytest.raises(StepNotFound):
        instance.jump_to_step(-1)


def test_navigation_never_changes_completion():
    instance = _instance()
    assert instance.jump_to_step(2) == 2
    assert instance.next_step() == 2
    assert instance.prev_step() == 1
    instance.jump_to_step(0)
    assert instance.prev_step() == 0
    assert not any(s.completed for s in instance.steps)


def test_edit_current_step_follows_cursor():
    instance = _instance()
    instance.jump_to_step(1)
    instance.edit_current_step("10:30")
    assert instance.steps[1].payload.values == {"check_in_time": "10:30"}
    assert instance.steps[0].payload.values == {}


def test_can_complete_gives_live_feedback():
    instance = _instance()
    assert not instance.can_complete(0)
    instance.update_step_payload(0, "09:00")
    assert instance.can_complete(0)
    instance.update_step_payload(1, "10:00")
    assert not instance.can_complete(1)


def test_submit_needs_all_steps():
    instance = _instance()
    with pytest.raises(InvalidTransition):
        instance.submit()


def test_zero_step_instance_can_submit():
    instance = WorkflowInstance.create("u", "inspection", [], ["review"])
    instance.submit()
    assert instance.pipeline.status is PipelineStatus.IN_STAGE


def test_reopen_unlocks_last_completed_step_onward():
    instance = _instance()
    _fill(instance)
    for index in range(3):
        instance.complete_step(index, "ann")
    instance.submit()
    instance.pipeline.reject(0, "photo of wrong room")

    assert instance.reopen() == 2
    assert instance.pipeline.status is PipelineStatus.NOT_SUBMITTED
    assert not instance.is_unlocked(1)
    assert instance.is_unlocked(2)

    instance.update_step_payload(2, {"101": {"A": ["a-retake.jpg"]}})
    with pytest.raises(Locked):
        instance.update_step_payload(0, "12:00")

    instance.complete_step(2, "ann")
    instance.submit()
    assert instance.reopened_from is None
    assert instance.steps[2].payload.records["101"].categories["A"].media == ["a.jpg", "a-retake.jpg"]


def test_remove_media_respects_lock():
    instance = _instance()
    _fill(instance)
    instance.update_step_payload(2, {"101": {"A": ["b.jpg"]}})
    instance.remove_media(2, "101", "A", "a.jpg")
    assert instance.steps[2].payload.records["101"].categories["A"].media == ["b.jpg"]

    for index in range(3):
        instance.complete_step(index, "ann")
    with pytest.raises(Locked):
        instance.remove_media(2, "101", "A", "b.jpg")
    assert instance.steps[2].payload.records["101"].categories["A"].media == ["b.jpg"]


def test_first_incomplete_index():
    instance = _instance()
    _fill(instance)
    assert instance.first_incomplete_index() == 0
    instance.complete_step(0, "ann")
    assert instance.first_incomplete_index() == 1


def test_instance_round_trips_through_json():
    instance = _instance()
    _fill(instance)
    instance.complete_step(0, "ann")

    restored = WorkflowInstance.model_validate_json(instance.model_dump_json())
    assert restored == instance
