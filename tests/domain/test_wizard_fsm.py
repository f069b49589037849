"""Tests for the step sequencer state machine."""

from __future__ import annotations

import pytest

from interpreter_onboarding.domain.wizard import (
    ALL_STEPS,
    Advance,
    EditFrom,
    JumpTo,
    Retreat,
    WizardMode,
    WizardState,
    WizardStep,
    transition,
)
from interpreter_onboarding.errors import NavigationError


def _at(step: WizardStep, **kwargs) -> WizardState:
    visited = kwargs.pop("visited", frozenset(range(1, int(step) + 1)))
    return WizardState(current_step=step, visited_steps=visited, **kwargs)


class TestInitialState:
    @pytest.mark.parametrize("mode", [WizardMode.FRESH, WizardMode.COMPLETION])
    def test_fresh_starts_with_first_step_visited(self, mode: WizardMode) -> None:
        state = WizardState.initial(mode)
        assert state.current_step is WizardStep.PERSONAL
        assert state.visited_steps == frozenset({1})
        assert state.editing_from_review is False

    @pytest.mark.parametrize("mode", ["resubmission", "edit_existing"])
    def test_prefilled_modes_visit_everything(self, mode: str) -> None:
        state = WizardState.initial(mode)
        assert state.visited_steps == ALL_STEPS
        assert state.current_step is WizardStep.PERSONAL

    def test_frozen(self) -> None:
        state = WizardState.initial()
        with pytest.raises(Exception):
            state.current_step = WizardStep.REVIEW  # type: ignore[misc]

    def test_step_labels(self) -> None:
        assert WizardStep.SERVICE_TYPES.label == "Service Types"
        assert WizardStep.REVIEW.label == "Review"


class TestAdvanceRetreat:
    def test_advance_marks_next_visited(self) -> None:
        state = transition(WizardState.initial(), Advance())
        assert state.current_step is WizardStep.ADDRESS
        assert state.visited_steps == frozenset({1, 2})

    def test_advance_clamped_at_review(self) -> None:
        state = transition(_at(WizardStep.REVIEW), Advance())
        assert state.current_step is WizardStep.REVIEW

    def test_retreat(self) -> None:
        state = transition(_at(WizardStep.LANGUAGES), Retreat())
        assert state.current_step is WizardStep.ADDRESS
        assert 3 in state.visited_steps

    def test_retreat_clamped_at_first(self) -> None:
        state = transition(WizardState.initial(), Retreat())
        assert state.current_step is WizardStep.PERSONAL

    def test_transition_returns_new_state(self) -> None:
        state = WizardState.initial()
        after = transition(state, Advance())
        assert after is not state
        assert state.current_step is WizardStep.PERSONAL


class TestEditFromReview:
    def test_edit_from_sets_detour(self) -> None:
        state = transition(_at(WizardStep.REVIEW), EditFrom(3))
        assert state.current_step is WizardStep.LANGUAGES
        assert state.editing_from_review is True

    @pytest.mark.parametrize("step", list(WizardStep)[:-1])
    def test_advance_returns_to_review(self, step: WizardStep) -> None:
        state = transition(transition(_at(WizardStep.REVIEW), EditFrom(step)), Advance())
        assert state.current_step is WizardStep.REVIEW
        assert state.editing_from_review is False

    @pytest.mark.parametrize("step", list(WizardStep)[:-1])
    def test_retreat_returns_to_review(self, step: WizardStep) -> None:
        state = transition(transition(_at(WizardStep.REVIEW), EditFrom(step)), Retreat())
        assert state.current_step is WizardStep.REVIEW
        assert state.editing_from_review is False

    def test_edit_from_out_of_range(self) -> None:
        with pytest.raises(NavigationError):
            transition(_at(WizardStep.REVIEW), EditFrom(9))


class TestJumpTo:
    def test_jump_back_allowed(self) -> None:
        state = transition(_at(WizardStep.TAX_FORM), JumpTo(2))
        assert state.current_step is WizardStep.ADDRESS

    def test_jump_to_visited_step_ahead(self) -> None:
        state = _at(WizardStep.ADDRESS, visited=frozenset({1, 2, 3, 4, 5}))
        assert transition(state, JumpTo(5)).current_step is WizardStep.SERVICE_TYPES

    def test_jump_ahead_to_unvisited_refused(self) -> None:
        with pytest.raises(NavigationError) as exc_info:
            transition(_at(WizardStep.ADDRESS), JumpTo(5))
        assert exc_info.value.code == "INVALID_TRANSITION"
        assert exc_info.value.detail == {"step": 5, "current_step": 2}

    def test_edit_existing_jumps_anywhere(self) -> None:
        state = WizardState(mode=WizardMode.EDIT_EXISTING)
        assert transition(state, JumpTo(7)).current_step is WizardStep.REVIEW

    def test_resubmission_jumps_anywhere_because_all_visited(self) -> None:
        state = WizardState.initial(WizardMode.RESUBMISSION)
        assert transition(state, JumpTo(6)).current_step is WizardStep.TAX_FORM

    @pytest.mark.parametrize("step", [0, 8, -1])
    def test_out_of_range(self, step: int) -> None:
        with pytest.raises(NavigationError):
            transition(WizardState.initial(), JumpTo(step))

    def test_can_jump(self) -> None:
        state = _at(WizardStep.LANGUAGES)
        assert state.can_jump(1) is True
        assert state.can_jump(4) is False
        assert state.can_jump(99) is False

    def test_jump_does_not_change_visited(self) -> None:
        state = _at(WizardStep.TAX_FORM)
        assert transition(state, JumpTo(1)).visited_steps == state.visited_steps


class TestUnknownEvent:
    def test_rejected(self) -> None:
        with pytest.raises(NavigationError):
            transition(WizardState.initial(), object())  # type: ignore[arg-type]
