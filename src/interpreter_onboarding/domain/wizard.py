"""Step sequencer — the wizard as an explicit finite-state machine.

One pure function, :func:`transition`, maps ``(state, event)`` to the next
state. Nothing here touches the draft; the session service merges and
validates step output before firing :class:`Advance`.

Navigation rules:

- Advance/Retreat move one step, clamped to Personal..Review, unless the
  user is on an edit-from-review detour, in which case both return straight
  to Review and end the detour.
- JumpTo(k) is allowed for steps already completed (``k <= current``) or
  already seen; in ``edit_existing`` mode every jump is allowed.
- EditFrom(k) starts a detour from Review.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum

from pydantic import BaseModel, ConfigDict

from interpreter_onboarding.errors import NavigationError


class WizardStep(IntEnum):
    PERSONAL = 1
    ADDRESS = 2
    LANGUAGES = 3
    CERTIFICATES = 4
    SERVICE_TYPES = 5
    TAX_FORM = 6
    REVIEW = 7

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS: dict[WizardStep, str] = {
    WizardStep.PERSONAL: "Personal Information",
    WizardStep.ADDRESS: "Address",
    WizardStep.LANGUAGES: "Languages",
    WizardStep.CERTIFICATES: "Certificates",
    WizardStep.SERVICE_TYPES: "Service Types",
    WizardStep.TAX_FORM: "Tax Form",
    WizardStep.REVIEW: "Review",
}

FIRST_STEP = WizardStep.PERSONAL
LAST_STEP = WizardStep.REVIEW
ALL_STEPS: frozenset[int] = frozenset(int(s) for s in WizardStep)


class WizardMode(StrEnum):
    """Why the wizard was opened."""

    FRESH = "fresh"
    COMPLETION = "completion"
    RESUBMISSION = "resubmission"
    EDIT_EXISTING = "edit_existing"


class WizardState(BaseModel):
    """Navigation state. Frozen; every transition returns a new instance."""

    model_config = ConfigDict(frozen=True)

    current_step: WizardStep = FIRST_STEP
    visited_steps: frozenset[int] = frozenset({int(FIRST_STEP)})
    editing_from_review: bool = False
    mode: WizardMode = WizardMode.FRESH

    @classmethod
    def initial(cls, mode: WizardMode | str = WizardMode.FRESH) -> WizardState:
        """Starting state for *mode*.

        Resubmissions and edits of an approved profile open with every
        step visited so the user may go straight to the flagged sections.
        """
        mode = WizardMode(mode)
        visited = (
            ALL_STEPS
            if mode in (WizardMode.RESUBMISSION, WizardMode.EDIT_EXISTING)
            else frozenset({int(FIRST_STEP)})
        )
        return cls(current_step=FIRST_STEP, visited_steps=visited, mode=mode)

    @property
    def on_review(self) -> bool:
        return self.current_step is LAST_STEP

    def can_jump(self, step: int) -> bool:
        """Whether ``JumpTo(step)`` would be accepted."""
        if step not in ALL_STEPS:
            return False
        if self.mode is WizardMode.EDIT_EXISTING:
            return True
        return step <= self.current_step or step in self.visited_steps


# --- Events ---


@dataclass(frozen=True)
class Advance:
    """Move forward after the current step's output was accepted."""


@dataclass(frozen=True)
class Retreat:
    """Move back one step."""


@dataclass(frozen=True)
class JumpTo:
    step: int


@dataclass(frozen=True)
class EditFrom:
    """Edit one section from Review, then return to Review."""

    step: int


WizardEvent = Advance | Retreat | JumpTo | EditFrom


def _coerce_step(step: int) -> WizardStep:
    try:
        return WizardStep(int(step))
    except ValueError:
        msg = f"Unknown wizard step: {step}"
        raise NavigationError(msg, detail={"step": step}) from None


def transition(state: WizardState, event: WizardEvent) -> WizardState:
    """Apply *event* to *state* and return the new state.

    Raises:
        NavigationError: the step is out of range or the jump is not
            permitted from the current state.
    """
    if isinstance(event, Advance):
        if state.editing_from_review:
            return state.model_copy(update={"current_step": LAST_STEP, "editing_from_review": False})
        target = WizardStep(min(state.current_step + 1, LAST_STEP))
        return state.model_copy(
            update={
                "current_step": target,
                "visited_steps": state.visited_steps | {int(target)},
            }
        )

    if isinstance(event, Retreat):
        if state.editing_from_review:
            return state.model_copy(update={"current_step": LAST_STEP, "editing_from_review": False})
        target = WizardStep(max(state.current_step - 1, FIRST_STEP))
        return state.model_copy(update={"current_step": target})

    if isinstance(event, JumpTo):
        target = _coerce_step(event.step)
        if not state.can_jump(target):
            msg = f"Cannot jump to step {int(target)} ({target.label}) before completing earlier steps"
            raise NavigationError(
                msg, detail={"step": int(target), "current_step": int(state.current_step)}
            )
        return state.model_copy(update={"current_step": target})

    if isinstance(event, EditFrom):
        target = _coerce_step(event.step)
        return state.model_copy(
            update={
                "current_step": target,
                "editing_from_review": True,
                "visited_steps": state.visited_steps | {int(target)},
            }
        )

    msg = f"Unknown wizard event: {event!r}"
    raise NavigationError(msg)
