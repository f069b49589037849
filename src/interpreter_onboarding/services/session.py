"""WizardSession — explicit state for one run of the wizard.

Everything the wizard remembers between calls lives here, including the
one-time notices the user has already acknowledged, so no step relies on
storage outside the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from interpreter_onboarding.domain.draft import Draft
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.domain.rejections import RejectionSet
from interpreter_onboarding.domain.wizard import WizardMode, WizardState
from interpreter_onboarding.services._helpers import new_session_id

# One-time notice shown when the user first reaches the service types step.
SERVICE_RATES_NOTICE = "service_rates_intro"


@dataclass
class WizardSession:
    """Session-scoped state handed to every :class:`WizardService` call.

    Attributes:
        state: Navigation state (frozen; replaced on every transition).
        draft: The profile being built.
        reference: Snapshot loaded once when the session started.
        rejections: Fields sent back by an administrator (resubmission).
        rejection_token: Token identifying the rejected submission.
        completion_token: Token of an imported interpreter's invitation.
        acknowledged_notices: One-time notices already shown.
        closed: Set after a successful submission; the session is then
            read-only.
    """

    state: WizardState
    draft: Draft
    reference: ReferenceData
    session_id: str = field(default_factory=new_session_id)
    rejections: RejectionSet = field(default_factory=RejectionSet)
    rejection_token: str | None = None
    completion_token: str | None = None
    acknowledged_notices: set[str] = field(default_factory=set)
    closed: bool = False

    @property
    def mode(self) -> WizardMode:
        return self.state.mode

    def needs_notice(self, notice: str) -> bool:
        return notice not in self.acknowledged_notices

    def acknowledge(self, notice: str) -> None:
        self.acknowledged_notices.add(notice)
