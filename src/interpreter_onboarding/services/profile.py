"""ProfileService — pending profile updates of an approved interpreter."""

from __future__ import annotations

from interpreter_onboarding.errors import OnboardingError
from interpreter_onboarding.services.base import BaseService
from interpreter_onboarding.services.result import ServiceResult
from interpreter_onboarding.services.telemetry import traced


class ProfileService(BaseService):
    """Inspect or withdraw the update waiting for admin review."""

    @traced
    def get_pending_update(self) -> ServiceResult:
        op = "get_pending_update"
        try:
            pending = self._gateway.api.get_pending_update()
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        return ServiceResult(
            ok=True,
            op=op,
            data={"has_pending_update": bool(pending), "pending_update": pending or None},
        )

    @traced
    def cancel_pending_update(self) -> ServiceResult:
        """Withdraw the pending update; the approved profile stays live."""
        op = "cancel_pending_update"
        try:
            envelope = self._gateway.api.cancel_pending_update()
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        return ServiceResult(
            ok=True,
            op=op,
            data={"cancelled": True, "message": envelope.message or "Pending update cancelled"},
        )
