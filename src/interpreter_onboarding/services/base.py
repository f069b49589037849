"""BaseService — abstract foundation for all onboarding services.

Every service receives a :class:`Gateway` at construction time. The
Gateway provides the backend client, the geocoder, and the plugin manager.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from interpreter_onboarding.infrastructure.gateway import Gateway

logger = logging.getLogger(__name__)


class BaseService:
    """Abstract base for all service-layer classes.

    Usage::

        class WizardService(BaseService):
            def advance(self, session, output) -> ServiceResult:
                ...
                self._dispatch_event("post_step_change", payload, warnings)
    """

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Dispatch a lifecycle event. No-op if plugins are not initialized.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        pm = self._gateway.plugins
        if pm is None:
            return
        try:
            pm.dispatch(hook_name, payload)
        except Exception:
            logger.debug("Event dispatch failed for %s", hook_name, exc_info=True)
            warnings.append(f"Event dispatch failed for {hook_name}")

    def _notify(self, session_id: str, level: str, message: str, warnings: list[str]) -> None:
        """Queue a user-facing notice through the ``notify`` hook."""
        self._dispatch_event(
            "notify",
            {"session_id": session_id, "level": level, "message": message},
            warnings,
        )
