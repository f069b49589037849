"""Pluggy hook specifications for onboarding lifecycle events.

Hooks are dispatched synchronously after the state change they describe
has been committed to the session.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("interpreter_onboarding")


class OnboardingHookSpec:
    """Hook specifications for the onboarding plugin system."""

    @hookspec
    def post_session_start(self, session_id: str, mode: str) -> None:
        """Called after a wizard session is opened."""

    @hookspec
    def post_step_change(
        self,
        session_id: str,
        from_step: int,
        to_step: int,
        editing_from_review: bool,
    ) -> None:
        """Called after the wizard moves to another step."""

    @hookspec
    def post_service_selected(
        self,
        session_id: str,
        service_type_id: str,
        service_code: str,
        rate_type: str,
    ) -> None:
        """Called after a service type is selected or its rate changes."""

    @hookspec
    def post_submit(
        self,
        session_id: str,
        kind: str,
        mode: str,
        response: dict[str, Any],
    ) -> None:
        """Called after the backend accepted a submission."""

    @hookspec
    def notify(self, session_id: str, level: str, message: str) -> None:
        """User-facing notification (success, info, warning, error)."""
