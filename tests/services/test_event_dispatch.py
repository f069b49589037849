"""Integration tests — event dispatch from services to plugins."""

from __future__ import annotations

from typing import Any

import pluggy
import pytest

from interpreter_onboarding.domain.draft import Draft
from interpreter_onboarding.infrastructure.gateway import Gateway
from interpreter_onboarding.services.wizard import WizardService
from tests.conftest import PHONE, start_session, walk_to

hookimpl = pluggy.HookimplMarker("interpreter_onboarding")


# ---------------------------------------------------------------------------
# Test plugins
# ---------------------------------------------------------------------------


class RecordingPlugin:
    """Plugin that records all hook calls for verification."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    @hookimpl
    def post_session_start(self, session_id: str, mode: str) -> None:
        self.calls.append(("post_session_start", {"session_id": session_id, "mode": mode}))

    @hookimpl
    def post_step_change(
        self,
        session_id: str,
        from_step: int,
        to_step: int,
        editing_from_review: bool,
    ) -> None:
        self.calls.append(
            (
                "post_step_change",
                {
                    "from_step": from_step,
                    "to_step": to_step,
                    "editing_from_review": editing_from_review,
                },
            )
        )

    @hookimpl
    def post_service_selected(
        self,
        session_id: str,
        service_type_id: str,
        service_code: str,
        rate_type: str,
    ) -> None:
        self.calls.append(
            (
                "post_service_selected",
                {"service_type_id": service_type_id, "service_code": service_code, "rate_type": rate_type},
            )
        )

    @hookimpl
    def post_submit(self, session_id: str, kind: str, mode: str, response: dict[str, Any]) -> None:
        self.calls.append(("post_submit", {"kind": kind, "mode": mode, "response": response}))

    @hookimpl
    def notify(self, session_id: str, level: str, message: str) -> None:
        self.calls.append(("notify", {"level": level, "message": message}))


class FailingPlugin:
    """Plugin whose every hook raises."""

    @hookimpl
    def post_session_start(self, session_id: str, mode: str) -> None:
        raise RuntimeError("start hook failed")

    @hookimpl
    def post_submit(self, session_id: str, kind: str, mode: str, response: dict[str, Any]) -> None:
        raise RuntimeError("submit hook failed")


@pytest.fixture
def recording(gateway: Gateway) -> RecordingPlugin:
    plugin = RecordingPlugin()
    gateway.plugins.register_plugin(plugin, name="recording")
    return plugin


# ---------------------------------------------------------------------------
# Dispatch from WizardService
# ---------------------------------------------------------------------------


class TestWizardEvents:
    def test_session_start(self, wizard: WizardService, recording: RecordingPlugin) -> None:
        session = start_session(wizard)
        assert recording.calls == [
            ("post_session_start", {"session_id": session.session_id, "mode": "fresh"})
        ]

    def test_step_changes(
        self, wizard: WizardService, draft: Draft, recording: RecordingPlugin
    ) -> None:
        session = start_session(wizard)
        walk_to(wizard, session, draft, 3)
        wizard.retreat(session)
        steps = [(c["from_step"], c["to_step"]) for n, c in recording.calls if n == "post_step_change"]
        assert steps == [(1, 2), (2, 3), (3, 2)]

    def test_refused_advance_dispatches_nothing(
        self, wizard: WizardService, recording: RecordingPlugin
    ) -> None:
        session = start_session(wizard)
        recording.calls.clear()
        assert not wizard.advance(session, {"first_name": ""}).ok
        assert recording.calls == []

    def test_retreat_on_first_step_dispatches_nothing(
        self, wizard: WizardService, recording: RecordingPlugin
    ) -> None:
        session = start_session(wizard)
        recording.calls.clear()
        assert wizard.retreat(session).ok
        assert recording.calls == []

    def test_service_selected(
        self, wizard: WizardService, draft: Draft, recording: RecordingPlugin
    ) -> None:
        session = start_session(wizard)
        walk_to(wizard, session, draft, 5)
        wizard.select_service(session, PHONE)
        wizard.set_custom_rate(session, PHONE, {"amount": "0.70", "unit": "minutes"})
        selected = [c for n, c in recording.calls if n == "post_service_selected"]
        assert selected == [
            {"service_type_id": PHONE, "service_code": "phone", "rate_type": "platform"},
            {"service_type_id": PHONE, "service_code": "phone", "rate_type": "custom"},
        ]

    def test_submit(self, wizard: WizardService, draft: Draft, recording: RecordingPlugin) -> None:
        session = start_session(wizard)
        walk_to(wizard, session, draft, 7)
        wizard.save_step(session, {"terms_accepted": True, "privacy_policy_accepted": True})
        assert wizard.submit(session).ok
        assert recording.names()[-2:] == ["post_submit", "notify"]
        assert recording.calls[-2][1] == {"kind": "create", "mode": "fresh", "response": {"id": 42}}


class TestFailingPlugins:
    def test_start_succeeds_with_warning(self, wizard: WizardService, gateway: Gateway) -> None:
        gateway.plugins.register_plugin(FailingPlugin(), name="failing")
        result = wizard.start_fresh()
        assert result.ok
        assert result.warnings == ["Event dispatch failed for post_session_start"]

    def test_submit_succeeds_with_warning(
        self, wizard: WizardService, gateway: Gateway, draft: Draft
    ) -> None:
        session = start_session(wizard)
        walk_to(wizard, session, draft, 7)
        wizard.save_step(session, {"terms_accepted": True, "privacy_policy_accepted": True})
        gateway.plugins.register_plugin(FailingPlugin(), name="failing")
        result = wizard.submit(session)
        assert result.ok
        assert session.closed is True
        assert "Event dispatch failed for post_submit" in result.warnings


class TestNoPlugins:
    def test_services_work_without_plugin_manager(self, settings: Any, fake_api: Any, geocoder: Any) -> None:
        gateway = Gateway(settings, api=fake_api, geocoder=geocoder)
        wizard = WizardService(gateway)
        result = wizard.start_fresh()
        assert result.ok
        assert result.warnings == []
