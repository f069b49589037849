"""Tests for OnboardingApp — settings, logging, and lazy gateway."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from interpreter_onboarding.app import OnboardingApp
from interpreter_onboarding.config.settings import OnboardingSettings
from interpreter_onboarding.infrastructure.gateway import Gateway
from interpreter_onboarding.services.profile import ProfileService
from interpreter_onboarding.services.telemetry import _telemetry_enabled
from interpreter_onboarding.services.wizard import WizardService


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    pkg = logging.getLogger("interpreter_onboarding")
    pkg_level = pkg.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    pkg.setLevel(pkg_level)


def _settings(**kwargs: object) -> OnboardingSettings:
    return OnboardingSettings(
        api={"base_url": "http://backend.test/api"},
        plugins={"entry_points": False},
        **kwargs,  # type: ignore[arg-type]
    )


class TestOnboardingApp:
    def test_loads_settings_when_omitted(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "onboarding.toml").write_text('[api]\nbase_url = "https://from-toml"\n')
        monkeypatch.chdir(tmp_path)
        app = OnboardingApp()
        assert app.settings.api.base_url == "https://from-toml"

    def test_gateway_is_lazy(self) -> None:
        app = OnboardingApp(_settings())
        assert app._gateway is None
        gateway = app.gateway
        try:
            assert isinstance(gateway, Gateway)
            assert app.gateway is gateway
            assert gateway.notices is not None
        finally:
            app.close()

    def test_services_share_gateway(self) -> None:
        app = OnboardingApp(_settings())
        try:
            wizard = app.wizard
            profile = app.profile
            assert isinstance(wizard, WizardService)
            assert isinstance(profile, ProfileService)
            assert wizard._gateway is profile._gateway is app.gateway
        finally:
            app.close()

    def test_close_resets_gateway(self) -> None:
        app = OnboardingApp(_settings())
        first = app.gateway
        app.close()
        assert app._gateway is None
        assert app.gateway is not first
        app.close()

    def test_close_without_gateway(self) -> None:
        OnboardingApp(_settings()).close()


class TestLoggingAndTelemetry:
    def test_quiet_by_default(self) -> None:
        OnboardingApp(_settings())
        assert logging.getLogger("interpreter_onboarding").level == logging.WARNING
        assert _telemetry_enabled.get() is False

    def test_verbose_enables_debug_and_telemetry(self) -> None:
        OnboardingApp(_settings(logging={"verbose": True}))
        assert logging.getLogger("interpreter_onboarding").level == logging.DEBUG
        assert _telemetry_enabled.get() is True
