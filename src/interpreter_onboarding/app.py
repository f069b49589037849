"""OnboardingApp — the object an embedding UI creates once.

Configures logging and telemetry from settings, then hands out services
bound to a lazily created :class:`Gateway`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from interpreter_onboarding.config.logging import configure_logging
from interpreter_onboarding.config.settings import OnboardingSettings

if TYPE_CHECKING:
    from interpreter_onboarding.infrastructure.gateway import Gateway
    from interpreter_onboarding.services.profile import ProfileService
    from interpreter_onboarding.services.wizard import WizardService


class OnboardingApp:
    """Shared context for one embedding of the onboarding core.

    The gateway is built on first use so constructing the app never
    opens a connection.
    """

    def __init__(self, settings: OnboardingSettings | None = None) -> None:
        self.settings = settings or OnboardingSettings.load()
        self._gateway: Gateway | None = None

        configure_logging(
            verbose=self.settings.logging.verbose,
            log_json=self.settings.logging.log_json,
        )

        # Verbose runs also report timing spans in ServiceResult.meta
        if self.settings.logging.verbose:
            from interpreter_onboarding.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def gateway(self) -> Gateway:
        """The gateway instance (created lazily on first access)."""
        if self._gateway is None:
            from interpreter_onboarding.infrastructure.gateway import Gateway

            self._gateway = Gateway(self.settings)
            self._gateway.init_plugins()
        return self._gateway

    @property
    def wizard(self) -> WizardService:
        from interpreter_onboarding.services.wizard import WizardService

        return WizardService(self.gateway)

    @property
    def profile(self) -> ProfileService:
        from interpreter_onboarding.services.profile import ProfileService

        return ProfileService(self.gateway)

    def close(self) -> None:
        if self._gateway is not None:
            self._gateway.close()
            self._gateway = None
