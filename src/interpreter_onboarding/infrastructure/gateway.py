"""Gateway — the single dependency injected into every service.

Owns the profile backend client, the address geocoder, and the plugin
manager. Constructed once from :class:`OnboardingSettings`; tests inject
fakes for the client and geocoder.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.errors import BackendError
from interpreter_onboarding.infrastructure.api_client import ProfileApiClient
from interpreter_onboarding.infrastructure.geocoding import (
    AddressValidator,
    Geocoder,
    GoogleGeocoder,
)

if TYPE_CHECKING:
    from interpreter_onboarding.config.settings import OnboardingSettings
    from interpreter_onboarding.plugins.builtins.notices import NoticeLogPlugin
    from interpreter_onboarding.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class Gateway:
    """Access point for everything outside the pure domain.

    Parameters:
        settings: Resolved settings.
        api: Backend client; built from ``settings.api`` when omitted.
        geocoder: Address lookup; a :class:`GoogleGeocoder` is built when
            ``[address] google_api_key`` is set, otherwise address
            validation is unavailable.
    """

    def __init__(
        self,
        settings: OnboardingSettings,
        *,
        api: ProfileApiClient | None = None,
        geocoder: Geocoder | None = None,
    ) -> None:
        self._settings = settings
        self._api = api or ProfileApiClient(settings.api)
        if geocoder is None and settings.address.google_api_key:
            geocoder = GoogleGeocoder(
                settings.address.google_api_key,
                country=settings.address.country,
                timeout=settings.address.timeout_seconds,
            )
        self._geocoder = geocoder
        self._plugins: PluginManager | None = None
        self._notices: NoticeLogPlugin | None = None

    @property
    def settings(self) -> OnboardingSettings:
        """The resolved settings for this gateway."""
        return self._settings

    @property
    def api(self) -> ProfileApiClient:
        return self._api

    @property
    def geocoder(self) -> Geocoder | None:
        return self._geocoder

    @property
    def plugins(self) -> PluginManager | None:
        """The plugin manager (None if not initialized)."""
        return self._plugins

    @property
    def notices(self) -> NoticeLogPlugin | None:
        """The built-in notice collector (None if plugins not initialized)."""
        return self._notices

    def init_plugins(self, *, discover: bool = True) -> PluginManager:
        """Create the plugin manager and register the built-in notice log.

        Entry-point plugins are loaded when *discover* is set and
        ``[plugins] entry_points`` allows it.
        """
        from interpreter_onboarding.plugins.builtins.notices import NoticeLogPlugin
        from interpreter_onboarding.plugins.manager import PluginManager

        pm = PluginManager()
        if discover and self._settings.plugins.entry_points:
            pm.discover_and_load(disabled=self._settings.plugins.disabled)

        self._notices = NoticeLogPlugin()
        pm.register_plugin(self._notices, name="notices-builtin")
        self._plugins = pm
        return pm

    def address_validator(self, reference: ReferenceData) -> AddressValidator:
        if self._geocoder is None:
            raise BackendError("Address validation is not configured")
        return AddressValidator(self._geocoder, reference, self._settings.address)

    def close(self) -> None:
        self._api.close()
