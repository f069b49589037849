"""Unified settings — init kwargs, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs   — passed by the embedding application
  2. Env vars      — ``ONBOARDING_*`` prefix, ``__`` for nested sections
  3. TOML file     — ``onboarding.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the walk-up discovery from :mod:`interpreter_onboarding.config.discovery`.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from interpreter_onboarding.config.discovery import find_config, read_toml
from interpreter_onboarding.config.models import (
    AddressConfig,
    ApiConfig,
    LoggingConfig,
    PluginsConfig,
    WizardConfig,
)


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from an ``onboarding.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            self._data = read_toml(toml_path)

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class OnboardingSettings(BaseSettings):
    """Settings for one embedding of the onboarding core.

    Attributes:
        config_path: The TOML file that was merged, or None when running
            on env vars and defaults only.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "ONBOARDING_",
        "env_nested_delimiter": "__",
    }

    config_path: Path | None = None

    api: ApiConfig = Field(default_factory=ApiConfig)
    address: AddressConfig = Field(default_factory=AddressConfig)
    wizard: WizardConfig = Field(default_factory=WizardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def load(
        cls,
        *,
        config_path: str | Path | None = None,
        start: Path | None = None,
        **overrides: Any,
    ) -> OnboardingSettings:
        """Construct settings, discovering ``onboarding.toml`` when needed.

        An explicit *config_path* that does not exist is ignored, matching
        the behaviour of a missing discovered file.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(start)

        _tls.toml_path = toml_path
        try:
            return cls(config_path=toml_path, **overrides)
        finally:
            _tls.toml_path = None
