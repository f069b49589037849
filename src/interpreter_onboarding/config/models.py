"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, onboarding.toml only contains
overrides. A working setup needs only ``[api] base_url``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- onboarding.toml sections ---


class ApiConfig(BaseModel):
    """[api] section."""

    model_config = {"frozen": True}

    base_url: str = "http://localhost:8000/api"
    timeout_seconds: float = 30.0
    token: str | None = None


class AddressConfig(BaseModel):
    """[address] section."""

    model_config = {"frozen": True}

    timeout_seconds: float = 10.0
    country: str = "us"
    google_api_key: str | None = None
    retry_without_line_2: bool = True


class WizardConfig(BaseModel):
    """[wizard] section."""

    model_config = {"frozen": True}

    hidden_service_codes: frozenset[str] = frozenset({"other"})
    hidden_language_names: frozenset[str] = frozenset({"agency", "english"})


class LoggingConfig(BaseModel):
    """[logging] section."""

    model_config = {"frozen": True}

    verbose: bool = False
    log_json: bool = False


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    entry_points: bool = True
    disabled: list[str] = Field(default_factory=list)


class OnboardingConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    api: ApiConfig = Field(default_factory=ApiConfig)
    address: AddressConfig = Field(default_factory=AddressConfig)
    wizard: WizardConfig = Field(default_factory=WizardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
