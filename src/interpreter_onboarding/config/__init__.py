"""Configuration layer — onboarding.toml sections, settings, logging."""
