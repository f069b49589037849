"""Interpreter onboarding — profile wizard, rate rules, and resubmission."""

__version__ = "0.1.0"
