"""Classification enums and code normalisation.

Service and certificate codes come from the backend's reference data.
The backend has used both ``court_certified`` and ``court-certified``
spellings over time, so every comparison goes through :func:`normalize_code`.
"""

from __future__ import annotations

from enum import StrEnum


class RateUnit(StrEnum):
    """Billing unit of a rate amount."""

    MINUTES = "minutes"
    HOURS = "hours"
    WORD = "word"
    PER_3_HOURS = "per_3_hours"
    PER_6_HOURS = "per_6_hours"


class RateType(StrEnum):
    """Whether the interpreter accepts the platform rate or sets their own."""

    PLATFORM = "platform"
    CUSTOM = "custom"


class W9EntryMethod(StrEnum):
    """How the tax form is provided."""

    UPLOAD = "upload"
    MANUAL = "manual"


class TaxClassification(StrEnum):
    """Federal tax classification on the W-9."""

    INDIVIDUAL = "individual"
    SOLE_PROPRIETORSHIP = "sole_proprietorship"
    LLC = "llc"
    CORPORATION = "corporation"


class RegistrationType(StrEnum):
    """Applicant kind chosen before the wizard starts."""

    INDIVIDUAL = "individual"
    AGENCY = "agency"


_UNIT_ALIASES: dict[str, RateUnit] = {
    "minute": RateUnit.MINUTES,
    "min": RateUnit.MINUTES,
    "hour": RateUnit.HOURS,
    "hr": RateUnit.HOURS,
    "words": RateUnit.WORD,
    "per3hours": RateUnit.PER_3_HOURS,
    "per_3_hours": RateUnit.PER_3_HOURS,
    "per-3-hours": RateUnit.PER_3_HOURS,
    "per6hours": RateUnit.PER_6_HOURS,
    "per_6_hours": RateUnit.PER_6_HOURS,
    "per-6-hours": RateUnit.PER_6_HOURS,
}


def parse_rate_unit(value: str | RateUnit) -> RateUnit:
    """Parse a unit string, accepting the legacy and camelCase spellings.

    Examples:
        >>> parse_rate_unit("hours")
        <RateUnit.HOURS: 'hours'>
        >>> parse_rate_unit("per3Hours")
        <RateUnit.PER_3_HOURS: 'per_3_hours'>
    """
    if isinstance(value, RateUnit):
        return value
    raw = str(value).strip()
    try:
        return RateUnit(raw)
    except ValueError:
        pass
    alias = _UNIT_ALIASES.get(raw.lower())
    if alias is None:
        msg = f"Unknown rate unit: {value!r}"
        raise ValueError(msg)
    return alias


def normalize_code(code: str | None) -> str:
    """Lower-case a reference code and use ``-`` as the only separator."""
    if not code:
        return ""
    return str(code).strip().lower().replace("_", "-")
