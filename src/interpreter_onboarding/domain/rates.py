"""Rate & eligibility engine.

Pure functions deciding which service types a candidate may select and
what they will be paid for them:

- Eligibility: ``legal``, ``video`` and ``medical`` are gated behind
  certificate types; every other service type is always selectable.
- Effective rate: the platform rate (language-priced for ``phone`` and
  ``document``) or a validated custom rate.
- Language overrides: opt-in per-language refinements of a selection.
- Tiered charge: minimum block, second tier, then hourly increments.

Nothing here mutates its inputs; selections are frozen and updated with
``model_copy``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from interpreter_onboarding.domain.reference import RateSpec, ReferenceData, ServiceType, Unit
from interpreter_onboarding.domain.types import RateType, RateUnit, normalize_code, parse_rate_unit
from interpreter_onboarding.errors import IneligibleServiceError, ValidationError

# --- Eligibility tables ---

COURT_CERTIFICATE_CODES: frozenset[str] = frozenset(
    {
        "court-certified",
        "federal-certified",
        "ata-certified",
        "administrative-court-certified",
    }
)

MEDICAL_CERTIFICATE_CODES: frozenset[str] = COURT_CERTIFICATE_CODES | {"medical-certified"}

SERVICE_CERTIFICATE_REQUIREMENTS: dict[str, frozenset[str]] = {
    "legal": COURT_CERTIFICATE_CODES,
    "video": COURT_CERTIFICATE_CODES,
    "medical": MEDICAL_CERTIFICATE_CODES,
}

GATED_SERVICE_CODES: frozenset[str] = frozenset(SERVICE_CERTIFICATE_REQUIREMENTS)

# --- Rate tables ---

MAX_RATE_AMOUNT = Decimal("1000")

# service code -> (Spanish amount, other languages amount)
LANGUAGE_PRICED_AMOUNTS: dict[str, tuple[Decimal, Decimal]] = {
    "phone": (Decimal("0.55"), Decimal("0.65")),
    "document": (Decimal("0.10"), Decimal("0.14")),
}

COARSE_UNIT_SERVICE_CODES: frozenset[str] = frozenset({"legal", "video"})
COARSE_UNITS: tuple[RateUnit, ...] = (RateUnit.PER_3_HOURS, RateUnit.PER_6_HOURS)
CUSTOM_UNITS: tuple[RateUnit, ...] = (RateUnit.MINUTES, RateUnit.HOURS, RateUnit.WORD)

_CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Selection models
# ---------------------------------------------------------------------------


class LanguageRate(BaseModel):
    """Per-language override of a selection's amount.

    ``amount`` keeps the raw text the user typed. Blank or non-numeric
    amounts are legal here and are left out of the submission.
    """

    model_config = ConfigDict(frozen=True)

    amount: str = ""
    unit: Unit

    @property
    def numeric_amount(self) -> Decimal | None:
        return parse_amount(self.amount)


class ServiceSelection(BaseModel):
    """One selected service type with its effective rate."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    service_type_id: str
    rate_type: RateType = RateType.PLATFORM
    rate: RateSpec
    language_overrides: dict[str, LanguageRate] = Field(default_factory=dict)


class CustomRate(BaseModel):
    """Caller-supplied custom rate, validated by :func:`compute_effective_rate`."""

    model_config = ConfigDict(frozen=True)

    amount: Any = None
    unit: str | None = None
    minimum_hours: Any = None
    interval_minutes: Any = None
    second_interval_amount: Any = None
    second_interval_unit: str | None = None


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def is_service_selectable(service_code: str, held_certificate_codes: Iterable[str]) -> bool:
    """Whether *service_code* may be selected with the given certificates.

    Any single qualifying certificate is enough.
    """
    required = SERVICE_CERTIFICATE_REQUIREMENTS.get(normalize_code(service_code))
    if required is None:
        return True
    held = {normalize_code(c) for c in held_certificate_codes}
    return not required.isdisjoint(held)


def ensure_selectable(service_code: str, held_certificate_codes: Iterable[str]) -> None:
    """Raise :class:`IneligibleServiceError` unless the service is selectable."""
    if not is_service_selectable(service_code, held_certificate_codes):
        raise IneligibleServiceError(normalize_code(service_code))


def required_certificate_codes(service_code: str) -> frozenset[str]:
    """Certificate codes that unlock *service_code* (empty if ungated)."""
    return SERVICE_CERTIFICATE_REQUIREMENTS.get(normalize_code(service_code), frozenset())


# ---------------------------------------------------------------------------
# Effective rate
# ---------------------------------------------------------------------------


def parse_amount(value: Any) -> Decimal | None:
    """Parse a user-entered amount. Returns None for blank or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    if not result.is_finite():
        return None
    return result


def has_spanish(language_names: Iterable[str]) -> bool:
    return any("spanish" in name.lower() for name in language_names)


def platform_amount(service_type: ServiceType, language_names: Iterable[str]) -> Decimal:
    """Platform amount for *service_type*, language-priced for phone/document."""
    priced = LANGUAGE_PRICED_AMOUNTS.get(service_type.normalized_code)
    if priced is None:
        return service_type.platform_rate.amount
    spanish_amount, other_amount = priced
    return spanish_amount if has_spanish(language_names) else other_amount


def compute_effective_rate(
    service_type: ServiceType,
    rate_type: RateType | str,
    language_names: Iterable[str] = (),
    custom: CustomRate | None = None,
) -> RateSpec:
    """Compute the rate a selection carries.

    Platform rates start from ``service_type.platform_rate``; custom rates
    are validated and normalised. Raises :class:`ValidationError` with one
    message per offending field.
    """
    platform = service_type.platform_rate
    if RateType(rate_type) is RateType.PLATFORM:
        return platform.model_copy(update={"amount": platform_amount(service_type, language_names)})

    custom = custom or CustomRate()
    errors: dict[str, str] = {}

    amount = _check_amount(custom.amount, "Custom rates", errors, "rate_amount")

    code = service_type.normalized_code
    if code in COARSE_UNIT_SERVICE_CODES:
        unit = _coarse_unit(custom.unit, errors)
        minimum_hours = platform.minimum_hours
        interval_minutes = platform.interval_minutes
    else:
        unit = _custom_unit(custom.unit, errors)
        minimum_hours = _positive_decimal(
            custom.minimum_hours, platform.minimum_hours, "minimum_hours", errors
        )
        interval_minutes = _positive_int(
            custom.interval_minutes, platform.interval_minutes, "interval_minutes", errors
        )

    second_amount: Decimal | None = None
    second_unit: RateUnit | None = None
    if platform.has_second_tier:
        second_amount = _check_amount(
            custom.second_interval_amount,
            "Second increment rate",
            errors,
            "second_interval_rate_amount",
        )
        second_unit = _optional_unit(custom.second_interval_unit, errors) or RateUnit.HOURS

    if errors:
        raise ValidationError(errors)

    return RateSpec(
        amount=amount,
        unit=unit,
        minimum_hours=minimum_hours,
        interval_minutes=interval_minutes,
        second_interval_amount=second_amount,
        second_interval_unit=second_unit,
    )


def _check_amount(value: Any, label: str, errors: dict[str, str], key: str) -> Decimal:
    amount = parse_amount(value)
    if amount is None or amount <= 0:
        errors[key] = f"{label} must have a valid amount"
        return Decimal("0")
    if amount > MAX_RATE_AMOUNT:
        errors[key] = f"{label} cannot exceed ${MAX_RATE_AMOUNT}"
    return amount


def _optional_unit(value: str | None, errors: dict[str, str]) -> RateUnit | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        return parse_rate_unit(value)
    except ValueError:
        errors["rate_unit"] = f"Unknown rate unit: {value}"
        return None


def _coarse_unit(value: str | None, errors: dict[str, str]) -> RateUnit:
    unit = _optional_unit(value, errors)
    if unit is None or unit is RateUnit.HOURS:
        return RateUnit.PER_3_HOURS
    if unit not in COARSE_UNITS:
        errors["rate_unit"] = "Rate unit must be per 3 hours or per 6 hours"
    return unit


def _custom_unit(value: str | None, errors: dict[str, str]) -> RateUnit:
    unit = _optional_unit(value, errors)
    if unit is None:
        errors.setdefault("rate_unit", "Custom rates must specify time unit")
        return RateUnit.HOURS
    if unit not in CUSTOM_UNITS:
        errors["rate_unit"] = "Rate unit must be per minute, per hour or per word"
    return unit


def _positive_decimal(value: Any, default: Decimal, key: str, errors: dict[str, str]) -> Decimal:
    if value is None or value == "":
        return default
    parsed = parse_amount(value)
    if parsed is None or parsed <= 0:
        errors[key] = "Minimum hours must be a positive number"
        return default
    return parsed


def _positive_int(value: Any, default: int, key: str, errors: dict[str, str]) -> int:
    if value is None or value == "":
        return default
    parsed = parse_amount(value)
    if parsed is None or parsed <= 0 or parsed != parsed.to_integral_value():
        errors[key] = "Increments must be a whole number of minutes"
        return default
    return int(parsed)


# ---------------------------------------------------------------------------
# Selections
# ---------------------------------------------------------------------------


def platform_selection(service_type: ServiceType, language_names: Iterable[str]) -> ServiceSelection:
    """A new selection carrying the platform rate."""
    return ServiceSelection(
        service_type_id=service_type.id,
        rate_type=RateType.PLATFORM,
        rate=compute_effective_rate(service_type, RateType.PLATFORM, language_names),
    )


def apply_language_override(
    selection: ServiceSelection,
    language_id: str,
    amount: Any,
    unit: RateUnit | str | None = None,
    *,
    draft_language_ids: Iterable[str],
) -> ServiceSelection:
    """Return *selection* with an override for *language_id*.

    Passing ``amount=None`` removes the override. Blank amounts are kept
    (the language stays opted out at submission). Overrides never change
    eligibility.
    """
    language_id = str(language_id)
    if language_id not in {str(x) for x in draft_language_ids}:
        raise ValidationError(
            {"language_rates": "Overrides are only allowed for languages on the profile"}
        )

    overrides = dict(selection.language_overrides)
    if amount is None:
        overrides.pop(language_id, None)
        return selection.model_copy(update={"language_overrides": overrides})

    numeric = parse_amount(amount)
    if numeric is not None and (numeric <= 0 or numeric > MAX_RATE_AMOUNT):
        raise ValidationError(
            {"language_rates": f"Language rates must be between 0 and ${MAX_RATE_AMOUNT}"}
        )

    resolved_unit = parse_rate_unit(unit) if unit else selection.rate.unit
    text = "" if isinstance(amount, str) and not amount.strip() else str(amount).strip()
    overrides[language_id] = LanguageRate(amount=text, unit=resolved_unit)
    return selection.model_copy(update={"language_overrides": overrides})


def reprice_for_languages(
    selections: dict[str, ServiceSelection],
    reference: ReferenceData,
    language_ids: list[str],
) -> dict[str, ServiceSelection]:
    """Recompute language-priced platform rates and drop stale overrides.

    Called whenever the draft's language list changes.
    """
    names = reference.language_names(language_ids)
    keep = set(language_ids)
    result: dict[str, ServiceSelection] = {}
    for service_type_id, selection in selections.items():
        update: dict[str, Any] = {}
        pruned = {k: v for k, v in selection.language_overrides.items() if k in keep}
        if pruned != selection.language_overrides:
            update["language_overrides"] = pruned
        service_type = reference.service_type(service_type_id)
        if service_type is not None and selection.rate_type is RateType.PLATFORM:
            rate = compute_effective_rate(service_type, RateType.PLATFORM, names)
            if rate != selection.rate:
                update["rate"] = rate
        result[service_type_id] = selection.model_copy(update=update) if update else selection
    return result


# ---------------------------------------------------------------------------
# Tiered billing
# ---------------------------------------------------------------------------


def _hourly_price(unit: RateUnit, amount: Decimal) -> Decimal:
    if unit is RateUnit.HOURS:
        return amount
    if unit is RateUnit.MINUTES:
        return amount * 60
    if unit is RateUnit.PER_3_HOURS:
        return amount / 3
    if unit is RateUnit.PER_6_HOURS:
        return amount / 6
    msg = f"Rate unit {unit} is not time-based"
    raise ValueError(msg)


def compute_charge(rate: RateSpec, elapsed_minutes: int | float | Decimal) -> Decimal:
    """Charge for *elapsed_minutes* of work under *rate*.

    The minimum block is always billed. Time past the minimum first
    consumes one second-tier block of ``interval_minutes`` (billed in full,
    at the second-tier rate) when the rate defines one; anything beyond
    that is billed in started hours at the base rate.

    Examples:
        >>> spec = RateSpec(amount=Decimal("60"), unit=RateUnit.HOURS, minimum_hours=Decimal("2"))
        >>> compute_charge(spec, 90)
        Decimal('120.00')
        >>> compute_charge(spec, 150)
        Decimal('180.00')
    """
    if rate.unit is RateUnit.WORD:
        msg = "Word-priced rates are not billed by duration"
        raise ValueError(msg)
    elapsed = Decimal(str(elapsed_minutes))
    if elapsed < 0:
        msg = "Elapsed time cannot be negative"
        raise ValueError(msg)

    base_hourly = _hourly_price(rate.unit, rate.amount)
    minimum_minutes = rate.minimum_hours * 60
    total = base_hourly * minimum_minutes / 60
    remaining = elapsed - minimum_minutes

    if remaining > 0 and rate.has_second_tier and rate.interval_minutes > 0:
        assert rate.second_interval_amount is not None
        second_unit = rate.second_interval_unit or RateUnit.HOURS
        second_hourly = _hourly_price(second_unit, rate.second_interval_amount)
        total += second_hourly * Decimal(rate.interval_minutes) / 60
        remaining -= rate.interval_minutes

    if remaining > 0:
        total += base_hourly * math.ceil(remaining / 60)

    return total.quantize(_CENT, rounding=ROUND_HALF_UP)
