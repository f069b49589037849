"""Per-step validation of the draft.

Each ``validate_*`` function returns a :class:`ValidationResult` whose
``errors`` map a field identifier to a message. Certificate errors are
keyed ``certificate_<id>_<field>`` so a caller can attach them to a row.
:func:`ensure_valid` turns a failed result into a
:class:`~interpreter_onboarding.errors.ValidationError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date

from interpreter_onboarding.domain.draft import (
    AddressInfo,
    Certificate,
    Draft,
    PersonalInfo,
    TaxForm,
)
from interpreter_onboarding.domain.rates import SERVICE_CERTIFICATE_REQUIREMENTS, parse_amount
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.domain.types import RateType, TaxClassification, W9EntryMethod
from interpreter_onboarding.domain.wizard import WizardStep
from interpreter_onboarding.errors import ValidationError

PHONE_RE = re.compile(r"^[\d\s\-()+.]{10,}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
SSN_RE = re.compile(r"^\d{3}-\d{2}-\d{4}$")
EIN_RE = re.compile(r"^\d{2}-\d{7}$")

EARLIEST_BIRTH_DATE = date(1930, 1, 1)
MINIMUM_AGE_YEARS = 18

# Certificate types whose holder must name the issuing state.
REGION_REQUIRED_CERTIFICATE_CODES: frozenset[str] = frozenset({"court-certified", "ata-certified"})


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating one step."""

    errors: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult(
            errors={**self.errors, **other.errors},
            warnings=[*self.warnings, *other.warnings],
        )


def ensure_valid(result: ValidationResult) -> None:
    """Raise :class:`ValidationError` if *result* carries errors."""
    if result.errors:
        raise ValidationError(result.errors)


def _years_before(today: date, years: int) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # 29 February
        return today.replace(year=today.year - years, day=28)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def validate_personal(personal: PersonalInfo, today: date) -> ValidationResult:
    errors: dict[str, str] = {}

    for key, label in (("first_name", "First name"), ("last_name", "Last name")):
        value = getattr(personal, key).strip()
        if not value:
            errors[key] = f"{label} is required"
        elif len(value) < 2:
            errors[key] = f"{label} must be at least 2 characters"
        elif len(value) > 100:
            errors[key] = f"{label} must be less than 100 characters"

    email = personal.email.strip()
    if not email:
        errors["email"] = "Email address is required"
    elif not EMAIL_RE.match(email):
        errors["email"] = "Please enter a valid email address"

    phone = personal.phone.strip()
    if not phone:
        errors["phone"] = "Phone number is required"
    elif not PHONE_RE.match(phone):
        errors["phone"] = "Please enter a valid phone number"

    dob = personal.date_of_birth
    if dob is not None:
        if dob > today:
            errors["date_of_birth"] = "Date of birth cannot be in the future"
        elif dob > _years_before(today, MINIMUM_AGE_YEARS):
            errors["date_of_birth"] = "You must be at least 18 years old to apply"
        elif dob < EARLIEST_BIRTH_DATE:
            errors["date_of_birth"] = "Please enter a valid date of birth"

    if personal.is_agency and not personal.business_name.strip():
        errors["business_name"] = "Business name is required"
    elif len(personal.business_name) > 255:
        errors["business_name"] = "Business name must be less than 255 characters"

    if not personal.sms_consent:
        errors["sms_consent"] = "You must consent to receive text messages to continue"

    return ValidationResult(errors=errors)


def validate_address(address: AddressInfo) -> ValidationResult:
    errors: dict[str, str] = {}

    street = address.street_address.strip()
    if not street:
        errors["street_address"] = "Street address is required"
    elif len(street) < 5:
        errors["street_address"] = "Street address is too short"
    elif len(street) > 200:
        errors["street_address"] = "Street address is too long"
    if len(address.street_address_2) > 255:
        errors["street_address_2"] = "Address is too long"

    if len(address.city) > 100:
        errors["city"] = "City name is too long"

    # City and ZIP are filled in by address validation.
    zip_code = address.zip_code.strip()
    if zip_code and not ZIP_RE.match(zip_code):
        errors["zip_code"] = "Please enter a valid ZIP code"

    if not address.address_validated:
        errors.setdefault(
            "address_validated", "Please validate your address before continuing"
        )

    return ValidationResult(errors=errors)


def validate_languages(language_ids: list[str]) -> ValidationResult:
    if not [x for x in language_ids if x and str(x).strip()]:
        return ValidationResult(errors={"languages": "Please add at least one language"})
    return ValidationResult()


def _certificate_errors(
    cert: Certificate, reference: ReferenceData, today: date
) -> dict[str, str]:
    prefix = f"certificate_{cert.id}_"
    errors: dict[str, str] = {}

    if not cert.certificate_type_id.strip():
        errors[prefix + "certificate_type_id"] = "Certificate type is required"
    if not cert.number.strip():
        errors[prefix + "certificate_number"] = "Certificate number is required"
    if not cert.issuing_org.strip():
        errors[prefix + "issuing_organization"] = "Issuing organization is required"

    if cert.expiry_date is None:
        errors[prefix + "expiry_date"] = "Expiration date is required"
    elif cert.issue_date is not None and cert.issue_date >= cert.expiry_date:
        errors[prefix + "expiry_date"] = "Expiry date must be after issue date"
    elif cert.expiry_date < today:
        errors[prefix + "expiry_date"] = (
            "Certificate has already expired. Please provide a valid certification."
        )

    cert_type = reference.certificate_type(cert.certificate_type_id) if cert.certificate_type_id else None
    if (
        cert_type is not None
        and cert_type.normalized_code in REGION_REQUIRED_CERTIFICATE_CODES
        and not cert.issuing_region_id
    ):
        errors[prefix + "issuing_state_id"] = "Please select the state for this certification"

    return errors


def validate_certificates(
    is_certified: bool | None,
    certificates: list[Certificate],
    reference: ReferenceData,
    today: date,
) -> ValidationResult:
    if is_certified is None:
        return ValidationResult(
            errors={"certification_status": "Please select whether you are certified or not"}
        )
    if not is_certified:
        return ValidationResult()
    if not certificates:
        return ValidationResult(errors={"certificates": "Please add at least one certification"})

    errors: dict[str, str] = {}
    for cert in certificates:
        errors.update(_certificate_errors(cert, reference, today))
    return ValidationResult(errors=errors)


def validate_service_types(draft: Draft, reference: ReferenceData) -> ValidationResult:
    """Selections are complete, consistent, and still eligible.

    Eligibility is re-checked because certificates may have been removed
    after a gated service was selected.
    """
    errors: dict[str, str] = {}
    if not draft.service_type_ids:
        return ValidationResult(errors={"service_types": "Please select at least one service type"})

    held = reference.certificate_codes(draft.held_certificate_type_ids)
    for service_type_id in draft.service_type_ids:
        service_type = reference.service_type(service_type_id)
        key = f"service_{service_type_id}"
        if service_type is None:
            errors[key] = f"Unknown service type: {service_type_id}"
            continue
        required = SERVICE_CERTIFICATE_REQUIREMENTS.get(service_type.normalized_code)
        if required is not None and required.isdisjoint(held):
            errors[key] = f"{service_type.name} requires a qualifying certification"
            continue
        selection = draft.service_selections.get(service_type_id)
        if selection is None:
            errors[key] = f"Please choose a rate for {service_type.name}"
            continue
        if selection.rate_type is RateType.CUSTOM:
            amount = parse_amount(selection.rate.amount)
            if amount is None or amount <= 0:
                errors[key] = f"Custom rate for {service_type.name} must have a valid amount"

    return ValidationResult(errors=errors)


def validate_tax_form(tax_form: TaxForm) -> ValidationResult:
    if tax_form.entry_method is None:
        return ValidationResult(errors={"w9_entry_method": "Please select an entry method"})

    if tax_form.entry_method is W9EntryMethod.UPLOAD:
        if tax_form.file is None:
            return ValidationResult(errors={"w9_file": "Please upload a W-9 form"})
        return ValidationResult()

    data = tax_form.data
    if data is None:
        return ValidationResult(errors={"w9_data": "W-9 information is required"})

    errors: dict[str, str] = {}
    if not data.business_name.strip():
        errors["w9_business_name"] = "Business name is required"
    if data.tax_classification is None:
        errors["w9_tax_classification"] = "Tax classification is required"
    elif data.tax_classification is TaxClassification.INDIVIDUAL:
        if not data.ssn.strip():
            errors["w9_ssn"] = "SSN is required for individual tax classification"
        elif not SSN_RE.match(data.ssn.strip()):
            errors["w9_ssn"] = "SSN must be in format XXX-XX-XXXX"
    elif not data.ein.strip():
        errors["w9_ein"] = "EIN is required for business tax classification"
    elif not EIN_RE.match(data.ein.strip()):
        errors["w9_ein"] = "EIN must be in format XX-XXXXXXX"

    for key, label in (("address", "Address"), ("city", "City"), ("state", "State")):
        if not getattr(data, key).strip():
            errors[f"w9_{key}"] = f"{label} is required"
    zip_code = data.zip_code.strip()
    if not zip_code:
        errors["w9_zip_code"] = "ZIP code is required"
    elif not ZIP_RE.match(zip_code):
        errors["w9_zip_code"] = "Please enter a valid ZIP code"

    return ValidationResult(errors=errors)


def validate_agreements(draft: Draft) -> ValidationResult:
    errors: dict[str, str] = {}
    if not draft.terms_accepted:
        errors["terms_accepted"] = "You must accept the terms and conditions"
    if not draft.privacy_policy_accepted:
        errors["privacy_policy_accepted"] = "You must accept the privacy policy"
    return ValidationResult(errors=errors)


def validate_step(
    step: WizardStep, draft: Draft, reference: ReferenceData, today: date
) -> ValidationResult:
    """Validate the slice of *draft* owned by *step*."""
    if step is WizardStep.PERSONAL:
        return validate_personal(draft.personal, today)
    if step is WizardStep.ADDRESS:
        return validate_address(draft.address)
    if step is WizardStep.LANGUAGES:
        return validate_languages(draft.language_ids)
    if step is WizardStep.CERTIFICATES:
        return validate_certificates(draft.is_certified, draft.certificates, reference, today)
    if step is WizardStep.SERVICE_TYPES:
        return validate_service_types(draft, reference)
    if step is WizardStep.TAX_FORM:
        return validate_tax_form(draft.tax_form)
    return validate_agreements(draft)


def validate_draft(draft: Draft, reference: ReferenceData, today: date) -> ValidationResult:
    """Validate every step; used right before submission."""
    result = ValidationResult()
    for step in WizardStep:
        result = result.merge(validate_step(step, draft, reference, today))
    return result
