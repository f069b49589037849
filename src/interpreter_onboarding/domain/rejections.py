"""Resubmission filter — which fields an administrator sent back.

Rejections are recorded at two granularities: single fields
(``street_address``) or whole sections (``w9_address``). The
:data:`FIELD_SECTIONS` table rolls fields up to their section so
:func:`is_flagged` answers the same question for both.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from interpreter_onboarding.domain.wizard import WizardStep

FLAG_MESSAGE = "This field needs to be updated"

# field id -> section id
FIELD_SECTIONS: dict[str, str] = {
    # personal
    "first_name": "name",
    "middle_name": "name",
    "last_name": "name",
    "email": "contact",
    "phone": "contact",
    "sms_consent": "contact",
    # address
    "street_address": "address",
    "street_address_2": "address",
    "city": "address",
    "state_id": "address",
    "zip_code": "address",
    "county": "address",
    # certificates
    "certificate_type_id": "certificates",
    "certificate_number": "certificates",
    "issuing_organization": "certificates",
    "issue_date": "certificates",
    "expiry_date": "certificates",
    "issuing_state_id": "certificates",
    "certificate_file": "certificates",
    # service types
    "service_rates": "service_types",
    "language_rates": "service_types",
    # tax form
    "w9_file": "w9",
    "w9_business_name": "w9_identity",
    "w9_business_name_alt": "w9_identity",
    "w9_tax_classification": "w9_identity",
    "w9_llc_classification": "w9_identity",
    "w9_ssn": "w9_tax_id",
    "w9_ein": "w9_tax_id",
    "w9_address": "w9_address",
    "w9_city": "w9_address",
    "w9_state": "w9_address",
    "w9_zip_code": "w9_address",
    "w9_signature_name": "w9_signature",
    "w9_signature_date": "w9_signature",
}

# Sections that are themselves part of a larger block.
SECTION_PARENTS: dict[str, str] = {
    "w9_identity": "w9",
    "w9_tax_id": "w9",
    "w9_address": "w9",
    "w9_signature": "w9",
}

STEP_FIELDS: dict[WizardStep, tuple[str, ...]] = {
    WizardStep.PERSONAL: (
        "first_name",
        "middle_name",
        "last_name",
        "email",
        "phone",
        "date_of_birth",
        "gender",
        "business_name",
        "sms_consent",
    ),
    WizardStep.ADDRESS: (
        "street_address",
        "street_address_2",
        "city",
        "state_id",
        "zip_code",
        "county",
    ),
    WizardStep.LANGUAGES: ("languages",),
    WizardStep.CERTIFICATES: (
        "certificates",
        "certificate_type_id",
        "certificate_number",
        "issuing_organization",
        "issue_date",
        "expiry_date",
        "issuing_state_id",
        "certificate_file",
    ),
    WizardStep.SERVICE_TYPES: ("service_types", "service_rates", "language_rates"),
    WizardStep.TAX_FORM: (
        "w9_file",
        "w9_business_name",
        "w9_business_name_alt",
        "w9_tax_classification",
        "w9_llc_classification",
        "w9_ssn",
        "w9_ein",
        "w9_address",
        "w9_city",
        "w9_state",
        "w9_zip_code",
        "w9_signature_name",
        "w9_signature_date",
    ),
    WizardStep.REVIEW: ("terms_accepted", "privacy_policy_accepted"),
}


class RejectionSet(BaseModel):
    """Field and section identifiers an administrator rejected."""

    model_config = ConfigDict(frozen=True)

    identifiers: frozenset[str] = Field(default_factory=frozenset)
    note: str | None = None

    @classmethod
    def of(cls, identifiers: Iterable[str] | None, note: str | None = None) -> RejectionSet:
        return cls(identifiers=frozenset(i.strip() for i in identifiers or () if i and i.strip()), note=note)

    def __contains__(self, item: object) -> bool:
        return item in self.identifiers

    def __bool__(self) -> bool:
        return bool(self.identifiers)


class FieldFlag(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_id: str
    message: str = FLAG_MESSAGE


def _sections_of(field_id: str) -> list[str]:
    sections = []
    section = FIELD_SECTIONS.get(field_id)
    while section is not None and section not in sections:
        sections.append(section)
        section = SECTION_PARENTS.get(section)
    return sections


def is_flagged(field_id: str, rejections: RejectionSet | Iterable[str]) -> bool:
    """Whether *field_id* was rejected directly or through its section.

    Examples:
        >>> is_flagged("w9_city", {"w9_address"})
        True
        >>> is_flagged("w9_ssn", {"w9_address"})
        False
    """
    identifiers = rejections.identifiers if isinstance(rejections, RejectionSet) else set(rejections)
    if field_id in identifiers:
        return True
    return any(section in identifiers for section in _sections_of(field_id))


def flagged_fields(step: WizardStep, rejections: RejectionSet | Iterable[str]) -> list[str]:
    return [f for f in STEP_FIELDS[step] if is_flagged(f, rejections)]


def steps_requiring_reentry(rejections: RejectionSet | Iterable[str]) -> list[WizardStep]:
    """Steps rendering at least one flagged field, in wizard order."""
    return [step for step in WizardStep if flagged_fields(step, rejections)]


def decorate(step: WizardStep, rejections: RejectionSet | Iterable[str]) -> dict[str, FieldFlag]:
    """Flags for the fields *step* renders, keyed by field id."""
    return {f: FieldFlag(field_id=f) for f in flagged_fields(step, rejections)}


def field_label(field_id: str) -> str:
    """Human label for a rejected identifier (``w9_tax_id`` -> ``W9 Tax Id``)."""
    return " ".join(part.capitalize() for part in field_id.split("_") if part)


def summarize(rejections: RejectionSet) -> dict[str, Any]:
    """Payload for the "Updates Required" banner."""
    return {
        "note": rejections.note,
        "fields": [field_label(i) for i in sorted(rejections.identifiers)],
        "steps": [int(s) for s in steps_requiring_reentry(rejections)],
    }
