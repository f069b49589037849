"""Typed payload contracts for service and adapter boundaries.

These models validate operation payload shapes before they leave the
service layer, so regressions in the wire format (for example
``certificates`` vs ``certificates_metadata``) fail fast in tests.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def dump_validated[T: BaseModel](model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


# ---------------------------------------------------------------------------
# Submission payload (POST /interpreters, /interpreters/profile/update)
# ---------------------------------------------------------------------------


class LanguagePayload(BaseModel):
    language_id: str


class LanguageRatePayload(BaseModel):
    language_id: str
    rate_amount: str
    rate_unit: str


class ServiceRatePayload(BaseModel):
    """One flattened service selection."""

    service_type_id: str
    rate_type: Literal["platform", "custom"]
    rate_amount: str
    rate_unit: str
    minimum_hours: str
    interval_minutes: int
    second_interval_rate_amount: str | None = None
    second_interval_rate_unit: str | None = None
    language_rates: list[LanguageRatePayload] = Field(default_factory=list)


class CertificateMetadata(BaseModel):
    """Certificate row; ``file_index`` points into the uploaded files."""

    certificate_type_id: str
    certificate_number: str
    issuing_organization: str
    issue_date: str | None = None
    expiry_date: str
    issuing_state_id: str | None = None
    file_index: int | None = None
    is_existing: bool = False


class W9DataPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    business_name: str
    business_name_alt: str = ""
    tax_classification: str
    llc_classification: str = ""
    has_foreign_partners: bool = False
    exempt_payee_code: str = ""
    fatca_exemption_code: str = ""
    ssn: str = ""
    ein: str = ""
    address: str
    city: str
    state: str
    zip_code: str
    signature_name: str = ""
    signature_date: str = ""


class SubmissionPayload(BaseModel):
    """Everything except binary files, before multipart rendering."""

    first_name: str
    last_name: str
    middle_name: str = ""
    email: str
    phone: str
    date_of_birth: str | None = None
    gender: str = ""
    business_name: str = ""
    is_agency: bool = False
    sms_consent: bool = False

    street_address: str
    street_address_2: str = ""
    city: str = ""
    state_id: str | None = None
    zip_code: str = ""
    county: str = ""
    formatted_address: str = ""
    latitude: float | None = None
    longitude: float | None = None
    place_id: str = ""

    languages: list[LanguagePayload]
    service_types: list[str]
    service_rates: list[ServiceRatePayload]
    certificates_metadata: list[CertificateMetadata] = Field(default_factory=list)

    w9_entry_method: Literal["upload", "manual"] | None = None
    w9_data: W9DataPayload | None = None

    terms_accepted: bool = False
    privacy_policy_accepted: bool = False
    rejection_token: str | None = None
    completion_token: str | None = None


# ---------------------------------------------------------------------------
# Service result data
# ---------------------------------------------------------------------------


class StepStateData(BaseModel):
    """Payload contract for every navigation operation."""

    model_config = ConfigDict(extra="allow")

    session_id: str
    mode: str
    current_step: int
    step_label: str
    visited_steps: list[int]
    editing_from_review: bool
    flagged_fields: list[str] = Field(default_factory=list)


class SelectionData(BaseModel):
    """Payload contract for service selection and rate operations."""

    session_id: str
    service_type_id: str
    service_code: str
    rate_type: str
    rate_amount: str
    rate_unit: str
    minimum_hours: str
    interval_minutes: int
    second_interval_rate_amount: str | None = None
    second_interval_rate_unit: str | None = None
    language_overrides: dict[str, dict[str, str]] = Field(default_factory=dict)


class AddressData(BaseModel):
    """Payload contract for ``WizardService.validate_address``."""

    session_id: str
    message: str
    line_2_ignored: bool
    formatted_address: str
    latitude: float
    longitude: float
    place_id: str
    city: str
    state_id: str | None = None
    zip_code: str


class SubmissionResultData(BaseModel):
    """Payload contract for ``WizardService.submit``."""

    model_config = ConfigDict(extra="allow")

    session_id: str
    kind: Literal["create", "update", "completion"]
    message: str
    response: Any = None
