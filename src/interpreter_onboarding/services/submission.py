"""Submission assembler — Draft to wire payload.

Filtering rules applied during assembly:

- certificates missing type, number, issuing organization or expiry are
  abandoned rows and are dropped together with their files;
- language-rate overrides whose amount is blank or non-numeric are left
  out (overrides are opt-in per language).

``create`` and ``update`` payloads are assembled identically; they differ
only in endpoint and in the resubmission token a ``create`` may carry.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from interpreter_onboarding.domain.draft import Certificate, Draft, UploadedFile
from interpreter_onboarding.domain.rates import ServiceSelection
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.domain.types import W9EntryMethod
from interpreter_onboarding.domain.validation import REGION_REQUIRED_CERTIFICATE_CODES
from interpreter_onboarding.infrastructure.api_client import MultipartFiles
from interpreter_onboarding.services.contracts import SubmissionPayload, dump_validated

logger = logging.getLogger(__name__)

SubmissionKind = Literal["create", "update", "completion"]


class AssembledSubmission(BaseModel):
    """Validated payload plus the binary attachments that go with it."""

    model_config = ConfigDict(frozen=True)

    kind: SubmissionKind
    payload: dict[str, Any]
    certificate_files: list[UploadedFile] = Field(default_factory=list)
    w9_file: UploadedFile | None = None


def _money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return format(value, "f")


def _selection_payload(selection: ServiceSelection) -> dict[str, Any]:
    rate = selection.rate
    language_rates = []
    for language_id, override in selection.language_overrides.items():
        amount = override.numeric_amount
        if amount is None:
            continue
        language_rates.append(
            {
                "language_id": language_id,
                "rate_amount": _money(amount),
                "rate_unit": str(override.unit),
            }
        )
    return {
        "service_type_id": selection.service_type_id,
        "rate_type": str(selection.rate_type),
        "rate_amount": _money(rate.amount),
        "rate_unit": str(rate.unit),
        "minimum_hours": _money(rate.minimum_hours),
        "interval_minutes": rate.interval_minutes,
        "second_interval_rate_amount": _money(rate.second_interval_amount),
        "second_interval_rate_unit": str(rate.second_interval_unit) if rate.second_interval_unit else None,
        "language_rates": language_rates,
    }


def _certificate_payload(
    cert: Certificate, reference: ReferenceData, file_index: int | None
) -> dict[str, Any]:
    assert cert.expiry_date is not None
    cert_type = reference.certificate_type(cert.certificate_type_id)
    needs_region = (
        cert_type is not None and cert_type.normalized_code in REGION_REQUIRED_CERTIFICATE_CODES
    )
    return {
        "certificate_type_id": cert.certificate_type_id,
        "certificate_number": cert.number.strip(),
        "issuing_organization": cert.issuing_org.strip(),
        "issue_date": cert.issue_date.isoformat() if cert.issue_date else None,
        "expiry_date": cert.expiry_date.isoformat(),
        "issuing_state_id": cert.issuing_region_id if needs_region else None,
        "file_index": file_index,
        "is_existing": cert.is_existing,
    }


def assemble(
    draft: Draft,
    reference: ReferenceData,
    *,
    kind: SubmissionKind = "create",
    rejection_token: str | None = None,
    completion_token: str | None = None,
) -> AssembledSubmission:
    """Build the outbound submission for *draft*.

    The payload is validated against :class:`SubmissionPayload`; a shape
    error surfaces as :class:`pydantic.ValidationError`.
    """
    personal = draft.personal
    address = draft.address

    certificate_files: list[UploadedFile] = []
    certificates: list[dict[str, Any]] = []
    if draft.is_certified:
        for cert in draft.certificates:
            if not cert.is_complete:
                logger.debug("Dropping incomplete certificate row %s", cert.id)
                continue
            file_index = None
            if cert.file is not None:
                file_index = len(certificate_files)
                certificate_files.append(cert.file)
            certificates.append(_certificate_payload(cert, reference, file_index))

    tax_form = draft.tax_form
    w9_file = None
    w9_data = None
    if tax_form.entry_method is W9EntryMethod.UPLOAD:
        w9_file = tax_form.file
    elif tax_form.entry_method is W9EntryMethod.MANUAL and tax_form.data is not None:
        w9_data = tax_form.data.model_dump(mode="json")

    data: dict[str, Any] = {
        "first_name": personal.first_name.strip(),
        "last_name": personal.last_name.strip(),
        "middle_name": personal.middle_name.strip(),
        "email": personal.email.strip(),
        "phone": personal.phone.strip(),
        "date_of_birth": personal.date_of_birth.isoformat() if personal.date_of_birth else None,
        "gender": personal.gender,
        "business_name": personal.business_name.strip(),
        "is_agency": personal.is_agency,
        "sms_consent": personal.sms_consent,
        "street_address": address.street_address.strip(),
        "street_address_2": address.street_address_2.strip(),
        "city": address.city.strip(),
        "state_id": address.state_id,
        "zip_code": address.zip_code.strip(),
        "county": address.county,
        "formatted_address": address.formatted_address,
        "latitude": address.latitude,
        "longitude": address.longitude,
        "place_id": address.place_id,
        "languages": [{"language_id": x} for x in draft.language_ids],
        "service_types": list(draft.service_type_ids),
        "service_rates": [_selection_payload(s) for s in draft.selections_in_order()],
        "certificates_metadata": certificates,
        "w9_entry_method": str(tax_form.entry_method) if tax_form.entry_method else None,
        "w9_data": w9_data,
        "terms_accepted": draft.terms_accepted,
        "privacy_policy_accepted": draft.privacy_policy_accepted,
        "rejection_token": rejection_token if kind == "create" else None,
        "completion_token": completion_token if kind == "completion" else None,
    }

    return AssembledSubmission(
        kind=kind,
        payload=dump_validated(SubmissionPayload, data),
        certificate_files=certificate_files,
        w9_file=w9_file,
    )


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def to_multipart(submission: AssembledSubmission) -> tuple[dict[str, str], MultipartFiles]:
    """Render *submission* as ``(form fields, files)`` for ``requests``.

    Nested values are JSON-encoded; ``None`` values are omitted.
    """
    data = {k: _form_value(v) for k, v in submission.payload.items() if v is not None}
    files: MultipartFiles = [
        ("certificates", (f.filename, f.content, f.content_type))
        for f in submission.certificate_files
    ]
    if submission.w9_file is not None:
        w9 = submission.w9_file
        files.append(("w9_file", (w9.filename, w9.content, w9.content_type)))
    return data, files


def to_json(submission: AssembledSubmission) -> dict[str, Any]:
    """JSON body for profile-completion submissions (no binary parts)."""
    return {k: v for k, v in submission.payload.items() if v is not None}
